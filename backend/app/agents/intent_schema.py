"""
Intent Schema - Pydantic models for the classifier's JSON output.

The router envelope is a tagged union keyed by `intent`. Every variant shares
the envelope's fields (all of them always present after validation); the
variant class only records which flow handles it. Extraction models are the
outputs of the intent-specific follow-up prompts.

Keys are camelCase on the wire. Unknown keys are ignored, explicit nulls fall
back to the field default, and a present key with the wrong type fails
validation.
"""
from enum import Enum
from typing import Any, ClassVar, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class IntentKind(str, Enum):
    """Flows the orchestrator knows how to run."""
    CHAT = "chat"
    SUMMARIZE = "summarize"
    CREATE_TASK = "createTask"
    CREATE_PROJECT = "createProject"
    COMPLETE = "complete"
    UPDATE = "updateEntity"
    LIST = "list"
    UNKNOWN = "unknown"


class EntityType(str, Enum):
    """Record kinds a command can target."""
    TASK = "task"
    PROJECT = "project"
    CONTEXT = "context"


# Discriminator spellings accepted from the model
INTENT_ALIASES = {
    "chat": IntentKind.CHAT,
    "summarize": IntentKind.SUMMARIZE,
    "createTask": IntentKind.CREATE_TASK,
    "createProject": IntentKind.CREATE_PROJECT,
    "complete": IntentKind.COMPLETE,
    "completeTask": IntentKind.COMPLETE,
    "updateEntity": IntentKind.UPDATE,
    "update": IntentKind.UPDATE,
    "list": IntentKind.LIST,
}

ENTITY_ALIASES = {
    "task": EntityType.TASK,
    "tasks": EntityType.TASK,
    "project": EntityType.PROJECT,
    "projects": EntityType.PROJECT,
    "context": EntityType.CONTEXT,
    "contexts": EntityType.CONTEXT,
    "nextaction": EntityType.CONTEXT,
    "nextactions": EntityType.CONTEXT,
    "next_action": EntityType.CONTEXT,
    "next action": EntityType.CONTEXT,
}


def parse_entity_type(value: Optional[str], default: Optional[EntityType] = None) -> Optional[EntityType]:
    """Map a free-form entity label to EntityType, or default when unrecognized."""
    if not value:
        return default
    return ENTITY_ALIASES.get(value.strip().lower(), default)


class WireModel(BaseModel):
    """camelCase JSON, extra keys ignored, nulls mean "use the default"."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


# =============================================================================
# EXTRACTION MODELS
# =============================================================================

class TaskDraft(WireModel):
    """A task as described by the model, before name resolution."""
    title: str = ""
    description: str = ""
    due_date: str = ""
    priority: Optional[int] = None
    category: str = ""
    project_name: Optional[str] = None
    next_action_name: Optional[str] = None


class ProjectDraft(WireModel):
    """A project with the tasks to create inside it."""
    project_name: str = ""
    project_description: str = ""
    tasks: list[TaskDraft] = Field(default_factory=list)


class SummaryRequest(WireModel):
    """General summary of free text, or progress of a named record."""
    summary_type: str = "general"
    entity_type: str = ""
    name: str = ""
    context: str = ""

    @property
    def is_progress(self) -> bool:
        return self.summary_type.strip().lower() == "progress"


class CompletionTarget(WireModel):
    """What to mark as done."""
    intent_type: str = Field(
        default="task",
        validation_alias=AliasChoices("intentType", "entityType", "intent_type"),
    )
    title: str = ""
    project_name: Optional[str] = None
    next_action_name: Optional[str] = None


class UpdateRequest(WireModel):
    """Edits to one record. Only fields named in fields_to_update apply."""
    entity_type: str = "task"
    title: str = ""
    fields_to_update: list[str] = Field(default_factory=list)
    new_title: str = ""
    description: str = ""
    due_date: str = ""
    priority: Optional[int] = None
    project_name: Optional[str] = None
    next_action_name: Optional[str] = None


class ListRequest(WireModel):
    """Which records to list and an optional filter."""
    entity_type: str = "task"
    query: str = ""


# =============================================================================
# ROUTER ENVELOPE
# =============================================================================

class IntentEnvelope(WireModel):
    """Router output. Unused fields stay empty, never absent."""
    intent: str
    entity_type: str = ""
    user_prompt: str = ""
    context: str = ""
    title: str = ""
    description: str = ""
    project_name: Optional[str] = None
    next_action_name: Optional[str] = None
    project_description: str = ""
    tasks: list[TaskDraft] = Field(default_factory=list)
    query: str = ""
    new_title: str = ""
    due_date: str = ""
    fields_to_update: list[str] = Field(default_factory=list)
    priority: Optional[int] = None

    kind: ClassVar[IntentKind] = IntentKind.UNKNOWN


class ChatIntent(IntentEnvelope):
    kind: ClassVar[IntentKind] = IntentKind.CHAT


class SummarizeIntent(IntentEnvelope):
    kind: ClassVar[IntentKind] = IntentKind.SUMMARIZE


class CreateTaskIntent(IntentEnvelope):
    kind: ClassVar[IntentKind] = IntentKind.CREATE_TASK


class CreateProjectIntent(IntentEnvelope):
    kind: ClassVar[IntentKind] = IntentKind.CREATE_PROJECT


class CompleteIntent(IntentEnvelope):
    kind: ClassVar[IntentKind] = IntentKind.COMPLETE


class UpdateIntent(IntentEnvelope):
    kind: ClassVar[IntentKind] = IntentKind.UPDATE


class ListIntent(IntentEnvelope):
    kind: ClassVar[IntentKind] = IntentKind.LIST


class UnknownIntent(IntentEnvelope):
    """Any discriminator the orchestrator does not handle."""
    kind: ClassVar[IntentKind] = IntentKind.UNKNOWN


VARIANTS: dict[IntentKind, type[IntentEnvelope]] = {
    IntentKind.CHAT: ChatIntent,
    IntentKind.SUMMARIZE: SummarizeIntent,
    IntentKind.CREATE_TASK: CreateTaskIntent,
    IntentKind.CREATE_PROJECT: CreateProjectIntent,
    IntentKind.COMPLETE: CompleteIntent,
    IntentKind.UPDATE: UpdateIntent,
    IntentKind.LIST: ListIntent,
}

IntentPayload = IntentEnvelope


def variant_for(intent: Any) -> type[IntentEnvelope]:
    """Variant class for a raw discriminator value."""
    if not isinstance(intent, str):
        return UnknownIntent
    return VARIANTS.get(INTENT_ALIASES.get(intent.strip(), IntentKind.UNKNOWN), UnknownIntent)
