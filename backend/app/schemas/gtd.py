"""
Pydantic schemas for the GTD API.

All payloads are camelCase on the wire. Contexts are exposed as
"next actions" (nextAction / nextActionId).
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class UserResponse(CamelModel):
    """Current user profile."""
    id: str
    email: str
    name: str = ""
    picture: Optional[str] = None
    created_at: Optional[datetime] = None


class TaskResponse(CamelModel):
    """Task as returned by the API."""
    id: str
    user_id: str
    project_id: Optional[str] = None
    context_id: Optional[str] = Field(default=None, alias="nextActionId")
    title: str
    description: str = ""
    due_date: Optional[datetime] = None
    priority: int
    completed: bool
    trashed: bool
    category: str
    created_at: datetime
    updated_at: datetime


class ProjectResponse(CamelModel):
    """Project as returned by the API."""
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    task_count: int
    created_at: datetime
    updated_at: datetime


class NextActionResponse(CamelModel):
    """Context ("next action") as returned by the API."""
    id: str
    user_id: str
    name: str
    task_count: int
    created_at: datetime
    updated_at: datetime


class CommandResponse(CamelModel):
    """
    Unified result of a natural-language command.

    Only the fields relevant to the handled intent are populated; serialize
    with exclude_none.
    """
    intent: str
    message: Optional[str] = None
    task: Optional[TaskResponse] = None
    project: Optional[ProjectResponse] = None
    next_action: Optional[NextActionResponse] = None
    tasks: Optional[list[TaskResponse]] = None
    projects: Optional[list[ProjectResponse]] = None
    next_actions: Optional[list[NextActionResponse]] = None
    summary: Optional[str] = None
    count: Optional[int] = None
    failed_count: Optional[int] = None
    needs_disambiguation: Optional[bool] = None
    progress: Optional[float] = None


# =============================================================================
# REQUEST MODELS
# =============================================================================

class TaskCreateRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = ""
    due_date: Optional[str] = None
    priority: Optional[int] = None
    category: Optional[str] = None
    project_id: Optional[str] = None
    context_id: Optional[str] = Field(default=None, alias="nextActionId")


class TaskUpdateRequest(CamelModel):
    """Partial update; only keys present in the body are applied."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = None
    due_date: Optional[str] = None
    priority: Optional[int] = None
    completed: Optional[bool] = None
    category: Optional[str] = None
    project_id: Optional[str] = None
    context_id: Optional[str] = Field(default=None, alias="nextActionId")


class ProjectCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class ProjectUpdateRequest(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None


class NextActionCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)


class NextActionUpdateRequest(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)


class PromptRequest(CamelModel):
    """Free-text command or chat message."""
    prompt: str = Field(..., min_length=1, max_length=5000)


class ContextRequest(CamelModel):
    """Free text to summarize or turn into a task."""
    context: str = Field(..., min_length=1, max_length=10000)


class ChatResponse(CamelModel):
    response: str


class SummarizeResponse(CamelModel):
    summary: str


class CreatedTaskResponse(CamelModel):
    task: TaskResponse


class CreatedProjectResponse(CamelModel):
    project: ProjectResponse
    tasks: list[TaskResponse] = Field(default_factory=list)
    failed_count: int = 0
