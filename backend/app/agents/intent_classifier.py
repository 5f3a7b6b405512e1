"""
Intent Classifier - turns a free-text command into a validated intent payload.

Each method sends the prompt with one instruction template through the
completion service and validates the reply against a Pydantic model.
Malformed replies raise ClassificationParseError with the raw text attached;
nothing is retried.
"""
import json
import logging
from typing import Optional, TypeVar

from pydantic import BaseModel, ValidationError

from app.agents.intent_schema import (
    CompletionTarget,
    IntentEnvelope,
    ListRequest,
    ProjectDraft,
    SummaryRequest,
    TaskDraft,
    UnknownIntent,
    UpdateRequest,
    variant_for,
)
from app.core import prompts
from app.core.exceptions import ClassificationParseError
from app.services.audit_logger import AuditLogger, OperationType, get_audit_logger
from app.services.completion import CompletionService

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def strip_code_fence(text: str) -> str:
    """Remove one surrounding markdown code fence, if present."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped

    lines = stripped.split("\n")
    start_idx = 1
    end_idx = len(lines) - 1 if len(lines) > 1 and lines[-1].strip() == "```" else len(lines)
    return "\n".join(lines[start_idx:end_idx]).strip()


def load_json_object(raw_text: str, schema: str) -> dict:
    """Decode the reply as a JSON object or raise ClassificationParseError."""
    text = strip_code_fence(raw_text or "")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ClassificationParseError(
            f"AI response could not be parsed as JSON: {e}",
            raw_text=raw_text or "",
            schema=schema,
        )
    if not isinstance(data, dict):
        raise ClassificationParseError(
            f"AI response must be a JSON object, got {type(data).__name__}",
            raw_text=raw_text or "",
            schema=schema,
        )
    return data


def validate_model(model: type[M], data: dict, raw_text: str) -> M:
    """Validate decoded JSON against a model."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ClassificationParseError(
            f"AI response does not match {model.__name__}: {location} {first.get('msg', '')}".strip(),
            raw_text=raw_text or "",
            schema=model.__name__,
        )


def parse_intent(raw_text: str) -> IntentEnvelope:
    """
    Parse router output into its variant.

    Unrecognized discriminators produce UnknownIntent; malformed JSON, a
    missing `intent` key or wrongly typed fields raise ClassificationParseError.
    """
    data = load_json_object(raw_text, IntentEnvelope.__name__)
    variant = variant_for(data.get("intent"))
    return validate_model(variant, data, raw_text)


class IntentClassifier:
    """
    Classifies commands through the completion service.

    Args:
        completion: Completion service used for every call
        audit_logger: Audit trail for classification outcomes
    """

    def __init__(
        self,
        completion: CompletionService,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.completion = completion
        self.audit = audit_logger or get_audit_logger()

    async def _ask(
        self,
        template: str,
        prompt: str,
        model: type[M],
        request_type: str,
        user_id: Optional[str] = None,
    ) -> M:
        raw = await self.completion.complete(
            template, prompt, user_id=user_id, request_type=request_type
        )
        try:
            data = load_json_object(raw, model.__name__)
            return validate_model(model, data, raw)
        except ClassificationParseError as e:
            self._record_failure(request_type, e, user_id)
            raise

    def _record_failure(self, request_type: str, error: ClassificationParseError, user_id: Optional[str]) -> None:
        logger.error(f"[CLASSIFIER] {request_type}: {error.message}")
        logger.debug(f"[CLASSIFIER] Raw response: {error.raw_text[:500]}")
        self.audit.log(
            OperationType.CLASSIFICATION_FAILED,
            message=error.message,
            success=False,
            user_id=user_id,
            request_type=request_type,
            reply=error.raw_text,
        )

    async def classify(self, prompt: str, user_id: Optional[str] = None) -> IntentEnvelope:
        """
        Route a prompt to an intent.

        Args:
            prompt: The user's raw command
            user_id: Caller, for the audit trail

        Returns:
            One of the IntentEnvelope variants (UnknownIntent when unrecognized)

        Raises:
            ClassificationParseError: reply is not a valid envelope
            UpstreamError: the completion call failed
        """
        logger.info(f"[CLASSIFIER] Classifying: {prompt[:100]}")
        raw = await self.completion.complete(
            prompts.PARSE_INTENT_PROMPT, prompt, user_id=user_id, request_type="intent"
        )
        try:
            payload = parse_intent(raw)
        except ClassificationParseError as e:
            self._record_failure("intent", e, user_id)
            raise

        if isinstance(payload, UnknownIntent):
            logger.warning(f"[CLASSIFIER] Unrecognized intent '{payload.intent}'")
        else:
            logger.info(f"[CLASSIFIER] Intent={payload.kind.value} entityType={payload.entity_type or '-'}")

        self.audit.log(
            OperationType.INTENT_CLASSIFIED,
            message=payload.kind.value,
            user_id=user_id,
            request_type="intent",
            details={"raw_intent": payload.intent, "entity_type": payload.entity_type},
        )
        return payload

    async def extract_summary(self, prompt: str, user_id: Optional[str] = None) -> SummaryRequest:
        return await self._ask(prompts.SUMMARY_REQUEST_PROMPT, prompt, SummaryRequest, "summarize", user_id)

    async def extract_task(self, prompt: str, user_id: Optional[str] = None) -> TaskDraft:
        return await self._ask(prompts.CREATE_TASK_PROMPT, prompt, TaskDraft, "createTask", user_id)

    async def extract_project(self, prompt: str, user_id: Optional[str] = None) -> ProjectDraft:
        return await self._ask(prompts.CREATE_PROJECT_PROMPT, prompt, ProjectDraft, "createProject", user_id)

    async def extract_completion(self, prompt: str, user_id: Optional[str] = None) -> CompletionTarget:
        return await self._ask(prompts.COMPLETE_PROMPT, prompt, CompletionTarget, "complete", user_id)

    async def extract_update(self, prompt: str, user_id: Optional[str] = None) -> UpdateRequest:
        return await self._ask(prompts.UPDATE_PROMPT, prompt, UpdateRequest, "updateEntity", user_id)

    async def extract_list(self, prompt: str, user_id: Optional[str] = None) -> ListRequest:
        return await self._ask(prompts.LIST_PROMPT, prompt, ListRequest, "list", user_id)
