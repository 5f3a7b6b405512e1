"""
AI Audit Logger.

Keeps an in-process, bounded trail of AI-driven operations:
- completion calls (prompt/reply pairs, latency, failures)
- intent classifications
- entity resolution decisions (matched, fuzzy-matched, created)
- orchestrator command outcomes

Every entry is also emitted on the "audit" logger so file handlers configured
by setup_logging() persist it. Recording is best-effort: callers never see an
exception from this module.
"""
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)
audit_log = logging.getLogger("audit")


class OperationType(str, Enum):
    """Types of audited operations."""
    # Completion service
    COMPLETION = "completion"
    COMPLETION_ERROR = "completion_error"

    # Classification
    INTENT_CLASSIFIED = "intent_classified"
    CLASSIFICATION_FAILED = "classification_failed"

    # Entity resolution
    ENTITY_MATCHED = "entity_matched"
    ENTITY_CREATED = "entity_created"
    TASK_SEARCH = "task_search"

    # Orchestrator
    COMMAND_HANDLED = "command_handled"
    BATCH_PARTIAL_FAILURE = "batch_partial_failure"


@dataclass
class OperationLog:
    """A single audited operation."""
    id: str
    timestamp: datetime
    operation_type: OperationType
    success: bool = True
    duration_ms: Optional[int] = None

    user_id: Optional[str] = None
    model: Optional[str] = None
    request_type: Optional[str] = None

    prompt: Optional[str] = None
    reply: Optional[str] = None
    message: str = ""
    details: dict = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "operation_type": self.operation_type.value,
            "success": self.success,
            "duration_ms": self.duration_ms,
            "user_id": self.user_id,
            "model": self.model,
            "request_type": self.request_type,
            "prompt": self.prompt,
            "reply": self.reply,
            "message": self.message,
            "details": self.details,
            "error": self.error,
        }

    def to_log_line(self) -> str:
        """Format as a single log line."""
        parts = [f"[{self.operation_type.value.upper()}]"]
        if self.model:
            parts.append(f"[{self.model}]")
        if self.user_id:
            parts.append(f"user={self.user_id}")
        if self.duration_ms is not None:
            parts.append(f"{self.duration_ms}ms")
        if self.message:
            parts.append(self.message)
        if self.error:
            parts.append(f"error={self.error}")
        return " ".join(parts)


class AuditLogger:
    """Bounded in-memory audit trail mirrored to the "audit" logger."""

    # Prompt/reply text kept per entry
    MAX_TEXT_LENGTH = 4000

    def __init__(self, max_entries: int = 1000, enabled: bool = True):
        self.enabled = enabled
        self._operations: deque[OperationLog] = deque(maxlen=max_entries)
        self._counts: dict[str, int] = {}

    def _truncate(self, text: Optional[str]) -> Optional[str]:
        if text is None or len(text) <= self.MAX_TEXT_LENGTH:
            return text
        return text[: self.MAX_TEXT_LENGTH] + "...[truncated]"

    def log(
        self,
        operation_type: OperationType,
        message: str = "",
        success: bool = True,
        **kwargs,
    ) -> Optional[OperationLog]:
        """Record an operation. Never raises."""
        if not self.enabled:
            return None
        try:
            op = OperationLog(
                id=str(uuid.uuid4()),
                timestamp=datetime.utcnow(),
                operation_type=operation_type,
                success=success,
                message=message,
                duration_ms=kwargs.get("duration_ms"),
                user_id=kwargs.get("user_id"),
                model=kwargs.get("model"),
                request_type=kwargs.get("request_type"),
                prompt=self._truncate(kwargs.get("prompt")),
                reply=self._truncate(kwargs.get("reply")),
                details=kwargs.get("details") or {},
                error=kwargs.get("error"),
            )
            self._operations.append(op)
            self._counts[operation_type.value] = self._counts.get(operation_type.value, 0) + 1

            level = logging.INFO if success else logging.WARNING
            audit_log.log(level, op.to_log_line(), extra={"details": op.to_dict()})
            return op
        except Exception as e:
            logger.warning(f"[AUDIT] Failed to record {operation_type}: {e}")
            return None

    def log_completion(
        self,
        model: str,
        prompt: str,
        reply: Optional[str],
        duration_ms: int,
        request_type: str,
        user_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Optional[OperationLog]:
        """Pair a user prompt with the completion reply (or the failure)."""
        return self.log(
            OperationType.COMPLETION if error is None else OperationType.COMPLETION_ERROR,
            message=f"type={request_type}",
            success=error is None,
            model=model,
            prompt=prompt,
            reply=reply,
            duration_ms=duration_ms,
            request_type=request_type,
            user_id=user_id,
            error=error,
        )

    def log_entity_resolution(
        self,
        kind: str,
        name: str,
        entity_id: str,
        created: bool,
        score: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> Optional[OperationLog]:
        return self.log(
            OperationType.ENTITY_CREATED if created else OperationType.ENTITY_MATCHED,
            message=f"{kind} '{name}' -> {entity_id}",
            user_id=user_id,
            details={"kind": kind, "name": name, "entity_id": entity_id, "score": score},
        )

    def get_recent_operations(self, limit: int = 50) -> list[dict]:
        """Most recent operations, newest first."""
        ops = list(self._operations)[-limit:]
        return [op.to_dict() for op in reversed(ops)]

    def get_stats(self) -> dict:
        return {
            "total": sum(self._counts.values()),
            "retained": len(self._operations),
            "by_type": dict(self._counts),
        }

    def clear(self) -> None:
        self._operations.clear()
        self._counts.clear()


# Process-wide instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get or create the audit logger."""
    global _audit_logger
    if _audit_logger is None:
        from app.core.config import settings

        _audit_logger = AuditLogger(
            max_entries=settings.audit_log_max_entries,
            enabled=settings.audit_log_enabled,
        )
    return _audit_logger
