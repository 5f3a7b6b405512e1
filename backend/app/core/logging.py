"""
Logging configuration for the application.
Supports console and file logging with structured JSON output.
"""
import json
import logging
import sys
import uuid
from datetime import datetime
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# Extra record attributes copied into structured output
CONTEXT_KEYS = [
    "request_id",
    "user_id",
    "intent",
    "entity_kind",
    "entity_id",
    "path",
    "method",
    "status_code",
    "duration_ms",
    "code",
    "details",
]


# ============================================================================
# Formatters
# ============================================================================


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in CONTEXT_KEYS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        color = self.COLORS.get(levelname, self.RESET)
        record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            formatted = super().format(record)
        finally:
            record.levelname = levelname

        extras = []
        if hasattr(record, "request_id"):
            extras.append(f"req={str(record.request_id)[:8]}")
        if hasattr(record, "user_id"):
            extras.append(f"user={record.user_id}")
        if hasattr(record, "intent"):
            extras.append(f"intent={record.intent}")
        if hasattr(record, "code"):
            extras.append(f"code={record.code}")

        if extras:
            formatted += f" [{', '.join(extras)}]"

        return formatted


# ============================================================================
# Logging Setup
# ============================================================================


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    json_logs: bool = False,
    app_name: str = "gtd",
) -> logging.Logger:
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files. If None, only console logging is used.
        json_logs: Whether to use JSON format for console logs.
        app_name: Application name used for log file names.

    Returns:
        Root logger instance.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    if json_logs:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(
            ColoredConsoleFormatter(
                fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    root_logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        # Main application log (rotated by size)
        file_handler = RotatingFileHandler(
            log_path / f"{app_name}.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

        # Error log (rotated daily)
        error_handler = TimedRotatingFileHandler(
            log_path / f"{app_name}_error.log",
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(error_handler)

        # Audit log for completion prompts/replies
        audit_logger = logging.getLogger("audit")
        audit_logger.setLevel(logging.INFO)
        audit_logger.propagate = False
        audit_handler = TimedRotatingFileHandler(
            log_path / f"{app_name}_audit.log",
            when="midnight",
            interval=1,
            backupCount=14,
            encoding="utf-8",
        )
        audit_handler.setFormatter(JSONFormatter())
        audit_logger.addHandler(audit_handler)

    for name in ("app", "app.services", "app.api", "app.agents"):
        logging.getLogger(name).setLevel(level)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root_logger


# ============================================================================
# Request Logging Middleware
# ============================================================================


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Adds a request ID to every request and logs method, path and timing."""

    def __init__(self, app, exclude_paths: Optional[list] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or ["/health", "/docs", "/redoc", "/openapi.json"]
        self.logger = logging.getLogger(__name__)

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        if any(request.url.path.startswith(p) for p in self.exclude_paths):
            return await call_next(request)

        start_time = datetime.utcnow()
        response = await call_next(request)
        duration = (datetime.utcnow() - start_time).total_seconds() * 1000

        response.headers["X-Request-ID"] = request_id

        self.logger.info(
            f"{request.method} {request.url.path} - {response.status_code}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration, 2),
            },
        )

        # Completion calls dominate latency; flag anything unusually slow
        if duration > 5000:
            self.logger.warning(
                f"Slow request: {request.method} {request.url.path} took {duration:.2f}ms",
                extra={"request_id": request_id, "duration_ms": round(duration, 2)},
            )

        return response


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    intent: Optional[str] = None,
    **kwargs,
) -> None:
    """Log a message with additional context."""
    extra = {k: v for k, v in kwargs.items() if v is not None}
    if request_id:
        extra["request_id"] = request_id
    if user_id:
        extra["user_id"] = user_id
    if intent:
        extra["intent"] = intent

    logger.log(level, message, extra=extra)
