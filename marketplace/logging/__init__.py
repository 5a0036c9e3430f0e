"""Structured logging for the marketplace service.

Provides structured logging for:
- Offer lifecycle events (submitted, responded, withdrawn)
- Negotiation messages
- AI provider calls (duration, fallback usage)
- Authentication failures and unexpected errors

Supports:
- Console logging (development)
- Rotating file logging (app.log / error.log)
"""

import logging
import os
import sys
from contextvars import ContextVar
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import structlog

# Request context for correlating logs
_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_user_id: ContextVar[Optional[str]] = ContextVar("user_id", default=None)


class EventCategory(str, Enum):
    """Categories of logged events."""
    OFFER = "offer"
    NEGOTIATION = "negotiation"
    AUTH = "auth"
    AI = "ai"
    SYSTEM = "system"
    ERROR = "error"


class LogConfig:
    """Logging configuration from environment variables."""

    # Environment: development, staging, production
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Log level: DEBUG, INFO, WARNING, ERROR
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Log format: json or text
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json" if ENVIRONMENT == "production" else "text")

    # File logging
    LOG_TO_FILE: bool = os.getenv("LOG_TO_FILE", "false").lower() == "true"
    LOG_DIR: Path = Path(os.getenv("LOG_DIR", "logs"))
    LOG_FILE_MAX_BYTES: int = int(os.getenv("LOG_FILE_MAX_BYTES", 10 * 1024 * 1024))  # 10MB
    LOG_FILE_BACKUP_COUNT: int = int(os.getenv("LOG_FILE_BACKUP_COUNT", 5))


def _rotating_handler(filename: str, level: int) -> logging.Handler:
    LogConfig.LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        LogConfig.LOG_DIR / filename,
        maxBytes=LogConfig.LOG_FILE_MAX_BYTES,
        backupCount=LogConfig.LOG_FILE_BACKUP_COUNT,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(level)
    return handler


def setup_file_logging() -> Optional[logging.Handler]:
    """Set up file-based logging with rotation."""
    if not LogConfig.LOG_TO_FILE:
        return None
    return _rotating_handler("app.log", getattr(logging, LogConfig.LOG_LEVEL))


def setup_error_file_logging() -> Optional[logging.Handler]:
    """Set up separate error log file."""
    if not LogConfig.LOG_TO_FILE:
        return None
    return _rotating_handler("error.log", logging.ERROR)


def configure_production_logging():
    """Configure structured logging for all environments."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, LogConfig.LOG_LEVEL))

    # Clear existing handlers
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, LogConfig.LOG_LEVEL))
    root_logger.addHandler(console_handler)

    for handler in (setup_file_logging(), setup_error_file_logging()):
        if handler:
            root_logger.addHandler(handler)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_request_context,
        add_environment_context,
    ]

    if LogConfig.LOG_FORMAT == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger(__name__)
    logger.info(
        "logging_configured",
        environment=LogConfig.ENVIRONMENT,
        log_level=LogConfig.LOG_LEVEL,
        log_format=LogConfig.LOG_FORMAT,
        file_logging=LogConfig.LOG_TO_FILE,
        log_dir=str(LogConfig.LOG_DIR) if LogConfig.LOG_TO_FILE else None,
    )


def add_request_context(logger, method_name, event_dict):
    """Add request context to log events."""
    request_id = _request_id.get()
    user_id = _user_id.get()

    if request_id:
        event_dict["request_id"] = request_id
    if user_id:
        event_dict["user_id"] = user_id

    return event_dict


def add_environment_context(logger, method_name, event_dict):
    """Add environment info to log events."""
    event_dict["env"] = LogConfig.ENVIRONMENT
    return event_dict


def set_request_context(
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
):
    """Set request context for correlation."""
    if request_id:
        _request_id.set(request_id)
    if user_id:
        _user_id.set(user_id)


def clear_request_context():
    """Clear request context."""
    _request_id.set(None)
    _user_id.set(None)


logger = structlog.get_logger(__name__)


# High-level logging functions

def log_api_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    user_agent: Optional[str] = None,
    error: Optional[str] = None,
):
    """Log API request.

    Args:
        method: HTTP method
        path: Request path
        status_code: Response status code
        duration_ms: Request duration
        user_agent: Client user agent
        error: Error message if failed
    """
    level = "info" if status_code < 400 else "warning" if status_code < 500 else "error"
    getattr(logger, level)(
        "api_request",
        category=EventCategory.SYSTEM.value,
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
        user_agent=user_agent[:100] if user_agent else None,
        error=error,
    )


def log_offer_event(
    event: str,
    offer_id: str,
    product_request_id: str,
    actor_id: str,
    status: str,
    **data,
):
    """Log an offer lifecycle event.

    Args:
        event: "submitted", "responded" or "withdrawn"
        offer_id: Offer id
        product_request_id: Parent request id
        actor_id: User who triggered the event
        status: Offer status after the event
    """
    logger.info(
        "offer_event",
        category=EventCategory.OFFER.value,
        action=event,
        offer_id=offer_id,
        product_request_id=product_request_id,
        actor_id=actor_id,
        status=status,
        **data,
    )


def log_negotiation_message(
    offer_id: str,
    sender_id: str,
    relation: str,
    proposed_price: Optional[float] = None,
    proposed_delivery: Optional[int] = None,
    is_ai_generated: bool = False,
):
    """Log a negotiation message. Message text is not logged."""
    logger.info(
        "negotiation_message",
        category=EventCategory.NEGOTIATION.value,
        offer_id=offer_id,
        sender_id=sender_id,
        relation=relation,
        proposed_price=proposed_price,
        proposed_delivery=proposed_delivery,
        is_ai_generated=is_ai_generated,
    )


def log_ai_call(
    task: str,
    duration_ms: float,
    fallback: bool = False,
    cached: bool = False,
    error: Optional[str] = None,
):
    """Log an AI provider call.

    Args:
        task: Assistant operation name
        duration_ms: Total duration including retries
        fallback: Whether the deterministic fallback produced the result
        cached: Whether the result came from cache
        error: Provider error, if any
    """
    level = "warning" if fallback or error else "info"
    getattr(logger, level)(
        "ai_call",
        category=EventCategory.AI.value,
        task=task,
        duration_ms=duration_ms,
        fallback=fallback,
        cached=cached,
        error=error,
    )


def log_auth_failure(reason: str, email: Optional[str] = None, path: Optional[str] = None):
    """Log a failed authentication or authorization attempt."""
    logger.warning(
        "auth_failure",
        category=EventCategory.AUTH.value,
        reason=reason,
        email=email,
        path=path,
    )


def log_error(
    error_type: str,
    message: str,
    stack_trace: Optional[str] = None,
    context: Optional[dict] = None,
):
    """Log an error.

    Args:
        error_type: Type/class of error
        message: Error message
        stack_trace: Full stack trace
        context: Additional context
    """
    logger.error(
        "error",
        category=EventCategory.ERROR.value,
        error_type=error_type,
        message=message,
        stack_trace=stack_trace,
        context=context or {},
    )
