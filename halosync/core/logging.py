import logging
import os
import sys
from pathlib import Path
from typing import Any

import structlog

# Event keys whose values must never reach a log sink
SECRET_KEYS = frozenset(
    {
        "client_secret",
        "client_id",
        "access_token",
        "authorization",
        "client_secret_encrypted",
        "client_id_encrypted",
    }
)


def redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask credential values anywhere in the top level of an event."""
    for key in event_dict.keys() & SECRET_KEYS:
        event_dict[key] = "***"
    return event_dict


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure structlog and route stdlib logging through the same handlers.

    Args:
        level: Log level name; falls back to LOG_LEVEL (default INFO)
        json_logs: Render JSON lines; falls back to JSON_LOGS (default false)
    """
    if json_logs is None:
        json_logs = os.getenv("JSON_LOGS", "false").lower() == "true"
    renderer = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            redact_secrets,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_dir = Path("logs")
    if log_dir.is_dir():
        handlers.append(logging.FileHandler(log_dir / "halosync.log"))

    logging.basicConfig(
        format="%(message)s",
        handlers=handlers,
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        force=True,
    )
    # httpx logs every request URL at INFO, which includes tenant query strings
    logging.getLogger("httpx").setLevel(logging.WARNING)


def bind_sync_context(**values: Any) -> None:
    """Bind values (user_id, sync_id, phase) to every log line in this context."""
    structlog.contextvars.bind_contextvars(**values)


def clear_sync_context() -> None:
    structlog.contextvars.clear_contextvars()
