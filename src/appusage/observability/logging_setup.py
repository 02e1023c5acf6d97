"""structlog configuration on top of stdlib logging handlers."""

import logging
from pathlib import Path
from typing import Any, Optional

import structlog

LOG_FORMAT = "%(message)s"


def configure_logging(level: str = "INFO", file_path: Optional[str] = None) -> None:
    """Route structlog events through stdlib logging as JSON lines.

    Args:
        level: Root log level name
        file_path: Also write to this file when non-empty
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if file_path:
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(file_path, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(default=str),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def set_log_level(level: str) -> None:
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


def on_config_updated(key: str, value: Any) -> None:
    """Config subscriber: apply logging.level changes without a restart."""
    if key == "logging.level":
        set_log_level(value)
