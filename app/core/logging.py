"""Logging configuration for the guest selfie matching service."""
import logging
import sys
from typing import List, Optional

import structlog
from structlog.stdlib import ProcessorFormatter

from app.core.config import Settings, settings as default_settings


def setup_logging(config: Optional[Settings] = None) -> None:
    """Configure structured logging for the application.

    - Uses ConsoleRenderer with colors for development.
    - Uses JSONRenderer for other environments (staging, production).
    - Routes everything through the standard library root handler.

    Args:
        config: Settings to read environment and level from (defaults to module settings)
    """
    config = config or default_settings

    shared_processors: List[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    if config.ENVIRONMENT == "development":
        final_processor = structlog.dev.ConsoleRenderer(colors=True)
    else:
        final_processor = structlog.processors.JSONRenderer()
        shared_processors.insert(-1, structlog.processors.format_exc_info)

    structlog.configure(
        processors=shared_processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = ProcessorFormatter(processor=final_processor)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    root_logger.addHandler(handler)
    log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    logging.getLogger("uvicorn.error").propagate = False
    logging.getLogger("uvicorn.access").disabled = True
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    root_logger.info(
        f"Logging setup complete. Environment: {config.ENVIRONMENT}, Level: {config.LOG_LEVEL}"
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance compatible with standard logging.

    Args:
        name: Name for the logger, typically __name__

    Returns:
        structlog.stdlib.BoundLogger: Configured logger instance
    """
    return structlog.get_logger(name)


def mask_mobile(mobile: Optional[str]) -> Optional[str]:
    """Keep only the last four digits of a mobile number for log output."""
    if not mobile:
        return None
    return f"***{mobile[-4:]}"


def short_token(token: Optional[str]) -> Optional[str]:
    """Truncate a session token for log output."""
    if not token:
        return None
    return f"{token[:8]}..."
