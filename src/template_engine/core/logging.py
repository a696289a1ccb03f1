"""Logging configuration for the Prompt Template Engine."""

import logging
import logging.config
import sys
from pathlib import Path
from typing import Optional

import structlog

from .config import settings


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """Setup logging configuration.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format (json, console)
        log_file: Optional log file path
    """
    log_level = log_level or settings.log_level
    log_format = log_format or settings.log_format
    log_file = log_file or settings.log_file

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        # JSON format for production
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # Console format for development
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers = ["console"]
    if log_file:
        handlers.append("file")

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {
                "format": "%(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "plain",
            },
        },
        "loggers": {
            "": {
                "handlers": handlers,
                "level": log_level,
                "propagate": True,
            },
            "sqlalchemy.engine": {
                "handlers": handlers,
                "level": "INFO" if settings.database_echo else "WARNING",
                "propagate": False,
            },
            "aiosqlite": {
                "handlers": handlers,
                "level": "WARNING",
                "propagate": False,
            },
        },
    }

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logging_config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(log_path),
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
            "formatter": "plain",
        }

    logging.config.dictConfig(logging_config)

    logger = structlog.get_logger(__name__)
    logger.info("Logging configured", level=log_level, format=log_format)
    if log_file:
        logger.info("Logging to file", log_file=log_file)


def log_version_transition(
    logger: structlog.stdlib.BoundLogger,
    template_id: str,
    from_version: str,
    to_version: str,
    change_type: str,
    actor: str,
    **kwargs
) -> None:
    """Log a latest-version swap.

    Args:
        logger: Logger instance
        template_id: Template whose latest pointer moved
        from_version: Version superseded by the swap
        to_version: Version that became latest
        change_type: major, minor or patch
        actor: User that performed the change
        **kwargs: Additional context
    """
    logger.info(
        "Template version swapped",
        template_id=template_id,
        from_version=from_version,
        to_version=to_version,
        change_type=change_type,
        actor=actor,
        **kwargs
    )


def log_validation_result(
    logger: structlog.stdlib.BoundLogger,
    template_name: Optional[str],
    is_valid: bool,
    error_count: int,
    warning_count: int,
    overall_score: float,
    **kwargs
) -> None:
    """Log the outcome of a template validation run."""
    logger.debug(
        "Template validated",
        template_name=template_name,
        is_valid=is_valid,
        error_count=error_count,
        warning_count=warning_count,
        overall_score=round(overall_score, 4),
        **kwargs
    )
