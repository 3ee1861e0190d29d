"""Structured logging configuration."""
import logging
import sys

from bilidl.core.config import settings


def setup_logging(level: str | None = None) -> None:
    """Configure structured logging for the application.

    Args:
        level: Optional level name overriding ``settings.LOG_LEVEL``
    """
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper())

    # Create formatter
    if settings.is_production:
        # JSON logs for production (easier for log aggregators)
        log_format = '{"time":"%(asctime)s","level":"%(levelname)s","name":"%(name)s","message":"%(message)s"}'
    else:
        # Human-readable logs for development
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Logs go to stderr so the CLI can keep stdout for its own output
    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )

    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("fastapi").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given name.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
