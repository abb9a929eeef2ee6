"""
Structured logging setup for the Blox content pipeline.
Provides JSON-formatted logs with consistent fields for the API and workers.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_job_context,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _add_job_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Tag entries emitted while a job is bound with the service name."""
    if "job_id" in event_dict:
        event_dict.setdefault("service", "worker")
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def bind_job_context(topic: str, job_id: str, attempt: int) -> None:
    """Bind job identifiers to every log line emitted by the current task."""
    structlog.contextvars.bind_contextvars(topic=topic, job_id=job_id, attempt=attempt)


def clear_job_context() -> None:
    structlog.contextvars.clear_contextvars()


def log_job_outcome(
    topic: str, job_id: str, succeeded: bool, duration_ms: float, error: str = None
):
    """Log job results with consistent fields."""
    logger = get_logger("jobs")

    log_data = {
        "topic": topic,
        "job_id": job_id,
        "succeeded": succeeded,
        "duration_ms": duration_ms,
        "event_type": "job_outcome",
    }

    if error:
        log_data["error"] = error

    if succeeded:
        logger.info("Job completed", **log_data)
    else:
        logger.error("Job failed", **log_data)


def log_request(method: str, path: str, status_code: int, duration_ms: float, user_id: str = None):
    """Log HTTP requests with consistent fields."""
    logger = get_logger("http")

    log_data = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
        "event_type": "http_request",
    }

    if user_id:
        log_data["user_id"] = user_id

    if status_code >= 400:
        logger.warning("HTTP request failed", **log_data)
    else:
        logger.info("HTTP request completed", **log_data)
