"\"\"\"Logging utilities for the assessment engine.\"\"\""

from __future__ import annotations

import logging

import structlog


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog with JSON output."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(level=log_level, format="%(message)s")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )


def bind_session(candidate_id: int, offer_id: int) -> None:
    """Attach the (candidate, offer) pair to every log line of the current context."""
    structlog.contextvars.bind_contextvars(candidate_id=candidate_id, offer_id=offer_id)


def unbind_session() -> None:
    structlog.contextvars.unbind_contextvars("candidate_id", "offer_id")
