"""Run-scoped context binding for structured logging.

Each recovery sweep and escalation report binds a correlation id so that
every log entry emitted while it runs (including from worker threads that
copy the context) can be tied back to the run.

Usage:
    from infrastructure.logging import bind_request_context

    with bind_request_context(job="post_commit_recovery"):
        logger.info("sweep_started")
"""

import uuid
from contextlib import contextmanager
from typing import Optional, Any, Generator
import structlog


@contextmanager
def bind_request_context(
    correlation_id: Optional[str] = None,
    **extra_context: Any,
) -> Generator[str, None, None]:
    """Bind run-scoped context to all logs within the context manager.

    Args:
        correlation_id: Unique run identifier. Auto-generated if not provided.
        **extra_context: Additional key-value pairs to include in logs.

    Yields:
        The correlation id bound for the block.
    """
    context: dict[str, Any] = {"correlation_id": correlation_id or str(uuid.uuid4())}
    context.update(extra_context)

    structlog.contextvars.bind_contextvars(**context)
    try:
        yield context["correlation_id"]
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from the logging context."""
    ctx = structlog.contextvars.get_contextvars()
    return ctx.get("correlation_id")
