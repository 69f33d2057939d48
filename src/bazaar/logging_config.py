"""
structlog setup for the marketplace.

Every negotiation operation runs with the acting buyer or vendor bound into
the log context, so rejected transitions and store errors can be traced back
to the party that attempted them.
"""

import logging
from contextvars import ContextVar

import structlog

# Identity of the party driving the current operation
actor_ctx: ContextVar[str | None] = ContextVar("actor_id", default=None)


def configure_logging(json: bool = True, level: str = "info") -> None:
    """
    Route marketplace events through structlog.

    Args:
        json: One JSON object per line; False gives plain console output
            for local runs such as ``bazaar-seed``.
        level: Lowest level emitted ("debug" shows committed changesets).
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[level.upper()]
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str | None = None) -> structlog.BoundLogger:
    """Logger whose events carry ``component``, e.g. "seed"."""
    logger = structlog.get_logger()
    return logger.bind(component=component) if component else logger


def bind_actor(actor_id: str, role: str) -> None:
    """Tag every event of the current operation with the acting party."""
    actor_ctx.set(actor_id)
    structlog.contextvars.bind_contextvars(actor_id=actor_id, actor_role=role)


def get_current_actor() -> str | None:
    return actor_ctx.get()


def clear_request_context() -> None:
    """Drop the acting party once its operation has returned."""
    actor_ctx.set(None)
    structlog.contextvars.clear_contextvars()
