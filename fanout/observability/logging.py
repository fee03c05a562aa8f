"""structlog setup for fanout.

Every entry is tagged with the id of the fan-out round it belongs to
(`correlation_id`, "none" outside a round), and query strings are clipped
so a pasted document cannot flood the log.

Usage:
    from fanout.observability.logging import configure_logging, get_logger

    configure_logging(level="INFO", json_output=False)
    logger = get_logger("orchestrator")
    logger.info("search_started", query="graph neural networks")
"""

import logging
import sys
from typing import Any, List, Optional

import structlog
from structlog.typing import EventDict, WrappedLogger

from fanout.observability.context import get_correlation_id

MAX_QUERY_CHARS = 100


def add_correlation_id_processor(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict["correlation_id"] = get_correlation_id() or "none"
    return event_dict


def clip_query_processor(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    query = event_dict.get("query")
    if isinstance(query, str) and len(query) > MAX_QUERY_CHARS:
        event_dict["query"] = query[:MAX_QUERY_CHARS] + "..."
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    add_timestamp: bool = True,
) -> None:
    """Configure structlog for the process.

    Output goes to stderr so CLI results on stdout stay pipeable.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR)
        json_output: JSON lines if True, human readable console otherwise
        add_timestamp: Prefix entries with an ISO timestamp
    """
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        add_correlation_id_processor,
        clip_query_processor,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors.append(
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        # Module-level loggers are created at import, before the CLI configures
        cache_logger_on_first_use=False,
    )


def get_logger(component: Optional[str] = None, **initial_context: Any) -> Any:
    """Logger bound to a component name plus any extra context."""
    logger = structlog.get_logger()
    if component:
        initial_context["component"] = component
    return logger.bind(**initial_context) if initial_context else logger


def bind_context(**context: Any) -> None:
    """Attach keys to every later entry in the current context.

    Example:
        bind_context(request_id=request.id)
    """
    structlog.contextvars.bind_contextvars(**context)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
