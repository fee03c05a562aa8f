"""Correlation ID context for tracing one fan-out round.

The orchestrator scopes every search to its request id, and ContextVar
values are copied into tasks created inside that scope, so each provider
task logs under the id of the round that spawned it.

Usage:
    from fanout.observability.context import correlation_id_context

    with correlation_id_context(request.id):
        result = await orchestrator.search(request)
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_round_id: ContextVar[Optional[str]] = ContextVar("fanout_round_id", default=None)


def _new_id() -> str:
    # Same format as SearchRequest.id
    return uuid.uuid4().hex


def set_correlation_id(round_id: Optional[str] = None) -> str:
    """Tag the current context with a round id, generating one if needed."""
    round_id = round_id or _new_id()
    _round_id.set(round_id)
    return round_id


def get_correlation_id() -> Optional[str]:
    return _round_id.get()


def clear_correlation_id() -> None:
    _round_id.set(None)


@contextmanager
def correlation_id_context(round_id: Optional[str] = None) -> Iterator[str]:
    """Scope a round id; whatever was set before is restored on exit."""
    token = _round_id.set(round_id or _new_id())
    try:
        yield _round_id.get()
    finally:
        _round_id.reset(token)
