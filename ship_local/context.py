"""Tracing spans for lifecycle entry points and steps.

Spans nest, so a debug log line reads like `init > render > helm` along with
the time spent inside the span.
"""

import contextvars
from contextlib import contextmanager
import logging
from time import perf_counter
from typing import Generator


_LOGGER = logging.getLogger(__name__)

# No public API
__all__: list[str] = []


_spans: contextvars.ContextVar[tuple[str, ...]] = contextvars.ContextVar(
    "spans", default=()
)


@contextmanager
def trace_context(name: str) -> Generator[None, None, None]:
    """Run the body inside a named span."""
    parents = _spans.get()
    token = _spans.set(parents + (name,))
    label = " > ".join(parents + (name,))
    started = perf_counter()
    _LOGGER.debug("[Trace] > %s", label)
    try:
        yield
    finally:
        _spans.reset(token)
        _LOGGER.debug("[Trace] < %s (%0.2fs)", label, perf_counter() - started)
