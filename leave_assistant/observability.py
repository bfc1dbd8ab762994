"""
Latency tracing for the chat loop.

Every remote completion call and every local function execution is wrapped
in a span so a slow or failing turn can be reconstructed from the logs alone.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

logger = logging.getLogger("leave_assistant.trace")


@contextmanager
def trace_span(name: str, **metadata):
    """
    Log the duration of the wrapped block.

    Example log:
    [TRACE] llm_completion duration_ms=812.40 model=gpt-4o-mini messages=4

    The record is written even when the block raises; the exception is
    re-raised untouched and the span is tagged with ``failed=<ExceptionName>``.
    """
    start = time.perf_counter()
    failure = None
    try:
        yield
    except Exception as e:
        failure = type(e).__name__
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        if failure:
            metadata["failed"] = failure

        meta = " ".join(f"{k}={v}" for k, v in metadata.items())
        logger.info("[TRACE] %s duration_ms=%.2f %s", name, duration_ms, meta)
