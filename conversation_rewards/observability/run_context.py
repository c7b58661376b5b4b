"""Log context for a single pipeline run."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import uuid4

from conversation_rewards.config.logging_config import bind_context, unbind_context

CORRELATION_ID_KEY = "correlation_id"


@contextmanager
def pipeline_run_scope(
    correlation_id: str | None = None, **context: Any
) -> Iterator[str]:
    """Bind a run correlation id, plus any extra context, for the scope.

    Every log line emitted inside the scope, including from concurrently
    evaluated contributors, carries the bound keys.
    """

    run_id = correlation_id or str(uuid4())
    bound = {CORRELATION_ID_KEY: run_id, **context}
    bind_context(**bound)
    try:
        yield run_id
    finally:
        unbind_context(*bound)


__all__ = ["CORRELATION_ID_KEY", "pipeline_run_scope"]
