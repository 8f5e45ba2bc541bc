"""Trace ids for correlating the log events of one task.

``Orchestrator.run`` opens one trace per invocation and binds its id to every
log line of that task. Pipeline steps and sub-agents each take a child span,
so ``grep trace_id`` in the log file reconstructs the whole task and
``span_id`` separates its steps.
"""

import uuid
from dataclasses import dataclass


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class TraceContext:
    """Immutable trace position.

    Attributes:
        trace_id: Shared by every event of one task.
        parent_span_id: Span this context was derived for; None at the root.
    """

    trace_id: str
    parent_span_id: str | None = None

    @classmethod
    def new_trace(cls) -> "TraceContext":
        """Root context for a new task."""
        return cls(trace_id=_new_id())

    def new_span(self) -> tuple["TraceContext", str]:
        """Open a child span in the same trace.

        Returns:
            ``(child_context, span_id)`` where ``child_context.parent_span_id``
            is the new span, so work nested under it can open its own spans.
        """
        span_id = _new_id()
        return TraceContext(trace_id=self.trace_id, parent_span_id=span_id), span_id
