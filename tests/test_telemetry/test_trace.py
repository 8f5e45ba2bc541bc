"""Tests for TraceContext."""

import uuid
from dataclasses import FrozenInstanceError

import pytest

from taskforge.telemetry import TraceContext


class TestTraceContext:
    """Test trace and span creation for task correlation."""

    def test_new_trace_is_root(self) -> None:
        first = TraceContext.new_trace()
        second = TraceContext.new_trace()

        assert first.trace_id != second.trace_id
        assert first.parent_span_id is None
        uuid.UUID(first.trace_id)

    def test_pipeline_steps_share_trace(self) -> None:
        """Each step span keeps the task's trace_id and gets its own span id."""
        task = TraceContext.new_trace()
        spans = [task.new_span() for _ in range(3)]

        assert {ctx.trace_id for ctx, _ in spans} == {task.trace_id}
        assert len({span_id for _, span_id in spans}) == 3
        for ctx, span_id in spans:
            assert ctx.parent_span_id == span_id
            uuid.UUID(span_id)

    def test_nested_spans(self) -> None:
        step, step_span = TraceContext.new_trace().new_span()
        sub_agent, sub_span = step.new_span()

        assert sub_agent.trace_id == step.trace_id
        assert sub_agent.parent_span_id == sub_span != step_span

    def test_frozen(self) -> None:
        ctx = TraceContext(trace_id="task-1")

        with pytest.raises(FrozenInstanceError):
            ctx.trace_id = "task-2"  # type: ignore[misc]

    def test_equality(self) -> None:
        assert TraceContext("task-1", "span-1") == TraceContext("task-1", "span-1")
        assert TraceContext("task-1") != TraceContext("task-2")
