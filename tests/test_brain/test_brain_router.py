"""Tests for keyword routing of brain queries and task summaries."""

from taskforge.brain import TaskSummary, route_brain_query, route_teardown


def make_summary(**overrides: object) -> TaskSummary:
    fields: dict[str, object] = {
        "task": "build: health endpoint",
        "command": "build",
        "model": "claude-code",
        "backend": "claude",
        "project": "billing",
        "department": "engineering",
        "outcome": "Endpoint added",
    }
    fields.update(overrides)
    return TaskSummary(**fields)  # type: ignore[arg-type]


class TestRouteBrainQuery:
    """Test route_brain_query."""

    def test_multiple_matches_in_route_order(self) -> None:
        assert route_brain_query("benchmark the model") == ["models", "history-research"]

    def test_case_insensitive(self) -> None:
        assert route_brain_query("Fix the Kubernetes ERROR") == [
            "errors",
            "history-infrastructure",
        ]

    def test_fallback(self) -> None:
        assert route_brain_query("hello world") == ["reference", "project-taskforge"]
        assert route_brain_query("") == ["reference", "project-taskforge"]


class TestRouteTeardown:
    """Test route_teardown."""

    def test_success(self) -> None:
        assert route_teardown(make_summary()) == ["history-engineering", "project-billing"]

    def test_failure_and_escalation(self) -> None:
        notebooks = route_teardown(make_summary(success=False, escalated=True))
        assert notebooks == ["history-engineering", "project-billing", "errors", "models"]

    def test_error_mentioned_in_outcome(self) -> None:
        notebooks = route_teardown(make_summary(outcome="Fixed the exception in the parser"))
        assert notebooks[-1] == "errors"

    def test_defaults_for_missing_fields(self) -> None:
        assert route_teardown(make_summary(project="", department="")) == [
            "history-engineering",
            "project-taskforge",
        ]

    def test_department_history(self) -> None:
        notebooks = route_teardown(make_summary(department="research", task="research: x"))
        assert notebooks[0] == "history-research"
