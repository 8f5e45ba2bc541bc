"""Tests for task classification."""

from pathlib import Path

import orjson
import pytest

from taskforge.config import MtimeCache
from taskforge.orchestrator.classifier import Classifier, classify_task, load_learned_patterns
from taskforge.orchestrator.types import Complexity, RoutingOverride


class TestTierPolicy:
    """Test the Tier 1 / Tier 2 split."""

    def test_commit_is_tier_one(self) -> None:
        c = classify_task("commit", "generate commit")
        assert (c.tier, c.passthrough) == (1, True)
        assert c.department == "operations"
        assert c.task_type == "commit_message"

    def test_ask_is_tier_one(self) -> None:
        c = classify_task("ask", "what is redis")
        assert (c.tier, c.passthrough) == (1, True)

    def test_deep_ask_is_tier_two(self) -> None:
        c = classify_task("ask", "what is redis", deep=True)
        assert (c.tier, c.passthrough) == (2, False)

    def test_build_is_tier_two(self) -> None:
        assert classify_task("build", "add a health endpoint").tier == 2


class TestComplexity:
    """Test complexity heuristics."""

    def test_refactor_pinned_high(self) -> None:
        c = classify_task("refactor", "refactor utils")
        assert c.complexity is Complexity.HIGH
        assert c.sub_agents_needed == 5
        assert c.requires_checkpoint is True

    def test_high_keyword(self) -> None:
        c = classify_task("build", "multi-file oauth flow")
        assert c.complexity is Complexity.HIGH
        assert c.sub_agents_needed == 2
        assert c.requires_checkpoint is True

    def test_medium_from_files(self) -> None:
        c = classify_task("ask", "hello", ["a.py", "b.py"], deep=True)
        assert c.complexity is Complexity.MEDIUM
        assert c.context_needed == ("a.py", "b.py")
        assert c.estimated_context_tokens == 3000

    def test_empty_text_is_low(self) -> None:
        c = classify_task("ask", "")
        assert c.complexity is Complexity.LOW
        assert c.estimated_context_tokens == 400

    def test_review_with_files_is_at_least_medium(self) -> None:
        assert classify_task("review", "look", ["x.py"]).complexity is Complexity.MEDIUM


class TestDepartments:
    """Test department detection."""

    @pytest.mark.parametrize(
        ("command", "task", "department"),
        [
            ("research", "vector databases", "research"),
            ("deploy", "staging", "infrastructure"),
            ("commit", "", "operations"),
            ("build", "docker image for the api", "infrastructure"),
            ("build", "benchmark the parser", "research"),
            ("build", "add a health endpoint", "engineering"),
        ],
    )
    def test_department(self, command: str, task: str, department: str) -> None:
        assert classify_task(command, task).department == department

    def test_unknown_command_falls_through(self) -> None:
        c = classify_task("frobnicate", "the widget")
        assert c.task_type == "frobnicate"
        assert c.department == "engineering"
        assert c.tier == 2


def test_classification_is_deterministic() -> None:
    first = classify_task("build", "add oauth login", ["auth.py"])
    second = classify_task("build", "add oauth login", ["auth.py"])
    assert first == second


class TestLearnedPatterns:
    """Test learned overrides keyed by command:complexity."""

    def test_override_changes_only_tier_fields(self) -> None:
        overrides = {"build:medium": RoutingOverride(tier=1, passthrough=True, reason="learned")}

        c = classify_task("build", "add an api endpoint", learned_patterns=overrides)

        assert (c.tier, c.passthrough, c.route_reason) == (1, True, "learned")
        assert c.complexity is Complexity.MEDIUM
        assert c.department == "engineering"

    def test_partial_override_keeps_defaults(self) -> None:
        overrides = {"ask:low": RoutingOverride(reason="seen often")}

        c = classify_task("ask", "hi", learned_patterns=overrides)

        assert (c.tier, c.passthrough, c.route_reason) == (1, True, "seen often")

    def test_load_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "learned-patterns.json"
        path.write_bytes(
            orjson.dumps(
                {
                    "build:low": {"tier": 1, "passthrough": True, "reason": "cheap"},
                    "review:high": {"tier": 7, "passthrough": "yes"},
                    "junk": 3,
                }
            )
        )

        patterns = load_learned_patterns(path)

        assert patterns["build:low"] == RoutingOverride(1, True, "cheap")
        assert patterns["review:high"] == RoutingOverride(None, None, None)
        assert "junk" not in patterns

    def test_malformed_file_is_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "learned-patterns.json"
        path.write_text("{not json")
        assert load_learned_patterns(path) == {}

    def test_classifier_uses_patterns_file(self, tmp_path: Path) -> None:
        path = tmp_path / "learned-patterns.json"
        path.write_bytes(orjson.dumps({"ask:low": {"tier": 2, "passthrough": False}}))

        classifier = Classifier(path, MtimeCache())

        assert classifier.classify("ask", "hi").tier == 2
        assert Classifier().classify("ask", "hi").tier == 1
