import logging

import pytest

from prompt_audit.core.types import RuleOverride, Severity
from prompt_audit.pipeline.rules import apply_rules, coerce_rules, warn_unknown_rules
from tests.helpers import make_pattern, make_result

pytestmark = pytest.mark.unit


@pytest.fixture
def result():
    return make_result(
        [
            make_pattern("vague", severity=Severity.HIGH, frequency=0.5, suggestion="Be specific"),
            make_pattern("imperative", severity=Severity.LOW, frequency=0.8, suggestion="Explain why"),
        ],
        total=10,
        with_issues=8,
    )


def test_no_rules_returns_result_unchanged(result):
    assert apply_rules(result, {}) is result
    assert apply_rules(result, None) is result


def test_disabled_rule_removes_pattern_and_recomputes_top_suggestion(result):
    updated = apply_rules(result, {"vague": RuleOverride(enabled=False)})

    assert [p.id for p in updated.patterns] == ["imperative"]
    assert updated.top_suggestion == "Explain why"
    assert updated.stats == result.stats


def test_severity_override_reranks(result):
    updated = apply_rules(result, {"imperative": RuleOverride(severity=Severity.HIGH)})

    assert [p.id for p in updated.patterns] == ["imperative", "vague"]
    assert updated.patterns[0].severity is Severity.HIGH


def test_rules_for_absent_patterns_change_nothing(result):
    assert apply_rules(result, {"no-goal": RuleOverride(enabled=False)}) is result


def test_disabling_everything_leaves_sentinel_suggestion(result):
    updated = apply_rules(
        result,
        {"vague": RuleOverride(enabled=False), "imperative": RuleOverride(enabled=False)},
    )

    assert updated.patterns == ()
    assert updated.top_suggestion == "No issues found"


def test_coerce_rules_accepts_plain_mappings():
    rules = coerce_rules(
        {"vague": {"enabled": False}, "too-broad": {"severity": "high"}, "x": RuleOverride()}
    )

    assert rules["vague"] == RuleOverride(enabled=False)
    assert rules["too-broad"] == RuleOverride(enabled=True, severity=Severity.HIGH)
    assert rules["x"] == RuleOverride()


def test_coerce_rules_rejects_non_mappings():
    with pytest.raises(TypeError, match="vague"):
        coerce_rules({"vague": False})


def test_unknown_rule_ids_are_warned_about(caplog):
    with caplog.at_level(logging.WARNING, logger="prompt_audit.pipeline.rules"):
        warn_unknown_rules({"vauge": RuleOverride(enabled=False), "vague": RuleOverride()})

    assert "vauge" in caplog.text
    assert "'vague'" not in caplog.text
