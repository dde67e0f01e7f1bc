import json

import pytest

from prompt_audit.core.types import Severity
from prompt_audit.exceptions import MalformedResponseError
from prompt_audit.providers.schemas import (
    extract_json_text,
    instruction_template_hash,
    lookup_issue,
    normalize_frequency,
    normalize_score,
    parse_response,
    repair_truncated_json,
)

pytestmark = pytest.mark.unit

DATE = "2025-01-15"


def _full_payload(**overrides):
    payload = {
        "patterns": [
            {
                "id": "no-context",
                "name": "Missing Context",
                "frequency": 0.25,
                "severity": "HIGH",
                "examples": ["fix it", "fix it", "why broken"],
                "suggestion": "Add file paths",
                "beforeAfter": {"before": "fix it", "after": "fix the null check in a.py"},
            },
            {
                "id": "too-broad",
                "frequency": 0.5,
                "severity": "medium",
                "examples": ["build an app"],
            },
        ],
        "stats": {"totalPrompts": 99, "promptsWithIssues": 3, "overallScore": 72},
        "topSuggestion": "Add file paths",
    }
    payload.update(overrides)
    return payload


# --- Full schema ---


def test_full_response_is_parsed_and_ranked():
    result = parse_response(json.dumps(_full_payload()), prompt_count=4, date=DATE)

    assert [p.id for p in result.patterns] == ["no-context", "too-broad"]
    first = result.patterns[0]
    assert first.severity is Severity.HIGH
    assert first.examples == ("fix it", "why broken")
    assert first.before_after.after == "fix the null check in a.py"
    # Missing fields are filled from the issue taxonomy.
    assert result.patterns[1].name == "Too Broad"
    assert result.patterns[1].suggestion == lookup_issue("too-broad").suggestion
    assert result.top_suggestion == "Add file paths"


def test_total_prompts_comes_from_the_batch_not_the_reply():
    result = parse_response(json.dumps(_full_payload()), prompt_count=4, date=DATE)

    assert result.stats.total_prompts == 4
    assert result.stats.prompts_with_issues == 3
    assert result.stats.overall_score == pytest.approx(7.2)
    assert result.date == DATE


def test_frequency_given_as_count_is_normalized():
    payload = _full_payload(
        patterns=[{"id": "vague", "frequency": 3, "severity": "high"}],
    )

    result = parse_response(json.dumps(payload), prompt_count=4, date=DATE)

    assert result.patterns[0].frequency == pytest.approx(0.75)


def test_more_than_five_patterns_are_truncated():
    payload = _full_payload(
        patterns=[{"id": f"issue-{i}", "frequency": i / 10} for i in range(8)],
    )

    result = parse_response(json.dumps(payload), prompt_count=10, date=DATE)

    assert len(result.patterns) == 5
    assert result.patterns[0].id == "issue-7"


# --- Minimal schema ---


def test_minimal_response_counts_issue_ids():
    reply = json.dumps({"issues": ["vague", "no-context", "vague", "imperative"], "score": 40})

    result = parse_response(reply, prompt_count=4, date=DATE)

    by_id = {p.id: p for p in result.patterns}
    assert by_id["vague"].frequency == pytest.approx(0.5)
    assert by_id["no-context"].frequency == pytest.approx(0.25)
    assert by_id["vague"].suggestion == lookup_issue("vague").suggestion
    assert [p.severity for p in result.patterns] == [
        Severity.HIGH,
        Severity.HIGH,
        Severity.LOW,
    ]
    assert result.stats.overall_score == pytest.approx(4.0)
    assert result.stats.prompts_with_issues == 2


def test_minimal_response_with_no_issues():
    result = parse_response('{"issues": [], "score": 95}', prompt_count=3, date=DATE)

    assert result.patterns == ()
    assert result.top_suggestion == "No issues found"
    assert result.stats.overall_score == pytest.approx(9.5)
    assert result.stats.prompts_with_issues == 0


def test_unknown_issue_ids_get_generic_metadata():
    result = parse_response(
        '{"issues": ["wall_of-text"], "score": 50}', prompt_count=2, date=DATE
    )

    pattern = result.patterns[0]
    assert pattern.name == "Wall Of Text"
    assert pattern.severity is Severity.MEDIUM
    assert pattern.suggestion == "Review this pattern"


# --- Simple schema ---


def test_simple_response_groups_by_name():
    reply = json.dumps(
        {
            "issues": [
                {"name": "Vague", "example": "help", "fix": "help with X"},
                {"name": "vague", "example": "do it"},
                {"name": "Scope Creep", "example": "and also", "fix": "split it"},
            ],
            "score": 60,
            "tip": "Be specific",
        }
    )

    result = parse_response(reply, prompt_count=4, date=DATE)

    by_id = {p.id: p for p in result.patterns}
    assert by_id["vague"].frequency == pytest.approx(0.5)
    assert by_id["vague"].examples == ("help", "do it")
    assert by_id["vague"].severity is Severity.HIGH
    assert by_id["scope-creep"].severity is Severity.MEDIUM
    assert by_id["scope-creep"].suggestion == "Be specific"
    assert result.top_suggestion == "Be specific"


# --- Extraction and repair ---


def test_markdown_fences_and_prose_are_stripped():
    reply = 'Here you go:\n```json\n{"issues": ["vague"], "score": 70}\n```\nThanks!'

    result = parse_response(reply, prompt_count=1, date=DATE)

    assert result.patterns[0].id == "vague"


def test_prose_before_object_is_skipped():
    assert extract_json_text('Sure! {"a": 1}') == '{"a": 1}'


@pytest.mark.parametrize(
    ("truncated", "expected"),
    [
        ('{"issues": ["vague", "no-con', {"issues": ["vague", "no-con"]}),
        ('{"issues": ["vague"],', {"issues": ["vague"]}),
        ('{"a": {"b": [1, 2', {"a": {"b": [1, 2]}}),
        ('{"a":', {"a": None}),
        ('{"a": "x\\', {"a": "x"}),
    ],
)
def test_repair_truncated_json(truncated, expected):
    assert json.loads(repair_truncated_json(truncated)) == expected


def test_truncated_reply_is_recovered():
    result = parse_response('{"issues": ["vague", "vague"], "score": 55', prompt_count=2, date=DATE)

    assert result.patterns[0].frequency == pytest.approx(1.0)


@pytest.mark.parametrize(
    "reply",
    [
        "",
        "I could not analyze these prompts.",
        "[1, 2, 3]",
        '{"unexpected": true}',
        '{"issues": ["vague"], "score": 250}',
    ],
)
def test_malformed_replies_raise(reply):
    with pytest.raises(MalformedResponseError) as exc_info:
        parse_response(reply, prompt_count=1, date=DATE, provider="ollama")

    assert exc_info.value.provider == "ollama"


# --- Normalization helpers ---


@pytest.mark.parametrize(("raw", "expected"), [(0, 0.0), (72, 7.2), (100, 10.0), (33.333, 3.33)])
def test_normalize_score(raw, expected):
    assert normalize_score(raw) == pytest.approx(expected)


def test_normalize_frequency_clamps():
    assert normalize_frequency(0.4, 10) == pytest.approx(0.4)
    assert normalize_frequency(20, 10) == pytest.approx(1.0)
    assert normalize_frequency(-1, 10) == pytest.approx(0.0)


def test_template_hash_is_stable():
    assert instruction_template_hash() == instruction_template_hash()
    assert len(instruction_template_hash()) == 64
