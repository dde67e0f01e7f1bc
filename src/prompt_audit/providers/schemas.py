"""Instruction templates, issue taxonomy and response parsing.

Providers send one of two instruction templates: a compact one for small
local models that only asks for issue ids and a score, and a full one that
asks for complete patterns. Responses are parsed into ``AnalysisResult``
through three progressively richer pydantic schemas:

* minimal: ``{"issues": ["vague", ...], "score": 0-100}``
* simple: ``{"issues": [{"name", "example", "fix"}], "score", "tip"}``
* full: ``{"patterns": [...], "stats": {...}, "topSuggestion": ...}``

Scores arrive on a 0-100 scale and are stored on a 0-10 scale.
"""

from collections import Counter
from collections.abc import Mapping
import dataclasses
import hashlib
import json
import logging
import re
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from prompt_audit import constants
from prompt_audit.core.types import (
    AnalysisPattern,
    AnalysisResult,
    AnalysisStats,
    BeforeAfter,
    Severity,
)
from prompt_audit.exceptions import MalformedResponseError

log = logging.getLogger(__name__)

# Bump when the response contract changes in a way the templates don't show.
SCHEMA_VERSION = "2"


# --- Issue taxonomy ---


@dataclasses.dataclass(frozen=True, slots=True)
class IssueMetadata:
    name: str
    severity: Severity
    suggestion: str
    example_before: str = ""
    example_after: str = ""


ISSUE_TAXONOMY: Mapping[str, IssueMetadata] = MappingProxyType(
    {
        "vague": IssueMetadata(
            name="Vague Request",
            severity=Severity.HIGH,
            suggestion=(
                "Say exactly what you need: name the function, file, error "
                "message or behavior involved"
            ),
            example_before="Help me with my code",
            example_after=(
                "Help me find why calculateTotal() in utils.ts returns "
                "undefined for an empty array"
            ),
        ),
        "no-context": IssueMetadata(
            name="Missing Context",
            severity=Severity.HIGH,
            suggestion=(
                "Give the background the assistant cannot see: file paths, "
                "error output or the relevant snippet"
            ),
            example_before="Fix the bug",
            example_after=(
                "Fix the bug in src/auth/login.ts that logs users out after "
                "5 minutes because the token expiry check uses seconds"
            ),
        ),
        "too-broad": IssueMetadata(
            name="Too Broad",
            severity=Severity.MEDIUM,
            suggestion="Split the request into focused steps, one task per prompt",
            example_before="Build me an app with auth, a database and an API",
            example_after=(
                "Create a React login form that posts email and password to "
                "/api/login and stores the returned JWT"
            ),
        ),
        "no-goal": IssueMetadata(
            name="No Clear Goal",
            severity=Severity.HIGH,
            suggestion="State the outcome you want and how you will judge success",
            example_before="Look at this file",
            example_after=(
                "Review src/auth/login.ts for injection risks in the input "
                "validation"
            ),
        ),
        "imperative": IssueMetadata(
            name="Command Without Context",
            severity=Severity.LOW,
            suggestion="Explain the use case so the assistant can choose well",
            example_before="Add a button",
            example_after=(
                "Add a Submit button to the login form that runs validation "
                "and then calls the auth API"
            ),
        ),
        "missing-technical-details": IssueMetadata(
            name="Missing Technical Details",
            severity=Severity.MEDIUM,
            suggestion=(
                "Include technical specifics: signatures, stack traces, "
                "versions or configuration"
            ),
            example_before="The function crashes sometimes",
            example_after=(
                "validateUser() in src/utils/auth.ts raises TypeError "
                "'email of null' when called with undefined"
            ),
        ),
        "unclear-priorities": IssueMetadata(
            name="Unclear Priorities",
            severity=Severity.LOW,
            suggestion="Order multiple requests by priority or send them separately",
            example_before="Add error handling and logging and optimize it and add tests",
            example_after=(
                "First add error handling to the upload handler. After that, "
                "add debug logging."
            ),
        ),
        "insufficient-constraints": IssueMetadata(
            name="Insufficient Constraints",
            severity=Severity.LOW,
            suggestion=(
                "Spell out requirements such as edge cases, performance "
                "targets or compatibility"
            ),
            example_before="Make it faster",
            example_after=(
                "Bring the search query under 100ms without changing the "
                "public API response shape"
            ),
        ),
    }
)

_DEFAULT_SUGGESTION = "Review this pattern"


def lookup_issue(issue_id: str) -> IssueMetadata:
    """Return taxonomy metadata, synthesizing an entry for unknown ids."""
    known = ISSUE_TAXONOMY.get(issue_id)
    if known is not None:
        return known
    name = " ".join(part.capitalize() for part in re.split(r"[-_\s]+", issue_id) if part)
    return IssueMetadata(
        name=name or issue_id,
        severity=Severity.MEDIUM,
        suggestion=_DEFAULT_SUGGESTION,
    )


# --- Instruction templates ---

_ISSUE_DEFINITIONS = "\n".join(
    f"- {issue_id}: {meta.name}" for issue_id, meta in ISSUE_TAXONOMY.items()
)

SYSTEM_PROMPT_MINIMAL = f"""You review prompts written for AI coding assistants.
Reply with JSON only, exactly this shape: {{"issues": ["issue-id", ...], "score": 0-100}}

List one issue id per affected prompt, so an id may repeat. Valid ids:
{_ISSUE_DEFINITIONS}

score: 100 is a perfect batch, 70-89 good, 50-69 fair, below 50 poor.

Example reply: {{"issues": ["vague", "no-context", "vague"], "score": 40}}"""

SYSTEM_PROMPT_FULL = f"""You are a prompt quality analyst for AI coding assistants.
Find the recurring patterns that make the given prompts less effective and
suggest concrete rewrites.

Reply with JSON only. No markdown fences, no commentary. Use this shape:
{{
  "patterns": [
    {{
      "id": "kebab-case-id",
      "name": "Human readable name",
      "frequency": 0.4,
      "severity": "high|medium|low",
      "examples": ["prompt text", "..."],
      "suggestion": "How to fix this pattern",
      "beforeAfter": {{"before": "original prompt", "after": "improved prompt"}}
    }}
  ],
  "stats": {{"totalPrompts": 10, "promptsWithIssues": 7, "overallScore": 65}},
  "topSuggestion": "The single most useful change"
}}

Rules:
- frequency is the fraction (0 to 1) of the prompts showing the pattern.
- Prefer these ids when they fit:
{_ISSUE_DEFINITIONS}
- Give at most 5 patterns, high severity first, then by frequency.
- Quote 1 to 3 real examples from the prompts; beforeAfter.before should be one of them.
- overallScore is 0-100: 90+ excellent, 75-89 good, 60-74 fair, below 60 poor.
- topSuggestion addresses the most common high severity pattern."""

INSTRUCTION_TEMPLATES: Mapping[str, str] = MappingProxyType(
    {"minimal": SYSTEM_PROMPT_MINIMAL, "full": SYSTEM_PROMPT_FULL}
)


def instruction_template_hash() -> str:
    """Fingerprint of every instruction template a provider may send.

    Cached results produced under a different fingerprint are invalid.
    """
    digest = hashlib.sha256(SCHEMA_VERSION.encode("utf-8"))
    for name in sorted(INSTRUCTION_TEMPLATES):
        digest.update(b"\0" + name.encode("utf-8") + b"\0")
        digest.update(INSTRUCTION_TEMPLATES[name].encode("utf-8"))
    return digest.hexdigest()


# --- Response schemas ---


class _ResponseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class MinimalResponse(_ResponseModel):
    issues: list[str]
    score: float = Field(ge=0, le=100)


class SimpleIssue(_ResponseModel):
    name: str = Field(min_length=1)
    example: str = ""
    fix: str = ""


class SimpleResponse(_ResponseModel):
    issues: list[SimpleIssue]
    score: float = Field(ge=0, le=100)
    tip: str = ""


class BeforeAfterModel(_ResponseModel):
    before: str = ""
    after: str = ""


class FullPattern(_ResponseModel):
    id: str = Field(min_length=1)
    name: str = ""
    frequency: float = Field(default=0.0, ge=0)
    severity: Severity = Severity.MEDIUM
    examples: list[str] = Field(default_factory=list)
    suggestion: str = ""
    before_after: BeforeAfterModel = Field(
        default_factory=BeforeAfterModel, alias="beforeAfter"
    )

    @field_validator("severity", mode="before")
    @classmethod
    def lower_severity(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class FullStats(_ResponseModel):
    total_prompts: int = Field(default=0, ge=0, alias="totalPrompts")
    prompts_with_issues: int = Field(default=0, ge=0, alias="promptsWithIssues")
    overall_score: float = Field(ge=0, le=100, alias="overallScore")


class FullResponse(_ResponseModel):
    patterns: list[FullPattern]
    stats: FullStats
    top_suggestion: str = Field(default="", alias="topSuggestion")


# --- JSON extraction and repair ---

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)(?:```|$)", re.DOTALL | re.IGNORECASE)


def extract_json_text(text: str) -> str:
    """Strip markdown fences and any prose before the first JSON object."""
    stripped = text.strip()
    fenced = _FENCE_RE.search(stripped)
    if fenced:
        stripped = fenced.group(1).strip()
    start = stripped.find("{")
    return stripped[start:] if start > 0 else stripped


def repair_truncated_json(text: str) -> str:
    """Close whatever a truncated response left open.

    Handles an unterminated string, a dangling comma or colon, and open
    arrays and objects. Returns the input unchanged when nothing is open.
    """
    closers: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            closers.append("}")
        elif ch == "[":
            closers.append("]")
        elif ch in "}]" and closers and closers[-1] == ch:
            closers.pop()

    repaired = text
    if in_string:
        if escaped:
            repaired = repaired[:-1]
        repaired += '"'
    repaired = repaired.rstrip()
    if repaired.endswith(","):
        repaired = repaired[:-1]
    elif repaired.endswith(":"):
        repaired += " null"
    return repaired + "".join(reversed(closers))


def load_json_payload(text: str) -> Any:
    """Decode a provider reply, repairing truncation if needed.

    Raises:
        MalformedResponseError: If the reply is not JSON even after repair.
    """
    candidate = extract_json_text(text)
    if not candidate:
        raise MalformedResponseError("Empty response from provider")
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass
    try:
        payload = json.loads(repair_truncated_json(candidate))
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Response is not valid JSON: {e}") from e
    log.debug("Recovered truncated JSON response")
    return payload


# --- Normalization ---


def normalize_score(score: float) -> float:
    """Convert a 0-100 score to the 0-10 scale."""
    return round(min(max(score / 10, 0.0), 10.0), constants.SCORE_PRECISION)


def normalize_frequency(frequency: float, prompt_count: int) -> float:
    """Return a fraction in [0, 1]; values above 1 are treated as counts."""
    if frequency > 1:
        frequency = frequency / max(prompt_count, 1)
    return round(min(max(frequency, 0.0), 1.0), constants.FREQUENCY_PRECISION)


def _fraction(count: int, prompt_count: int) -> float:
    if prompt_count <= 0:
        return 0.0
    return round(min(count, prompt_count) / prompt_count, constants.FREQUENCY_PRECISION)


def _dedupe(items: list[str], limit: int) -> tuple[str, ...]:
    seen: list[str] = []
    for item in items:
        if item and item not in seen:
            seen.append(item)
        if len(seen) == limit:
            break
    return tuple(seen)


def rank_patterns(patterns: list[AnalysisPattern]) -> tuple[AnalysisPattern, ...]:
    """Sort by severity then frequency (stable) and keep the top five."""
    ordered = sorted(patterns, key=lambda p: (-p.severity.rank, -p.frequency))
    return tuple(ordered[: constants.MAX_PATTERNS])


def _build_result(
    date: str,
    patterns: list[AnalysisPattern],
    prompt_count: int,
    prompts_with_issues: int,
    score: float,
    top_suggestion: str = "",
) -> AnalysisResult:
    ranked = rank_patterns(patterns)
    if not top_suggestion:
        top_suggestion = ranked[0].suggestion if ranked else constants.NO_ISSUES_SUGGESTION
    return AnalysisResult(
        date=date,
        patterns=ranked,
        stats=AnalysisStats(
            total_prompts=prompt_count,
            prompts_with_issues=min(max(prompts_with_issues, 0), prompt_count),
            overall_score=normalize_score(score),
        ),
        top_suggestion=top_suggestion,
    )


def _from_minimal(data: MinimalResponse, prompt_count: int, date: str) -> AnalysisResult:
    counts = Counter(issue.strip() for issue in data.issues if issue.strip())
    patterns = []
    for issue_id, count in counts.items():
        meta = lookup_issue(issue_id)
        patterns.append(
            AnalysisPattern(
                id=issue_id,
                name=meta.name,
                severity=meta.severity,
                frequency=_fraction(count, prompt_count),
                examples=(),
                suggestion=meta.suggestion,
                before_after=BeforeAfter(meta.example_before, meta.example_after),
            )
        )
    with_issues = max(counts.values(), default=0)
    return _build_result(date, patterns, prompt_count, with_issues, data.score)


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "issue"


def _from_simple(data: SimpleResponse, prompt_count: int, date: str) -> AnalysisResult:
    grouped: dict[str, list[SimpleIssue]] = {}
    for issue in data.issues:
        grouped.setdefault(_slug(issue.name), []).append(issue)

    patterns = []
    for issue_id, issues in grouped.items():
        meta = ISSUE_TAXONOMY.get(issue_id)
        first = issues[0]
        patterns.append(
            AnalysisPattern(
                id=issue_id,
                name=first.name,
                severity=meta.severity if meta else Severity.MEDIUM,
                frequency=_fraction(len(issues), prompt_count),
                examples=_dedupe([i.example for i in issues], constants.MAX_EXAMPLES),
                suggestion=meta.suggestion if meta else (data.tip or _DEFAULT_SUGGESTION),
                before_after=BeforeAfter(first.example, first.fix),
            )
        )
    with_issues = max((len(v) for v in grouped.values()), default=0)
    return _build_result(date, patterns, prompt_count, with_issues, data.score, data.tip)


def _from_full(data: FullResponse, prompt_count: int, date: str) -> AnalysisResult:
    patterns = []
    for raw in data.patterns:
        meta = lookup_issue(raw.id)
        patterns.append(
            AnalysisPattern(
                id=raw.id,
                name=raw.name or meta.name,
                severity=raw.severity,
                frequency=normalize_frequency(raw.frequency, prompt_count),
                examples=_dedupe(raw.examples, constants.MAX_EXAMPLES),
                suggestion=raw.suggestion or meta.suggestion,
                before_after=BeforeAfter(
                    raw.before_after.before or meta.example_before,
                    raw.before_after.after or meta.example_after,
                ),
            )
        )
    return _build_result(
        date,
        patterns,
        prompt_count,
        data.stats.prompts_with_issues,
        data.stats.overall_score,
        data.top_suggestion,
    )


_SCHEMAS = (
    (MinimalResponse, _from_minimal),
    (SimpleResponse, _from_simple),
    (FullResponse, _from_full),
)


def parse_response(
    text: str,
    *,
    prompt_count: int,
    date: str,
    provider: str | None = None,
) -> AnalysisResult:
    """Parse a provider reply into an ``AnalysisResult`` for one batch.

    ``stats.total_prompts`` is always ``prompt_count``, whatever the provider
    claimed.

    Raises:
        MalformedResponseError: If the reply matches none of the schemas.
    """
    try:
        payload = load_json_payload(text)
    except MalformedResponseError as e:
        e.provider = provider
        raise

    if not isinstance(payload, dict):
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(payload).__name__}", provider=provider
        )

    errors: list[str] = []
    for schema, convert in _SCHEMAS:
        try:
            data = schema.model_validate(payload)
        except ValidationError as e:
            errors.append(f"{schema.__name__}: {e.error_count()} error(s)")
            continue
        try:
            return convert(data, prompt_count, date)
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(
                f"Response failed validation: {e}", provider=provider
            ) from e

    raise MalformedResponseError(
        f"Response matches no known schema ({'; '.join(errors)})", provider=provider
    )
