"""Core data types that flow through the analysis engine.

These immutable records describe the batches handed to providers and the
results they return. Each record validates its invariants on construction so
that an invalid result can never reach the merge or cache stages.
"""

from __future__ import annotations

from collections.abc import Mapping
import dataclasses
from enum import StrEnum
import typing

# --- Minimal guard helpers ---


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


def _is_tuple_of(value: object, typ: type | tuple[type, ...]) -> bool:
    return isinstance(value, tuple) and all(isinstance(v, typ) for v in value)


# --- Enumerations ---


class ProviderType(StrEnum):
    """The three supported analysis backends."""

    OLLAMA = "ollama"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"

    @property
    def is_local(self) -> bool:
        return self is ProviderType.OLLAMA


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


# --- Analysis Results ---


@dataclasses.dataclass(frozen=True, slots=True)
class BeforeAfter:
    """A concrete rewrite illustrating a suggestion."""

    before: str
    after: str

    def __post_init__(self) -> None:
        _require(
            condition=isinstance(self.before, str),
            message="must be str",
            field_name="before",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.after, str),
            message="must be str",
            field_name="after",
            exc=TypeError,
        )


@dataclasses.dataclass(frozen=True, slots=True)
class AnalysisPattern:
    """A recurring quality issue found across a set of prompts.

    ``frequency`` is the fraction of analyzed prompts exhibiting the pattern.
    """

    id: str
    name: str
    severity: Severity
    frequency: float
    examples: tuple[str, ...]
    suggestion: str
    before_after: BeforeAfter

    def __post_init__(self) -> None:
        _require(
            condition=isinstance(self.id, str) and bool(self.id),
            message="must be a non-empty str",
            field_name="id",
        )
        _require(
            condition=isinstance(self.severity, Severity),
            message="must be a Severity",
            field_name="severity",
            exc=TypeError,
        )
        _require(
            condition=0.0 <= self.frequency <= 1.0,
            message=f"must be within [0, 1], got {self.frequency!r}",
            field_name="frequency",
        )
        _require(
            condition=_is_tuple_of(self.examples, str),
            message="must be a tuple[str, ...]",
            field_name="examples",
            exc=TypeError,
        )
        _require(
            condition=len(self.examples) <= 3,
            message="must contain at most 3 examples",
            field_name="examples",
        )
        _require(
            condition=isinstance(self.before_after, BeforeAfter),
            message="must be a BeforeAfter",
            field_name="before_after",
            exc=TypeError,
        )

    def to_dict(self) -> dict[str, typing.Any]:
        return {
            "id": self.id,
            "name": self.name,
            "severity": self.severity.value,
            "frequency": self.frequency,
            "examples": list(self.examples),
            "suggestion": self.suggestion,
            "beforeAfter": {
                "before": self.before_after.before,
                "after": self.before_after.after,
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, typing.Any]) -> AnalysisPattern:
        before_after = data["beforeAfter"]
        return cls(
            id=data["id"],
            name=data["name"],
            severity=Severity(data["severity"]),
            frequency=float(data["frequency"]),
            examples=tuple(data["examples"]),
            suggestion=data["suggestion"],
            before_after=BeforeAfter(
                before=before_after["before"], after=before_after["after"]
            ),
        )


@dataclasses.dataclass(frozen=True, slots=True)
class AnalysisStats:
    total_prompts: int
    prompts_with_issues: int
    overall_score: float

    def __post_init__(self) -> None:
        _require(
            condition=self.total_prompts >= 0,
            message="must be >= 0",
            field_name="total_prompts",
        )
        _require(
            condition=0 <= self.prompts_with_issues <= self.total_prompts,
            message="must be within [0, total_prompts]",
            field_name="prompts_with_issues",
        )
        _require(
            condition=0.0 <= self.overall_score <= 10.0,
            message=f"must be within [0, 10], got {self.overall_score!r}",
            field_name="overall_score",
        )


@dataclasses.dataclass(frozen=True, slots=True)
class AnalysisResult:
    """The analysis of one batch, or the merge of several."""

    date: str
    patterns: tuple[AnalysisPattern, ...]
    stats: AnalysisStats
    top_suggestion: str

    def __post_init__(self) -> None:
        _require(
            condition=_is_tuple_of(self.patterns, AnalysisPattern),
            message="must be a tuple[AnalysisPattern, ...]",
            field_name="patterns",
            exc=TypeError,
        )
        _require(
            condition=len(self.patterns) <= 5,
            message="must contain at most 5 patterns",
            field_name="patterns",
        )
        _require(
            condition=isinstance(self.stats, AnalysisStats),
            message="must be AnalysisStats",
            field_name="stats",
            exc=TypeError,
        )

    def to_dict(self) -> dict[str, typing.Any]:
        """Return the JSON-safe wire form with camelCase keys."""
        return {
            "date": self.date,
            "patterns": [p.to_dict() for p in self.patterns],
            "stats": {
                "totalPrompts": self.stats.total_prompts,
                "promptsWithIssues": self.stats.prompts_with_issues,
                "overallScore": self.stats.overall_score,
            },
            "topSuggestion": self.top_suggestion,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, typing.Any]) -> AnalysisResult:
        stats = data["stats"]
        return cls(
            date=data["date"],
            patterns=tuple(AnalysisPattern.from_dict(p) for p in data["patterns"]),
            stats=AnalysisStats(
                total_prompts=int(stats["totalPrompts"]),
                prompts_with_issues=int(stats["promptsWithIssues"]),
                overall_score=float(stats["overallScore"]),
            ),
            top_suggestion=data["topSuggestion"],
        )


# --- Batching ---


@dataclasses.dataclass(frozen=True, slots=True)
class Batch:
    """An ordered, non-empty slice of the input prompts sized for one call."""

    prompts: tuple[str, ...]
    index: int
    total: int
    estimated_tokens: int = 0

    def __post_init__(self) -> None:
        _require(
            condition=_is_tuple_of(self.prompts, str),
            message="must be a tuple[str, ...]",
            field_name="prompts",
            exc=TypeError,
        )
        _require(
            condition=len(self.prompts) > 0,
            message="must not be empty",
            field_name="prompts",
        )
        _require(
            condition=0 <= self.index < self.total,
            message=f"must be within [0, {self.total}), got {self.index}",
            field_name="index",
        )
        _require(
            condition=self.estimated_tokens >= 0,
            message="must be >= 0",
            field_name="estimated_tokens",
        )

    def __len__(self) -> int:
        return len(self.prompts)


# --- Caller-supplied context ---


@dataclasses.dataclass(frozen=True, slots=True)
class ProjectContext:
    """Optional description of the user's project, injected into prompts."""

    role: str | None = None
    project_type: str | None = None
    domain: str | None = None
    tech_stack: tuple[str, ...] = ()
    guidelines: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _require(
            condition=_is_tuple_of(self.tech_stack, str),
            message="must be a tuple[str, ...]",
            field_name="tech_stack",
            exc=TypeError,
        )
        _require(
            condition=_is_tuple_of(self.guidelines, str),
            message="must be a tuple[str, ...]",
            field_name="guidelines",
            exc=TypeError,
        )

    @property
    def is_empty(self) -> bool:
        return not (
            self.role
            or self.project_type
            or self.domain
            or self.tech_stack
            or self.guidelines
        )


@dataclasses.dataclass(frozen=True, slots=True)
class RuleOverride:
    """Per-pattern toggle and severity override."""

    enabled: bool = True
    severity: Severity | None = None

    def to_dict(self) -> dict[str, typing.Any]:
        data: dict[str, typing.Any] = {"enabled": self.enabled}
        if self.severity is not None:
            data["severity"] = self.severity.value
        return data


type RulesConfig = Mapping[str, RuleOverride]
