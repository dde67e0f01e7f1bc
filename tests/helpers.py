"""Builders and fakes shared by the unit tests."""

from collections.abc import Sequence
from unittest.mock import AsyncMock, MagicMock

from prompt_audit.core.types import (
    AnalysisPattern,
    AnalysisResult,
    AnalysisStats,
    BeforeAfter,
    ProjectContext,
    ProviderType,
    Severity,
)


def make_pattern(
    pattern_id: str = "vague",
    *,
    severity: Severity = Severity.HIGH,
    frequency: float = 0.5,
    examples: tuple[str, ...] = ("help me",),
    suggestion: str | None = None,
) -> AnalysisPattern:
    return AnalysisPattern(
        id=pattern_id,
        name=pattern_id.replace("-", " ").title(),
        severity=severity,
        frequency=frequency,
        examples=examples,
        suggestion=suggestion or f"Fix {pattern_id}",
        before_after=BeforeAfter(before="before", after="after"),
    )


def make_result(
    patterns: Sequence[AnalysisPattern] = (),
    *,
    total: int = 1,
    with_issues: int | None = None,
    score: float = 5.0,
    date: str = "2025-01-15",
) -> AnalysisResult:
    return AnalysisResult(
        date=date,
        patterns=tuple(patterns),
        stats=AnalysisStats(
            total_prompts=total,
            prompts_with_issues=total if with_issues is None else with_issues,
            overall_score=score,
        ),
        top_suggestion=patterns[0].suggestion if patterns else "No issues found",
    )


class FakeProvider:
    """In-memory provider recording every analyze call."""

    def __init__(
        self,
        provider_type: ProviderType | str = ProviderType.OLLAMA,
        *,
        available: bool = True,
        failures: Sequence[Exception] = (),
        model: str = "fake-model",
    ) -> None:
        self.provider_type = ProviderType(provider_type)
        self.name = self.provider_type.value
        self.model = model
        self.available = available
        self.availability_checks = 0
        self.calls: list[tuple[str, ...]] = []
        self._failures = list(failures)

    async def is_available(self) -> bool:
        self.availability_checks += 1
        return self.available

    async def analyze(
        self,
        prompts: Sequence[str],
        date: str,
        context: ProjectContext | None = None,  # noqa: ARG002
    ) -> AnalysisResult:
        self.calls.append(tuple(prompts))
        if self._failures:
            raise self._failures.pop(0)
        return make_result(
            [make_pattern(frequency=0.5)],
            total=len(prompts),
            with_issues=len(prompts) // 2,
            date=date,
        )



def make_genai_client(*, side_effect=None, text: str | None = None) -> MagicMock:
    """A stand-in for ``genai.Client`` exposing ``aio.models.generate_content``."""
    client = MagicMock()
    response = MagicMock()
    response.text = text
    client.aio.models.generate_content = AsyncMock(
        return_value=response, side_effect=side_effect
    )
    return client
