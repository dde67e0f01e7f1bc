"""Combine per-batch results into one report.

Merging is deterministic: the same batch results in the same order always
produce the same output, down to the serialized bytes.
"""

from collections import Counter
from collections.abc import Sequence
import dataclasses

from prompt_audit import constants
from prompt_audit.core.types import (
    AnalysisPattern,
    AnalysisResult,
    AnalysisStats,
    Severity,
)


@dataclasses.dataclass(slots=True)
class _PatternGroup:
    first: AnalysisPattern
    weighted_hits: float = 0.0
    examples: list[str] = dataclasses.field(default_factory=list)
    severities: list[Severity] = dataclasses.field(default_factory=list)

    def add(self, pattern: AnalysisPattern, batch_size: int) -> None:
        self.weighted_hits += pattern.frequency * batch_size
        self.severities.append(pattern.severity)
        for example in pattern.examples:
            if example not in self.examples and len(self.examples) < constants.MAX_EXAMPLES:
                self.examples.append(example)


def _modal_severity(severities: Sequence[Severity]) -> Severity:
    """Most frequent severity; ties go to the more severe one."""
    counts = Counter(severities)
    return max(counts, key=lambda s: (counts[s], s.rank))


def top_suggestion_for(patterns: Sequence[AnalysisPattern]) -> str:
    return patterns[0].suggestion if patterns else constants.NO_ISSUES_SUGGESTION


def merge_results(results: Sequence[AnalysisResult]) -> AnalysisResult:
    """Merge batch results into a single result.

    * Patterns are grouped by ``id``. Frequency is the prompt-weighted mean
      over all batches, where a batch that did not report the id counts as 0.
    * Examples: first three distinct, in first-seen order.
    * Severity: the mode across reports, ties to the higher severity.
    * Name, suggestion and before/after come from the first report.
    * Output is ordered by severity then frequency (ties keep first-seen
      order) and truncated to five patterns.
    * Stats sum; the score is weighted by each batch's prompt count.

    A single result is returned unchanged.

    Raises:
        ValueError: If ``results`` is empty.
    """
    if not results:
        raise ValueError("Cannot merge an empty list of results")
    if len(results) == 1:
        return results[0]

    total_prompts = sum(r.stats.total_prompts for r in results)
    groups: dict[str, _PatternGroup] = {}
    for result in results:
        for pattern in result.patterns:
            group = groups.get(pattern.id)
            if group is None:
                group = groups[pattern.id] = _PatternGroup(first=pattern)
            group.add(pattern, result.stats.total_prompts)

    merged: list[AnalysisPattern] = []
    for group in groups.values():
        frequency = group.weighted_hits / total_prompts if total_prompts else 0.0
        merged.append(
            dataclasses.replace(
                group.first,
                severity=_modal_severity(group.severities),
                frequency=round(min(frequency, 1.0), constants.FREQUENCY_PRECISION),
                examples=tuple(group.examples),
            )
        )

    merged.sort(key=lambda p: (-p.severity.rank, -p.frequency))
    patterns = tuple(merged[: constants.MAX_PATTERNS])

    if total_prompts:
        score = (
            sum(r.stats.overall_score * r.stats.total_prompts for r in results)
            / total_prompts
        )
    else:
        score = sum(r.stats.overall_score for r in results) / len(results)

    return AnalysisResult(
        date=results[0].date,
        patterns=patterns,
        stats=AnalysisStats(
            total_prompts=total_prompts,
            prompts_with_issues=sum(r.stats.prompts_with_issues for r in results),
            overall_score=round(score, constants.SCORE_PRECISION),
        ),
        top_suggestion=top_suggestion_for(patterns),
    )
