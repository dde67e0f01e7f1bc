"""User rule overrides applied to a finished result."""

from collections.abc import Mapping
import dataclasses
import logging
from typing import Any

from prompt_audit.core.types import AnalysisResult, RuleOverride, RulesConfig, Severity
from prompt_audit.providers.schemas import ISSUE_TAXONOMY, rank_patterns

from .merge import top_suggestion_for

log = logging.getLogger(__name__)


def coerce_rules(rules: Mapping[str, Any] | None) -> dict[str, RuleOverride]:
    """Accept ``RuleOverride`` values or plain ``{enabled, severity}`` mappings."""
    coerced: dict[str, RuleOverride] = {}
    for rule_id, value in (rules or {}).items():
        if isinstance(value, RuleOverride):
            coerced[rule_id] = value
            continue
        if not isinstance(value, Mapping):
            raise TypeError(f"rules[{rule_id!r}]: must be a mapping, got {type(value).__name__}")
        severity = value.get("severity")
        coerced[rule_id] = RuleOverride(
            enabled=bool(value.get("enabled", True)),
            severity=Severity(severity) if severity is not None else None,
        )
    return coerced


def warn_unknown_rules(rules: RulesConfig) -> None:
    unknown = [rule_id for rule_id in rules if rule_id not in ISSUE_TAXONOMY]
    for rule_id in unknown:
        log.warning(
            "Unknown rule id %r in configuration. Valid ids are: %s",
            rule_id,
            ", ".join(ISSUE_TAXONOMY),
        )


def apply_rules(result: AnalysisResult, rules: RulesConfig | None) -> AnalysisResult:
    """Drop disabled patterns and apply severity overrides.

    The result is re-ranked and ``top_suggestion`` recomputed only when a
    rule actually changed something.
    """
    if not rules:
        return result

    patterns = []
    changed = False
    for pattern in result.patterns:
        rule = rules.get(pattern.id)
        if rule is None:
            patterns.append(pattern)
        elif not rule.enabled:
            changed = True
        elif rule.severity is not None and rule.severity is not pattern.severity:
            patterns.append(dataclasses.replace(pattern, severity=rule.severity))
            changed = True
        else:
            patterns.append(pattern)

    if not changed:
        return result

    ranked = rank_patterns(patterns)
    return dataclasses.replace(
        result, patterns=ranked, top_suggestion=top_suggestion_for(ranked)
    )
