"""Core data types for the analysis engine."""

from .types import (
    AnalysisPattern,
    AnalysisResult,
    AnalysisStats,
    Batch,
    BeforeAfter,
    ProjectContext,
    ProviderType,
    RuleOverride,
    RulesConfig,
    Severity,
)

__all__ = [
    "AnalysisPattern",
    "AnalysisResult",
    "AnalysisStats",
    "Batch",
    "BeforeAfter",
    "ProjectContext",
    "ProviderType",
    "RuleOverride",
    "RulesConfig",
    "Severity",
]
