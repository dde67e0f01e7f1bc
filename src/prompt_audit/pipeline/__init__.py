"""Batch planning, provider selection, merging and orchestration."""

from .batching import estimate_tokens, plan_batches
from .merge import merge_results
from .orchestrator import AnalysisOrchestrator, empty_result, run_analysis
from .rules import apply_rules, coerce_rules
from .selector import check_available, select_provider

__all__ = [
    "AnalysisOrchestrator",
    "apply_rules",
    "check_available",
    "coerce_rules",
    "empty_result",
    "estimate_tokens",
    "merge_results",
    "plan_batches",
    "run_analysis",
    "select_provider",
]
