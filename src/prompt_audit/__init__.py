"""Prompt quality analysis engine.

Batches prompts, picks a reachable analysis provider (Ollama, Anthropic or
Google Gemini), runs each batch with retry and rate limiting, caches results
on disk and merges them into one report.

Example:
    import asyncio
    from prompt_audit import run_analysis
    from prompt_audit.config import load_config

    config = load_config({"services": "ollama,anthropic"})
    result = asyncio.run(run_analysis(prompts, "2025-01-15", config=config))
"""

import importlib.metadata
import logging

from .cache import AnalysisCache
from .config import FrozenConfig, load_config, resolve_config
from .core.types import (
    AnalysisPattern,
    AnalysisResult,
    AnalysisStats,
    ProjectContext,
    ProviderType,
    RuleOverride,
    Severity,
)
from .exceptions import (
    CacheError,
    ConfigurationError,
    ExitCode,
    FatalProviderError,
    NoProvidersConfiguredError,
    PromptAuditError,
    ProviderError,
    ProviderUnavailableError,
    TransientProviderError,
    exit_code_for,
)
from .pipeline import AnalysisOrchestrator, merge_results, plan_batches, run_analysis
from .telemetry import InMemoryReporter, TelemetryContext, TelemetryReporter

try:
    __version__ = importlib.metadata.version("prompt-audit")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Library logging stays silent unless the application configures handlers.
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AnalysisCache",
    "AnalysisOrchestrator",
    "AnalysisPattern",
    "AnalysisResult",
    "AnalysisStats",
    "CacheError",
    "ConfigurationError",
    "ExitCode",
    "FatalProviderError",
    "FrozenConfig",
    "InMemoryReporter",
    "NoProvidersConfiguredError",
    "ProjectContext",
    "PromptAuditError",
    "ProviderError",
    "ProviderType",
    "ProviderUnavailableError",
    "RuleOverride",
    "Severity",
    "TelemetryContext",
    "TelemetryReporter",
    "TransientProviderError",
    "exit_code_for",
    "load_config",
    "merge_results",
    "plan_batches",
    "resolve_config",
    "run_analysis",
]
