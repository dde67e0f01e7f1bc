"""Configuration for prompt analysis.

Resolve once, freeze, then hand the ``FrozenConfig`` to the orchestrator::

    from prompt_audit.config import resolve_config

    config = resolve_config({"services": "ollama,anthropic"}).to_frozen()
"""

from .api import (
    check_environment,
    get_effective_profile,
    list_available_profiles,
    load_config,
    resolve_config,
    validate_profile,
)
from .file_loader import ConfigFileError
from .schema import PromptAuditSettings, RuleSetting
from .types import ConfigOrigin, FrozenConfig, ProviderProfile, ResolvedConfig, SourceMap

__all__ = [
    "ConfigFileError",
    "ConfigOrigin",
    "FrozenConfig",
    "PromptAuditSettings",
    "ProviderProfile",
    "ResolvedConfig",
    "RuleSetting",
    "SourceMap",
    "check_environment",
    "get_effective_profile",
    "list_available_profiles",
    "load_config",
    "resolve_config",
    "validate_profile",
]
