"""Core configuration data types for prompt analysis.

This module defines the fundamental data structures used throughout the
configuration system, following the resolve-once, freeze-then-flow pattern.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import NamedTuple

from prompt_audit.client.retry import RetryPolicy
from prompt_audit.core.types import ProviderType, RuleOverride

from .audit import ConfigOrigin, SourceMap, generate_redacted_audit
from .schema import SENSITIVE_FIELDS, PromptAuditSettings

__all__ = [
    "ConfigOrigin",
    "FrozenConfig",
    "ProviderProfile",
    "ResolvedConfig",
    "SourceMap",
]


# --- Provider Profiles ---


@dataclass(frozen=True, slots=True)
class ProviderProfile:
    """Everything needed to construct and drive one provider identity.

    ``requests_per_minute`` is None for providers that are not rate limited
    (the local Ollama server).
    """

    provider_type: ProviderType
    model: str
    token_budget: int
    host: str | None = None
    api_key: str | None = None
    requests_per_minute: int | None = None

    @property
    def identity(self) -> str:
        return f"{self.provider_type.value}:{self.model}"

    def __repr__(self) -> str:
        """Representation with redacted API key for safe debugging."""
        api_key_display = "[REDACTED]" if self.api_key else None
        return (
            f"ProviderProfile(provider_type={self.provider_type.value!r}, "
            f"model={self.model!r}, token_budget={self.token_budget!r}, "
            f"host={self.host!r}, api_key={api_key_display!r}, "
            f"requests_per_minute={self.requests_per_minute!r})"
        )

    __str__ = __repr__


# --- Core Configuration Data ---


class ResolvedConfig(NamedTuple):
    """Configuration after resolution from all sources, before freezing.

    Holds the validated settings together with the origin of every field so
    that ``audit()`` can explain where each value came from.
    """

    settings: PromptAuditSettings
    origin: SourceMap

    def __str__(self) -> str:
        """String representation with redacted API keys for safe logging."""
        values = {
            name: ("[REDACTED]" if value and name in SENSITIVE_FIELDS else value)
            for name, value in self.settings.to_dict().items()
        }
        return f"ResolvedConfig({values!r}, origin={dict(self.origin)!r})"

    def __repr__(self) -> str:
        return self.__str__()

    def to_frozen(self) -> "FrozenConfig":
        """Convert to the immutable configuration used by the engine."""
        return FrozenConfig.from_settings(self.settings)

    def with_overrides(self, **overrides: object) -> "ResolvedConfig":
        """Create a new ResolvedConfig with programmatic overrides applied.

        Unknown fields are ignored. The overrides are re-validated.
        """
        known = {
            k: v for k, v in overrides.items() if k in PromptAuditSettings.model_fields
        }
        values = self.settings.to_dict() | known
        new_origin = dict(self.origin) | dict.fromkeys(known, "programmatic")
        return ResolvedConfig(
            settings=PromptAuditSettings(**values),
            origin=new_origin,
        )

    def audit(self) -> str:
        """Generate a redacted audit report showing the origin of each field."""
        return generate_redacted_audit(self.settings.to_dict(), self.origin)


@dataclass(frozen=True)
class FrozenConfig:
    """Immutable configuration handed to the orchestrator.

    This is the final form of configuration. It contains only the values the
    engine consumes, grouped into one ``ProviderProfile`` per provider type.
    """

    services: tuple[ProviderType, ...]
    profiles: Mapping[ProviderType, ProviderProfile]
    max_retries: int
    base_delay: float
    max_delay: float
    system_overhead_tokens: int
    cache_dir: Path
    cache_ttl_seconds: int
    rules: Mapping[str, RuleOverride] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def from_settings(cls, settings: PromptAuditSettings) -> "FrozenConfig":
        profiles = {
            ProviderType.OLLAMA: ProviderProfile(
                provider_type=ProviderType.OLLAMA,
                model=settings.ollama_model,
                token_budget=settings.ollama_token_budget,
                host=settings.ollama_host,
            ),
            ProviderType.ANTHROPIC: ProviderProfile(
                provider_type=ProviderType.ANTHROPIC,
                model=settings.anthropic_model,
                token_budget=settings.anthropic_token_budget,
                api_key=settings.anthropic_api_key,
                requests_per_minute=settings.anthropic_requests_per_minute,
            ),
            ProviderType.GOOGLE: ProviderProfile(
                provider_type=ProviderType.GOOGLE,
                model=settings.google_model,
                token_budget=settings.google_token_budget,
                api_key=settings.google_api_key,
                requests_per_minute=settings.google_requests_per_minute,
            ),
        }
        rules = {
            rule_id: RuleOverride(enabled=rule.enabled, severity=rule.severity)
            for rule_id, rule in settings.rules.items()
        }
        return cls(
            services=tuple(ProviderType(s) for s in settings.services),
            profiles=MappingProxyType(profiles),
            max_retries=settings.max_retries,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
            system_overhead_tokens=settings.system_overhead_tokens,
            cache_dir=Path(settings.cache_dir).expanduser(),
            cache_ttl_seconds=settings.cache_ttl_seconds,
            rules=MappingProxyType(rules),
        )

    def profile_for(self, provider_type: ProviderType | str) -> ProviderProfile:
        return self.profiles[ProviderType(provider_type)]

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
        )
