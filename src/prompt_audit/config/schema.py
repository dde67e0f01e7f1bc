"""Configuration schema and validation using Pydantic.

This module defines the settings schema that validates and coerces configuration
values from various sources (environment, files, programmatic) into the correct
types with proper defaults.
"""

import logging
import os
from pathlib import Path
from typing import Annotated, Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from prompt_audit import constants
from prompt_audit.core.types import ProviderType, Severity

log = logging.getLogger(__name__)

SENSITIVE_FIELDS = frozenset({"anthropic_api_key", "google_api_key"})


def _default_cache_dir() -> Path:
    base = os.getenv("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / "prompt_audit" / "analysis"


class RuleSetting(BaseModel):
    """One entry of the ``rules`` table: ``{enabled, severity}``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = True
    severity: Severity | None = None


class PromptAuditSettings(BaseSettings):
    """Pydantic settings schema for prompt analysis.

    This handles validation, type coercion, and default values for all
    configuration fields. It integrates with environment variables using
    the PROMPT_AUDIT_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROMPT_AUDIT_",
        env_file=None,  # Only used when explicitly requested
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Provider selection ---

    services: Annotated[tuple[ProviderType, ...], NoDecode] = Field(
        default=(),
        description="Provider priority list, highest priority first",
    )

    # --- Provider identities ---

    ollama_model: str = Field(default=constants.DEFAULT_OLLAMA_MODEL, min_length=1)
    ollama_host: str = Field(default=constants.DEFAULT_OLLAMA_HOST, min_length=1)
    anthropic_model: str = Field(
        default=constants.DEFAULT_ANTHROPIC_MODEL, min_length=1
    )
    anthropic_api_key: str | None = Field(default=None, description="Anthropic API key")
    google_model: str = Field(default=constants.DEFAULT_GOOGLE_MODEL, min_length=1)
    google_api_key: str | None = Field(default=None, description="Google API key")

    # --- Batching ---

    ollama_token_budget: int = Field(default=constants.OLLAMA_TOKEN_BUDGET, ge=1)
    anthropic_token_budget: int = Field(
        default=constants.ANTHROPIC_TOKEN_BUDGET, ge=1
    )
    google_token_budget: int = Field(default=constants.GOOGLE_TOKEN_BUDGET, ge=1)
    system_overhead_tokens: int = Field(
        default=constants.SYSTEM_OVERHEAD_TOKENS, ge=0
    )

    # --- Rate limiting and retry ---

    anthropic_requests_per_minute: int = Field(
        default=constants.DEFAULT_REQUESTS_PER_MINUTE, ge=1
    )
    google_requests_per_minute: int = Field(
        default=constants.DEFAULT_REQUESTS_PER_MINUTE, ge=1
    )
    max_retries: int = Field(default=constants.MAX_RETRIES, ge=0)
    base_delay: float = Field(default=constants.RETRY_BASE_DELAY, ge=0)
    max_delay: float = Field(default=constants.RETRY_MAX_DELAY, ge=0)

    # --- Cache ---

    cache_dir: Path = Field(default_factory=_default_cache_dir)
    cache_ttl_seconds: int = Field(default=constants.CACHE_TTL_SECONDS, ge=1)

    # --- Post-processing ---

    rules: dict[str, RuleSetting] = Field(default_factory=dict)

    # --- Validation Rules ---

    @field_validator("services", mode="before")
    @classmethod
    def parse_services(cls, v: Any) -> tuple[str, ...]:
        """Accept a comma-separated string or a sequence of provider names.

        Unknown names are dropped with a warning; duplicates keep their first
        position.
        """
        if v is None:
            return ()
        items = v.split(",") if isinstance(v, str) else list(v)

        seen: list[str] = []
        for item in items:
            name = str(item).strip().lower()
            if not name:
                continue
            if name not in {p.value for p in ProviderType}:
                log.warning("Ignoring unknown analysis service %r", name)
                continue
            if name not in seen:
                seen.append(name)
        return tuple(seen)

    @field_validator("ollama_host", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_delays(self) -> Self:
        """Ensure the backoff cap is not below the base delay."""
        if self.max_delay < self.base_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})"
            )
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary suitable for SourceMap annotation.

        Returns:
            Dictionary with field names as keys and resolved values.
        """
        return {name: getattr(self, name) for name in type(self).model_fields}
