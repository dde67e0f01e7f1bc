"""Public API for the configuration system."""

from pathlib import Path
from typing import Any

from prompt_audit.exceptions import ConfigurationError

from .resolver import ConfigResolver
from .types import FrozenConfig, ResolvedConfig

_resolver = ConfigResolver()


def resolve_config(
    programmatic: dict[str, Any] | None = None,
    *,
    profile: str | None = None,
    use_env_file: str | Path | None = None,
    project_root: Path | None = None,
) -> ResolvedConfig:
    """Resolve configuration from all sources with proper precedence.

    Precedence is Programmatic > Environment > Project file > Home file >
    Defaults.

    Args:
        programmatic: Dictionary of programmatic overrides (highest precedence).
                     Only known configuration fields are used.
        profile: Profile name to load from configuration files. If None,
                uses PROMPT_AUDIT_PROFILE environment variable if set.
        use_env_file: Optional path to .env file to load before reading
                     environment variables.
        project_root: Directory to search for pyproject.toml. If None,
                     searches current directory and parents.

    Returns:
        ResolvedConfig with merged values and source tracking for audit.

    Raises:
        ConfigurationError: If validation fails or a configuration file is
            malformed.

    Example:
        config = resolve_config({"services": "ollama,anthropic"})
        frozen = config.to_frozen()
    """
    return _resolver.resolve(
        programmatic=programmatic,
        profile=profile,
        use_env_file=use_env_file,
        project_root=project_root,
    )


def load_config(
    programmatic: dict[str, Any] | None = None, **kwargs: Any
) -> FrozenConfig:
    """Resolve and freeze configuration in one step."""
    return resolve_config(programmatic, **kwargs).to_frozen()


def list_available_profiles(project_root: Path | None = None) -> dict[str, list[str]]:
    """List profile names available in the project and home files."""
    return _resolver.list_available_profiles(project_root)


def get_effective_profile() -> str | None:
    return _resolver.get_effective_profile()


def validate_profile(profile: str, project_root: Path | None = None) -> dict[str, bool]:
    """Check that a profile exists in at least one configuration file.

    Raises:
        ConfigurationError: If the profile doesn't exist anywhere.
    """
    exists_in_project, exists_in_home = _resolver.validate_profile_exists(
        profile, project_root
    )
    if not exists_in_project and not exists_in_home:
        available = list_available_profiles(project_root)
        raise ConfigurationError(
            f"Profile '{profile}' not found. "
            f"Available profiles: {available['project'] + available['home']}"
        )
    return {"project": exists_in_project, "home": exists_in_home}


def check_environment() -> dict[str, str]:
    """Return the PROMPT_AUDIT_* variables currently set, keys redacted."""
    return _resolver.env_loader.get_env_summary()
