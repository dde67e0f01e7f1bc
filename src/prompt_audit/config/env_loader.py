"""Environment variable configuration loading.

Reads ``PROMPT_AUDIT_*`` variables, optionally seeding them from a ``.env``
file first, and coerces them through the settings schema.
"""

import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .schema import SENSITIVE_FIELDS, PromptAuditSettings

ENV_PREFIX = "PROMPT_AUDIT_"

# Fields that only make sense in files or code.
_FILE_ONLY_FIELDS = frozenset({"rules"})


def env_var_names() -> dict[str, str]:
    """Map environment variable names to settings field names."""
    return {
        f"{ENV_PREFIX}{name.upper()}": name
        for name in PromptAuditSettings.model_fields
        if name not in _FILE_ONLY_FIELDS
    }


class EnvironmentConfigLoader:
    """Loads configuration from environment variables."""

    def load_env_config(self, env_file: str | Path | None = None) -> dict[str, Any]:
        """Load configuration from environment variables.

        Args:
            env_file: Optional path to a .env file whose values are loaded
                     into the environment before reading PROMPT_AUDIT_* variables.
                     Existing variables are never overwritten.

        Returns:
            Coerced values for the fields that are actually set.

        Raises:
            ValueError: If environment variables contain invalid values.
            FileNotFoundError: If ``env_file`` does not exist.
        """
        if env_file:
            self._load_env_file(env_file)

        names = env_var_names()
        env_values = {
            field: os.environ[var] for var, field in names.items() if var in os.environ
        }
        if not env_values:
            return {}

        try:
            settings = PromptAuditSettings(**env_values)
        except ValidationError as e:
            bad = ", ".join(
                f"{var}=<redacted>" if field in SENSITIVE_FIELDS else f"{var}={os.environ[var]}"
                for var, field in names.items()
                if field in env_values
            )
            raise ValueError(
                f"Invalid environment variable values: {bad}. Error: {e}"
            ) from e

        return {field: getattr(settings, field) for field in env_values}

    def _load_env_file(self, env_file: str | Path) -> None:
        """Load KEY=VALUE lines from a .env file into the environment.

        Raises:
            FileNotFoundError: If the .env file doesn't exist.
            ValueError: If the .env file has invalid format.
        """
        env_path = Path(env_file)
        if not env_path.exists():
            raise FileNotFoundError(f"Environment file not found: {env_path}")

        try:
            with env_path.open(encoding="utf-8") as f:
                for line_num, raw in enumerate(f, 1):
                    line = raw.strip()
                    if not line or line.startswith("#"):
                        continue
                    if "=" not in line:
                        raise ValueError(
                            f"Invalid format at line {line_num}: {line}. "
                            "Expected KEY=VALUE format."
                        )

                    key, value = (part.strip() for part in line.split("=", 1))
                    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                        value = value[1:-1]

                    os.environ.setdefault(key, value)
        except OSError as e:
            raise ValueError(f"Failed to read environment file {env_path}: {e}") from e

    def get_env_summary(self) -> dict[str, str]:
        """Return the PROMPT_AUDIT_* variables currently set, keys redacted."""
        summary = {}
        for var, field in env_var_names().items():
            if var in os.environ:
                summary[var] = "<redacted>" if field in SENSITIVE_FIELDS else os.environ[var]
        return summary
