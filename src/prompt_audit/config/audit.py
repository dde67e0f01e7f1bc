"""Configuration audit and source tracking.

Tracks where each configuration value originated and renders a report with
API keys redacted.
"""

from collections.abc import Mapping
from typing import Any, Literal

from .schema import SENSITIVE_FIELDS

ConfigOrigin = Literal["programmatic", "env", "file", "default"]
SourceMap = Mapping[str, ConfigOrigin]


class SourceTracker:
    """Tracks the origin of configuration values during resolution."""

    def __init__(self) -> None:
        self._origins: dict[str, ConfigOrigin] = {}

    def set_origin(self, field: str, origin: ConfigOrigin) -> None:
        self._origins[field] = origin

    def set_multiple(self, fields: Mapping[str, Any], origin: ConfigOrigin) -> None:
        """Record the same origin for every key of ``fields``."""
        for field in fields:
            self._origins[field] = origin

    def get_source_map(self) -> SourceMap:
        """Return a copy of the recorded origins."""
        return dict(self._origins)


def generate_telemetry_summary(source_map: SourceMap) -> dict[str, int]:
    """Count fields per origin, e.g. ``{"env": 3, "default": 12}``."""
    counts: dict[str, int] = {}
    for origin in source_map.values():
        counts[origin] = counts.get(origin, 0) + 1
    return counts


def generate_redacted_audit(config_dict: Mapping[str, Any], source_map: SourceMap) -> str:
    """Generate a redacted audit report showing field origins.

    Args:
        config_dict: The configuration values
        source_map: The source origins for each field

    Returns:
        One ``field: origin:value`` line per field, in schema order. API keys
        are never shown.
    """
    lines = []
    for field, value in config_dict.items():
        origin = source_map.get(field)
        if origin is None:
            continue

        env_var = f"PROMPT_AUDIT_{field.upper()}"
        if field in SENSITIVE_FIELDS:
            if value is None:
                value_display = f"{origin}:None"
            elif origin == "env":
                value_display = f"env:{env_var}=<redacted>"
            else:
                value_display = f"{origin}:<redacted>"
        elif origin == "env":
            value_display = f"env:{env_var}={value}"
        else:
            value_display = f"{origin}:{value}"

        lines.append(f"{field}: {value_display}")

    return "\n".join(lines)
