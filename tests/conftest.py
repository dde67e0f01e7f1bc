"""
Shared fixtures, markers and environment isolation for the prompt_audit tests.
"""

from collections.abc import Callable
import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from prompt_audit.config import FrozenConfig, resolve_config


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def isolate_prompt_audit_env(request, monkeypatch):
    """Ensure a clean PROMPT_AUDIT_* environment for each test.

    Escape hatches:
      - @pytest.mark.allow_env_pollution: keep current env unchanged
      - tests marked with @pytest.mark.api bypass isolation so real keys
        can be used when explicitly running API tests.
    """
    if request.node.get_closest_marker("allow_env_pollution") or (
        "api" in request.node.keywords
    ):
        return

    for key in list(os.environ):
        if key.startswith("PROMPT_AUDIT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("DEBUG", raising=False)


@pytest.fixture(autouse=True)
def isolated_home_config(request, monkeypatch, tmp_path):
    """Point the home config path at an isolated temp file.

    Prevents reading a developer's real ~/.config/prompt_audit.toml.
    """
    if request.node.get_closest_marker("allow_real_home_config"):
        return

    home_dir = tmp_path / "home"
    home_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("PROMPT_AUDIT_CONFIG_HOME", str(home_dir / "prompt_audit.toml"))


@pytest.fixture
def clean_env_patch():
    """Apply a clean PROMPT_AUDIT_* baseline plus overrides.

    Usage:
        with clean_env_patch({"PROMPT_AUDIT_SERVICES": "ollama"}):
            ...
    """

    def _apply(extra: dict[str, str] | None = None):
        base = {k: v for k, v in os.environ.items() if not k.startswith("PROMPT_AUDIT_")}
        if extra:
            base.update(extra)
        return patch.dict(os.environ, base, clear=True)

    return _apply


@pytest.fixture
def project_dir(tmp_path) -> Path:
    """An empty project root so no real pyproject.toml is discovered."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "pyproject.toml").write_text("[project]\nname = 'scratch'\n", encoding="utf-8")
    return root


# --- Logging Fixtures ---
@pytest.fixture(scope="session", autouse=True)
def quiet_http_loggers():
    """Keep httpx request logging out of captured test output."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# --- Test Environment Markers ---
def pytest_configure(config):
    """Register the markers used across the suite."""
    markers = [
        "unit: Fast, isolated unit tests",
        "integration: Component integration tests with mocked providers",
        "api: Real API integration tests (requires API keys)",
        "slow: Tests that take >1 second",
        "allow_env_pollution: keep the caller's PROMPT_AUDIT_* environment",
        "allow_real_home_config: read the real home config file",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


def pytest_collection_modifyitems(config, items):  # noqa: ARG001
    """Automatically skip API tests unless explicitly enabled."""
    if not os.getenv("ENABLE_API_TESTS"):
        skip_api = pytest.mark.skip(reason="API tests require ENABLE_API_TESTS=1")
        for item in items:
            if "api" in item.keywords:
                item.add_marker(skip_api)


# --- Core Fixtures ---


@pytest.fixture
def make_config(project_dir, tmp_path) -> Callable[..., FrozenConfig]:
    """Build a FrozenConfig from programmatic overrides only.

    The cache lives under tmp_path, the retry delays are zero and no token
    budget is reserved for the instruction template, so batch sizes in tests
    follow directly from the prompt lengths.
    """

    def _make(**overrides) -> FrozenConfig:
        values = {
            "cache_dir": str(tmp_path / "cache"),
            "base_delay": 0.0,
            "max_delay": 0.0,
            "system_overhead_tokens": 0,
        }
        values.update(overrides)
        return resolve_config(values, project_root=project_dir).to_frozen()

    return _make
