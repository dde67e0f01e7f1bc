import pytest

from prompt_audit.config.file_loader import ConfigFileError
from prompt_audit.exceptions import (
    AuthenticationError,
    CacheError,
    ConfigurationError,
    ExitCode,
    MalformedResponseError,
    NoProvidersConfiguredError,
    ProviderUnavailableError,
    TransientProviderError,
    exit_code_for,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (ConfigurationError("bad"), ExitCode.PROVIDER_UNAVAILABLE),
        (NoProvidersConfiguredError(), ExitCode.PROVIDER_UNAVAILABLE),
        (ProviderUnavailableError("none", tried=("ollama:llama3.2",)), ExitCode.PROVIDER_UNAVAILABLE),
        (TransientProviderError("503"), ExitCode.ERROR),
        (AuthenticationError("401"), ExitCode.ERROR),
        (MalformedResponseError("junk"), ExitCode.ERROR),
        (CacheError("disk full"), ExitCode.ERROR),
        (RuntimeError("unexpected"), ExitCode.ERROR),
    ],
)
def test_exit_code_mapping(exc, code):
    assert exit_code_for(exc) is code


def test_exit_code_values():
    assert [int(c) for c in ExitCode] == [0, 1, 2, 3]


def test_config_file_error_keeps_path(tmp_path):
    err = ConfigFileError(tmp_path / "pyproject.toml", "broken")

    assert isinstance(err, ConfigurationError)
    assert err.file_path == tmp_path / "pyproject.toml"
    assert "broken" in str(err)
