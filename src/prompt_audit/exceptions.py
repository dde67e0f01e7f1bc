"""Exception hierarchy and exit codes for prompt analysis."""

from enum import IntEnum


class PromptAuditError(Exception):
    """Base exception for prompt analysis errors."""


class ConfigurationError(PromptAuditError):
    """Raised when configuration is missing or invalid."""


class ProviderUnavailableError(PromptAuditError):
    """Raised when no configured provider can be reached."""

    def __init__(self, message: str, *, tried: tuple[str, ...] = ()) -> None:
        self.tried = tried
        super().__init__(message)


class NoProvidersConfiguredError(ConfigurationError, ProviderUnavailableError):
    """Raised when the provider priority list is empty."""

    def __init__(self, message: str = "No analysis providers configured") -> None:
        ProviderUnavailableError.__init__(self, message, tried=())


class ProviderError(PromptAuditError):
    """Raised when a provider call fails.

    Carries the provider name and, for HTTP failures, the status code so that
    callers can report or classify the failure without parsing messages.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class TransientProviderError(ProviderError):
    """Network failures, timeouts, rate limiting and server errors."""


class FatalProviderError(ProviderError):
    """Failures that a retry cannot fix."""


class AuthenticationError(FatalProviderError):
    """Raised when the provider rejects the credentials."""


class MalformedResponseError(FatalProviderError):
    """Raised when a provider response cannot be parsed into a result."""


class CacheError(PromptAuditError):
    """Raised when the result cache cannot be read or written."""


class ExitCode(IntEnum):
    """Process exit codes for command line front ends."""

    SUCCESS = 0
    ERROR = 1
    NO_DATA = 2
    PROVIDER_UNAVAILABLE = 3


def exit_code_for(exc: BaseException) -> ExitCode:
    """Map an exception raised by the engine to a process exit code."""
    if isinstance(exc, ConfigurationError | ProviderUnavailableError):
        return ExitCode.PROVIDER_UNAVAILABLE
    return ExitCode.ERROR
