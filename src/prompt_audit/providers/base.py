"""Provider contract and helpers shared by the HTTP backends."""

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
import dataclasses
import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from prompt_audit.client.retry import is_transient_status
from prompt_audit.core.types import AnalysisResult, ProjectContext, ProviderType
from prompt_audit.exceptions import (
    AuthenticationError,
    FatalProviderError,
    MalformedResponseError,
    ProviderError,
    TransientProviderError,
)

log = logging.getLogger(__name__)

# Statuses that prove the service is reachable and the credentials work.
AVAILABLE_STATUSES = frozenset({200, 400, 429})


@runtime_checkable
class AnalysisProvider(Protocol):
    """A remote service able to judge a batch of prompts.

    ``is_available`` fails closed: any problem reads as False. ``analyze``
    fails open: it raises a ``ProviderError`` and never returns a partial
    result.
    """

    name: str
    provider_type: ProviderType
    model: str

    async def is_available(self) -> bool: ...  # noqa: D102

    async def analyze(  # noqa: D102
        self,
        prompts: Sequence[str],
        date: str,
        context: ProjectContext | None = None,
    ) -> AnalysisResult: ...


@dataclasses.dataclass(frozen=True, slots=True)
class BatchLimits:
    """Model-specific batch size limits a provider may impose."""

    max_tokens: int
    max_prompts: int | None = None


@runtime_checkable
class SupportsBatchLimits(Protocol):
    """Providers whose model needs smaller batches than the configured budget."""

    def batch_limits(self) -> BatchLimits: ...  # noqa: D102


class HttpProvider:
    """Shared plumbing for providers that talk plain HTTP through httpx.

    An ``httpx.AsyncClient`` may be injected (tests pass one built on
    ``httpx.MockTransport``); otherwise a short-lived client is opened per call.
    """

    provider_type: ProviderType

    def __init__(self, model: str, *, client: httpx.AsyncClient | None = None) -> None:
        self.model = model
        self._client = client

    @property
    def name(self) -> str:
        return self.provider_type.value

    @property
    def identity(self) -> str:
        return f"{self.provider_type.value}:{self.model}"

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient() as client:
            yield client

    async def _send(
        self,
        method: str,
        url: str,
        *,
        timeout: float,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, mapping transport failures to provider errors."""
        async with self._session() as client:
            try:
                return await client.request(method, url, timeout=timeout, **kwargs)
            except httpx.HTTPError as e:
                raise transport_error(e, provider=self.name) from e

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"{self.name}: response body is not JSON", provider=self.name
            ) from e

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r})"


def build_user_prompt(
    prompts: Sequence[str],
    date: str,
    context: ProjectContext | None = None,
) -> str:
    """Render the user message: an optional project section, then numbered prompts."""
    if not prompts:
        raise ValueError("Cannot build a prompt from an empty batch")

    count = len(prompts)
    plural = "" if count == 1 else "s"
    numbered = "\n\n".join(f"{i}. {prompt}" for i, prompt in enumerate(prompts, 1))

    context_section = ""
    if context is not None and not context.is_empty:
        parts = []
        if context.role:
            parts.append(f"Role: {context.role}")
        if context.project_type:
            parts.append(f"Project Type: {context.project_type}")
        if context.domain:
            parts.append(f"Domain: {context.domain}")
        if context.tech_stack:
            parts.append(f"Tech Stack: {', '.join(context.tech_stack)}")
        if context.guidelines:
            parts.append("Guidelines:\n" + "\n".join(f"- {g}" for g in context.guidelines))
        context_section = "\n\nProject Context:\n" + "\n".join(parts) + "\n"

    return (
        f"Analyze the following {count} prompt{plural} from {date}:{context_section}\n\n"
        f"{numbered}\n\n"
        "Respond with a JSON object following the specified schema."
    )


def error_for_status(status_code: int, message: str, *, provider: str) -> ProviderError:
    """Build the typed error for an unsuccessful HTTP status."""
    if status_code in (401, 403):
        return AuthenticationError(
            f"{provider}: authentication failed ({status_code}): {message}",
            provider=provider,
            status_code=status_code,
        )
    if is_transient_status(status_code):
        return TransientProviderError(
            f"{provider}: HTTP {status_code}: {message}",
            provider=provider,
            status_code=status_code,
        )
    return FatalProviderError(
        f"{provider}: HTTP {status_code}: {message}",
        provider=provider,
        status_code=status_code,
    )


def raise_for_provider_status(response: httpx.Response, *, provider: str) -> None:
    """Like ``raise_for_status`` but raising classified provider errors."""
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        body = response.text[:200] if response.content else ""
        raise error_for_status(
            response.status_code, body or str(e), provider=provider
        ) from e


def transport_error(err: httpx.HTTPError, *, provider: str) -> TransientProviderError:
    """Wrap an httpx transport failure or timeout."""
    kind = "timed out" if isinstance(err, httpx.TimeoutException) else "network error"
    return TransientProviderError(f"{provider}: request {kind}: {err}", provider=provider)
