"""Anthropic Messages API provider."""

from collections.abc import Sequence
import logging
from typing import Any

import httpx

from prompt_audit import constants
from prompt_audit.core.types import AnalysisResult, ProjectContext, ProviderType
from prompt_audit.exceptions import AuthenticationError, MalformedResponseError

from .base import (
    AVAILABLE_STATUSES,
    HttpProvider,
    build_user_prompt,
    raise_for_provider_status,
)
from .schemas import SYSTEM_PROMPT_FULL, parse_response

log = logging.getLogger(__name__)


class AnthropicProvider(HttpProvider):
    provider_type = ProviderType.ANTHROPIC

    def __init__(
        self,
        model: str = constants.DEFAULT_ANTHROPIC_MODEL,
        api_key: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        api_url: str = constants.ANTHROPIC_API_URL,
        availability_timeout: float = constants.CLOUD_AVAILABILITY_TIMEOUT,
        analyze_timeout: float = constants.ANALYZE_TIMEOUT,
    ) -> None:
        super().__init__(model, client=client)
        self._api_key = api_key
        self.api_url = api_url
        self.availability_timeout = availability_timeout
        self.analyze_timeout = analyze_timeout

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key or "",
            "anthropic-version": constants.ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }

    def _body(self, user_prompt: str, max_tokens: int) -> dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": max_tokens,
            "system": SYSTEM_PROMPT_FULL,
            "messages": [{"role": "user", "content": user_prompt}],
        }

    async def is_available(self) -> bool:
        """Probe with a one-token request.

        Rate limiting (429) and request errors (400) still prove the key is
        accepted, so they count as available.
        """
        if not self._api_key:
            log.debug("Anthropic API key not configured")
            return False
        try:
            async with self._session() as client:
                response = await client.post(
                    self.api_url,
                    headers=self._headers(),
                    json=self._body("ping", max_tokens=1),
                    timeout=self.availability_timeout,
                )
        except httpx.HTTPError as e:
            log.debug("Anthropic unavailable: %s", e)
            return False
        return response.status_code in AVAILABLE_STATUSES

    async def analyze(
        self,
        prompts: Sequence[str],
        date: str,
        context: ProjectContext | None = None,
    ) -> AnalysisResult:
        if not self._api_key:
            raise AuthenticationError(
                "anthropic: API key not configured", provider=self.name
            )
        response = await self._send(
            "POST",
            self.api_url,
            headers=self._headers(),
            json=self._body(
                build_user_prompt(prompts, date, context),
                max_tokens=constants.ANTHROPIC_MAX_TOKENS,
            ),
            timeout=self.analyze_timeout,
        )
        raise_for_provider_status(response, provider=self.name)
        payload = self._json(response)

        blocks = payload.get("content") if isinstance(payload, dict) else None
        texts = [
            block.get("text", "")
            for block in blocks or ()
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        if not texts:
            raise MalformedResponseError(
                "anthropic: reply contains no text content", provider=self.name
            )
        if isinstance(payload, dict) and payload.get("stop_reason") == "max_tokens":
            log.debug("Anthropic reply truncated at max_tokens; attempting repair")
        return parse_response(
            "".join(texts), prompt_count=len(prompts), date=date, provider=self.name
        )
