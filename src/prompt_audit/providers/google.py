"""Google Gemini provider built on the google-genai SDK."""

import asyncio
from collections.abc import Sequence
import logging
from typing import Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
import httpx

from prompt_audit import constants
from prompt_audit.core.types import AnalysisResult, ProjectContext, ProviderType
from prompt_audit.exceptions import (
    AuthenticationError,
    MalformedResponseError,
    TransientProviderError,
)

from .base import AVAILABLE_STATUSES, build_user_prompt, error_for_status, transport_error
from .schemas import SYSTEM_PROMPT_FULL, parse_response

log = logging.getLogger(__name__)


class GoogleProvider:
    """Calls ``generate_content`` on the async genai client.

    A client may be injected; otherwise one is created lazily from the API key.
    """

    provider_type = ProviderType.GOOGLE
    name = ProviderType.GOOGLE.value

    def __init__(
        self,
        model: str = constants.DEFAULT_GOOGLE_MODEL,
        api_key: str | None = None,
        *,
        client: genai.Client | None = None,
        availability_timeout: float = constants.CLOUD_AVAILABILITY_TIMEOUT,
        analyze_timeout: float = constants.ANALYZE_TIMEOUT,
    ) -> None:
        self.model = model
        self._api_key = api_key
        self._client = client
        self.availability_timeout = availability_timeout
        self.analyze_timeout = analyze_timeout

    @property
    def identity(self) -> str:
        return f"{self.provider_type.value}:{self.model}"

    def __repr__(self) -> str:
        return f"GoogleProvider(model={self.model!r})"

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self._api_key:
                raise AuthenticationError(
                    "google: API key not configured", provider=self.name
                )
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def _generate(
        self, contents: str, config: types.GenerateContentConfig, timeout: float
    ) -> Any:
        client = self._get_client()
        return await asyncio.wait_for(
            client.aio.models.generate_content(
                model=self.model, contents=contents, config=config
            ),
            timeout=timeout,
        )

    async def is_available(self) -> bool:
        """Probe with a one-token request; 400 and 429 still count as reachable."""
        if self._client is None and not self._api_key:
            log.debug("Google API key not configured")
            return False
        config = types.GenerateContentConfig(max_output_tokens=1)
        try:
            await self._generate("ping", config, self.availability_timeout)
        except genai_errors.APIError as e:
            log.debug("Google availability probe returned %s", e.code)
            return e.code in AVAILABLE_STATUSES
        except (TimeoutError, httpx.HTTPError) as e:
            log.debug("Google unavailable: %s", e)
            return False
        except Exception as e:
            log.debug("Google availability probe failed: %s", e)
            return False
        return True

    async def analyze(
        self,
        prompts: Sequence[str],
        date: str,
        context: ProjectContext | None = None,
    ) -> AnalysisResult:
        config = types.GenerateContentConfig(
            system_instruction=SYSTEM_PROMPT_FULL,
            response_mime_type="application/json",
        )
        try:
            response = await self._generate(
                build_user_prompt(prompts, date, context), config, self.analyze_timeout
            )
        except genai_errors.APIError as e:
            raise error_for_status(
                e.code, e.message or str(e), provider=self.name
            ) from e
        except TimeoutError as e:
            raise TransientProviderError(
                f"google: request timed out after {self.analyze_timeout}s",
                provider=self.name,
            ) from e
        except httpx.HTTPError as e:
            raise transport_error(e, provider=self.name) from e

        text = getattr(response, "text", None)
        if not text:
            raise MalformedResponseError(
                "google: reply contains no text", provider=self.name
            )
        return parse_response(
            text, prompt_count=len(prompts), date=date, provider=self.name
        )
