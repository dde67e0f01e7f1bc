"""Local Ollama model server provider."""

from collections.abc import Sequence
import logging
from typing import Literal

import httpx

from prompt_audit import constants
from prompt_audit.core.types import AnalysisResult, ProjectContext, ProviderType
from prompt_audit.exceptions import MalformedResponseError, ProviderError

from .base import (
    BatchLimits,
    HttpProvider,
    build_user_prompt,
    raise_for_provider_status,
)
from .schemas import SYSTEM_PROMPT_FULL, SYSTEM_PROMPT_MINIMAL, parse_response

log = logging.getLogger(__name__)

type BatchStrategy = Literal["micro", "small", "standard"]

# Exact names first, then substring matches ("llama3.2:latest" -> "llama3.2").
MODEL_STRATEGIES: dict[str, BatchStrategy] = {
    "llama3.2": "micro",
    "phi3:mini": "micro",
    "gemma3:4b": "micro",
    "gemma2:2b": "micro",
    "mistral:7b": "small",
    "llama3:8b": "small",
    "codellama:7b": "small",
    "llama3:70b": "standard",
    "mixtral": "standard",
    "qwen2.5:14b": "standard",
}


# Prompt-content token budget and prompt cap per strategy.
STRATEGY_LIMITS: dict[BatchStrategy, BatchLimits] = {
    "micro": BatchLimits(max_tokens=500, max_prompts=3),
    "small": BatchLimits(max_tokens=1_500, max_prompts=10),
    "standard": BatchLimits(max_tokens=3_000, max_prompts=50),
}


def detect_batch_strategy(model: str) -> BatchStrategy:
    """Guess how capable a local model is from its name; unknown is ``micro``."""
    if model in MODEL_STRATEGIES:
        return MODEL_STRATEGIES[model]
    for pattern, strategy in MODEL_STRATEGIES.items():
        if pattern in model:
            return strategy
    return "micro"


class OllamaProvider(HttpProvider):
    """Talks to ``/api/tags`` and ``/api/generate`` on a local Ollama server."""

    provider_type = ProviderType.OLLAMA

    def __init__(
        self,
        model: str = constants.DEFAULT_OLLAMA_MODEL,
        host: str = constants.DEFAULT_OLLAMA_HOST,
        *,
        client: httpx.AsyncClient | None = None,
        availability_timeout: float = constants.OLLAMA_AVAILABILITY_TIMEOUT,
        analyze_timeout: float = constants.ANALYZE_TIMEOUT,
    ) -> None:
        super().__init__(model, client=client)
        self.host = host.rstrip("/")
        self.availability_timeout = availability_timeout
        self.analyze_timeout = analyze_timeout
        self.strategy = detect_batch_strategy(model)

    @property
    def system_prompt(self) -> str:
        if self.strategy in ("micro", "small"):
            return SYSTEM_PROMPT_MINIMAL
        return SYSTEM_PROMPT_FULL

    def batch_limits(self) -> BatchLimits:
        """Per-batch limits small local models can handle reliably."""
        return STRATEGY_LIMITS[self.strategy]

    async def is_available(self) -> bool:
        """True when the server answers and has the configured model pulled."""
        try:
            response = await self._send(
                "GET", f"{self.host}/api/tags", timeout=self.availability_timeout
            )
            raise_for_provider_status(response, provider=self.name)
            payload = self._json(response)
        except ProviderError as e:
            log.debug("Ollama at %s unavailable: %s", self.host, e)
            return False

        models = payload.get("models", []) if isinstance(payload, dict) else []
        names = {m.get("name", "") for m in models if isinstance(m, dict)}
        found = any(n == self.model or n.startswith(f"{self.model}:") for n in names)
        if not found:
            log.debug("Ollama model %r not installed at %s", self.model, self.host)
        return found

    async def analyze(
        self,
        prompts: Sequence[str],
        date: str,
        context: ProjectContext | None = None,
    ) -> AnalysisResult:
        body = {
            "model": self.model,
            "prompt": build_user_prompt(prompts, date, context),
            "system": self.system_prompt,
            "stream": False,
            "format": "json",
            "options": {"temperature": constants.OLLAMA_TEMPERATURE},
        }
        response = await self._send(
            "POST",
            f"{self.host}/api/generate",
            json=body,
            timeout=self.analyze_timeout,
        )
        raise_for_provider_status(response, provider=self.name)
        payload = self._json(response)

        text = payload.get("response") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise MalformedResponseError(
                "ollama: generate reply has no 'response' text", provider=self.name
            )
        return parse_response(
            text, prompt_count=len(prompts), date=date, provider=self.name
        )
