"""The analysis engine entry point.

``AnalysisOrchestrator.run`` ties the pieces together: select a provider,
plan batches for its token budget, then for each batch consult the cache or
call the provider (rate limited, with retry), and finally merge the batch
results and apply the user's rule overrides.
"""

import asyncio
from collections.abc import Callable, Mapping, Sequence
import logging
from typing import Any

from prompt_audit import constants
from prompt_audit.cache.analysis_cache import AnalysisCache
from prompt_audit.client.rate_limiter import RateLimiter
from prompt_audit.client.retry import with_retry
from prompt_audit.config.api import load_config
from prompt_audit.config.types import FrozenConfig, ProviderProfile
from prompt_audit.core.types import (
    AnalysisResult,
    AnalysisStats,
    Batch,
    ProjectContext,
    ProviderType,
    RulesConfig,
)
from prompt_audit.exceptions import CacheError
from prompt_audit.providers.base import AnalysisProvider, SupportsBatchLimits
from prompt_audit.providers.factory import create_provider
from prompt_audit.telemetry import TelemetryContext, TelemetryContextProtocol

from .batching import plan_batches
from .merge import merge_results
from .rules import apply_rules, coerce_rules, warn_unknown_rules
from .selector import FallbackCallback, ProviderFactory, select_provider

log = logging.getLogger(__name__)

type ProgressCallback = Callable[[int, int], None]


def empty_result(date: str) -> AnalysisResult:
    """The result returned when nothing was analyzed."""
    return AnalysisResult(
        date=date,
        patterns=(),
        stats=AnalysisStats(total_prompts=0, prompts_with_issues=0, overall_score=0.0),
        top_suggestion=constants.NO_ISSUES_SUGGESTION,
    )


class AnalysisOrchestrator:
    """Runs analyses against the configured providers.

    One orchestrator owns one rate limiter per cloud provider identity for its
    whole lifetime, so spacing is kept across consecutive ``run`` calls.
    """

    def __init__(
        self,
        config: FrozenConfig,
        *,
        cache: AnalysisCache | None = None,
        provider_factory: ProviderFactory | None = None,
        telemetry: TelemetryContextProtocol | None = None,
        availability_timeout: float = constants.AVAILABILITY_TIMEOUT,
    ) -> None:
        self.config = config
        self._cache = cache or AnalysisCache(
            config.cache_dir, default_ttl=config.cache_ttl_seconds
        )
        self._provider_factory = provider_factory or create_provider
        self._tele = telemetry or TelemetryContext()
        self._availability_timeout = availability_timeout
        self._retry_policy = config.retry_policy()
        self._limiters: dict[str, RateLimiter] = {}

    def _profiles(
        self, priority: Sequence[ProviderType | str] | None
    ) -> list[ProviderProfile]:
        names = self.config.services if priority is None else priority
        return [self.config.profile_for(name) for name in names]

    def _limiter_for(self, profile: ProviderProfile) -> RateLimiter | None:
        if profile.requests_per_minute is None:
            return None
        limiter = self._limiters.get(profile.identity)
        if limiter is None:
            limiter = RateLimiter(profile.requests_per_minute)
            self._limiters[profile.identity] = limiter
        return limiter

    async def run(
        self,
        prompts: Sequence[str],
        date: str,
        *,
        provider_priority: Sequence[ProviderType | str] | None = None,
        on_fallback: FallbackCallback | None = None,
        on_progress: ProgressCallback | None = None,
        no_cache: bool = False,
        context: ProjectContext | None = None,
        rules: RulesConfig | Mapping[str, Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AnalysisResult:
        """Analyze ``prompts`` and return one merged result.

        Args:
            prompts: The prompts to analyze, in order. Must not be empty.
            date: Label for the analyzed period, carried into the result.
            provider_priority: Provider types to try, highest priority first.
                Defaults to ``config.services``.
            on_fallback: Called as ``(skipped, next)`` when a provider is skipped.
            on_progress: Called as ``(batch_index, batch_total)`` before each batch.
            no_cache: Skip cache reads and writes.
            context: Optional project description added to every request.
            rules: Rule overrides; defaults to ``config.rules``.
            cancel_event: Checked between batches. Once set, no new batch
                starts and the merge of the completed batches is returned.

        Raises:
            ValueError: If ``prompts`` is empty.
            NoProvidersConfiguredError: If the priority list is empty.
            ProviderUnavailableError: If no provider is reachable.
            ProviderError: If a batch fails fatally or exhausts its retries.
        """
        if not prompts:
            raise ValueError("prompts: must not be empty")

        active_rules = coerce_rules(self.config.rules if rules is None else rules)
        warn_unknown_rules(active_rules)

        with self._tele("orchestrator.select"):
            provider = await select_provider(
                self._profiles(provider_priority),
                self._provider_factory,
                on_fallback=on_fallback,
                availability_timeout=self._availability_timeout,
            )
        profile = self.config.profile_for(provider.provider_type)

        budget = max(profile.token_budget - self.config.system_overhead_tokens, 1)
        max_prompts = None
        if isinstance(provider, SupportsBatchLimits):
            limits = provider.batch_limits()
            budget = min(budget, limits.max_tokens)
            max_prompts = limits.max_prompts
        batches = plan_batches(prompts, budget, max_prompts_per_batch=max_prompts)
        log.debug(
            "Analyzing %d prompts in %d batch(es) with %s",
            len(prompts),
            len(batches),
            profile.identity,
        )

        results: list[AnalysisResult] = []
        for batch in batches:
            if cancel_event is not None and cancel_event.is_set():
                log.info(
                    "Analysis cancelled after %d of %d batches", len(results), len(batches)
                )
                break
            if on_progress is not None:
                on_progress(batch.index, batch.total)
            with self._tele("orchestrator.batch", index=batch.index, size=len(batch)):
                result = await self._analyze_batch(
                    provider,
                    profile,
                    batch,
                    date,
                    context=context,
                    rules=active_rules,
                    no_cache=no_cache,
                )
            results.append(result)

        if not results:
            return empty_result(date)
        return apply_rules(merge_results(results), active_rules)

    async def _analyze_batch(
        self,
        provider: AnalysisProvider,
        profile: ProviderProfile,
        batch: Batch,
        date: str,
        *,
        context: ProjectContext | None,
        rules: RulesConfig,
        no_cache: bool,
    ) -> AnalysisResult:
        key = None
        if not no_cache:
            key = self._cache.build_key(batch.prompts, profile.identity, date, rules)
            cached = await self._cache_get(key, batch)
            if cached is not None:
                return cached

        limiter = self._limiter_for(profile)

        async def call() -> AnalysisResult:
            return await provider.analyze(batch.prompts, date, context)

        async def attempt() -> AnalysisResult:
            if limiter is None:
                return await call()
            return await limiter.throttle(call)

        result = await with_retry(attempt, self._retry_policy)

        if key is not None:
            try:
                await self._cache.set(key, result, provider=profile.identity)
            except CacheError as e:
                log.warning("Could not cache batch %d: %s", batch.index, e)
        return result

    async def _cache_get(self, key: str, batch: Batch) -> AnalysisResult | None:
        try:
            cached = await self._cache.get(key)
        except CacheError as e:
            log.warning("Cache read failed for batch %d, recomputing: %s", batch.index, e)
            return None
        if cached is None:
            self._tele.count("cache.miss")
            return None
        log.debug("Cache hit for batch %d/%d", batch.index + 1, batch.total)
        self._tele.count("cache.hit")
        return cached


async def run_analysis(
    prompts: Sequence[str],
    date: str,
    *,
    config: FrozenConfig | None = None,
    cache: AnalysisCache | None = None,
    **options: Any,
) -> AnalysisResult:
    """Analyze ``prompts`` with a one-off orchestrator.

    Configuration is resolved from the environment and files when not given.
    ``options`` are passed to ``AnalysisOrchestrator.run``.
    """
    orchestrator = AnalysisOrchestrator(config or load_config(), cache=cache)
    return await orchestrator.run(prompts, date, **options)
