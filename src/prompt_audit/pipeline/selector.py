"""Pick the first reachable provider from a priority list."""

import asyncio
from collections.abc import Callable, Sequence
import logging

from prompt_audit.config.types import ProviderProfile
from prompt_audit.constants import AVAILABILITY_TIMEOUT
from prompt_audit.exceptions import (
    NoProvidersConfiguredError,
    ProviderUnavailableError,
)
from prompt_audit.providers.base import AnalysisProvider

log = logging.getLogger(__name__)

type ProviderFactory = Callable[[ProviderProfile], AnalysisProvider]
type FallbackCallback = Callable[[str, str], None]


async def check_available(
    provider: AnalysisProvider, timeout: float = AVAILABILITY_TIMEOUT
) -> bool:
    """Availability check that never raises and never hangs."""
    try:
        async with asyncio.timeout(timeout):
            return bool(await provider.is_available())
    except TimeoutError:
        log.debug("Availability check for %s timed out after %.1fs", provider.name, timeout)
    except Exception as e:
        log.debug("Availability check for %s failed: %s", provider.name, e)
    return False


async def select_provider(
    profiles: Sequence[ProviderProfile],
    factory: ProviderFactory,
    *,
    on_fallback: FallbackCallback | None = None,
    availability_timeout: float = AVAILABILITY_TIMEOUT,
) -> AnalysisProvider:
    """Return the first provider in ``profiles`` whose availability check passes.

    Providers are built lazily, one at a time. Each time a provider is
    skipped and another candidate remains, ``on_fallback(skipped, next)`` is
    called before the next candidate is checked. Nothing is memoized:
    availability is re-checked on every call.

    Raises:
        NoProvidersConfiguredError: If ``profiles`` is empty.
        ProviderUnavailableError: If every candidate is unavailable.
    """
    if not profiles:
        raise NoProvidersConfiguredError()

    tried: list[str] = []
    skipped: AnalysisProvider | None = None
    for profile in profiles:
        provider = factory(profile)
        if skipped is not None and on_fallback is not None:
            on_fallback(skipped.name, provider.name)

        log.debug("Checking availability of %s", profile.identity)
        if await check_available(provider, availability_timeout):
            log.debug("Selected provider %s", profile.identity)
            return provider

        tried.append(profile.identity)
        skipped = provider

    raise ProviderUnavailableError(
        f"No analysis provider is available (tried: {', '.join(tried)})",
        tried=tuple(tried),
    )
