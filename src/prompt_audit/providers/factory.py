"""Construct provider capabilities from configuration profiles."""

from prompt_audit.config.types import ProviderProfile
from prompt_audit.constants import DEFAULT_OLLAMA_HOST
from prompt_audit.core.types import ProviderType

from .anthropic import AnthropicProvider
from .base import AnalysisProvider
from .google import GoogleProvider
from .ollama import OllamaProvider


def create_provider(profile: ProviderProfile) -> AnalysisProvider:
    """Build the capability for one provider identity.

    Construction never touches the network.
    """
    match profile.provider_type:
        case ProviderType.OLLAMA:
            return OllamaProvider(profile.model, host=profile.host or DEFAULT_OLLAMA_HOST)
        case ProviderType.ANTHROPIC:
            return AnthropicProvider(profile.model, api_key=profile.api_key)
        case ProviderType.GOOGLE:
            return GoogleProvider(profile.model, api_key=profile.api_key)
    raise ValueError(f"Unsupported provider type: {profile.provider_type!r}")
