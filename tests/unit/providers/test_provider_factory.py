import pytest

from prompt_audit.config.types import ProviderProfile
from prompt_audit.core.types import ProviderType
from prompt_audit.providers import (
    AnalysisProvider,
    AnthropicProvider,
    GoogleProvider,
    OllamaProvider,
    create_provider,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    ("provider_type", "cls"),
    [
        (ProviderType.OLLAMA, OllamaProvider),
        (ProviderType.ANTHROPIC, AnthropicProvider),
        (ProviderType.GOOGLE, GoogleProvider),
    ],
)
def test_factory_builds_each_provider(provider_type, cls):
    profile = ProviderProfile(provider_type=provider_type, model="m", token_budget=10, api_key="k")

    provider = create_provider(profile)

    assert isinstance(provider, cls)
    assert isinstance(provider, AnalysisProvider)
    assert provider.model == "m"
    assert provider.name == provider_type.value


def test_ollama_host_falls_back_to_default():
    profile = ProviderProfile(provider_type=ProviderType.OLLAMA, model="m", token_budget=10)

    provider = create_provider(profile)

    assert provider.host == "http://localhost:11434"


def test_frozen_config_profiles_feed_the_factory(make_config):
    config = make_config(ollama_host="http://gpu-box:11434/", anthropic_api_key="sk-test")

    ollama = create_provider(config.profile_for("ollama"))
    anthropic = create_provider(config.profile_for("anthropic"))

    assert ollama.host == "http://gpu-box:11434"
    assert anthropic.identity == "anthropic:claude-3-5-haiku-latest"
