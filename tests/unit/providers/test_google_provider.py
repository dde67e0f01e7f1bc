import asyncio
import json

from google.genai import errors as genai_errors
import httpx
import pytest

from prompt_audit.exceptions import (
    AuthenticationError,
    FatalProviderError,
    MalformedResponseError,
    TransientProviderError,
)
from prompt_audit.providers.google import GoogleProvider
from prompt_audit.providers.schemas import SYSTEM_PROMPT_FULL
from tests.helpers import make_genai_client

pytestmark = pytest.mark.unit

DATE = "2025-01-15"


def _api_error(code: int, message: str = "error") -> genai_errors.APIError:
    return genai_errors.APIError(code, {"error": {"code": code, "message": message}})


@pytest.mark.asyncio
async def test_without_key_or_client_is_unavailable():
    assert await GoogleProvider("gemini-x", api_key=None).is_available() is False


@pytest.mark.asyncio
async def test_analyze_without_key_raises_authentication_error():
    with pytest.raises(AuthenticationError):
        await GoogleProvider("gemini-x", api_key=None).analyze(["x"], DATE)


@pytest.mark.asyncio
async def test_probe_success_is_available():
    client = make_genai_client(text="ok")
    provider = GoogleProvider("gemini-x", client=client)

    assert await provider.is_available() is True
    kwargs = client.aio.models.generate_content.await_args.kwargs
    assert kwargs["model"] == "gemini-x"
    assert kwargs["config"].max_output_tokens == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(("code", "available"), [(400, True), (429, True), (401, False), (503, False)])
async def test_probe_status_decides_availability(code, available):
    provider = GoogleProvider("gemini-x", client=make_genai_client(side_effect=_api_error(code)))

    assert await provider.is_available() is available


@pytest.mark.asyncio
async def test_probe_network_failure_is_unavailable():
    client = make_genai_client(side_effect=httpx.ConnectError("dns"))

    assert await GoogleProvider("gemini-x", client=client).is_available() is False


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [RuntimeError("backend exploded"), ValueError("bad credentials file")])
async def test_unexpected_sdk_error_means_unavailable(error):
    client = make_genai_client(side_effect=error)

    assert await GoogleProvider("gemini-x", client=client).is_available() is False


@pytest.mark.asyncio
async def test_probe_timeout_is_unavailable():
    async def hang(**kwargs):
        await asyncio.sleep(10)

    client = make_genai_client(side_effect=hang)
    provider = GoogleProvider("gemini-x", client=client, availability_timeout=0.01)

    assert await provider.is_available() is False


@pytest.mark.asyncio
async def test_analyze_parses_reply():
    client = make_genai_client(text=json.dumps({"issues": ["no-goal"], "score": 30}))
    provider = GoogleProvider("gemini-x", client=client)

    result = await provider.analyze(["look at this", "and this"], DATE)

    kwargs = client.aio.models.generate_content.await_args.kwargs
    assert kwargs["config"].system_instruction == SYSTEM_PROMPT_FULL
    assert kwargs["config"].response_mime_type == "application/json"
    assert "2. and this" in kwargs["contents"]
    assert result.patterns[0].id == "no-goal"
    assert result.stats.overall_score == pytest.approx(3.0)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("code", "expected"),
    [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (429, TransientProviderError),
        (500, TransientProviderError),
        (400, FatalProviderError),
    ],
)
async def test_analyze_maps_api_errors(code, expected):
    provider = GoogleProvider("gemini-x", client=make_genai_client(side_effect=_api_error(code)))

    with pytest.raises(expected) as exc_info:
        await provider.analyze(["x"], DATE)

    assert exc_info.value.status_code == code
    assert exc_info.value.provider == "google"


@pytest.mark.asyncio
async def test_analyze_timeout_is_transient():
    async def hang(**kwargs):
        await asyncio.sleep(10)

    provider = GoogleProvider(
        "gemini-x", client=make_genai_client(side_effect=hang), analyze_timeout=0.01
    )

    with pytest.raises(TransientProviderError, match="timed out"):
        await provider.analyze(["x"], DATE)


@pytest.mark.asyncio
async def test_empty_reply_is_malformed():
    provider = GoogleProvider("gemini-x", client=make_genai_client(text=None))

    with pytest.raises(MalformedResponseError):
        await provider.analyze(["x"], DATE)


def test_identity_and_repr_hide_the_key():
    provider = GoogleProvider("gemini-x", api_key="AIza-secret")

    assert provider.name == "google"
    assert provider.identity == "google:gemini-x"
    assert "AIza-secret" not in repr(provider)
