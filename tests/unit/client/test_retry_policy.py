from unittest.mock import AsyncMock, patch

import httpx
import pytest

from prompt_audit.client.retry import (
    RetryPolicy,
    compute_backoff_delay,
    is_transient_error,
    with_retry,
)
from prompt_audit.exceptions import (
    AuthenticationError,
    FatalProviderError,
    MalformedResponseError,
    ProviderError,
    TransientProviderError,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "err",
    [
        TransientProviderError("overloaded"),
        ProviderError("x", status_code=429),
        ProviderError("x", status_code=503),
        ProviderError("x", status_code=408),
        httpx.ConnectError("refused"),
        httpx.ReadTimeout("slow"),
        TimeoutError(),
        ConnectionResetError(),
        RuntimeError("ECONNRESET by peer"),
        RuntimeError("Service temporarily unavailable"),
    ],
)
def test_transient_errors(err):
    assert is_transient_error(err) is True


@pytest.mark.parametrize(
    "err",
    [
        AuthenticationError("bad key", status_code=401),
        MalformedResponseError("not json"),
        FatalProviderError("network policy violation"),
        ProviderError("x", status_code=400),
        ProviderError("x", status_code=404),
        ValueError("invalid literal"),
    ],
)
def test_fatal_errors(err):
    assert is_transient_error(err) is False


def test_typed_fatal_error_wins_over_transient_looking_message():
    assert is_transient_error(FatalProviderError("connection string rejected")) is False


def test_http_status_error_is_classified_by_status():
    request = httpx.Request("POST", "https://example.invalid")
    error_502 = httpx.HTTPStatusError(
        "bad gateway", request=request, response=httpx.Response(502, request=request)
    )
    error_422 = httpx.HTTPStatusError(
        "unprocessable", request=request, response=httpx.Response(422, request=request)
    )

    assert is_transient_error(error_502) is True
    assert is_transient_error(error_422) is False


def test_backoff_doubles_and_caps():
    policy = RetryPolicy(max_retries=10, base_delay=1.0, max_delay=30.0)

    delays = [compute_backoff_delay(attempt, policy) for attempt in range(10)]

    assert delays == [1, 2, 4, 8, 16, 30, 30, 30, 30, 30]


def test_policy_rejects_negative_values():
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=-1)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=-0.5)


@pytest.mark.asyncio
async def test_success_needs_no_sleep():
    operation = AsyncMock(return_value="ok")

    with patch("asyncio.sleep") as mock_sleep:
        assert await with_retry(operation) == "ok"

    operation.assert_awaited_once()
    mock_sleep.assert_not_called()


@pytest.mark.asyncio
async def test_transient_then_success():
    operation = AsyncMock(side_effect=[TransientProviderError("503"), "ok"])

    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        result = await with_retry(operation, RetryPolicy(base_delay=1.0, max_delay=30.0))

    assert result == "ok"
    assert operation.await_count == 2
    mock_sleep.assert_awaited_once_with(1.0)


@pytest.mark.asyncio
async def test_persistent_transient_failure_exhausts_retries():
    final = TransientProviderError("still down")
    operation = AsyncMock(
        side_effect=[TransientProviderError("down")] * 3 + [final]
    )

    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        with pytest.raises(TransientProviderError) as exc_info:
            await with_retry(operation, RetryPolicy(max_retries=3, base_delay=1.0))

    assert exc_info.value is final
    assert operation.await_count == 4
    assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_fatal_error_is_not_retried():
    error = AuthenticationError("invalid key", status_code=401)
    operation = AsyncMock(side_effect=error)

    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        with pytest.raises(AuthenticationError) as exc_info:
            await with_retry(operation)

    assert exc_info.value is error
    operation.assert_awaited_once()
    mock_sleep.assert_not_called()


@pytest.mark.asyncio
async def test_zero_retries_means_single_attempt():
    operation = AsyncMock(side_effect=TransientProviderError("503"))

    with pytest.raises(TransientProviderError):
        await with_retry(operation, RetryPolicy(max_retries=0))

    operation.assert_awaited_once()


@pytest.mark.asyncio
async def test_custom_classifier_is_honored():
    operation = AsyncMock(side_effect=[KeyError("flaky"), "ok"])
    policy = RetryPolicy(base_delay=0.0, max_delay=0.0, classify=lambda e: isinstance(e, KeyError))

    assert await with_retry(operation, policy) == "ok"
    assert operation.await_count == 2
