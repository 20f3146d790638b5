"""Tests for the HTTP backend: headers, error mapping, retry and auth refresh."""

from __future__ import annotations

import json

import httpx
import pytest
from respx import MockRouter
from tenacity import RetryCallState, wait_fixed

from genaisdk import (
    APIError,
    Client,
    ConnectionError,
    GenerateContentConfig,
    HttpOptions,
    HttpRetryOptions,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    TimeoutError,
)
from genaisdk.backend import build_retrying, wait_capped

from conftest import StaticTokenProvider

GEMINI = "https://generativelanguage.googleapis.com/v1beta"
VERTEX = "https://us-central1-aiplatform.googleapis.com/v1beta1"
PARENT = "projects/test-project/locations/us-central1"
MODEL_URL = f"{GEMINI}/models/gemini-2.5-flash"
GENERATE_URL = f"{MODEL_URL}:generateContent"

TEXT_RESPONSE = {"candidates": [{"content": {"role": "model", "parts": [{"text": "ok"}]}}]}
NO_DELAY = HttpRetryOptions(attempts=3, initial_delay=0, max_delay=0, jitter=0)


def _error(
    code: int, message: str, status: str, headers: dict[str, str] | None = None
) -> httpx.Response:
    return httpx.Response(
        code,
        json={"error": {"code": code, "message": message, "status": status}},
        headers=headers,
    )


class TestHeaders:
    async def test_api_key_and_client_headers(self, client: Client, respx_mock: MockRouter) -> None:
        route = respx_mock.get(MODEL_URL).mock(return_value=httpx.Response(200, json={}))

        await client.models.get("gemini-2.5-flash")

        headers = route.calls[0].request.headers
        assert headers["x-goog-api-key"] == "test-key"
        assert headers["user-agent"].startswith("genaisdk/")
        assert headers["x-goog-api-client"].startswith("genaisdk/")
        assert "authorization" not in headers

    async def test_vertex_uses_bearer_token(
        self, vertex_client: Client, respx_mock: MockRouter
    ) -> None:
        url = f"{VERTEX}/{PARENT}/publishers/google/models/gemini-2.5-flash"
        route = respx_mock.get(url).mock(return_value=httpx.Response(200, json={}))

        await vertex_client.models.get("gemini-2.5-flash")

        headers = route.calls[0].request.headers
        assert headers["authorization"] == "Bearer test-token"
        assert "x-goog-api-key" not in headers

    async def test_request_http_options_are_merged(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        route = respx_mock.post(GENERATE_URL).mock(
            return_value=httpx.Response(200, json=TEXT_RESPONSE)
        )
        config = GenerateContentConfig(
            http_options=HttpOptions(
                headers={"x-trace-id": "abc"},
                extra_body={"labels": {"team": "ml"}},
            )
        )

        await client.models.generate_content("gemini-2.5-flash", "Hi", config)

        request = route.calls[0].request
        assert request.headers["x-trace-id"] == "abc"
        assert request.headers["x-goog-api-key"] == "test-key"
        assert json.loads(request.content)["labels"] == {"team": "ml"}


class TestErrors:
    async def test_not_found(self, client: Client, respx_mock: MockRouter) -> None:
        respx_mock.get(MODEL_URL).mock(return_value=_error(404, "no such model", "NOT_FOUND"))

        with pytest.raises(NotFoundError) as exc_info:
            await client.models.get("gemini-2.5-flash")

        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == "Not found: no such model"
        assert exc_info.value.endpoint == MODEL_URL

    async def test_rate_limit_reads_retry_after(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        respx_mock.get(MODEL_URL).mock(
            return_value=_error(429, "quota", "RESOURCE_EXHAUSTED", {"retry-after": "7"})
        )

        with pytest.raises(RateLimitError) as exc_info:
            await client.models.get("gemini-2.5-flash")

        assert exc_info.value.retry_after == 7
        assert str(exc_info.value) == "Rate limit exceeded: quota"

    async def test_permission_denied(self, client: Client, respx_mock: MockRouter) -> None:
        respx_mock.get(MODEL_URL).mock(return_value=_error(403, "denied", "PERMISSION_DENIED"))

        with pytest.raises(PermissionDeniedError, match="Permission denied: denied"):
            await client.models.get("gemini-2.5-flash")

    async def test_other_status_keeps_status_string(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        respx_mock.get(MODEL_URL).mock(return_value=_error(500, "boom", "INTERNAL"))

        with pytest.raises(APIError) as exc_info:
            await client.models.get("gemini-2.5-flash")

        assert exc_info.value.status_code == 500
        assert exc_info.value.status == "INTERNAL"
        assert str(exc_info.value) == "API error: boom"

    async def test_plain_text_error_body(self, client: Client, respx_mock: MockRouter) -> None:
        respx_mock.get(MODEL_URL).mock(return_value=httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(APIError) as exc_info:
            await client.models.get("gemini-2.5-flash")

        assert str(exc_info.value) == "API error: Bad Gateway"
        assert exc_info.value.response_body == "Bad Gateway"

    async def test_transport_failure(self, client: Client, respx_mock: MockRouter) -> None:
        respx_mock.get(MODEL_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(ConnectionError) as exc_info:
            await client.models.get("gemini-2.5-flash")

        assert exc_info.value.endpoint == MODEL_URL

    async def test_timeout(self, client: Client, respx_mock: MockRouter) -> None:
        respx_mock.get(MODEL_URL).mock(side_effect=httpx.ReadTimeout("slow"))

        with pytest.raises(TimeoutError):
            await client.models.get("gemini-2.5-flash")


class TestRetry:
    async def test_no_retry_by_default(self, client: Client, respx_mock: MockRouter) -> None:
        route = respx_mock.get(MODEL_URL).mock(return_value=httpx.Response(503))

        with pytest.raises(APIError):
            await client.models.get("gemini-2.5-flash")

        assert route.call_count == 1

    async def test_retries_retryable_status(self, respx_mock: MockRouter) -> None:
        route = respx_mock.get(MODEL_URL).mock(
            side_effect=[
                httpx.Response(503),
                httpx.Response(503),
                httpx.Response(200, json={"name": "models/gemini-2.5-flash"}),
            ]
        )

        async with Client(
            {"api_key": "test-key", "http_options": HttpOptions(retry_options=NO_DELAY)}
        ) as client:
            model = await client.models.get("gemini-2.5-flash")

        assert model.name == "models/gemini-2.5-flash"
        assert route.call_count == 3

    async def test_gives_up_after_attempts(self, respx_mock: MockRouter) -> None:
        route = respx_mock.get(MODEL_URL).mock(return_value=httpx.Response(503))

        async with Client(
            {"api_key": "test-key", "http_options": HttpOptions(retry_options=NO_DELAY)}
        ) as client:
            with pytest.raises(APIError) as exc_info:
                await client.models.get("gemini-2.5-flash")

        assert exc_info.value.status_code == 503
        assert route.call_count == 3

    async def test_does_not_retry_client_errors(self, respx_mock: MockRouter) -> None:
        route = respx_mock.get(MODEL_URL).mock(
            return_value=_error(400, "bad request", "INVALID_ARGUMENT")
        )

        async with Client(
            {"api_key": "test-key", "http_options": HttpOptions(retry_options=NO_DELAY)}
        ) as client:
            with pytest.raises(APIError):
                await client.models.get("gemini-2.5-flash")

        assert route.call_count == 1

    async def test_retries_transport_errors(self, respx_mock: MockRouter) -> None:
        route = respx_mock.get(MODEL_URL).mock(
            side_effect=[httpx.ConnectError("reset"), httpx.Response(200, json={})]
        )

        async with Client(
            {"api_key": "test-key", "http_options": HttpOptions(retry_options=NO_DELAY)}
        ) as client:
            await client.models.get("gemini-2.5-flash")

        assert route.call_count == 2

    async def test_request_timeout_is_converted_from_milliseconds(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        route = respx_mock.get(MODEL_URL).mock(return_value=httpx.Response(200, json={}))

        await client.models.get("gemini-2.5-flash", http_options=HttpOptions(timeout_ms=1500))

        assert route.calls[0].request.extensions["timeout"]["read"] == 1.5


class TestRetryWait:
    @pytest.mark.parametrize("attempt", range(1, 10))
    def test_jitter_never_exceeds_max_delay(self, attempt: int) -> None:
        retrying = build_retrying(HttpRetryOptions(initial_delay=2, max_delay=3, jitter=5))
        state = RetryCallState(retrying, fn=None, args=(), kwargs={})
        state.attempt_number = attempt

        assert 0 <= retrying.wait(state) <= 3

    def test_delay_grows_exponentially_below_the_cap(self) -> None:
        retrying = build_retrying(
            HttpRetryOptions(initial_delay=0.5, max_delay=10, exp_base=2, jitter=0)
        )
        state = RetryCallState(retrying, fn=None, args=(), kwargs={})

        delays = []
        for attempt in (1, 2, 3, 6):
            state.attempt_number = attempt
            delays.append(retrying.wait(state))

        assert delays == [0.5, 1.0, 2.0, 10]

    def test_capped_wait(self) -> None:
        state = RetryCallState(None, fn=None, args=(), kwargs={})

        assert wait_capped(wait_fixed(7), 4)(state) == 4
        assert wait_capped(wait_fixed(2), 4)(state) == 2


class TestAuthRefresh:
    async def test_unauthorized_is_retried_with_fresh_token(
        self,
        vertex_client: Client,
        credentials: StaticTokenProvider,
        respx_mock: MockRouter,
    ) -> None:
        url = f"{VERTEX}/{PARENT}/publishers/google/models/gemini-2.5-flash"
        route = respx_mock.get(url).mock(
            side_effect=[httpx.Response(401), httpx.Response(200, json={"name": "m"})]
        )

        model = await vertex_client.models.get("gemini-2.5-flash")

        assert model.name == "m"
        assert route.call_count == 2
        assert credentials.invalidated == 1
        assert credentials.refresh_flags == [False, True]

    async def test_second_rejection_is_raised(
        self,
        vertex_client: Client,
        credentials: StaticTokenProvider,
        respx_mock: MockRouter,
    ) -> None:
        url = f"{VERTEX}/{PARENT}/publishers/google/models/gemini-2.5-flash"
        route = respx_mock.get(url).mock(return_value=_error(403, "nope", "PERMISSION_DENIED"))

        with pytest.raises(PermissionDeniedError):
            await vertex_client.models.get("gemini-2.5-flash")

        assert route.call_count == 2
        assert credentials.invalidated == 1

    async def test_api_key_requests_are_not_retried(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        route = respx_mock.get(MODEL_URL).mock(return_value=httpx.Response(401))

        with pytest.raises(APIError) as exc_info:
            await client.models.get("gemini-2.5-flash")

        assert exc_info.value.status_code == 401
        assert route.call_count == 1
