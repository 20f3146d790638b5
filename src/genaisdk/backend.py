"""
HTTP backend shared by every genaisdk service.

Features:
- Gemini API and Vertex AI endpoint resolution
- API key, OAuth and Application Default Credentials headers
- Configurable transport-level retry (tenacity)
- Server-sent event streaming
- Uniform mapping of error responses to APIError subclasses
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.wait import wait_base

from ._common import merge_extra_body, parse_json
from .auth import ApplicationDefaultProvider, AuthProvider
from .exceptions import (
    APIError,
    ConfigurationError,
    ConnectionError,
    GenAISDKError,
    TimeoutError,
    api_error_for_status,
)
from .sse import iter_sse_json
from .types import (
    GEMINI_API_VERSION,
    GEMINI_BASE_URL,
    GEMINI_SCOPES,
    HTTP_FORBIDDEN,
    HTTP_UNAUTHORIZED,
    VERTEX_API_VERSION,
    VERTEX_GLOBAL_BASE_URL,
    VERTEX_SCOPES,
    Backend,
    ClientOptions,
    HttpOptions,
    HttpRetryOptions,
)

logger = logging.getLogger(__name__)

SDK_VERSION = "0.1.0"
DEFAULT_USER_AGENT = f"genaisdk/{SDK_VERSION}"
API_KEY_HEADER = "x-goog-api-key"
API_CLIENT_HEADER = "x-goog-api-client"
MCP_LABEL = "mcp_used/unknown"

# Retried once with a fresh token when credentials are in use
AUTH_RETRY_STATUS_CODES = frozenset({HTTP_UNAUTHORIZED, HTTP_FORBIDDEN})

DEFAULT_RETRY_ATTEMPTS = 5
DEFAULT_RETRY_INITIAL_DELAY = 1.0
DEFAULT_RETRY_MAX_DELAY = 60.0
DEFAULT_RETRY_EXP_BASE = 2.0
DEFAULT_RETRY_JITTER = 1.0
DEFAULT_RETRY_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

_HEADER_NAME = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_PROXY_SCHEMES = frozenset({"http", "https", "socks5", "socks5h"})


# =============================================================================
# Client Configuration
# =============================================================================


@dataclass
class ClientConfig:
    """Resolved client configuration."""

    backend: Backend
    base_url: str
    api_version: str
    api_key: str | None = None
    project: str | None = None
    location: str | None = None
    credentials: AuthProvider | None = None
    headers: dict[str, str] = field(default_factory=dict)
    http_options: HttpOptions | None = None
    timeout: float | None = None
    proxy: str | None = None
    scopes: list[str] = field(default_factory=list)

    @property
    def is_vertex(self) -> bool:
        return self.backend == Backend.VERTEX_AI


def normalize_base_url(url: str) -> str:
    url = url.strip()
    if not url.endswith("/"):
        url += "/"
    return url


def default_base_url(backend: Backend, location: str | None) -> str:
    if backend == Backend.GEMINI_API:
        return GEMINI_BASE_URL
    if not location or location == "global":
        return VERTEX_GLOBAL_BASE_URL
    return f"https://{location}-aiplatform.googleapis.com/"


def validate_header(name: str, value: str) -> None:
    """Reject header names and values httpx would refuse or misframe."""
    if not _HEADER_NAME.match(name):
        raise ConfigurationError(f"Invalid header name: {name}", config_key="headers")
    if not isinstance(value, str) or any(ch in value for ch in "\r\n\0"):
        raise ConfigurationError(f"Invalid header value for {name}", config_key="headers")


def _validate_proxy(proxy: str) -> None:
    try:
        url = httpx.URL(proxy)
    except httpx.InvalidURL as e:
        raise ConfigurationError(f"Invalid proxy: {e}", config_key="proxy") from e
    if url.scheme not in _PROXY_SCHEMES or not url.host:
        raise ConfigurationError(f"Invalid proxy: {proxy}", config_key="proxy")


def _non_blank(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


def resolve_config(options: ClientOptions) -> ClientConfig:
    """Validate client options and fill in backend defaults.

    Raises:
        ConfigurationError: If the options are inconsistent.
    """
    api_key = _non_blank(options.get("api_key"))
    project = _non_blank(options.get("project"))
    location = _non_blank(options.get("location"))
    credentials: AuthProvider | None = options.get("credentials")

    backend = options.get("backend")
    if backend is None:
        backend = Backend.VERTEX_AI if project or location else Backend.GEMINI_API

    if api_key and credentials is not None:
        raise ConfigurationError(
            "API key cannot be combined with OAuth/ADC credentials", config_key="credentials"
        )

    if backend == Backend.VERTEX_AI:
        if not project or not location:
            raise ConfigurationError("Project and location required for Vertex AI", "project")
        if api_key:
            raise ConfigurationError(
                "Vertex AI does not support API key authentication", config_key="api_key"
            )
        if credentials is None:
            credentials = ApplicationDefaultProvider()
    elif not api_key and credentials is None:
        raise ConfigurationError(
            "API key or OAuth credentials required for Gemini API", config_key="api_key"
        )

    scopes = list(options.get("scopes") or [])
    if not scopes:
        scopes = list(VERTEX_SCOPES if backend == Backend.VERTEX_AI else GEMINI_SCOPES)
    if credentials is not None:
        credentials.configure_scopes(scopes)

    http_options = options.get("http_options")
    base_url = default_base_url(backend, location)
    api_version = GEMINI_API_VERSION if backend == Backend.GEMINI_API else VERTEX_API_VERSION
    if http_options is not None:
        if http_options.base_url:
            base_url = http_options.base_url
        if http_options.api_version:
            api_version = http_options.api_version

    headers = httpx.Headers()
    for source in (options.get("headers"), http_options.headers if http_options else None):
        for name, value in (source or {}).items():
            validate_header(name, value)
            headers[name] = value
    if "user-agent" not in headers:
        headers["user-agent"] = DEFAULT_USER_AGENT
    if API_CLIENT_HEADER not in headers:
        headers[API_CLIENT_HEADER] = DEFAULT_USER_AGENT
    if backend == Backend.GEMINI_API and api_key and API_KEY_HEADER not in headers:
        validate_header(API_KEY_HEADER, api_key)
        headers[API_KEY_HEADER] = api_key

    proxy = _non_blank(options.get("proxy"))
    if proxy:
        _validate_proxy(proxy)

    return ClientConfig(
        backend=backend,
        base_url=normalize_base_url(base_url),
        api_version=api_version,
        api_key=api_key,
        project=project,
        location=location,
        credentials=credentials,
        headers=dict(headers.items()),
        http_options=http_options,
        timeout=options.get("timeout"),
        proxy=proxy,
        scopes=scopes,
    )


# =============================================================================
# Retry
# =============================================================================


class wait_capped(wait_base):
    """Caps the delay of another wait strategy, jitter included."""

    def __init__(self, inner: wait_base, maximum: float) -> None:
        self.inner = inner
        self.maximum = maximum

    def __call__(self, retry_state: RetryCallState) -> float:
        return max(0.0, min(self.inner(retry_state), self.maximum))


def build_retrying(options: HttpRetryOptions) -> AsyncRetrying:
    """Translate HttpRetryOptions into a tenacity controller.

    ``attempts`` counts total tries. The exponential delay plus jitter never
    exceeds ``max_delay``.
    """
    attempts = options.attempts if options.attempts is not None else DEFAULT_RETRY_ATTEMPTS
    codes = (
        frozenset(options.http_status_codes)
        if options.http_status_codes is not None
        else DEFAULT_RETRY_STATUS_CODES
    )
    initial = (
        options.initial_delay if options.initial_delay is not None else DEFAULT_RETRY_INITIAL_DELAY
    )
    max_delay = options.max_delay if options.max_delay is not None else DEFAULT_RETRY_MAX_DELAY
    exp_base = options.exp_base if options.exp_base is not None else DEFAULT_RETRY_EXP_BASE
    jitter = options.jitter if options.jitter is not None else DEFAULT_RETRY_JITTER

    def is_retryable(exc: BaseException) -> bool:
        return isinstance(exc, GenAISDKError) and exc.is_retryable(codes)

    return AsyncRetrying(
        stop=stop_after_attempt(max(attempts, 1)),
        wait=wait_capped(
            wait_exponential(multiplier=initial, exp_base=exp_base) + wait_random(0, jitter),
            max_delay,
        ),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        reraise=True,
    )


# =============================================================================
# HTTP Backend
# =============================================================================


class HttpBackend:
    """Sends requests on behalf of the service modules.

    One backend is shared by all services of a Client, so they reuse a
    single connection pool.

    Example:
        >>> backend = HttpBackend(resolve_config({"api_key": "..."}))
        >>> response = await backend.request("GET", backend.url("models"))
    """

    def __init__(
        self,
        config: ClientConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._client = http_client
        self._owns_client = http_client is None
        self._mcp_used = False

    async def __aenter__(self) -> HttpBackend:
        self._get_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def backend(self) -> Backend:
        return self._config.backend

    @property
    def is_vertex(self) -> bool:
        return self._config.is_vertex

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self._config.proxy:
                kwargs["proxy"] = self._config.proxy
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                **kwargs,
            )
            self._owns_client = True
        return self._client

    def mark_mcp_used(self) -> None:
        """Tag subsequent requests as using MCP tools."""
        self._mcp_used = True

    # -------------------------------------------------------------------------
    # URLs
    # -------------------------------------------------------------------------

    def base_url(self, http_options: HttpOptions | None = None) -> str:
        if http_options is not None and http_options.base_url:
            return normalize_base_url(http_options.base_url)
        return self._config.base_url

    def api_version(self, http_options: HttpOptions | None = None) -> str:
        if http_options is not None and http_options.api_version:
            return http_options.api_version
        return self._config.api_version

    def url(self, path: str, http_options: HttpOptions | None = None) -> str:
        """Build ``{base_url}{api_version}/{path}``."""
        base = self.base_url(http_options)
        return f"{base}{self.api_version(http_options)}/{path.lstrip('/')}"

    def upload_url(self, path: str, http_options: HttpOptions | None = None) -> str:
        base = self.base_url(http_options)
        return f"{base}upload/{self.api_version(http_options)}/{path.lstrip('/')}"

    def vertex_parent(self) -> str:
        return f"projects/{self._config.project}/locations/{self._config.location}"

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    def _merge_http_options(self, http_options: HttpOptions | None) -> HttpOptions:
        default = self._config.http_options
        if http_options is None:
            return default or HttpOptions()
        if default is None:
            return http_options

        headers = {**(default.headers or {}), **(http_options.headers or {})}
        return HttpOptions(
            base_url=http_options.base_url or default.base_url,
            api_version=http_options.api_version or default.api_version,
            headers=headers or None,
            timeout_ms=(
                http_options.timeout_ms
                if http_options.timeout_ms is not None
                else default.timeout_ms
            ),
            extra_body=(
                http_options.extra_body
                if http_options.extra_body is not None
                else default.extra_body
            ),
            retry_options=http_options.retry_options or default.retry_options,
        )

    async def _build_headers(
        self,
        headers: dict[str, str] | None,
        http_options: HttpOptions,
        force_refresh: bool = False,
    ) -> httpx.Headers:
        result = httpx.Headers(self._config.headers)
        for name, value in (http_options.headers or {}).items():
            validate_header(name, value)
            result[name] = value
        if headers:
            result.update(headers)

        if self._mcp_used:
            client_header = result.get(API_CLIENT_HEADER, "")
            if MCP_LABEL not in client_header:
                result[API_CLIENT_HEADER] = f"{client_header} {MCP_LABEL}".strip()

        credentials = self._config.credentials
        if credentials is not None:
            auth_headers = await credentials.get_headers(force_refresh=force_refresh)
            for name, value in auth_headers.items():
                if name not in result:
                    result[name] = value
        return result

    async def _send(
        self,
        method: str,
        url: str,
        *,
        http_options: HttpOptions,
        json: Any = None,
        params: dict[str, Any] | None = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        stream: bool = False,
        _retry_count: int = 0,
    ) -> httpx.Response:
        """Send one request, retrying once with a fresh token on 401/403."""
        request_headers = await self._build_headers(
            headers, http_options, force_refresh=_retry_count > 0
        )
        timeout: Any = httpx.USE_CLIENT_DEFAULT
        if http_options.timeout_ms is not None:
            timeout = httpx.Timeout(http_options.timeout_ms / 1000)

        client = self._get_client()
        request = client.build_request(
            method,
            url,
            json=json,
            params=params,
            content=content,
            headers=request_headers,
            timeout=timeout,
        )
        logger.debug(f"{method} {request.url}")

        try:
            response = await client.send(request, stream=stream)
        except httpx.TimeoutException as e:
            raise TimeoutError(f"Request to {url} timed out: {e}") from e
        except httpx.RequestError as e:
            raise ConnectionError(f"Request to {url} failed: {e}", endpoint=url) from e

        credentials = self._config.credentials
        if (
            response.status_code in AUTH_RETRY_STATUS_CODES
            and credentials is not None
            and _retry_count == 0
        ):
            await response.aclose()
            credentials.invalidate()
            return await self._send(
                method,
                url,
                http_options=http_options,
                json=json,
                params=params,
                content=content,
                headers=headers,
                stream=stream,
                _retry_count=1,
            )

        if response.is_error:
            if stream:
                await response.aread()
                await response.aclose()
            raise self._error_from_response(response)
        return response

    async def _send_with_retry(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        http_options: HttpOptions = kwargs["http_options"]
        if http_options.retry_options is None:
            return await self._send(method, url, **kwargs)

        async for attempt in build_retrying(http_options.retry_options):
            with attempt:
                response = await self._send(method, url, **kwargs)
        return response

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        http_options: HttpOptions | None = None,
    ) -> httpx.Response:
        """Send a request and return the successful response.

        Raises:
            APIError: On a non-2xx status, refined to RateLimitError,
                PermissionDeniedError or NotFoundError where applicable.
            ConnectionError: If the transport fails.
            TimeoutError: If the request times out.
        """
        options = self._merge_http_options(http_options)
        if isinstance(json, dict):
            json = merge_extra_body(json, options)
        return await self._send_with_retry(
            method,
            url,
            http_options=options,
            json=json,
            params=params,
            content=content,
            headers=headers,
        )

    async def request_json(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> tuple[dict[str, Any], httpx.Response]:
        """Like ``request`` but also decode the JSON body."""
        response = await self.request(method, url, **kwargs)
        return parse_json(response), response

    async def stream(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        http_options: HttpOptions | None = None,
    ) -> AsyncGenerator[tuple[dict[str, Any], dict[str, str]], None]:
        """Stream a server-sent event response.

        Yields:
            Each decoded JSON payload with the response headers.
        """
        options = self._merge_http_options(http_options)
        if isinstance(json, dict):
            json = merge_extra_body(json, options)

        response = await self._send_with_retry(
            method,
            url,
            http_options=options,
            json=json,
            params=params,
            stream=True,
        )
        headers = dict(response.headers)
        try:
            async for payload in iter_sse_json(response.aiter_bytes()):
                yield payload, headers
        finally:
            await response.aclose()

    def _error_from_response(self, response: httpx.Response) -> APIError:
        return api_error_for_status(
            response.status_code,
            response.text,
            reason=response.reason_phrase,
            endpoint=str(response.request.url),
            retry_after=response.headers.get("retry-after"),
        )

    async def close(self) -> None:
        """Close the HTTP client if this backend created it."""
        if self._owns_client and self._client:
            await self._client.aclose()
        self._client = None
