"""
Error types raised by genaisdk.

Everything the SDK raises derives from GenAISDKError. An error carries its
message plus a ``details`` dict holding only the fields that were known when
it was raised. Errors also report whether repeating the request could
succeed; the HTTP backend asks them when retry options are configured.
"""

from __future__ import annotations

import json
from collections.abc import Collection, Mapping
from typing import Any

# Cap on raw payload text copied into ``details``
_PAYLOAD_PREVIEW = 500


def _known(**fields: Any) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}


class GenAISDKError(Exception):
    """Base class for genaisdk errors."""

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = _known(**details)

    def is_retryable(self, status_codes: Collection[int]) -> bool:
        """Whether the same request may succeed if sent again.

        Args:
            status_codes: HTTP statuses the caller treats as transient.
        """
        return False


# =============================================================================
# Caller mistakes
# =============================================================================


class ConfigurationError(GenAISDKError):
    """Client options or a request config that the selected backend rejects."""

    def __init__(self, message: str, config_key: str | None = None):
        super().__init__(message, config_key=config_key)
        self.config_key = config_key


class ValidationError(GenAISDKError):
    """Per-call input that fails a local check before anything is sent."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        super().__init__(message, field=field, value=None if value is None else str(value))
        self.field = field
        self.value = value


class ThoughtSignatureError(ValidationError):
    pass


# =============================================================================
# Credentials
# =============================================================================


class AuthenticationError(GenAISDKError):
    """Credentials could not be loaded or produced no usable token."""

    def __init__(self, message: str = "Authentication failed", **details: Any):
        super().__init__(message, **details)


class CredentialsNotFoundError(AuthenticationError):
    def __init__(self, credential_path: str, message: str | None = None):
        super().__init__(
            message or f"No credentials file at {credential_path}",
            credential_path=credential_path,
        )
        self.credential_path = credential_path


class TokenRefreshError(AuthenticationError):
    """The token endpoint refused to issue a new access token.

    ``status_code`` is only set when the endpoint answered with a non-200.
    """

    def __init__(
        self,
        message: str = "Access token refresh failed",
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(
            message,
            status_code=status_code,
            response_body=response_body[:_PAYLOAD_PREVIEW] if response_body else None,
        )
        self.status_code = status_code
        self.response_body = response_body


# =============================================================================
# Transport
# =============================================================================


class ConnectionError(GenAISDKError):
    """No response was received: DNS, TLS, refused or reset connections."""

    def __init__(self, message: str = "Could not reach the API", endpoint: str | None = None):
        super().__init__(message, endpoint=endpoint)
        self.endpoint = endpoint

    def is_retryable(self, status_codes: Collection[int]) -> bool:
        return True


class TimeoutError(GenAISDKError):
    """A request, a poll loop, a live handshake or an MCP call ran out of time."""

    def __init__(self, message: str = "Timed out", timeout: float | None = None):
        super().__init__(message, timeout=timeout)
        self.timeout = timeout

    def is_retryable(self, status_codes: Collection[int]) -> bool:
        return True


class APIError(GenAISDKError):
    """
    The API reported a failure.

    Raised for non-2xx responses, for ``error`` objects embedded in stream
    chunks and for finished operations that carry an error.

    Attributes:
        status_code: HTTP status, or the ``error.code`` of an embedded error.
        status: Canonical status name such as ``RESOURCE_EXHAUSTED``.
        response_body: Raw response text.
        endpoint: Request URL, when known.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        response_body: str | None = None,
        endpoint: str | None = None,
        status: str | None = None,
    ):
        super().__init__(message, status_code=status_code, status=status, endpoint=endpoint)
        self.status_code = status_code
        self.status = status
        self.response_body = response_body
        self.endpoint = endpoint

    def is_retryable(self, status_codes: Collection[int]) -> bool:
        return self.status_code in status_codes

    @classmethod
    def from_error_object(
        cls,
        error: Any,
        *,
        default_message: str = "Unknown API error",
        response_body: str | None = None,
    ) -> APIError:
        """Build an error from a Google ``{"code", "message", "status"}`` object.

        A non-integer or missing code becomes 500.
        """
        if isinstance(error, Mapping):
            code = error.get("code")
            return cls(
                error.get("message") or default_message,
                status_code=code if isinstance(code, int) else 500,
                response_body=response_body if response_body is not None else json.dumps(error),
                status=error.get("status"),
            )
        return cls(str(error) or default_message, status_code=500, response_body=response_body)


class RateLimitError(APIError):
    """429. ``retry_after`` holds the Retry-After header in seconds, if sent."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int | None = None,
        response_body: str | None = None,
        endpoint: str | None = None,
        status: str | None = None,
    ):
        super().__init__(message, 429, response_body, endpoint, status)
        self.retry_after = retry_after
        if retry_after is not None:
            self.details["retry_after"] = retry_after


class PermissionDeniedError(APIError):
    def __init__(
        self,
        message: str = "Permission denied",
        response_body: str | None = None,
        endpoint: str | None = None,
        status: str | None = None,
    ):
        super().__init__(message, 403, response_body, endpoint, status)


class NotFoundError(APIError):
    def __init__(
        self,
        message: str = "Resource not found",
        resource: str | None = None,
        response_body: str | None = None,
        endpoint: str | None = None,
        status: str | None = None,
    ):
        super().__init__(message, 404, response_body, endpoint, status)
        self.resource = resource
        if resource:
            self.details["resource"] = resource


def api_error_for_status(
    status_code: int,
    body: str,
    *,
    reason: str = "",
    endpoint: str | None = None,
    retry_after: str | None = None,
) -> APIError:
    """Map an HTTP error response to the matching APIError subclass.

    The message comes from ``error.message`` when the body is a Google error
    envelope, otherwise from the raw body or the reason phrase.
    """
    message = body or reason
    status = None
    try:
        payload = json.loads(body) if body else None
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        message = payload["error"].get("message") or message
        status = payload["error"].get("status")

    if status_code == 429:
        return RateLimitError(
            f"Rate limit exceeded: {message}",
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            response_body=body,
            endpoint=endpoint,
            status=status,
        )
    if status_code == 403:
        return PermissionDeniedError(
            f"Permission denied: {message}", response_body=body, endpoint=endpoint, status=status
        )
    if status_code == 404:
        return NotFoundError(
            f"Not found: {message}",
            resource=endpoint,
            response_body=body,
            endpoint=endpoint,
            status=status,
        )
    return APIError(f"API error: {message}", status_code, body, endpoint, status)


# =============================================================================
# Payloads
# =============================================================================


class StreamError(GenAISDKError):
    """An event stream could not be framed, for example invalid UTF-8."""

    def __init__(self, message: str, partial_content: str | None = None):
        super().__init__(
            message,
            partial_content=partial_content[:_PAYLOAD_PREVIEW] if partial_content else None,
        )
        self.partial_content = partial_content


class SerializationError(GenAISDKError):
    """A response, upload status or live frame did not have the expected shape."""

    def __init__(self, message: str, payload: str | None = None):
        super().__init__(message, payload=payload[:_PAYLOAD_PREVIEW] if payload else None)
        self.payload = payload


# =============================================================================
# Tools
# =============================================================================


class ToolError(GenAISDKError):
    """Automatic function calling could not dispatch a function call."""

    def __init__(self, message: str, tool_name: str | None = None, **details: Any):
        super().__init__(message, tool_name=tool_name, **details)
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    def __init__(self, tool_name: str, message: str | None = None):
        super().__init__(message or f"No callable tool declares {tool_name}", tool_name)


class ToolExecutionError(ToolError):
    """A tool backend (such as an MCP session) failed while running a call."""

    def __init__(self, message: str, tool_name: str, original_error: Exception | None = None):
        super().__init__(
            message,
            tool_name,
            original_error=repr(original_error) if original_error is not None else None,
        )
        self.original_error = original_error


# =============================================================================
# Live
# =============================================================================


class LiveSessionError(GenAISDKError):
    def __init__(self, message: str, session_id: str | None = None, **details: Any):
        super().__init__(message, session_id=session_id, **details)
        self.session_id = session_id


class SessionClosedError(LiveSessionError):
    def __init__(self, session_id: str | None = None):
        super().__init__("Live session is closed", session_id)
