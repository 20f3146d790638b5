"""
Credential providers for genaisdk.

Supports:
- OAuth installed/web applications, with the refresh token cached in a
  ``token.json`` next to ``client_secret.json``
- Application Default Credentials through google-auth
- Custom providers implementing ``AuthProvider``

API keys are not handled here; they are sent as a default header.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

import google.auth
import google.auth.exceptions
import google.auth.transport.requests
import httpx

from .exceptions import (
    AuthenticationError,
    CredentialsNotFoundError,
    TokenRefreshError,
)
from .types import HTTP_OK

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"
TOKEN_EXPIRY_SKEW_SECONDS = 20
DEFAULT_EXPIRES_IN = 3600


class AuthProvider(ABC):
    """Source of authorization headers for outgoing requests.

    Subclass this to plug in a custom credential source. Headers returned by
    ``get_headers`` are only applied when the request does not already carry
    them.
    """

    @abstractmethod
    async def get_headers(self, force_refresh: bool = False) -> dict[str, str]:
        """Return headers that authorize a request.

        Args:
            force_refresh: Fetch a new token even if the cached one looks valid.
        """

    def invalidate(self) -> None:
        """Drop any cached token. Called after the API answers 401."""
        return None

    def configure_scopes(self, scopes: list[str]) -> None:
        """Receive the client's scopes. Providers that need none ignore this."""
        return None


# =============================================================================
# OAuth (client_secret.json + token.json)
# =============================================================================


@dataclass
class OAuthClientSecret:
    client_id: str
    client_secret: str
    token_uri: str = DEFAULT_TOKEN_URI


@dataclass
class OAuthToken:
    access_token: str
    expires_at: float  # Unix timestamp in seconds


def _parse_expiry(value: Any) -> float | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


class OAuthTokenProvider(AuthProvider):
    """OAuth refresh-token credentials stored on disk.

    ``client_secret.json`` is the file downloaded from the Cloud console
    (with an ``installed`` or ``web`` section). ``token.json`` must hold a
    ``refresh_token`` and is rewritten each time the access token is
    refreshed.

    Example:
        >>> provider = OAuthTokenProvider("~/.config/genai/client_secret.json")
        >>> client = Client({"credentials": provider})
    """

    def __init__(
        self,
        client_secret_path: str | Path,
        token_cache_path: str | Path | None = None,
    ) -> None:
        """Load and cross-check both credential files.

        Args:
            client_secret_path: Path to client_secret.json.
            token_cache_path: Path to token.json. Defaults to a token.json
                in the same directory as the client secret.

        Raises:
            CredentialsNotFoundError: If either file does not exist.
            AuthenticationError: If a file is malformed or the two disagree.
        """
        self._client_secret_path = Path(client_secret_path).expanduser()
        if token_cache_path is None:
            self._token_cache_path = self._client_secret_path.with_name("token.json")
        else:
            self._token_cache_path = Path(token_cache_path).expanduser()

        self._client_secret = self._load_client_secret()
        cache = self._load_token_cache()
        self._refresh_token: str = cache["refresh_token"]
        self._token = self._token_from_cache(cache)
        self._refresh_lock = asyncio.Lock()

    @property
    def client_id(self) -> str:
        return self._client_secret.client_id

    @property
    def token_uri(self) -> str:
        return self._client_secret.token_uri

    def _read_json(self, path: Path, missing_message: str | None = None) -> dict[str, Any]:
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise CredentialsNotFoundError(str(path), missing_message) from None
        except json.JSONDecodeError as e:
            raise AuthenticationError(f"Invalid credentials file at {path}: {e}") from e
        if not isinstance(data, dict):
            raise AuthenticationError(f"Invalid credentials file at {path}: expected an object")
        return data

    def _load_client_secret(self) -> OAuthClientSecret:
        path = self._client_secret_path
        data = self._read_json(path)

        section = data.get("installed") or data.get("web")
        if not isinstance(section, dict):
            raise AuthenticationError(
                f"Client secret file at {path} must contain an 'installed' or 'web' section"
            )
        try:
            return OAuthClientSecret(
                client_id=section["client_id"],
                client_secret=section["client_secret"],
                token_uri=section.get("token_uri") or DEFAULT_TOKEN_URI,
            )
        except KeyError as e:
            raise AuthenticationError(f"Client secret file at {path} is missing {e}") from e

    def _load_token_cache(self) -> dict[str, Any]:
        path = self._token_cache_path
        data = self._read_json(
            path,
            f"Token cache not found at {path}. Please generate token.json first.",
        )

        if not data.get("refresh_token"):
            raise AuthenticationError(f"Token cache {path} missing refresh_token")

        client_id = data.get("client_id")
        if client_id is not None and client_id != self._client_secret.client_id:
            raise AuthenticationError("client_id in token.json does not match client_secret.json")
        client_secret = data.get("client_secret")
        if client_secret is not None and client_secret != self._client_secret.client_secret:
            raise AuthenticationError(
                "client_secret in token.json does not match client_secret.json"
            )
        return data

    @staticmethod
    def _token_from_cache(cache: dict[str, Any]) -> OAuthToken | None:
        access_token = cache.get("access_token") or cache.get("token")
        expires_at = _parse_expiry(cache.get("expiry"))
        if not access_token or expires_at is None:
            return None
        return OAuthToken(access_token=access_token, expires_at=expires_at)

    def _save_token(self, token: OAuthToken, expires_in: int) -> None:
        path = self._token_cache_path
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (FileNotFoundError, json.JSONDecodeError):
            data = {}

        expiry = datetime.fromtimestamp(token.expires_at, tz=timezone.utc)
        data["access_token"] = token.access_token
        data["token"] = token.access_token
        data["expires_in"] = expires_in
        data["expiry"] = expiry.isoformat().replace("+00:00", "Z")
        data["refresh_token"] = self._refresh_token
        data.setdefault("client_id", self._client_secret.client_id)

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def _is_token_valid(self, token: OAuthToken) -> bool:
        return time.time() < token.expires_at - TOKEN_EXPIRY_SKEW_SECONDS

    async def _refresh_access_token(self) -> OAuthToken:
        """Exchange the refresh token for a new access token.

        Raises:
            TokenRefreshError: If the token endpoint rejects the request.
        """
        async with self._refresh_lock:
            # Another coroutine may have refreshed while we waited
            if self._token and self._is_token_valid(self._token):
                return self._token

            body_data = {
                "client_id": self._client_secret.client_id,
                "client_secret": self._client_secret.client_secret,
                "refresh_token": self._refresh_token,
                "grant_type": "refresh_token",
            }

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self._client_secret.token_uri,
                        headers={
                            "Content-Type": "application/x-www-form-urlencoded",
                            "Accept": "application/json",
                        },
                        content=urlencode(body_data),
                    )
            except httpx.RequestError as e:
                raise TokenRefreshError(f"Network error during token refresh: {e}") from e

            if response.status_code != HTTP_OK:
                raise TokenRefreshError(
                    f"Token refresh failed: {response.status_code} {response.reason_phrase}",
                    status_code=response.status_code,
                    response_body=response.text,
                )

            try:
                token_data = response.json()
            except json.JSONDecodeError as e:
                raise TokenRefreshError(
                    f"Invalid JSON response from OAuth endpoint: {response.text[:200]}"
                ) from e

            if token_data.get("error"):
                raise TokenRefreshError(
                    f"Token refresh failed: {token_data['error']} - "
                    f"{token_data.get('error_description', 'Unknown error')}"
                )
            if not token_data.get("access_token"):
                raise TokenRefreshError("Token response did not include an access_token")

            expires_in = int(token_data.get("expires_in", DEFAULT_EXPIRES_IN))
            if token_data.get("refresh_token"):
                self._refresh_token = token_data["refresh_token"]

            token = OAuthToken(
                access_token=token_data["access_token"],
                expires_at=time.time() + expires_in,
            )
            self._save_token(token, expires_in)
            self._token = token

            logger.debug("Successfully refreshed OAuth access token")
            return token

    def invalidate(self) -> None:
        self._token = None
        logger.debug("Invalidated cached OAuth access token")

    async def ensure_authenticated(self, force_refresh: bool = False) -> str:
        """Return a valid access token, refreshing it when needed.

        Args:
            force_refresh: Discard the cached token first.
        """
        if force_refresh:
            self.invalidate()
        if self._token and self._is_token_valid(self._token):
            return self._token.access_token
        token = await self._refresh_access_token()
        return token.access_token

    async def get_headers(self, force_refresh: bool = False) -> dict[str, str]:
        access_token = await self.ensure_authenticated(force_refresh=force_refresh)
        return {"Authorization": f"Bearer {access_token}"}


# =============================================================================
# Application Default Credentials
# =============================================================================


class ApplicationDefaultProvider(AuthProvider):
    """Application Default Credentials resolved by google-auth.

    Credentials are discovered lazily on the first request. google-auth is
    blocking, so discovery and refresh run in a worker thread.
    """

    def __init__(
        self,
        scopes: list[str] | None = None,
        *,
        credentials: Any = None,
    ) -> None:
        """
        Args:
            scopes: OAuth scopes. When omitted the client's defaults apply.
            credentials: A pre-built ``google.auth.credentials.Credentials``.
        """
        self._scopes = list(scopes) if scopes else None
        self._credentials = credentials
        self._project_id: str | None = None
        self._stale = False
        self._lock = asyncio.Lock()

    @property
    def scopes(self) -> list[str] | None:
        return self._scopes

    @property
    def project_id(self) -> str | None:
        return self._project_id

    def configure_scopes(self, scopes: list[str]) -> None:
        if self._scopes is None:
            self._scopes = list(scopes)

    def _load_credentials(self) -> Any:
        try:
            credentials, project_id = google.auth.default(scopes=self._scopes)
        except google.auth.exceptions.DefaultCredentialsError as e:
            raise AuthenticationError(f"Application Default Credentials not available: {e}") from e
        self._project_id = project_id
        return credentials

    def invalidate(self) -> None:
        self._stale = True

    async def get_headers(self, force_refresh: bool = False) -> dict[str, str]:
        async with self._lock:
            if self._credentials is None:
                self._credentials = await asyncio.to_thread(self._load_credentials)
            credentials = self._credentials

            if force_refresh or self._stale or not credentials.valid:
                request = google.auth.transport.requests.Request()
                try:
                    await asyncio.to_thread(credentials.refresh, request)
                except google.auth.exceptions.RefreshError as e:
                    raise TokenRefreshError(f"Failed to refresh ADC token: {e}") from e
                self._stale = False
                logger.debug("Refreshed Application Default Credentials")

        headers = {"Authorization": f"Bearer {credentials.token}"}
        quota_project = getattr(credentials, "quota_project_id", None)
        if quota_project:
            headers["x-goog-user-project"] = quota_project
        return headers
