"""Tests for credential providers."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs

import google.auth
import google.auth.exceptions
import httpx
import pytest
from respx import MockRouter

from genaisdk import (
    ApplicationDefaultProvider,
    AuthenticationError,
    CredentialsNotFoundError,
    OAuthTokenProvider,
    TokenRefreshError,
)

TOKEN_URI = "https://oauth2.googleapis.com/token"


def _write(path: Path, data: dict[str, Any]) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def client_secret(tmp_path: Path) -> Path:
    return _write(
        tmp_path / "client_secret.json",
        {"installed": {"client_id": "cid", "client_secret": "secret"}},
    )


@pytest.fixture
def token_file(tmp_path: Path) -> Path:
    return _write(tmp_path / "token.json", {"refresh_token": "rt", "client_id": "cid"})


def _expiry(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) + delta).isoformat().replace("+00:00", "Z")


class TestOAuthTokenProvider:
    async def test_refresh_saves_token(
        self, client_secret: Path, token_file: Path, respx_mock: MockRouter
    ) -> None:
        route = respx_mock.post(TOKEN_URI).mock(
            return_value=httpx.Response(200, json={"access_token": "at", "expires_in": 3600})
        )
        provider = OAuthTokenProvider(client_secret)

        headers = await provider.get_headers()

        assert headers == {"Authorization": "Bearer at"}
        request = route.calls[0].request
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert parse_qs(request.content.decode()) == {
            "client_id": ["cid"],
            "client_secret": ["secret"],
            "refresh_token": ["rt"],
            "grant_type": ["refresh_token"],
        }

        saved = json.loads(token_file.read_text(encoding="utf-8"))
        assert saved["access_token"] == "at"
        assert saved["token"] == "at"
        assert saved["expires_in"] == 3600
        assert saved["refresh_token"] == "rt"
        assert saved["expiry"].endswith("Z")

    async def test_cached_token_is_reused(
        self, client_secret: Path, token_file: Path, respx_mock: MockRouter
    ) -> None:
        route = respx_mock.post(TOKEN_URI).mock(
            side_effect=[
                httpx.Response(200, json={"access_token": "first", "expires_in": 3600}),
                httpx.Response(200, json={"access_token": "second", "expires_in": 3600}),
            ]
        )
        provider = OAuthTokenProvider(client_secret)

        assert await provider.ensure_authenticated() == "first"
        assert await provider.ensure_authenticated() == "first"
        assert await provider.ensure_authenticated(force_refresh=True) == "second"
        assert route.call_count == 2

    async def test_valid_token_on_disk_skips_refresh(
        self, client_secret: Path, tmp_path: Path
    ) -> None:
        _write(
            tmp_path / "token.json",
            {"refresh_token": "rt", "token": "cached", "expiry": _expiry(timedelta(hours=1))},
        )
        provider = OAuthTokenProvider(client_secret)

        assert await provider.get_headers() == {"Authorization": "Bearer cached"}

    async def test_expiring_token_is_refreshed(
        self, client_secret: Path, tmp_path: Path, respx_mock: MockRouter
    ) -> None:
        _write(
            tmp_path / "token.json",
            {"refresh_token": "rt", "access_token": "old", "expiry": _expiry(timedelta(seconds=5))},
        )
        respx_mock.post(TOKEN_URI).mock(
            return_value=httpx.Response(
                200, json={"access_token": "new", "refresh_token": "rt2"}
            )
        )
        provider = OAuthTokenProvider(client_secret)

        assert await provider.ensure_authenticated() == "new"
        saved = json.loads((tmp_path / "token.json").read_text(encoding="utf-8"))
        assert saved["refresh_token"] == "rt2"
        assert saved["expires_in"] == 3600

    def test_missing_token_cache(self, client_secret: Path) -> None:
        with pytest.raises(CredentialsNotFoundError, match="generate token.json"):
            OAuthTokenProvider(client_secret)

    def test_missing_client_secret(self, tmp_path: Path) -> None:
        with pytest.raises(CredentialsNotFoundError) as exc_info:
            OAuthTokenProvider(tmp_path / "nope.json")

        assert exc_info.value.credential_path == str(tmp_path / "nope.json")

    def test_token_cache_needs_refresh_token(self, client_secret: Path, tmp_path: Path) -> None:
        _write(tmp_path / "token.json", {"access_token": "x"})

        with pytest.raises(AuthenticationError, match="missing refresh_token"):
            OAuthTokenProvider(client_secret)

    def test_client_id_mismatch(self, client_secret: Path, tmp_path: Path) -> None:
        _write(tmp_path / "token.json", {"refresh_token": "rt", "client_id": "other"})

        with pytest.raises(AuthenticationError, match="client_id"):
            OAuthTokenProvider(client_secret)

    def test_web_section_and_custom_paths(self, tmp_path: Path) -> None:
        secret = _write(
            tmp_path / "web.json",
            {
                "web": {
                    "client_id": "web-id",
                    "client_secret": "s",
                    "token_uri": "https://example.com/token",
                }
            },
        )
        cache = _write(tmp_path / "t.json", {"refresh_token": "rt"})

        provider = OAuthTokenProvider(secret, cache)

        assert provider.client_id == "web-id"
        assert provider.token_uri == "https://example.com/token"

    async def test_refresh_http_error(
        self, client_secret: Path, token_file: Path, respx_mock: MockRouter
    ) -> None:
        respx_mock.post(TOKEN_URI).mock(
            return_value=httpx.Response(400, json={"error": "invalid_grant"})
        )
        provider = OAuthTokenProvider(client_secret)

        with pytest.raises(TokenRefreshError) as exc_info:
            await provider.get_headers()

        assert exc_info.value.status_code == 400
        assert "invalid_grant" in exc_info.value.response_body

    async def test_refresh_error_field(
        self, client_secret: Path, token_file: Path, respx_mock: MockRouter
    ) -> None:
        respx_mock.post(TOKEN_URI).mock(
            return_value=httpx.Response(
                200, json={"error": "invalid_grant", "error_description": "Token revoked"}
            )
        )
        provider = OAuthTokenProvider(client_secret)

        with pytest.raises(TokenRefreshError, match="Token revoked"):
            await provider.get_headers()

    async def test_refresh_without_access_token(
        self, client_secret: Path, token_file: Path, respx_mock: MockRouter
    ) -> None:
        respx_mock.post(TOKEN_URI).mock(return_value=httpx.Response(200, json={}))
        provider = OAuthTokenProvider(client_secret)

        with pytest.raises(TokenRefreshError, match="access_token"):
            await provider.get_headers()


class FakeCredentials:
    def __init__(self, valid: bool = True, quota_project_id: str | None = None) -> None:
        self.valid = valid
        self.token = "adc-token"
        self.quota_project_id = quota_project_id
        self.refreshes = 0

    def refresh(self, request: Any) -> None:
        self.refreshes += 1
        self.token = f"adc-token-{self.refreshes}"
        self.valid = True


class FailingCredentials(FakeCredentials):
    def refresh(self, request: Any) -> None:
        raise google.auth.exceptions.RefreshError("revoked")


class TestApplicationDefaultProvider:
    async def test_headers_with_quota_project(self) -> None:
        provider = ApplicationDefaultProvider(
            credentials=FakeCredentials(quota_project_id="billing")
        )

        assert await provider.get_headers() == {
            "Authorization": "Bearer adc-token",
            "x-goog-user-project": "billing",
        }

    async def test_invalid_or_stale_credentials_refresh(self) -> None:
        credentials = FakeCredentials(valid=False)
        provider = ApplicationDefaultProvider(credentials=credentials)

        assert (await provider.get_headers())["Authorization"] == "Bearer adc-token-1"
        assert (await provider.get_headers())["Authorization"] == "Bearer adc-token-1"

        provider.invalidate()
        assert (await provider.get_headers())["Authorization"] == "Bearer adc-token-2"
        assert (await provider.get_headers(force_refresh=True))["Authorization"] == (
            "Bearer adc-token-3"
        )

    async def test_discovers_credentials_with_scopes(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        seen: list[Any] = []

        def fake_default(scopes: Any = None) -> tuple[FakeCredentials, str]:
            seen.append(scopes)
            return FakeCredentials(), "adc-project"

        monkeypatch.setattr(google.auth, "default", fake_default)
        provider = ApplicationDefaultProvider()
        provider.configure_scopes(["scope-a"])
        provider.configure_scopes(["scope-b"])

        await provider.get_headers()
        await provider.get_headers()

        assert seen == [["scope-a"]]
        assert provider.scopes == ["scope-a"]
        assert provider.project_id == "adc-project"

    async def test_missing_adc(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_default(scopes: Any = None) -> Any:
            raise google.auth.exceptions.DefaultCredentialsError("no credentials")

        monkeypatch.setattr(google.auth, "default", fake_default)

        with pytest.raises(AuthenticationError, match="Application Default Credentials"):
            await ApplicationDefaultProvider(["scope"]).get_headers()

    async def test_refresh_failure(self) -> None:
        provider = ApplicationDefaultProvider(credentials=FailingCredentials(valid=False))

        with pytest.raises(TokenRefreshError, match="revoked"):
            await provider.get_headers()
