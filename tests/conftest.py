"""Shared fixtures for genaisdk tests."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from genaisdk import Client
from genaisdk.auth import AuthProvider

API_KEY = "test-key"
PROJECT = "test-project"
LOCATION = "us-central1"


class StaticTokenProvider(AuthProvider):
    """Credentials returning a fixed bearer token and recording how they are used."""

    def __init__(self, token: str = "test-token") -> None:
        self.token = token
        self.scopes: list[str] | None = None
        self.invalidated = 0
        self.refresh_flags: list[bool] = []

    async def get_headers(self, force_refresh: bool = False) -> dict[str, str]:
        self.refresh_flags.append(force_refresh)
        return {"Authorization": f"Bearer {self.token}"}

    def invalidate(self) -> None:
        self.invalidated += 1

    def configure_scopes(self, scopes: list[str]) -> None:
        self.scopes = list(scopes)


@pytest.fixture
def credentials() -> StaticTokenProvider:
    return StaticTokenProvider()


@pytest.fixture
async def client() -> AsyncIterator[Client]:
    """Gemini API client authenticated with an API key."""
    async with Client({"api_key": API_KEY}) as gemini_client:
        yield gemini_client


@pytest.fixture
async def vertex_client(credentials: StaticTokenProvider) -> AsyncIterator[Client]:
    """Vertex AI client using static bearer credentials."""
    async with Client(
        {"project": PROJECT, "location": LOCATION, "credentials": credentials}
    ) as vertex:
        yield vertex
