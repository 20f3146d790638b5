"""
GenAI SDK Client - Main entry point for the SDK.

Example:
    >>> from genaisdk import Client
    >>>
    >>> async def main():
    ...     async with Client({"api_key": "..."}) as client:
    ...         response = await client.models.generate_content(
    ...             "gemini-2.5-flash", "Why is the sky blue?"
    ...         )
    ...         print(response.text)
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from .backend import HttpBackend, resolve_config
from .batches import Batches
from .caches import Caches
from .chats import Chats
from .exceptions import ConfigurationError
from .file_search_stores import FileSearchStores
from .files import Files
from .live import Live
from .models import Models
from .operations import Operations
from .tokens import AuthTokens
from .tunings import Tunings
from .types import ClientOptions, HttpOptions

logger = logging.getLogger(__name__)


def _env(*names: str) -> str | None:
    for name in names:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None


class Client:
    """
    Client for the Gemini API and Vertex AI.

    The backend is chosen from the options: an API key targets the Gemini
    API, a project and location target Vertex AI. All services share one
    HTTP connection pool.

    Attributes:
        models: Generation, embeddings, token counting and model metadata.
        chats: Multi-turn conversations.
        files: File uploads (Gemini API).
        file_search_stores: File search stores and their ``documents``
            (Gemini API). ``documents`` is also reachable directly.
        caches: Cached contents.
        batches: Batch jobs.
        operations: Long-running operations.
        tunings: Tuning jobs.
        live: Live websocket sessions (Gemini API).
        auth_tokens: Ephemeral tokens (Gemini API).

    Example:
        >>> client = Client({"project": "my-project", "location": "us-central1"})
        >>> chat = client.chats.create("gemini-2.5-flash")
        >>> response = await chat.send_message("Hello!")
        >>> await client.close()
    """

    def __init__(
        self,
        options: ClientOptions | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Client.

        Args:
            options: Client options. See ``ClientOptions``.
            http_client: An httpx client to send requests with. It is left
                open by ``close``.

        Raises:
            ConfigurationError: If the options are inconsistent.
        """
        self._config = resolve_config(options or {})
        self._backend = HttpBackend(self._config, http_client)

        self.models = Models(self._backend)
        self.chats = Chats(self.models)
        self.files = Files(self._backend)
        self.file_search_stores = FileSearchStores(self._backend)
        self.documents = self.file_search_stores.documents
        self.caches = Caches(self._backend)
        self.batches = Batches(self._backend)
        self.operations = Operations(self._backend)
        self.tunings = Tunings(self._backend)
        self.live = Live(self._backend)
        self.auth_tokens = AuthTokens(self._backend)

        logger.info(f"Client created for {self._config.backend.value} at {self._config.base_url}")

    @classmethod
    def from_env(cls, http_client: httpx.AsyncClient | None = None) -> Client:
        """
        Create a Gemini API client from environment variables.

        Reads ``GEMINI_API_KEY`` (or ``GOOGLE_API_KEY``), and optionally
        ``GENAI_BASE_URL`` (or ``GEMINI_BASE_URL``) and ``GENAI_API_VERSION``.

        Raises:
            ConfigurationError: If no API key is set.
        """
        api_key = _env("GEMINI_API_KEY", "GOOGLE_API_KEY")
        if api_key is None:
            raise ConfigurationError(
                "GEMINI_API_KEY or GOOGLE_API_KEY must be set", config_key="api_key"
            )

        options: ClientOptions = {"api_key": api_key}
        base_url = _env("GENAI_BASE_URL", "GEMINI_BASE_URL")
        api_version = _env("GENAI_API_VERSION")
        if base_url or api_version:
            options["http_options"] = HttpOptions(base_url=base_url, api_version=api_version)
        return cls(options, http_client)

    @property
    def is_vertex(self) -> bool:
        return self._config.is_vertex

    async def __aenter__(self) -> Client:
        """Enter async context manager."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Release the connection pool if the client created it."""
        await self._backend.close()
        logger.info("Client closed")
