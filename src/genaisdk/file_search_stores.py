"""
File search stores (Gemini API only).

A store indexes documents for the ``file_search`` tool. Documents enter a
store either by uploading content directly or by importing a file that was
already uploaded through ``client.files``; both return a long-running
Operation that finishes once the document is chunked and embedded.

Example:
    >>> store = await client.file_search_stores.create(
    ...     CreateFileSearchStoreConfig(display_name="manuals")
    ... )
    >>> operation = await client.file_search_stores.upload_to_file_search_store(
    ...     store.name, "manual.pdf"
    ... )
    >>> await client.operations.wait(operation)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from ._common import from_wire, http_response, iter_pages, list_params, to_wire
from .backend import HttpBackend
from .documents import Documents, normalize_store_name
from .exceptions import ConfigurationError
from .files import ResumableUpload, UploadSource, normalize_file_name
from .types import (
    CreateFileSearchStoreConfig,
    DeleteFileSearchStoreConfig,
    FileSearchStore,
    HttpOptions,
    ImportFileConfig,
    ListFileSearchStoresConfig,
    ListFileSearchStoresResponse,
    Operation,
    UploadToFileSearchStoreConfig,
)

logger = logging.getLogger(__name__)


class FileSearchStores:
    """Operations on ``fileSearchStores/...``. Accessed as ``client.file_search_stores``."""

    def __init__(self, backend: HttpBackend) -> None:
        self._backend = backend
        self.documents = Documents(backend)

    def _ensure_gemini(self) -> None:
        if self._backend.is_vertex:
            raise ConfigurationError("FileSearchStores API is only supported in Gemini API")

    # -------------------------------------------------------------------------
    # Stores
    # -------------------------------------------------------------------------

    async def create(self, config: CreateFileSearchStoreConfig | None = None) -> FileSearchStore:
        self._ensure_gemini()
        config = config or CreateFileSearchStoreConfig()
        data, _ = await self._backend.request_json(
            "POST",
            self._backend.url("fileSearchStores", config.http_options),
            json=to_wire(config),
            http_options=config.http_options,
        )
        store: FileSearchStore = from_wire(FileSearchStore, data)
        logger.debug(f"Created file search store {store.name}")
        return store

    async def get(self, name: str, http_options: HttpOptions | None = None) -> FileSearchStore:
        self._ensure_gemini()
        data, _ = await self._backend.request_json(
            "GET",
            self._backend.url(normalize_store_name(name), http_options),
            http_options=http_options,
        )
        return from_wire(FileSearchStore, data)

    async def delete(self, name: str, config: DeleteFileSearchStoreConfig | None = None) -> None:
        """
        Delete a store.

        The service refuses to delete a store that still holds documents
        unless ``config.force`` is set.
        """
        self._ensure_gemini()
        http_options = config.http_options if config else None
        params: dict[str, str] = {}
        if config is not None and config.force is not None:
            params["force"] = str(config.force).lower()
        name = normalize_store_name(name)
        await self._backend.request(
            "DELETE",
            self._backend.url(name, http_options),
            params=params,
            http_options=http_options,
        )
        logger.debug(f"Deleted file search store {name}")

    async def list(
        self, config: ListFileSearchStoresConfig | None = None
    ) -> ListFileSearchStoresResponse:
        self._ensure_gemini()
        http_options = config.http_options if config else None
        data, response = await self._backend.request_json(
            "GET",
            self._backend.url("fileSearchStores", http_options),
            params=list_params(config),
            http_options=http_options,
        )
        result: ListFileSearchStoresResponse = from_wire(ListFileSearchStoresResponse, data)
        result.sdk_http_response = http_response(response)
        return result

    async def all(
        self, config: ListFileSearchStoresConfig | None = None
    ) -> AsyncIterator[FileSearchStore]:
        """Iterate over stores across every page."""
        pages = iter_pages(self.list, config or ListFileSearchStoresConfig(), "file_search_stores")
        async for store in pages:
            yield store

    # -------------------------------------------------------------------------
    # Adding documents
    # -------------------------------------------------------------------------

    async def upload_to_file_search_store(
        self,
        file_search_store_name: str,
        file: str | Path | bytes,
        config: UploadToFileSearchStoreConfig | None = None,
    ) -> Operation:
        """
        Upload content straight into a store.

        Args:
            file_search_store_name: Store name, with or without the
                ``fileSearchStores/`` prefix.
            file: A filesystem path, or the document contents.
            config: Optional document metadata and chunking. Raw bytes
                require ``mime_type``.

        Returns:
            The import Operation. Wait on it with ``client.operations.wait``.

        Raises:
            ValidationError: If the path is not a file or the MIME type is
                missing for raw bytes.
            SerializationError: If the upload protocol is violated.
        """
        self._ensure_gemini()
        config = config or UploadToFileSearchStoreConfig()
        source = UploadSource.resolve(file, config.mime_type)
        store = normalize_store_name(file_search_store_name)
        upload: ResumableUpload[Operation] = ResumableUpload(
            self._backend, lambda data: from_wire(Operation, data), config.http_options
        )
        operation = await upload.run(
            self._backend.upload_url(f"{store}:uploadToFileSearchStore", config.http_options),
            to_wire(config),
            source,
        )
        logger.debug(f"Uploaded {source.size} bytes to {store}, operation {operation.name}")
        return operation

    async def import_file(
        self,
        file_search_store_name: str,
        file_name: str,
        config: ImportFileConfig | None = None,
    ) -> Operation:
        """
        Import a file uploaded through the Files API into a store.

        ``file_name`` accepts the same forms as ``client.files.get``.
        """
        self._ensure_gemini()
        config = config or ImportFileConfig()
        store = normalize_store_name(file_search_store_name)
        body: dict[str, Any] = {"fileName": f"files/{normalize_file_name(file_name)}"}
        body.update(to_wire(config))
        data, _ = await self._backend.request_json(
            "POST",
            self._backend.url(f"{store}:importFile", config.http_options),
            json=body,
            http_options=config.http_options,
        )
        return from_wire(Operation, data)
