"""
Documents of a file search store (Gemini API only).

Documents are created by uploading or importing into a store; this service
reads, lists and deletes them.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from ._common import from_wire, http_response, iter_pages, list_params
from .backend import HttpBackend
from .exceptions import ConfigurationError, ValidationError
from .types import (
    DeleteDocumentConfig,
    Document,
    HttpOptions,
    ListDocumentsConfig,
    ListDocumentsResponse,
)

logger = logging.getLogger(__name__)


def normalize_store_name(name: str) -> str:
    return name if name.startswith("fileSearchStores/") else f"fileSearchStores/{name}"


def _document_name(name: str) -> str:
    if "/documents/" not in name:
        raise ValidationError(
            "Document name must be a full resource name, "
            f"e.g. fileSearchStores/xxx/documents/yyy (got {name})",
            field="name",
            value=name,
        )
    return normalize_store_name(name)


class Documents:
    """
    Operations on ``fileSearchStores/*/documents/*``.

    Accessed as ``client.file_search_stores.documents``.
    """

    def __init__(self, backend: HttpBackend) -> None:
        self._backend = backend

    def _ensure_gemini(self) -> None:
        if self._backend.is_vertex:
            raise ConfigurationError("Documents API is only supported in Gemini API")

    async def get(self, name: str, http_options: HttpOptions | None = None) -> Document:
        self._ensure_gemini()
        data, _ = await self._backend.request_json(
            "GET",
            self._backend.url(_document_name(name), http_options),
            http_options=http_options,
        )
        return from_wire(Document, data)

    async def delete(self, name: str, config: DeleteDocumentConfig | None = None) -> None:
        """
        Delete a document.

        Set ``config.force`` to also delete the chunks it was split into.
        """
        self._ensure_gemini()
        http_options = config.http_options if config else None
        params: dict[str, str] = {}
        if config is not None and config.force is not None:
            params["force"] = str(config.force).lower()
        name = _document_name(name)
        await self._backend.request(
            "DELETE",
            self._backend.url(name, http_options),
            params=params,
            http_options=http_options,
        )
        logger.debug(f"Deleted document {name}")

    async def list(
        self, parent: str, config: ListDocumentsConfig | None = None
    ) -> ListDocumentsResponse:
        """List the documents of the store ``parent``."""
        self._ensure_gemini()
        http_options = config.http_options if config else None
        data, response = await self._backend.request_json(
            "GET",
            self._backend.url(f"{normalize_store_name(parent)}/documents", http_options),
            params=list_params(config),
            http_options=http_options,
        )
        result: ListDocumentsResponse = from_wire(ListDocumentsResponse, data)
        result.sdk_http_response = http_response(response)
        return result

    async def all(
        self, parent: str, config: ListDocumentsConfig | None = None
    ) -> AsyncIterator[Document]:
        """Iterate over the documents of ``parent`` across every page."""

        async def list_page(page_config: ListDocumentsConfig) -> ListDocumentsResponse:
            return await self.list(parent, page_config)

        async for document in iter_pages(list_page, config or ListDocumentsConfig(), "documents"):
            yield document
