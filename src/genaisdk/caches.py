"""
Context caching.

A cached content stores a prefix of contents, a system instruction and
tools on the service so later requests can reference it through
``GenerateContentConfig.cached_content`` instead of resending it.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from ._common import (
    from_wire,
    http_response,
    iter_pages,
    list_params,
    to_system_instruction,
    to_wire,
    update_mask,
)
from .backend import HttpBackend
from .exceptions import ConfigurationError
from .types import (
    CachedContent,
    CreateCachedContentConfig,
    DeleteCachedContentResponse,
    HttpOptions,
    ListCachedContentsConfig,
    ListCachedContentsResponse,
    UpdateCachedContentConfig,
)

logger = logging.getLogger(__name__)


class Caches:
    """Operations on cached contents. Accessed as ``client.caches``."""

    def __init__(self, backend: HttpBackend) -> None:
        self._backend = backend

    def _collection(self) -> str:
        if self._backend.is_vertex:
            return f"{self._backend.vertex_parent()}/cachedContents"
        return "cachedContents"

    def _model_name(self, model: str) -> str:
        if not self._backend.is_vertex:
            if model.startswith(("models/", "tunedModels/")):
                return model
            return f"models/{model}"

        parent = self._backend.vertex_parent()
        if model.startswith("projects/"):
            return model
        if model.startswith("publishers/"):
            return f"{parent}/{model}"
        if model.startswith("models/"):
            return f"{parent}/publishers/google/{model}"
        if "/" in model:
            publisher, name = model.split("/", 1)
            return f"{parent}/publishers/{publisher}/models/{name}"
        return f"{parent}/publishers/google/models/{model}"

    def _cache_name(self, name: str) -> str:
        if not self._backend.is_vertex:
            return name if name.startswith("cachedContents/") else f"cachedContents/{name}"
        if name.startswith("projects/"):
            return name
        if name.startswith("cachedContents/"):
            name = name[len("cachedContents/") :]
        return f"{self._collection()}/{name}"

    async def create(self, model: str, config: CreateCachedContentConfig) -> CachedContent:
        """
        Create a cached content for ``model``.

        Raises:
            ConfigurationError: If ``kms_key_name`` is set on the Gemini API.
        """
        body: dict[str, Any] = {"model": self._model_name(model)}
        fields = {
            "ttl": config.ttl,
            "expireTime": config.expire_time,
            "displayName": config.display_name,
            "contents": config.contents,
            "systemInstruction": to_system_instruction(config.system_instruction),
            "tools": config.tools,
            "toolConfig": config.tool_config,
        }
        for key, value in fields.items():
            if value is not None:
                body[key] = to_wire(value)

        if config.kms_key_name is not None:
            if not self._backend.is_vertex:
                raise ConfigurationError(
                    "kms_key_name is not supported in Gemini API", config_key="kms_key_name"
                )
            body["encryptionSpec"] = {"kmsKeyName": config.kms_key_name}

        data, _ = await self._backend.request_json(
            "POST",
            self._backend.url(self._collection(), config.http_options),
            json=body,
            http_options=config.http_options,
        )
        cache: CachedContent = from_wire(CachedContent, data)
        logger.debug(f"Created cached content {cache.name}")
        return cache

    async def get(self, name: str, http_options: HttpOptions | None = None) -> CachedContent:
        data, _ = await self._backend.request_json(
            "GET",
            self._backend.url(self._cache_name(name), http_options),
            http_options=http_options,
        )
        return from_wire(CachedContent, data)

    async def update(self, name: str, config: UpdateCachedContentConfig) -> CachedContent:
        """Change the expiration through ``ttl`` or ``expire_time``."""
        body = to_wire(config)
        data, _ = await self._backend.request_json(
            "PATCH",
            self._backend.url(self._cache_name(name), config.http_options),
            json=body,
            params={"updateMask": update_mask(body)},
            http_options=config.http_options,
        )
        return from_wire(CachedContent, data)

    async def delete(
        self,
        name: str,
        http_options: HttpOptions | None = None,
    ) -> DeleteCachedContentResponse:
        _, response = await self._backend.request_json(
            "DELETE",
            self._backend.url(self._cache_name(name), http_options),
            http_options=http_options,
        )
        return DeleteCachedContentResponse(sdk_http_response=http_response(response))

    async def list(
        self,
        config: ListCachedContentsConfig | None = None,
    ) -> ListCachedContentsResponse:
        http_options = config.http_options if config else None
        data, response = await self._backend.request_json(
            "GET",
            self._backend.url(self._collection(), http_options),
            params=list_params(config),
            http_options=http_options,
        )
        result: ListCachedContentsResponse = from_wire(ListCachedContentsResponse, data)
        result.sdk_http_response = http_response(response)
        return result

    async def all(
        self,
        config: ListCachedContentsConfig | None = None,
    ) -> AsyncIterator[CachedContent]:
        """Iterate over cached contents across every page."""
        pages = iter_pages(self.list, config or ListCachedContentsConfig(), "cached_contents")
        async for cache in pages:
            yield cache
