"""
Long-running operations.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import TypeVar

from . import _media
from ._common import from_wire, http_response, iter_pages, list_params
from .backend import HttpBackend
from .exceptions import APIError, ConfigurationError, TimeoutError
from .types import (
    GenerateVideosOperation,
    HttpOptions,
    ListOperationsConfig,
    ListOperationsResponse,
    Operation,
)

logger = logging.getLogger(__name__)

OperationT = TypeVar("OperationT", Operation, GenerateVideosOperation)


class Operations:
    """Polls ``operations/...`` resources. Accessed as ``client.operations``."""

    def __init__(self, backend: HttpBackend) -> None:
        self._backend = backend

    def _operation_name(self, name: str) -> str:
        if not self._backend.is_vertex:
            return name if "/" in name else f"operations/{name}"
        if name.startswith("projects/"):
            return name
        if name.startswith("locations/"):
            return f"projects/{self._backend.config.project}/{name}"
        if name.startswith("operations/"):
            return f"{self._backend.vertex_parent()}/{name}"
        return f"{self._backend.vertex_parent()}/operations/{name}"

    async def get(self, name: str, http_options: HttpOptions | None = None) -> Operation:
        data, _ = await self._backend.request_json(
            "GET",
            self._backend.url(self._operation_name(name), http_options),
            http_options=http_options,
        )
        return from_wire(Operation, data)

    async def get_videos_operation(
        self, name: str, http_options: HttpOptions | None = None
    ) -> GenerateVideosOperation:
        """
        Fetch the current state of a video generation.

        Vertex AI serves operations started by a publisher model through the
        model's ``fetchPredictOperation`` method rather than a plain GET.
        """
        name = self._operation_name(name)
        resource = name.rsplit("/operations/", 1)[0]
        if self._backend.is_vertex and "/models/" in resource:
            data, _ = await self._backend.request_json(
                "POST",
                self._backend.url(f"{resource}:fetchPredictOperation", http_options),
                json={"operationName": name},
                http_options=http_options,
            )
        else:
            data, _ = await self._backend.request_json(
                "GET", self._backend.url(name, http_options), http_options=http_options
            )
        return _media.generate_videos_operation(data, self._backend.is_vertex)

    async def list(self, config: ListOperationsConfig | None = None) -> ListOperationsResponse:
        http_options = config.http_options if config else None
        path = "operations"
        if self._backend.is_vertex:
            path = f"{self._backend.vertex_parent()}/operations"
        data, response = await self._backend.request_json(
            "GET",
            self._backend.url(path, http_options),
            params=list_params(config),
            http_options=http_options,
        )
        result: ListOperationsResponse = from_wire(ListOperationsResponse, data)
        result.sdk_http_response = http_response(response)
        return result

    async def all(self, config: ListOperationsConfig | None = None) -> AsyncIterator[Operation]:
        """Iterate over operations across every page."""
        async for operation in iter_pages(self.list, config or ListOperationsConfig(), "operations"):
            yield operation

    async def wait(
        self,
        operation: OperationT | str,
        poll_interval: float = 5.0,
        timeout: float | None = None,
    ) -> OperationT:
        """
        Poll an operation until it is done.

        Args:
            operation: The operation, or its name. A GenerateVideosOperation is
                polled as a video generation and returned with its videos.
            poll_interval: Seconds between polls.
            timeout: Give up after this many seconds. ``None`` waits forever.

        Returns:
            The finished operation, of the same kind as the one given.

        Raises:
            ConfigurationError: If the operation has no name.
            APIError: If the operation finished with an error.
            TimeoutError: If ``timeout`` elapsed first.
        """
        if isinstance(operation, str):
            operation = Operation(name=operation)
        name = operation.name
        if not name:
            raise ConfigurationError("Operation name is empty", config_key="name")

        loop = asyncio.get_running_loop()
        start = loop.time()
        while not operation.done:
            if timeout is not None and loop.time() - start >= timeout:
                raise TimeoutError(f"Timed out waiting for operation {name}", timeout)
            await asyncio.sleep(poll_interval)
            if isinstance(operation, GenerateVideosOperation):
                operation = await self.get_videos_operation(name)
            else:
                operation = await self.get(name)
            logger.debug(f"Operation {name} done={operation.done}")

        if operation.error:
            raise APIError.from_error_object(
                operation.error, default_message=f"Operation {name} failed"
            )
        return operation
