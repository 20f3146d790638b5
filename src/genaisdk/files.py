"""
Files service (Gemini API only).

Uploads use the resumable protocol: a ``start`` request returns an upload
URL, then the payload is sent in 8 MiB chunks, the last one finalizing
the upload.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import re
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, TypeVar

from ._common import (
    from_wire,
    http_response,
    iter_pages,
    list_params,
    parse_json,
    to_wire,
)
from .backend import HttpBackend
from .exceptions import (
    APIError,
    ConfigurationError,
    SerializationError,
    TimeoutError,
    ValidationError,
)
from .types import (
    DeleteFileResponse,
    File,
    FileState,
    HttpOptions,
    ListFilesConfig,
    ListFilesResponse,
    RegisterFilesResponse,
    UploadFileConfig,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8 * 1024 * 1024

_FILE_ID = re.compile(r"[a-z0-9-]+")

T = TypeVar("T")


def normalize_file_name(value: str) -> str:
    """
    Extract the file id from a name or URI.

    Accepts ``files/abc``, ``abc`` and URIs such as
    ``https://generativelanguage.googleapis.com/v1beta/files/abc``.
    """
    if value.startswith(("http://", "https://")):
        marker = value.find("files/")
        if marker < 0:
            raise ValidationError(f"Could not find 'files/' in URI: {value}", field="name")
        match = _FILE_ID.match(value, marker + len("files/"))
        if match is None:
            raise ValidationError(
                f"Could not extract file name from URI: {value}", field="name"
            )
        return match.group(0)
    if value.startswith("files/"):
        return value[len("files/") :]
    return value


def _finalize_upload(status: str, result: T | None) -> T:
    if status != "final":
        raise SerializationError(f"Upload finalize failed: {status}")
    if result is None:
        raise SerializationError("Upload completed but response body was empty")
    return result


@dataclass
class UploadSource:
    """Contents of an upload: raw bytes or a path, with its size and type."""

    content: bytes | Path
    size: int
    mime_type: str
    file_name: str | None = None

    @classmethod
    def resolve(cls, file: str | Path | bytes, mime_type: str | None) -> UploadSource:
        """
        Describe a path or raw bytes for upload.

        Raises:
            ValidationError: If the path is not a file, or ``mime_type`` is
                missing for raw bytes.
        """
        if isinstance(file, (bytes, bytearray)):
            if not mime_type:
                raise ValidationError(
                    "mime_type is required when uploading raw bytes", field="mime_type"
                )
            return cls(bytes(file), len(file), mime_type)

        path = Path(file)
        if not path.is_file():
            raise ValidationError(f"{path} is not a valid file path", field="file")
        return cls(
            path,
            path.stat().st_size,
            mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream",
            path.name,
        )


class ResumableUpload(Generic[T]):
    """
    One upload session of the resumable protocol.

    ``start`` exchanges the metadata for an upload URL, then ``send`` pushes
    the contents in CHUNK_SIZE pieces. ``parse`` builds the result from the
    JSON body of the finalizing response.
    """

    def __init__(
        self,
        backend: HttpBackend,
        parse: Callable[[dict[str, Any]], T],
        http_options: HttpOptions | None = None,
    ) -> None:
        self._backend = backend
        self._parse = parse
        self._http_options = http_options

    async def run(self, url: str, body: dict[str, Any], source: UploadSource) -> T:
        upload_url = await self.start(url, body, source)
        return await self.send(upload_url, source)

    async def start(self, url: str, body: dict[str, Any], source: UploadSource) -> str:
        headers = {
            "X-Goog-Upload-Protocol": "resumable",
            "X-Goog-Upload-Command": "start",
            "X-Goog-Upload-Header-Content-Length": str(source.size),
            "X-Goog-Upload-Header-Content-Type": source.mime_type,
        }
        if source.file_name:
            headers["X-Goog-Upload-File-Name"] = source.file_name

        response = await self._backend.request(
            "POST", url, json=body, headers=headers, http_options=self._http_options
        )
        upload_url = response.headers.get("x-goog-upload-url")
        if not upload_url:
            raise SerializationError("Missing x-goog-upload-url header")
        logger.debug(f"Started resumable upload of {source.size} bytes")
        return upload_url

    async def send(self, upload_url: str, source: UploadSource) -> T:
        if isinstance(source.content, bytes):
            data = source.content

            async def read_bytes(offset: int) -> bytes:
                return data[offset : offset + CHUNK_SIZE]

            return await self._send_chunks(upload_url, source.size, read_bytes)

        with source.content.open("rb") as fh:

            async def read_file(offset: int) -> bytes:
                return await asyncio.to_thread(fh.read, CHUNK_SIZE)

            return await self._send_chunks(upload_url, source.size, read_file)

    async def _send_chunk(
        self, upload_url: str, chunk: bytes, offset: int, finalize: bool
    ) -> tuple[str, T | None]:
        response = await self._backend.request(
            "POST",
            upload_url,
            content=chunk,
            headers={
                "X-Goog-Upload-Command": "upload, finalize" if finalize else "upload",
                "X-Goog-Upload-Offset": str(offset),
            },
            http_options=self._http_options,
        )
        status = response.headers.get("x-goog-upload-status")
        if status is None:
            raise SerializationError("Missing x-goog-upload-status header")

        data = parse_json(response)
        if not data:
            return status, None
        return status, self._parse(data)

    async def _send_chunks(
        self, upload_url: str, size: int, read: Callable[[int], Awaitable[bytes]]
    ) -> T:
        if size == 0:
            status, result = await self._send_chunk(upload_url, b"", 0, True)
            return _finalize_upload(status, result)

        offset = 0
        while offset < size:
            chunk = await read(offset)
            if not chunk:
                raise SerializationError(
                    f"Unexpected end of file after {offset} of {size} bytes"
                )
            finalize = offset + len(chunk) >= size
            status, result = await self._send_chunk(upload_url, chunk, offset, finalize)
            if finalize:
                return _finalize_upload(status, result)
            if status != "active":
                raise SerializationError(f"Unexpected upload status: {status}")
            offset += len(chunk)

        raise SerializationError("Upload finished without final response")


class Files:
    """Operations on ``files/...`` resources. Accessed as ``client.files``."""

    def __init__(self, backend: HttpBackend) -> None:
        self._backend = backend

    def _ensure_gemini(self) -> None:
        if self._backend.is_vertex:
            raise ConfigurationError("Files API is only supported in Gemini API")

    # -------------------------------------------------------------------------
    # Upload
    # -------------------------------------------------------------------------

    async def upload(
        self,
        file: str | Path | bytes,
        config: UploadFileConfig | None = None,
    ) -> File:
        """
        Upload a file from a path or from raw bytes.

        Args:
            file: A filesystem path, or the file contents.
            config: Optional name, display name and MIME type. Raw bytes
                require ``mime_type``.

        Returns:
            The uploaded File.

        Raises:
            ValidationError: If the path is not a file or the MIME type is
                missing for raw bytes.
            SerializationError: If the upload protocol is violated.
        """
        self._ensure_gemini()
        config = config or UploadFileConfig()
        source = UploadSource.resolve(file, config.mime_type)
        metadata = File(
            name=self._upload_name(config.name) if config.name else None,
            display_name=config.display_name,
            mime_type=source.mime_type,
            size_bytes=source.size,
        )
        upload: ResumableUpload[File] = ResumableUpload(
            self._backend,
            lambda data: from_wire(File, data.get("file", data)),
            config.http_options,
        )
        return await upload.run(
            self._backend.upload_url("files", config.http_options),
            {"file": to_wire(metadata)},
            source,
        )

    @staticmethod
    def _upload_name(name: str) -> str:
        return name if name.startswith("files/") else f"files/{name}"

    # -------------------------------------------------------------------------
    # Download and metadata
    # -------------------------------------------------------------------------

    async def download(
        self,
        file: str | File,
        http_options: HttpOptions | None = None,
    ) -> bytes:
        """
        Download file contents.

        Args:
            file: A file name, a File, or a download URI.
        """
        self._ensure_gemini()
        if isinstance(file, File):
            reference = file.download_uri or file.uri or file.name
            if not reference:
                raise ValidationError("File has no name or URI", field="file")
        else:
            reference = file

        name = normalize_file_name(reference)
        response = await self._backend.request(
            "GET",
            self._backend.url(f"files/{name}:download", http_options),
            params={"alt": "media"},
            http_options=http_options,
        )
        return response.content

    async def list(self, config: ListFilesConfig | None = None) -> ListFilesResponse:
        self._ensure_gemini()
        http_options = config.http_options if config else None
        data, response = await self._backend.request_json(
            "GET",
            self._backend.url("files", http_options),
            params=list_params(config),
            http_options=http_options,
        )
        result: ListFilesResponse = from_wire(ListFilesResponse, data)
        result.sdk_http_response = http_response(response)
        return result

    async def all(self, config: ListFilesConfig | None = None) -> AsyncIterator[File]:
        """Iterate over files across every page."""
        async for file in iter_pages(self.list, config or ListFilesConfig(), "files"):
            yield file

    async def get(self, name: str, http_options: HttpOptions | None = None) -> File:
        self._ensure_gemini()
        data, _ = await self._backend.request_json(
            "GET",
            self._backend.url(f"files/{normalize_file_name(name)}", http_options),
            http_options=http_options,
        )
        return from_wire(File, data)

    async def delete(
        self,
        name: str,
        http_options: HttpOptions | None = None,
    ) -> DeleteFileResponse:
        self._ensure_gemini()
        _, response = await self._backend.request_json(
            "DELETE",
            self._backend.url(f"files/{normalize_file_name(name)}", http_options),
            http_options=http_options,
        )
        return DeleteFileResponse(sdk_http_response=http_response(response))

    async def register_files(
        self,
        uris: list[str],
        http_options: HttpOptions | None = None,
    ) -> RegisterFilesResponse:
        """
        Register Google Cloud Storage objects as files.

        Requires OAuth or Application Default Credentials; API keys are
        rejected by the service for this call.
        """
        self._ensure_gemini()
        if self._backend.config.credentials is None:
            raise ConfigurationError(
                "register_files requires OAuth/ADC credentials, API key is not supported",
                config_key="credentials",
            )

        data, response = await self._backend.request_json(
            "POST",
            self._backend.url("files:register", http_options),
            json={"uris": list(uris)},
            http_options=http_options,
        )
        result: RegisterFilesResponse = from_wire(RegisterFilesResponse, data)
        result.sdk_http_response = http_response(response)
        return result

    async def wait_for_active(
        self,
        name: str,
        poll_interval: float = 2.0,
        timeout: float | None = 300.0,
    ) -> File:
        """
        Poll a file until it becomes ACTIVE.

        Raises:
            APIError: If processing failed.
            TimeoutError: If the file is not active within ``timeout`` seconds.
        """
        self._ensure_gemini()
        loop = asyncio.get_running_loop()
        start = loop.time()
        while True:
            file = await self.get(name)
            if file.state == FileState.ACTIVE:
                return file
            if file.state == FileState.FAILED:
                raise APIError("File processing failed", status_code=500)

            if timeout is not None and loop.time() - start >= timeout:
                raise TimeoutError("Timed out waiting for file to become ACTIVE", timeout)
            logger.debug(f"File {name} is {file.state}, polling again in {poll_interval}s")
            await asyncio.sleep(poll_interval)
