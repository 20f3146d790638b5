"""Tests for the files service."""

from __future__ import annotations

import json
import re
from pathlib import Path

import httpx
import pytest
from respx import MockRouter

from genaisdk import (
    APIError,
    Client,
    ConfigurationError,
    File,
    FileState,
    SerializationError,
    TimeoutError,
    UploadFileConfig,
    ValidationError,
)
from genaisdk import files as files_module
from genaisdk.files import normalize_file_name

from conftest import StaticTokenProvider

GEMINI = "https://generativelanguage.googleapis.com/v1beta"
START_URL = "https://generativelanguage.googleapis.com/upload/v1beta/files"
SESSION_URL = "https://upload.example.com/session/1"

UPLOADED = {"file": {"name": "files/abc", "mimeType": "text/plain", "state": "ACTIVE"}}


def _started() -> httpx.Response:
    return httpx.Response(200, json={}, headers={"x-goog-upload-url": SESSION_URL})


def _status(status: str, body: dict | None = None) -> httpx.Response:
    return httpx.Response(200, json=body or {}, headers={"x-goog-upload-status": status})


class TestUpload:
    async def test_upload_bytes(self, client: Client, respx_mock: MockRouter) -> None:
        start = respx_mock.post(START_URL).mock(return_value=_started())
        upload = respx_mock.post(SESSION_URL).mock(return_value=_status("final", UPLOADED))

        file = await client.files.upload(
            b"hello",
            UploadFileConfig(mime_type="text/plain", name="abc", display_name="Greeting"),
        )

        assert file.name == "files/abc"
        assert file.state == FileState.ACTIVE

        start_request = start.calls[0].request
        assert start_request.headers["x-goog-upload-protocol"] == "resumable"
        assert start_request.headers["x-goog-upload-command"] == "start"
        assert start_request.headers["x-goog-upload-header-content-length"] == "5"
        assert start_request.headers["x-goog-upload-header-content-type"] == "text/plain"
        assert json.loads(start_request.content) == {
            "file": {
                "name": "files/abc",
                "displayName": "Greeting",
                "mimeType": "text/plain",
                "sizeBytes": 5,
            }
        }

        chunk_request = upload.calls[0].request
        assert chunk_request.content == b"hello"
        assert chunk_request.headers["x-goog-upload-command"] == "upload, finalize"
        assert chunk_request.headers["x-goog-upload-offset"] == "0"

    async def test_upload_path_guesses_mime_type(
        self, client: Client, respx_mock: MockRouter, tmp_path: Path
    ) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("some notes")
        start = respx_mock.post(START_URL).mock(return_value=_started())
        respx_mock.post(SESSION_URL).mock(return_value=_status("final", UPLOADED))

        await client.files.upload(path)

        headers = start.calls[0].request.headers
        assert headers["x-goog-upload-header-content-type"] == "text/plain"
        assert headers["x-goog-upload-file-name"] == "notes.txt"
        assert headers["x-goog-upload-header-content-length"] == "10"

    async def test_upload_in_chunks(
        self,
        client: Client,
        respx_mock: MockRouter,
        monkeypatch: pytest.MonkeyPatch,
        tmp_path: Path,
    ) -> None:
        monkeypatch.setattr(files_module, "CHUNK_SIZE", 4)
        path = tmp_path / "data.bin"
        path.write_bytes(b"abcdefghij")
        respx_mock.post(START_URL).mock(return_value=_started())
        upload = respx_mock.post(SESSION_URL).mock(
            side_effect=[_status("active"), _status("active"), _status("final", UPLOADED)]
        )

        file = await client.files.upload(path)

        assert file.name == "files/abc"
        requests = [call.request for call in upload.calls]
        assert [r.content for r in requests] == [b"abcd", b"efgh", b"ij"]
        assert [r.headers["x-goog-upload-offset"] for r in requests] == ["0", "4", "8"]
        assert [r.headers["x-goog-upload-command"] for r in requests] == [
            "upload",
            "upload",
            "upload, finalize",
        ]

    async def test_empty_upload_is_finalized(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        respx_mock.post(START_URL).mock(return_value=_started())
        upload = respx_mock.post(SESSION_URL).mock(return_value=_status("final", UPLOADED))

        await client.files.upload(b"", UploadFileConfig(mime_type="text/plain"))

        assert upload.calls[0].request.headers["x-goog-upload-command"] == "upload, finalize"

    async def test_raw_bytes_need_mime_type(self, client: Client) -> None:
        with pytest.raises(ValidationError, match="mime_type is required"):
            await client.files.upload(b"data")

    async def test_missing_path(self, client: Client, tmp_path: Path) -> None:
        with pytest.raises(ValidationError, match="not a valid file path"):
            await client.files.upload(tmp_path / "missing.txt")

    async def test_missing_upload_url(self, client: Client, respx_mock: MockRouter) -> None:
        respx_mock.post(START_URL).mock(return_value=httpx.Response(200, json={}))

        with pytest.raises(SerializationError, match="x-goog-upload-url"):
            await client.files.upload(b"x", UploadFileConfig(mime_type="text/plain"))

    async def test_finalize_failure(self, client: Client, respx_mock: MockRouter) -> None:
        respx_mock.post(START_URL).mock(return_value=_started())
        respx_mock.post(SESSION_URL).mock(return_value=_status("cancelled"))

        with pytest.raises(SerializationError, match="Upload finalize failed: cancelled"):
            await client.files.upload(b"x", UploadFileConfig(mime_type="text/plain"))

    async def test_unexpected_intermediate_status(
        self, client: Client, respx_mock: MockRouter, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(files_module, "CHUNK_SIZE", 2)
        respx_mock.post(START_URL).mock(return_value=_started())
        respx_mock.post(SESSION_URL).mock(return_value=_status("final"))

        with pytest.raises(SerializationError, match="Unexpected upload status: final"):
            await client.files.upload(b"abcd", UploadFileConfig(mime_type="text/plain"))

    async def test_vertex_is_rejected(self, vertex_client: Client) -> None:
        with pytest.raises(ConfigurationError, match="only supported in Gemini API"):
            await vertex_client.files.upload(b"x", UploadFileConfig(mime_type="text/plain"))


class TestNormalizeFileName:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("abc-123", "abc-123"),
            ("files/abc-123", "abc-123"),
            ("https://generativelanguage.googleapis.com/v1beta/files/abc-123", "abc-123"),
            (
                "https://generativelanguage.googleapis.com/v1beta/files/abc-123:download?alt=media",
                "abc-123",
            ),
        ],
    )
    def test_valid_names(self, value: str, expected: str) -> None:
        assert normalize_file_name(value) == expected

    def test_uri_without_files_segment(self) -> None:
        with pytest.raises(ValidationError, match="Could not find 'files/'"):
            normalize_file_name("https://example.com/objects/abc")


class TestFileMetadata:
    async def test_get(self, client: Client, respx_mock: MockRouter) -> None:
        respx_mock.get(f"{GEMINI}/files/abc").mock(
            return_value=httpx.Response(
                200, json={"name": "files/abc", "sizeBytes": "1024", "state": "PROCESSING"}
            )
        )

        file = await client.files.get("files/abc")

        assert file.size_bytes == 1024
        assert file.state == FileState.PROCESSING

    async def test_list_and_all(self, client: Client, respx_mock: MockRouter) -> None:
        route = respx_mock.get(re.compile(re.escape(f"{GEMINI}/files") + r"(\?.*)?$")).mock(
            side_effect=[
                httpx.Response(200, json={"files": [{"name": "files/a"}], "nextPageToken": "t"}),
                httpx.Response(200, json={"files": [{"name": "files/b"}]}),
            ]
        )

        names = [file.name async for file in client.files.all()]

        assert names == ["files/a", "files/b"]
        assert route.calls[1].request.url.params["pageToken"] == "t"

    async def test_delete(self, client: Client, respx_mock: MockRouter) -> None:
        route = respx_mock.delete(f"{GEMINI}/files/abc").mock(
            return_value=httpx.Response(200, json={})
        )

        await client.files.delete("abc")

        assert route.called

    async def test_download(self, client: Client, respx_mock: MockRouter) -> None:
        route = respx_mock.get(
            re.compile(re.escape(f"{GEMINI}/files/abc:download") + r"(\?.*)?$")
        ).mock(return_value=httpx.Response(200, content=b"payload"))

        data = await client.files.download(File(name="files/abc"))

        assert data == b"payload"
        assert route.calls[0].request.url.params["alt"] == "media"

    async def test_register_files(self, respx_mock: MockRouter) -> None:
        route = respx_mock.post(f"{GEMINI}/files:register").mock(
            return_value=httpx.Response(200, json={"files": [{"name": "files/gcs"}]})
        )

        async with Client({"credentials": StaticTokenProvider()}) as client:
            response = await client.files.register_files(["gs://bucket/a.txt"])

        assert response.files[0].name == "files/gcs"
        request = route.calls[0].request
        assert json.loads(request.content) == {"uris": ["gs://bucket/a.txt"]}
        assert request.headers["authorization"] == "Bearer test-token"

    async def test_register_files_needs_credentials(self, client: Client) -> None:
        with pytest.raises(ConfigurationError, match="requires OAuth/ADC credentials"):
            await client.files.register_files(["gs://bucket/a.txt"])


class TestWaitForActive:
    async def test_polls_until_active(self, client: Client, respx_mock: MockRouter) -> None:
        route = respx_mock.get(f"{GEMINI}/files/abc").mock(
            side_effect=[
                httpx.Response(200, json={"name": "files/abc", "state": "PROCESSING"}),
                httpx.Response(200, json={"name": "files/abc", "state": "ACTIVE"}),
            ]
        )

        file = await client.files.wait_for_active("files/abc", poll_interval=0)

        assert file.state == FileState.ACTIVE
        assert route.call_count == 2

    async def test_failed_processing(self, client: Client, respx_mock: MockRouter) -> None:
        respx_mock.get(f"{GEMINI}/files/abc").mock(
            return_value=httpx.Response(200, json={"name": "files/abc", "state": "FAILED"})
        )

        with pytest.raises(APIError, match="File processing failed"):
            await client.files.wait_for_active("abc", poll_interval=0)

    async def test_timeout(self, client: Client, respx_mock: MockRouter) -> None:
        respx_mock.get(f"{GEMINI}/files/abc").mock(
            return_value=httpx.Response(200, json={"name": "files/abc", "state": "PROCESSING"})
        )

        with pytest.raises(TimeoutError):
            await client.files.wait_for_active("abc", poll_interval=0, timeout=0)
