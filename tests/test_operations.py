"""Tests for long-running operations."""

from __future__ import annotations

import json

import httpx
import pytest
from respx import MockRouter

from genaisdk import (
    APIError,
    Client,
    ConfigurationError,
    GenerateVideosOperation,
    Operation,
    TimeoutError,
)

GEMINI = "https://generativelanguage.googleapis.com/v1beta"
VERTEX = "https://us-central1-aiplatform.googleapis.com/v1beta1"
PARENT = "projects/test-project/locations/us-central1"


async def test_get_operation(client: Client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{GEMINI}/operations/op1").mock(
        return_value=httpx.Response(
            200, json={"name": "operations/op1", "done": True, "response": {"ok": True}}
        )
    )

    operation = await client.operations.get("op1")

    assert operation.done is True
    assert operation.response == {"ok": True}


@pytest.mark.parametrize(
    "name",
    ["op1", "operations/op1", f"{PARENT}/operations/op1"],
)
async def test_vertex_operation_names(
    vertex_client: Client, respx_mock: MockRouter, name: str
) -> None:
    route = respx_mock.get(f"{VERTEX}/{PARENT}/operations/op1").mock(
        return_value=httpx.Response(200, json={"name": f"{PARENT}/operations/op1"})
    )

    await vertex_client.operations.get(name)

    assert route.called


async def test_wait_polls_until_done(client: Client, respx_mock: MockRouter) -> None:
    route = respx_mock.get(f"{GEMINI}/tunedModels/t/operations/op1").mock(
        side_effect=[
            httpx.Response(200, json={"name": "tunedModels/t/operations/op1", "done": False}),
            httpx.Response(200, json={"name": "tunedModels/t/operations/op1", "done": True}),
        ]
    )

    operation = await client.operations.wait("tunedModels/t/operations/op1", poll_interval=0)

    assert operation.done is True
    assert route.call_count == 2


async def test_wait_returns_finished_operation_immediately(client: Client) -> None:
    finished = Operation(name="operations/op1", done=True)

    assert await client.operations.wait(finished) is finished


async def test_wait_raises_operation_error(client: Client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{GEMINI}/operations/op1").mock(
        return_value=httpx.Response(
            200,
            json={
                "name": "operations/op1",
                "done": True,
                "error": {"code": 9, "message": "precondition failed", "status": "FAILED_PRECONDITION"},
            },
        )
    )

    with pytest.raises(APIError) as exc_info:
        await client.operations.wait("operations/op1", poll_interval=0)

    assert str(exc_info.value) == "precondition failed"
    assert exc_info.value.status_code == 9
    assert exc_info.value.status == "FAILED_PRECONDITION"


async def test_wait_times_out(client: Client) -> None:
    with pytest.raises(TimeoutError):
        await client.operations.wait(Operation(name="operations/op1"), timeout=0)


async def test_wait_needs_a_name(client: Client) -> None:
    with pytest.raises(ConfigurationError, match="Operation name is empty"):
        await client.operations.wait(Operation(done=False))


async def test_wait_polls_gemini_video_generation(
    client: Client, respx_mock: MockRouter
) -> None:
    name = "models/veo-3.0-generate-001/operations/v1"
    route = respx_mock.get(f"{GEMINI}/{name}").mock(
        return_value=httpx.Response(
            200,
            json={
                "name": name,
                "done": True,
                "response": {
                    "generateVideoResponse": {
                        "generatedSamples": [
                            {"video": {"uri": "https://example.com/v.mp4", "encoding": "video/mp4"}}
                        ],
                        "raiMediaFilteredCount": 0,
                    }
                },
            },
        )
    )

    operation = await client.operations.wait(GenerateVideosOperation(name=name), poll_interval=0)

    assert isinstance(operation, GenerateVideosOperation)
    assert route.call_count == 1
    video = operation.response.generated_videos[0].video
    assert video.uri == "https://example.com/v.mp4"
    assert video.mime_type == "video/mp4"
    assert operation.response.rai_media_filtered_count == 0


async def test_vertex_video_generation_is_fetched_through_the_model(
    vertex_client: Client, respx_mock: MockRouter
) -> None:
    model = f"{PARENT}/publishers/google/models/veo-3.0-generate-001"
    name = f"{model}/operations/v1"
    route = respx_mock.post(f"{VERTEX}/{model}:fetchPredictOperation").mock(
        side_effect=[
            httpx.Response(200, json={"name": name, "done": False}),
            httpx.Response(
                200,
                json={
                    "name": name,
                    "done": True,
                    "response": {
                        "videos": [{"gcsUri": "gs://bucket/v.mp4", "mimeType": "video/mp4"}],
                        "raiMediaFilteredReasons": ["filtered"],
                    },
                },
            ),
        ]
    )

    operation = await vertex_client.operations.wait(
        GenerateVideosOperation(name=name), poll_interval=0
    )

    assert route.call_count == 2
    assert json.loads(route.calls[0].request.content) == {"operationName": name}
    video = operation.response.generated_videos[0].video
    assert video.uri == "gs://bucket/v.mp4"
    assert operation.response.rai_media_filtered_reasons == ["filtered"]


async def test_vertex_video_operation_without_model_uses_get(
    vertex_client: Client, respx_mock: MockRouter
) -> None:
    route = respx_mock.get(f"{VERTEX}/{PARENT}/operations/v1").mock(
        return_value=httpx.Response(200, json={"name": f"{PARENT}/operations/v1", "done": True})
    )

    operation = await vertex_client.operations.get_videos_operation("v1")

    assert operation.done is True
    assert operation.response is None
    assert route.called


async def test_failed_video_generation_raises(client: Client, respx_mock: MockRouter) -> None:
    name = "models/veo-3.0-generate-001/operations/v1"
    respx_mock.get(f"{GEMINI}/{name}").mock(
        return_value=httpx.Response(
            200,
            json={"name": name, "done": True, "error": {"code": 3, "message": "bad prompt"}},
        )
    )

    with pytest.raises(APIError, match="bad prompt"):
        await client.operations.wait(GenerateVideosOperation(name=name), poll_interval=0)
