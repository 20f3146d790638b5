"""Tests for Live API sessions against an in-process websocket server."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from respx import MockRouter
from websockets.asyncio.server import ServerConnection, serve

from genaisdk import (
    Client,
    ConfigurationError,
    CreateAuthTokenConfig,
    FunctionResponse,
    GenerationConfig,
    HttpOptions,
    LiveConnectConfig,
    LiveConnectConstraints,
    LiveSessionError,
    SessionClosedError,
    TimeoutError,
    Tool,
)
from genaisdk.live import build_live_setup, build_live_url
from genaisdk.tokens import build_field_mask

LIVE_PATH = "/ws/google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"


@dataclass
class FakeLiveServer:
    port: int = 0
    received: list[dict[str, Any]] = field(default_factory=list)
    paths: list[str] = field(default_factory=list)
    headers: list[Any] = field(default_factory=list)


async def _reply(connection: ServerConnection, message: dict[str, Any]) -> None:
    await connection.send(json.dumps(message))


@pytest.fixture
async def live_server() -> AsyncIterator[FakeLiveServer]:
    state = FakeLiveServer()

    async def handler(connection: ServerConnection) -> None:
        state.paths.append(connection.request.path)
        state.headers.append(connection.request.headers)
        async for frame in connection:
            message = json.loads(frame)
            state.received.append(message)
            if "setup" in message:
                await _reply(connection, {"setupComplete": {"sessionId": "session-1"}})
                continue

            turns = message.get("clientContent", {}).get("turns") or []
            text = turns[0]["parts"][0]["text"] if turns else None
            if text == "bye":
                await connection.close()
                return
            if text is not None:
                await _reply(
                    connection,
                    {
                        "serverContent": {
                            "modelTurn": {"role": "model", "parts": [{"text": f"echo: {text}"}]},
                            "turnComplete": True,
                        }
                    },
                )
                await _reply(
                    connection,
                    {
                        "sessionResumptionUpdate": {
                            "newHandle": "handle-1",
                            "resumable": True,
                            "lastConsumedClientMessageIndex": "1",
                        }
                    },
                )
                await _reply(connection, {"goAway": {"timeLeft": "10s"}})
            else:
                await _reply(connection, {"ack": True})

    async with serve(handler, "127.0.0.1", 0) as server:
        state.port = server.sockets[0].getsockname()[1]
        yield state


def _client(port: int, api_key: str = "test-key", **options: Any) -> Client:
    return Client(
        {
            "api_key": api_key,
            "http_options": HttpOptions(
                base_url=f"http://127.0.0.1:{port}/",
                api_version=options.pop("api_version", None),
            ),
            **options,
        }
    )


class TestLiveSession:
    async def test_setup_and_text_turn(self, live_server: FakeLiveServer) -> None:
        client = _client(live_server.port)
        config = LiveConnectConfig(response_modalities=["TEXT"], system_instruction="Be brief")

        async with client.live.connect("gemini-2.0-flash-live-001", config) as session:
            assert session.session_id == "session-1"

            await session.send_text("hello")
            messages = [await session.receive() for _ in range(3)]

            assert messages[0].text == "echo: hello"
            assert messages[0].server_content.turn_complete is True
            assert session.resumption_handle == "handle-1"
            assert session.resumption_state.resumable is True
            assert session.resumption_state.last_consumed_client_message_index == 1
            assert session.go_away_time_left == "10s"

        assert session.closed
        assert live_server.paths == [LIVE_PATH]
        headers = live_server.headers[0]
        assert headers["x-goog-api-key"] == "test-key"
        assert headers["user-agent"].startswith("genaisdk/")
        assert live_server.received[0] == {
            "setup": {
                "model": "models/gemini-2.0-flash-live-001",
                "generationConfig": {"responseModalities": ["TEXT"]},
                "systemInstruction": {"parts": [{"text": "Be brief"}]},
            }
        }
        assert live_server.received[1] == {
            "clientContent": {
                "turnComplete": True,
                "turns": [{"role": "user", "parts": [{"text": "hello"}]}],
            }
        }

    async def test_realtime_input_and_tool_response(self, live_server: FakeLiveServer) -> None:
        client = _client(live_server.port)

        async with client.live.connect("gemini-live") as session:
            await session.send_audio(b"\x00\x01")
            await session.receive()
            await session.send_realtime_input(text="typed", activity_end=True)
            await session.receive()
            await session.send_tool_response(
                [FunctionResponse(name="lookup", response={"ok": True}, id="call-1")]
            )
            await session.receive()

        assert live_server.received[1:] == [
            {"realtimeInput": {"audio": {"data": "AAE=", "mimeType": "audio/pcm;rate=16000"}}},
            {"realtimeInput": {"text": "typed", "activityEnd": {}}},
            {
                "toolResponse": {
                    "functionResponses": [
                        {"name": "lookup", "response": {"ok": True}, "id": "call-1"}
                    ]
                }
            },
        ]

    async def test_server_close_ends_iteration(self, live_server: FakeLiveServer) -> None:
        client = _client(live_server.port)

        async with client.live.connect("gemini-live") as session:
            await session.send_text("bye")
            messages = [message async for message in session]

            assert messages == []
            assert session.closed
            with pytest.raises(SessionClosedError):
                await session.send_text("again")

    async def test_ephemeral_token_uses_constrained_endpoint(
        self, live_server: FakeLiveServer
    ) -> None:
        client = _client(live_server.port, api_key="auth_tokens/abc", api_version="v1alpha")

        async with client.live.connect("gemini-live"):
            pass

        assert live_server.paths == [
            "/ws/google.ai.generativelanguage.v1alpha.GenerativeService."
            "BidiGenerateContentConstrained"
        ]
        headers = live_server.headers[0]
        assert headers["authorization"] == "Token auth_tokens/abc"
        assert "x-goog-api-key" not in headers


class TestConnectFailures:
    async def test_setup_timeout(self) -> None:
        async def silent(connection: ServerConnection) -> None:
            await connection.wait_closed()

        async with serve(silent, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            client = _client(port, timeout=0.2)

            with pytest.raises(TimeoutError, match="setup_complete"):
                async with client.live.connect("gemini-live"):
                    pass

    async def test_closed_before_setup(self) -> None:
        async def rude(connection: ServerConnection) -> None:
            await connection.recv()
            await connection.close()

        async with serve(rude, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]

            with pytest.raises(LiveSessionError, match="before setup_complete"):
                async with _client(port).live.connect("gemini-live"):
                    pass

    async def test_vertex_is_rejected(self, vertex_client: Client) -> None:
        with pytest.raises(ConfigurationError, match="Vertex AI"):
            async with vertex_client.live.connect("gemini-live"):
                pass

    def test_ephemeral_token_requires_v1alpha(self) -> None:
        with pytest.raises(ConfigurationError, match="v1alpha"):
            build_live_url("https://generativelanguage.googleapis.com/", "v1beta", "auth_tokens/x")


class TestSetupMessage:
    def test_top_level_fields_override_generation_config(self) -> None:
        config = LiveConnectConfig(
            generation_config=GenerationConfig(temperature=0.2, max_output_tokens=10),
            temperature=0.9,
            tools=[Tool(google_search={})],
        )

        assert build_live_setup("gemini-live", config) == {
            "model": "models/gemini-live",
            "generationConfig": {"temperature": 0.9, "maxOutputTokens": 10},
            "tools": [{"googleSearch": {}}],
        }

    def test_url_uses_secure_scheme(self) -> None:
        url, headers = build_live_url("https://generativelanguage.googleapis.com/", "v1beta", "k")

        assert url == f"wss://generativelanguage.googleapis.com{LIVE_PATH}"
        assert headers == {"x-goog-api-key": "k"}


class TestAuthTokens:
    def test_field_mask(self) -> None:
        setup = {"model": "models/x", "generationConfig": {"temperature": 0.5}}

        assert build_field_mask(setup, None) is None
        assert build_field_mask(setup, []) == "model,generationConfig.temperature"
        assert build_field_mask(setup, ["top_k", "system_instruction"]) == (
            "model,generationConfig.temperature,generationConfig.topK,systemInstruction"
        )
        assert build_field_mask(None, ["uses"]) == "uses"

    async def test_create(self, client: Client, respx_mock: MockRouter) -> None:
        route = respx_mock.post("https://generativelanguage.googleapis.com/v1beta/auth_tokens").mock(
            return_value=httpx.Response(200, json={"name": "auth_tokens/abc"})
        )

        token = await client.auth_tokens.create(
            CreateAuthTokenConfig(
                expire_time="2030-01-01T00:00:00Z",
                uses=1,
                live_connect_constraints=LiveConnectConstraints(
                    model="gemini-live", config=LiveConnectConfig(temperature=0.5)
                ),
                lock_additional_fields=[],
            )
        )

        assert token.name == "auth_tokens/abc"
        assert json.loads(route.calls[0].request.content) == {
            "expireTime": "2030-01-01T00:00:00Z",
            "uses": 1,
            "bidiGenerateContentSetup": {
                "model": "models/gemini-live",
                "generationConfig": {"temperature": 0.5},
            },
            "fieldMask": "model,generationConfig.temperature",
        }

    async def test_vertex_is_rejected(self, vertex_client: Client) -> None:
        with pytest.raises(ConfigurationError, match="only supported in Gemini API"):
            await vertex_client.auth_tokens.create()
