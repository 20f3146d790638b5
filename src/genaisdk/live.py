"""
Live API: bidirectional streaming over a websocket.

Example:
    >>> async with client.live.connect(
    ...     "gemini-2.0-flash-live-001",
    ...     LiveConnectConfig(response_modalities=["TEXT"]),
    ... ) as session:
    ...     await session.send_text("Hello!")
    ...     async for message in session:
    ...         print(message.text or "", end="")
    ...         if message.server_content and message.server_content.turn_complete:
    ...             break
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, InvalidHandshake

from ._common import from_wire, to_camel, to_contents, to_system_instruction, to_wire
from .backend import API_KEY_HEADER, HttpBackend
from .exceptions import (
    ConfigurationError,
    ConnectionError,
    LiveSessionError,
    SerializationError,
    SessionClosedError,
    TimeoutError,
)
from .types import (
    Blob,
    ContentInput,
    FunctionResponse,
    LiveConnectConfig,
    LiveServerMessage,
)

logger = logging.getLogger(__name__)

DEFAULT_SETUP_TIMEOUT = 30.0

# LiveConnectConfig fields folded into generationConfig
_GENERATION_FIELDS = (
    "response_modalities",
    "temperature",
    "top_p",
    "top_k",
    "max_output_tokens",
    "seed",
    "speech_config",
    "thinking_config",
    "media_resolution",
)

# LiveConnectConfig fields sent as-is in the setup message
_SETUP_FIELDS = (
    "tools",
    "realtime_input_config",
    "session_resumption",
    "context_window_compression",
    "input_audio_transcription",
    "output_audio_transcription",
    "proactivity",
    "explicit_vad_signal",
)


# =============================================================================
# Setup
# =============================================================================


def _model_name(model: str) -> str:
    return model if model.startswith("models/") else f"models/{model}"


def build_live_setup(model: str | None, config: LiveConnectConfig | None) -> dict[str, Any]:
    """
    Build the ``setup`` payload of a live session.

    Top-level sampling fields override the same fields of
    ``generation_config``.
    """
    config = config or LiveConnectConfig()
    setup: dict[str, Any] = {}
    if model:
        setup["model"] = _model_name(model)

    generation: dict[str, Any] = to_wire(config.generation_config) or {}
    overrides = {name: getattr(config, name) for name in _GENERATION_FIELDS}
    generation.update(to_wire({to_camel(k): v for k, v in overrides.items() if v is not None}))
    if config.generation_config is not None or generation:
        setup["generationConfig"] = generation

    system_instruction = to_system_instruction(config.system_instruction)
    if system_instruction is not None:
        setup["systemInstruction"] = to_wire(system_instruction)
    for name in _SETUP_FIELDS:
        value = getattr(config, name)
        if value is not None:
            setup[to_camel(name)] = to_wire(value)
    return setup


def build_live_url(base_url: str, api_version: str, api_key: str) -> tuple[str, dict[str, str]]:
    """
    Websocket URL and auth headers for a live session.

    An ephemeral token (``auth_tokens/...``) connects to the constrained
    endpoint and requires ``v1alpha``.

    Raises:
        ConfigurationError: If an ephemeral token is used with another version.
    """
    ephemeral = api_key.startswith("auth_tokens/")
    if ephemeral and api_version != "v1alpha":
        raise ConfigurationError(
            "Ephemeral tokens require v1alpha for Live API", config_key="api_version"
        )

    parts = urlsplit(base_url)
    scheme = "ws" if parts.scheme in ("http", "ws") else "wss"
    method = "BidiGenerateContentConstrained" if ephemeral else "BidiGenerateContent"
    path = (
        f"{parts.path.rstrip('/')}/ws/google.ai.generativelanguage."
        f"{api_version}.GenerativeService.{method}"
    )
    url = urlunsplit((scheme, parts.netloc, path, "", ""))

    headers = {"Authorization": f"Token {api_key}"} if ephemeral else {"x-goog-api-key": api_key}
    return url, headers


# =============================================================================
# Session
# =============================================================================


@dataclass
class LiveSessionResumptionState:
    """Latest session resumption update received from the server."""

    handle: str | None = None
    resumable: bool | None = None
    last_consumed_client_message_index: int | None = None


class LiveSession:
    """
    An open live session.

    Messages are read on demand through ``receive`` or ``async for``.
    """

    def __init__(self, connection: ClientConnection, session_id: str | None = None) -> None:
        self._connection = connection
        self.session_id = session_id
        self.resumption_state = LiveSessionResumptionState()
        self.go_away_time_left: str | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def resumption_handle(self) -> str | None:
        return self.resumption_state.handle

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    async def _send(self, message: dict[str, Any]) -> None:
        if self._closed:
            raise SessionClosedError(self.session_id)
        try:
            await self._connection.send(json.dumps(message))
        except ConnectionClosed as e:
            self._closed = True
            raise SessionClosedError(self.session_id) from e

    async def send_client_content(
        self,
        turns: ContentInput | None = None,
        turn_complete: bool = True,
    ) -> None:
        """Send conversation turns. ``turn_complete`` asks the model to answer."""
        content: dict[str, Any] = {"turnComplete": turn_complete}
        if turns is not None:
            content["turns"] = to_wire(to_contents(turns))
        await self._send({"clientContent": content})

    async def send_text(self, text: str) -> None:
        await self.send_client_content(text, turn_complete=True)

    async def send_realtime_input(
        self,
        *,
        media: Blob | None = None,
        audio: Blob | None = None,
        audio_stream_end: bool | None = None,
        video: Blob | None = None,
        text: str | None = None,
        activity_start: bool = False,
        activity_end: bool = False,
    ) -> None:
        """Stream realtime input: audio, video, text or activity signals."""
        realtime: dict[str, Any] = {}
        if media is not None:
            realtime["mediaChunks"] = [to_wire(media)]
        if audio is not None:
            realtime["audio"] = to_wire(audio)
        if audio_stream_end is not None:
            realtime["audioStreamEnd"] = audio_stream_end
        if video is not None:
            realtime["video"] = to_wire(video)
        if text is not None:
            realtime["text"] = text
        if activity_start:
            realtime["activityStart"] = {}
        if activity_end:
            realtime["activityEnd"] = {}
        await self._send({"realtimeInput": realtime})

    async def send_audio(self, data: bytes, mime_type: str = "audio/pcm;rate=16000") -> None:
        await self.send_realtime_input(audio=Blob(data=data, mime_type=mime_type))

    async def send_tool_response(self, function_responses: list[FunctionResponse]) -> None:
        """Answer a ``tool_call`` message."""
        await self._send({"toolResponse": {"functionResponses": to_wire(function_responses)}})

    # -------------------------------------------------------------------------
    # Receiving
    # -------------------------------------------------------------------------

    def _track(self, message: LiveServerMessage) -> None:
        update = message.session_resumption_update
        if update is not None:
            if update.new_handle is not None or update.resumable is not None:
                self.resumption_state.handle = update.new_handle
            if update.resumable is not None:
                self.resumption_state.resumable = update.resumable
            if update.last_consumed_client_message_index is not None:
                self.resumption_state.last_consumed_client_message_index = (
                    update.last_consumed_client_message_index
                )
        if message.go_away is not None:
            self.go_away_time_left = message.go_away.time_left
            logger.warning(f"Live session going away in {message.go_away.time_left}")

    async def receive(self) -> LiveServerMessage | None:
        """
        Wait for the next server message.

        Returns:
            The message, or None once the server closed the session.

        Raises:
            LiveSessionError: If the connection dropped abnormally.
        """
        if self._closed:
            return None
        try:
            frame = await self._connection.recv()
        except ConnectionClosedOK:
            self._closed = True
            return None
        except ConnectionClosed as e:
            self._closed = True
            raise LiveSessionError(
                f"Live connection closed: {e}", session_id=self.session_id
            ) from e

        message = parse_server_message(frame)
        self._track(message)
        return message

    async def __aiter__(self) -> AsyncIterator[LiveServerMessage]:
        while True:
            message = await self.receive()
            if message is None:
                return
            yield message

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._connection.close()
        logger.debug(f"Closed live session {self.session_id}")


def parse_server_message(frame: str | bytes) -> LiveServerMessage:
    try:
        data = json.loads(frame)
    except ValueError as e:
        raise SerializationError(f"Invalid live message: {e}", payload=str(frame)) from e
    if not isinstance(data, dict):
        raise SerializationError("Expected a JSON object message", payload=str(frame))
    return from_wire(LiveServerMessage, data)


# =============================================================================
# Connect
# =============================================================================


class Live:
    """Live API entry point. Accessed as ``client.live``."""

    def __init__(self, backend: HttpBackend) -> None:
        self._backend = backend

    def _setup_timeout(self) -> float:
        timeout = self._backend.config.timeout
        return timeout if timeout is not None else DEFAULT_SETUP_TIMEOUT

    @asynccontextmanager
    async def connect(
        self,
        model: str,
        config: LiveConnectConfig | None = None,
    ) -> AsyncIterator[LiveSession]:
        """
        Open a live session and close it on exit.

        Only the Gemini API with an API key or an ephemeral token is
        supported.

        Raises:
            ConfigurationError: On Vertex AI or without an API key.
            TimeoutError: If the connection or setup does not complete in time.
            LiveSessionError: If the server closes before setup completes.
        """
        if self._backend.is_vertex:
            raise ConfigurationError("Live API for Vertex AI is not supported yet")
        api_key = self._backend.config.api_key
        if not api_key:
            raise ConfigurationError("API key required for Live API", config_key="api_key")

        config = config or LiveConnectConfig()
        http_options = config.http_options
        url, auth_headers = build_live_url(
            self._backend.base_url(http_options),
            self._backend.api_version(http_options),
            api_key,
        )
        headers = dict(self._backend.config.headers)
        if http_options is not None and http_options.headers:
            headers.update(http_options.headers)
        # websockets sends its own User-Agent and the key goes in auth_headers
        user_agent = headers.pop("user-agent", None)
        headers.pop(API_KEY_HEADER, None)
        headers.update(auth_headers)

        session = await self._open(url, headers, user_agent, build_live_setup(model, config))
        try:
            yield session
        finally:
            await session.close()

    async def _open(
        self,
        url: str,
        headers: dict[str, str],
        user_agent: str | None,
        setup: dict[str, Any],
    ) -> LiveSession:
        timeout = self._setup_timeout()
        try:
            connection = await connect(
                url,
                additional_headers=headers,
                user_agent_header=user_agent,
                open_timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"Timed out connecting to Live API after {timeout}s", timeout) from e
        except (OSError, InvalidHandshake) as e:
            raise ConnectionError(f"Failed to connect to Live API: {e}", endpoint=url) from e

        try:
            await connection.send(json.dumps({"setup": setup}))
            session_id = await asyncio.wait_for(self._wait_setup_complete(connection), timeout)
        except asyncio.TimeoutError as e:
            await connection.close()
            raise TimeoutError(
                f"Timed out waiting for Live API setup_complete after {timeout}s", timeout
            ) from e
        except BaseException:
            await connection.close()
            raise

        logger.info(f"Live session {session_id} started")
        return LiveSession(connection, session_id)

    @staticmethod
    async def _wait_setup_complete(connection: ClientConnection) -> str | None:
        while True:
            try:
                frame = await connection.recv()
            except ConnectionClosed as e:
                raise LiveSessionError(f"WebSocket closed before setup_complete: {e}") from e
            message = parse_server_message(frame)
            if message.setup_complete is not None:
                return message.setup_complete.session_id
