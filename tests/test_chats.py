"""Tests for chat sessions."""

from __future__ import annotations

import json
import re

import httpx
import pytest
from respx import MockRouter

from genaisdk import APIError, ChatEvent, Client, Content, EventType, Part, define_tool
from genaisdk.chats import extract_curated_history

GENERATE_URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"
STREAM_URL = re.compile(
    re.escape(
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:streamGenerateContent"
    )
    + r"(\?.*)?$"
)


def _reply(text: str) -> dict:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


class TestChat:
    async def test_history_is_sent_with_each_message(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        route = respx_mock.post(GENERATE_URL).mock(
            side_effect=[
                httpx.Response(200, json=_reply("Hello Ada!")),
                httpx.Response(200, json=_reply("Your name is Ada.")),
            ]
        )
        chat = client.chats.create("gemini-2.5-flash")

        await chat.send_message("Hi, I'm Ada.")
        response = await chat.send_message("What is my name?")

        assert response.text == "Your name is Ada."
        sent = json.loads(route.calls[1].request.content)["contents"]
        assert [content["role"] for content in sent] == ["user", "model", "user"]
        assert [content.role for content in chat.get_history()] == [
            "user",
            "model",
            "user",
            "model",
        ]
        assert chat.metadata["turns"] == 2

    async def test_initial_history(self, client: Client, respx_mock: MockRouter) -> None:
        route = respx_mock.post(GENERATE_URL).mock(
            return_value=httpx.Response(200, json=_reply("Sure."))
        )
        chat = client.chats.create(
            "gemini-2.5-flash",
            history=[Content.user("Earlier"), Content.model("Noted")],
        )

        await chat.send_message("Continue")

        sent = json.loads(route.calls[0].request.content)["contents"]
        assert [content["parts"][0]["text"] for content in sent] == [
            "Earlier",
            "Noted",
            "Continue",
        ]

    async def test_failed_message_keeps_user_turn(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        respx_mock.post(GENERATE_URL).mock(
            return_value=httpx.Response(
                500, json={"error": {"code": 500, "message": "boom", "status": "INTERNAL"}}
            )
        )
        chat = client.chats.create("gemini-2.5-flash")
        events: list[ChatEvent] = []
        chat.on(events.append)

        with pytest.raises(APIError):
            await chat.send_message("Hello?")

        assert chat.get_history() == [Content.user("Hello?")]
        assert [event.type for event in events] == [EventType.ERROR]
        assert "boom" in events[0].data["error"]

    async def test_message_event(self, client: Client, respx_mock: MockRouter) -> None:
        respx_mock.post(GENERATE_URL).mock(return_value=httpx.Response(200, json=_reply("Hi")))
        chat = client.chats.create("gemini-2.5-flash")
        events: list[ChatEvent] = []
        unsubscribe = chat.on(events.append)

        await chat.send_message("Hello")
        unsubscribe()
        await chat.send_message("Again")

        assert len(events) == 1
        assert events[0].type == EventType.MESSAGE
        assert events[0].data["content"] == "Hi"
        assert events[0].chat_id == chat.chat_id

    async def test_failing_handler_does_not_break_chat(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        respx_mock.post(GENERATE_URL).mock(return_value=httpx.Response(200, json=_reply("Hi")))
        chat = client.chats.create("gemini-2.5-flash")

        def broken(event: ChatEvent) -> None:
            raise RuntimeError("handler bug")

        chat.on(broken)

        response = await chat.send_message("Hello")

        assert response.text == "Hi"

    async def test_stream_emits_deltas(self, client: Client, respx_mock: MockRouter) -> None:
        body = "".join(
            f"data: {json.dumps(_reply(text))}\n\n" for text in ("Once ", "upon ", "a time")
        )
        respx_mock.post(STREAM_URL).mock(
            return_value=httpx.Response(
                200, content=body.encode(), headers={"content-type": "text/event-stream"}
            )
        )
        chat = client.chats.create("gemini-2.5-flash")
        events: list[ChatEvent] = []
        chat.on(events.append)

        texts = [chunk.text async for chunk in chat.send_message_stream("Tell a story")]

        assert texts == ["Once ", "upon ", "a time"]
        deltas = [e.data for e in events if e.type == EventType.MESSAGE_DELTA]
        assert deltas[-1] == {"delta_content": "a time", "content": "Once upon a time"}
        assert events[-1].type == EventType.MESSAGE
        assert events[-1].data == {"content": "Once upon a time"}
        history = chat.get_history()
        assert history[-1] == Content.model("a time")
        assert len(history) == 2

    async def test_afc_history_replaces_local_history(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        @define_tool(description="Current time")
        def now() -> str:
            return "12:00"

        respx_mock.post(GENERATE_URL).mock(
            side_effect=[
                httpx.Response(
                    200,
                    json={
                        "candidates": [
                            {
                                "content": {
                                    "role": "model",
                                    "parts": [{"functionCall": {"name": "now", "args": {}}}],
                                }
                            }
                        ]
                    },
                ),
                httpx.Response(200, json=_reply("It is noon.")),
            ]
        )
        chat = client.chats.create("gemini-2.5-flash", callable_tools=[now])

        await chat.send_message("What time is it?")

        assert [content.role for content in chat.get_history()] == [
            "user",
            "model",
            "function",
            "model",
        ]

    def test_clear_history(self, client: Client) -> None:
        chat = client.chats.create("gemini-2.5-flash", history=[Content.user("x")])
        events: list[ChatEvent] = []
        chat.on(events.append)

        chat.clear_history()

        assert chat.get_history() == []
        assert events[0].type == EventType.HISTORY_CLEARED


class TestCuratedHistory:
    def test_invalid_model_turn_drops_its_input(self) -> None:
        history = [
            Content.user("first"),
            Content.model("ok"),
            Content.user("second"),
            Content(role="model", parts=[Part(text="")]),
            Content.user("third"),
            Content(role="model", parts=[]),
        ]

        curated = extract_curated_history(history)

        assert curated == [Content.user("first"), Content.model("ok")]

    def test_consecutive_model_turns_are_kept_together(self) -> None:
        history = [
            Content.user("q"),
            Content.model("a"),
            Content.model("b"),
        ]

        assert extract_curated_history(history) == history

    async def test_get_history_curated(self, client: Client) -> None:
        chat = client.chats.create(
            "gemini-2.5-flash",
            history=[Content.user("q"), Content(role="model", parts=[Part()])],
        )

        assert chat.get_history(curated=True) == []
        assert len(chat.get_history()) == 2


class TestChats:
    def test_registry(self, client: Client) -> None:
        first = client.chats.create("gemini-2.5-flash")
        second = client.chats.create("gemini-2.5-pro")

        assert client.chats.get(first.chat_id) is first
        assert [m["model"] for m in client.chats.list()] == ["gemini-2.5-flash", "gemini-2.5-pro"]

        client.chats.delete(first.chat_id)

        assert client.chats.get(first.chat_id) is None
        assert [m["chat_id"] for m in client.chats.list()] == [second.chat_id]
        assert first.chat_id != second.chat_id
