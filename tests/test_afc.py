"""Tests for automatic function calling."""

from __future__ import annotations

import json
import re

import httpx
import pytest
from respx import MockRouter

from genaisdk import (
    Client,
    ConfigurationError,
    FunctionDeclaration,
    GenerateContentConfig,
    Tool,
    ToolConfig,
    ToolError,
    ToolNotFoundError,
    create_tool,
    define_tool,
)
from genaisdk.types import AutomaticFunctionCallingConfig, FunctionCallingConfig

GENERATE_URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"
STREAM_URL = re.compile(
    re.escape(
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:streamGenerateContent"
    )
    + r"(\?.*)?$"
)
MODEL = "gemini-2.5-flash"


@define_tool(description="Get the weather for a city")
def get_weather(city: str) -> str:
    return f"Sunny in {city}"


def _call(name: str, **args: object) -> dict:
    return {
        "candidates": [
            {"content": {"role": "model", "parts": [{"functionCall": {"name": name, "args": args}}]}}
        ]
    }


def _text(text: str) -> dict:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


def _sse(payload: dict) -> httpx.Response:
    return httpx.Response(
        200,
        content=f"data: {json.dumps(payload)}\n\n".encode(),
        headers={"content-type": "text/event-stream"},
    )


def _sent_contents(route, index: int) -> list[dict]:
    return json.loads(route.calls[index].request.content)["contents"]


class TestGenerateWithAfc:
    async def test_function_is_called_and_result_sent_back(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        route = respx_mock.post(GENERATE_URL).mock(
            side_effect=[
                httpx.Response(200, json=_call("get_weather", city="Paris")),
                httpx.Response(200, json=_text("It is sunny in Paris.")),
            ]
        )

        response = await client.models.generate_content(
            MODEL, "Weather in Paris?", callable_tools=[get_weather]
        )

        assert response.text == "It is sunny in Paris."
        assert route.call_count == 2

        first = json.loads(route.calls[0].request.content)
        assert first["tools"][0]["functionDeclarations"][0]["name"] == "get_weather"

        followup = _sent_contents(route, 1)
        assert [content["role"] for content in followup] == ["user", "model", "function"]
        assert followup[2]["parts"][0]["functionResponse"] == {
            "name": "get_weather",
            "response": {"result": "Sunny in Paris"},
        }

        history = response.automatic_function_calling_history
        assert [content.role for content in history] == ["user", "model", "function"]

    async def test_remote_call_budget(self, client: Client, respx_mock: MockRouter) -> None:
        route = respx_mock.post(GENERATE_URL).mock(
            return_value=httpx.Response(200, json=_call("get_weather", city="Oslo"))
        )
        config = GenerateContentConfig(
            automatic_function_calling=AutomaticFunctionCallingConfig(maximum_remote_calls=1)
        )

        response = await client.models.generate_content(
            MODEL, "Weather?", config, callable_tools=[get_weather]
        )

        assert route.call_count == 2
        assert response.function_calls[0].name == "get_weather"

    async def test_disabled_afc_returns_calls(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        route = respx_mock.post(GENERATE_URL).mock(
            return_value=httpx.Response(200, json=_call("get_weather", city="Rome"))
        )
        config = GenerateContentConfig(
            automatic_function_calling=AutomaticFunctionCallingConfig(disable=True)
        )

        response = await client.models.generate_content(
            MODEL, "Weather?", config, callable_tools=[get_weather]
        )

        assert route.call_count == 1
        assert response.function_calls[0].args == {"city": "Rome"}
        body = json.loads(route.calls[0].request.content)
        assert body["tools"][0]["functionDeclarations"][0]["name"] == "get_weather"

    async def test_call_history_can_be_ignored(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        respx_mock.post(GENERATE_URL).mock(
            side_effect=[
                httpx.Response(200, json=_call("get_weather", city="Lima")),
                httpx.Response(200, json=_text("Warm.")),
            ]
        )
        config = GenerateContentConfig(
            automatic_function_calling=AutomaticFunctionCallingConfig(ignore_call_history=True)
        )

        response = await client.models.generate_content(
            MODEL, "Weather?", config, callable_tools=[get_weather]
        )

        assert response.text == "Warm."
        assert response.automatic_function_calling_history is None

    async def test_unknown_function_raises(self, client: Client, respx_mock: MockRouter) -> None:
        respx_mock.post(GENERATE_URL).mock(
            return_value=httpx.Response(200, json=_call("book_flight", to="NYC"))
        )

        with pytest.raises(ToolNotFoundError, match="Missing tool: book_flight"):
            await client.models.generate_content(MODEL, "Book it", callable_tools=[get_weather])

    async def test_unnamed_call_raises(self, client: Client, respx_mock: MockRouter) -> None:
        respx_mock.post(GENERATE_URL).mock(
            return_value=httpx.Response(
                200,
                json={"candidates": [{"content": {"parts": [{"functionCall": {"args": {}}}]}}]},
            )
        )

        with pytest.raises(ToolError, match="name was not returned"):
            await client.models.generate_content(MODEL, "Hi", callable_tools=[get_weather])

    async def test_duplicate_declarations_are_rejected(self, client: Client) -> None:
        duplicate = create_tool("get_weather", "Another weather tool")

        with pytest.raises(ConfigurationError, match="Duplicate tool declaration name"):
            await client.models.generate_content(
                MODEL, "Hi", callable_tools=[get_weather, duplicate]
            )

    async def test_plain_declarations_cannot_be_mixed_in(self, client: Client) -> None:
        config = GenerateContentConfig(
            tools=[Tool(function_declarations=[FunctionDeclaration(name="manual")])]
        )

        with pytest.raises(ConfigurationError, match="Incompatible tools found"):
            await client.models.generate_content(
                MODEL, "Hi", config, callable_tools=[get_weather]
            )

    async def test_raw_response_is_rejected(self, client: Client) -> None:
        config = GenerateContentConfig(should_return_http_response=True)

        with pytest.raises(ConfigurationError, match="callable tools"):
            await client.models.generate_content(
                MODEL, "Hi", config, callable_tools=[get_weather]
            )

    async def test_streamed_arguments_need_afc_disabled(self, client: Client) -> None:
        config = GenerateContentConfig(
            tool_config=ToolConfig(
                function_calling_config=FunctionCallingConfig(stream_function_call_arguments=True)
            )
        )

        with pytest.raises(ConfigurationError, match="stream_function_call_arguments"):
            await client.models.generate_content(
                MODEL, "Hi", config, callable_tools=[get_weather]
            )


class TestStreamWithAfc:
    async def test_function_results_are_yielded_between_rounds(
        self, client: Client, respx_mock: MockRouter
    ) -> None:
        route = respx_mock.post(STREAM_URL).mock(
            side_effect=[
                _sse(_call("get_weather", city="Kyiv")),
                _sse(_text("Sunny today.")),
            ]
        )

        chunks = [
            chunk
            async for chunk in client.models.generate_content_stream(
                MODEL, "Weather in Kyiv?", callable_tools=[get_weather]
            )
        ]

        assert len(chunks) == 3
        assert chunks[0].function_calls[0].name == "get_weather"
        assert chunks[1].candidates[0].content.role == "function"
        assert chunks[1].candidates[0].content.parts[0].function_response.response == {
            "result": "Sunny in Kyiv"
        }
        assert [c.role for c in chunks[1].automatic_function_calling_history] == [
            "user",
            "model",
            "function",
        ]
        assert chunks[2].text == "Sunny today."

        followup = _sent_contents(route, 1)
        assert [content["role"] for content in followup] == ["user", "model", "model", "function"]
