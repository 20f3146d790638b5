"""
Multi-turn chat sessions.

A chat keeps the conversation history locally and sends it with every
message, so the model sees the whole exchange.

Example:
    >>> chat = client.chats.create("gemini-2.5-flash")
    >>> chat.on(lambda event: print(event.type, event.data))
    >>>
    >>> response = await chat.send_message("Hi, my name is Ada.")
    >>> response = await chat.send_message("What is my name?")
    >>>
    >>> async for chunk in chat.send_message_stream("Tell me a joke"):
    ...     print(chunk.text or "", end="")
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timezone
from typing import Any

from ._common import to_contents
from .models import Models
from .tools import CallableTool
from .types import (
    ChatEvent,
    ChatEventHandler,
    ChatMetadata,
    Content,
    ContentInput,
    EventType,
    GenerateContentConfig,
    GenerateContentResponse,
    Part,
    Role,
)

logger = logging.getLogger(__name__)


def _is_valid_part(part: Part) -> bool:
    if part == Part():
        return False
    return part.text is None or part.text != ""


def _is_valid_content(content: Content) -> bool:
    return bool(content.parts) and all(_is_valid_part(part) for part in content.parts)


def extract_curated_history(history: list[Content]) -> list[Content]:
    """
    Drop model turns that are empty or invalid.

    When a model turn is dropped, the input turn that produced it is dropped
    too, so the curated history stays a well-formed exchange.
    """
    curated: list[Content] = []
    index = 0
    while index < len(history):
        if history[index].role != Role.MODEL.value:
            curated.append(history[index])
            index += 1
            continue

        output: list[Content] = []
        valid = True
        while index < len(history) and history[index].role == Role.MODEL.value:
            output.append(history[index])
            valid = valid and _is_valid_content(history[index])
            index += 1

        if valid:
            curated.extend(output)
        elif curated:
            curated.pop()
    return curated


class Chat:
    """
    A conversation with a model.

    Chats emit events to subscribers: ``message.delta`` for each streamed
    chunk, ``message`` when a reply is complete, ``error`` on failure and
    ``history.cleared`` after ``clear_history``.
    """

    def __init__(
        self,
        models: Models,
        model: str,
        config: GenerateContentConfig | None = None,
        history: list[Content] | None = None,
        callable_tools: list[CallableTool] | None = None,
        chat_id: str | None = None,
    ) -> None:
        self._models = models
        self._model = model
        self._config = config
        self._callable_tools = callable_tools
        self._history: list[Content] = list(history or [])
        self._chat_id = chat_id or str(uuid.uuid4())

        self._event_handlers: list[ChatEventHandler] = []
        self._start_time = datetime.now(timezone.utc)
        self._modified_time = self._start_time
        self._turns = 0

    @property
    def chat_id(self) -> str:
        return self._chat_id

    @property
    def model(self) -> str:
        return self._model

    @property
    def metadata(self) -> ChatMetadata:
        return ChatMetadata(
            chat_id=self._chat_id,
            model=self._model,
            start_time=self._start_time.isoformat(),
            modified_time=self._modified_time.isoformat(),
            turns=self._turns,
        )

    def on(self, handler: ChatEventHandler) -> Callable[[], None]:
        """
        Subscribe to chat events.

        Args:
            handler: Called with each ChatEvent.

        Returns:
            Unsubscribe function.
        """
        self._event_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._event_handlers:
                self._event_handlers.remove(handler)

        return unsubscribe

    def _emit(self, event_type: EventType, data: Any) -> None:
        """Emit an event to all handlers."""
        event = ChatEvent(type=event_type, data=data, chat_id=self._chat_id)
        for handler in list(self._event_handlers):
            try:
                handler(event)
            except Exception as e:
                logger.warning(f"Event handler error: {e}")

    def _record(self, response_content: Content | None, afc_history: list[Content] | None) -> None:
        if afc_history:
            self._history = list(afc_history)
        if response_content is not None:
            self._history.append(response_content)
        self._turns += 1
        self._modified_time = datetime.now(timezone.utc)

    async def send_message(self, message: ContentInput) -> GenerateContentResponse:
        """
        Send a message and wait for the full reply.

        The user turn is added to the history before the request and kept
        even when the request fails.

        Returns:
            The model response.
        """
        self._history.extend(to_contents(message))

        try:
            response = await self._models.generate_content(
                self._model,
                list(self._history),
                self._config,
                callable_tools=self._callable_tools,
            )
        except Exception as e:
            logger.error(f"Chat {self._chat_id} request failed: {e}")
            self._emit(EventType.ERROR, {"error": str(e)})
            raise

        content = None
        if response.candidates and response.candidates[0].content is not None:
            content = response.candidates[0].content
        self._record(content, response.automatic_function_calling_history)

        self._emit(EventType.MESSAGE, {"content": response.text, "response": response})
        return response

    async def send_message_stream(
        self,
        message: ContentInput,
    ) -> AsyncIterator[GenerateContentResponse]:
        """
        Send a message and stream the reply.

        The last candidate content seen is added to the history once the
        stream completes.
        """
        self._history.extend(to_contents(message))

        full_text = ""
        last_content: Content | None = None
        last_afc_history: list[Content] | None = None
        try:
            async for chunk in self._models.generate_content_stream(
                self._model,
                list(self._history),
                self._config,
                callable_tools=self._callable_tools,
            ):
                if chunk.candidates and chunk.candidates[0].content is not None:
                    last_content = chunk.candidates[0].content
                if chunk.automatic_function_calling_history:
                    last_afc_history = chunk.automatic_function_calling_history

                delta = chunk.text
                if delta:
                    full_text += delta
                    self._emit(
                        EventType.MESSAGE_DELTA,
                        {"delta_content": delta, "content": full_text},
                    )
                yield chunk
        except Exception as e:
            logger.error(f"Chat {self._chat_id} stream failed: {e}")
            self._emit(EventType.ERROR, {"error": str(e)})
            raise

        self._record(last_content, last_afc_history)
        self._emit(EventType.MESSAGE, {"content": full_text})

    def get_history(self, curated: bool = False) -> list[Content]:
        """
        Get the conversation history.

        Args:
            curated: Drop invalid model turns and the inputs that produced them.
        """
        if curated:
            return extract_curated_history(self._history)
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()
        self._modified_time = datetime.now(timezone.utc)
        self._emit(EventType.HISTORY_CLEARED, {})


class Chats:
    """Creates chats and keeps track of them. Accessed as ``client.chats``."""

    def __init__(self, models: Models) -> None:
        self._models = models
        self._chats: dict[str, Chat] = {}

    def create(
        self,
        model: str,
        config: GenerateContentConfig | None = None,
        history: list[Content] | None = None,
        callable_tools: list[CallableTool] | None = None,
    ) -> Chat:
        """
        Start a new chat.

        Args:
            model: The model to talk to.
            config: Generation settings used for every message.
            history: Initial conversation.
            callable_tools: Tools executed through automatic function calling.

        Returns:
            The new Chat.
        """
        chat = Chat(
            self._models,
            model,
            config=config,
            history=history,
            callable_tools=callable_tools,
        )
        self._chats[chat.chat_id] = chat
        logger.debug(f"Created chat {chat.chat_id} with model {model}")
        return chat

    def get(self, chat_id: str) -> Chat | None:
        return self._chats.get(chat_id)

    def list(self) -> list[ChatMetadata]:
        return [chat.metadata for chat in self._chats.values()]

    def delete(self, chat_id: str) -> None:
        self._chats.pop(chat_id, None)
