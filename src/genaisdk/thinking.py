"""
Request checks for Gemini 3 thinking models.

Gemini 3 models attach a thought signature to the first function call of
each model turn. When the conversation is sent back, that signature must be
present on the first call and absent on the others, or the API rejects the
request.
"""

from __future__ import annotations

import logging

from .exceptions import ThoughtSignatureError
from .types import Content, GenerateContentConfig, Role

logger = logging.getLogger(__name__)


def is_gemini_3(model: str) -> bool:
    return model.rsplit("/", 1)[-1].startswith("gemini-3")


def validate_temperature(model: str, config: GenerateContentConfig | None) -> None:
    """Warn about Gemini 3 temperatures below 1.0, which tend to loop."""
    if config is None or config.generation_config is None or not is_gemini_3(model):
        return
    temperature = config.generation_config.temperature
    if temperature is not None and temperature < 1.0:
        logger.warning(
            f"Gemini 3 temperature {temperature} < 1.0 may cause looping; use 1.0"
        )


def _current_turn_start(contents: list[Content]) -> int:
    # The current turn begins at the last user message that carries text.
    for index in range(len(contents) - 1, -1, -1):
        content = contents[index]
        if content.role != Role.USER.value:
            continue
        if any(part.text is not None for part in content.parts):
            return index
    return 0


class ThoughtSignatureValidator:
    """Checks thought signatures on function calls of the current turn."""

    def __init__(self, model: str) -> None:
        self._model = model

    def validate(self, contents: list[Content]) -> None:
        """
        Raises:
            ThoughtSignatureError: If the first function call of a model turn
                lacks a signature, or a later call has one.
        """
        if not is_gemini_3(self._model):
            return

        for content in contents[_current_turn_start(contents) :]:
            if content.role != Role.MODEL.value:
                continue

            calls = [part for part in content.parts if part.function_call is not None]
            if not calls:
                continue

            if calls[0].thought_signature is None:
                raise ThoughtSignatureError(
                    "First function call missing thought_signature",
                    field="thought_signature",
                )
            for part in calls[1:]:
                if part.thought_signature is not None:
                    raise ThoughtSignatureError(
                        "Only the first function call may include thought_signature",
                        field="thought_signature",
                    )
