"""
Offline token estimation.

Estimates are advisory. They help with budgeting prompts before a request
is sent and are never an exact or billable count; use
``models.count_tokens`` when accuracy matters.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Any

from ._common import to_system_instruction
from .types import (
    Content,
    CountTokensConfig,
    FunctionDeclaration,
    GenerationConfig,
    Part,
    Tool,
)

BYTES_PER_TOKEN = 4


class TokenEstimator(ABC):
    """Estimates the number of tokens in a list of contents."""

    @abstractmethod
    def estimate_tokens(self, contents: list[Content]) -> int:
        ...


def _part_bytes(part: Part) -> int:
    if part.text is not None:
        return len(part.text.encode("utf-8"))
    if part.inline_data is not None and part.inline_data.data is not None:
        return len(part.inline_data.data)
    if part.file_data is not None and part.file_data.file_uri is not None:
        return len(part.file_data.file_uri.encode("utf-8"))
    if part.function_call is not None and part.function_call.name:
        return len(part.function_call.name.encode("utf-8"))
    if part.function_response is not None and part.function_response.name:
        return len(part.function_response.name.encode("utf-8"))
    if part.executable_code is not None and part.executable_code.code:
        return len(part.executable_code.code.encode("utf-8"))
    if part.code_execution_result is not None and part.code_execution_result.output:
        return len(part.code_execution_result.output.encode("utf-8"))
    return 0


class SimpleTokenEstimator(TokenEstimator):
    """Byte-length heuristic: roughly one token per four bytes."""

    def estimate_tokens(self, contents: list[Content]) -> int:
        total = sum(_part_bytes(part) for content in contents for part in content.parts)
        return math.ceil(total / BYTES_PER_TOKEN)


class _TextAccumulator:
    """Collects text hidden inside structured fields so it can be counted."""

    def __init__(self) -> None:
        self.texts: list[str] = []

    def push(self, value: Any) -> None:
        if isinstance(value, str) and value:
            self.texts.append(value)

    def add_json(self, value: Any) -> None:
        if isinstance(value, str):
            self.push(value)
        elif isinstance(value, list):
            for item in value:
                self.add_json(item)
        elif isinstance(value, dict):
            for key, item in value.items():
                self.push(key)
                self.add_json(item)

    def add_schema(self, schema: dict[str, Any]) -> None:
        for key in ("title", "format", "description"):
            self.push(schema.get(key))
        for key in ("enum", "required"):
            for value in schema.get(key) or []:
                self.push(value)
        for name, prop in (schema.get("properties") or {}).items():
            self.push(name)
            if isinstance(prop, dict):
                self.add_schema(prop)
        items = schema.get("items")
        if isinstance(items, dict):
            self.add_schema(items)
        for option in schema.get("anyOf") or schema.get("any_of") or []:
            if isinstance(option, dict):
                self.add_schema(option)
        for key in ("example", "default"):
            if key in schema:
                self.add_json(schema[key])

    def add_contents(self, contents: list[Content]) -> None:
        for content in contents:
            for part in content.parts:
                if part.function_call is not None:
                    self.push(part.function_call.name)
                    if part.function_call.args is not None:
                        self.add_json(part.function_call.args)
                elif part.function_response is not None:
                    self.push(part.function_response.name)
                    if part.function_response.response is not None:
                        self.add_json(part.function_response.response)

    def add_declaration(self, declaration: FunctionDeclaration) -> None:
        self.push(declaration.name)
        self.push(declaration.description)
        if declaration.parameters:
            self.add_schema(declaration.parameters)
        if declaration.response:
            self.add_schema(declaration.response)
        if declaration.parameters_json_schema is not None:
            self.add_json(declaration.parameters_json_schema)
        if declaration.response_json_schema is not None:
            self.add_json(declaration.response_json_schema)

    def add_tools(self, tools: list[Tool]) -> None:
        for tool in tools:
            for declaration in tool.function_declarations or []:
                self.add_declaration(declaration)

    def add_generation_config(self, config: GenerationConfig) -> None:
        if config.response_schema:
            self.add_schema(config.response_schema)
        if config.response_json_schema is not None:
            self.add_json(config.response_json_schema)

    def to_contents(self) -> list[Content]:
        return [Content(role="user", parts=[Part(text=text)]) for text in self.texts]


def build_estimation_contents(
    contents: list[Content],
    config: CountTokensConfig | None = None,
) -> list[Content]:
    """Flatten contents and config into plain contents for estimation.

    The system instruction is appended as-is. Function call names and
    arguments, tool declarations and response schemas are turned into extra
    text contents so their size is counted.
    """
    combined = list(contents)
    if config is not None:
        system_instruction = to_system_instruction(config.system_instruction)
        if system_instruction is not None:
            combined.append(system_instruction)

    accumulator = _TextAccumulator()
    accumulator.add_contents(combined)
    if config is not None:
        if config.tools:
            accumulator.add_tools(config.tools)
        if config.generation_config is not None:
            accumulator.add_generation_config(config.generation_config)

    combined.extend(accumulator.to_contents())
    return combined
