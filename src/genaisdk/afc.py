"""
Automatic function calling (AFC) helpers.

AFC lets the SDK execute the function calls a model returns and send the
results back on its own, until the model answers without calling a
function or the call budget runs out. The loop itself lives in
``models``; this module holds the pieces it is built from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .exceptions import ConfigurationError, ToolError, ToolNotFoundError
from .tools import CallableTool
from .types import (
    Candidate,
    Content,
    FunctionCall,
    GenerateContentConfig,
    GenerateContentResponse,
    Part,
    Role,
    Tool,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_REMOTE_CALLS = 10


@dataclass
class CallableToolInfo:
    """Declarations gathered from callable tools, and who handles each name."""

    tools: list[Tool] = field(default_factory=list)
    function_map: dict[str, int] = field(default_factory=dict)


async def resolve_callable_tools(callable_tools: list[CallableTool]) -> CallableToolInfo:
    """Collect declarations and map each function name to its tool.

    Raises:
        ConfigurationError: If two tools declare the same function name.
    """
    info = CallableToolInfo()
    for index, callable_tool in enumerate(callable_tools):
        tool = await callable_tool.tool()
        for declaration in tool.function_declarations or []:
            name = declaration.name or ""
            if name in info.function_map:
                raise ConfigurationError(f"Duplicate tool declaration name: {name}")
            info.function_map[name] = index
        info.tools.append(tool)
    return info


async def call_callable_tools(
    callable_tools: list[CallableTool],
    function_map: dict[str, int],
    function_calls: list[FunctionCall],
) -> list[Part]:
    """Dispatch function calls to the tools that declared them.

    Calls are grouped per tool so each tool sees its calls in one batch.

    Raises:
        ToolError: If the model returned a call without a name.
        ToolNotFoundError: If no callable tool declared the called name.
    """
    grouped: dict[int, list[FunctionCall]] = {}
    for call in function_calls:
        if not call.name:
            raise ToolError("Function call name was not returned by the model.")
        index = function_map.get(call.name)
        if index is None:
            raise ToolNotFoundError(
                call.name,
                "Automatic function calling was requested, but not all the tools the model "
                f"used implement the CallableTool interface. Missing tool: {call.name}.",
            )
        grouped.setdefault(index, []).append(call)

    parts: list[Part] = []
    for index, calls in grouped.items():
        logger.debug(f"Calling {len(calls)} function(s) on callable tool {index}")
        parts.extend(await callable_tools[index].call_tool(calls))
    return parts


def should_disable_afc(config: GenerateContentConfig | None, has_callable_tools: bool) -> bool:
    if not has_callable_tools:
        return True
    afc = config.automatic_function_calling if config else None
    if afc is None:
        return False
    if afc.disable:
        return True
    return afc.maximum_remote_calls is not None and afc.maximum_remote_calls <= 0


def max_remote_calls(config: GenerateContentConfig | None) -> int:
    afc = config.automatic_function_calling if config else None
    if afc is None or afc.maximum_remote_calls is None:
        return DEFAULT_MAX_REMOTE_CALLS
    return max(afc.maximum_remote_calls, 0)


def should_append_history(config: GenerateContentConfig | None) -> bool:
    afc = config.automatic_function_calling if config else None
    return not (afc is not None and afc.ignore_call_history)


def validate_afc_tools(tools: list[Tool] | None) -> None:
    """Reject plain function declarations next to callable tools.

    The SDK could not execute those declarations, so the loop would stall
    as soon as the model called one.
    """
    for tool in tools or []:
        if tool.function_declarations:
            raise ConfigurationError(
                "Incompatible tools found. Automatic function calling does not support "
                "mixing CallableTools with basic function declarations."
            )


def validate_afc_config(config: GenerateContentConfig | None) -> None:
    if config is None or config.tool_config is None:
        return
    calling = config.tool_config.function_calling_config
    if calling is None or not calling.stream_function_call_arguments:
        return
    afc = config.automatic_function_calling
    if afc is not None and afc.disable:
        return
    raise ConfigurationError(
        "stream_function_call_arguments is not compatible with automatic function calling. "
        "Disable AFC or disable stream_function_call_arguments."
    )


def build_function_call_content(function_calls: list[FunctionCall]) -> Content:
    return Content(
        role=Role.MODEL.value,
        parts=[Part(function_call=call) for call in function_calls],
    )


def build_function_response_content(parts: list[Part]) -> Content:
    return Content(role=Role.FUNCTION.value, parts=list(parts))


def build_synthetic_afc_response(
    response_content: Content,
    history: list[Content],
) -> GenerateContentResponse:
    """Stream item reporting the function responses of one AFC round."""
    return GenerateContentResponse(
        candidates=[Candidate(content=response_content)],
        automatic_function_calling_history=list(history) if history else None,
    )
