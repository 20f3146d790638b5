"""
MCP (Model Context Protocol) integration.

Tools served by MCP client sessions can be handed to ``generate_content``
as callable tools. Install the ``mcp`` extra to open sessions.

Example:
    >>> from mcp import ClientSession
    >>> from mcp.client.stdio import stdio_client, StdioServerParameters
    >>> from genaisdk.mcp import McpCallableTool
    >>>
    >>> async with stdio_client(StdioServerParameters(command="my-server")) as (read, write):
    ...     async with ClientSession(read, write) as session:
    ...         await session.initialize()
    ...         response = await client.models.generate_content(
    ...             "gemini-2.5-flash",
    ...             "What is the weather in London?",
    ...             callable_tools=[McpCallableTool([session])],
    ...         )
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from .exceptions import ConfigurationError, TimeoutError, ToolError, ToolExecutionError
from .tools import CallableTool
from .types import FunctionCall, FunctionDeclaration, FunctionResponse, Part, Tool

if TYPE_CHECKING:
    from mcp import ClientSession
    from mcp.types import CallToolResult
    from mcp.types import Tool as McpTool

logger = logging.getLogger(__name__)


def _duplicate_error(name: str) -> ConfigurationError:
    return ConfigurationError(
        f"Duplicate function name {name} found in MCP tools. "
        "Please ensure function names are unique."
    )


def _field(obj: Any, name: str, legacy_name: str) -> Any:
    # mcp 1.x spells protocol fields in camelCase; 2.x uses snake_case
    value = getattr(obj, name, None)
    if value is None:
        value = getattr(obj, legacy_name, None)
    return value


def _declaration(tool: McpTool, behavior: str | None) -> FunctionDeclaration:
    input_schema = _field(tool, "input_schema", "inputSchema")
    return FunctionDeclaration(
        name=tool.name,
        description=tool.description,
        parameters_json_schema=dict(input_schema) if input_schema else None,
        response_json_schema=_field(tool, "output_schema", "outputSchema"),
        behavior=behavior,
    )


def mcp_to_tool(tools: list[McpTool], behavior: str | None = None) -> Tool:
    """
    Convert an MCP tool listing into a Tool.

    Args:
        tools: Tools from ``ClientSession.list_tools()``.
        behavior: Optional function behavior, such as ``NON_BLOCKING``.

    Raises:
        ConfigurationError: If two tools share a name.
    """
    seen: set[str] = set()
    declarations: list[FunctionDeclaration] = []
    for tool in tools:
        if tool.name in seen:
            raise _duplicate_error(tool.name)
        seen.add(tool.name)
        declarations.append(_declaration(tool, behavior))
    return Tool(function_declarations=declarations)


def _result_to_response(result: CallToolResult) -> dict[str, Any]:
    if hasattr(result, "model_dump"):
        value = result.model_dump(mode="json", by_alias=True, exclude_none=True)
    else:
        value = dict(result)
    if _field(result, "is_error", "isError"):
        return {"error": value}
    return value


class McpCallableTool(CallableTool):
    """
    Exposes the tools of one or more MCP sessions to the model.

    Tools are listed lazily on first use. Function calls are routed to the
    session that listed the tool.
    """

    uses_mcp = True

    def __init__(
        self,
        sessions: list[ClientSession],
        behavior: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._sessions = list(sessions)
        self._behavior = behavior
        self._timeout = timeout
        self._tools: list[McpTool] = []
        self._session_for: dict[str, ClientSession] = {}
        self._initialized = False

    async def _list_tools(self, session: ClientSession) -> list[McpTool]:
        result = await session.list_tools()
        tools = list(result.tools)
        cursor = _field(result, "next_cursor", "nextCursor")
        while cursor:
            result = await session.list_tools(cursor=cursor)
            tools.extend(result.tools)
            cursor = _field(result, "next_cursor", "nextCursor")
        return tools

    async def initialize(self) -> None:
        """List the tools of every session."""
        if self._initialized:
            return

        tools: list[McpTool] = []
        session_for: dict[str, ClientSession] = {}
        for session in self._sessions:
            for tool in await self._list_tools(session):
                if tool.name in session_for:
                    raise _duplicate_error(tool.name)
                session_for[tool.name] = session
                tools.append(tool)

        self._tools = tools
        self._session_for = session_for
        self._initialized = True
        logger.debug(f"Loaded {len(tools)} MCP tools from {len(self._sessions)} sessions")

    async def tool(self) -> Tool:
        await self.initialize()
        return mcp_to_tool(self._tools, self._behavior)

    async def _call(self, session: ClientSession, name: str, arguments: dict[str, Any] | None) -> Any:
        call = session.call_tool(name, arguments)
        try:
            if self._timeout is None:
                return await call
            return await asyncio.wait_for(call, self._timeout)
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"Timed out calling MCP tool: {name}", self._timeout) from e
        except Exception as e:
            logger.error(f"MCP tool {name} failed: {e}")
            raise ToolExecutionError(f"MCP tool {name} failed: {e}", name, e) from e

    async def call_tool(self, function_calls: list[FunctionCall]) -> list[Part]:
        """
        Execute the calls served by these sessions.

        Raises:
            ToolError: If a call passes non-object arguments.
            TimeoutError: If a call exceeds ``timeout``.
            ToolExecutionError: If the session fails to run the tool.
        """
        await self.initialize()

        parts: list[Part] = []
        for call in function_calls:
            if call.name is None or call.name not in self._session_for:
                continue
            if call.args is not None and not isinstance(call.args, dict):
                raise ToolError(
                    f"MCP tool call expects object arguments for {call.name}",
                    tool_name=call.name,
                )

            result = await self._call(self._session_for[call.name], call.name, call.args)
            parts.append(
                Part(
                    function_response=FunctionResponse(
                        id=call.id,
                        name=call.name,
                        response=_result_to_response(result),
                    )
                )
            )
        return parts
