"""
Tool definition utilities.

Python functions become tools the model can call. Every tool type here
implements ``CallableTool``, so it can be handed to ``generate_content``
through ``callable_tools`` and executed by automatic function calling.

Example:
    >>> from genaisdk.tools import define_tool
    >>>
    >>> @define_tool(description="Get current weather for a location")
    ... def get_weather(city: str, country: str = "US") -> str:
    ...     return f"Weather in {city}, {country}: Sunny, 22C"
    >>>
    >>> response = await client.models.generate_content(
    ...     "gemini-2.5-flash",
    ...     "What's the weather in Paris?",
    ...     callable_tools=[get_weather],
    ... )
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, get_args, get_origin, get_type_hints

from .types import FunctionCall, FunctionDeclaration, FunctionResponse, Part, Tool

logger = logging.getLogger(__name__)


# Python type to JSON Schema type mapping
_TYPE_MAPPING: dict[type, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
    type(None): "null",
}


def _get_json_type(python_type: Any) -> str:
    """Convert a Python type to JSON Schema type."""
    if python_type is None:
        return "string"

    origin = get_origin(python_type)
    if origin is not None:
        if origin is list:
            return "array"
        if origin is dict:
            return "object"
        # Optional[X] and other unions resolve to their first non-None member
        args = [arg for arg in get_args(python_type) if arg is not type(None)]
        if args:
            return _get_json_type(args[0])

    return _TYPE_MAPPING.get(python_type, "string")


def _get_json_schema(python_type: Any) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": _get_json_type(python_type)}
    if get_origin(python_type) is list:
        args = get_args(python_type)
        if args:
            schema["items"] = {"type": _get_json_type(args[0])}
    return schema


def _parse_docstring(docstring: str | None) -> dict[str, str]:
    """Parse a docstring to extract parameter descriptions.

    Supports Google-style and numpy-style docstrings.
    """
    if not docstring:
        return {}

    result: dict[str, str] = {}
    lines = docstring.strip().split("\n")

    in_params = False
    current_param = ""
    current_desc = ""

    for line in lines:
        stripped = line.strip()

        if stripped.lower() in ("args:", "arguments:", "parameters:", "params:"):
            in_params = True
            continue

        if in_params:
            if stripped.lower() in (
                "returns:",
                "return:",
                "raises:",
                "yields:",
                "example:",
                "examples:",
                "note:",
                "notes:",
            ):
                break

            if ":" in stripped:
                if current_param:
                    result[current_param] = current_desc.strip()

                param_part, desc_part = stripped.split(":", 1)
                # "param_name (type): description"
                current_param = param_part.split("(")[0].strip()
                current_desc = desc_part.strip()
            elif current_param and stripped:
                current_desc += " " + stripped

    if current_param:
        result[current_param] = current_desc.strip()

    return result


def _infer_schema_from_function(func: Callable[..., Any]) -> dict[str, Any]:
    """Infer a JSON Schema for the function's parameters.

    Types come from the annotations, descriptions from the docstring and
    defaults from the signature.
    """
    sig = inspect.signature(func)

    try:
        hints = get_type_hints(func)
    except Exception:
        hints = {}

    param_docs = _parse_docstring(func.__doc__)

    properties: dict[str, dict[str, Any]] = {}
    required: list[str] = []

    for name, param in sig.parameters.items():
        if name in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        prop = _get_json_schema(hints.get(name))

        if name in param_docs:
            prop["description"] = param_docs[name]

        if param.default is inspect.Parameter.empty:
            required.append(name)
        elif param.default is not None:
            prop["default"] = param.default

        properties[name] = prop

    schema: dict[str, Any] = {
        "type": "object",
        "properties": properties,
    }

    if required:
        schema["required"] = required

    return schema


def _to_response(result: Any) -> dict[str, Any]:
    if isinstance(result, dict):
        return result
    if result is None or isinstance(result, (str, int, float, bool, list)):
        return {"result": result}
    return {"result": str(result)}


async def _invoke_handler(
    name: str,
    handler: Callable[..., Any],
    args: dict[str, Any],
) -> dict[str, Any]:
    """Run a sync or async handler and shape its result as a response dict.

    Handler exceptions are reported back to the model as ``{"error": ...}``
    so it can recover instead of aborting the whole exchange.
    """
    try:
        if inspect.iscoroutinefunction(handler):
            result = await handler(**args)
        else:
            result = handler(**args)
            if inspect.isawaitable(result):
                result = await result
    except Exception as e:
        logger.error(f"Tool execution error for {name}: {e}")
        return {"error": str(e)}
    return _to_response(result)


def _function_response(call: FunctionCall, response: dict[str, Any]) -> Part:
    return Part(
        function_response=FunctionResponse(id=call.id, name=call.name, response=response)
    )


class CallableTool(ABC):
    """A tool whose function calls the SDK can execute itself."""

    @abstractmethod
    async def tool(self) -> Tool:
        """Return the declarations sent to the model."""

    @abstractmethod
    async def call_tool(self, function_calls: list[FunctionCall]) -> list[Part]:
        """Execute the calls this tool recognises.

        Returns:
            One function_response part per executed call. Calls the tool
            does not recognise are skipped.
        """


class FunctionTool(CallableTool):
    """A single Python function exposed to the model."""

    def __init__(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any] | None = None,
        handler: Callable[..., Any] | None = None,
    ) -> None:
        self.name = name
        self.description = description
        self.parameters = parameters or {"type": "object", "properties": {}}
        self.handler = handler

    def __repr__(self) -> str:
        return f"FunctionTool(name={self.name!r})"

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        if self.handler is None:
            raise TypeError(f"Tool {self.name} has no handler")
        return self.handler(*args, **kwargs)

    @property
    def declaration(self) -> FunctionDeclaration:
        return FunctionDeclaration(
            name=self.name,
            description=self.description,
            parameters_json_schema=self.parameters,
        )

    async def tool(self) -> Tool:
        return Tool(function_declarations=[self.declaration])

    async def invoke(self, args: dict[str, Any] | None = None) -> dict[str, Any]:
        if self.handler is None:
            return {"error": f"Tool {self.name} has no handler"}
        return await _invoke_handler(self.name, self.handler, args or {})

    async def call_tool(self, function_calls: list[FunctionCall]) -> list[Part]:
        parts: list[Part] = []
        for call in function_calls:
            if call.name != self.name:
                continue
            parts.append(_function_response(call, await self.invoke(call.args)))
        return parts


def define_tool(
    name: str | None = None,
    description: str | None = None,
    parameters: dict[str, Any] | None = None,
) -> Callable[[Callable[..., Any]], FunctionTool]:
    """
    Decorator to define a tool for use with Gemini models.

    The function's type hints and docstring generate the parameter schema.
    The decorated object is still callable like the original function.

    Args:
        name: The tool name. If not provided, uses the function name.
        description: Tool description. If not provided, uses the function's
            docstring first line.
        parameters: JSON Schema for parameters. If not provided, inferred
            from function signature.

    Returns:
        A decorator that creates a FunctionTool from a function.

    Example:
        >>> @define_tool(description="Search the web for information")
        ... async def search(query: str, max_results: int = 5) -> str:
        ...     '''Search the web.
        ...
        ...     Args:
        ...         query: The search query.
        ...         max_results: Maximum number of results to return.
        ...     '''
        ...     return f"Results for: {query}"
    """

    def decorator(func: Callable[..., Any]) -> FunctionTool:
        tool_name = name or getattr(func, "__name__", "unnamed_tool")

        tool_description = description
        if not tool_description and func.__doc__:
            tool_description = func.__doc__.strip().split("\n")[0]
        tool_description = tool_description or f"Tool: {tool_name}"

        tool_params = parameters
        if tool_params is None:
            tool_params = _infer_schema_from_function(func)

        return FunctionTool(
            name=tool_name,
            description=tool_description,
            parameters=tool_params,
            handler=func,
        )

    return decorator


def create_tool(
    name: str,
    description: str,
    parameters: dict[str, Any] | None = None,
    handler: Callable[..., Any] | None = None,
) -> FunctionTool:
    """
    Create a tool programmatically.

    This is an alternative to the @define_tool decorator for when
    you need to create tools dynamically.

    Args:
        name: The tool name.
        description: Tool description.
        parameters: JSON Schema for parameters.
        handler: Function called with the model's arguments as keywords.

    Returns:
        A FunctionTool.
    """
    return FunctionTool(
        name=name,
        description=description,
        parameters=parameters,
        handler=handler,
    )


class InlineCallableTool(CallableTool):
    """Declarations paired with a name-to-handler mapping.

    Calls without a name, or whose name has no handler, are skipped.
    """

    def __init__(
        self,
        declarations: list[FunctionDeclaration],
        handlers: dict[str, Callable[..., Any]],
    ) -> None:
        self._declarations = list(declarations)
        self._handlers = dict(handlers)

    async def tool(self) -> Tool:
        return Tool(function_declarations=list(self._declarations))

    async def call_tool(self, function_calls: list[FunctionCall]) -> list[Part]:
        parts: list[Part] = []
        for call in function_calls:
            if not call.name:
                continue
            handler = self._handlers.get(call.name)
            if handler is None:
                continue
            response = await _invoke_handler(call.name, handler, call.args or {})
            parts.append(_function_response(call, response))
        return parts


class ToolRegistry(CallableTool):
    """
    Registry for managing tools.

    A registry is itself a CallableTool, so a whole set of tools can be
    passed to a request at once.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register(search_tool, category="web")
        >>> registry.register(calculator_tool)
        >>>
        >>> await client.models.generate_content(model, prompt, callable_tools=[registry])
    """

    def __init__(self) -> None:
        self._tools: dict[str, FunctionTool] = {}
        self._categories: dict[str, set[str]] = {}

    def register(self, tool: FunctionTool, category: str | None = None) -> None:
        """
        Register a tool.

        Args:
            tool: The tool to register.
            category: Optional category for organization.
        """
        self._tools[tool.name] = tool

        if category:
            self._categories.setdefault(category, set()).add(tool.name)

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)
        for category_tools in self._categories.values():
            category_tools.discard(name)

    def get(self, name: str) -> FunctionTool | None:
        return self._tools.get(name)

    def get_all(self) -> list[FunctionTool]:
        return list(self._tools.values())

    def get_by_category(self, category: str) -> list[FunctionTool]:
        tool_names = self._categories.get(category, set())
        return [self._tools[name] for name in sorted(tool_names) if name in self._tools]

    def list_categories(self) -> list[str]:
        return list(self._categories.keys())

    async def tool(self) -> Tool:
        return Tool(function_declarations=[t.declaration for t in self._tools.values()])

    async def call_tool(self, function_calls: list[FunctionCall]) -> list[Part]:
        parts: list[Part] = []
        for call in function_calls:
            registered = self._tools.get(call.name or "")
            if registered is None:
                continue
            parts.extend(await registered.call_tool([call]))
        return parts
