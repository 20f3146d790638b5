"""
Shared helpers for genaisdk services.

Covers conversion between the snake_case dataclasses in ``types`` and the
camelCase JSON on the wire, coercion of user input into ``Content`` lists,
and small request-building utilities.
"""

from __future__ import annotations

import base64
import binascii
import dataclasses
import functools
import types as _pytypes
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
from typing import Any, Union, get_args, get_origin, get_type_hints

import httpx

from .exceptions import ConfigurationError, SerializationError, ValidationError
from .types import Content, HttpOptions, HttpResponse, Part, Role

# Dataclass fields that only exist client side and never go on the wire.
SDK_ONLY_FIELDS = frozenset(
    {
        "sdk_http_response",
        "http_options",
        "automatic_function_calling",
        "automatic_function_calling_history",
        "should_return_http_response",
        "estimated",
    }
)


def to_camel(name: str) -> str:
    """Convert a snake_case attribute name to its camelCase wire name."""
    head, *rest = name.split("_")
    return head + "".join(word.capitalize() for word in rest)


def to_wire(value: Any) -> Any:
    """Serialize SDK types into JSON-compatible data.

    Dataclass fields set to None are omitted, enums become their values and
    bytes become standard base64. Keys of plain dicts are kept as given.
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        result: dict[str, Any] = {}
        for f in dataclasses.fields(value):
            if f.name in SDK_ONLY_FIELDS:
                continue
            item = getattr(value, f.name)
            if item is None:
                continue
            result[to_camel(f.name)] = to_wire(item)
        return result
    if isinstance(value, dict):
        return {key: to_wire(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(item) for item in value]
    return value


@functools.lru_cache(maxsize=None)
def _field_hints(cls: type) -> dict[str, Any]:
    return get_type_hints(cls)


def _decode_bytes(data: Any) -> bytes:
    if isinstance(data, bytes):
        return data
    if not isinstance(data, str):
        raise SerializationError(f"Expected base64 string, got {type(data).__name__}")
    # The services emit both standard and URL-safe alphabets.
    text = data.replace("-", "+").replace("_", "/")
    text += "=" * (-len(text) % 4)
    try:
        return base64.b64decode(text)
    except (binascii.Error, ValueError) as e:
        raise SerializationError(f"Invalid base64 data: {e}", payload=data) from e


def _dataclass_from_wire(cls: type, data: Any) -> Any:
    if not isinstance(data, dict):
        raise SerializationError(
            f"Expected object for {cls.__name__}, got {type(data).__name__}",
            payload=str(data),
        )

    hints = _field_hints(cls)
    kwargs: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        key = to_camel(f.name)
        if key in data:
            raw = data[key]
        elif f.name in data:
            raw = data[f.name]
        else:
            continue
        if raw is None:
            continue
        kwargs[f.name] = from_wire(hints[f.name], raw)
    return cls(**kwargs)


def from_wire(tp: Any, data: Any) -> Any:
    """Build an instance of ``tp`` from decoded JSON.

    Unknown keys are ignored. Enum values the SDK does not know yet are kept
    as plain strings rather than rejected.
    """
    if data is None:
        return None

    origin = get_origin(tp)
    if origin is Union or origin is _pytypes.UnionType:
        options = [arg for arg in get_args(tp) if arg is not type(None)]
        if len(options) == 1:
            return from_wire(options[0], data)
        for option in options:
            if _accepts(option, data):
                return from_wire(option, data)
        return data

    if origin is list:
        args = get_args(tp)
        item_type = args[0] if args else Any
        if not isinstance(data, list):
            raise SerializationError(f"Expected array, got {type(data).__name__}")
        return [from_wire(item_type, item) for item in data]

    if origin is dict:
        args = get_args(tp)
        value_type = args[1] if len(args) == 2 else Any
        if not isinstance(data, dict):
            raise SerializationError(f"Expected object, got {type(data).__name__}")
        return {key: from_wire(value_type, item) for key, item in data.items()}

    if not isinstance(tp, type):
        return data

    if dataclasses.is_dataclass(tp):
        return _dataclass_from_wire(tp, data)
    if issubclass(tp, Enum):
        try:
            return tp(data)
        except ValueError:
            return data
    if tp is bytes:
        return _decode_bytes(data)
    # int64 values arrive as JSON strings
    if tp is int and isinstance(data, str):
        try:
            return int(data)
        except ValueError as e:
            raise SerializationError(f"Expected integer, got {data!r}") from e
    if tp is float and isinstance(data, (int, str)) and not isinstance(data, bool):
        try:
            return float(data)
        except ValueError as e:
            raise SerializationError(f"Expected number, got {data!r}") from e
    return data


def _accepts(tp: Any, data: Any) -> bool:
    origin = get_origin(tp)
    if origin is list:
        return isinstance(data, list)
    if origin is dict:
        return isinstance(data, dict)
    if isinstance(tp, type):
        if dataclasses.is_dataclass(tp):
            return isinstance(data, dict)
        if tp in (str, bytes) or issubclass(tp, Enum):
            return isinstance(data, str)
        return isinstance(data, tp)
    return True


# =============================================================================
# Content Coercion
# =============================================================================


def to_part(value: Any) -> Part:
    if isinstance(value, Part):
        return value
    if isinstance(value, str):
        return Part(text=value)
    raise ValidationError(f"Unsupported part type: {type(value).__name__}", field="contents")


def to_contents(value: Any) -> list[Content]:
    """Normalize user input into a list of Content.

    Accepts a string, a Part, a Content, or a list mixing them. Runs of
    consecutive strings and parts are grouped into a single user turn.
    """
    if value is None:
        raise ValidationError("contents are required", field="contents")
    if isinstance(value, Content):
        return [value]
    if isinstance(value, (str, Part)):
        return [Content(role=Role.USER.value, parts=[to_part(value)])]
    if not isinstance(value, (list, tuple)):
        raise ValidationError(
            f"Unsupported contents type: {type(value).__name__}", field="contents"
        )

    contents: list[Content] = []
    pending: list[Part] = []
    for item in value:
        if isinstance(item, Content):
            if pending:
                contents.append(Content(role=Role.USER.value, parts=pending))
                pending = []
            contents.append(item)
        else:
            pending.append(to_part(item))
    if pending:
        contents.append(Content(role=Role.USER.value, parts=pending))
    return contents


def to_system_instruction(value: Content | str | None) -> Content | None:
    if value is None or isinstance(value, Content):
        return value
    return Content(parts=[Part(text=value)])


# =============================================================================
# Request Helpers
# =============================================================================


def merge_extra_body(body: dict[str, Any], http_options: HttpOptions | None) -> dict[str, Any]:
    """Shallow-merge ``HttpOptions.extra_body`` into a request body."""
    if http_options is None or http_options.extra_body is None:
        return body
    if not isinstance(http_options.extra_body, dict):
        raise ConfigurationError(
            "HttpOptions.extra_body must be an object", config_key="extra_body"
        )
    merged = dict(body)
    merged.update(http_options.extra_body)
    return merged


def list_params(config: Any) -> dict[str, Any]:
    """Query parameters shared by every list endpoint."""
    params: dict[str, Any] = {}
    if config is None:
        return params
    page_size = getattr(config, "page_size", None)
    if page_size is not None:
        params["pageSize"] = page_size
    page_token = getattr(config, "page_token", None)
    if page_token:
        params["pageToken"] = page_token
    list_filter = getattr(config, "filter", None)
    if list_filter:
        params["filter"] = list_filter
    return params


def http_response(response: httpx.Response, include_body: bool = False) -> HttpResponse:
    return HttpResponse(
        headers=dict(response.headers),
        body=response.text if include_body else None,
    )


def parse_json(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON object body; an empty body decodes to ``{}``."""
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError as e:
        raise SerializationError(f"Invalid JSON response: {e}", payload=response.text) from e
    if not isinstance(data, dict):
        raise SerializationError("Expected a JSON object response", payload=response.text)
    return data


def update_mask(body: dict[str, Any]) -> str:
    return ",".join(body.keys())


async def iter_pages(
    list_page: Callable[[Any], Awaitable[Any]],
    config: Any,
    items: str,
) -> AsyncIterator[Any]:
    """Yield the ``items`` of every page, following ``next_page_token``.

    ``config`` is copied, so the caller's page token is left untouched.
    """
    config = dataclasses.replace(config)
    while True:
        page = await list_page(config)
        for item in getattr(page, items) or []:
            yield item
        if not page.next_page_token:
            return
        config.page_token = page.next_page_token
