"""
Ephemeral auth tokens for client-side Live API sessions.
"""

from __future__ import annotations

import logging
from typing import Any

from ._common import from_wire, to_camel
from .backend import HttpBackend
from .exceptions import ConfigurationError
from .live import build_live_setup
from .types import AuthToken, CreateAuthTokenConfig

logger = logging.getLogger(__name__)

# Wire names of fields that live under generationConfig in the setup
_GENERATION_CONFIG_FIELDS = frozenset(
    {
        "temperature",
        "topP",
        "topK",
        "maxOutputTokens",
        "candidateCount",
        "seed",
        "responseLogprobs",
        "logprobs",
        "thinkingConfig",
        "speechConfig",
        "imageConfig",
        "mediaResolution",
        "responseMimeType",
        "responseSchema",
        "responseJsonSchema",
        "responseModalities",
        "stopSequences",
        "audioTimestamp",
        "presencePenalty",
        "frequencyPenalty",
        "enableEnhancedCivicAnswers",
        "enableAffectiveDialog",
        "modelSelectionConfig",
        "routingConfig",
    }
)


def _setup_field_mask(setup: dict[str, Any]) -> list[str]:
    """Every field set in ``setup``, one level deep for nested objects."""
    fields: list[str] = []
    for key, value in setup.items():
        if isinstance(value, dict) and value:
            fields.extend(f"{key}.{inner}" for inner in value)
        else:
            fields.append(key)
    return fields


def _additional_field(field: str) -> str:
    if "." in field:
        return field
    name = to_camel(field)
    if name in _GENERATION_CONFIG_FIELDS:
        return f"generationConfig.{name}"
    return name


def build_field_mask(setup: dict[str, Any] | None, lock_additional_fields: list[str] | None) -> str | None:
    """
    Compute the ``fieldMask`` locking setup fields into the token.

    With no ``lock_additional_fields`` nothing is locked. An empty list
    locks every field set in the constraints; a non-empty list locks the
    constraint fields plus the listed ones.
    """
    if lock_additional_fields is None:
        return None

    if not setup:
        return ",".join(lock_additional_fields) or None

    extra = [_additional_field(field) for field in lock_additional_fields]
    return ",".join(_setup_field_mask(setup) + extra) or None


class AuthTokens:
    """Creates ephemeral tokens. Accessed as ``client.auth_tokens``."""

    def __init__(self, backend: HttpBackend) -> None:
        self._backend = backend

    async def create(self, config: CreateAuthTokenConfig | None = None) -> AuthToken:
        """
        Create an ephemeral token.

        The token's name is used in place of an API key when connecting to
        the Live API with ``api_version="v1alpha"``.

        Raises:
            ConfigurationError: On Vertex AI.
        """
        if self._backend.is_vertex:
            raise ConfigurationError("AuthTokens API is only supported in Gemini API")
        config = config or CreateAuthTokenConfig()

        body: dict[str, Any] = {}
        if config.expire_time is not None:
            body["expireTime"] = config.expire_time
        if config.new_session_expire_time is not None:
            body["newSessionExpireTime"] = config.new_session_expire_time
        if config.uses is not None:
            body["uses"] = config.uses

        setup = None
        constraints = config.live_connect_constraints
        if constraints is not None:
            setup = build_live_setup(constraints.model, constraints.config)
            if setup:
                body["bidiGenerateContentSetup"] = setup

        field_mask = build_field_mask(setup, config.lock_additional_fields)
        if field_mask:
            body["fieldMask"] = field_mask

        data, _ = await self._backend.request_json(
            "POST",
            self._backend.url("auth_tokens", config.http_options),
            json=body,
            http_options=config.http_options,
        )
        token: AuthToken = from_wire(AuthToken, data)
        logger.debug("Created ephemeral auth token")
        return token
