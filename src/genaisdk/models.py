"""
Models service: content generation, embeddings, token counting and model
metadata.

Example:
    >>> response = await client.models.generate_content(
    ...     "gemini-2.5-flash", "Why is the sky blue?"
    ... )
    >>> print(response.text)
    >>>
    >>> async for chunk in client.models.generate_content_stream(
    ...     "gemini-2.5-flash", "Tell me a story"
    ... ):
    ...     print(chunk.text or "", end="")
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import AsyncIterator
from typing import Any

from . import _media
from ._common import (
    from_wire,
    http_response,
    iter_pages,
    list_params,
    to_contents,
    to_system_instruction,
    to_wire,
    update_mask,
)
from .afc import (
    build_function_call_content,
    build_function_response_content,
    build_synthetic_afc_response,
    call_callable_tools,
    max_remote_calls,
    resolve_callable_tools,
    should_append_history,
    should_disable_afc,
    validate_afc_config,
    validate_afc_tools,
)
from .backend import HttpBackend
from .exceptions import ConfigurationError
from .thinking import ThoughtSignatureValidator, validate_temperature
from .tokenizer import SimpleTokenEstimator, TokenEstimator, build_estimation_contents
from .tools import CallableTool
from .types import (
    ComputeTokensConfig,
    ComputeTokensResponse,
    Content,
    ContentEmbedding,
    ContentInput,
    CountTokensConfig,
    CountTokensResponse,
    DeleteModelResponse,
    EditImageConfig,
    EditImageResponse,
    EmbedContentConfig,
    EmbedContentMetadata,
    EmbedContentResponse,
    FunctionCall,
    GenerateContentConfig,
    GenerateContentResponse,
    GenerateImagesConfig,
    GenerateImagesResponse,
    GenerateVideosConfig,
    GenerateVideosOperation,
    GenerateVideosSource,
    HttpOptions,
    HttpResponse,
    Image,
    ListModelsConfig,
    ListModelsResponse,
    Model,
    RecontextImageConfig,
    RecontextImageResponse,
    RecontextImageSource,
    ReferenceImage,
    SegmentImageConfig,
    SegmentImageResponse,
    SegmentImageSource,
    UpdateModelConfig,
    UpscaleImageConfig,
    UpscaleImageResponse,
)

logger = logging.getLogger(__name__)


def _http_options(config: Any) -> HttpOptions | None:
    return getattr(config, "http_options", None) if config is not None else None


def generate_request_body(
    contents: list[Content],
    config: GenerateContentConfig | None,
) -> dict[str, Any]:
    """Request body shared by generateContent, streaming and batch requests."""
    body: dict[str, Any] = {"contents": to_wire(contents)}
    if config is None:
        return body

    fields = {
        "systemInstruction": to_system_instruction(config.system_instruction),
        "generationConfig": config.generation_config,
        "safetySettings": config.safety_settings,
        "modelArmorConfig": config.model_armor_config,
        "tools": config.tools,
        "toolConfig": config.tool_config,
        "cachedContent": config.cached_content,
        "labels": config.labels,
    }
    for key, value in fields.items():
        if value is not None:
            body[key] = to_wire(value)
    return body


def _reject_raw_response(config: GenerateContentConfig | None) -> None:
    if config is not None and config.should_return_http_response:
        raise ConfigurationError(
            "should_return_http_response is not supported in callable tools methods",
            config_key="should_return_http_response",
        )


class Models:
    """Operations on ``models/...`` resources.

    Accessed as ``client.models``.
    """

    def __init__(self, backend: HttpBackend) -> None:
        self._backend = backend

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    def _model_path(self, model: str) -> str:
        """Resource path of a model for the active backend."""
        if not self._backend.is_vertex:
            if model.startswith(("models/", "tunedModels/")):
                return model
            return f"models/{model}"

        if model.startswith("projects/"):
            return model
        parent = self._backend.vertex_parent()
        if model.startswith("publishers/"):
            return f"{parent}/{model}"
        if model.startswith("models/"):
            return f"{parent}/publishers/google/{model}"
        return f"{parent}/publishers/google/models/{model}"

    def _method_url(self, model: str, method: str, http_options: HttpOptions | None) -> str:
        return self._backend.url(f"{self._model_path(model)}:{method}", http_options)

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def _check_generate(
        self,
        model: str,
        contents: list[Content],
        config: GenerateContentConfig | None,
    ) -> None:
        validate_temperature(model, config)
        ThoughtSignatureValidator(model).validate(contents)
        if config is None or config.model_armor_config is None:
            return
        if not self._backend.is_vertex:
            raise ConfigurationError(
                "model_armor_config is not supported in Gemini API",
                config_key="model_armor_config",
            )
        if config.safety_settings is not None:
            raise ConfigurationError(
                "model_armor_config cannot be combined with safety_settings",
                config_key="model_armor_config",
            )

    async def _generate(
        self,
        model: str,
        contents: list[Content],
        config: GenerateContentConfig | None,
    ) -> GenerateContentResponse:
        self._check_generate(model, contents, config)
        http_options = _http_options(config)

        data, response = await self._backend.request_json(
            "POST",
            self._method_url(model, "generateContent", http_options),
            json=generate_request_body(contents, config),
            http_options=http_options,
        )
        if config is not None and config.should_return_http_response:
            return GenerateContentResponse(
                sdk_http_response=http_response(response, include_body=True)
            )

        result: GenerateContentResponse = from_wire(GenerateContentResponse, data)
        result.sdk_http_response = http_response(response)
        return result

    async def _stream(
        self,
        model: str,
        contents: list[Content],
        config: GenerateContentConfig | None,
    ) -> AsyncIterator[GenerateContentResponse]:
        if config is not None and config.should_return_http_response:
            raise ConfigurationError(
                "should_return_http_response is not supported in streaming methods",
                config_key="should_return_http_response",
            )
        self._check_generate(model, contents, config)
        http_options = _http_options(config)

        async for payload, headers in self._backend.stream(
            "POST",
            self._method_url(model, "streamGenerateContent", http_options),
            json=generate_request_body(contents, config),
            params={"alt": "sse"},
            http_options=http_options,
        ):
            chunk: GenerateContentResponse = from_wire(GenerateContentResponse, payload)
            chunk.sdk_http_response = HttpResponse(headers=headers)
            yield chunk

    async def generate_content(
        self,
        model: str,
        contents: ContentInput,
        config: GenerateContentConfig | None = None,
        *,
        callable_tools: list[CallableTool] | None = None,
    ) -> GenerateContentResponse:
        """
        Generate a response for the given contents.

        Args:
            model: Model name, e.g. ``gemini-2.5-flash`` or a full resource path.
            contents: A string, Part, Content or a list of them.
            config: Optional generation settings.
            callable_tools: Tools the SDK executes itself through automatic
                function calling.

        Returns:
            The model response. With callable tools this is the final
            response of the loop, carrying the call history.

        Raises:
            ConfigurationError: If the config is invalid for the backend.
            ThoughtSignatureError: If Gemini 3 signatures are misplaced.
            APIError: If the request fails.
        """
        normalized = to_contents(contents)
        if callable_tools is None:
            return await self._generate(model, normalized, config)
        return await self._generate_with_afc(model, normalized, config, callable_tools)

    async def generate_content_stream(
        self,
        model: str,
        contents: ContentInput,
        config: GenerateContentConfig | None = None,
        *,
        callable_tools: list[CallableTool] | None = None,
    ) -> AsyncIterator[GenerateContentResponse]:
        """
        Stream a response as server-sent events.

        Yields:
            One response per event. With callable tools, each round of
            function calls is followed by a response holding the function
            results.
        """
        normalized = to_contents(contents)
        if callable_tools is None:
            stream = self._stream(model, normalized, config)
        else:
            stream = self._stream_with_afc(model, normalized, config, callable_tools)
        async for chunk in stream:
            yield chunk

    # -------------------------------------------------------------------------
    # Automatic function calling
    # -------------------------------------------------------------------------

    async def _prepare_afc(
        self,
        config: GenerateContentConfig | None,
        callable_tools: list[CallableTool],
    ) -> tuple[GenerateContentConfig, dict[str, int], bool]:
        """Merge callable declarations into the config.

        Returns:
            The request config, the function map and whether AFC is off.
        """
        validate_afc_config(config)
        if any(getattr(tool, "uses_mcp", False) for tool in callable_tools):
            self._backend.mark_mcp_used()

        info = await resolve_callable_tools(callable_tools)
        base = config or GenerateContentConfig()
        request_config = dataclasses.replace(base, tools=[*(base.tools or []), *info.tools])

        disabled = should_disable_afc(config, bool(info.function_map))
        if not disabled:
            validate_afc_tools(base.tools)
        return request_config, info.function_map, disabled

    async def _generate_with_afc(
        self,
        model: str,
        contents: list[Content],
        config: GenerateContentConfig | None,
        callable_tools: list[CallableTool],
    ) -> GenerateContentResponse:
        _reject_raw_response(config)
        if not callable_tools:
            return await self._generate(model, contents, config)

        request_config, function_map, disabled = await self._prepare_afc(config, callable_tools)
        if disabled:
            return await self._generate(model, contents, request_config)

        remaining = max_remote_calls(config)
        append_history = should_append_history(config)
        history: list[Content] = []
        conversation = list(contents)

        response = await self._generate(model, conversation, request_config)
        while True:
            function_calls = response.function_calls
            if not function_calls or remaining == 0:
                break

            parts = await call_callable_tools(callable_tools, function_map, function_calls)
            if not parts:
                break

            call_content = build_function_call_content(function_calls)
            response_content = build_function_response_content(parts)
            if append_history:
                if not history:
                    history.extend(conversation)
                history.extend([call_content, response_content])

            conversation.extend([call_content, response_content])
            remaining -= 1
            logger.debug(f"AFC round complete, {remaining} remote call(s) left")
            response = await self._generate(model, conversation, request_config)

        if append_history and history:
            response.automatic_function_calling_history = history
        return response

    async def _stream_with_afc(
        self,
        model: str,
        contents: list[Content],
        config: GenerateContentConfig | None,
        callable_tools: list[CallableTool],
    ) -> AsyncIterator[GenerateContentResponse]:
        _reject_raw_response(config)
        if not callable_tools:
            async for chunk in self._stream(model, contents, config):
                yield chunk
            return

        request_config, function_map, disabled = await self._prepare_afc(config, callable_tools)
        if disabled:
            async for chunk in self._stream(model, contents, request_config):
                yield chunk
            return

        remaining = max_remote_calls(config)
        append_history = should_append_history(config)
        history: list[Content] = []
        conversation = list(contents)

        while remaining > 0:
            function_calls: list[FunctionCall] = []
            response_contents: list[Content] = []
            async for chunk in self._stream(model, conversation, request_config):
                if chunk.candidates and chunk.candidates[0].content is not None:
                    content = chunk.candidates[0].content
                    function_calls.extend(
                        part.function_call for part in content.parts if part.function_call
                    )
                    response_contents.append(content)
                yield chunk

            if not function_calls:
                break

            parts = await call_callable_tools(callable_tools, function_map, function_calls)
            if not parts:
                break

            call_content = build_function_call_content(function_calls)
            response_content = build_function_response_content(parts)
            if append_history:
                if not history:
                    history.extend(conversation)
                history.extend([call_content, response_content])

            conversation.extend(response_contents)
            conversation.extend([call_content, response_content])
            remaining -= 1
            yield build_synthetic_afc_response(response_content, history)

    # -------------------------------------------------------------------------
    # Embeddings and tokens
    # -------------------------------------------------------------------------

    async def embed_content(
        self,
        model: str,
        contents: ContentInput,
        config: EmbedContentConfig | None = None,
    ) -> EmbedContentResponse:
        """
        Compute embeddings, one per content.

        The Gemini API is called through ``batchEmbedContents``; Vertex AI
        through the model's ``predict`` endpoint.
        """
        config = config or EmbedContentConfig()
        normalized = to_contents(contents)
        http_options = config.http_options

        if not self._backend.is_vertex:
            if config.mime_type is not None or config.auto_truncate is not None:
                raise ConfigurationError(
                    "mime_type/auto_truncate not supported in Gemini API",
                    config_key="mime_type",
                )
            requests = []
            for content in normalized:
                request: dict[str, Any] = {
                    "model": self._model_path(model),
                    "content": to_wire(content),
                }
                if config.task_type is not None:
                    request["taskType"] = config.task_type
                if config.title is not None:
                    request["title"] = config.title
                if config.output_dimensionality is not None:
                    request["outputDimensionality"] = config.output_dimensionality
                requests.append(request)

            data, response = await self._backend.request_json(
                "POST",
                self._method_url(model, "batchEmbedContents", http_options),
                json={"requests": requests},
                http_options=http_options,
            )
            result: EmbedContentResponse = from_wire(EmbedContentResponse, data)
            result.sdk_http_response = http_response(response)
            return result

        instances = []
        for content in normalized:
            instance: dict[str, Any] = {"content": to_wire(content)}
            if config.task_type is not None:
                instance["task_type"] = config.task_type
            if config.title is not None:
                instance["title"] = config.title
            if config.mime_type is not None:
                instance["mimeType"] = config.mime_type
            instances.append(instance)

        body: dict[str, Any] = {"instances": instances}
        parameters: dict[str, Any] = {}
        if config.output_dimensionality is not None:
            parameters["outputDimensionality"] = config.output_dimensionality
        if config.auto_truncate is not None:
            parameters["autoTruncate"] = config.auto_truncate
        if parameters:
            body["parameters"] = parameters

        data, response = await self._backend.request_json(
            "POST",
            self._method_url(model, "predict", http_options),
            json=body,
            http_options=http_options,
        )
        embeddings = [
            from_wire(ContentEmbedding, prediction["embeddings"])
            for prediction in data.get("predictions") or []
            if isinstance(prediction, dict) and "embeddings" in prediction
        ]
        return EmbedContentResponse(
            sdk_http_response=http_response(response),
            embeddings=embeddings,
            metadata=from_wire(EmbedContentMetadata, data.get("metadata")),
        )

    async def count_tokens(
        self,
        model: str,
        contents: ContentInput,
        config: CountTokensConfig | None = None,
    ) -> CountTokensResponse:
        """Count tokens with the service's tokenizer."""
        body: dict[str, Any] = {"contents": to_wire(to_contents(contents))}
        if config is not None:
            system_instruction = to_system_instruction(config.system_instruction)
            if system_instruction is not None:
                body["systemInstruction"] = to_wire(system_instruction)
            if config.tools is not None:
                body["tools"] = to_wire(config.tools)
            if config.generation_config is not None:
                body["generationConfig"] = to_wire(config.generation_config)

        http_options = _http_options(config)
        data, response = await self._backend.request_json(
            "POST",
            self._method_url(model, "countTokens", http_options),
            json=body,
            http_options=http_options,
        )
        result: CountTokensResponse = from_wire(CountTokensResponse, data)
        result.sdk_http_response = http_response(response)
        return result

    async def compute_tokens(
        self,
        model: str,
        contents: ContentInput,
        config: ComputeTokensConfig | None = None,
    ) -> ComputeTokensResponse:
        """Return token ids and pieces for each content (Vertex AI only)."""
        if not self._backend.is_vertex:
            raise ConfigurationError("Compute tokens is only supported in Vertex AI backend")

        http_options = _http_options(config)
        data, response = await self._backend.request_json(
            "POST",
            self._method_url(model, "computeTokens", http_options),
            json={"contents": to_wire(to_contents(contents))},
            http_options=http_options,
        )
        result: ComputeTokensResponse = from_wire(ComputeTokensResponse, data)
        result.sdk_http_response = http_response(response)
        return result

    def estimate_tokens_local(
        self,
        contents: ContentInput,
        estimator: TokenEstimator | None = None,
        config: CountTokensConfig | None = None,
    ) -> CountTokensResponse:
        """
        Estimate tokens offline.

        The result has ``estimated=True``: it is a budgeting aid, not a
        billable count.
        """
        estimator = estimator or SimpleTokenEstimator()
        estimation_contents = build_estimation_contents(to_contents(contents), config)
        return CountTokensResponse(
            total_tokens=estimator.estimate_tokens(estimation_contents),
            estimated=True,
        )

    async def count_tokens_or_estimate(
        self,
        model: str,
        contents: ContentInput,
        config: CountTokensConfig | None = None,
        estimator: TokenEstimator | None = None,
    ) -> CountTokensResponse:
        """Estimate locally when an estimator is given, otherwise call the API."""
        if estimator is not None:
            return self.estimate_tokens_local(contents, estimator, config)
        return await self.count_tokens(model, contents, config)

    # -------------------------------------------------------------------------
    # Images and videos
    # -------------------------------------------------------------------------

    def _require_vertex(self, operation: str) -> None:
        if not self._backend.is_vertex:
            raise ConfigurationError(f"{operation} is only supported in Vertex AI backend")

    async def _predict(
        self, model: str, method: str, body: dict[str, Any], http_options: HttpOptions | None
    ) -> tuple[dict[str, Any], Any]:
        return await self._backend.request_json(
            "POST",
            self._method_url(model, method, http_options),
            json=body,
            http_options=http_options,
        )

    async def generate_images(
        self, model: str, prompt: str, config: GenerateImagesConfig | None = None
    ) -> GenerateImagesResponse:
        """
        Generate images from a text prompt with an Imagen model.

        Example:
            >>> response = await client.models.generate_images(
            ...     "imagen-4.0-generate-001", "A lighthouse at dusk"
            ... )
            >>> data = response.generated_images[0].image.image_bytes
        """
        config = config or GenerateImagesConfig()
        body = _media.generate_images_body(prompt, config, self._backend.is_vertex)
        data, response = await self._predict(model, "predict", body, config.http_options)
        return GenerateImagesResponse(
            sdk_http_response=http_response(response),
            generated_images=_media.generated_images(data),
            positive_prompt_safety_attributes=_media.safety_attributes(
                data.get("positivePromptSafetyAttributes")
            ),
        )

    async def edit_image(
        self,
        model: str,
        prompt: str,
        reference_images: list[ReferenceImage],
        config: EditImageConfig | None = None,
    ) -> EditImageResponse:
        """Edit images guided by a prompt and reference images (Vertex AI only)."""
        self._require_vertex("Edit image")
        config = config or EditImageConfig()
        body = _media.edit_image_body(prompt, reference_images, config)
        data, response = await self._predict(model, "predict", body, config.http_options)
        return EditImageResponse(
            sdk_http_response=http_response(response),
            generated_images=_media.generated_images(data),
        )

    async def upscale_image(
        self,
        model: str,
        image: Image,
        upscale_factor: str,
        config: UpscaleImageConfig | None = None,
    ) -> UpscaleImageResponse:
        """
        Upscale an image (Vertex AI only).

        Args:
            model: Imagen model that supports upscaling.
            image: Image to upscale.
            upscale_factor: ``x2`` or ``x4``.
            config: Optional upscale options.
        """
        self._require_vertex("Upscale image")
        config = config or UpscaleImageConfig()
        body = _media.upscale_image_body(image, upscale_factor, config)
        data, response = await self._predict(model, "predict", body, config.http_options)
        return UpscaleImageResponse(
            sdk_http_response=http_response(response),
            generated_images=_media.generated_images(data),
        )

    async def recontext_image(
        self,
        model: str,
        source: RecontextImageSource,
        config: RecontextImageConfig | None = None,
    ) -> RecontextImageResponse:
        """Place a person or products into a new scene (Vertex AI only)."""
        self._require_vertex("Recontext image")
        config = config or RecontextImageConfig()
        body = _media.recontext_image_body(source, config)
        data, response = await self._predict(model, "predict", body, config.http_options)
        return RecontextImageResponse(
            sdk_http_response=http_response(response),
            generated_images=_media.generated_images(data),
        )

    async def segment_image(
        self,
        model: str,
        source: SegmentImageSource,
        config: SegmentImageConfig | None = None,
    ) -> SegmentImageResponse:
        """Compute segmentation masks for an image (Vertex AI only)."""
        self._require_vertex("Segment image")
        config = config or SegmentImageConfig()
        body = _media.segment_image_body(source, config)
        data, response = await self._predict(model, "predict", body, config.http_options)
        return SegmentImageResponse(
            sdk_http_response=http_response(response),
            generated_masks=_media.generated_masks(data),
        )

    async def generate_videos(
        self,
        model: str,
        source: GenerateVideosSource | str,
        config: GenerateVideosConfig | None = None,
    ) -> GenerateVideosOperation:
        """
        Start a Veo video generation.

        The call returns as soon as the job is accepted. Poll the returned
        operation with ``client.operations.wait`` to get the videos.

        Args:
            model: Veo model name.
            source: A text prompt, or a GenerateVideosSource combining a
                prompt with a starting image or video.
            config: Optional generation options.
        """
        if isinstance(source, str):
            source = GenerateVideosSource(prompt=source)
        config = config or GenerateVideosConfig()
        is_vertex = self._backend.is_vertex
        body = _media.generate_videos_body(source, config, is_vertex)
        data, _ = await self._predict(model, "predictLongRunning", body, config.http_options)
        operation = _media.generate_videos_operation(data, is_vertex)
        logger.debug(f"Started video generation {operation.name}")
        return operation

    # -------------------------------------------------------------------------
    # Model metadata
    # -------------------------------------------------------------------------

    async def list(self, config: ListModelsConfig | None = None) -> ListModelsResponse:
        """
        List one page of models.

        With ``query_base=False`` the tuned models of the project are listed
        instead of the base models.
        """
        query_base = config is None or config.query_base is None or config.query_base
        if self._backend.is_vertex:
            parent = self._backend.vertex_parent()
            path = f"{parent}/publishers/google/models" if query_base else f"{parent}/models"
        else:
            path = "models" if query_base else "tunedModels"

        http_options = _http_options(config)
        data, response = await self._backend.request_json(
            "GET",
            self._backend.url(path, http_options),
            params=list_params(config),
            http_options=http_options,
        )
        if "tunedModels" in data and "models" not in data:
            data = {**data, "models": data["tunedModels"]}
        result: ListModelsResponse = from_wire(ListModelsResponse, data)
        result.sdk_http_response = http_response(response)
        return result

    async def all(self, config: ListModelsConfig | None = None) -> AsyncIterator[Model]:
        """Iterate over models across every page."""
        async for model in iter_pages(self.list, config or ListModelsConfig(), "models"):
            yield model

    async def get(self, model: str, http_options: HttpOptions | None = None) -> Model:
        data, _ = await self._backend.request_json(
            "GET",
            self._backend.url(self._model_path(model), http_options),
            http_options=http_options,
        )
        return from_wire(Model, data)

    async def update(self, model: str, config: UpdateModelConfig) -> Model:
        """Update display name, description or default checkpoint."""
        body = to_wire(config)
        http_options = config.http_options
        data, _ = await self._backend.request_json(
            "PATCH",
            self._backend.url(self._model_path(model), http_options),
            json=body,
            params={"updateMask": update_mask(body)},
            http_options=http_options,
        )
        return from_wire(Model, data)

    async def delete(
        self,
        model: str,
        http_options: HttpOptions | None = None,
    ) -> DeleteModelResponse:
        _, response = await self._backend.request_json(
            "DELETE",
            self._backend.url(self._model_path(model), http_options),
            http_options=http_options,
        )
        return DeleteModelResponse(sdk_http_response=http_response(response))
