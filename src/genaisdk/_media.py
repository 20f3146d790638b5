"""
Request bodies and response parsing for Imagen and Veo ``predict`` calls.

These endpoints do not share the camelCase mapping of the other resources:
image bytes travel as ``bytesBase64Encoded``, and the Gemini API names video
fields differently from Vertex AI. The builders here spell the bodies out
field by field and reject options the selected backend does not accept.
"""

from __future__ import annotations

from typing import Any

from ._common import from_wire, to_wire
from .exceptions import ConfigurationError
from .types import (
    EditImageConfig,
    EntityLabel,
    GeneratedImage,
    GeneratedImageMask,
    GeneratedVideo,
    GenerateImagesConfig,
    GenerateVideosConfig,
    GenerateVideosOperation,
    GenerateVideosResponse,
    GenerateVideosSource,
    Image,
    RecontextImageConfig,
    RecontextImageSource,
    ReferenceImage,
    SafetyAttributes,
    SegmentImageConfig,
    SegmentImageSource,
    UpscaleImageConfig,
    Video,
    VideoGenerationMask,
    VideoGenerationReferenceImage,
)

# Video field names per backend: (uri, bytes, mime type)
_GEMINI_VIDEO_KEYS = ("uri", "encodedVideo", "encoding")
_VERTEX_VIDEO_KEYS = ("gcsUri", "bytesBase64Encoded", "mimeType")


def _put(target: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        target[key] = to_wire(value)


def _vertex_only(is_vertex: bool, value: Any, option: str) -> None:
    if value is not None and not is_vertex:
        raise ConfigurationError(f"{option} is not supported in Gemini API", config_key=option)


# =============================================================================
# Media Encoding
# =============================================================================


def image_to_wire(image: Image, is_vertex: bool) -> dict[str, Any]:
    if image.gcs_uri is not None and not is_vertex:
        raise ConfigurationError("gcs_uri is not supported in Gemini API", config_key="gcs_uri")
    value: dict[str, Any] = {}
    _put(value, "gcsUri", image.gcs_uri)
    _put(value, "bytesBase64Encoded", image.image_bytes)
    _put(value, "mimeType", image.mime_type)
    return value


def video_to_wire(video: Video, is_vertex: bool) -> dict[str, Any]:
    uri_key, bytes_key, mime_key = _VERTEX_VIDEO_KEYS if is_vertex else _GEMINI_VIDEO_KEYS
    value: dict[str, Any] = {}
    _put(value, uri_key, video.uri)
    _put(value, bytes_key, video.video_bytes)
    _put(value, mime_key, video.mime_type)
    return value


def _reference_image(image: ReferenceImage) -> dict[str, Any]:
    value: dict[str, Any] = {}
    if image.reference_image is not None:
        value["referenceImage"] = image_to_wire(image.reference_image, True)
    _put(value, "referenceId", image.reference_id)
    _put(value, "referenceType", image.reference_type)
    _put(value, "maskImageConfig", image.mask_image_config)
    _put(value, "controlImageConfig", image.control_image_config)
    _put(value, "styleImageConfig", image.style_image_config)
    _put(value, "subjectImageConfig", image.subject_image_config)
    return value


def _video_reference_image(
    reference: VideoGenerationReferenceImage, is_vertex: bool
) -> dict[str, Any]:
    value: dict[str, Any] = {}
    if reference.image is not None:
        value["image"] = image_to_wire(reference.image, is_vertex)
    _put(value, "referenceType", reference.reference_type)
    return value


def _video_mask(mask: VideoGenerationMask) -> dict[str, Any]:
    value: dict[str, Any] = {}
    if mask.image is not None:
        value["image"] = image_to_wire(mask.image, True)
    _put(value, "maskMode", mask.mask_mode)
    return value


def _output_options(config: Any) -> dict[str, Any]:
    options: dict[str, Any] = {}
    _put(options, "mimeType", config.output_mime_type)
    _put(options, "compressionQuality", config.output_compression_quality)
    return options


def _predict_body(instance: dict[str, Any], parameters: dict[str, Any]) -> dict[str, Any]:
    body: dict[str, Any] = {"instances": [instance]}
    if parameters:
        body["parameters"] = parameters
    return body


# =============================================================================
# Request Bodies
# =============================================================================


def generate_images_body(
    prompt: str, config: GenerateImagesConfig, is_vertex: bool
) -> dict[str, Any]:
    for option in (
        "output_gcs_uri",
        "negative_prompt",
        "seed",
        "add_watermark",
        "enhance_prompt",
        "labels",
    ):
        _vertex_only(is_vertex, getattr(config, option), option)

    parameters: dict[str, Any] = {}
    _put(parameters, "sampleCount", config.number_of_images)
    _put(parameters, "aspectRatio", config.aspect_ratio)
    _put(parameters, "guidanceScale", config.guidance_scale)
    _put(parameters, "safetySetting", config.safety_filter_level)
    _put(parameters, "personGeneration", config.person_generation)
    _put(parameters, "includeSafetyAttributes", config.include_safety_attributes)
    _put(parameters, "includeRaiReason", config.include_rai_reason)
    _put(parameters, "language", config.language)
    output_options = _output_options(config)
    if output_options:
        parameters["outputOptions"] = output_options
    _put(parameters, "sampleImageSize", config.image_size)
    _put(parameters, "storageUri", config.output_gcs_uri)
    _put(parameters, "negativePrompt", config.negative_prompt)
    _put(parameters, "seed", config.seed)
    _put(parameters, "addWatermark", config.add_watermark)
    _put(parameters, "enhancePrompt", config.enhance_prompt)

    body = _predict_body({"prompt": prompt}, parameters)
    _put(body, "labels", config.labels)
    return body


def edit_image_body(
    prompt: str, reference_images: list[ReferenceImage], config: EditImageConfig
) -> dict[str, Any]:
    instance: dict[str, Any] = {"prompt": prompt}
    if reference_images:
        instance["referenceImages"] = [_reference_image(image) for image in reference_images]

    parameters: dict[str, Any] = {}
    _put(parameters, "storageUri", config.output_gcs_uri)
    _put(parameters, "negativePrompt", config.negative_prompt)
    _put(parameters, "sampleCount", config.number_of_images)
    _put(parameters, "aspectRatio", config.aspect_ratio)
    _put(parameters, "guidanceScale", config.guidance_scale)
    _put(parameters, "seed", config.seed)
    _put(parameters, "safetySetting", config.safety_filter_level)
    _put(parameters, "personGeneration", config.person_generation)
    _put(parameters, "includeSafetyAttributes", config.include_safety_attributes)
    _put(parameters, "includeRaiReason", config.include_rai_reason)
    _put(parameters, "language", config.language)
    output_options = _output_options(config)
    if output_options:
        parameters["outputOptions"] = output_options
    _put(parameters, "addWatermark", config.add_watermark)
    _put(parameters, "editMode", config.edit_mode)
    if config.base_steps is not None:
        parameters["editConfig"] = {"baseSteps": config.base_steps}

    body = _predict_body(instance, parameters)
    _put(body, "labels", config.labels)
    return body


def upscale_image_body(
    image: Image, upscale_factor: str, config: UpscaleImageConfig
) -> dict[str, Any]:
    parameters: dict[str, Any] = {
        "mode": config.mode or "upscale",
        "sampleCount": config.number_of_images if config.number_of_images is not None else 1,
    }
    _put(parameters, "storageUri", config.output_gcs_uri)
    _put(parameters, "safetySetting", config.safety_filter_level)
    _put(parameters, "personGeneration", config.person_generation)
    _put(parameters, "includeRaiReason", config.include_rai_reason)
    output_options = _output_options(config)
    if output_options:
        parameters["outputOptions"] = output_options

    upscale_config: dict[str, Any] = {}
    _put(upscale_config, "enhanceInputImage", config.enhance_input_image)
    _put(upscale_config, "imagePreservationFactor", config.image_preservation_factor)
    upscale_config["upscaleFactor"] = upscale_factor
    parameters["upscaleConfig"] = upscale_config

    body = _predict_body({"image": image_to_wire(image, True)}, parameters)
    _put(body, "labels", config.labels)
    return body


def recontext_image_body(
    source: RecontextImageSource, config: RecontextImageConfig
) -> dict[str, Any]:
    instance: dict[str, Any] = {}
    _put(instance, "prompt", source.prompt)
    if source.person_image is not None:
        instance["personImage"] = {"image": image_to_wire(source.person_image, True)}
    products = [
        {"image": image_to_wire(item.product_image, True)}
        for item in source.product_images or []
        if item.product_image is not None
    ]
    if products:
        instance["productImages"] = products

    parameters: dict[str, Any] = {}
    _put(parameters, "sampleCount", config.number_of_images)
    _put(parameters, "baseSteps", config.base_steps)
    _put(parameters, "storageUri", config.output_gcs_uri)
    _put(parameters, "seed", config.seed)
    _put(parameters, "safetySetting", config.safety_filter_level)
    _put(parameters, "personGeneration", config.person_generation)
    _put(parameters, "addWatermark", config.add_watermark)
    output_options = _output_options(config)
    if output_options:
        parameters["outputOptions"] = output_options
    _put(parameters, "enhancePrompt", config.enhance_prompt)

    body = _predict_body(instance, parameters)
    _put(body, "labels", config.labels)
    return body


def segment_image_body(source: SegmentImageSource, config: SegmentImageConfig) -> dict[str, Any]:
    instance: dict[str, Any] = {}
    _put(instance, "prompt", source.prompt)
    if source.image is not None:
        instance["image"] = image_to_wire(source.image, True)
    if source.scribble_image is not None and source.scribble_image.image is not None:
        instance["scribble"] = {"image": image_to_wire(source.scribble_image.image, True)}

    parameters: dict[str, Any] = {}
    _put(parameters, "mode", config.mode)
    _put(parameters, "maxPredictions", config.max_predictions)
    _put(parameters, "confidenceThreshold", config.confidence_threshold)
    _put(parameters, "maskDilation", config.mask_dilation)
    _put(parameters, "binaryColorThreshold", config.binary_color_threshold)

    body = _predict_body(instance, parameters)
    _put(body, "labels", config.labels)
    return body


def generate_videos_body(
    source: GenerateVideosSource, config: GenerateVideosConfig, is_vertex: bool
) -> dict[str, Any]:
    for option in (
        "output_gcs_uri",
        "fps",
        "seed",
        "pubsub_topic",
        "generate_audio",
        "compression_quality",
        "mask",
    ):
        _vertex_only(is_vertex, getattr(config, option), option)

    instance: dict[str, Any] = {}
    _put(instance, "prompt", source.prompt)
    if source.image is not None:
        instance["image"] = image_to_wire(source.image, is_vertex)
    if source.video is not None:
        instance["video"] = video_to_wire(source.video, is_vertex)
    if config.last_frame is not None:
        instance["lastFrame"] = image_to_wire(config.last_frame, is_vertex)
    if config.reference_images is not None:
        instance["referenceImages"] = [
            _video_reference_image(reference, is_vertex) for reference in config.reference_images
        ]
    if config.mask is not None:
        instance["mask"] = _video_mask(config.mask)

    parameters: dict[str, Any] = {}
    _put(parameters, "sampleCount", config.number_of_videos)
    _put(parameters, "storageUri", config.output_gcs_uri)
    _put(parameters, "fps", config.fps)
    _put(parameters, "durationSeconds", config.duration_seconds)
    _put(parameters, "seed", config.seed)
    _put(parameters, "aspectRatio", config.aspect_ratio)
    _put(parameters, "resolution", config.resolution)
    _put(parameters, "personGeneration", config.person_generation)
    _put(parameters, "pubsubTopic", config.pubsub_topic)
    _put(parameters, "negativePrompt", config.negative_prompt)
    _put(parameters, "enhancePrompt", config.enhance_prompt)
    _put(parameters, "generateAudio", config.generate_audio)
    _put(parameters, "compressionQuality", config.compression_quality)
    return _predict_body(instance, parameters)


# =============================================================================
# Response Parsing
# =============================================================================


def _objects(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _predictions(data: dict[str, Any]) -> list[dict[str, Any]]:
    return _objects(data.get("predictions"))


def _image(value: dict[str, Any]) -> Image | None:
    if not any(key in value for key in ("gcsUri", "bytesBase64Encoded", "mimeType")):
        return None
    return Image(
        gcs_uri=value.get("gcsUri"),
        image_bytes=from_wire(bytes, value.get("bytesBase64Encoded")),
        mime_type=value.get("mimeType"),
    )


def safety_attributes(value: Any) -> SafetyAttributes | None:
    """Read safety attributes given inline or nested under ``safetyAttributes``."""
    if not isinstance(value, dict):
        return None
    nested = value.get("safetyAttributes")
    nested = nested if isinstance(nested, dict) else {}
    categories = value.get("categories", nested.get("categories"))
    scores = value.get("scores", nested.get("scores"))
    content_type = value.get("contentType")
    if categories is None and scores is None and content_type is None:
        return None
    return SafetyAttributes(
        categories=from_wire(list[str], categories),
        scores=from_wire(list[float], scores),
        content_type=content_type,
    )


def generated_images(data: dict[str, Any]) -> list[GeneratedImage]:
    return [
        GeneratedImage(
            image=_image(item),
            rai_filtered_reason=item.get("raiFilteredReason"),
            safety_attributes=safety_attributes(item),
            enhanced_prompt=item.get("enhancedPrompt"),
        )
        for item in _predictions(data)
    ]


def generated_masks(data: dict[str, Any]) -> list[GeneratedImageMask]:
    masks = []
    for item in _predictions(data):
        labels = item.get("labels")
        masks.append(
            GeneratedImageMask(
                mask=_image(item),
                labels=from_wire(list[EntityLabel], labels) if isinstance(labels, list) else None,
            )
        )
    return masks


def _video(value: Any, is_vertex: bool) -> Video | None:
    if not isinstance(value, dict):
        return None
    uri_key, bytes_key, mime_key = _VERTEX_VIDEO_KEYS if is_vertex else _GEMINI_VIDEO_KEYS
    if not any(key in value for key in (uri_key, bytes_key, mime_key)):
        return None
    return Video(
        uri=value.get(uri_key),
        video_bytes=from_wire(bytes, value.get(bytes_key)),
        mime_type=value.get(mime_key),
    )


def generate_videos_response(data: dict[str, Any], is_vertex: bool) -> GenerateVideosResponse:
    # Gemini lists ``generatedSamples`` wrapping each video; Vertex lists ``videos``
    if is_vertex:
        items = [item.get("_self", item) for item in _objects(data.get("videos"))]
    else:
        items = [item.get("video", item) for item in _objects(data.get("generatedSamples"))]
    return GenerateVideosResponse(
        generated_videos=[GeneratedVideo(video=_video(item, is_vertex)) for item in items],
        rai_media_filtered_count=from_wire(int, data.get("raiMediaFilteredCount")),
        rai_media_filtered_reasons=data.get("raiMediaFilteredReasons"),
    )


def generate_videos_operation(data: dict[str, Any], is_vertex: bool) -> GenerateVideosOperation:
    response = data.get("response")
    if isinstance(response, dict) and not is_vertex:
        response = response.get("generateVideoResponse", response)
    return GenerateVideosOperation(
        name=data.get("name"),
        metadata=data.get("metadata"),
        done=data.get("done"),
        error=data.get("error"),
        response=(
            generate_videos_response(response, is_vertex) if isinstance(response, dict) else None
        ),
    )
