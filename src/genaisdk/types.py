"""
Type definitions for genaisdk.

The dataclasses in this module mirror the REST resources of the Gemini API
and Vertex AI. Attribute names are snake_case; ``_common.to_wire`` and
``_common.from_wire`` translate them to and from the camelCase JSON the
services speak.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypedDict

from typing_extensions import NotRequired

# =============================================================================
# Enums
# =============================================================================


class Backend(str, Enum):
    """Which Google service the client talks to."""

    GEMINI_API = "gemini_api"
    VERTEX_AI = "vertex_ai"


class Role(str, Enum):
    """Author of a piece of content."""

    USER = "user"
    MODEL = "model"
    FUNCTION = "function"


class FileState(str, Enum):
    """Processing state of an uploaded file."""

    STATE_UNSPECIFIED = "STATE_UNSPECIFIED"
    PROCESSING = "PROCESSING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"


class JobState(str, Enum):
    """State of a batch or tuning job."""

    JOB_STATE_UNSPECIFIED = "JOB_STATE_UNSPECIFIED"
    JOB_STATE_QUEUED = "JOB_STATE_QUEUED"
    JOB_STATE_PENDING = "JOB_STATE_PENDING"
    JOB_STATE_RUNNING = "JOB_STATE_RUNNING"
    JOB_STATE_SUCCEEDED = "JOB_STATE_SUCCEEDED"
    JOB_STATE_FAILED = "JOB_STATE_FAILED"
    JOB_STATE_CANCELLING = "JOB_STATE_CANCELLING"
    JOB_STATE_CANCELLED = "JOB_STATE_CANCELLED"
    JOB_STATE_PAUSED = "JOB_STATE_PAUSED"
    JOB_STATE_EXPIRED = "JOB_STATE_EXPIRED"
    JOB_STATE_UPDATING = "JOB_STATE_UPDATING"
    JOB_STATE_PARTIALLY_SUCCEEDED = "JOB_STATE_PARTIALLY_SUCCEEDED"


class FunctionCallingMode(str, Enum):
    """How the model is allowed to call functions."""

    MODE_UNSPECIFIED = "MODE_UNSPECIFIED"
    AUTO = "AUTO"
    ANY = "ANY"
    NONE = "NONE"
    VALIDATED = "VALIDATED"


class TuningMethod(str, Enum):
    """Tuning method for Vertex AI tuning jobs."""

    SUPERVISED_FINE_TUNING = "SUPERVISED_FINE_TUNING"
    PREFERENCE_TUNING = "PREFERENCE_TUNING"


class EventType(str, Enum):
    """Event types emitted by chat sessions."""

    MESSAGE_DELTA = "message.delta"
    MESSAGE = "message"
    HISTORY_CLEARED = "history.cleared"
    ERROR = "error"


class SafetyFilterLevel(str, Enum):
    BLOCK_LOW_AND_ABOVE = "BLOCK_LOW_AND_ABOVE"
    BLOCK_MEDIUM_AND_ABOVE = "BLOCK_MEDIUM_AND_ABOVE"
    BLOCK_ONLY_HIGH = "BLOCK_ONLY_HIGH"
    BLOCK_NONE = "BLOCK_NONE"


class PersonGeneration(str, Enum):
    DONT_ALLOW = "DONT_ALLOW"
    ALLOW_ADULT = "ALLOW_ADULT"
    ALLOW_ALL = "ALLOW_ALL"


class ImagePromptLanguage(str, Enum):
    """Language of an image prompt. The wire values are lowercase."""

    AUTO = "auto"
    EN = "en"
    JA = "ja"
    KO = "ko"
    HI = "hi"
    ZH = "zh"
    PT = "pt"
    ES = "es"


class ReferenceImageType(str, Enum):
    """Role of a reference image in an edit request."""

    REFERENCE_TYPE_RAW = "REFERENCE_TYPE_RAW"
    REFERENCE_TYPE_MASK = "REFERENCE_TYPE_MASK"
    REFERENCE_TYPE_CONTROL = "REFERENCE_TYPE_CONTROL"
    REFERENCE_TYPE_STYLE = "REFERENCE_TYPE_STYLE"
    REFERENCE_TYPE_SUBJECT = "REFERENCE_TYPE_SUBJECT"
    REFERENCE_TYPE_CONTENT = "REFERENCE_TYPE_CONTENT"


class MaskReferenceMode(str, Enum):
    MASK_MODE_DEFAULT = "MASK_MODE_DEFAULT"
    MASK_MODE_USER_PROVIDED = "MASK_MODE_USER_PROVIDED"
    MASK_MODE_BACKGROUND = "MASK_MODE_BACKGROUND"
    MASK_MODE_FOREGROUND = "MASK_MODE_FOREGROUND"
    MASK_MODE_SEMANTIC = "MASK_MODE_SEMANTIC"


class ControlReferenceType(str, Enum):
    CONTROL_TYPE_DEFAULT = "CONTROL_TYPE_DEFAULT"
    CONTROL_TYPE_CANNY = "CONTROL_TYPE_CANNY"
    CONTROL_TYPE_SCRIBBLE = "CONTROL_TYPE_SCRIBBLE"
    CONTROL_TYPE_FACE_MESH = "CONTROL_TYPE_FACE_MESH"


class SubjectReferenceType(str, Enum):
    SUBJECT_TYPE_DEFAULT = "SUBJECT_TYPE_DEFAULT"
    SUBJECT_TYPE_PERSON = "SUBJECT_TYPE_PERSON"
    SUBJECT_TYPE_ANIMAL = "SUBJECT_TYPE_ANIMAL"
    SUBJECT_TYPE_PRODUCT = "SUBJECT_TYPE_PRODUCT"


class EditMode(str, Enum):
    EDIT_MODE_DEFAULT = "EDIT_MODE_DEFAULT"
    EDIT_MODE_INPAINT_REMOVAL = "EDIT_MODE_INPAINT_REMOVAL"
    EDIT_MODE_INPAINT_INSERTION = "EDIT_MODE_INPAINT_INSERTION"
    EDIT_MODE_OUTPAINT = "EDIT_MODE_OUTPAINT"
    EDIT_MODE_CONTROLLED_EDITING = "EDIT_MODE_CONTROLLED_EDITING"
    EDIT_MODE_STYLE = "EDIT_MODE_STYLE"
    EDIT_MODE_BGSWAP = "EDIT_MODE_BGSWAP"
    EDIT_MODE_PRODUCT_IMAGE = "EDIT_MODE_PRODUCT_IMAGE"


class SegmentMode(str, Enum):
    FOREGROUND = "FOREGROUND"
    BACKGROUND = "BACKGROUND"
    PROMPT = "PROMPT"
    SEMANTIC = "SEMANTIC"
    INTERACTIVE = "INTERACTIVE"


class VideoGenerationReferenceType(str, Enum):
    ASSET = "ASSET"
    STYLE = "STYLE"


class VideoGenerationMaskMode(str, Enum):
    INSERT = "INSERT"
    REMOVE = "REMOVE"
    REMOVE_STATIC = "REMOVE_STATIC"
    OUTPAINT = "OUTPAINT"


class VideoCompressionQuality(str, Enum):
    OPTIMIZED = "OPTIMIZED"
    LOSSLESS = "LOSSLESS"


class DocumentState(str, Enum):
    """Ingestion state of a file search store document."""

    STATE_UNSPECIFIED = "STATE_UNSPECIFIED"
    STATE_PENDING = "STATE_PENDING"
    STATE_ACTIVE = "STATE_ACTIVE"
    STATE_FAILED = "STATE_FAILED"


# =============================================================================
# Content Types
# =============================================================================


@dataclass
class Blob:
    """Raw bytes with a MIME type."""

    data: bytes | None = None
    mime_type: str | None = None
    display_name: str | None = None


@dataclass
class FileData:
    """Reference to a file stored by the service."""

    file_uri: str | None = None
    mime_type: str | None = None
    display_name: str | None = None


@dataclass
class FunctionCall:
    """A function call requested by the model."""

    name: str | None = None
    args: dict[str, Any] | None = None
    id: str | None = None


@dataclass
class FunctionResponse:
    """The result of a function call, sent back to the model."""

    name: str | None = None
    response: dict[str, Any] | None = None
    id: str | None = None
    will_continue: bool | None = None


@dataclass
class ExecutableCode:
    """Code generated by the model for the code execution tool."""

    code: str | None = None
    language: str | None = None


@dataclass
class CodeExecutionResult:
    """Result of running ExecutableCode."""

    outcome: str | None = None
    output: str | None = None


@dataclass
class VideoMetadata:
    start_offset: str | None = None
    end_offset: str | None = None
    fps: float | None = None


@dataclass
class Part:
    """A single piece of multi-part content.

    Exactly one of the data fields is expected to be set.
    """

    text: str | None = None
    inline_data: Blob | None = None
    file_data: FileData | None = None
    function_call: FunctionCall | None = None
    function_response: FunctionResponse | None = None
    executable_code: ExecutableCode | None = None
    code_execution_result: CodeExecutionResult | None = None
    thought: bool | None = None
    thought_signature: bytes | None = None
    video_metadata: VideoMetadata | None = None

    @classmethod
    def from_text(cls, text: str) -> Part:
        return cls(text=text)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> Part:
        return cls(inline_data=Blob(data=data, mime_type=mime_type))

    @classmethod
    def from_uri(cls, file_uri: str, mime_type: str | None = None) -> Part:
        return cls(file_data=FileData(file_uri=file_uri, mime_type=mime_type))

    @classmethod
    def from_function_call(cls, name: str, args: dict[str, Any] | None = None) -> Part:
        return cls(function_call=FunctionCall(name=name, args=args or {}))

    @classmethod
    def from_function_response(cls, name: str, response: dict[str, Any]) -> Part:
        return cls(function_response=FunctionResponse(name=name, response=response))


@dataclass
class Content:
    """A turn in a conversation."""

    role: str | None = None
    parts: list[Part] = field(default_factory=list)

    @classmethod
    def user(cls, text: str) -> Content:
        """Create a user turn holding a single text part."""
        return cls(role=Role.USER.value, parts=[Part(text=text)])

    @classmethod
    def model(cls, text: str) -> Content:
        """Create a model turn holding a single text part."""
        return cls(role=Role.MODEL.value, parts=[Part(text=text)])

    @classmethod
    def from_parts(cls, parts: list[Part], role: str = Role.USER.value) -> Content:
        return cls(role=role, parts=list(parts))

    @property
    def text(self) -> str | None:
        """Concatenated text of all non-thought parts, or None."""
        texts = [p.text for p in self.parts if p.text is not None and not p.thought]
        if not texts:
            return None
        return "".join(texts)


# =============================================================================
# Tool Types
# =============================================================================


@dataclass
class FunctionDeclaration:
    """Declaration of a function the model may call."""

    name: str | None = None
    description: str | None = None
    parameters: dict[str, Any] | None = None
    parameters_json_schema: Any = None
    response: dict[str, Any] | None = None
    response_json_schema: Any = None
    behavior: str | None = None


@dataclass
class Tool:
    """A set of capabilities offered to the model."""

    function_declarations: list[FunctionDeclaration] | None = None
    google_search: dict[str, Any] | None = None
    google_search_retrieval: dict[str, Any] | None = None
    code_execution: dict[str, Any] | None = None
    url_context: dict[str, Any] | None = None
    retrieval: dict[str, Any] | None = None


@dataclass
class FunctionCallingConfig:
    mode: FunctionCallingMode | None = None
    allowed_function_names: list[str] | None = None
    stream_function_call_arguments: bool | None = None


@dataclass
class ToolConfig:
    function_calling_config: FunctionCallingConfig | None = None
    retrieval_config: dict[str, Any] | None = None


# =============================================================================
# HTTP Options
# =============================================================================


@dataclass
class HttpRetryOptions:
    """Transport-level retry policy.

    ``attempts`` counts every try including the first, so ``attempts=1``
    disables retry. Unset fields take the defaults in ``backend``.
    """

    attempts: int | None = None
    initial_delay: float | None = None
    max_delay: float | None = None
    exp_base: float | None = None
    jitter: float | None = None
    http_status_codes: list[int] | None = None


@dataclass
class HttpOptions:
    """Per-client or per-request HTTP overrides.

    ``timeout_ms`` is in milliseconds; the client-wide ``timeout`` option is
    in seconds.
    """

    base_url: str | None = None
    api_version: str | None = None
    headers: dict[str, str] | None = None
    timeout_ms: int | None = None
    extra_body: dict[str, Any] | None = None
    retry_options: HttpRetryOptions | None = None


@dataclass
class HttpResponse:
    """Raw HTTP response data attached to SDK results."""

    headers: dict[str, str] | None = None
    body: str | None = None


# =============================================================================
# Generation Config Types
# =============================================================================


@dataclass
class ThinkingConfig:
    include_thoughts: bool | None = None
    thinking_budget: int | None = None
    thinking_level: str | None = None


@dataclass
class GenerationConfig:
    """Sampling and output controls."""

    temperature: float | None = None
    top_p: float | None = None
    top_k: float | None = None
    candidate_count: int | None = None
    max_output_tokens: int | None = None
    stop_sequences: list[str] | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    seed: int | None = None
    response_mime_type: str | None = None
    response_schema: dict[str, Any] | None = None
    response_json_schema: Any = None
    response_modalities: list[str] | None = None
    response_logprobs: bool | None = None
    logprobs: int | None = None
    media_resolution: str | None = None
    speech_config: dict[str, Any] | None = None
    thinking_config: ThinkingConfig | None = None


@dataclass
class SafetySetting:
    category: str | None = None
    threshold: str | None = None
    method: str | None = None


@dataclass
class ModelArmorConfig:
    """Vertex AI Model Armor templates, used instead of safety settings."""

    prompt_template_name: str | None = None
    response_template_name: str | None = None


@dataclass
class AutomaticFunctionCallingConfig:
    disable: bool | None = None
    maximum_remote_calls: int | None = None
    ignore_call_history: bool | None = None


@dataclass
class GenerateContentConfig:
    """Options for generate_content and generate_content_stream."""

    http_options: HttpOptions | None = None
    system_instruction: Content | str | None = None
    generation_config: GenerationConfig | None = None
    safety_settings: list[SafetySetting] | None = None
    tools: list[Tool] | None = None
    tool_config: ToolConfig | None = None
    cached_content: str | None = None
    labels: dict[str, str] | None = None
    model_armor_config: ModelArmorConfig | None = None
    automatic_function_calling: AutomaticFunctionCallingConfig | None = None
    should_return_http_response: bool | None = None


# =============================================================================
# Generation Response Types
# =============================================================================


@dataclass
class Candidate:
    content: Content | None = None
    finish_reason: str | None = None
    finish_message: str | None = None
    index: int | None = None
    token_count: int | None = None
    avg_logprobs: float | None = None
    safety_ratings: list[dict[str, Any]] | None = None
    citation_metadata: dict[str, Any] | None = None
    grounding_metadata: dict[str, Any] | None = None
    url_context_metadata: dict[str, Any] | None = None


@dataclass
class PromptFeedback:
    block_reason: str | None = None
    block_reason_message: str | None = None
    safety_ratings: list[dict[str, Any]] | None = None


@dataclass
class UsageMetadata:
    prompt_token_count: int | None = None
    candidates_token_count: int | None = None
    total_token_count: int | None = None
    cached_content_token_count: int | None = None
    thoughts_token_count: int | None = None
    tool_use_prompt_token_count: int | None = None


@dataclass
class GenerateContentResponse:
    """Response of a generate call, or one chunk of a streamed one."""

    sdk_http_response: HttpResponse | None = None
    candidates: list[Candidate] | None = None
    prompt_feedback: PromptFeedback | None = None
    usage_metadata: UsageMetadata | None = None
    model_version: str | None = None
    response_id: str | None = None
    create_time: str | None = None
    automatic_function_calling_history: list[Content] | None = None

    @property
    def parts(self) -> list[Part]:
        """Parts of the first candidate."""
        if not self.candidates or self.candidates[0].content is None:
            return []
        return self.candidates[0].content.parts

    @property
    def text(self) -> str | None:
        """Text of the first candidate, skipping thought parts."""
        if not self.candidates or self.candidates[0].content is None:
            return None
        return self.candidates[0].content.text

    @property
    def function_calls(self) -> list[FunctionCall]:
        """Every function call across all candidates."""
        calls: list[FunctionCall] = []
        for candidate in self.candidates or []:
            if candidate.content is None:
                continue
            calls.extend(p.function_call for p in candidate.content.parts if p.function_call)
        return calls


# =============================================================================
# Embedding and Token Types
# =============================================================================


@dataclass
class EmbedContentConfig:
    http_options: HttpOptions | None = None
    task_type: str | None = None
    title: str | None = None
    output_dimensionality: int | None = None
    mime_type: str | None = None
    auto_truncate: bool | None = None


@dataclass
class ContentEmbeddingStatistics:
    truncated: bool | None = None
    token_count: float | None = None


@dataclass
class ContentEmbedding:
    values: list[float] | None = None
    statistics: ContentEmbeddingStatistics | None = None


@dataclass
class EmbedContentMetadata:
    billable_character_count: int | None = None


@dataclass
class EmbedContentResponse:
    sdk_http_response: HttpResponse | None = None
    embeddings: list[ContentEmbedding] | None = None
    metadata: EmbedContentMetadata | None = None


@dataclass
class CountTokensConfig:
    http_options: HttpOptions | None = None
    system_instruction: Content | str | None = None
    tools: list[Tool] | None = None
    generation_config: GenerationConfig | None = None


@dataclass
class CountTokensResponse:
    """Token count for a request.

    When produced by a local estimator ``estimated`` is True and the count
    is advisory only.
    """

    sdk_http_response: HttpResponse | None = None
    total_tokens: int | None = None
    cached_content_token_count: int | None = None
    prompt_tokens_details: list[dict[str, Any]] | None = None
    estimated: bool = False


@dataclass
class ComputeTokensConfig:
    http_options: HttpOptions | None = None


@dataclass
class TokensInfo:
    role: str | None = None
    token_ids: list[int] | None = None
    tokens: list[bytes] | None = None


@dataclass
class ComputeTokensResponse:
    sdk_http_response: HttpResponse | None = None
    tokens_info: list[TokensInfo] | None = None


# =============================================================================
# Model Types
# =============================================================================


@dataclass
class Model:
    name: str | None = None
    base_model_id: str | None = None
    version: str | None = None
    display_name: str | None = None
    description: str | None = None
    input_token_limit: int | None = None
    output_token_limit: int | None = None
    supported_actions: list[str] | None = None
    supported_generation_methods: list[str] | None = None
    default_checkpoint_id: str | None = None
    labels: dict[str, str] | None = None
    temperature: float | None = None
    max_temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    thinking: bool | None = None


@dataclass
class ListModelsConfig:
    http_options: HttpOptions | None = None
    page_size: int | None = None
    page_token: str | None = None
    filter: str | None = None
    query_base: bool | None = None


@dataclass
class ListModelsResponse:
    sdk_http_response: HttpResponse | None = None
    next_page_token: str | None = None
    models: list[Model] | None = None


@dataclass
class UpdateModelConfig:
    http_options: HttpOptions | None = None
    display_name: str | None = None
    description: str | None = None
    default_checkpoint_id: str | None = None


@dataclass
class DeleteModelResponse:
    sdk_http_response: HttpResponse | None = None


# =============================================================================
# Image and Video Types
# =============================================================================


@dataclass
class Image:
    """An image given inline or by Cloud Storage URI.

    On the wire the bytes travel as ``bytesBase64Encoded``. The Gemini API
    does not accept ``gcs_uri``.
    """

    gcs_uri: str | None = None
    image_bytes: bytes | None = None
    mime_type: str | None = None


@dataclass
class Video:
    uri: str | None = None
    video_bytes: bytes | None = None
    mime_type: str | None = None


@dataclass
class SafetyAttributes:
    categories: list[str] | None = None
    scores: list[float] | None = None
    content_type: str | None = None


@dataclass
class GeneratedImage:
    image: Image | None = None
    rai_filtered_reason: str | None = None
    safety_attributes: SafetyAttributes | None = None
    enhanced_prompt: str | None = None


@dataclass
class GenerateImagesConfig:
    """Options for Imagen generation.

    ``output_gcs_uri``, ``negative_prompt``, ``seed``, ``add_watermark``,
    ``labels`` and ``enhance_prompt`` are only accepted by Vertex AI.
    """

    http_options: HttpOptions | None = None
    output_gcs_uri: str | None = None
    negative_prompt: str | None = None
    number_of_images: int | None = None
    aspect_ratio: str | None = None
    guidance_scale: float | None = None
    seed: int | None = None
    safety_filter_level: SafetyFilterLevel | None = None
    person_generation: PersonGeneration | None = None
    include_safety_attributes: bool | None = None
    include_rai_reason: bool | None = None
    language: ImagePromptLanguage | None = None
    output_mime_type: str | None = None
    output_compression_quality: int | None = None
    add_watermark: bool | None = None
    labels: dict[str, str] | None = None
    image_size: str | None = None
    enhance_prompt: bool | None = None


@dataclass
class GenerateImagesResponse:
    sdk_http_response: HttpResponse | None = None
    generated_images: list[GeneratedImage] = field(default_factory=list)
    positive_prompt_safety_attributes: SafetyAttributes | None = None


@dataclass
class MaskReferenceConfig:
    mask_mode: MaskReferenceMode | None = None
    segmentation_classes: list[int] | None = None
    mask_dilation: float | None = None


@dataclass
class ControlReferenceConfig:
    control_type: ControlReferenceType | None = None
    enable_control_image_computation: bool | None = None


@dataclass
class StyleReferenceConfig:
    style_description: str | None = None


@dataclass
class SubjectReferenceConfig:
    subject_type: SubjectReferenceType | None = None
    subject_description: str | None = None


@dataclass
class ReferenceImage:
    """An image an edit refers to, together with how it should be used."""

    reference_image: Image | None = None
    reference_id: int | None = None
    reference_type: ReferenceImageType | None = None
    mask_image_config: MaskReferenceConfig | None = None
    control_image_config: ControlReferenceConfig | None = None
    style_image_config: StyleReferenceConfig | None = None
    subject_image_config: SubjectReferenceConfig | None = None


@dataclass
class EditImageConfig:
    http_options: HttpOptions | None = None
    output_gcs_uri: str | None = None
    negative_prompt: str | None = None
    number_of_images: int | None = None
    aspect_ratio: str | None = None
    guidance_scale: float | None = None
    seed: int | None = None
    safety_filter_level: SafetyFilterLevel | None = None
    person_generation: PersonGeneration | None = None
    include_safety_attributes: bool | None = None
    include_rai_reason: bool | None = None
    language: ImagePromptLanguage | None = None
    output_mime_type: str | None = None
    output_compression_quality: int | None = None
    add_watermark: bool | None = None
    labels: dict[str, str] | None = None
    edit_mode: EditMode | None = None
    base_steps: int | None = None


@dataclass
class EditImageResponse:
    sdk_http_response: HttpResponse | None = None
    generated_images: list[GeneratedImage] = field(default_factory=list)


@dataclass
class UpscaleImageConfig:
    """Options for upscaling.

    ``mode`` defaults to ``upscale`` and ``number_of_images`` to 1.
    """

    http_options: HttpOptions | None = None
    output_gcs_uri: str | None = None
    safety_filter_level: SafetyFilterLevel | None = None
    person_generation: PersonGeneration | None = None
    include_rai_reason: bool | None = None
    output_mime_type: str | None = None
    output_compression_quality: int | None = None
    enhance_input_image: bool | None = None
    image_preservation_factor: float | None = None
    labels: dict[str, str] | None = None
    number_of_images: int | None = None
    mode: str | None = None


@dataclass
class UpscaleImageResponse:
    sdk_http_response: HttpResponse | None = None
    generated_images: list[GeneratedImage] = field(default_factory=list)


@dataclass
class ProductImage:
    product_image: Image | None = None


@dataclass
class RecontextImageSource:
    """Inputs of a recontext request: a prompt, a person and/or products."""

    prompt: str | None = None
    person_image: Image | None = None
    product_images: list[ProductImage] | None = None


@dataclass
class RecontextImageConfig:
    http_options: HttpOptions | None = None
    number_of_images: int | None = None
    base_steps: int | None = None
    output_gcs_uri: str | None = None
    seed: int | None = None
    safety_filter_level: SafetyFilterLevel | None = None
    person_generation: PersonGeneration | None = None
    add_watermark: bool | None = None
    output_mime_type: str | None = None
    output_compression_quality: int | None = None
    enhance_prompt: bool | None = None
    labels: dict[str, str] | None = None


@dataclass
class RecontextImageResponse:
    sdk_http_response: HttpResponse | None = None
    generated_images: list[GeneratedImage] = field(default_factory=list)


@dataclass
class ScribbleImage:
    image: Image | None = None


@dataclass
class SegmentImageSource:
    prompt: str | None = None
    image: Image | None = None
    scribble_image: ScribbleImage | None = None


@dataclass
class SegmentImageConfig:
    http_options: HttpOptions | None = None
    mode: SegmentMode | None = None
    max_predictions: int | None = None
    confidence_threshold: float | None = None
    mask_dilation: float | None = None
    binary_color_threshold: float | None = None
    labels: dict[str, str] | None = None


@dataclass
class EntityLabel:
    label: str | None = None
    score: float | None = None


@dataclass
class GeneratedImageMask:
    mask: Image | None = None
    labels: list[EntityLabel] | None = None


@dataclass
class SegmentImageResponse:
    sdk_http_response: HttpResponse | None = None
    generated_masks: list[GeneratedImageMask] = field(default_factory=list)


@dataclass
class GenerateVideosSource:
    """What a video is generated from. Any of the fields may be combined."""

    prompt: str | None = None
    image: Image | None = None
    video: Video | None = None


@dataclass
class VideoGenerationReferenceImage:
    image: Image | None = None
    reference_type: VideoGenerationReferenceType | None = None


@dataclass
class VideoGenerationMask:
    image: Image | None = None
    mask_mode: VideoGenerationMaskMode | None = None


@dataclass
class GenerateVideosConfig:
    """Options for Veo generation.

    ``output_gcs_uri``, ``fps``, ``seed``, ``pubsub_topic``,
    ``generate_audio``, ``compression_quality`` and ``mask`` are only
    accepted by Vertex AI.
    """

    http_options: HttpOptions | None = None
    number_of_videos: int | None = None
    output_gcs_uri: str | None = None
    fps: int | None = None
    duration_seconds: int | None = None
    seed: int | None = None
    aspect_ratio: str | None = None
    resolution: str | None = None
    person_generation: str | None = None
    pubsub_topic: str | None = None
    negative_prompt: str | None = None
    enhance_prompt: bool | None = None
    generate_audio: bool | None = None
    compression_quality: VideoCompressionQuality | None = None
    last_frame: Image | None = None
    reference_images: list[VideoGenerationReferenceImage] | None = None
    mask: VideoGenerationMask | None = None


@dataclass
class GeneratedVideo:
    video: Video | None = None


@dataclass
class GenerateVideosResponse:
    generated_videos: list[GeneratedVideo] = field(default_factory=list)
    rai_media_filtered_count: int | None = None
    rai_media_filtered_reasons: list[str] | None = None


@dataclass
class GenerateVideosOperation:
    """A video generation operation.

    Pass it to ``client.operations.wait`` to poll until the videos are
    ready.
    """

    name: str | None = None
    metadata: dict[str, Any] | None = None
    done: bool | None = None
    error: dict[str, Any] | None = None
    response: GenerateVideosResponse | None = None


# =============================================================================
# File Types
# =============================================================================


@dataclass
class File:
    name: str | None = None
    display_name: str | None = None
    mime_type: str | None = None
    size_bytes: int | None = None
    create_time: str | None = None
    update_time: str | None = None
    expiration_time: str | None = None
    sha256_hash: str | None = None
    uri: str | None = None
    download_uri: str | None = None
    state: FileState | None = None
    source: str | None = None
    video_metadata: dict[str, Any] | None = None
    error: dict[str, Any] | None = None


@dataclass
class UploadFileConfig:
    http_options: HttpOptions | None = None
    name: str | None = None
    mime_type: str | None = None
    display_name: str | None = None


@dataclass
class ListFilesConfig:
    http_options: HttpOptions | None = None
    page_size: int | None = None
    page_token: str | None = None


@dataclass
class ListFilesResponse:
    sdk_http_response: HttpResponse | None = None
    next_page_token: str | None = None
    files: list[File] | None = None


@dataclass
class DeleteFileResponse:
    sdk_http_response: HttpResponse | None = None


@dataclass
class RegisterFilesResponse:
    sdk_http_response: HttpResponse | None = None
    files: list[File] | None = None


# =============================================================================
# Cache Types
# =============================================================================


@dataclass
class CachedContent:
    name: str | None = None
    display_name: str | None = None
    model: str | None = None
    create_time: str | None = None
    update_time: str | None = None
    expire_time: str | None = None
    usage_metadata: dict[str, Any] | None = None


@dataclass
class CreateCachedContentConfig:
    """Options for caches.create.

    ``ttl`` is a duration string such as ``"3600s"``.
    """

    http_options: HttpOptions | None = None
    ttl: str | None = None
    expire_time: str | None = None
    display_name: str | None = None
    contents: list[Content] | None = None
    system_instruction: Content | str | None = None
    tools: list[Tool] | None = None
    tool_config: ToolConfig | None = None
    kms_key_name: str | None = None


@dataclass
class UpdateCachedContentConfig:
    http_options: HttpOptions | None = None
    ttl: str | None = None
    expire_time: str | None = None


@dataclass
class ListCachedContentsConfig:
    http_options: HttpOptions | None = None
    page_size: int | None = None
    page_token: str | None = None


@dataclass
class ListCachedContentsResponse:
    sdk_http_response: HttpResponse | None = None
    next_page_token: str | None = None
    cached_contents: list[CachedContent] | None = None


@dataclass
class DeleteCachedContentResponse:
    sdk_http_response: HttpResponse | None = None


# =============================================================================
# Batch Types
# =============================================================================


@dataclass
class JobError:
    code: int | None = None
    message: str | None = None
    details: list[Any] | None = None


@dataclass
class InlinedRequest:
    """One request of an inline batch."""

    contents: list[Content] = field(default_factory=list)
    model: str | None = None
    config: GenerateContentConfig | None = None
    metadata: dict[str, str] | None = None


@dataclass
class InlinedResponse:
    response: GenerateContentResponse | None = None
    error: JobError | None = None


@dataclass
class BatchJobSource:
    """Input of a batch job.

    Gemini takes ``file_name`` or ``inlined_requests``; Vertex AI takes
    ``gcs_uri`` or ``bigquery_uri`` with a ``format``.
    """

    format: str | None = None
    gcs_uri: list[str] | None = None
    bigquery_uri: str | None = None
    file_name: str | None = None
    inlined_requests: list[InlinedRequest] | None = None


@dataclass
class BatchJobDestination:
    format: str | None = None
    gcs_uri: str | None = None
    bigquery_uri: str | None = None
    file_name: str | None = None
    inlined_responses: list[InlinedResponse] | None = None


@dataclass
class BatchJob:
    name: str | None = None
    display_name: str | None = None
    state: JobState | None = None
    error: JobError | None = None
    create_time: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    update_time: str | None = None
    model: str | None = None
    src: BatchJobSource | None = None
    dest: BatchJobDestination | None = None


@dataclass
class CreateBatchJobConfig:
    http_options: HttpOptions | None = None
    display_name: str | None = None
    dest: BatchJobDestination | str | None = None


@dataclass
class ListBatchJobsConfig:
    http_options: HttpOptions | None = None
    page_size: int | None = None
    page_token: str | None = None
    filter: str | None = None


@dataclass
class ListBatchJobsResponse:
    sdk_http_response: HttpResponse | None = None
    next_page_token: str | None = None
    batch_jobs: list[BatchJob] | None = None


@dataclass
class DeleteResourceJob:
    sdk_http_response: HttpResponse | None = None
    name: str | None = None
    done: bool | None = None
    error: JobError | None = None


# =============================================================================
# Operation Types
# =============================================================================


@dataclass
class Operation:
    """A long-running operation."""

    name: str | None = None
    metadata: dict[str, Any] | None = None
    done: bool | None = None
    error: dict[str, Any] | None = None
    response: dict[str, Any] | None = None


@dataclass
class ListOperationsConfig:
    http_options: HttpOptions | None = None
    page_size: int | None = None
    page_token: str | None = None
    filter: str | None = None


@dataclass
class ListOperationsResponse:
    sdk_http_response: HttpResponse | None = None
    next_page_token: str | None = None
    operations: list[Operation] | None = None


# =============================================================================
# File Search Store Types
# =============================================================================


@dataclass
class FileSearchStore:
    name: str | None = None
    display_name: str | None = None
    create_time: str | None = None
    update_time: str | None = None
    active_documents_count: int | None = None
    pending_documents_count: int | None = None
    failed_documents_count: int | None = None
    size_bytes: int | None = None


@dataclass
class CreateFileSearchStoreConfig:
    http_options: HttpOptions | None = None
    display_name: str | None = None


@dataclass
class DeleteFileSearchStoreConfig:
    """``force`` also deletes the documents of a non-empty store."""

    http_options: HttpOptions | None = None
    force: bool | None = None


@dataclass
class ListFileSearchStoresConfig:
    http_options: HttpOptions | None = None
    page_size: int | None = None
    page_token: str | None = None


@dataclass
class ListFileSearchStoresResponse:
    sdk_http_response: HttpResponse | None = None
    next_page_token: str | None = None
    file_search_stores: list[FileSearchStore] | None = None


@dataclass
class WhiteSpaceConfig:
    max_tokens_per_chunk: int | None = None
    max_overlap_tokens: int | None = None


@dataclass
class ChunkingConfig:
    white_space_config: WhiteSpaceConfig | None = None


@dataclass
class StringList:
    values: list[str] = field(default_factory=list)


@dataclass
class CustomMetadata:
    """A key with exactly one of a numeric, string or string list value."""

    key: str | None = None
    numeric_value: float | None = None
    string_list_value: StringList | None = None
    string_value: str | None = None


@dataclass
class UploadToFileSearchStoreConfig:
    """Options for uploading a document. Raw bytes require ``mime_type``."""

    http_options: HttpOptions | None = None
    mime_type: str | None = None
    display_name: str | None = None
    custom_metadata: list[CustomMetadata] | None = None
    chunking_config: ChunkingConfig | None = None


@dataclass
class ImportFileConfig:
    http_options: HttpOptions | None = None
    custom_metadata: list[CustomMetadata] | None = None
    chunking_config: ChunkingConfig | None = None


@dataclass
class Document:
    name: str | None = None
    display_name: str | None = None
    state: DocumentState | None = None
    size_bytes: int | None = None
    mime_type: str | None = None
    create_time: str | None = None
    update_time: str | None = None
    custom_metadata: list[CustomMetadata] | None = None


@dataclass
class DeleteDocumentConfig:
    http_options: HttpOptions | None = None
    force: bool | None = None


@dataclass
class ListDocumentsConfig:
    http_options: HttpOptions | None = None
    page_size: int | None = None
    page_token: str | None = None


@dataclass
class ListDocumentsResponse:
    sdk_http_response: HttpResponse | None = None
    next_page_token: str | None = None
    documents: list[Document] | None = None


# =============================================================================
# Tuning Types
# =============================================================================


@dataclass
class TuningExample:
    text_input: str | None = None
    output: str | None = None


@dataclass
class TuningDataset:
    """Training data: inline examples (Gemini) or a dataset URI (Vertex AI)."""

    gcs_uri: str | None = None
    vertex_dataset_resource: str | None = None
    examples: list[TuningExample] | None = None


@dataclass
class TuningValidationDataset:
    gcs_uri: str | None = None
    vertex_dataset_resource: str | None = None


@dataclass
class CreateTuningJobConfig:
    http_options: HttpOptions | None = None
    method: TuningMethod | None = None
    validation_dataset: TuningValidationDataset | None = None
    tuned_model_display_name: str | None = None
    description: str | None = None
    epoch_count: int | None = None
    learning_rate_multiplier: float | None = None
    export_last_checkpoint_only: bool | None = None
    pre_tuned_model_checkpoint_id: str | None = None
    adapter_size: str | None = None
    batch_size: int | None = None
    learning_rate: float | None = None
    evaluation_config: dict[str, Any] | None = None
    labels: dict[str, str] | None = None
    beta: float | None = None


@dataclass
class TunedModel:
    model: str | None = None
    endpoint: str | None = None


@dataclass
class TuningJob:
    sdk_http_response: HttpResponse | None = None
    name: str | None = None
    state: JobState | None = None
    create_time: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    update_time: str | None = None
    error: JobError | None = None
    description: str | None = None
    base_model: str | None = None
    tuned_model: TunedModel | None = None
    tuned_model_display_name: str | None = None
    supervised_tuning_spec: dict[str, Any] | None = None
    preference_optimization_spec: dict[str, Any] | None = None
    tuning_data_stats: dict[str, Any] | None = None
    experiment: str | None = None
    labels: dict[str, str] | None = None

    @property
    def has_ended(self) -> bool:
        return self.state in JOB_STATES_ENDED


@dataclass
class ListTuningJobsConfig:
    http_options: HttpOptions | None = None
    page_size: int | None = None
    page_token: str | None = None
    filter: str | None = None


@dataclass
class ListTuningJobsResponse:
    sdk_http_response: HttpResponse | None = None
    next_page_token: str | None = None
    tuning_jobs: list[TuningJob] | None = None


# =============================================================================
# Live Types
# =============================================================================


@dataclass
class SessionResumptionConfig:
    handle: str | None = None
    transparent: bool | None = None


@dataclass
class LiveConnectConfig:
    """Setup for a live session.

    Sampling fields are folded into ``generationConfig`` of the setup
    message; the rest are sent as-is.
    """

    http_options: HttpOptions | None = None
    generation_config: GenerationConfig | None = None
    response_modalities: list[str] | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: float | None = None
    max_output_tokens: int | None = None
    seed: int | None = None
    speech_config: dict[str, Any] | None = None
    thinking_config: ThinkingConfig | None = None
    media_resolution: str | None = None
    system_instruction: Content | str | None = None
    tools: list[Tool] | None = None
    realtime_input_config: dict[str, Any] | None = None
    session_resumption: SessionResumptionConfig | None = None
    context_window_compression: dict[str, Any] | None = None
    input_audio_transcription: dict[str, Any] | None = None
    output_audio_transcription: dict[str, Any] | None = None
    proactivity: dict[str, Any] | None = None
    explicit_vad_signal: bool | None = None


@dataclass
class LiveServerContent:
    model_turn: Content | None = None
    turn_complete: bool | None = None
    interrupted: bool | None = None
    generation_complete: bool | None = None
    input_transcription: dict[str, Any] | None = None
    output_transcription: dict[str, Any] | None = None


@dataclass
class LiveServerToolCall:
    function_calls: list[FunctionCall] | None = None


@dataclass
class LiveServerToolCallCancellation:
    ids: list[str] | None = None


@dataclass
class LiveServerSessionResumptionUpdate:
    new_handle: str | None = None
    resumable: bool | None = None
    last_consumed_client_message_index: int | None = None


@dataclass
class LiveServerGoAway:
    time_left: str | None = None


@dataclass
class LiveServerSetupComplete:
    session_id: str | None = None


@dataclass
class LiveServerMessage:
    """One message received on a live session."""

    setup_complete: LiveServerSetupComplete | None = None
    server_content: LiveServerContent | None = None
    tool_call: LiveServerToolCall | None = None
    tool_call_cancellation: LiveServerToolCallCancellation | None = None
    usage_metadata: UsageMetadata | None = None
    go_away: LiveServerGoAway | None = None
    session_resumption_update: LiveServerSessionResumptionUpdate | None = None

    @property
    def text(self) -> str | None:
        if self.server_content is None or self.server_content.model_turn is None:
            return None
        return self.server_content.model_turn.text


@dataclass
class LiveConnectConstraints:
    """Constraints baked into an ephemeral token."""

    model: str | None = None
    config: LiveConnectConfig | None = None


@dataclass
class CreateAuthTokenConfig:
    http_options: HttpOptions | None = None
    expire_time: str | None = None
    new_session_expire_time: str | None = None
    uses: int | None = None
    live_connect_constraints: LiveConnectConstraints | None = None
    lock_additional_fields: list[str] | None = None


@dataclass
class AuthToken:
    name: str | None = None


# =============================================================================
# Client Options
# =============================================================================


class ClientOptions(TypedDict, total=False):
    """Options for creating a Client."""

    api_key: str  # Gemini API key
    backend: Backend  # Inferred from project/location when omitted
    project: str  # Vertex AI project
    location: str  # Vertex AI location
    credentials: Any  # An auth.AuthProvider
    http_options: HttpOptions  # Defaults for every request
    timeout: float  # Request timeout in seconds
    proxy: str
    scopes: list[str]  # Replaces the default OAuth scopes
    headers: dict[str, str]


# =============================================================================
# Chat Types
# =============================================================================


class ChatMetadata(TypedDict):
    """Metadata about a chat session."""

    chat_id: str
    model: str
    start_time: str
    modified_time: str
    turns: NotRequired[int]


@dataclass
class ChatEvent:
    """An event emitted by a chat session."""

    type: EventType
    data: Any
    chat_id: str | None = None


ChatEventHandler = Callable[[ChatEvent], None]

ContentInput = str | Part | Content | list[Any]

# =============================================================================
# Constants
# =============================================================================

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/"
VERTEX_GLOBAL_BASE_URL = "https://aiplatform.googleapis.com/"
GEMINI_API_VERSION = "v1beta"
VERTEX_API_VERSION = "v1beta1"

VERTEX_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]
GEMINI_SCOPES = [
    "https://www.googleapis.com/auth/generative-language",
    "https://www.googleapis.com/auth/generative-language.retriever",
]

JOB_STATES_ENDED = frozenset(
    {
        JobState.JOB_STATE_SUCCEEDED,
        JobState.JOB_STATE_FAILED,
        JobState.JOB_STATE_CANCELLED,
        JobState.JOB_STATE_EXPIRED,
        JobState.JOB_STATE_PARTIALLY_SUCCEEDED,
    }
)

HTTP_OK = 200
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
