"""
GenAI SDK - An async Python SDK for the Gemini API and Vertex AI.

One client covers content generation (plain, streaming and with automatic
function calling), chats, embeddings, token counting, Imagen and Veo media
generation, files, file search stores, cached contents, batch and tuning
jobs, long-running operations, and Live API websocket sessions.

Example:
    >>> from genaisdk import Client, define_tool
    >>>
    >>> @define_tool(description="Get current weather for a location")
    ... def get_weather(city: str) -> str:
    ...     return f"Sunny in {city}"
    >>>
    >>> async def main():
    ...     async with Client({"api_key": "..."}) as client:
    ...         response = await client.models.generate_content(
    ...             "gemini-2.5-flash",
    ...             "What's the weather in Paris?",
    ...             callable_tools=[get_weather],
    ...         )
    ...         print(response.text)
    ...
    >>> import asyncio
    >>> asyncio.run(main())
"""

__version__ = "0.1.0"
__author__ = "OEvortex"

# Authentication
from .auth import ApplicationDefaultProvider, AuthProvider, OAuthTokenProvider

# Client
from .client import Client

# Chats
from .chats import Chat

# Exceptions
from .exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    ConnectionError,
    CredentialsNotFoundError,
    GenAISDKError,
    LiveSessionError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    SerializationError,
    SessionClosedError,
    StreamError,
    ThoughtSignatureError,
    TimeoutError,
    TokenRefreshError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ValidationError,
)

# Live
from .live import LiveSession

# MCP
from .mcp import McpCallableTool, mcp_to_tool

# Tokens
from .tokenizer import SimpleTokenEstimator, TokenEstimator

# Tools
from .tools import (
    CallableTool,
    FunctionTool,
    InlineCallableTool,
    ToolRegistry,
    create_tool,
    define_tool,
)

# Types
from .types import (
    # Enums
    Backend,
    # Batches
    BatchJob,
    BatchJobDestination,
    BatchJobSource,
    # Content
    Blob,
    # Caches
    CachedContent,
    # Chats
    ChatEvent,
    ChatMetadata,
    ClientOptions,
    Content,
    CreateAuthTokenConfig,
    CreateBatchJobConfig,
    CreateCachedContentConfig,
    CreateFileSearchStoreConfig,
    CreateTuningJobConfig,
    Document,
    EditImageConfig,
    EmbedContentConfig,
    EventType,
    File,
    FileData,
    # File search
    FileSearchStore,
    FileState,
    FunctionCall,
    FunctionDeclaration,
    FunctionResponse,
    # Generation
    GenerateContentConfig,
    GenerateContentResponse,
    GenerationConfig,
    # Images and videos
    GenerateImagesConfig,
    GenerateImagesResponse,
    GenerateVideosConfig,
    GenerateVideosOperation,
    GenerateVideosSource,
    # HTTP
    HttpOptions,
    HttpRetryOptions,
    Image,
    ImportFileConfig,
    JobState,
    # Live
    LiveConnectConfig,
    LiveConnectConstraints,
    LiveServerMessage,
    Operation,
    Part,
    RecontextImageSource,
    ReferenceImage,
    Role,
    SegmentImageSource,
    ThinkingConfig,
    Tool,
    ToolConfig,
    # Tunings
    TuningDataset,
    TuningExample,
    TuningJob,
    UploadFileConfig,
    UploadToFileSearchStoreConfig,
    UpscaleImageConfig,
    Video,
)

__all__ = [
    # Version
    "__version__",
    # Client
    "Client",
    "Chat",
    "LiveSession",
    # Authentication
    "AuthProvider",
    "OAuthTokenProvider",
    "ApplicationDefaultProvider",
    # Tools
    "CallableTool",
    "FunctionTool",
    "InlineCallableTool",
    "ToolRegistry",
    "create_tool",
    "define_tool",
    "McpCallableTool",
    "mcp_to_tool",
    # Token estimation
    "TokenEstimator",
    "SimpleTokenEstimator",
    # Types - Enums
    "Backend",
    "Role",
    "FileState",
    "JobState",
    "EventType",
    # Types - Content
    "Blob",
    "Content",
    "FileData",
    "FunctionCall",
    "FunctionDeclaration",
    "FunctionResponse",
    "Part",
    "Tool",
    "ToolConfig",
    # Types - Generation
    "GenerateContentConfig",
    "GenerateContentResponse",
    "GenerationConfig",
    "ThinkingConfig",
    "EmbedContentConfig",
    # Types - HTTP
    "ClientOptions",
    "HttpOptions",
    "HttpRetryOptions",
    # Types - Chats
    "ChatEvent",
    "ChatMetadata",
    # Types - Resources
    "File",
    "UploadFileConfig",
    "CachedContent",
    "CreateCachedContentConfig",
    "BatchJob",
    "BatchJobSource",
    "BatchJobDestination",
    "CreateBatchJobConfig",
    "Operation",
    "TuningJob",
    "TuningDataset",
    "TuningExample",
    "CreateTuningJobConfig",
    "FileSearchStore",
    "CreateFileSearchStoreConfig",
    "UploadToFileSearchStoreConfig",
    "ImportFileConfig",
    "Document",
    # Types - Images and videos
    "Image",
    "Video",
    "ReferenceImage",
    "GenerateImagesConfig",
    "GenerateImagesResponse",
    "EditImageConfig",
    "UpscaleImageConfig",
    "RecontextImageSource",
    "SegmentImageSource",
    "GenerateVideosSource",
    "GenerateVideosConfig",
    "GenerateVideosOperation",
    # Types - Live
    "LiveConnectConfig",
    "LiveConnectConstraints",
    "LiveServerMessage",
    "CreateAuthTokenConfig",
    # Exceptions
    "GenAISDKError",
    "ConfigurationError",
    "ValidationError",
    "ThoughtSignatureError",
    "AuthenticationError",
    "CredentialsNotFoundError",
    "TokenRefreshError",
    "ConnectionError",
    "APIError",
    "RateLimitError",
    "PermissionDeniedError",
    "NotFoundError",
    "StreamError",
    "SerializationError",
    "ToolError",
    "ToolNotFoundError",
    "ToolExecutionError",
    "LiveSessionError",
    "SessionClosedError",
    "TimeoutError",
]
