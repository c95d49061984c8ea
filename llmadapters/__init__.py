"""llmadapters - one request/response contract for many LLM backends.

Build a conversation once, name a model by path, get the same response
shape whichever backend serves it. Conversations are normalized to each
model's capabilities before anything is sent, and every call is costed.

Example:
    >>> from llmadapters import (
    ...     AdapterRegistry, BasicTurn, Conversation, Executor, Role, load_catalog,
    ... )
    >>> from llmadapters.adapters import register_default_adapters
    >>>
    >>> registry = AdapterRegistry()
    >>> register_default_adapters(registry)
    >>> registry.populate(load_catalog("api.json"))
    >>>
    >>> conversation = Conversation([BasicTurn(Role.USER, "Hello")])
    >>> response = Executor(registry).execute("openai/openai/gpt-4o-mini", conversation)
    >>> response.content, response.cost
"""

from llmadapters.capabilities import Model, ModelCapabilities, ModelFilter, ModelProperties
from llmadapters.catalog import Catalog, load_catalog
from llmadapters.config import AdapterConfig
from llmadapters.conversation import (
    BasicTurn,
    Conversation,
    FunctionInvocationTurn,
    FunctionResultTurn,
    ImagePart,
    MultiModalTurn,
    Role,
    TextPart,
    ToolCall,
    ToolInvocationTurn,
    ToolResultTurn,
)
from llmadapters.cost import Cost, PricingTier, TokenUsage, calculate_cost
from llmadapters.credentials import EnvCredentials, StaticCredentials
from llmadapters.errors import (
    AdapterError,
    InvalidConversationError,
    ModelNotFoundError,
    ProviderUnavailableError,
    RateLimitedError,
    TransportError,
    UnsupportedFeatureError,
)
from llmadapters.executor import CallState, Executor, execute, execute_stream
from llmadapters.normalization import EMPTY_CONTENT, normalize
from llmadapters.options import ExecuteOptions, ResponseFormat
from llmadapters.registry import AdapterRegistry, get_default_registry
from llmadapters.response import ChatCompletion, ChatCompletionChunk, StreamAccumulator

__version__ = "0.1.0"

__all__ = [
    # Conversation
    "Conversation",
    "Role",
    "BasicTurn",
    "MultiModalTurn",
    "TextPart",
    "ImagePart",
    "ToolCall",
    "ToolInvocationTurn",
    "ToolResultTurn",
    "FunctionInvocationTurn",
    "FunctionResultTurn",
    # Models
    "Model",
    "ModelCapabilities",
    "ModelProperties",
    "ModelFilter",
    "Catalog",
    "load_catalog",
    # Cost
    "Cost",
    "PricingTier",
    "TokenUsage",
    "calculate_cost",
    # Pipeline
    "normalize",
    "EMPTY_CONTENT",
    "ExecuteOptions",
    "ResponseFormat",
    # Registry and execution
    "AdapterRegistry",
    "get_default_registry",
    "Executor",
    "CallState",
    "execute",
    "execute_stream",
    "ChatCompletion",
    "ChatCompletionChunk",
    "StreamAccumulator",
    # Config
    "AdapterConfig",
    "EnvCredentials",
    "StaticCredentials",
    # Errors
    "AdapterError",
    "ModelNotFoundError",
    "ProviderUnavailableError",
    "UnsupportedFeatureError",
    "InvalidConversationError",
    "TransportError",
    "RateLimitedError",
    # Version
    "__version__",
]


# Lazy import for OpenAIAdapter to keep the openai client off the import path
def __getattr__(name: str):
    if name == "OpenAIAdapter":
        from llmadapters.adapters.openai import OpenAIAdapter
        return OpenAIAdapter
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
