"""OpenAI-compatible adapter.

Serves OpenAI itself and every provider in PROVIDER_DEFAULTS that exposes
an OpenAI-compatible endpoint.
"""

import hashlib
import logging
import threading
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any, Iterator

import httpx
import openai

from llmadapters.capabilities import Model
from llmadapters.config import AdapterConfig
from llmadapters.conversation import (
    BasicTurn,
    Conversation,
    FunctionInvocationTurn,
    FunctionResultTurn,
    ImagePart,
    MultiModalTurn,
    TextPart,
    ToolCall,
    ToolInvocationTurn,
    ToolResultTurn,
    Turn,
)
from llmadapters.cost import TokenUsage
from llmadapters.defaults import PROVIDER_DEFAULTS, defaults_for_provider
from llmadapters.errors import CredentialNotFoundError, RateLimitedError, TransportError
from llmadapters.options import ExecuteOptions
from llmadapters.response import AdapterResponse, StreamEvent, ToolCallDelta
from llmadapters.token_counter import estimate_usage
from llmadapters.utils import delete_none_values

if TYPE_CHECKING:
    from llmadapters.registry import AdapterRegistry

logger = logging.getLogger(__name__)

# (base_url, sha256(api_key)) -> client; clients are shared across adapters.
_CLIENT_CACHE: dict[tuple[str, str], openai.OpenAI] = {}
_CLIENT_CACHE_LOCK = threading.Lock()


def _get_client(base_url: str, api_key: str, config: AdapterConfig) -> openai.OpenAI:
    key = (base_url, hashlib.sha256(api_key.encode("utf-8")).hexdigest())
    with _CLIENT_CACHE_LOCK:
        client = _CLIENT_CACHE.get(key)
        if client is None:
            client = openai.OpenAI(
                api_key=api_key,
                base_url=base_url,
                timeout=httpx.Timeout(config.http_timeout, connect=config.http_connect_timeout),
                max_retries=0,
                http_client=openai.DefaultHttpxClient(
                    limits=httpx.Limits(
                        max_connections=config.max_connections,
                        max_keepalive_connections=config.max_keepalive_connections,
                    ),
                ),
            )
            _CLIENT_CACHE[key] = client
        return client


def clear_client_cache() -> None:
    """Drop all cached clients."""
    with _CLIENT_CACHE_LOCK:
        _CLIENT_CACHE.clear()


def _get_field(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _extract_usage(usage_obj: Any) -> TokenUsage | None:
    """Convert provider usage, moving reasoning tokens out of completion tokens."""
    if not usage_obj:
        return None
    prompt = int(_get_field(usage_obj, "prompt_tokens") or 0)
    completion = int(_get_field(usage_obj, "completion_tokens") or 0)
    total = _get_field(usage_obj, "total_tokens")
    reasoning = 0
    details = _get_field(usage_obj, "completion_tokens_details")
    if details:
        reasoning = int(_get_field(details, "reasoning_tokens") or 0)
    reasoning = min(reasoning, completion)
    return TokenUsage(
        prompt_tokens=prompt,
        completion_tokens=completion - reasoning,
        total_tokens=int(total) if total is not None else None,
        reasoning_tokens=reasoning,
    )


def parse_retry_after(value: str | None) -> float | None:
    """Seconds to wait from a ``Retry-After`` header.

    The header is either delay-seconds or an HTTP date. Dates in the past
    give 0; anything unparseable gives None.
    """
    if not value or not value.strip():
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def turn_to_message(turn: Turn) -> dict[str, Any]:
    """Render one turn as an OpenAI chat message."""
    if isinstance(turn, BasicTurn):
        return {"role": turn.role.value, "content": turn.text}
    if isinstance(turn, MultiModalTurn):
        content = []
        for part in turn.parts:
            if isinstance(part, TextPart):
                content.append({"type": "text", "text": part.text})
            elif isinstance(part, ImagePart):
                content.append({"type": "image_url", "image_url": {"url": part.url, "detail": part.detail}})
        return {"role": turn.role.value, "content": content}
    if isinstance(turn, ToolInvocationTurn):
        return {
            "role": "assistant",
            "content": turn.text,
            "tool_calls": [
                {"id": call.id, "type": call.type, "function": {"name": call.name, "arguments": call.arguments}}
                for call in turn.calls
            ],
        }
    if isinstance(turn, ToolResultTurn):
        return {"role": "tool", "tool_call_id": turn.call_id, "content": turn.text}
    if isinstance(turn, FunctionInvocationTurn):
        return {"role": "assistant", "content": None, "function_call": {"name": turn.name, "arguments": turn.arguments}}
    if isinstance(turn, FunctionResultTurn):
        return {"role": "function", "content": turn.text}
    raise TypeError(f"unsupported turn type: {type(turn).__name__}")


def conversation_to_messages(conversation: Conversation) -> list[dict[str, Any]]:
    return [delete_none_values(turn_to_message(turn)) for turn in conversation]


class OpenAIAdapter:
    """Adapter for OpenAI-compatible chat completions endpoints.

    Example:
        >>> adapter = OpenAIAdapter(registry.get_model("openai/openai/gpt-4o-mini"))
        >>> adapter.set_credential(os.environ["OPENAI_API_KEY"])
        >>> adapter.invoke(conversation, ExecuteOptions(max_tokens=100))
    """

    def __init__(
        self,
        model: Model,
        client: "openai.OpenAI | None" = None,
        config: AdapterConfig | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            model: Model to serve.
            client: Pre-built client. When given it is always used and
                    set_credential only records the key.
            config: HTTP settings. Read from the environment if None.
        """
        self._model = model
        self._config = config or AdapterConfig.from_env()
        self._client = client
        self._client_injected = client is not None
        self._api_key: str | None = None

    @property
    def model(self) -> Model:
        return self._model

    @property
    def base_url(self) -> str:
        if self._config.override_base_url:
            return self._config.override_base_url
        base_url = defaults_for_provider(self._model.provider_name).base_url
        return base_url or PROVIDER_DEFAULTS["openai"].base_url

    def set_credential(self, key: str) -> None:
        self._api_key = key
        if not self._client_injected:
            self._client = None

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            if not self._api_key:
                raise CredentialNotFoundError(self._model.provider_name)
            self._client = _get_client(self.base_url, self._api_key, self._config)
        return self._client

    def _build_kwargs(self, conversation: Conversation, options: ExecuteOptions) -> dict[str, Any]:
        kwargs = options.to_dict()
        kwargs["model"] = self._model.name
        kwargs["messages"] = conversation_to_messages(conversation)
        return kwargs

    def _call(self, **kwargs: Any) -> Any:
        try:
            return self._get_client().chat.completions.create(**kwargs)
        except openai.RateLimitError as exc:
            header = exc.response.headers.get("retry-after") if exc.response is not None else None
            raise RateLimitedError(str(exc), retry_after=parse_retry_after(header)) from exc
        except openai.OpenAIError as exc:
            raise TransportError(exc) from exc

    def invoke(self, conversation: Conversation, options: ExecuteOptions) -> AdapterResponse:
        response = self._call(**self._build_kwargs(conversation, options))

        choice = response.choices[0]
        message = choice.message
        tool_calls = tuple(
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "")
            for tc in (message.tool_calls or ())
        )

        usage = _extract_usage(getattr(response, "usage", None))
        if usage is None:
            logger.warning("%s returned no usage; estimating locally", self._model.path)
            usage = estimate_usage(conversation, message.content or "", self._model.name)

        return AdapterResponse(
            content=message.content,
            usage=usage,
            finish_reason=choice.finish_reason,
            tool_calls=tool_calls,
            id=getattr(response, "id", None),
            raw=response,
        )

    def invoke_stream(self, conversation: Conversation, options: ExecuteOptions) -> Iterator[StreamEvent]:
        kwargs = self._build_kwargs(conversation, options)
        kwargs["stream"] = True
        kwargs["stream_options"] = {"include_usage": True}
        stream = self._call(**kwargs)

        usage: TokenUsage | None = None
        content = ""
        completion_id = None
        try:
            for chunk in stream:
                completion_id = completion_id or getattr(chunk, "id", None)
                chunk_usage = _extract_usage(getattr(chunk, "usage", None))
                if chunk_usage is not None:
                    usage = chunk_usage
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                text = getattr(delta, "content", None)
                content += text or ""
                tool_deltas = tuple(
                    ToolCallDelta(
                        index=tc.index,
                        id=tc.id,
                        name=tc.function.name if tc.function else None,
                        arguments=(tc.function.arguments or "") if tc.function else "",
                    )
                    for tc in (getattr(delta, "tool_calls", None) or ())
                )
                yield StreamEvent(
                    content=text,
                    tool_calls=tool_deltas,
                    finish_reason=choice.finish_reason,
                    id=completion_id,
                )
        except openai.OpenAIError as exc:
            raise TransportError(exc) from exc
        finally:
            stream.close()

        if usage is None:
            logger.warning("%s stream reported no usage; estimating locally", self._model.path)
            usage = estimate_usage(conversation, content, self._model.name)
        yield StreamEvent(usage=usage, id=completion_id)


def register(registry: "AdapterRegistry") -> None:
    """Register OpenAIAdapter for OpenAI and every OpenAI-compatible provider."""
    registry.register_adapter("openai", OpenAIAdapter)
    for provider_id, defaults in PROVIDER_DEFAULTS.items():
        if defaults.base_url:
            registry.register_adapter(provider_id, OpenAIAdapter)
