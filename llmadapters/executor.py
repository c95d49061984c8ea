"""Execution orchestrator.

One-shot calls move through

    IDLE -> RESOLVING -> NORMALIZING -> INVOKING -> ACCOUNTING -> DONE

and to FAILED from any state on error. Streaming calls share the path up
to INVOKING; the chunk generator then runs ACCOUNTING once, on the
terminal event. Nothing reaches an adapter unless resolving and
normalizing succeeded.
"""

import logging
import time
import uuid
from contextlib import closing
from enum import Enum
from typing import Callable, Iterable, Iterator

from llmadapters.adapters.base import Adapter
from llmadapters.capabilities import Model
from llmadapters.conversation import Conversation, Role
from llmadapters.cost import calculate_cost
from llmadapters.credentials import CredentialProvider, EnvCredentials
from llmadapters.errors import AdapterError, classify_adapter_error
from llmadapters.normalization import normalize
from llmadapters.options import ExecuteOptions
from llmadapters.registry import AdapterRegistry, get_default_registry
from llmadapters.response import (
    AdapterResponse,
    ChatCompletion,
    ChatCompletionChunk,
    Choice,
    ChunkChoice,
    Delta,
    Message,
    StreamAccumulator,
    StreamEvent,
    accumulate,
)

logger = logging.getLogger(__name__)


class CallState(Enum):
    """States of a single call."""
    IDLE = "idle"
    RESOLVING = "resolving"
    NORMALIZING = "normalizing"
    INVOKING = "invoking"
    ACCOUNTING = "accounting"
    DONE = "done"
    FAILED = "failed"


StateCallback = Callable[[CallState], None]


class Executor:
    """Runs calls against models of a registry.

    Example:
        >>> executor = Executor(registry)
        >>> response = executor.execute("openai/openai/gpt-4o-mini", conversation)
        >>> response.content, response.cost
    """

    def __init__(
        self,
        registry: AdapterRegistry | None = None,
        credentials: CredentialProvider | None = None,
        on_state: StateCallback | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            registry: Registry to resolve models from. Uses the default
                      registry if None.
            credentials: Source of API keys. Uses EnvCredentials if None.
            on_state: Optional callback receiving every state transition.
        """
        self._registry = registry or get_default_registry()
        self._credentials = credentials or EnvCredentials()
        self._on_state = on_state

    @property
    def registry(self) -> AdapterRegistry:
        return self._registry

    def _enter(self, state: CallState, path: str) -> None:
        logger.debug("%s: %s", path, state.value)
        if self._on_state:
            self._on_state(state)

    def _prepare(
        self,
        path: str,
        conversation: Conversation,
        options: ExecuteOptions | None,
        stream: bool,
    ) -> tuple[Adapter, Conversation, ExecuteOptions]:
        self._enter(CallState.RESOLVING, path)
        model, constructor = self._registry.resolve(path)

        self._enter(CallState.NORMALIZING, path)
        normalized, validated = normalize(conversation, model, options, stream=stream)

        try:
            adapter = constructor(model)
            key = self._credentials.get_api_key(model.provider_name)
            if key:
                adapter.set_credential(key)
        except Exception as exc:
            raise classify_adapter_error(exc) from exc
        return adapter, normalized, validated

    def execute(
        self,
        path: str,
        conversation: Conversation,
        options: ExecuteOptions | None = None,
    ) -> ChatCompletion:
        """Run a one-shot call.

        Args:
            path: Model path (``provider/vendor/name`` or bare name).
            conversation: Conversation to send; not modified.
            options: Requested options.

        Returns:
            The unified completion, including its cost.

        Raises:
            AdapterError: Any error of the taxonomy.
        """
        self._enter(CallState.IDLE, path)
        try:
            adapter, normalized, validated = self._prepare(path, conversation, options, stream=False)

            self._enter(CallState.INVOKING, path)
            try:
                result = adapter.invoke(normalized, validated)
            except Exception as exc:
                raise classify_adapter_error(exc) from exc

            self._enter(CallState.ACCOUNTING, path)
            completion = self._build_completion(adapter.model, result)
        except AdapterError:
            self._enter(CallState.FAILED, path)
            raise
        self._enter(CallState.DONE, path)
        return completion

    def execute_stream(
        self,
        path: str,
        conversation: Conversation,
        options: ExecuteOptions | None = None,
    ) -> Iterator[ChatCompletionChunk]:
        """Start a streamed call.

        Resolution and normalization happen eagerly, so errors there are
        raised from this call. The returned iterator yields chunks; the
        last one carries usage and cost. Closing it early closes the
        adapter's stream.

        Raises:
            AdapterError: Resolution or normalization failures.
        """
        self._enter(CallState.IDLE, path)
        try:
            adapter, normalized, validated = self._prepare(path, conversation, options, stream=True)
        except AdapterError:
            self._enter(CallState.FAILED, path)
            raise
        return self._stream_chunks(path, adapter, normalized, validated)

    def _stream_chunks(
        self,
        path: str,
        adapter: Adapter,
        conversation: Conversation,
        options: ExecuteOptions,
    ) -> Iterator[ChatCompletionChunk]:
        model = adapter.model
        completion_id = f"chatcmpl-{uuid.uuid4().hex}"
        created = int(time.time())
        state = StreamAccumulator()
        finished = False

        self._enter(CallState.INVOKING, path)
        try:
            with closing(_as_generator(adapter.invoke_stream(conversation, options))) as events:
                for event in events:
                    state = accumulate(state, event)
                    usage = cost = None
                    if event.is_terminal:
                        self._enter(CallState.ACCOUNTING, path)
                        usage = event.usage
                        cost = calculate_cost(model.cost, usage)
                    yield ChatCompletionChunk(
                        id=event.id or completion_id,
                        created=created,
                        model=model.path,
                        choices=(
                            ChunkChoice(
                                index=0,
                                delta=Delta(
                                    role=Role.ASSISTANT if state.chunks == 1 else None,
                                    content=event.content,
                                    tool_calls=event.tool_calls,
                                ),
                                finish_reason=event.finish_reason,
                            ),
                        ),
                        accumulator=state,
                        usage=usage,
                        cost=cost,
                    )
                    if event.is_terminal:
                        finished = True
                        break
        except GeneratorExit:
            logger.debug("%s: stream closed by consumer after %d chunks", path, state.chunks)
            raise
        except AdapterError:
            self._enter(CallState.FAILED, path)
            raise
        except Exception as exc:
            self._enter(CallState.FAILED, path)
            raise classify_adapter_error(exc) from exc
        if finished:
            self._enter(CallState.DONE, path)
        else:
            logger.warning("%s: stream ended without usage; cost not computed", path)

    def _build_completion(self, model: Model, result: AdapterResponse) -> ChatCompletion:
        cost = calculate_cost(model.cost, result.usage)
        message = Message(role=Role.ASSISTANT, content=result.content, tool_calls=tuple(result.tool_calls))
        return ChatCompletion(
            id=result.id or f"chatcmpl-{uuid.uuid4().hex}",
            created=int(time.time()),
            model=model.path,
            choices=(Choice(index=0, message=message, finish_reason=result.finish_reason),),
            usage=result.usage,
            cost=cost,
        )


def _as_generator(events: Iterable[StreamEvent]) -> Iterator[StreamEvent]:
    """Wrap any iterable so ``close()`` reaches the adapter's iterator."""
    iterator = iter(events)
    try:
        yield from iterator
    finally:
        close = getattr(iterator, "close", None)
        if close is not None:
            close()


def execute(path: str, conversation: Conversation, options: ExecuteOptions | None = None) -> ChatCompletion:
    """One-shot call through the default registry."""
    return Executor().execute(path, conversation, options)


def execute_stream(
    path: str, conversation: Conversation, options: ExecuteOptions | None = None
) -> Iterator[ChatCompletionChunk]:
    """Streamed call through the default registry."""
    return Executor().execute_stream(path, conversation, options)
