"""Unified response shapes and the streaming accumulator.

Adapters return AdapterResponse (one-shot) or a sequence of StreamEvent
(streaming). The executor turns those into ChatCompletion and
ChatCompletionChunk, which look the same whichever backend served them.
"""

from dataclasses import dataclass, field, replace
from typing import Any

from llmadapters.conversation import Role, ToolCall
from llmadapters.cost import TokenUsage


@dataclass(frozen=True)
class AdapterResponse:
    """What an adapter returns for a one-shot call."""
    content: str | None
    usage: TokenUsage
    finish_reason: str | None = "stop"
    tool_calls: tuple[ToolCall, ...] = ()
    id: str | None = None
    raw: Any = None


@dataclass(frozen=True)
class ToolCallDelta:
    """Fragment of a tool call; ``arguments`` may be a partial JSON string."""
    index: int
    id: str | None = None
    name: str | None = None
    arguments: str = ""


@dataclass(frozen=True)
class StreamEvent:
    """One streamed item from an adapter.

    The terminal sentinel is the event carrying ``usage``.
    """

    content: str | None = None
    tool_calls: tuple[ToolCallDelta, ...] = ()
    finish_reason: str | None = None
    usage: TokenUsage | None = None
    id: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.usage is not None


@dataclass(frozen=True)
class StreamAccumulator:
    """State threaded from one chunk to the next.

    Attributes:
        content: Concatenated content deltas so far.
        tool_calls: Tool-call fragments reassembled by index.
        finish_reason: Last finish reason seen.
        usage: Final usage, once the terminal event arrives.
        chunks: Number of events applied.
    """

    content: str = ""
    tool_calls: tuple[ToolCallDelta, ...] = ()
    finish_reason: str | None = None
    usage: TokenUsage | None = None
    chunks: int = 0

    def completed_tool_calls(self) -> tuple[ToolCall, ...]:
        return tuple(
            ToolCall(id=fragment.id or f"call_{fragment.index}", name=fragment.name or "", arguments=fragment.arguments)
            for fragment in self.tool_calls
        )


def _merge_tool_fragments(
    existing: tuple[ToolCallDelta, ...], deltas: tuple[ToolCallDelta, ...]
) -> tuple[ToolCallDelta, ...]:
    by_index = {fragment.index: fragment for fragment in existing}
    for delta in deltas:
        current = by_index.get(delta.index)
        if current is None:
            by_index[delta.index] = delta
            continue
        by_index[delta.index] = ToolCallDelta(
            index=delta.index,
            id=current.id or delta.id,
            name=current.name or delta.name,
            arguments=current.arguments + delta.arguments,
        )
    return tuple(by_index[index] for index in sorted(by_index))


def accumulate(state: StreamAccumulator, event: StreamEvent) -> StreamAccumulator:
    """Apply one stream event to the accumulator and return the new state."""
    return replace(
        state,
        content=state.content + (event.content or ""),
        tool_calls=_merge_tool_fragments(state.tool_calls, event.tool_calls) if event.tool_calls else state.tool_calls,
        finish_reason=event.finish_reason or state.finish_reason,
        usage=event.usage or state.usage,
        chunks=state.chunks + 1,
    )


@dataclass(frozen=True)
class Message:
    role: Role
    content: str | None
    tool_calls: tuple[ToolCall, ...] = ()


@dataclass(frozen=True)
class Choice:
    index: int
    message: Message
    finish_reason: str | None


@dataclass(frozen=True)
class ChatCompletion:
    """Unified one-shot response."""

    id: str
    created: int
    model: str
    choices: tuple[Choice, ...]
    usage: TokenUsage | None
    cost: float
    object: str = "chat.completion"

    @property
    def content(self) -> str | None:
        return self.choices[0].message.content if self.choices else None


@dataclass(frozen=True)
class Delta:
    role: Role | None = None
    content: str | None = None
    tool_calls: tuple[ToolCallDelta, ...] = ()


@dataclass(frozen=True)
class ChunkChoice:
    index: int
    delta: Delta
    finish_reason: str | None = None


@dataclass(frozen=True)
class ChatCompletionChunk:
    """Unified streamed chunk; the last one carries usage and cost."""

    id: str
    created: int
    model: str
    choices: tuple[ChunkChoice, ...]
    accumulator: StreamAccumulator = field(default_factory=StreamAccumulator)
    usage: TokenUsage | None = None
    cost: float | None = None
    object: str = "chat.completion.chunk"
