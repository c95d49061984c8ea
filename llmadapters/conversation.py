"""Backend-agnostic conversation model.

A Conversation is an ordered list of turns. Turns are frozen dataclasses,
so rewriting a conversation always means building new turns rather than
editing existing ones.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Union

from llmadapters.errors import InvalidConversationError
from llmadapters.utils import encode_image_to_base64


class Role(str, Enum):
    """Conversation roles."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"
    FUNCTION = "function"

    def __str__(self) -> str:
        return self.value


# Roles a plain text or multimodal turn may carry.
CONTENT_ROLES = frozenset({Role.USER, Role.ASSISTANT, Role.SYSTEM})


def _coerce_role(role: "Role | str") -> Role:
    try:
        return Role(role)
    except ValueError:
        raise InvalidConversationError(f"unknown role {role!r}") from None


@dataclass(frozen=True)
class TextPart:
    """Text entry of a multimodal turn."""
    text: str


@dataclass(frozen=True)
class ImagePart:
    """Image entry of a multimodal turn (URL or data URI)."""
    url: str
    detail: str | None = None

    @classmethod
    def from_bytes(cls, data: bytes, media_type: str = "image/png", detail: str | None = None) -> "ImagePart":
        """Build an image part holding a base64 data URI."""
        return cls(url=f"data:{media_type};base64,{encode_image_to_base64(data)}", detail=detail)


ContentPart = Union[TextPart, ImagePart]


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the assistant."""
    id: str
    name: str
    arguments: str
    type: str = "function"


@dataclass(frozen=True)
class BasicTurn:
    """A plain text turn."""

    role: Role
    text: str

    def __post_init__(self) -> None:
        role = _coerce_role(self.role)
        if role not in CONTENT_ROLES:
            raise InvalidConversationError(f"text turn cannot have role {role.value!r}")
        object.__setattr__(self, "role", role)

    def text_content(self) -> str:
        return self.text


@dataclass(frozen=True)
class MultiModalTurn:
    """A turn made of ordered text and image parts."""

    role: Role
    parts: tuple[ContentPart, ...]

    def __post_init__(self) -> None:
        role = _coerce_role(self.role)
        if role not in CONTENT_ROLES:
            raise InvalidConversationError(f"multimodal turn cannot have role {role.value!r}")
        object.__setattr__(self, "role", role)
        object.__setattr__(self, "parts", tuple(self.parts))

    @property
    def has_images(self) -> bool:
        return any(isinstance(part, ImagePart) for part in self.parts)

    def text_content(self) -> str:
        return "\n".join(part.text for part in self.parts if isinstance(part, TextPart))


@dataclass(frozen=True)
class ToolInvocationTurn:
    """Assistant turn requesting one or more tool calls."""

    calls: tuple[ToolCall, ...]
    text: str | None = None
    role: Role = field(default=Role.ASSISTANT, init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "calls", tuple(self.calls))
        if not self.calls:
            raise InvalidConversationError("tool invocation turn needs at least one call")

    def text_content(self) -> str:
        return self.text or ""


@dataclass(frozen=True)
class ToolResultTurn:
    """Result of a tool call, answering a prior ToolCall by id."""

    call_id: str
    text: str | None = None
    role: Role = field(default=Role.TOOL, init=False)

    def text_content(self) -> str:
        return self.text or ""


@dataclass(frozen=True)
class FunctionInvocationTurn:
    """Legacy single function call by the assistant."""

    name: str
    arguments: str
    role: Role = field(default=Role.ASSISTANT, init=False)

    def text_content(self) -> str:
        return ""


@dataclass(frozen=True)
class FunctionResultTurn:
    """Legacy function result."""

    text: str
    role: Role = field(default=Role.FUNCTION, init=False)

    def text_content(self) -> str:
        return self.text


Turn = Union[
    BasicTurn,
    MultiModalTurn,
    ToolInvocationTurn,
    ToolResultTurn,
    FunctionInvocationTurn,
    FunctionResultTurn,
]

# Turns whose content is plain text or parts; everything else is a call/result.
CONTENT_TURNS = (BasicTurn, MultiModalTurn)


@dataclass
class Conversation:
    """Ordered chat history.

    Example:
        >>> conversation = Conversation()
        >>> conversation.add_turn(BasicTurn(Role.SYSTEM, "Be brief."))
        >>> conversation.add_turn(BasicTurn(Role.USER, "Hello"))
        >>> len(conversation)
        2
    """

    turns: list[Turn] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.turns = list(self.turns)

    def add_turn(self, turn: Turn) -> None:
        """Append a turn to the history."""
        self.turns.append(turn)

    def copy(self) -> "Conversation":
        return Conversation(list(self.turns))

    def __len__(self) -> int:
        return len(self.turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self.turns)

    def is_empty(self) -> bool:
        return not self.turns

    def roles(self) -> list[Role]:
        return [turn.role for turn in self.turns]

    def is_last_turn_vision_query(self) -> bool:
        """Whether the latest turn carries an image."""
        if not self.turns:
            return False
        last = self.turns[-1]
        return isinstance(last, MultiModalTurn) and last.has_images
