"""Conversation normalization against a model's capabilities.

The pipeline rewrites a working copy of the conversation in a fixed order
and only then validates the result and the requested options:

    1. system turns -> user turns        (supports_system)
    2. extra system turns -> user turns  (supports_multiple_system)
    3. merge runs of the same role       (supports_repeating_roles)
    4. text-only multimodal -> text      (supports_json_content / supports_vision)
    5. empty text -> EMPTY_CONTENT       (supports_empty_content)
    6. pad leading/trailing assistant    (supports_first_assistant / supports_last_assistant)
    7. reject single-role conversations  (supports_only_system / supports_only_assistant)
    8. validate options, clamp max_tokens

Every step is a pure function of its input; the caller's conversation is
never modified.
"""

import logging
from dataclasses import replace
from typing import Callable

from llmadapters.capabilities import Model, ModelCapabilities
from llmadapters.conversation import (
    CONTENT_TURNS,
    BasicTurn,
    Conversation,
    FunctionResultTurn,
    ImagePart,
    MultiModalTurn,
    Role,
    TextPart,
    ToolInvocationTurn,
    ToolResultTurn,
    Turn,
)
from llmadapters.errors import InvalidConversationError, UnsupportedFeatureError
from llmadapters.options import ExecuteOptions

logger = logging.getLogger(__name__)

# Substituted for empty text when a model rejects empty content.
EMPTY_CONTENT = '""'

MERGE_SEPARATOR = "\n"

Rewrite = Callable[[list[Turn], ModelCapabilities, str], list[Turn]]


def validate_conversation(conversation: Conversation) -> None:
    """Check structural invariants before any rewrite.

    Raises:
        InvalidConversationError: If the conversation is empty or a tool
            result answers a call id that no earlier turn requested.
    """
    if conversation.is_empty():
        raise InvalidConversationError("conversation has no turns")

    seen_call_ids: set[str] = set()
    for index, turn in enumerate(conversation):
        if isinstance(turn, ToolInvocationTurn):
            seen_call_ids.update(call.id for call in turn.calls)
        elif isinstance(turn, ToolResultTurn) and turn.call_id not in seen_call_ids:
            raise InvalidConversationError(
                f"tool result at turn {index} references unknown call id {turn.call_id!r}"
            )


def _with_role(turn: Turn, role: Role) -> Turn:
    if isinstance(turn, CONTENT_TURNS):
        return replace(turn, role=role)
    return turn


def rewrite_system_roles(turns: list[Turn], capabilities: ModelCapabilities, model: str) -> list[Turn]:
    """Step 1: turn every system turn into a user turn."""
    if capabilities.supports_system:
        return turns
    return [_with_role(turn, Role.USER) if turn.role is Role.SYSTEM else turn for turn in turns]


def consolidate_system_turns(turns: list[Turn], capabilities: ModelCapabilities, model: str) -> list[Turn]:
    """Step 2: keep the first system turn, demote the rest in place."""
    if capabilities.supports_multiple_system:
        return turns
    result: list[Turn] = []
    seen_system = False
    for turn in turns:
        if turn.role is Role.SYSTEM:
            if seen_system:
                turn = _with_role(turn, Role.USER)
            seen_system = True
        result.append(turn)
    return result


def _merge_pair(first: Turn, second: Turn) -> Turn:
    if isinstance(first, BasicTurn) and isinstance(second, BasicTurn):
        return BasicTurn(first.role, first.text + MERGE_SEPARATOR + second.text)
    parts: list = []
    for turn in (first, second):
        if isinstance(turn, BasicTurn):
            parts.append(TextPart(turn.text))
        else:
            parts.extend(turn.parts)
    return MultiModalTurn(first.role, tuple(parts))


def merge_repeating_roles(turns: list[Turn], capabilities: ModelCapabilities, model: str) -> list[Turn]:
    """Step 3: merge consecutive content turns that share a role.

    Tool and function turns are never merged and break a run.
    """
    if capabilities.supports_repeating_roles:
        return turns
    result: list[Turn] = []
    for turn in turns:
        previous = result[-1] if result else None
        if (
            previous is not None
            and isinstance(turn, CONTENT_TURNS)
            and isinstance(previous, CONTENT_TURNS)
            and previous.role is turn.role
        ):
            result[-1] = _merge_pair(previous, turn)
        else:
            result.append(turn)
    return result


def rewrite_content_shape(turns: list[Turn], capabilities: ModelCapabilities, model: str) -> list[Turn]:
    """Step 4: flatten text-only multimodal turns; reject images without vision."""
    result: list[Turn] = []
    for turn in turns:
        if isinstance(turn, MultiModalTurn):
            if turn.has_images and not capabilities.supports_vision:
                raise UnsupportedFeatureError("vision", model)
            if not turn.has_images and not capabilities.supports_json_content:
                turn = BasicTurn(turn.role, turn.text_content())
        result.append(turn)
    return result


def _fill_empty(turn: Turn) -> Turn:
    if isinstance(turn, BasicTurn) and not turn.text:
        return replace(turn, text=EMPTY_CONTENT)
    if isinstance(turn, MultiModalTurn):
        if not turn.parts:
            return replace(turn, parts=(TextPart(EMPTY_CONTENT),))
        parts = tuple(
            TextPart(EMPTY_CONTENT) if isinstance(part, TextPart) and not part.text else part
            for part in turn.parts
        )
        return replace(turn, parts=parts)
    if isinstance(turn, ToolInvocationTurn) and turn.text == "":
        return replace(turn, text=EMPTY_CONTENT)
    if isinstance(turn, ToolResultTurn) and not turn.text:
        return replace(turn, text=EMPTY_CONTENT)
    if isinstance(turn, FunctionResultTurn) and not turn.text:
        return replace(turn, text=EMPTY_CONTENT)
    return turn


def substitute_empty_content(turns: list[Turn], capabilities: ModelCapabilities, model: str) -> list[Turn]:
    """Step 5: replace empty text payloads with EMPTY_CONTENT."""
    if capabilities.supports_empty_content:
        return turns
    return [_fill_empty(turn) for turn in turns]


def _padding_turn(capabilities: ModelCapabilities) -> Turn:
    text = "" if capabilities.supports_empty_content else EMPTY_CONTENT
    return BasicTurn(Role.USER, text)


def pad_assistant_edges(turns: list[Turn], capabilities: ModelCapabilities, model: str) -> list[Turn]:
    """Step 6: surround leading/trailing assistant turns with user turns."""
    if not turns:
        return turns
    result = list(turns)
    if not capabilities.supports_first_assistant and result[0].role is Role.ASSISTANT:
        result.insert(0, _padding_turn(capabilities))
    if not capabilities.supports_last_assistant and result[-1].role is Role.ASSISTANT:
        result.append(_padding_turn(capabilities))
    return result


REWRITES: tuple[Rewrite, ...] = (
    rewrite_system_roles,
    consolidate_system_turns,
    merge_repeating_roles,
    rewrite_content_shape,
    substitute_empty_content,
    pad_assistant_edges,
)


def check_single_role(turns: list[Turn], capabilities: ModelCapabilities, model: str) -> None:
    """Step 7: reject conversations made only of system or only of assistant turns."""
    roles = {turn.role for turn in turns}
    if len(roles) != 1:
        return
    (role,) = roles
    if role is Role.SYSTEM and not capabilities.supports_only_system:
        raise UnsupportedFeatureError("only_system", model)
    if role is Role.ASSISTANT and not capabilities.supports_only_assistant:
        raise UnsupportedFeatureError("only_assistant", model)


def validate_options(
    options: ExecuteOptions,
    capabilities: ModelCapabilities,
    model: str,
    completion_length: int | None = None,
    stream: bool = False,
) -> ExecuteOptions:
    """Step 8: reject unsupported options and clamp max_tokens.

    Args:
        options: Requested options.
        capabilities: Target model capabilities.
        model: Model path, used in error messages.
        completion_length: Model's completion limit, if known.
        stream: Whether the call is streamed.

    Returns:
        The options to send, with max_tokens clamped to completion_length.

    Raises:
        UnsupportedFeatureError: For the first unsupported option.
    """
    # Checked in order, first failure wins: "required" without any
    # tool_choice support reports tool_choice.
    checks = (
        ("streaming", stream, capabilities.supports_streaming),
        ("tools", options.tools is not None, capabilities.supports_tools),
        ("tool_choice", options.tool_choice is not None, capabilities.supports_tool_choice),
        ("tool_choice_required", options.tool_choice == "required", capabilities.supports_tool_choice_required),
        ("temperature", options.temperature is not None, capabilities.supports_temperature),
        ("n", options.n is not None and options.n > 1, capabilities.supports_n),
        (
            "json_output",
            options.response_format is not None and options.response_format.is_json,
            capabilities.supports_json_output,
        ),
        ("user", options.user is not None, capabilities.supports_user),
    )
    for feature, requested, supported in checks:
        if requested and not supported:
            raise UnsupportedFeatureError(feature, model)

    if (
        options.max_tokens is not None
        and completion_length is not None
        and completion_length > 0
        and options.max_tokens > completion_length
    ):
        logger.debug("Clamping max_tokens %d to %d for %s", options.max_tokens, completion_length, model)
        options = replace(options, max_tokens=completion_length)
    return options


def normalize(
    conversation: Conversation,
    model: Model,
    options: ExecuteOptions | None = None,
    stream: bool = False,
) -> tuple[Conversation, ExecuteOptions]:
    """Rewrite a conversation and options to fit a model.

    Args:
        conversation: Caller's conversation; left untouched.
        model: Target model.
        options: Requested options (defaults to none requested).
        stream: Whether the call will be streamed.

    Returns:
        A new (conversation, options) pair safe to hand to the adapter.

    Raises:
        InvalidConversationError: On structural violations.
        UnsupportedFeatureError: For the first constraint that cannot be met.
    """
    options = options or ExecuteOptions()
    capabilities = model.capabilities
    path = model.path

    validate_conversation(conversation)

    turns = list(conversation.turns)
    for rewrite in REWRITES:
        rewritten = rewrite(turns, capabilities, path)
        if rewritten != turns:
            logger.debug("%s rewrote conversation for %s", rewrite.__name__, path)
        turns = rewritten

    check_single_role(turns, capabilities, path)
    validated = validate_options(options, capabilities, path, model.completion_length, stream=stream)
    return Conversation(turns), validated


def normalize_conversation(conversation: Conversation, model: Model) -> Conversation:
    """Normalize only the conversation, with no options requested."""
    normalized, _ = normalize(conversation, model)
    return normalized
