"""Token counting utilities.

Used to estimate usage when a backend does not report it (for example a
stream cut short before its usage event).
"""

import tiktoken

from llmadapters.conversation import (
    Conversation,
    FunctionInvocationTurn,
    ToolInvocationTurn,
    Turn,
)
from llmadapters.cost import TokenUsage


# Cache for tokenizer encodings
_ENCODING_CACHE: dict[str, tiktoken.Encoding] = {}


def _get_encoding(model: str) -> tiktoken.Encoding:
    """Get or create a tiktoken encoding for a model.

    Args:
        model: Model name (e.g., "gpt-4o", "gpt-4.1").

    Returns:
        Tiktoken encoding for the model.
    """
    if model not in _ENCODING_CACHE:
        try:
            _ENCODING_CACHE[model] = tiktoken.encoding_for_model(model)
        except KeyError:
            # Non-OpenAI models get an approximation
            _ENCODING_CACHE[model] = tiktoken.get_encoding("cl100k_base")

    return _ENCODING_CACHE[model]


def _turn_text(turn: Turn) -> str:
    if isinstance(turn, ToolInvocationTurn):
        calls = "".join(call.name + call.arguments for call in turn.calls)
        return (turn.text or "") + calls
    if isinstance(turn, FunctionInvocationTurn):
        return turn.name + turn.arguments
    return turn.text_content()


def count_tokens_tiktoken(conversation: Conversation, model: str = "gpt-4o") -> int:
    """Count prompt tokens of a conversation.

    Follows OpenAI's counting guidelines for chat models; images are not
    counted.

    Args:
        conversation: Conversation to count.
        model: Model name for encoding selection.

    Returns:
        Total token count.
    """
    encoding = _get_encoding(model)

    tokens_per_message = 3  # <|start|>role<|sep|>content<|end|>

    total = 0
    for turn in conversation:
        total += tokens_per_message
        total += len(encoding.encode(_turn_text(turn)))
        total += len(encoding.encode(turn.role.value))

    # Every reply is primed with <|start|>assistant<|message|>
    total += 3

    return total


def count_tokens_text(text: str, model: str = "gpt-4o") -> int:
    """Count tokens in a single text string."""
    encoding = _get_encoding(model)
    return len(encoding.encode(text))


def estimate_usage(conversation: Conversation, completion: str, model: str = "gpt-4o") -> TokenUsage:
    """Estimate usage for a call from its prompt and generated text.

    Args:
        conversation: Conversation that was sent.
        completion: Text generated so far.
        model: Model name for encoding selection.

    Returns:
        Estimated TokenUsage.
    """
    return TokenUsage(
        prompt_tokens=count_tokens_tiktoken(conversation, model),
        completion_tokens=count_tokens_text(completion, model) if completion else 0,
    )
