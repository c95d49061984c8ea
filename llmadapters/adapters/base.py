"""Base protocol for provider adapters."""

from typing import Callable, Iterator, Protocol, runtime_checkable

from llmadapters.capabilities import Model
from llmadapters.conversation import Conversation
from llmadapters.options import ExecuteOptions
from llmadapters.response import AdapterResponse, StreamEvent


@runtime_checkable
class Adapter(Protocol):
    """Protocol that all provider adapters must implement.

    Adapters receive conversations that have already been normalized for
    their model and options that have already been validated; they only
    translate to the provider's wire format and back.
    """

    @property
    def model(self) -> Model:
        """The model this adapter serves."""
        ...

    def set_credential(self, key: str) -> None:
        """Set or rotate the API key used for subsequent calls.

        Args:
            key: Provider API key.
        """
        ...

    def invoke(self, conversation: Conversation, options: ExecuteOptions) -> AdapterResponse:
        """Run a one-shot completion.

        Args:
            conversation: Normalized conversation.
            options: Validated options.

        Returns:
            Content, tool calls, finish reason and usage.
        """
        ...

    def invoke_stream(self, conversation: Conversation, options: ExecuteOptions) -> Iterator[StreamEvent]:
        """Run a streamed completion.

        The iterator ends with a terminal event carrying usage. Closing the
        iterator early must release any connection it holds.

        Args:
            conversation: Normalized conversation.
            options: Validated options.

        Returns:
            Iterator of stream events.
        """
        ...


AdapterConstructor = Callable[[Model], Adapter]
