"""Per-request options passed through to adapters."""

from dataclasses import asdict, dataclass
from typing import Any, Literal

from llmadapters.utils import delete_none_values


@dataclass(frozen=True)
class ResponseFormat:
    """Requested response format (``json_object`` or ``text``)."""

    type: str = "text"

    @classmethod
    def json(cls) -> "ResponseFormat":
        return cls(type="json_object")

    @classmethod
    def text(cls) -> "ResponseFormat":
        return cls(type="text")

    @property
    def is_json(self) -> bool:
        return self.type in {"json_object", "json_schema"}


@dataclass(frozen=True)
class ExecuteOptions:
    """Sampling and tool options for one call. None means "not requested"."""

    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    tools: tuple[dict[str, Any], ...] | None = None
    tool_choice: Literal["auto", "none", "required"] | str | None = None
    response_format: ResponseFormat | None = None
    n: int | None = None
    user: str | None = None

    def __post_init__(self) -> None:
        if self.tools is not None:
            object.__setattr__(self, "tools", tuple(self.tools))
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if self.n is not None and self.n <= 0:
            raise ValueError("n must be positive")

    def to_dict(self) -> dict[str, Any]:
        """Requested options only, in wire-friendly form."""
        data = asdict(self)
        if self.tools is not None:
            data["tools"] = list(self.tools)
        return delete_none_values(data)
