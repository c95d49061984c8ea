"""Capability model: what a target model supports and costs."""

from dataclasses import dataclass, field, fields, replace
from typing import Any

from llmadapters.cost import Cost


@dataclass(frozen=True)
class ModelCapabilities:
    """Immutable capability flags of a model.

    Defaults form the total record that provider defaults and catalog
    data are merged onto.
    """

    supports_user: bool = True
    supports_repeating_roles: bool = True
    supports_streaming: bool = True
    supports_vision: bool = False
    supports_tools: bool = False
    supports_n: bool = True
    supports_system: bool = True
    supports_multiple_system: bool = True
    supports_empty_content: bool = True
    supports_tool_choice: bool = False
    supports_tool_choice_required: bool = False
    supports_json_output: bool = True
    supports_json_content: bool = True
    supports_last_assistant: bool = True
    supports_first_assistant: bool = True
    supports_temperature: bool = True
    supports_only_system: bool = True
    supports_only_assistant: bool = True

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def merged(self, overrides: dict[str, Any]) -> "ModelCapabilities":
        """Return a copy with the given flags replaced.

        Raises:
            ValueError: If an override names an unknown flag.
        """
        unknown = set(overrides) - set(self.field_names())
        if unknown:
            raise ValueError(f"unknown capability flags: {sorted(unknown)}")
        return replace(self, **{name: bool(value) for name, value in overrides.items()})

    def to_dict(self) -> dict[str, bool]:
        return {name: getattr(self, name) for name in self.field_names()}


@dataclass(frozen=True)
class ModelProperties:
    """Descriptive properties that do not affect normalization."""
    open_source: bool = False
    chinese: bool = False
    gdpr_compliant: bool = False
    is_nsfw: bool = False
    reasoning: bool = False


@dataclass(frozen=True)
class Model:
    """A resolvable model: identity, limits, cost and capabilities."""

    name: str
    vendor_name: str
    provider_name: str
    cost: Cost = field(default_factory=Cost)
    context_length: int = 0
    completion_length: int | None = None
    capabilities: ModelCapabilities = field(default_factory=ModelCapabilities)
    properties: ModelProperties = field(default_factory=ModelProperties)
    knowledge_cutoff: str | None = None
    release_date: str | None = None
    last_updated: str | None = None

    @property
    def path(self) -> str:
        return f"{self.provider_name}/{self.vendor_name}/{self.name}"


def split_model_path(path: str) -> tuple[str, str, str] | None:
    """Split ``provider/vendor/name`` into its segments.

    The name segment keeps any further slashes (aggregator ids such as
    ``meta-llama/llama-3``). Returns None for a bare legacy model name.

    Raises:
        ValueError: If a segment is empty.
    """
    if not path or not path.strip():
        raise ValueError("model path is empty")
    if "/" not in path:
        return None
    segments = path.split("/", 2)
    if len(segments) != 3 or not all(segments):
        raise ValueError(f"malformed model path {path!r}")
    provider, vendor, name = segments
    return provider, vendor, name


@dataclass(frozen=True)
class ModelFilter:
    """AND of optional field-equality constraints; None fields match anything.

    Example:
        >>> ModelFilter().with_vision(True).with_provider("openai")
    """

    supports_streaming: bool | None = None
    supports_vision: bool | None = None
    supports_tools: bool | None = None
    supports_temperature: bool | None = None
    supports_system: bool | None = None
    supports_json_output: bool | None = None
    provider: str | None = None
    vendor: str | None = None

    def with_streaming(self, value: bool) -> "ModelFilter":
        return replace(self, supports_streaming=value)

    def with_vision(self, value: bool) -> "ModelFilter":
        return replace(self, supports_vision=value)

    def with_tools(self, value: bool) -> "ModelFilter":
        return replace(self, supports_tools=value)

    def with_temperature(self, value: bool) -> "ModelFilter":
        return replace(self, supports_temperature=value)

    def with_provider(self, provider: str) -> "ModelFilter":
        return replace(self, provider=provider)

    def with_vendor(self, vendor: str) -> "ModelFilter":
        return replace(self, vendor=vendor)

    def matches(self, model: Model) -> bool:
        if self.provider is not None and model.provider_name != self.provider:
            return False
        if self.vendor is not None and model.vendor_name != self.vendor:
            return False
        for f in fields(self):
            if not f.name.startswith("supports_"):
                continue
            wanted = getattr(self, f.name)
            if wanted is not None and getattr(model.capabilities, f.name) != wanted:
                return False
        return True
