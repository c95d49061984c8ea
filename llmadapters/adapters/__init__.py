"""Adapter implementations for different LLM providers."""

from typing import TYPE_CHECKING

from llmadapters.adapters.base import Adapter, AdapterConstructor

if TYPE_CHECKING:
    from llmadapters.registry import AdapterRegistry

__all__ = ["Adapter", "AdapterConstructor", "register_default_adapters"]


def register_default_adapters(registry: "AdapterRegistry") -> None:
    """Register every bundled adapter into a registry."""
    from llmadapters.adapters import openai

    openai.register(registry)


# Lazy imports for optional dependencies
def __getattr__(name: str):
    if name == "OpenAIAdapter":
        from llmadapters.adapters.openai import OpenAIAdapter
        return OpenAIAdapter
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
