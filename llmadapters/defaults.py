"""Provider-level defaults and vendor mappings.

PROVIDER_DEFAULTS holds partial capability records per provider. They are
merged field by field over the total ModelCapabilities record when the
registry is populated; catalog-reported flags are applied last.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from llmadapters.capabilities import ModelCapabilities


@dataclass(frozen=True)
class ProviderDefaults:
    """Capability overrides and endpoint for one provider."""
    capabilities: dict[str, bool] = field(default_factory=dict)
    base_url: str | None = None


PROVIDER_DEFAULTS: dict[str, ProviderDefaults] = {
    "openai": ProviderDefaults(
        capabilities={"supports_tool_choice": True, "supports_tool_choice_required": True},
        base_url="https://api.openai.com/v1",
    ),
    "azure": ProviderDefaults(
        capabilities={"supports_tool_choice": True, "supports_tool_choice_required": True},
    ),
    "anthropic": ProviderDefaults(
        capabilities={
            "supports_user": False,
            "supports_n": False,
            "supports_repeating_roles": False,
            "supports_multiple_system": False,
            "supports_empty_content": False,
            "supports_first_assistant": False,
            "supports_only_system": False,
            "supports_only_assistant": False,
            "supports_json_output": False,
            "supports_tool_choice": True,
            "supports_tool_choice_required": True,
        },
    ),
    "google": ProviderDefaults(
        capabilities={
            "supports_user": False,
            "supports_n": False,
            "supports_multiple_system": False,
            "supports_empty_content": False,
            "supports_first_assistant": False,
            "supports_last_assistant": False,
            "supports_only_system": False,
            "supports_tool_choice": True,
        },
        base_url="https://generativelanguage.googleapis.com/v1beta/openai",
    ),
    "mistral": ProviderDefaults(
        capabilities={
            "supports_user": False,
            "supports_n": False,
            "supports_last_assistant": False,
            "supports_tool_choice": True,
            "supports_tool_choice_required": True,
        },
        base_url="https://api.mistral.ai/v1",
    ),
    "groq": ProviderDefaults(
        capabilities={"supports_n": False, "supports_tool_choice": True, "supports_tool_choice_required": True},
        base_url="https://api.groq.com/openai/v1",
    ),
    "deepseek": ProviderDefaults(
        capabilities={
            "supports_n": False,
            "supports_last_assistant": False,
            "supports_tool_choice": True,
        },
        base_url="https://api.deepseek.com",
    ),
    "xai": ProviderDefaults(
        capabilities={"supports_tool_choice": True, "supports_tool_choice_required": True},
        base_url="https://api.x.ai/v1",
    ),
    "openrouter": ProviderDefaults(
        capabilities={"supports_tool_choice": True},
        base_url="https://openrouter.ai/api/v1",
    ),
    "togetherai": ProviderDefaults(
        capabilities={"supports_n": False, "supports_tool_choice": True},
        base_url="https://api.together.xyz/v1",
    ),
    "fireworks-ai": ProviderDefaults(
        capabilities={"supports_tool_choice": True},
        base_url="https://api.fireworks.ai/inference/v1",
    ),
    "cerebras": ProviderDefaults(
        capabilities={"supports_n": False, "supports_tool_choice": True},
        base_url="https://api.cerebras.ai/v1",
    ),
    "perplexity": ProviderDefaults(
        capabilities={
            "supports_n": False,
            "supports_repeating_roles": False,
            "supports_multiple_system": False,
            "supports_first_assistant": False,
            "supports_only_system": False,
            "supports_only_assistant": False,
        },
        base_url="https://api.perplexity.ai",
    ),
    "moonshotai": ProviderDefaults(
        capabilities={"supports_n": False, "supports_tool_choice": True},
        base_url="https://api.moonshot.ai/v1",
    ),
    "cohere": ProviderDefaults(
        capabilities={"supports_n": False, "supports_user": False, "supports_multiple_system": False},
    ),
}

# First match wins.
VENDOR_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"claude", "anthropic"),
    (r"^(gpt-|o1|o3|o4|chatgpt|dall-e|whisper|text-embedding|codex)|/gpt-", "openai"),
    (r"gemini|gemma", "google"),
    (r"llama", "meta"),
    (r"mistral|mixtral|codestral|ministral|pixtral|magistral|devstral", "mistral"),
    (r"qwen|qwq", "alibaba"),
    (r"deepseek", "deepseek"),
    (r"command|c4ai|aya", "cohere"),
    (r"grok", "xai"),
    (r"kimi|moonshot", "moonshotai"),
    (r"glm", "zhipuai"),
    (r"phi-", "microsoft"),
    (r"nova-", "amazon"),
    (r"sonar", "perplexity"),
)

_COMPILED_VENDOR_PATTERNS = tuple(
    (re.compile(pattern, re.IGNORECASE), vendor) for pattern, vendor in VENDOR_PATTERNS
)

# Vendor used for unmatched ids of providers that only serve their own models.
PROVIDER_VENDORS: dict[str, str] = {
    "openai": "openai",
    "azure": "openai",
    "anthropic": "anthropic",
    "google": "google",
    "google-vertex": "google",
    "mistral": "mistral",
    "xai": "xai",
    "deepseek": "deepseek",
    "cohere": "cohere",
}

GDPR_COMPLIANT_PROVIDERS = frozenset({"openai", "azure", "anthropic"})


def defaults_for_provider(provider_id: str) -> ProviderDefaults:
    """Defaults record for a provider; empty when the provider is unknown."""
    return PROVIDER_DEFAULTS.get(provider_id, ProviderDefaults())


def capabilities_for_provider(provider_id: str, overrides: dict[str, Any] | None = None) -> ModelCapabilities:
    """Total capability record: base defaults <- provider defaults <- overrides."""
    capabilities = ModelCapabilities().merged(defaults_for_provider(provider_id).capabilities)
    if overrides:
        capabilities = capabilities.merged(overrides)
    return capabilities


def extract_vendor(model_id: str, provider_id: str) -> str:
    """Derive a vendor name from a model id.

    Args:
        model_id: Provider-side model id.
        provider_id: Provider serving the model.

    Returns:
        The first matching pattern's vendor, else the provider's own
        vendor, else the provider id itself.
    """
    for pattern, vendor in _COMPILED_VENDOR_PATTERNS:
        if pattern.search(model_id):
            return vendor
    return PROVIDER_VENDORS.get(provider_id, provider_id)


def is_chinese_model(model_id: str, provider_id: str) -> bool:
    return (
        "china" in provider_id
        or "alibaba" in provider_id
        or "moonshot" in provider_id
        or "qwen" in model_id.lower()
    )


def is_gdpr_compliant(provider_id: str) -> bool:
    return provider_id in GDPR_COMPLIANT_PROVIDERS
