"""Pluggable credential sources.

The executor asks a credential source for a provider's key right before
each call, so keys can rotate without touching the registry.
"""

import os
from typing import Protocol, runtime_checkable

from llmadapters.errors import CredentialNotFoundError


@runtime_checkable
class CredentialProvider(Protocol):
    """Anything that can hand out an API key for a provider."""

    def get_api_key(self, provider: str) -> str | None:
        """Return the key for ``provider`` or None if there is none."""
        ...


def api_key_env_var(provider: str) -> str:
    """Environment variable holding a provider's key, e.g. ``FIREWORKS_AI_API_KEY``."""
    return f"{provider.upper().replace('-', '_')}_API_KEY"


class EnvCredentials:
    """Reads ``<PROVIDER>_API_KEY`` from the environment on every lookup."""

    def __init__(self, required: bool = False) -> None:
        self._required = required

    def get_api_key(self, provider: str) -> str | None:
        key = os.environ.get(api_key_env_var(provider))
        if key is None and self._required:
            raise CredentialNotFoundError(provider)
        return key


class StaticCredentials:
    """Fixed provider -> key mapping, updatable at runtime."""

    def __init__(self, keys: dict[str, str] | None = None) -> None:
        self._keys = dict(keys or {})

    def set_api_key(self, provider: str, key: str) -> None:
        self._keys[provider] = key

    def get_api_key(self, provider: str) -> str | None:
        return self._keys.get(provider)
