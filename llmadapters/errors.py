"""Error taxonomy for llmadapters.

Every error raised by the library derives from AdapterError so callers
can catch one type. Pipeline and registry errors are raised before any
adapter is contacted; transport errors wrap whatever the adapter raised.
"""

from typing import Any


class AdapterError(Exception):
    """Base class for all llmadapters errors."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ModelNotFoundError(AdapterError):
    """No registry entry for a model path (after trying both path forms)."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Model not found: {path}", path=path)
        self.path = path


class ProviderUnavailableError(AdapterError):
    """A model resolved, but no adapter is registered for its provider."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"No adapter registered for provider: {provider}", provider=provider)
        self.provider = provider


class UnsupportedFeatureError(AdapterError):
    """The target model cannot satisfy a conversation shape or option."""

    def __init__(self, feature: str, model: str) -> None:
        super().__init__(f"Model does not support {feature}: {model}", feature=feature, model=model)
        self.feature = feature
        self.model = model


class InvalidConversationError(AdapterError):
    """The conversation is structurally invalid."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid conversation: {reason}", reason=reason)
        self.reason = reason


class CredentialNotFoundError(AdapterError):
    """A credential source has no key for a provider."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"API key not found for provider: {provider}", provider=provider)
        self.provider = provider


class CatalogError(AdapterError):
    """A catalog snapshot could not be parsed."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Catalog error: {reason}", reason=reason)
        self.reason = reason


class RateLimitedError(AdapterError):
    """The backend rejected the call for rate limiting. Never retried here."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: float | None = None) -> None:
        super().__init__(message, retry_after=retry_after)
        self.retry_after = retry_after


class TransportError(AdapterError):
    """Opaque wrapper around an adapter's own failure."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Transport failure: {cause}", cause_type=type(cause).__name__)
        self.cause = cause
        self.__cause__ = cause


def classify_adapter_error(exc: Exception) -> AdapterError:
    """Map an exception raised by an adapter into the taxonomy.

    Taxonomy errors pass through unchanged. Anything reporting HTTP 429
    becomes RateLimitedError; everything else is wrapped in TransportError.
    """
    if isinstance(exc, AdapterError):
        return exc
    if getattr(exc, "status_code", None) == 429:
        error = RateLimitedError(str(exc) or "Rate limit exceeded")
        error.__cause__ = exc
        return error
    return TransportError(exc)
