"""Catalog snapshot types.

The catalog is fetched out of band (models.dev ``api.json`` shape) and
handed to the registry already parsed. Capability hints are kept as
Optional so the registry can tell "reported false" from "not reported".
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from llmadapters.errors import CatalogError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogCost:
    """Prices per million tokens."""
    input: float
    output: float
    cache_read: float | None = None
    cache_write: float | None = None
    input_over_200k: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CatalogCost":
        over_200k = data.get("context_over_200k") or {}
        return cls(
            input=float(data.get("input", 0.0)),
            output=float(data.get("output", 0.0)),
            cache_read=_optional_float(data.get("cache_read")),
            cache_write=_optional_float(data.get("cache_write")),
            input_over_200k=_optional_float(over_200k.get("input")),
        )


@dataclass(frozen=True)
class CatalogModel:
    """One model entry of a provider.

    Attributes:
        id: Provider-side model id.
        name: Display name.
        vendor: Vendor, when the catalog states it.
        attachment: Whether attachments are accepted.
        reasoning: Whether the model reasons.
        temperature: Whether temperature is accepted (None if unreported).
        tool_call: Whether tools are accepted (None if unreported).
        input_modalities: Input modalities (None if unreported).
        open_weights: Whether weights are published.
        cost: Prices, if known.
        context_limit: Context window in tokens.
        output_limit: Completion limit in tokens.
    """

    id: str
    name: str = ""
    vendor: str | None = None
    attachment: bool = False
    reasoning: bool = False
    temperature: bool | None = None
    tool_call: bool | None = None
    input_modalities: tuple[str, ...] | None = None
    open_weights: bool = False
    cost: CatalogCost | None = None
    context_limit: int = 0
    output_limit: int | None = None
    knowledge: str | None = None
    release_date: str | None = None
    last_updated: str | None = None

    @classmethod
    def from_dict(cls, model_id: str, data: dict[str, Any]) -> "CatalogModel":
        modalities = data.get("modalities") or {}
        inputs = modalities.get("input")
        limit = data.get("limit") or {}
        cost = data.get("cost")
        return cls(
            id=str(data.get("id", model_id)),
            name=str(data.get("name", model_id)),
            vendor=data.get("vendor"),
            attachment=bool(data.get("attachment", False)),
            reasoning=bool(data.get("reasoning", False)),
            temperature=_optional_bool(data.get("temperature")),
            tool_call=_optional_bool(data.get("tool_call")),
            input_modalities=tuple(inputs) if inputs is not None else None,
            open_weights=bool(data.get("open_weights", False)),
            cost=CatalogCost.from_dict(cost) if isinstance(cost, dict) else None,
            context_limit=int(limit.get("context", 0) or 0),
            output_limit=int(limit["output"]) if limit.get("output") else None,
            knowledge=data.get("knowledge"),
            release_date=data.get("release_date"),
            last_updated=data.get("last_updated"),
        )

    def capability_hints(self) -> dict[str, bool]:
        """Capability flags this entry actually reports."""
        hints: dict[str, bool] = {}
        if self.input_modalities is not None:
            hints["supports_vision"] = "image" in self.input_modalities
        if self.tool_call is not None:
            hints["supports_tools"] = self.tool_call
        if self.temperature is not None:
            hints["supports_temperature"] = self.temperature
        return hints


@dataclass(frozen=True)
class CatalogProvider:
    """A provider and its models, in catalog order."""

    id: str
    name: str = ""
    env: tuple[str, ...] = ()
    api: str | None = None
    doc: str | None = None
    models: dict[str, CatalogModel] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, provider_id: str, data: dict[str, Any]) -> "CatalogProvider":
        models: dict[str, CatalogModel] = {}
        for model_id, model_data in (data.get("models") or {}).items():
            if not isinstance(model_data, dict):
                logger.warning("Skipping malformed catalog entry %s/%s", provider_id, model_id)
                continue
            try:
                models[model_id] = CatalogModel.from_dict(model_id, model_data)
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping malformed catalog entry %s/%s: %s", provider_id, model_id, exc)
        return cls(
            id=str(data.get("id", provider_id)),
            name=str(data.get("name", provider_id)),
            env=tuple(data.get("env") or ()),
            api=data.get("api"),
            doc=data.get("doc"),
            models=models,
        )


@dataclass(frozen=True)
class Catalog:
    """Parsed catalog snapshot: provider id -> provider."""

    providers: dict[str, CatalogProvider] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Catalog":
        if not isinstance(data, dict):
            raise CatalogError("snapshot must be a JSON object keyed by provider id")
        providers = {}
        for provider_id, provider_data in data.items():
            if not isinstance(provider_data, dict):
                raise CatalogError(f"provider {provider_id!r} is not an object")
            providers[provider_id] = CatalogProvider.from_dict(provider_id, provider_data)
        return cls(providers=providers)

    def model_count(self) -> int:
        return sum(len(provider.models) for provider in self.providers.values())


def load_catalog(path: str | Path) -> Catalog:
    """Read a catalog snapshot from a JSON file.

    Raises:
        CatalogError: If the file cannot be read or parsed.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise CatalogError(f"cannot load {path}: {exc}") from exc
    return Catalog.from_dict(data)


def _optional_bool(value: Any) -> bool | None:
    return None if value is None else bool(value)


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)
