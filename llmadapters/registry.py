"""Adapter registry: model path -> (Model, adapter constructor).

Readers never lock. Each populate builds a complete immutable snapshot and
installs it with a single attribute assignment, so a reader that grabbed
the previous snapshot keeps seeing it whole.
"""

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from llmadapters.adapters.base import Adapter, AdapterConstructor
from llmadapters.capabilities import Model, ModelFilter, ModelProperties, split_model_path
from llmadapters.catalog import Catalog, CatalogModel
from llmadapters.cost import Cost
from llmadapters.defaults import (
    capabilities_for_provider,
    extract_vendor,
    is_chinese_model,
    is_gdpr_compliant,
)
from llmadapters.errors import ModelNotFoundError, ProviderUnavailableError

logger = logging.getLogger(__name__)

PROMPT_TIER_200K = 200_000


@dataclass(frozen=True)
class _Snapshot:
    models: Mapping[str, Model] = field(default_factory=lambda: MappingProxyType({}))
    order: tuple[str, ...] = ()
    # Bare model name -> path of the first model inserted under that name.
    names: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


def model_from_catalog(provider_id: str, entry: CatalogModel) -> Model:
    """Convert a catalog entry into a Model.

    Capabilities are the provider's default record with the flags the
    catalog reports applied on top.
    """
    vendor = entry.vendor or extract_vendor(entry.id, provider_id)
    capabilities = capabilities_for_provider(provider_id, entry.capability_hints())

    if entry.cost is not None:
        tiers = {}
        if entry.cost.input_over_200k is not None:
            tiers[PROMPT_TIER_200K] = entry.cost.input_over_200k
        cost = Cost.from_per_million(entry.cost.input, entry.cost.output, tiers)
    else:
        cost = Cost()

    return Model(
        name=entry.id,
        vendor_name=vendor,
        provider_name=provider_id,
        cost=cost,
        context_length=entry.context_limit,
        completion_length=entry.output_limit,
        capabilities=capabilities,
        properties=ModelProperties(
            open_source=entry.open_weights,
            chinese=is_chinese_model(entry.id, provider_id),
            gdpr_compliant=is_gdpr_compliant(provider_id),
            is_nsfw=False,
            reasoning=entry.reasoning,
        ),
        knowledge_cutoff=entry.knowledge,
        release_date=entry.release_date,
        last_updated=entry.last_updated,
    )


class AdapterRegistry:
    """Registry of resolvable models and the adapters that serve them.

    Example:
        >>> registry = AdapterRegistry()
        >>> registry.register_adapter("openai", OpenAIAdapter)
        >>> registry.populate(load_catalog("api.json"))
        >>> model, constructor = registry.resolve("openai/openai/gpt-4o-mini")
    """

    def __init__(self) -> None:
        self._snapshot = _Snapshot()
        self._constructors: Mapping[str, AdapterConstructor] = MappingProxyType({})
        self._write_lock = threading.Lock()

    def register_adapter(self, provider: str, constructor: AdapterConstructor) -> None:
        """Register the adapter constructor for a provider.

        Args:
            provider: Provider id as it appears in model paths.
            constructor: Callable building an adapter for a Model.
        """
        with self._write_lock:
            constructors = dict(self._constructors)
            constructors[provider] = constructor
            self._constructors = MappingProxyType(constructors)

    def populate(self, catalog: Catalog | dict[str, Any]) -> int:
        """Replace every model with those of a catalog snapshot.

        Args:
            catalog: Parsed catalog, or the raw snapshot dict.

        Returns:
            Number of models installed.
        """
        if not isinstance(catalog, Catalog):
            catalog = Catalog.from_dict(catalog)
        models = [
            model_from_catalog(provider_id, entry)
            for provider_id, provider in catalog.providers.items()
            for entry in provider.models.values()
        ]
        return self.populate_models(models)

    def populate_models(self, models: list[Model]) -> int:
        """Replace every model with ``models``, keeping their order."""
        by_path: dict[str, Model] = {}
        names: dict[str, str] = {}
        for model in models:
            path = model.path
            by_path[path] = model
            names.setdefault(model.name, path)
        snapshot = _Snapshot(
            models=MappingProxyType(by_path),
            order=tuple(by_path),
            names=MappingProxyType(names),
        )
        with self._write_lock:
            self._snapshot = snapshot
        logger.info("Registry populated with %d models from %d providers",
                    len(by_path), len({m.provider_name for m in by_path.values()}))
        return len(by_path)

    def get_model(self, path: str) -> Model:
        """Look up a model by ``provider/vendor/name`` or bare name.

        Raises:
            ModelNotFoundError: If neither path form is registered.
        """
        snapshot = self._snapshot
        model = snapshot.models.get(path)
        if model is not None:
            return model
        # Bare names may themselves contain "/" (aggregator ids).
        full_path = snapshot.names.get(path)
        if full_path is not None:
            return snapshot.models[full_path]
        try:
            segments = split_model_path(path)
        except ValueError:
            segments = None
        if segments is not None:
            full_path = snapshot.names.get(segments[2])
            if full_path is not None:
                return snapshot.models[full_path]
        raise ModelNotFoundError(path)

    def resolve(self, path: str) -> tuple[Model, AdapterConstructor]:
        """Resolve a model path to its model and adapter constructor.

        Raises:
            ModelNotFoundError: If the path is unknown.
            ProviderUnavailableError: If no adapter serves the model's provider.
        """
        model = self.get_model(path)
        constructor = self._constructors.get(model.provider_name)
        if constructor is None:
            raise ProviderUnavailableError(model.provider_name)
        return model, constructor

    def create_adapter(self, path: str) -> Adapter:
        """Resolve a path and construct its adapter."""
        model, constructor = self.resolve(path)
        return constructor(model)

    def iter_models(self, model_filter: ModelFilter | None = None) -> Iterator[Model]:
        """Iterate models of one snapshot in insertion order."""
        snapshot = self._snapshot
        for path in snapshot.order:
            model = snapshot.models[path]
            if model_filter is None or model_filter.matches(model):
                yield model

    def list_models(self, model_filter: ModelFilter | None = None) -> list[Model]:
        """Models matching a filter, in insertion order."""
        return list(self.iter_models(model_filter))

    def list_providers(self) -> list[str]:
        """Distinct provider ids, sorted."""
        return sorted({model.provider_name for model in self._snapshot.models.values()})

    def registered_providers(self) -> list[str]:
        """Providers that have an adapter constructor."""
        return sorted(self._constructors)

    def __len__(self) -> int:
        return len(self._snapshot.order)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        try:
            self.get_model(path)
        except ModelNotFoundError:
            return False
        return True


_DEFAULT_REGISTRY: AdapterRegistry | None = None
_DEFAULT_LOCK = threading.Lock()


def get_default_registry() -> AdapterRegistry:
    """Process-wide registry with the bundled adapters registered."""
    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        with _DEFAULT_LOCK:
            if _DEFAULT_REGISTRY is None:
                from llmadapters.adapters import register_default_adapters

                registry = AdapterRegistry()
                register_default_adapters(registry)
                _DEFAULT_REGISTRY = registry
    return _DEFAULT_REGISTRY
