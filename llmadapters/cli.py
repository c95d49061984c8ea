"""CLI tool for browsing a model catalog.

Loads a catalog snapshot (models.dev ``api.json`` shape) into a registry
and prints what it resolves to:

    llmadapters models api.json --provider openai --vision
    llmadapters show api.json openai/openai/gpt-4o-mini
    llmadapters providers api.json
"""

import argparse
import logging
import sys

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from llmadapters.capabilities import Model, ModelFilter
from llmadapters.catalog import load_catalog
from llmadapters.cost import TOKENS_PER_MILLION
from llmadapters.errors import AdapterError
from llmadapters.registry import AdapterRegistry

logger = logging.getLogger(__name__)


def build_registry(catalog_path: str) -> AdapterRegistry:
    """Create a registry populated from a catalog file."""
    catalog = load_catalog(catalog_path)
    logger.info("Loaded %d models from %s", catalog.model_count(), catalog_path)
    registry = AdapterRegistry()
    registry.populate(catalog)
    return registry


def build_filter(args: argparse.Namespace) -> ModelFilter:
    """Translate CLI flags into a ModelFilter."""
    return ModelFilter(
        supports_streaming=args.streaming,
        supports_vision=args.vision,
        supports_tools=args.tools,
        provider=args.provider,
        vendor=args.vendor,
    )


def _per_million(rate: float) -> str:
    return f"${rate * TOKENS_PER_MILLION:.2f}"


def print_models(console: Console, models: list[Model], limit: int | None = None) -> None:
    """Print a table of models."""
    table = Table(title=f"{len(models)} model(s)")
    table.add_column("Path", style="bold")
    table.add_column("Context", justify="right")
    table.add_column("Prompt /1M", justify="right")
    table.add_column("Completion /1M", justify="right")
    table.add_column("Vision")
    table.add_column("Tools")

    shown = models[:limit] if limit else models
    for model in shown:
        table.add_row(
            model.path,
            f"{model.context_length:,}",
            _per_million(model.cost.prompt),
            _per_million(model.cost.completion),
            "yes" if model.capabilities.supports_vision else "",
            "yes" if model.capabilities.supports_tools else "",
        )
    console.print(table)


def print_model(console: Console, model: Model) -> None:
    """Print one model's details and capabilities."""
    console.print(f"[bold]{model.path}[/bold]")
    console.print(f"  Provider: {model.provider_name}")
    console.print(f"  Vendor: {model.vendor_name}")
    console.print(f"  Context: {model.context_length:,} tokens")
    if model.completion_length:
        console.print(f"  Max completion: {model.completion_length:,} tokens")
    console.print(
        f"  Cost: {_per_million(model.cost.prompt)} prompt / "
        f"{_per_million(model.cost.completion)} completion per 1M tokens"
    )
    for tier in model.cost.prompt_tiers:
        console.print(f"    from {tier.threshold:,} prompt tokens: {_per_million(tier.rate)} prompt")
    if model.knowledge_cutoff:
        console.print(f"  Knowledge cutoff: {model.knowledge_cutoff}")

    table = Table(title="Capabilities")
    table.add_column("Flag")
    table.add_column("Value")
    for name, value in model.capabilities.to_dict().items():
        table.add_row(name, "[green]true[/green]" if value else "[red]false[/red]")
    console.print(table)

    props = model.properties
    console.print(f"  Open source: {props.open_source}")
    console.print(f"  GDPR compliant: {props.gdpr_compliant}")
    console.print(f"  Reasoning: {props.reasoning}")


def _add_tristate(parser: argparse.ArgumentParser, name: str, help_text: str) -> None:
    parser.add_argument(f"--{name}", dest=name, action="store_true", default=None, help=help_text)
    parser.add_argument(f"--no-{name}", dest=name, action="store_false", default=None,
                        help=f"Exclude models with {name}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llmadapters",
        description="Browse models and capabilities of an LLM catalog snapshot",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    models = subparsers.add_parser("models", help="List models, optionally filtered")
    models.add_argument("catalog", help="Path to a catalog JSON snapshot")
    models.add_argument("--provider", default=None, help="Only models of this provider")
    models.add_argument("--vendor", default=None, help="Only models of this vendor")
    models.add_argument("--limit", type=int, default=None, help="Show at most N models")
    _add_tristate(models, "vision", "Only models accepting images")
    _add_tristate(models, "tools", "Only models supporting tool calls")
    _add_tristate(models, "streaming", "Only models supporting streaming")

    show = subparsers.add_parser("show", help="Show one model")
    show.add_argument("catalog", help="Path to a catalog JSON snapshot")
    show.add_argument("path", help="Model path (provider/vendor/name or bare name)")

    providers = subparsers.add_parser("providers", help="List providers")
    providers.add_argument("catalog", help="Path to a catalog JSON snapshot")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    console = Console()

    try:
        registry = build_registry(args.catalog)
        if args.command == "models":
            print_models(console, registry.list_models(build_filter(args)), args.limit)
        elif args.command == "show":
            print_model(console, registry.get_model(args.path))
        elif args.command == "providers":
            for provider in registry.list_providers():
                console.print(provider)
    except AdapterError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
