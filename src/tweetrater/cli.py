"""CLI entry point for tweetrater."""

import asyncio
from pathlib import Path
from typing import Dict, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from tweetrater.config import ConfigManager
from tweetrater.llm.model_catalog import ModelCatalog, format_model_label, is_vision_model
from tweetrater.llm.transport import CompletionTransport
from tweetrater.models.config import Config
from tweetrater.models.item import Item
from tweetrater.services.allow_list import AllowList
from tweetrater.services.exceptions import RatingError
from tweetrater.services.feed import FeedExtractor, load_items
from tweetrater.services.filtering import is_visible
from tweetrater.services.kv_store import JsonFileStore
from tweetrater.services.pipeline import PipelineService
from tweetrater.services.result_cache import ResultCache
from tweetrater.utils.logging import LOG_LEVELS, configure_logging, get_logger


logger = get_logger(__name__)
console = Console()


def load_config() -> Config:
    """
    Load configuration from ~/.config/tweetrater/config.yaml plus environment.

    Raises:
        click.ClickException: If config has invalid permissions or fails validation
    """
    try:
        return ConfigManager.load_default().config
    except PermissionError as e:
        raise click.ClickException(str(e))
    except ValueError as e:
        raise click.ClickException(f"Configuration validation failed:\n{e}")


def open_store(config: Config) -> JsonFileStore:
    path = config.storage.resolved_path
    try:
        return JsonFileStore(path)
    except ValueError as e:
        logger.error("store_load_error", path=str(path), error=str(e))
        raise click.ClickException(f"Cannot read store at {path}: {e}")


class IndicatorBoard:
    """Presentation that keeps the latest indicator of every item."""

    def __init__(self):
        self.indicators: Dict[str, Tuple[Optional[int], str, str]] = {}

    def on_indicator_update(self, item_id: str, score: Optional[int], status: str, description: str) -> None:
        self.indicators[item_id] = (score, status, description)
        logger.debug("indicator_updated", item_id=item_id, score=score, status=status)


@click.group()
@click.version_option(version="0.1.0", prog_name="tweetrater")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Log file verbosity (overrides TWEETRATER_LOG_LEVEL)",
)
def cli(log_level: Optional[str]):
    """tweetrater: Rate short posts for quality with an LLM and filter out the low scorers."""
    configure_logging(log_level)


@cli.command()
@click.argument("items_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--stream/--no-stream", default=None, help="Consume responses incrementally (overrides config)")
@click.option("--threshold", type=click.IntRange(0, 10), default=None, help="Hide items scoring below this")
def rate(items_file: Path, stream: Optional[bool], threshold: Optional[int]):
    """
    Rate every item in a JSON lines file.

    Items are discovered in file order, as a feed would reveal them.

    Examples:
        tweetrater rate feed.jsonl
        tweetrater rate feed.jsonl --stream --threshold 5
    """
    config = load_config()
    if stream is not None:
        config = config.model_copy(update={"pipeline": config.pipeline.model_copy(update={"streaming": stream})})
    if threshold is None:
        threshold = config.pipeline.filter_threshold

    if not config.api.api_key:
        raise click.ClickException(
            "No API key configured. Set api.api_key in the config file or TWEETRATER_API_KEY."
        )

    try:
        items = load_items(items_file)
    except ValueError as e:
        raise click.ClickException(str(e))

    logger.info("rate_command_started", path=str(items_file), items=len(items), streaming=config.pipeline.streaming)

    store = open_store(config)
    board = IndicatorBoard()
    extractor = FeedExtractor()

    async def run_pipeline():
        pipeline = PipelineService(config, store, extractor, board, transport=CompletionTransport(config.api))
        await pipeline.start()
        for item in items:
            extractor.reveal(item)
            await pipeline.discover(item)
        await pipeline.aclose()

    with console.status("[bold green]Rating items..."):
        asyncio.run(run_pipeline())

    _display_ratings(items, board, threshold)
    logger.info("rate_command_completed", items=len(items))


def _display_ratings(items: list[Item], board: IndicatorBoard, threshold: int) -> None:
    table = Table(title=f"Ratings (threshold {threshold})")
    table.add_column("Item")
    table.add_column("Author")
    table.add_column("Score", justify="right")
    table.add_column("Status")
    table.add_column("Visible")

    hidden = 0
    for item in items:
        score, status, _ = board.indicators.get(item.item_id, (None, "unseen", ""))
        visible = is_visible(score, status, threshold)
        hidden += 0 if visible else 1
        table.add_row(
            item.item_id,
            f"@{item.author_handle}" if item.author_handle else "",
            "-" if score is None else str(score),
            status,
            "yes" if visible else "[red]no[/red]",
        )

    console.print(table)
    console.print(f"{len(items) - hidden} visible, {hidden} hidden")


@cli.command()
@click.option("--vision-only", is_flag=True, help="Only list models that accept image input")
def models(vision_only: bool):
    """List models available from the provider, in the configured sort order."""
    config = load_config()
    catalog = ModelCatalog(CompletionTransport(config.api), config.api.api_key, config.model.sort_order)

    try:
        found = asyncio.run(catalog.refresh())
    except RatingError as e:
        logger.error("models_command_failed", error=str(e))
        raise click.ClickException(f"Failed to fetch models: {e}")

    if vision_only:
        found = [model for model in found if is_vision_model(model)]

    if not found:
        click.echo("No models found.")
        return

    for model in found:
        click.echo(format_model_label(model))


@cli.group()
def cache():
    """Inspect or clear cached ratings."""


@cache.command("stats")
def cache_stats():
    """Show how many ratings are cached."""
    config = load_config()
    result_cache = ResultCache(open_store(config))
    result_cache.load()
    stats = result_cache.stats()
    click.echo(f"Cached ratings: {stats['total']}")
    click.echo(f"  finalized: {stats['finalized']}")
    click.echo(f"  streaming: {stats['streaming']}")


@cache.command("clear")
@click.confirmation_option(prompt="Clear all cached ratings?")
def cache_clear():
    """Remove every cached rating."""
    config = load_config()
    result_cache = ResultCache(open_store(config))
    result_cache.load()
    removed = result_cache.clear()
    click.echo(f"Cleared {removed} cached rating(s)")


@cli.group()
def allow():
    """Manage authors whose items always get the maximum score."""


@allow.command("list")
def allow_list():
    """Show allow-listed handles."""
    handles = AllowList(open_store(load_config())).handles
    if not handles:
        click.echo("Allow-list is empty.")
        return
    for handle in handles:
        click.echo(f"@{handle}")


@allow.command("add")
@click.argument("handle")
def allow_add(handle: str):
    """Add HANDLE to the allow-list."""
    if AllowList(open_store(load_config())).add(handle):
        click.echo(f"Added @{handle.lstrip('@')}")
    else:
        click.echo(f"@{handle.lstrip('@')} is already allow-listed")


@allow.command("remove")
@click.argument("handle")
def allow_remove(handle: str):
    """Remove HANDLE from the allow-list."""
    if AllowList(open_store(load_config())).remove(handle):
        click.echo(f"Removed @{handle.lstrip('@')}")
    else:
        raise click.ClickException(f"@{handle.lstrip('@')} is not allow-listed")


def main():
    """Main entry point for setuptools console script."""
    cli()


if __name__ == "__main__":
    main()
