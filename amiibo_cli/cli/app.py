"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from amiibo_cli import __version__
from amiibo_cli.api.client import AmiiboAPIClient
from amiibo_cli.core.collection_manager import CollectionManager
from amiibo_cli.core.merge import CORRUPT_STATUS_MAP_KEY, STATUS_MAP_KEY
from amiibo_cli.core.query import (
    collection_stats,
    filter_collection,
    unique_series,
    unique_types,
)
from amiibo_cli.core.transfer import DEFAULT_EXPORT_FILENAME
from amiibo_cli.exceptions import AmiiboCliError, UnknownItemError
from amiibo_cli.models.config import AppConfig
from amiibo_cli.storage.config_manager import ConfigManager
from amiibo_cli.storage.store import DurableStore

from .formatters import (
    format_error_with_suggestions,
    print_collection_table,
    print_config,
    print_detail_panel,
    print_stats_panel,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("amiibo_cli")

app = typer.Typer(
    name="amiibo-cli",
    help=(
        "Track, export and share your amiibo collection. Use 'amiibo-cli"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "amiibo-cli"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"

SHARED_OPTION_HELP = "View a shared collection (share link or token) read-only."


def _load_config() -> AppConfig:
    return ConfigManager(CONFIG_FILE).load_config()


def _open_store(config: AppConfig) -> DurableStore:
    return DurableStore(
        Path(config.data_dir),
        max_value_kb=config.max_value_kb,
        quota_kb=config.quota_kb,
    )


def _build_manager(
    config: AppConfig, shared: Optional[str] = None, refresh: bool = False
) -> CollectionManager:
    return CollectionManager(
        _open_store(config),
        AmiiboAPIClient(config.api_base_url),
        shared_token=shared,
        refresh=refresh,
    )


def _open_statuses() -> CollectionManager:
    """A manager with only the status map loaded; the catalog is not needed."""
    manager = _build_manager(_load_config())
    manager.load_statuses()
    return manager


def _run(coro: Coroutine[Any, Any, None]) -> None:
    """Runs a command coroutine, rendering application errors as a panel."""
    try:
        asyncio.run(coro)
    except AmiiboCliError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


def _resolve_identifier(manager: CollectionManager, identifier: str) -> str:
    """Accepts an identifier or an exact display name."""
    if manager.find(identifier) is not None:
        return identifier
    matches = {
        item.identifier
        for item in manager.collection
        if item.display_name.lower() == identifier.lower()
    }
    if len(matches) == 1:
        return matches.pop()
    if matches:
        raise UnknownItemError(
            f"'{identifier}' matches several amiibo: {', '.join(sorted(matches))}."
        )
    raise UnknownItemError(f"No amiibo with identifier or name '{identifier}'.")


def _warn_if_unsaved(manager: CollectionManager) -> None:
    if manager.storage_degraded:
        console.print(
            "[yellow]⚠️  Local storage is full or unavailable; this change is not"
            " saved.[/yellow]"
        )


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
    clear_cache: bool = typer.Option(
        False,
        "--clear-cache",
        help="Clear cached catalog data and exit (your collection is kept).",
    ),
):
    """Amiibo Collection CLI"""
    if version:
        console.print(f"[bold]amiibo-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("amiibo_cli").setLevel(log_level)

    if clear_cache:
        try:
            store = _open_store(_load_config())
        except AmiiboCliError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e
        console.print("[cyan]Clearing cached catalog data...[/cyan]")
        removed = store.clear(keep=[STATUS_MAP_KEY, CORRUPT_STATUS_MAP_KEY])
        console.print(
            f"[green]✓ Cache cleared successfully ({removed} entries removed).[/green]"
        )
        raise typer.Exit()

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[yellow]No config file found, defaults are in use.[/] Run"
                " [cyan]amiibo-cli init[/cyan] to create one."
            )
            raise typer.Exit()
        print_config(CONFIG_FILE, ConfigManager(CONFIG_FILE).read_raw())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    api_url: Optional[str] = typer.Option(
        None, "--api-url", help="Base URL of the amiibo API."
    ),
    share_url: Optional[str] = typer.Option(
        None, "--share-url", help="Page that share links should point to."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Write a configuration file with default or given settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        key: value
        for key, value in {"api_base_url": api_url, "share_base_url": share_url}.items()
        if value is not None
    }
    try:
        # Validate before writing anything
        AppConfig(**settings, config_path=str(CONFIG_DIR), data_dir=str(CONFIG_DIR))
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except ValueError as e:
        console.print(f"[red]✗ Invalid settings: {e}[/red]")
        raise typer.Exit(code=1) from e
    except AmiiboCliError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Next, load the catalog: [cyan]amiibo-cli sync[/cyan]")


@app.command()
def sync(
    force: bool = typer.Option(
        False, "--force", "-f", help="Refetch the catalog even if the cache is fresh."
    ),
):
    """Load the catalog, refreshing the local cache when it is outdated."""

    async def _sync():
        config = _load_config()
        async with _build_manager(config, refresh=force) as manager:
            source = (
                "[green]the amiibo API[/green]"
                if manager.catalog_source == "remote"
                else "[cyan]the local cache[/cyan]"
            )
            console.print(
                f"[green]✓[/green] {len(manager.catalog)} amiibo loaded from {source}."
            )

    _run(_sync())


@app.command(name="list")
def list_command(
    search: str = typer.Option("", "--search", "-s", help="Match name or character."),
    owned: Optional[bool] = typer.Option(
        None, "--owned/--missing", help="Show only owned or only missing figures."
    ),
    favorites: bool = typer.Option(False, "--favorites", help="Show only favorites."),
    series: str = typer.Option("", "--series", help="Filter by game series."),
    item_type: str = typer.Option("", "--type", help="Filter by type (Figure, Card...)."),
    shared: Optional[str] = typer.Option(None, "--shared", help=SHARED_OPTION_HELP),
):
    """List the collection with optional filters."""

    async def _list():
        config = _load_config()
        async with _build_manager(config, shared=shared) as manager:
            # A shared link shows what its owner has
            owned_filter = owned
            if manager.shared_mode and owned_filter is None:
                owned_filter = True
            items = filter_collection(
                manager.collection,
                search=search,
                owned=owned_filter,
                favorite_only=favorites,
                series=series,
                item_type=item_type,
            )
            title = (
                "Shared Amiibo Collection"
                if manager.shared_mode
                else "Nintendo Amiibo Collection"
            )
            print_collection_table(
                items, f"{title} ({len(items)})", shared=manager.shared_mode
            )

    _run(_list())


@app.command()
def detail(
    identifier: str = typer.Argument(..., help="Amiibo identifier (head + tail) or exact name."),
    shared: Optional[str] = typer.Option(None, "--shared", help=SHARED_OPTION_HELP),
):
    """Show release dates and compatible games for one amiibo."""

    async def _detail():
        config = _load_config()
        async with _build_manager(config, shared=shared) as manager:
            item = manager.require(_resolve_identifier(manager, identifier))
            with console.status(f"Loading details for {escape(item.display_name)}..."):
                item_detail = await manager.open_detail(item.identifier)
            print_detail_panel(item, item_detail)

    _run(_detail())


@app.command()
def own(
    identifier: str = typer.Argument(..., help="Amiibo identifier (head + tail) or exact name."),
    preload: bool = typer.Option(
        True, "--preload/--no-preload", help="Cache details for newly owned figures."
    ),
):
    """Toggle whether you own an amiibo."""

    async def _own():
        config = _load_config()
        async with _build_manager(config) as manager:
            item = manager.require(_resolve_identifier(manager, identifier))
            status = manager.toggle_owned(item.identifier)
            name = escape(item.display_name)
            if status.owned:
                console.print(f"[green]✓ {name} marked as owned.[/green]")
                if preload:
                    await manager.preload_detail(item)
            else:
                console.print(f"[yellow]{name} is no longer owned.[/yellow]")
            _warn_if_unsaved(manager)

    _run(_own())


@app.command()
def favorite(
    identifier: str = typer.Argument(..., help="Amiibo identifier (head + tail) or exact name."),
):
    """Toggle whether an amiibo is a favorite."""

    async def _favorite():
        config = _load_config()
        async with _build_manager(config) as manager:
            item = manager.require(_resolve_identifier(manager, identifier))
            status = manager.toggle_favorite(item.identifier)
            name = escape(item.display_name)
            if status.favorite:
                console.print(f"[yellow]★ {name} added to favorites.[/yellow]")
            else:
                console.print(f"{name} removed from favorites.")
            _warn_if_unsaved(manager)

    _run(_favorite())


@app.command()
def stats(
    shared: Optional[str] = typer.Option(None, "--shared", help=SHARED_OPTION_HELP),
):
    """Show collection progress and catalog facets."""

    async def _stats():
        config = _load_config()
        async with _build_manager(config, shared=shared) as manager:
            print_stats_panel(
                collection_stats(manager.collection),
                unique_series(manager.collection),
                unique_types(manager.collection),
                manager.catalog_source,
                store_bytes=manager.store.usage_bytes(),
                shared=manager.shared_mode,
            )

    _run(_stats())


@app.command(name="export")
def export_command(
    path: Path = typer.Argument(  # noqa: B008
        Path(DEFAULT_EXPORT_FILENAME), help="Where to write the export file."
    ),
):
    """Export owned and favorite flags to a JSON file."""
    try:
        manager = _open_statuses()
        count = manager.export_file(path)
    except AmiiboCliError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    except OSError as e:
        console.print(f"[red]✗ Could not write '{path}': {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Exported {count} amiibo to '{path}'.[/green]")


@app.command(name="import")
def import_command(
    path: Path = typer.Argument(..., help="A file created by 'amiibo-cli export'."),  # noqa: B008
    force: bool = typer.Option(
        False, "--force", "-f", help="Replace the collection without asking."
    ),
):
    """Replace your collection with the contents of an export file."""
    if not force and not typer.confirm(
        "Importing replaces your current collection. Continue?"
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    try:
        manager = _open_statuses()
        count = manager.import_file(path)
    except AmiiboCliError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Imported {count} records from '{path}'.[/green]")
    if manager.storage_degraded:
        console.print(
            "[yellow]⚠️  Local storage is full or unavailable; the import is not"
            " saved.[/yellow]"
        )


@app.command()
def share():
    """Print a link that shows your owned amiibo to others."""

    async def _share():
        config = _load_config()
        async with _build_manager(config) as manager:
            url = manager.share_url(config.share_base_url)
            owned_count = sum(1 for item in manager.collection if item.owned)
            console.print(
                f"[green]✓ Share link for {owned_count} owned amiibo:[/green]"
            )
            console.print(url, soft_wrap=True, markup=False, highlight=False)

    _run(_share())

