"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from amiibo_cli.core.query import CollectionStats
from amiibo_cli.models.catalog import (
    PLATFORM_LABELS,
    CollectionItem,
    ItemDetail,
    Region,
)
from amiibo_cli.utils.formatting import format_release_date, format_size

REGION_LABELS = {
    Region.NA: "North America",
    Region.EU: "Europe",
    Region.JP: "Japan",
    Region.AU: "Australia",
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "CatalogUnavailableError": [
            "• Check your internet connection.",
            "• The amiibo API might be temporarily unavailable.",
            "• Once the catalog has been loaded once, it works offline.",
        ],
        "NetworkError": [
            "• A network connection issue occurred.",
            "• Please try again in a few minutes.",
        ],
        "ImportFormatError": [
            "• The file must be a JSON object produced by `amiibo-cli export`.",
            "• Your collection was not changed.",
        ],
        "CorruptTokenError": [
            "• The share link may have been truncated when copied.",
        ],
        "TokenSchemaError": [
            "• The share link was not created by amiibo-cli.",
        ],
        "ReadOnlyCollectionError": [
            "• Drop the --shared option to edit your own collection.",
        ],
        "UnknownItemError": [
            "• Use `amiibo-cli list --search <name>` to find an identifier.",
        ],
        "NothingToShareError": [
            "• Mark figures as owned with `amiibo-cli own <identifier>`.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `amiibo-cli init --force` to write a fresh one.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        content += f"{key} = {value or '[dim](not set)[/dim]'}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_collection_table(
    items: list[CollectionItem], title: str, shared: bool = False
):
    """Displays the collection as a table, one row per figure."""
    console = Console()
    table = Table(title=title, box=box.ROUNDED, show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Series")
    table.add_column("Type")
    table.add_column("Owned", justify="center")
    if not shared:
        table.add_column("★", justify="center")

    for item in items:
        row = [
            item.identifier,
            escape(item.display_name),
            escape(item.game_series),
            escape(item.type),
            "[green]✓[/green]" if item.owned else "[dim]·[/dim]",
        ]
        if not shared:
            row.append("[yellow]★[/yellow]" if item.favorite else "")
        table.add_row(*row)

    if not items:
        console.print("[yellow]No amiibo match these filters.[/yellow]")
        return
    console.print(table)


def print_detail_panel(item: CollectionItem, detail: ItemDetail | None):
    """Displays a figure with its release dates and compatible games."""
    console = Console()
    header = Table.grid(padding=(0, 2))
    header.add_column(style="bold cyan")
    header.add_column()
    header.add_row("Character:", escape(item.character))
    header.add_row("Game Series:", escape(item.game_series))
    header.add_row("Amiibo Series:", escape(item.amiibo_series))
    header.add_row("Type:", escape(item.type))
    header.add_row("Image:", f"[dim]{escape(item.image_url)}[/dim]")
    status = []
    if item.owned:
        status.append("[green]Owned[/green]")
    if item.favorite:
        status.append("[yellow]Favorite[/yellow]")
    header.add_row("Status:", ", ".join(status) or "[dim]Not owned[/dim]")

    content = Table.grid(padding=(1, 0))
    content.add_row(header)

    if detail is None:
        content.add_row(Text("No details found for this amiibo.", style="yellow"))
    else:
        releases = Table(title="Release Dates", box=box.SIMPLE, title_justify="left")
        releases.add_column("Region")
        releases.add_column("Date")
        for region, label in REGION_LABELS.items():
            if region in detail.release_dates:
                releases.add_row(label, format_release_date(detail.release_dates[region]))
        content.add_row(releases)

        for platform, label in PLATFORM_LABELS.items():
            games = detail.compatible_games.get(platform)
            if not games:
                continue
            games_table = Table(
                title=f"{label} ({len(games)})", box=box.SIMPLE, title_justify="left"
            )
            games_table.add_column("Game", style="bold")
            games_table.add_column("Usage")
            for game in games:
                notes = "\n".join(escape(note) for note in game.usage_notes)
                if game.writes_data:
                    notes += "\n[dim](saves data to the figure)[/dim]"
                games_table.add_row(escape(game.game_name), notes or "[dim]-[/dim]")
            content.add_row(games_table)

    console.print(
        Panel(
            content,
            title=f"[bold]{escape(item.display_name)}[/bold] [dim]{item.identifier}[/dim]",
            border_style="cyan",
            expand=False,
        )
    )


def print_stats_panel(
    stats: CollectionStats,
    series: list[str],
    types: list[str],
    source: str | None,
    store_bytes: int | None = None,
    shared: bool = False,
):
    """Displays collection counts and catalog facets."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Total:", str(stats.total))
    table.add_row(
        "Owned:", f"[green]{stats.owned}[/green] ({stats.completion:.1f}%)"
    )
    if not shared:
        table.add_row("Favorites:", f"[yellow]{stats.favorites}[/yellow]")
    table.add_row("Game Series:", str(len(series)))
    table.add_row("Types:", ", ".join(escape(t) for t in types))
    table.add_row("Catalog Source:", source or "unknown")
    if store_bytes is not None:
        table.add_row("Local Store:", format_size(store_bytes))

    title = "Shared Amiibo Collection" if shared else "Amiibo Collection"
    console.print(Panel(table, title=f"[bold]{title}[/bold]", border_style="cyan", expand=False))
