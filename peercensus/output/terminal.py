"""Rich terminal output for operator-facing messages."""
from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from peercensus.models import Geolocation

console = Console(stderr=True)


def print_archive_notice(enabled: bool) -> None:
    if enabled:
        console.print(
            "[green]Using provided access token to upload recent peers "
            "JSON file at set intervals[/green]"
        )
    else:
        console.print(
            "[yellow]No access token provided. Never uploading recent "
            "peers JSON file[/yellow]"
        )


def print_event_source(name: str) -> None:
    console.print(f"Reading peer events from [bold]{escape(name)}[/bold]")


def print_fatal(message: str) -> None:
    console.print(f"[bold red]{escape(message)}[/bold red]")


def render_geolocation(address: str, geo: Geolocation, out: Console | None = None) -> None:
    """Print one resolved address as a two-column table."""
    out = out or Console()
    if geo.is_empty:
        out.print(f"{escape(address)}: [dim]no geolocation[/dim]")
        return

    table = Table(title=escape(address), show_header=False)
    table.add_column("field", style="bold")
    table.add_column("value")
    for label, value in (
        ("Continent", geo.continent),
        ("Country", geo.country),
        ("Subdivision", geo.subdivision),
        ("City", geo.city),
    ):
        table.add_row(label, value or "-")
    if geo.longitude is not None:
        table.add_row("Longitude", f"{geo.longitude:.6f}")
        table.add_row("Latitude", f"{geo.latitude:.6f}")
    out.print(table)
