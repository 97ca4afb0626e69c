"""CLI entry point for the catalog filter sync tools.

Provides commands:
  - decode: Show the filters a storefront query string selects
  - encode: Build the query string for a JSON filter description
  - canonicalize: Rewrite a query string in canonical form
  - tui: Launch the interactive storefront with a synced address bar
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from catalogsync.codec import canonicalize, decode, encode_query
from catalogsync.config import ConfigError, load_config
from catalogsync.models import FilterState

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Catalog filter sync - encode, decode and browse storefront filter URLs",
    rich_markup_mode="rich",
)
console = Console()


def _query_part(query: str) -> str:
    """Accept a full URL or a bare query string."""
    if "?" in query:
        return query.split("?", 1)[1]
    return query


@app.command(name="decode")
def decode_cmd(
    query: Annotated[
        str,
        typer.Argument(help="Query string or URL, e.g. '/shop?categories=fruits&rating=4'"),
    ],
    as_json: Annotated[
        bool,
        typer.Option("--json", "-j", help="Print the filters as JSON instead of a table"),
    ] = False,
) -> None:
    """Show the filters selected by a storefront query string.

    Invalid or missing values fall back to their defaults, exactly as the
    storefront does when a shared link is opened.

    Examples:

    \\b
      catalogsync decode 'categories=fruits,dairy&minPrice=10&maxPrice=50'
      catalogsync decode --json '/shop?organic=true'
    """
    state = decode(_query_part(query))
    logger.debug("decoded query %r -> %s", query, state.summary())

    if as_json:
        typer.echo(json.dumps(state.to_dict(), indent=2, ensure_ascii=False))
        return

    table = Table(title="Filters", show_header=True)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value")
    for field, value in state.to_dict().items():
        table.add_row(field, json.dumps(value, ensure_ascii=False))
    console.print(table)
    console.print(f"\n[dim]{state.summary()}[/dim]")


@app.command(name="encode")
def encode_cmd(
    source: Annotated[
        str,
        typer.Argument(help="JSON file with filter fields, or '-' for stdin"),
    ] = "-",
    url: Annotated[
        bool,
        typer.Option("--url", "-u", help="Print a full address including the base path"),
    ] = False,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to a JSON config file"),
    ] = None,
) -> None:
    """Build the query string for a JSON filter description.

    The JSON object uses the field names printed by [bold]decode --json[/bold];
    missing fields take their defaults.

    Examples:

    \\b
      echo '{"categories": ["fruits"], "rating": 4}' | catalogsync encode
      catalogsync encode filters.json --url
    """
    try:
        if source == "-":
            raw = sys.stdin.read()
        else:
            raw = Path(source).read_text(encoding="utf-8")
        data = json.loads(raw)
    except OSError as e:
        console.print(f"[red]Error:[/red] cannot read {source}: {e}")
        raise typer.Exit(code=1)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] invalid JSON: {e}")
        raise typer.Exit(code=1)

    if not isinstance(data, dict):
        console.print("[red]Error:[/red] expected a JSON object of filter fields")
        raise typer.Exit(code=1)

    try:
        state = FilterState.from_dict(data)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    query = encode_query(state)
    if url:
        try:
            config = load_config(config_path)
        except ConfigError as e:
            console.print(f"[red]Config error:[/red] {e}")
            raise typer.Exit(code=1)
        typer.echo(f"{config.base_path}?{query}" if query else config.base_path)
    else:
        typer.echo(query)


@app.command(name="canonicalize")
def canonicalize_cmd(
    query: Annotated[
        str,
        typer.Argument(help="Query string or URL to rewrite"),
    ],
) -> None:
    """Rewrite a query string in canonical form.

    Defaults are dropped, list values sorted and unknown keys removed, so two
    links that select the same products canonicalize to the same string.
    """
    typer.echo(canonicalize(_query_part(query)))


@app.command()
def tui(
    query: Annotated[
        str,
        typer.Argument(help="Query string present at first load"),
    ] = "",
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to a JSON config file"),
    ] = None,
) -> None:
    """Launch the interactive storefront with a synced address bar."""
    from catalogsync.tui import run_tui

    try:
        config = load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(code=1)

    run_tui(_query_part(query), config=config)
