"""
CLI entrypoint for AuraTune.

Commands:
- search: search Spotify tracks and print them as a table.
- top: print the signed-in user's top tracks.
- serve: run the AuraTune web app.

search and top need a Spotify access token, passed with --token or through
AURATUNE_SPOTIFY_ACCESS_TOKEN.
"""

from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table
import uvicorn

from .components import build_track_row
from .models import ActionState, TrackRecord
from .track_actions import get_user_top_items, search_tracks


app = typer.Typer(help="AuraTune – your Spotify listening, curated.")

TOKEN_ENV_VAR = "AURATUNE_SPOTIFY_ACCESS_TOKEN"


def _render_tracks(console: Console, title: str, result: ActionState[List[TrackRecord]]) -> None:
    if not result.is_success:
        console.print(f"[bold red]Spotify error:[/bold red] {result.message}")
        raise typer.Exit(1)

    tracks = result.data or []
    if not tracks:
        console.print(f"[bold yellow]{result.message}[/bold yellow]")
        raise typer.Exit(0)

    table = Table(title=title, show_lines=False)
    table.add_column("#", justify="right", style="cyan", no_wrap=True)
    table.add_column("Track", style="bold")
    table.add_column("Artist", style="magenta")
    table.add_column("Duration", justify="right")

    for idx, track in enumerate(tracks, start=1):
        row = build_track_row(track, idx)
        table.add_row(str(idx), row.name, row.artists, row.duration)

    console.print(table)


@app.command("search")
def search(
    query: str = typer.Argument(..., help="Free-text search, e.g. 'daft punk one more time'"),
    limit: int = typer.Option(10, "--limit", "-n", min=1, max=50, help="Number of results (1–50)."),
    token: Optional[str] = typer.Option(None, "--token", envvar=TOKEN_ENV_VAR, help="Spotify access token."),
) -> None:
    """
    Search Spotify for tracks and render them as a table.
    """
    console = Console()
    with console.status("[bold cyan]Searching Spotify...[/bold cyan]"):
        result = search_tracks(token, query, limit)
    _render_tracks(console, f"AuraTune Search – {query!r}", result)


@app.command("top")
def top(
    time_range: str = typer.Option(
        "medium_term",
        "--time-range",
        "-r",
        help="short_term (~4 weeks), medium_term (~6 months) or long_term (years).",
    ),
    limit: int = typer.Option(10, "--limit", "-n", min=1, max=50, help="Number of tracks (1–50)."),
    token: Optional[str] = typer.Option(None, "--token", envvar=TOKEN_ENV_VAR, help="Spotify access token."),
) -> None:
    """
    Show your most played tracks.
    """
    console = Console()
    with console.status("[bold cyan]Fetching your top tracks...[/bold cyan]"):
        result = get_user_top_items(token, "tracks", time_range, limit)
    _render_tracks(console, f"AuraTune Top Tracks – {time_range}", result)


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind the AuraTune server to."),
    port: int = typer.Option(8000, help="Port to bind the AuraTune server to."),
    reload: bool = typer.Option(False, help="Enable auto-reload (development only)."),
) -> None:
    """
    Run the AuraTune web app.

    Example:
        auratune serve --host 0.0.0.0 --port 8000
    """
    uvicorn.run(
        "auratune.api:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
