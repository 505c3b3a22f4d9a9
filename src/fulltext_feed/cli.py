"""Command-line entry points for the full-text feed relay."""

import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from .config import get_settings
from .errors import FeedError, InvalidRequest, SerializationError
from .observability import configure_logging
from .relay import build_window, normalize_feed_url, relay_feed

app = typer.Typer(help="Serve or run the full-text feed relay.")
console = Console(stderr=True)


def _export_setting(name: str, value: object) -> None:
    """Hand a CLI override to the server process through its settings env."""
    os.environ[f"FULLTEXT_FEED_{name.upper()}"] = str(value)


@app.command("serve")
def serve_command(
    ip: Optional[str] = typer.Option(None, "--ip", help="IP to listen on."),
    port: Optional[int] = typer.Option(None, "--port", help="Port to listen on."),
    items_cap: Optional[int] = typer.Option(
        None,
        "--items-cap",
        help="Max last items per feed to process when a request does not say.",
    ),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
):
    """
    Run the HTTP service.
    """
    import uvicorn

    settings = get_settings()
    if items_cap is not None:
        if items_cap < 1:
            raise typer.BadParameter("items-cap must be >= 1.")
        if items_cap > settings.max_items_cap:
            raise typer.BadParameter(
                f"items-cap must not exceed {settings.max_items_cap}."
            )
        _export_setting("items_cap", items_cap)

    address_ip = ip or settings.ip
    address_port = port or settings.port
    console.print(f"[cyan]Starting the server on {address_ip}:{address_port}[/cyan]")
    uvicorn.run(
        "fulltext_feed.server:app",
        host=address_ip,
        port=address_port,
        reload=reload,
    )


@app.command("relay")
def relay_command(
    feed: str = typer.Argument(
        ..., help="Feed URL without the schema, e.g. news.ycombinator.com/rss."
    ),
    from_time: Optional[str] = typer.Option(
        None,
        "--from-time",
        help="Only enrich items newer than this UTC time (YYYY-MM-DDTHH:MM:SSZ).",
    ),
    items_cap: Optional[int] = typer.Option(
        None, "--items-cap", help="Enrich at most this many items."
    ),
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "-o",
        help="Optional path to write the feed to. Defaults to stdout.",
    ),
):
    """
    Fetch one feed, enrich it, and print the result.
    """
    settings = get_settings()
    configure_logging(settings.log_level, json=settings.log_json)

    try:
        feed_url = normalize_feed_url(feed.split("://", 1)[-1])
        window = build_window(
            from_time,
            str(items_cap) if items_cap is not None else None,
            settings,
        )
    except InvalidRequest as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        result = relay_feed(feed_url, window, settings=settings)
    except (FeedError, SerializationError) as exc:
        console.print(f"[red]Failed {feed_url}: {exc}[/red]")
        raise typer.Exit(code=1)

    report = result.report
    console.print(
        f"[green]{result.feed.format.value} feed with {len(result.feed.items)} items; "
        f"{report.enriched} enriched, {report.failed} failed.[/green]"
    )
    if out:
        out.write_bytes(result.body)
        console.print(f"[cyan]Wrote output to {out}[/cyan]")
    else:
        typer.echo(result.body.decode("utf-8"))


def main():
    app()


if __name__ == "__main__":
    main()
