"""
autoframe CLI

Command-line interface for a running autoframe server.

Usage:
    autoframe serve              - Start the API server
    autoframe health             - Check the server and credential
    autoframe generate "text"    - Generate one image now
    autoframe status             - Show scheduler status
    autoframe start / stop       - Run or pause scheduled generation
    autoframe fire               - Scheduled-style generation, right now
    autoframe journal "text"     - Update the journal the scheduler reads
"""
import base64
import os
import sys
from pathlib import Path

import click
import httpx
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from autoframe import __version__

# Load environment variables
load_dotenv()

console = Console()

# API Configuration
API_BASE = os.getenv("API_BASE_URL", "http://localhost:8000")

MIME_SUFFIXES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
}


def _fail(response: httpx.Response) -> None:
    """Print an API error body and exit."""
    try:
        body = response.json()
    except ValueError:
        body = {"error": response.text}
    message = body.get("error", response.reason_phrase)
    console.print(f"[red]✗ {response.status_code}: {message}[/red]")
    if body.get("retryDelaySeconds"):
        console.print(f"[yellow]Retry in {body['retryDelaySeconds']}s[/yellow]")
    sys.exit(1)


def _request(method: str, path: str, **kwargs) -> dict:
    """Call the API, exiting with a readable message on failure."""
    timeout = kwargs.pop("timeout", 10.0)
    try:
        response = httpx.request(method, f"{API_BASE}{path}", timeout=timeout, **kwargs)
    except httpx.HTTPError as e:
        console.print(f"[red]✗ Could not reach {API_BASE}: {e}[/red]")
        sys.exit(1)
    if response.status_code >= 400:
        _fail(response)
    return response.json()


def _read_image(path: Path) -> dict:
    mime_type = {v: k for k, v in MIME_SUFFIXES.items()}.get(path.suffix.lower(), "image/png")
    return {
        "mimeType": mime_type,
        "data": base64.b64encode(path.read_bytes()).decode("utf-8"),
    }


def _print_status(status: dict) -> None:
    table = Table(title="Scheduler", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Phase", status["phase"])
    table.add_row("Interval", f"{status['interval_ms'] // 1000}s")
    table.add_row("Mode", status["provider_mode"])
    table.add_row("Skip if unchanged", "yes" if status["skip_if_unchanged"] else "no")
    if status.get("rate_limited"):
        table.add_row("Rate limited", f"[yellow]resumes in {status['seconds_left']}s[/yellow]")
    elif status.get("seconds_left") is not None:
        table.add_row("Next run", f"in {status['seconds_left']}s")
    if status.get("last_provider_used"):
        table.add_row("Last provider", status["last_provider_used"])
    if status.get("last_error"):
        table.add_row("Last error", f"[red]{status['last_error']}[/red]")

    console.print(table)


@click.group()
@click.version_option(version=__version__, prog_name="autoframe")
def main():
    """
    autoframe - scheduled journal-to-image generation.

    Talks to the server at API_BASE_URL (default http://localhost:8000).
    """
    pass


@main.command()
@click.option("--host", default="127.0.0.1", help="Host to bind")
@click.option("--port", default=8000, help="Port to run server on")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str, port: int, reload: bool):
    """
    Start the autoframe server.

    Example:
        autoframe serve --port 8000
    """
    import uvicorn

    console.print(Panel(
        f"[bold green]Starting autoframe[/bold green]\n\n"
        f"API: [cyan]http://{host}:{port}/api[/cyan]\n\n"
        f"[dim]Press Ctrl+C to stop[/dim]",
        border_style="green"
    ))
    uvicorn.run("autoframe.main:app", host=host, port=port, reload=reload)


@main.command()
def health():
    """Check that the server is up and has a credential."""
    data = _request("GET", "/api/health", timeout=2.0)
    if data.get("hasCredential"):
        console.print("[green]✓ Server up, credential configured[/green]")
    else:
        console.print("[yellow]⚠ Server up, GEMINI_API_KEY missing[/yellow]")
        sys.exit(1)


@main.command()
@click.argument("text")
@click.option("--mode", type=click.Choice(["auto", "gemini", "imagen"]), default="auto", help="Provider mode")
@click.option("--image", "images", multiple=True, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="Reference image (repeatable)")
@click.option("--aspect", default=None, help="Aspect ratio hint, e.g. 16:9")
@click.option("--negative", default=None, help="Things to avoid")
@click.option("--out", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Where to write the image")
def generate(text: str, mode: str, images: tuple, aspect: str, negative: str, out: Path):
    """
    Generate one image from TEXT.

    Example:
        autoframe generate "Lighthouse at dusk" --aspect 16:9 --out dusk.png
    """
    payload = {
        "textContext": text,
        "providerMode": mode,
        "referenceImages": [_read_image(path) for path in images],
    }
    if aspect:
        payload["aspectHint"] = aspect
    if negative:
        payload["negativeHint"] = negative

    with console.status("[cyan]Generating...[/cyan]"):
        data = _request("POST", "/api/generate", json=payload, timeout=120.0)

    out = out or Path("autoframe" + MIME_SUFFIXES.get(data["mimeType"], ".png"))
    out.write_bytes(base64.b64decode(data["data"]))
    console.print(f"[green]✓[/green] Generated by [cyan]{data['providerUsed']}[/cyan] -> {out}")


@main.command()
def status():
    """Show scheduler status."""
    _print_status(_request("GET", "/api/v1/schedule"))


@main.command()
@click.option("--interval", type=click.Choice(["30", "60", "120"]), default=None, help="Interval in seconds")
@click.option("--mode", type=click.Choice(["auto", "gemini", "imagen"]), default=None, help="Provider mode")
def start(interval: str, mode: str):
    """Run scheduled generation."""
    payload: dict = {"running": True}
    if interval:
        payload["intervalMs"] = int(interval) * 1000
    if mode:
        payload["providerMode"] = mode
    _print_status(_request("PATCH", "/api/v1/schedule", json=payload))


@main.command()
def stop():
    """Pause scheduled generation."""
    _print_status(_request("PATCH", "/api/v1/schedule", json={"running": False}))


@main.command()
def fire():
    """Generate now, honouring backoff and Gemini spacing."""
    with console.status("[cyan]Generating...[/cyan]"):
        data = _request("POST", "/api/v1/schedule/fire", timeout=120.0)
    if data["action"] == "fire":
        console.print("[green]✓ Attempt finished[/green]")
    else:
        console.print(f"[yellow]⚠ Not fired ({data['action']}: {data['reason']})[/yellow]")
    _print_status(data["status"])


@main.command()
@click.argument("text")
@click.option("--page", default=None, help="Page to write to (and select)")
def journal(text: str, page: str):
    """Replace the journal text the scheduler reads."""
    payload = {"journal": text}
    if page:
        payload["pageId"] = page
    data = _request("PUT", "/api/v1/schedule/context", json=payload)
    console.print(Panel(data["prompt"], title=f"Prompt ({data['page_id']})", border_style="cyan"))


if __name__ == "__main__":
    main()
