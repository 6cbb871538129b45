"""
Command line interface for the image relay.

Provides commands to run the relay server, publish an image file to a
running relay and watch the live feed from a terminal.

Example:
    imagecast serve --port 8000
    imagecast publish frame.png
    imagecast watch --count 3
"""

import asyncio
import logging
import mimetypes
from pathlib import Path

import httpx
import typer
import websockets
from websockets.exceptions import WebSocketException
from rich.console import Console
from rich.table import Table

from imagecast.constants import PAYLOAD_LOG_PREVIEW_CHARS, VIEWER_WS_PATH
from imagecast.settings import app_settings

typer_app = typer.Typer(
    name="imagecast",
    help="Live image relay - publish images over HTTP, watch them over WebSocket",
    add_completion=False,
)
console = Console()

DEFAULT_URL = f"http://localhost:{app_settings.PORT}"


def _ws_url(base_url: str) -> str:
    """Viewer WebSocket URL for a relay HTTP base URL."""
    base = base_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://") :]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://") :]
    return base + VIEWER_WS_PATH


@typer_app.command(name="serve")
def serve(
    host: str = typer.Option(app_settings.HOST, "--host", help="Bind address"),
    port: int = typer.Option(app_settings.PORT, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(
        False, "--reload", help="Reload on code changes (development)"
    ),
):
    """
    Run the relay server with uvicorn.

    Example:
        imagecast serve --host 127.0.0.1 --port 9000
    """
    import uvicorn

    from imagecast.uvicorn_filters import ExcludeMetricsFilter

    logging.getLogger("uvicorn.access").addFilter(ExcludeMetricsFilter())

    uvicorn.run(
        "imagecast:application",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@typer_app.command(name="publish")
def publish(
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="Image file"
    ),
    url: str = typer.Option(DEFAULT_URL, "--url", "-u", help="Relay base URL"),
    timeout: float = typer.Option(10.0, "--timeout", help="Request timeout"),
):
    """
    Publish an image file to a running relay.

    Files with a known image type are sent as raw bytes; anything else is
    sent as text (for example a prepared data URL).

    Example:
        imagecast publish frame.png --url http://relay:8000
    """
    content_type, _ = mimetypes.guess_type(file.name)
    if not content_type or not content_type.startswith("image/"):
        content_type = "text/plain; charset=utf-8"

    try:
        response = httpx.post(
            f"{url.rstrip('/')}/api/image",
            content=file.read_bytes(),
            headers={"Content-Type": content_type},
            timeout=timeout,
        )
    except httpx.HTTPError as e:
        console.print(f"[red]✗ Could not reach relay at {url}:[/red] {e}")
        raise typer.Exit(code=1)

    if response.status_code != 200:
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        console.print(
            f"[red]✗ Publish rejected ({response.status_code}):[/red] {detail}"
        )
        raise typer.Exit(code=1)

    ack = response.json()
    table = Table("Field", "Value", title=f"Published {file.name}")
    table.add_row("Sequence", str(ack["sequence"]))
    table.add_row("Delivered", str(ack["delivered"]))
    table.add_row("Pruned", str(ack["pruned"]))
    table.add_row("Published at", str(ack["published_at"]))
    console.print(table)


async def _watch(ws_url: str, count: int) -> int:
    received = 0
    async with websockets.connect(ws_url, max_size=None) as websocket:
        console.print(f"[green]✓ Connected to {ws_url}[/green]")
        async for message in websocket:
            received += 1
            size = len(message.encode("utf-8") if isinstance(message, str) else message)
            preview = message[:PAYLOAD_LOG_PREVIEW_CHARS]
            console.print(f"← Image {received}: {size} bytes ({preview!r}...)")
            if count and received >= count:
                break
    return received


@typer_app.command(name="watch")
def watch(
    url: str = typer.Option(DEFAULT_URL, "--url", "-u", help="Relay base URL"),
    count: int = typer.Option(
        0, "--count", "-n", help="Stop after this many images (0 = forever)"
    ),
):
    """
    Connect as a viewer and print every received image.

    Example:
        imagecast watch --count 1
    """
    try:
        asyncio.run(_watch(_ws_url(url), count))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled[/yellow]")
    except (OSError, WebSocketException) as e:
        console.print(f"[red]✗ Connection to {url} failed:[/red] {e}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    typer_app()
