"""Command-line front end for wedding card uploads."""

from __future__ import annotations

import asyncio
import mimetypes
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from common.config import settings

from .cache import build_image_cache
from .client import WeddingCardClient
from .errors import WeddingCardError
from .media import SelectedFile, decode_data_url
from .selection import MessageLevel, SelectionStateMachine, StatusMessage
from .session import OptimizationSession
from .styles import load_style_catalog

console = Console()
app = typer.Typer(help="Optimize and upload wedding guest photos.")
cache_app = typer.Typer(help="Inspect the local optimized-image cache.")
app.add_typer(cache_app, name="cache")


def _print_message(message: Optional[StatusMessage]) -> None:
    if message is None:
        return
    style = "green" if message.level == MessageLevel.SUCCESS else "red"
    console.print(f"[{style}]{message.text}[/{style}]")


def _format_timestamp(value: Optional[int]) -> str:
    if not value:
        return "-"
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _output_path(source: Path, style: int, media_type: str) -> Path:
    extension = mimetypes.guess_extension(media_type) or ".png"
    return source.with_name(f"{source.stem}_optimized_style{style}{extension}")


@app.command()
def styles() -> None:
    """List the available image styles."""
    catalog = load_style_catalog()
    table = Table(title="Image styles")
    table.add_column("Index", justify="right")
    table.add_column("Name")
    table.add_column("Default")
    for index, style in enumerate(catalog):
        table.add_row(str(index), style.name or "-", "yes" if style.default else "")
    console.print(table)


async def _send(path: Path, optimize: bool, style: int, api_url: Optional[str]) -> None:
    cache = build_image_cache()
    try:
        async with WeddingCardClient(api_url) as client:
            session = OptimizationSession(client, cache)
            machine = SelectionStateMachine(session, style=style)

            if not await machine.select_file(SelectedFile.from_path(path)):
                _print_message(machine.state.message)
                raise typer.Exit(1)

            if optimize:
                with console.status("Optimizing photo..."):
                    await machine.set_optimize(True)
                if not machine.state.optimize_on:
                    _print_message(machine.state.message)
                    raise typer.Exit(1)
                variant = machine.state.displayed
                source = "cache" if variant is not None and variant.from_cache else "server"
                console.print(f"Optimized with style {style} ({source})")

            with console.status("Uploading..."):
                result = await machine.submit()
            _print_message(machine.state.message)
            await session.drain()
            if result is None:
                raise typer.Exit(1)
            if result.file_link:
                console.print(f"File: {result.file_link}")
    finally:
        await cache.close()


@app.command()
def send(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Photo to upload"),
    optimize: bool = typer.Option(False, "--optimize/--no-optimize", help="Restyle before uploading"),
    style: int = typer.Option(0, "--style", "-s", min=0, help="Style index (see `styles`)"),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="Server base URL"),
) -> None:
    """Select a photo, optionally optimize it, and upload it."""
    asyncio.run(_send(path, optimize, style, api_url))


async def _optimize(path: Path, style: int, output: Optional[Path], api_url: Optional[str]) -> Path:
    file = SelectedFile.from_path(path)
    cache = build_image_cache()
    try:
        async with WeddingCardClient(api_url) as client:
            session = OptimizationSession(client, cache)
            with console.status("Optimizing photo..."):
                variant = await session.request_optimized(file, style)
            await session.drain()
    finally:
        await cache.close()

    data, media_type = decode_data_url(variant.data_url)
    target = output or _output_path(path, style, media_type)
    target.write_bytes(data)
    return target


@app.command()
def optimize(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    style: int = typer.Option(0, "--style", "-s", min=0),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Where to write the result"),
    api_url: Optional[str] = typer.Option(None, "--api-url"),
) -> None:
    """Optimize a photo without uploading it (served from cache when possible)."""
    try:
        target = asyncio.run(_optimize(path, style, output, api_url))
    except WeddingCardError as exc:
        console.print(f"[red]Optimization failed: {exc.message}[/red]")
        raise typer.Exit(1)
    console.print(f"Saved {target}")


async def _dump():
    cache = build_image_cache()
    try:
        return await cache.dump()
    finally:
        await cache.close()


@cache_app.command("list")
def cache_list() -> None:
    """Show every cached optimized image."""
    entries = asyncio.run(_dump())
    if not entries:
        console.print(f"No cached images in {settings.cache_path}")
        return
    table = Table(title="Cached images")
    table.add_column("Key")
    table.add_column("Style", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Stored (UTC)")
    for entry in entries:
        table.add_row(
            entry.key,
            "-" if entry.style is None else str(entry.style),
            f"{len(entry.data) / 1024:.1f} KiB",
            _format_timestamp(entry.timestamp),
        )
    console.print(table)


async def _lookup(name: str, style: int) -> Optional[str]:
    cache = build_image_cache()
    try:
        return await cache.get(name, style)
    finally:
        await cache.close()


@cache_app.command("get")
def cache_get(
    name: str = typer.Argument(..., help="Original file name"),
    style: int = typer.Argument(..., min=0),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
) -> None:
    """Look up one cached image by file name and style."""
    data_url = asyncio.run(_lookup(name, style))
    if data_url is None:
        console.print(f"[yellow]Not cached: {name} (style {style})[/yellow]")
        raise typer.Exit(1)
    try:
        data, media_type = decode_data_url(data_url)
    except WeddingCardError as exc:
        console.print(f"[red]Cached entry for {name} (style {style}) is unreadable: {exc.message}[/red]")
        raise typer.Exit(1)
    console.print(f"{name} (style {style}): {media_type}, {len(data)} bytes")
    if output is not None:
        output.write_bytes(data)
        console.print(f"Saved {output}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
) -> None:
    """Run the HTTP API."""
    if host:
        settings.host = host
    if port:
        settings.port = port

    from .server.app import run

    run()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
