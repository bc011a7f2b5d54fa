#!/usr/bin/env python3
"""
Chunked Download CLI

Command-line interface for the chunk server and its download client.

Usage:
    chunkdl serve                    # Serve ./server-files on port 8080
    chunkdl download FILENAME        # Download (and resume) a file
    chunkdl checksum PATH            # SHA-256 of a local file
    chunkdl config                   # Show effective configuration
"""

import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn, DownloadColumn, Progress, TextColumn, TransferSpeedColumn,
)

from . import __version__
from .config import Config, EXAMPLE_CONFIG, load_config
from .exceptions import TransferError
from .file.storage import sha256_file_sync

console = Console()


def setup_logging(verbose: bool = False, level: str = 'INFO'):
    """Configure logging with rich output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


def override(config: Config, **values) -> Config:
    """Apply command-line options that were actually given."""
    given = {k: v for k, v in values.items() if v is not None}
    return dataclasses.replace(config, **given) if given else config


@click.group()
@click.version_option(__version__)
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False, path_type=Path),
              help='JSON config file')
@click.pass_context
def cli(ctx, verbose, config_path):
    """Chunked, resumable file downloads with end-to-end SHA-256 checks."""
    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    setup_logging(verbose, config.log_level)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
@click.option('--host', help='Host to bind to')
@click.option('--port', type=int, help='Port to listen on')
@click.option('--root', 'storage_root', type=click.Path(file_okay=False, path_type=Path),
              help='Directory of files to serve')
@click.option('--chunk-size', type=int, help='Chunk size in bytes (clients must match)')
@click.pass_context
def serve(ctx, host, port, storage_root, chunk_size):
    """Start the chunk server."""
    try:
        config = override(ctx.obj['config'], host=host, port=port,
                          storage_root=storage_root, chunk_size=chunk_size)
    except ValueError as e:
        raise click.BadParameter(str(e))

    from .api import create_app_from_config, run_api_server

    console.print(Panel.fit(
        f"[bold green]Chunk Server[/bold green]\n\n"
        f"Storage Root: [blue]{config.storage_root.resolve()}[/blue]\n"
        f"Chunk Size: [yellow]{config.chunk_size:,} bytes[/yellow]\n"
        f"Listening: [cyan]http://{config.host}:{config.port}[/cyan]",
        title="Server Info"
    ))
    console.print(f"[dim]API docs at http://localhost:{config.port}/docs[/dim]\n")

    app = create_app_from_config(config)
    try:
        asyncio.run(run_api_server(app, host=config.host, port=config.port,
                                   log_level=config.log_level.lower()))
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down...[/yellow]")


@cli.command()
@click.argument('filename')
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path),
              help='Output path')
@click.option('--server', 'server_url', help='Server base URL')
@click.option('--chunk-size', type=int, help='Chunk size in bytes (must match server)')
@click.pass_context
def download(ctx, filename, output, server_url, chunk_size):
    """Download FILENAME from the server, resuming any partial download."""
    from .transfer.downloader import ChunkDownloader

    try:
        config = override(ctx.obj['config'], server_url=server_url, chunk_size=chunk_size)
    except ValueError as e:
        raise click.BadParameter(str(e))

    downloader = ChunkDownloader(
        config.server_url,
        chunk_size=config.chunk_size,
        timeout=config.request_timeout,
        max_retries=config.max_retries,
    )

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(f"Downloading {filename}", total=None)

        def update_progress(p):
            progress.update(task, completed=p.bytes_received, total=p.total_size,
                            description=f"{p.phase.capitalize()} {filename}")

        try:
            result = downloader.download(filename, output, update_progress)
        except TransferError as e:
            console.print(f"\n[red]✗ Download failed: {e}[/red]")
            sys.exit(1)
        finally:
            downloader.close()

    console.print(Panel.fit(
        f"[bold green]Download Complete[/bold green]\n\n"
        f"Saved To: [cyan]{result}[/cyan]\n"
        f"Size: [yellow]{result.stat().st_size:,} bytes[/yellow]\n"
        f"SHA-256: [green]{sha256_file_sync(result)}[/green]",
        title="Downloaded File"
    ))


@cli.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def checksum(ctx, path):
    """Print the SHA-256 of a local file."""
    digest = sha256_file_sync(path, ctx.obj['config'].checksum_buffer_size)
    click.echo(f"{digest}  {path}")


@cli.command('config')
@click.option('--example', is_flag=True, help='Print an example config file instead')
@click.pass_context
def show_config(ctx, example):
    """Show the effective configuration."""
    if example:
        click.echo(EXAMPLE_CONFIG.strip())
    else:
        click.echo(json.dumps(ctx.obj['config'].to_dict(), indent=2))


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
