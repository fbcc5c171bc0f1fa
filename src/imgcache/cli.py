"""Click CLI for imgcache — transform images through the disk cache."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from imgcache.config.hierarchy import load_config
from imgcache.config.schema import ImageCacheConfig
from imgcache.errors.exceptions import ImageCacheError
from imgcache.types import ImageFormat, TransformOptions

console = Console()
error_console = Console(stderr=True)

_FORMAT_CHOICES = [f.value for f in ImageFormat] + ["jpg"]


def _setup_logging(verbosity: int, default_level: str = "WARNING") -> None:
    """Configure logging based on verbosity level."""
    level = logging.getLevelName(default_level.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_time=False, show_path=False)],
    )


def _load(cache_dir: str | None) -> ImageCacheConfig:
    try:
        return load_config(cache_path=cache_dir)
    except ImageCacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def _transform_options(f):
    """Shared --width/--height/--quality/--format options."""
    f = click.option("-f", "--format", "fmt", type=click.Choice(_FORMAT_CHOICES,
                     case_sensitive=False), default=None, help="Output format.")(f)
    f = click.option("-q", "--quality", type=int, default=None, help="Encoder quality (1-100).")(f)
    f = click.option("--height", type=int, default=None, help="Max height (0 = unconstrained).")(f)
    f = click.option("--width", type=int, default=None, help="Max width (0 = unconstrained).")(f)
    return f


@click.group()
@click.version_option(package_name="imgcache")
def cli() -> None:
    """imgcache — cached image resizing and re-encoding."""


@cli.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--output", type=click.Path(dir_okay=False), required=True,
              help="Output file path.")
@_transform_options
@click.option("--accept", type=str, default=None,
              help="Accept header to negotiate the format when --format is not given.")
@click.option("--stream", is_flag=True, default=False,
              help="Use the streaming pipeline (bypasses the cache).")
@click.option("--cache-dir", type=click.Path(file_okay=False), default=None,
              help="Cache root directory.")
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug).")
def convert(
    source: str,
    output: str,
    width: int | None,
    height: int | None,
    quality: int | None,
    fmt: str | None,
    accept: str | None,
    stream: bool,
    cache_dir: str | None,
    verbose: int,
) -> None:
    """Transform SOURCE and write the result to OUTPUT."""
    config = _load(cache_dir)
    _setup_logging(verbose, config.log_level)

    from imgcache.negotiate import pick_format
    from imgcache.optimizer import ImageOptimizer

    if fmt is None and accept is not None:
        fmt = pick_format(accept).value

    optimizer = ImageOptimizer.from_config(config)
    options = {"width": width, "height": height, "quality": quality, "format": fmt}

    async def _run() -> tuple[str, int, bool | None]:
        try:
            if stream:
                streamed = optimizer.open_transformed_stream(source, options)
                size = 0
                with open(output, "wb") as f:
                    async for chunk in streamed.stream:
                        f.write(chunk)
                        size += len(chunk)
                return streamed.content_type, size, None
            result = await optimizer.get_transformed(source, options)
            Path(output).write_bytes(result.data)
            return result.content_type, result.size_bytes, result.cached
        finally:
            await optimizer.close()

    try:
        content_type, size, cached = asyncio.run(_run())
    except (ImageCacheError, OSError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    console.print(f"[green]Written to {output}[/green] ({content_type}, {size:,} bytes)")

    if verbose >= 1:
        _print_summary(optimizer.resolve(options), content_type, cached, optimizer.cache.root)


def _print_summary(
    options: TransformOptions, content_type: str, cached: bool | None, cache_root: Path
) -> None:
    error_console.print()
    table = Table(title="Transform Summary", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Width", str(options.width or "-"))
    table.add_row("Height", str(options.height or "-"))
    table.add_row("Quality", str(options.quality))
    table.add_row("Content type", content_type)
    if cached is None:
        table.add_row("Cache", "bypassed (stream)")
    else:
        table.add_row("Cache", "hit" if cached else "miss")
    table.add_row("Cache root", str(cache_root))

    error_console.print(table)


@cli.command("key")
@click.argument("source", type=click.Path())
@_transform_options
@click.option("--cache-dir", type=click.Path(file_okay=False), default=None,
              help="Cache root directory.")
def show_key(
    source: str,
    width: int | None,
    height: int | None,
    quality: int | None,
    fmt: str | None,
    cache_dir: str | None,
) -> None:
    """Print the cache key and entry path for SOURCE."""
    from imgcache.cache.disk import DiskImageCache

    config = _load(cache_dir)
    disk = DiskImageCache(config.cache_path, defaults=config.default_options())
    options = {"width": width, "height": height, "quality": quality, "format": fmt}

    try:
        key = disk.key_for(source, options)
    except ImageCacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    console.print(key, highlight=False)
    console.print(str(disk.root / key), highlight=False)


@cli.group()
def cache() -> None:
    """Cache management commands."""


@cache.command("stats")
@click.option("--cache-dir", type=click.Path(file_okay=False), default=None,
              help="Cache root directory.")
def cache_stats(cache_dir: str | None) -> None:
    """Show cache directory statistics."""
    from imgcache.cache.disk import DiskImageCache

    config = _load(cache_dir)
    disk = DiskImageCache(config.cache_path)

    table = Table(title="Cache Statistics", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value")

    table.add_row("Root", str(disk.root))
    table.add_row("Entries", str(disk.entry_count))
    table.add_row("Size (MB)", f"{disk.size_mb:.1f}")

    console.print(table)


@cache.command("clear")
@click.option("--cache-dir", type=click.Path(file_okay=False), default=None,
              help="Cache root directory.")
@click.confirmation_option(prompt="Are you sure you want to clear the cache?")
def cache_clear(cache_dir: str | None) -> None:
    """Delete all cached images."""
    from imgcache.cache.disk import DiskImageCache

    config = _load(cache_dir)
    removed = DiskImageCache(config.cache_path).clear()
    console.print(f"[green]Cache cleared ({removed} entries removed).[/green]")


def main() -> None:
    """Entry point for the CLI."""
    cli()
