"""Click CLI for tagcache — inspect and maintain the persistent cache."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from tagcache.cache.keys import GRID_KEY_FIELDS, build_cache_key
from tagcache.config.hierarchy import load_config_hierarchy
from tagcache.config.schema import CacheSettings
from tagcache.errors.exceptions import TagCacheError

console = Console()
error_console = Console(stderr=True)


def _resolve_log_level(verbosity: int, configured: str | None) -> int:
    """Configured level, lowered to INFO by ``-v`` and to DEBUG by ``-vv``."""
    level = logging.getLevelNamesMapping().get(str(configured or "").upper(), logging.WARNING)
    if verbosity == 1:
        return min(level, logging.INFO)
    if verbosity >= 2:
        return logging.DEBUG
    return level


def _setup_logging(verbosity: int, configured: str | None = None) -> None:
    """Configure logging from the configured level and verbosity."""
    logging.basicConfig(
        level=_resolve_log_level(verbosity, configured),
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_time=False, show_path=False)],
    )


def _parse_setting(raw: str) -> tuple[str, str | int | bool]:
    if "=" not in raw:
        raise click.BadParameter(f"expected name=value, got {raw!r}")
    name, value = raw.split("=", 1)
    lowered = value.lower()
    if lowered in {"true", "on", "yes"}:
        return name, True
    if lowered in {"false", "off", "no"}:
        return name, False
    if value.isdigit():
        return name, int(value)
    return name, value


def _open_store(db_path: str | None):
    from tagcache.cache.disk import DiskStore

    settings = CacheSettings.from_mapping(
        load_config_hierarchy(disk_path=Path(db_path) if db_path else None)
    )
    return DiskStore(db_path=settings.disk_path)


db_option = click.option(
    "--db", "db_path", type=click.Path(dir_okay=False), default=None,
    help="SQLite cache file (defaults to config / ~/.tagcache/cache.db).",
)


@click.group()
@click.version_option(package_name="tagcache")
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug).")
def cli(verbose: int) -> None:
    """tagcache — tag-indexed cache maintenance."""
    _setup_logging(verbose, load_config_hierarchy().get("log_level"))


@cli.command("key")
@click.argument("kind")
@click.argument("identity")
@click.option("-s", "--setting", "settings", multiple=True, help="Setting as name=value.")
@click.option("--version-stamp", default=None, help="Key version (defaults to config).")
@click.option("--grid-fields", is_flag=True, default=False, help="Use the grid field order.")
def key(
    kind: str,
    identity: str,
    settings: tuple[str, ...],
    version_stamp: str | None,
    grid_fields: bool,
) -> None:
    """Print the cache key for KIND and IDENTITY."""
    config = load_config_hierarchy(version=version_stamp)
    parsed = dict(_parse_setting(s) for s in settings)
    fields = GRID_KEY_FIELDS if grid_fields else None
    console.print(build_cache_key(kind, identity, parsed, version=config["version"], fields=fields))


@cli.command("stats")
@db_option
def stats(db_path: str | None) -> None:
    """Show persistent cache statistics."""
    try:
        store = _open_store(db_path)
    except TagCacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    table = Table(title="Cache Statistics", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value")
    try:
        table.add_row("Database", str(store.path))
        table.add_row("Entries", str(store.entry_count))
        table.add_row("Tags", str(store.tag_count))
        table.add_row("Size (MB)", f"{store.size_mb:.3f}")
    finally:
        store.close()
    console.print(table)


@cli.command("clear")
@db_option
@click.confirmation_option(prompt="Are you sure you want to clear the cache?")
def clear(db_path: str | None) -> None:
    """Clear all persistent cache entries."""
    store = _open_store(db_path)
    try:
        store.clear()
    finally:
        store.close()
    console.print("[green]Cache cleared.[/green]")


@cli.command("purge")
@db_option
def purge(db_path: str | None) -> None:
    """Remove expired entries."""
    store = _open_store(db_path)
    try:
        removed = store.purge_expired()
    finally:
        store.close()
    console.print(f"[green]Purged {removed} expired entries.[/green]")


@cli.command("invalidate")
@click.argument("tag")
@db_option
def invalidate(tag: str, db_path: str | None) -> None:
    """Delete every persistent entry tagged TAG."""
    store = _open_store(db_path)
    try:
        keys = store.keys_for_tag(tag)
        for k in keys:
            store.delete(k)
    finally:
        store.close()
    console.print(f"[green]Invalidated {len(keys)} entries tagged {tag}.[/green]")


def main() -> None:
    """Entry point for the CLI."""
    cli()
