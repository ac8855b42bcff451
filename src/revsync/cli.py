"""Command-line interface for the revsync application."""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config.settings import FallbackPolicy, RevsyncConfig
from .exceptions import SyncError
from .fs.local import LocalFileSystem
from .sync.engine import format_rel_path
from .sync.restore import SnapshotRestorer
from .sync.snapshot_manager import SnapshotManager
from .sync.snapshots import SnapshotNamer
from .utils.file_utils import FileHelper
from .utils.logging import setup_logging

console = Console()


def _load_config(config: Optional[Path]) -> RevsyncConfig:
    base = RevsyncConfig.from_yaml(config) if config else None
    return RevsyncConfig.from_env(base)


@click.group()
@click.version_option(version=__version__)
def cli():
    """revsync - reverse-incremental directory snapshots

    Mirrors a source directory into a timestamp-named snapshot. Older
    snapshots keep only what later runs replaced or removed.
    """
    pass


@cli.command()
@click.argument('source', type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument('backups_root', type=click.Path(file_okay=False, path_type=Path))
@click.option('--config', '-c',
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Path to configuration file')
@click.option('--concurrency', '-j',
              type=click.IntRange(min=1),
              help='Maximum number of filesystem operations in flight')
@click.option('--fallback',
              type=click.Choice([policy.value for policy in FallbackPolicy]),
              help='What to do if the previous snapshot cannot be rotated')
@click.option('--log-level',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Console log level')
@click.option('--log-file',
              type=click.Path(dir_okay=False, path_type=Path),
              help='Write a rotating debug log to this file')
@click.option('--quiet', '-q', is_flag=True, help='Do not print processed paths')
def sync(source: Path, backups_root: Path, config: Optional[Path], concurrency: Optional[int],
         fallback: Optional[str], log_level: Optional[str], log_file: Optional[Path], quiet: bool):
    """Snapshot SOURCE into BACKUPS_ROOT."""
    try:
        revsync_config = _load_config(config)
    except Exception as e:
        console.print(f"❌ Error loading configuration: {e}", style="red bold")
        sys.exit(1)

    options = revsync_config.sync_options
    if concurrency:
        options.max_concurrency = concurrency
    if fallback:
        options.fallback = FallbackPolicy(fallback)

    logging_options = revsync_config.logging
    setup_logging(
        log_level=log_level or logging_options.level,
        log_file=log_file or logging_options.file,
        log_to_console=logging_options.console,
        max_file_size=logging_options.max_file_size,
        backup_count=logging_options.backup_count
    )

    def print_path(rel):
        if not quiet:
            console.print(format_rel_path(rel), highlight=False, markup=False)

    manager = SnapshotManager(source, backups_root, options)
    results = asyncio.run(manager.run(on_path=print_path))
    _display_sync_results(results)

    if results['status'] != 'completed':
        sys.exit(1)


def _display_sync_results(results):
    """Display sync results in a table."""
    table = Table(title="Sync Results")
    table.add_column("Snapshot", style="cyan")
    table.add_column("Previous", style="magenta")
    table.add_column("Status")
    table.add_column("Copied", justify="right", style="green")
    table.add_column("Backed Up", justify="right", style="yellow")
    table.add_column("Unchanged", justify="right")
    table.add_column("Skipped", justify="right", style="red")
    table.add_column("Duration", justify="right")

    status_style = "green" if results['status'] == 'completed' else "red"
    table.add_row(
        results['snapshot'] or "-",
        results['previous_snapshot'] or "-",
        f"[{status_style}]{results['status']}[/{status_style}]",
        str(results['files_copied']),
        str(results['entries_backed_up']),
        str(results['files_unchanged']),
        str(len(results['skipped'])),
        f"{results.get('duration', 0):.1f}s"
    )
    console.print(table)

    if results['degraded']:
        rprint("\n⚠️ [yellow]Previous snapshot could not be rotated; "
               "replaced entries from this run were not kept.[/yellow]")

    if results['skipped']:
        rprint(f"\n⚠️ [yellow]{len(results['skipped'])} entries were skipped:[/yellow]")
        for entry in results['skipped']:
            rprint(f"   • {escape(entry)}")

    for error in results['errors']:
        console.print(f"❌ Error: {escape(error)}", style="red bold")


@cli.command()
@click.argument('backups_root', type=click.Path(exists=True, file_okay=False, path_type=Path))
def snapshots(backups_root: Path):
    """List the snapshots in BACKUPS_ROOT, newest first."""
    try:
        infos = asyncio.run(_list_snapshots(backups_root))
    except SyncError as e:
        console.print(f"❌ Error: {e}", style="red bold")
        sys.exit(1)

    if not infos:
        console.print(f"No snapshots in {backups_root}", style="yellow")
        return

    table = Table(title=f"Snapshots in {backups_root}")
    table.add_column("Snapshot", style="cyan")
    table.add_column("Created (UTC)")
    table.add_column("Entries", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Kind", style="magenta")

    for index, info in enumerate(infos):
        entries, size = FileHelper.tree_size(backups_root / info.name)
        table.add_row(
            info.name,
            info.created_at.strftime('%Y-%m-%d %H:%M:%S'),
            str(entries),
            FileHelper.format_file_size(size),
            "full" if index == 0 else "diff"
        )

    console.print(table)


async def _list_snapshots(backups_root: Path):
    fs = LocalFileSystem(max_concurrency=1)
    try:
        return await SnapshotNamer(fs).list_snapshots(backups_root)
    finally:
        fs.close()


@cli.command()
@click.argument('backups_root', type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument('snapshot')
@click.argument('target', type=click.Path(path_type=Path))
@click.option('--concurrency', '-j', type=click.IntRange(min=1), default=8,
              help='Maximum number of filesystem operations in flight')
def restore(backups_root: Path, snapshot: str, target: Path, concurrency: int):
    """Rebuild SNAPSHOT from BACKUPS_ROOT into TARGET."""
    try:
        result = asyncio.run(_restore(backups_root, snapshot, target, concurrency))
    except SyncError as e:
        console.print(f"❌ Error: {e}", style="red bold")
        sys.exit(1)

    console.print(f"✅ Restored {result.snapshot} into {result.target}", style="green")
    rprint(f"   • Snapshots applied: {len(result.layers)}")
    rprint(f"   • Entries overlaid: {result.entries_overlaid}")


async def _restore(backups_root: Path, snapshot: str, target: Path, concurrency: int):
    fs = LocalFileSystem(max_concurrency=concurrency)
    try:
        return await SnapshotRestorer(backups_root, fs).restore(snapshot, target)
    finally:
        fs.close()


@cli.command()
@click.option('--config', '-c',
              type=click.Path(dir_okay=False, path_type=Path),
              default=Path('revsync.yaml'),
              help='Path to save configuration file')
def init(config: Path):
    """Write a configuration file with default settings."""
    if config.exists():
        if not click.confirm(f"Configuration file {config} already exists. Overwrite?"):
            return

    RevsyncConfig().to_yaml(config)
    console.print(f"✅ Configuration saved to {config}", style="green")


if __name__ == '__main__':
    cli()
