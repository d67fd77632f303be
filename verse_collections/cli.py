"""
CLI commands for verse-collections.

Provides the `vcol` command-line interface for managing bookmark folders,
pinned verses, last-read positions and memorization plans.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import click
from rich.console import Console
from rich.table import Table

from config.loader import ConfigurationLoader
from core.content.client import QuranContentClient
from core.models.config import StoreConfig
from core.storage.adapters import JsonFileStorage
from core.storage.keyspaces import CollectionPersistence
from core.storage.persistence import SnapshotImportError
from core.store.collection_store import CollectionStore
from core.store.settings_store import SettingsStore
from core.sync.reconciler import MetadataReconciler
from verse_collections import __version__

console = Console()
logger = logging.getLogger(__name__)

T = TypeVar('T')


def build_store(config: StoreConfig) -> CollectionStore:
    """Wire storage, persistence and (unless offline) reconciliation into a store"""
    storage = JsonFileStorage(config.storage_dir)
    persistence = CollectionPersistence(storage, debounce_ms=config.debounce_ms)

    reconciler = None
    if config.reconcile_metadata and not config.offline:
        client = QuranContentClient(config.content_api.base_url, timeout=config.content_api.timeout)
        reconciler = MetadataReconciler(
            client,
            translation_ids=[config.content_api.default_translation_id],
            word_lang=config.content_api.word_lang,
        )
    return CollectionStore(persistence, reconciler=reconciler)


async def _with_store(config: StoreConfig, action: Callable[[CollectionStore], Awaitable[T]]) -> T:
    store = build_store(config)
    settings = SettingsStore(store.persistence.storage, debounce_ms=config.debounce_ms)
    await settings.initialize()
    store.follow_settings(settings)

    try:
        async with store:
            result = await action(store)
            if store.reconciler is not None:
                await store.reconciler.drain()
    finally:
        await settings.close()
        client = getattr(store.reconciler, 'client', None)
        if isinstance(client, QuranContentClient):
            client.close()
    return result


def _run(ctx: click.Context, action: Callable[[CollectionStore], Awaitable[T]]) -> T:
    config: StoreConfig = ctx.obj['config']
    return asyncio.run(_with_store(config, action))


@click.group()
@click.version_option(version=__version__, prog_name="vcol")
@click.option(
    '--storage-dir',
    type=click.Path(file_okay=False, path_type=Path),
    help='Directory holding the collection records (default: ~/.verse-collections)'
)
@click.option(
    '--offline',
    is_flag=True,
    help='Do not contact the content API'
)
@click.option(
    '--log-level',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    help='Logging level (default: from configuration)'
)
@click.pass_context
def main(ctx: click.Context, storage_dir: Optional[Path], offline: bool, log_level: Optional[str]):
    """
    Verse Collections CLI.

    Manage bookmark folders, pinned verses, last-read positions and
    memorization plans.
    """
    config = ConfigurationLoader(storage_dir).load_config()
    updates = {}
    if offline:
        updates['offline'] = True
    if log_level:
        updates['log_level'] = log_level.upper()
    if updates:
        config = config.model_copy(update=updates)

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@main.command()
@click.pass_context
def folders(ctx: click.Context):
    """List folders with their bookmarks."""
    async def action(store: CollectionStore):
        return store.folders, store.pinned_verses

    folder_list, pinned = _run(ctx, action)

    if not folder_list:
        console.print("[yellow]No folders yet. Add a bookmark with 'vcol add'.[/yellow]")
    else:
        table = Table(title="Bookmark Folders")
        table.add_column("Folder", style="cyan")
        table.add_column("ID", style="dim")
        table.add_column("Bookmarks", justify="right")
        table.add_column("Verses")
        for folder in folder_list:
            verses = ", ".join(b.verse_key or b.verse_id for b in folder.bookmarks)
            table.add_row(folder.name, folder.id, str(len(folder.bookmarks)), verses)
        console.print(table)

    console.print(f"[blue]📌 Pinned verses: {len(pinned)}[/blue]")


@main.command('create-folder')
@click.argument('name')
@click.option('--color', help='Folder color')
@click.option('--icon', help='Folder icon')
@click.pass_context
def create_folder(ctx: click.Context, name: str, color: Optional[str], icon: Optional[str]):
    """Create an empty folder."""
    async def action(store: CollectionStore):
        return store.create_folder(name, color, icon)

    try:
        folder = _run(ctx, action)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)
    console.print(f"[green]✅ Created folder '{folder.name}' ({folder.id})[/green]")


@main.command()
@click.argument('verse')
@click.option('--folder', 'folder_id', help='Target folder id (default: Uncategorized)')
@click.pass_context
def add(ctx: click.Context, verse: str, folder_id: Optional[str]):
    """Bookmark VERSE (a "chapter:verse" key or an absolute verse id)."""
    async def action(store: CollectionStore):
        added = store.add_bookmark(verse, folder_id)
        return added, store.find_bookmark(verse)

    added, location = _run(ctx, action)
    if added and location is not None:
        label = location.bookmark.verse_key or location.bookmark.verse_id
        console.print(f"[green]✅ Bookmarked {label} in '{location.folder.name}'[/green]")
    elif location is not None:
        console.print(f"[yellow]⚠️  {verse} is already bookmarked in '{location.folder.name}'[/yellow]")
    else:
        console.print(f"[red]❌ Folder {folder_id} not found[/red]")
        sys.exit(1)


@main.command()
@click.argument('verse')
@click.option('--folder', 'folder_id', help='Folder id (default: the folder holding the verse)')
@click.pass_context
def remove(ctx: click.Context, verse: str, folder_id: Optional[str]):
    """Remove the bookmark for VERSE."""
    async def action(store: CollectionStore):
        target = folder_id
        if target is None:
            location = store.find_bookmark(verse)
            if location is None:
                return False
            target = location.folder.id
        return store.remove_bookmark(verse, target)

    if _run(ctx, action):
        console.print(f"[green]🗑️  Removed bookmark {verse}[/green]")
    else:
        console.print(f"[yellow]⚠️  {verse} is not bookmarked[/yellow]")


@main.command()
@click.argument('verse')
@click.pass_context
def pin(ctx: click.Context, verse: str):
    """Pin VERSE, or unpin it when already pinned."""
    async def action(store: CollectionStore):
        return store.toggle_pinned(verse)

    if _run(ctx, action):
        console.print(f"[green]📌 Pinned {verse}[/green]")
    else:
        console.print(f"[blue]Unpinned {verse}[/blue]")


@main.command('last-read')
@click.argument('chapter', required=False)
@click.argument('verse_number', type=int, required=False)
@click.pass_context
def last_read(ctx: click.Context, chapter: Optional[str], verse_number: Optional[int]):
    """Show last-read positions, or record VERSE_NUMBER for CHAPTER."""
    if chapter is not None and verse_number is None:
        raise click.UsageError("VERSE_NUMBER is required when CHAPTER is given")

    async def action(store: CollectionStore):
        if chapter is not None:
            store.set_last_read(chapter, verse_number, verse_key=f"{chapter}:{verse_number}")
        return store.last_read

    try:
        positions = _run(ctx, action)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    if chapter is not None:
        console.print(f"[green]✅ Last read {chapter}:{verse_number}[/green]")
        return

    if not positions:
        console.print("[yellow]Nothing read yet.[/yellow]")
        return

    table = Table(title="Last Read")
    table.add_column("Chapter", justify="right")
    table.add_column("Verse", justify="right")
    for chapter_id, entry in sorted(positions.items(), key=lambda item: _sort_key(item[0])):
        table.add_row(chapter_id, str(entry.verse_number))
    console.print(table)


@main.command()
@click.argument('surah', type=int, required=False)
@click.option('--target', type=int, help='Target verse count for a new plan')
@click.option('--progress', type=int, help='Set completed verse count')
@click.option('--remove', 'remove_plan', is_flag=True, help='Remove the plan for SURAH')
@click.pass_context
def memorize(
    ctx: click.Context,
    surah: Optional[int],
    target: Optional[int],
    progress: Optional[int],
    remove_plan: bool
):
    """Show memorization plans, or create/update the plan for SURAH."""
    if surah is None and (target is not None or progress is not None or remove_plan):
        raise click.UsageError("SURAH is required with --target, --progress or --remove")

    async def action(store: CollectionStore):
        if surah is not None:
            if remove_plan:
                store.remove_from_memorization(surah)
            else:
                if target is not None:
                    store.create_memorization_plan(surah, target)
                else:
                    store.add_to_memorization(surah)
                if progress is not None:
                    store.update_memorization_progress(surah, progress)
        return store.memorization

    try:
        plans = _run(ctx, action)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    if not plans:
        console.print("[yellow]No memorization plans.[/yellow]")
        return

    table = Table(title="Memorization Plans")
    table.add_column("Surah", justify="right")
    table.add_column("Plan")
    table.add_column("Progress", justify="right")
    for key, plan in sorted(plans.items(), key=lambda item: _sort_key(item[0])):
        table.add_row(
            key,
            plan.notes,
            f"{plan.completed_verses}/{plan.target_verses} ({plan.progress:.0%})"
        )
    console.print(table)


@main.command('export')
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path), help='Write to file instead of stdout')
@click.pass_context
def export_cmd(ctx: click.Context, output: Optional[Path]):
    """Export all collections as a versioned JSON bundle."""
    async def action(store: CollectionStore):
        return store.export_snapshot()

    bundle = _run(ctx, action)
    text = json.dumps(bundle, indent=2, ensure_ascii=False)
    if output is None:
        click.echo(text)
        return

    output.write_text(text, encoding='utf-8')
    console.print(f"[green]✅ Exported collections to {output}[/green]")


@main.command('import')
@click.argument('source', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_cmd(ctx: click.Context, source: Path):
    """Replace all collections with the bundle in SOURCE."""
    text = source.read_text(encoding='utf-8')

    async def action(store: CollectionStore):
        return await store.import_snapshot(text)

    try:
        snapshot = _run(ctx, action)
    except SnapshotImportError as e:
        console.print(f"[red]❌ Import failed: {e}[/red]")
        sys.exit(1)

    console.print(
        f"[green]✅ Imported {len(snapshot.folders)} folders, "
        f"{snapshot.bookmark_count} bookmarks, {len(snapshot.pinned)} pinned verses[/green]"
    )


@main.command()
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def reset(ctx: click.Context, yes: bool):
    """Delete every folder, pin, last-read position and plan."""
    if not yes and not click.confirm("This removes all saved collections. Continue?"):
        console.print("[yellow]Aborted.[/yellow]")
        return

    async def action(store: CollectionStore):
        return await store.reset()

    _run(ctx, action)
    console.print("[green]🧹 All collections cleared[/green]")


def _sort_key(value: str) -> Any:
    return (0, int(value)) if value.isdigit() else (1, value)


if __name__ == '__main__':
    main()
