"""Command line interface for h5p-player.

Provides a Typer-based CLI for running the player service, inspecting the
object store and pre-populating the local content cache.
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import get_settings
from .errors import SyncError, ValidationFailure
from .logging_config import setup_logging
from .storage.cache import ContentCache
from .storage.s3 import S3Storage
from .workers.sync import ContentSyncPipeline

console = Console()

app = typer.Typer(
    name="h5p-player",
    help="H5P content player backed by object storage",
    rich_markup_mode="rich",
)
store_app = typer.Typer(help="Object store operations")
cache_app = typer.Typer(help="Local content cache operations")
app.add_typer(store_app, name="store")
app.add_typer(cache_app, name="cache")


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"h5p-player version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """h5p-player: serve H5P content packages from object storage.

    ## Commands

    * [bold cyan]serve[/bold cyan] - Run the HTTP service
    * [bold cyan]sync[/bold cyan] - Fetch one package into the local cache
    * [bold cyan]store[/bold cyan] - Object store operations
    * [bold cyan]cache[/bold cyan] - Local content cache operations
    """
    pass


def get_store() -> S3Storage:
    """Build the store client from settings, exiting when unconfigured."""
    settings = get_settings()
    if not settings.store_configured:
        console.print("[red]Object store not configured. Set S3_ENDPOINT and S3_BUCKET.[/red]")
        raise typer.Exit(1)
    try:
        return S3Storage.from_settings(settings)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def run_store_call(coro):
    """Run a store coroutine, turning StoreError into a CLI failure."""
    try:
        return asyncio.run(coro)
    except SyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default: HOST setting)"),
    port: int = typer.Option(None, "--port", "-p", help="Port (default: PORT setting)"),
) -> None:
    """Run the player HTTP service."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "h5p_player.main:create_app",
        factory=True,
        host=host or settings.HOST,
        port=port or settings.PORT,
    )


@app.command()
def sync(
    s3_object_name: str = typer.Argument(..., help="Object key of the packaged archive"),
    content_id: str = typer.Argument(..., help="Content id to cache it under"),
) -> None:
    """Fetch a content package into the local cache if it is not there yet."""
    settings = get_settings()
    setup_logging(settings.LOG_DIR, settings.LOG_LEVEL)

    pipeline = ContentSyncPipeline(
        ContentCache(settings.CONTENT_CACHE_DIR),
        get_store(),
        presign_expiry=settings.PRESIGNED_URL_EXPIRY,
        fetch_timeout=settings.FETCH_TIMEOUT_SECONDS,
        max_archive_bytes=settings.MAX_ARCHIVE_BYTES,
    )

    try:
        entry = asyncio.run(pipeline.ensure_cached(content_id, s3_object_name))
    except (SyncError, ValidationFailure) as e:
        console.print(f"[red]Sync failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Content {content_id} cached at {entry.path}[/green]")


@store_app.command("list-buckets")
def list_buckets() -> None:
    """List buckets visible to the configured credentials."""
    buckets = run_store_call(get_store().list_buckets())
    console.print("Existing buckets:")
    for name in buckets:
        console.print(f"  {name}")


@store_app.command("list-objects")
def list_objects(
    bucket: str = typer.Option(None, "--bucket", "-b", help="Bucket (default: S3_BUCKET)"),
) -> None:
    """List objects in a bucket."""
    store = get_store()
    keys = run_store_call(store.list_objects(bucket))
    console.print(f"Objects in bucket {bucket or store.bucket}:")
    for key in keys:
        console.print(f"  {key}")


@store_app.command("upload")
def upload(
    file_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to upload"),
    key: str = typer.Argument(..., help="Object key"),
    private: bool = typer.Option(False, "--private", help="Do not make the object public"),
) -> None:
    """Upload a file and print its public URL."""
    url = run_store_call(get_store().upload_file(file_path, key, public=not private))
    console.print(f"[green]Uploaded {file_path} as {key}[/green]")
    console.print(url)


@store_app.command("presign")
def presign(
    key: str = typer.Argument(..., help="Object key"),
    expires: int = typer.Option(3600, "--expires", "-e", help="URL lifetime in seconds"),
) -> None:
    """Print a time-limited download URL."""
    try:
        url = run_store_call(get_store().get_presigned_url(key, expires))
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(url)


@store_app.command("remove")
def remove(key: str = typer.Argument(..., help="Object key")) -> None:
    """Delete an object from the bucket."""
    store = get_store()
    run_store_call(store.delete_object(key))
    console.print(f"[green]Removed {key} from bucket {store.bucket}[/green]")


@cache_app.command("list")
def list_cache() -> None:
    """List content packages present in the local cache."""
    cache = ContentCache(get_settings().CONTENT_CACHE_DIR)
    entries = cache.list_entries()
    if not entries:
        console.print(f"[yellow]No cached content in {cache.root}[/yellow]")
        return

    table = Table(title=f"Cached content ({cache.root})")
    table.add_column("Content ID", style="cyan")
    table.add_column("Title")
    table.add_column("Main library")

    for entry in entries:
        try:
            manifest = entry.load_manifest()
        except (OSError, ValueError) as e:
            table.add_row(entry.content_id, f"[red]unreadable: {e}[/red]", "")
            continue
        table.add_row(entry.content_id, manifest.get("title", ""), manifest.get("mainLibrary", ""))

    console.print(table)
