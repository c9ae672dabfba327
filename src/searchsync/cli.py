"""searchsync CLI entry point."""

from __future__ import annotations

import contextlib
from collections.abc import Iterator

import click
import structlog
import uvicorn

from searchsync.config import Settings
from searchsync.errors import SyncError
from searchsync.logging import configure_logging
from searchsync.services import SyncServices

logger = structlog.get_logger()


@click.group()
@click.option("--debug", is_flag=True, help="Debug-level logging.")
@click.pass_context
def main(ctx: click.Context, *, debug: bool) -> None:
    """searchsync - keep a full-text index in step with the record store."""
    settings = Settings(debug=True) if debug else Settings()
    ctx.obj = settings


@contextlib.contextmanager
def _open_services(settings: Settings) -> Iterator[SyncServices]:
    """Open store and index for one command; errors become CLI errors."""
    configure_logging(debug=settings.debug, json=False)
    services = SyncServices(settings)
    succeeded = False
    try:
        services.open()
        yield services
        succeeded = True
    except SyncError as e:
        raise click.ClickException(f"[{e.kind}] {e}") from e
    finally:
        services.close(commit=succeeded)


@main.command()
@click.pass_obj
def serve(settings: Settings) -> None:
    """Run the HTTP API."""
    from searchsync.app import create_app

    configure_logging(debug=settings.debug)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level="warning",
        access_log=False,
        timeout_graceful_shutdown=int(settings.shutdown_timeout),
    )


@main.command()
@click.argument("record_class")
@click.option("--batch-size", type=int, default=None, help="Records per batch.")
@click.option("--no-batching", is_flag=True, help="Index the whole class in one call.")
@click.option("--no-batch-commit", is_flag=True, help="Commit only once, at the end.")
@click.pass_obj
def reindex(
    settings: Settings,
    record_class: str,
    *,
    batch_size: int | None,
    no_batching: bool,
    no_batch_commit: bool,
) -> None:
    """Clear and rebuild the index for RECORD_CLASS."""
    if no_batching and batch_size is not None:
        raise click.UsageError("--batch-size and --no-batching are mutually exclusive")
    if not no_batching and batch_size is None:
        batch_size = settings.default_batch_size
    commit_per_batch = settings.commit_per_batch and not no_batch_commit

    with _open_services(settings) as services:
        result = services.engine.reindex_class(record_class, batch_size, commit_per_batch)

    for stats in result.batches:
        rate = f"{stats.records_per_second:.1f} rows/s" if stats.records_per_second else "n/a"
        click.echo(f"  batch {stats.batch_number}: {stats.size} records ({rate})")
    click.echo(
        f"Reindexed {record_class}: {result.records_indexed} records in "
        f"{len(result.batches)} batches, {result.commits} commits, "
        f"{result.elapsed_seconds:.2f}s"
    )


@main.command()
@click.argument("record_class")
@click.confirmation_option(prompt="Remove every index entry of this class?")
@click.pass_obj
def clear(settings: Settings, record_class: str) -> None:
    """Remove every index entry of RECORD_CLASS and commit."""
    with _open_services(settings) as services:
        services.engine.remove_all_of_class_and_commit(record_class)
    click.echo(f"Cleared {record_class} from the index.")


@main.command()
@click.argument("record_class")
@click.pass_obj
def orphans(settings: Settings, record_class: str) -> None:
    """List index entries of RECORD_CLASS without a backing record."""
    with _open_services(settings) as services:
        keys = services.engine.find_orphans(record_class)

    if not keys:
        click.echo(f"No orphans in {record_class}.")
        return
    for key in keys:
        click.echo(str(key))
    click.echo(f"{len(keys)} orphans in {record_class}.")


@main.command()
@click.argument("record_class")
@click.pass_obj
def repair(settings: Settings, record_class: str) -> None:
    """Remove orphaned index entries of RECORD_CLASS and commit."""
    with _open_services(settings) as services:
        keys = services.engine.repair_orphans(record_class)
        if keys:
            services.engine.commit()
    click.echo(f"Removed {len(keys)} orphans from {record_class}.")
