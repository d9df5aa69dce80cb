"""Cache commands -- inspect and maintain the local change cache.

Provides the ``ger cache`` sub-command group. These commands open the
cache database themselves, so they work even with ``--no-cache`` or when
the cache is disabled in the global config. Unlike other commands, a
cache that cannot be opened is an error here (exit code 8).
"""

from __future__ import annotations

import typer

from ger.cache import CacheManager, CacheStore
from ger.config import get_cache_db_path
from ger.output import format_response, get_output, info, print_table, success

cache_app = typer.Typer(no_args_is_help=True)


def _open_manager(ctx: typer.Context) -> CacheManager:
    store = CacheStore(get_cache_db_path())
    store.initialize()
    ctx.call_on_close(store.close)
    return CacheManager(store)


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show the cache location and row counts.

    Expired rows still count until a sweep removes them.

    Example::

        ger cache stats
        ger --json cache stats
    """
    stats = _open_manager(ctx).store.stats()
    if get_output().is_structured:
        format_response(stats, root="cache_stats")
        return
    print_table(
        ["Key", "Value"],
        [[key, str(value)] for key, value in stats.items()],
        title="Cache",
    )


@cache_app.command("sweep")
def cache_sweep(ctx: typer.Context) -> None:
    """Delete expired changes and metadata entries now.

    Example::

        ger cache sweep
    """
    removed = _open_manager(ctx).clear_expired_cache()
    if get_output().is_structured:
        format_response(removed._asdict(), root="sweep_result")
        return
    success(
        f"Removed {removed.changes} expired changes and "
        f"{removed.metadata} metadata entries."
    )


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Delete every cached change and metadata entry.

    Example::

        ger cache clear --yes
    """
    manager = _open_manager(ctx)
    if not yes:
        confirmed = typer.confirm(f"Clear all cached data in {manager.store.path}?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()
    manager.store.clear()
    success("Cache cleared.")
