"""Cache commands -- inspect and prune the durable response store.

Provides the ``wiretap cache`` sub-command group. The store holds at most
``cache.max_entries`` responses; older ones are evicted automatically, so
these commands are mostly useful for freeing space or removing a response
that should not linger on disk.
"""

from __future__ import annotations

import typer

from wiretap.commands.common import build_manager, load_config, run
from wiretap.output import format_response, info, success

cache_app = typer.Typer(no_args_is_help=True)


async def _stats(manager) -> dict:  # noqa: ANN001
    stats = manager.stats()
    if manager.store is not None:
        stats["durable_entries"] = await manager.store.count()
        stats["durable"] = manager.store.stats()
    return stats


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show the store location, entry count and capacity.

    Example::

        wiretap cache stats
        wiretap --json cache stats
    """
    manager = build_manager(load_config(ctx))
    format_response(run(_stats(manager)))


@cache_app.command("delete")
def cache_delete(
    ctx: typer.Context,
    key: str = typer.Argument(help="Response fingerprint."),
) -> None:
    """Delete one cached response."""
    manager = build_manager(load_config(ctx))
    run(manager.delete_state(key))
    success(f"Deleted {key}")


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Delete every cached response.

    Asks for confirmation unless ``--force`` is active.

    Example::

        wiretap --force cache clear
    """
    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Delete all cached responses?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    manager = build_manager(load_config(ctx))
    run(manager.clear_all())
    success("Response cache cleared.")
