"""Cache commands -- inspect and prune store namespaces.

Provides the ``swcache cache`` sub-command group.  Namespaces are listed
with their entry counts; the current one (``cacheTitle-cacheVersion``) is
flagged so stale versions are easy to spot before ``swcache activate``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import typer

from swcache.commands.common import get_config, open_store, run_async
from swcache.exit_codes import EXIT_STORE_ERROR
from swcache.output import error, format_response, info, print_table, success

cache_app = typer.Typer(no_args_is_help=True)


@cache_app.command("list")
def cache_list(ctx: typer.Context) -> None:
    """List namespaces in the store.

    Example::

        swcache cache list
        swcache cache list --json
    """
    config = get_config(ctx)
    store = open_store(config)
    try:
        names = run_async(store.list_namespaces())
        rows = [
            [name, str(len(store.open(name))), "yes" if name == config.cache_name else ""]
            for name in names
        ]
    finally:
        store.close()

    if not rows:
        info(f"No namespaces in {store.root}")
        return
    print_table(["namespace", "entries", "current"], rows, title="Namespaces")


@cache_app.command("show")
def cache_show(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Namespace to show (default: current)."),
) -> None:
    """Show the entries stored in a namespace."""
    config = get_config(ctx)
    name = name or config.cache_name
    store = open_store(config)
    try:
        if name not in run_async(store.list_namespaces()):
            error(f"Namespace not found: {name}")
            raise typer.Exit(code=EXIT_STORE_ERROR)
        entries = run_async(store.open(name).entries())
    finally:
        store.close()

    rows = [
        [
            entry.url,
            str(entry.status_code),
            str(len(entry.body)),
            datetime.fromtimestamp(entry.stored_at).isoformat(timespec="seconds"),
        ]
        for entry in sorted(entries, key=lambda e: e.url)
    ]
    print_table(["url", "status", "bytes", "stored"], rows, title=name)


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show the store directory and entry counts."""
    config = get_config(ctx)
    store = open_store(config)
    try:
        stats = store.stats()
    finally:
        store.close()
    stats["current"] = config.cache_name
    format_response(stats)


@cache_app.command("remove")
def cache_remove(
    ctx: typer.Context,
    name: str = typer.Argument(help="Namespace to delete."),
) -> None:
    """Delete one namespace."""
    config = get_config(ctx)
    store = open_store(config)
    try:
        removed = run_async(store.remove(name))
    finally:
        store.close()
    if not removed:
        error(f"Namespace not removed: {name}")
        raise typer.Exit(code=EXIT_STORE_ERROR)
    success(f"Removed {name}")


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Delete every namespace, including the current one."""
    config = get_config(ctx)
    if not force:
        confirmed = typer.confirm("Delete all cached namespaces?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    store = open_store(config)
    try:
        names = run_async(store.list_namespaces())
        for name in names:
            run_async(store.remove(name))
    finally:
        store.close()
    success(f"Removed {len(names)} namespace(s)")
