"""Helpers shared by the CLI sub-commands."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import typer

from swcache.exceptions import SwcacheError
from swcache.models import EngineConfig
from swcache.network import HttpxNetwork
from swcache.output import error
from swcache.store import CacheStore

T = TypeVar("T")


def get_config(ctx: typer.Context) -> EngineConfig:
    """Resolve the engine config from the options stored by the root callback."""
    from swcache.config import resolve_config

    obj = ctx.obj or {}
    try:
        return resolve_config(
            cli_config=obj.get("config"),
            cli_origin=obj.get("origin"),
            cli_store_dir=obj.get("store_dir"),
        )
    except SwcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def open_store(config: EngineConfig) -> CacheStore:
    from swcache.config import get_store_dir

    return CacheStore(get_store_dir(config))


@asynccontextmanager
async def open_runtime(config: EngineConfig) -> AsyncIterator[tuple[CacheStore, HttpxNetwork]]:
    """Store and network for one command; background writes finish before exit."""
    store = open_store(config)
    try:
        async with HttpxNetwork(timeout=config.timeout) as network:
            yield store, network
            await store.drain()
    finally:
        store.close()


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro*, turning :class:`SwcacheError` into a clean CLI exit."""
    try:
        return asyncio.run(coro)
    except SwcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
