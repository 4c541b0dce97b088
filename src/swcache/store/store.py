"""Versioned, disk-backed response store.

Every namespace (``title-version``) is its own :class:`diskcache.Cache`
directory under the store root, so removing a stale version is a single
directory delete and listing namespaces is a directory scan.

Entries are serialised :class:`~swcache.models.StoredResponse` dicts keyed
by :func:`request_key`, a SHA-256 of ``METHOD|URL`` with the fragment
dropped, so two requests for the same resource always hit the same entry.
A write replaces the previous entry for the key (last-write-wins).

:mod:`diskcache` runs every operation in its own SQLite transaction and is
safe to share between threads and processes.  Disk I/O is pushed onto a
worker thread with :func:`asyncio.to_thread` so lookups and writes are
suspension points that never block the event loop.

See Also:
    :class:`~swcache.manifest.AssetManifest` -- what :meth:`CacheStore.seed`
    writes at install time.
"""

from __future__ import annotations

import asyncio
import hashlib
import shutil
import sqlite3
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, Optional

import diskcache
import httpx

from swcache.exceptions import SeedError, StoreError
from swcache.manifest import AssetManifest
from swcache.models import CacheNamespace, StoredResponse
from swcache.network import Network
from swcache.output import debug, warning

_DB_FILENAME = "cache.db"
_INSTALLED_FILENAME = "installed"
_STORE_ERRORS = (sqlite3.Error, OSError, diskcache.Timeout)


def request_key(request: httpx.Request | str) -> str:
    """Return the cache key for *request* (a request object or absolute URL)."""
    if isinstance(request, str):
        request = httpx.Request("GET", request)
    url = request.url.copy_with(fragment=None)
    raw = f"{request.method.upper()}|{url}"
    return hashlib.sha256(raw.encode()).hexdigest()


class Namespace:
    """Handle to one open namespace, returned by :meth:`CacheStore.open`.

    This is the ``store`` argument every strategy receives; its methods
    delegate to the owning :class:`CacheStore`.
    """

    def __init__(self, store: CacheStore, name: str, cache: diskcache.Cache) -> None:
        self._store = store
        self._cache = cache
        self.name = name

    async def match(self, request: httpx.Request) -> Optional[StoredResponse]:
        return await self._store.match(self, request)

    async def put(self, request: httpx.Request, response: httpx.Response) -> None:
        await self._store.put(self, request, response)

    def put_in_background(
        self, request: httpx.Request, response: httpx.Response
    ) -> asyncio.Task[None]:
        return self._store.put_in_background(self, request, response)

    def spawn(self, coro: Coroutine[Any, Any, Any], description: str) -> asyncio.Task[None]:
        return self._store.spawn(coro, description)

    async def entries(self) -> list[StoredResponse]:
        """All stored responses, in no particular order."""
        return await asyncio.to_thread(self._read_all)

    def __len__(self) -> int:
        return len(self._cache)

    def __repr__(self) -> str:
        return f"Namespace({self.name!r})"

    def _read_all(self) -> list[StoredResponse]:
        entries = []
        for key in self._cache.iterkeys():
            data = self._cache.get(key)
            if data is not None:
                entries.append(StoredResponse.model_validate(data))
        return entries


class CacheStore:
    """Persistent key/value store of responses, partitioned by namespace.

    Args:
        root: Directory holding one sub-directory per namespace.  Created
            if missing.

    Example::

        store = CacheStore(get_cache_dir() / "store")
        ns = store.open("shop-v2")
        await store.seed(ns, AssetManifest(["/", "app.js"]), network, "https://shop.example/")
        hit = await ns.match(httpx.Request("GET", "https://shop.example/app.js"))
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._caches: dict[str, diskcache.Cache] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def root(self) -> Path:
        return self._root

    # ------------------------------------------------------------------ #
    # Namespaces
    # ------------------------------------------------------------------ #

    def open(self, namespace: str | CacheNamespace) -> Namespace:
        """Open *namespace*, creating it if absent.  Idempotent.

        Raises:
            StoreError: If the name is not a valid directory name or the
                cache cannot be created.
        """
        name = str(namespace)
        if not name or name in (".", "..") or name.startswith(".") or "/" in name or "\\" in name:
            raise StoreError(f"Invalid namespace name: {name!r}")

        cache = self._caches.get(name)
        if cache is None:
            try:
                cache = diskcache.Cache(str(self._root / name))
            except _STORE_ERRORS as exc:
                raise StoreError(f"Cannot open namespace {name}: {exc}") from exc
            self._caches[name] = cache
        return Namespace(self, name, cache)

    async def list_namespaces(self) -> list[str]:
        return await asyncio.to_thread(self._list_namespaces)

    async def is_installed(self, name: str) -> bool:
        """Whether *name* holds a completed seed.

        A namespace that was only opened, written to at runtime, or whose
        seed failed exists on disk but is not installed.
        """
        return await asyncio.to_thread(self._is_installed, name)

    async def remove(self, name: str) -> bool:
        """Delete a whole namespace.

        Best-effort: failures are reported as warnings and ``False`` is
        returned, never raised.

        Returns:
            ``True`` if the namespace existed and was deleted.
        """
        cache = self._caches.pop(name, None)
        if cache is not None:
            cache.close()
        path = self._root / name
        if not (path / _DB_FILENAME).is_file():
            debug(f"Namespace {name} does not exist, nothing to remove")
            return False
        try:
            await asyncio.to_thread(shutil.rmtree, path)
        except OSError as exc:
            warning(f"Failed to remove namespace {name}: {exc}")
            return False
        debug(f"Removed namespace {name}")
        return True

    # ------------------------------------------------------------------ #
    # Entries
    # ------------------------------------------------------------------ #

    async def seed(
        self,
        handle: Namespace,
        manifest: AssetManifest,
        network: Network,
        origin: str,
    ) -> int:
        """Fetch every manifest resource and store them all, or none.

        All resources are fetched concurrently.  Only when every fetch has
        produced a 2xx response are the entries written, inside a single
        :meth:`diskcache.Cache.transact` block, after which the namespace is
        marked installed (see :meth:`is_installed`).  A failure at any point
        leaves none of the manifest's entries in the namespace and does not
        mark it.

        Returns:
            Number of entries written.

        Raises:
            SeedError: If any resource is unreachable, answers with a
                non-2xx status, or cannot be stored.
        """
        requests = manifest.requests(origin)
        results = await asyncio.gather(
            *(_fetch_for_seed(network, request) for request in requests),
            return_exceptions=True,
        )

        entries: list[tuple[str, dict[str, Any]]] = []
        for request, result in zip(requests, results):
            if isinstance(result, SeedError):
                raise result
            if isinstance(result, BaseException):
                raise SeedError(
                    f"Failed to fetch {request.url}: {result}", url=str(request.url)
                ) from result
            entries.append((request_key(request), StoredResponse.from_response(result).model_dump()))

        try:
            await asyncio.to_thread(_write_seed, handle._cache, entries)
        except _STORE_ERRORS as exc:
            raise SeedError(f"Failed to store manifest in {handle.name}: {exc}") from exc
        debug(f"Seeded {len(entries)} entries into {handle.name}")
        return len(entries)

    async def match(self, handle: Namespace, request: httpx.Request) -> Optional[StoredResponse]:
        """Look up *request*.  Non-GET requests never match.

        Raises:
            StoreError: If the underlying cache cannot be read.
        """
        if request.method.upper() != "GET":
            return None
        key = request_key(request)
        try:
            data = await asyncio.to_thread(handle._cache.get, key)
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot read {request.url} from {handle.name}: {exc}") from exc
        if data is None:
            debug(f"Cache miss {request.url} in {handle.name}")
            return None
        debug(f"Cache hit {request.url} in {handle.name}")
        return StoredResponse.model_validate(data)

    async def put(self, handle: Namespace, request: httpx.Request, response: httpx.Response) -> None:
        """Insert or replace the entry for *request*.

        Raises:
            StoreError: For non-GET requests, partial (206) responses, or
                when the underlying cache cannot be written.
        """
        stored = self._snapshot(request, response)
        await self._write(handle, request, stored)

    def put_in_background(
        self, handle: Namespace, request: httpx.Request, response: httpx.Response
    ) -> asyncio.Task[None]:
        """Write a copy of *response* without making the caller wait.

        The response is copied before this method returns, so the caller is
        free to hand the live response on.  Write failures are logged only.
        """
        stored = self._snapshot(request, response)
        return self.spawn(self._write(handle, request, stored), f"write of {request.url}")

    # ------------------------------------------------------------------ #
    # Background tasks
    # ------------------------------------------------------------------ #

    def spawn(self, coro: Coroutine[Any, Any, Any], description: str) -> asyncio.Task[None]:
        """Run *coro* as a detached task whose failures only reach the log."""
        task = asyncio.ensure_future(_run_logged(coro, description))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        """Number of background tasks still running."""
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every background task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Introspection and shutdown
    # ------------------------------------------------------------------ #

    def stats(self) -> dict[str, Any]:
        """Return the store directory and the entry count of each namespace."""
        return {
            "directory": str(self._root),
            "namespaces": {name: len(self.open(name)) for name in self._list_namespaces()},
            "pending_writes": self.pending,
        }

    async def aclose(self) -> None:
        """Cancel outstanding background tasks, then close every namespace."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.close()

    def close(self) -> None:
        """Close every open :class:`diskcache.Cache`."""
        for cache in self._caches.values():
            cache.close()
        self._caches.clear()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _list_namespaces(self) -> list[str]:
        return sorted(
            p.name for p in self._root.iterdir() if p.is_dir() and (p / _DB_FILENAME).is_file()
        )

    def _is_installed(self, name: str) -> bool:
        path = self._root / name
        return (path / _DB_FILENAME).is_file() and (path / _INSTALLED_FILENAME).is_file()

    @staticmethod
    def _snapshot(request: httpx.Request, response: httpx.Response) -> StoredResponse:
        if request.method.upper() != "GET":
            raise StoreError(f"Only GET requests can be cached, got {request.method}")
        if response.status_code == 206:
            raise StoreError(f"Partial response for {request.url} cannot be cached")
        return StoredResponse.from_response(response)

    @staticmethod
    async def _write(handle: Namespace, request: httpx.Request, stored: StoredResponse) -> None:
        key = request_key(request)
        try:
            await asyncio.to_thread(handle._cache.set, key, stored.model_dump())
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot write {request.url} to {handle.name}: {exc}") from exc
        debug(f"Stored {request.url} in {handle.name}")


async def _fetch_for_seed(network: Network, request: httpx.Request) -> httpx.Response:
    response = await network.fetch(request)
    if not response.is_success:
        raise SeedError(
            f"{request.url} returned HTTP {response.status_code}", url=str(request.url)
        )
    return response


def _write_seed(cache: diskcache.Cache, entries: list[tuple[str, dict[str, Any]]]) -> None:
    with cache.transact():
        for key, value in entries:
            cache.set(key, value)
    Path(cache.directory, _INSTALLED_FILENAME).touch()


async def _run_logged(coro: Coroutine[Any, Any, Any], description: str) -> None:
    try:
        await coro
    except Exception as exc:
        warning(f"Background {description} failed: {exc}")
