"""The five request resolution strategies.

Each strategy is a coroutine ``resolve(request, store, network)`` that
always produces a response: cache misses and unreachable networks are
mapped to small plain-text responses instead of exceptions.

============================  =================================================
Strategy                      Behaviour
============================  =================================================
``cacheOnly``                 store only; miss -> 404
``networkOnly``               network only; failure -> 408
``cacheFirst``                store, then network with background write-back
``networkFirst``              network with write-back, then store, then 408
``staleWhileRevalidate``      cached copy immediately, refresh in background
============================  =================================================

The synthesized status codes and bodies are part of the external contract
and must not change: clients match on them.

:class:`StrategyId` is the closed set of strategy identifiers; each member
resolves through :meth:`StrategyId.resolve`.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Awaitable
from typing import Optional, Protocol

import httpx

from swcache.exceptions import StoreError
from swcache.network import NETWORK_ERRORS, Network
from swcache.output import debug, warning
from swcache.store import Namespace

NO_CACHED_RESPONSE = "No cached response found"
NETWORK_ERROR_HAPPENED = "Network error happened"
NETWORK_ERROR_OCCURRED = "Network error occurred."
REQUEST_TIMEOUT = "Request Timeout"


class Resolver(Protocol):
    """Common signature of the five strategies.

    Every resolver accepts ``dynamic_prefix`` so :meth:`StrategyId.resolve`
    can pass it uniformly; only :func:`cache_first` reads it.
    """

    def __call__(
        self,
        request: httpx.Request,
        store: Namespace,
        network: Network,
        *,
        dynamic_prefix: str = "",
    ) -> Awaitable[httpx.Response]: ...


# ------------------------------------------------------------------ #
# Synthesized responses
# ------------------------------------------------------------------ #


def synthesize(
    request: httpx.Request,
    status_code: int,
    body: str,
    reason_phrase: Optional[str] = None,
) -> httpx.Response:
    """Build a plain-text response generated by the engine itself."""
    extensions = {}
    if reason_phrase is not None:
        extensions["reason_phrase"] = reason_phrase.encode("ascii")
    return httpx.Response(
        status_code=status_code,
        headers={"Content-Type": "text/plain"},
        content=body.encode("utf-8"),
        request=request,
        extensions=extensions,
    )


def no_cached_response(request: httpx.Request) -> httpx.Response:
    return synthesize(request, 404, NO_CACHED_RESPONSE)


def network_error(request: httpx.Request) -> httpx.Response:
    return synthesize(request, 408, NETWORK_ERROR_HAPPENED)


def request_timeout(request: httpx.Request) -> httpx.Response:
    return synthesize(request, 408, NETWORK_ERROR_OCCURRED, reason_phrase=REQUEST_TIMEOUT)


def is_dynamic(request: httpx.Request, dynamic_prefix: str) -> bool:
    """True if *request* falls under the never-cached URL prefix."""
    return bool(dynamic_prefix) and request.url.path.startswith(dynamic_prefix)


# ------------------------------------------------------------------ #
# Strategies
# ------------------------------------------------------------------ #


async def cache_only(
    request: httpx.Request,
    store: Namespace,
    network: Network,
    *,
    dynamic_prefix: str = "",
) -> httpx.Response:
    cached = await store.match(request)
    if cached is None:
        return no_cached_response(request)
    return cached.to_response(request)


async def network_only(
    request: httpx.Request,
    store: Namespace,
    network: Network,
    *,
    dynamic_prefix: str = "",
) -> httpx.Response:
    try:
        return await network.fetch(request)
    except NETWORK_ERRORS as exc:
        debug(f"networkOnly: {request.url} unreachable ({exc})")
        return network_error(request)


async def cache_first(
    request: httpx.Request,
    store: Namespace,
    network: Network,
    *,
    dynamic_prefix: str = "",
) -> httpx.Response:
    """Serve from the store, falling back to the network on a miss.

    Requests under *dynamic_prefix* never touch the store.  A network
    response is written back in the background and returned immediately.
    """
    if is_dynamic(request, dynamic_prefix):
        return await network_only(request, store, network)

    cached = await store.match(request)
    if cached is not None:
        return cached.to_response(request)

    try:
        response = await network.fetch(request)
    except NETWORK_ERRORS as exc:
        debug(f"cacheFirst: {request.url} unreachable ({exc})")
        return network_error(request)

    try:
        store.put_in_background(request, response)
    except StoreError as exc:
        warning(f"Could not cache {request.url}: {exc}")
    return response


async def network_first(
    request: httpx.Request,
    store: Namespace,
    network: Network,
    *,
    dynamic_prefix: str = "",
) -> httpx.Response:
    """Prefer a fresh network response; fall back to the store when offline."""
    try:
        response = await network.fetch(request)
    except NETWORK_ERRORS as exc:
        debug(f"networkFirst: {request.url} unreachable ({exc}), trying cache")
        cached = await store.match(request)
        if cached is not None:
            return cached.to_response(request)
        return network_error(request)

    await _put_quietly(store, request, response)
    return response


async def stale_while_revalidate(
    request: httpx.Request,
    store: Namespace,
    network: Network,
    *,
    dynamic_prefix: str = "",
) -> httpx.Response:
    """Answer from the store at once while refreshing it from the network.

    The network fetch starts before the store lookup.  On a hit the cached
    copy is returned without waiting for the fetch; the fetch and its
    write-back continue as a detached task.  On a miss the fetch is
    awaited.
    """
    pending = asyncio.ensure_future(network.fetch(request))
    try:
        cached = await store.match(request)
    except BaseException:
        pending.cancel()
        raise

    if cached is not None:
        store.spawn(_revalidate(request, pending, store), f"revalidation of {request.url}")
        return cached.to_response(request)

    try:
        response = await pending
    except NETWORK_ERRORS as exc:
        debug(f"staleWhileRevalidate: {request.url} unreachable ({exc})")
        return request_timeout(request)

    await _put_quietly(store, request, response)
    return response


async def _revalidate(
    request: httpx.Request, pending: Awaitable[httpx.Response], store: Namespace
) -> None:
    response = await pending
    await store.put(request, response)


async def _put_quietly(store: Namespace, request: httpx.Request, response: httpx.Response) -> None:
    # The caller already has a good response; a failed write must not change that.
    try:
        await store.put(request, response)
    except StoreError as exc:
        warning(f"Could not cache {request.url}: {exc}")


# ------------------------------------------------------------------ #
# Strategy identifiers
# ------------------------------------------------------------------ #


class StrategyId(str, enum.Enum):
    """Closed set of strategies, keyed by their configuration identifier."""

    CACHE_ONLY = "cacheOnly"
    NETWORK_ONLY = "networkOnly"
    CACHE_FIRST = "cacheFirst"
    NETWORK_FIRST = "networkFirst"
    STALE_WHILE_REVALIDATE = "staleWhileRevalidate"

    @classmethod
    def lookup(cls, value: str) -> Optional[StrategyId]:
        """Return the member for *value*, or ``None`` if it is not a known id."""
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def resolver(self) -> Resolver:
        return _RESOLVERS[self]

    async def resolve(
        self,
        request: httpx.Request,
        store: Namespace,
        network: Network,
        *,
        dynamic_prefix: str = "",
    ) -> httpx.Response:
        return await self.resolver(request, store, network, dynamic_prefix=dynamic_prefix)


_RESOLVERS: dict[StrategyId, Resolver] = {
    StrategyId.CACHE_ONLY: cache_only,
    StrategyId.NETWORK_ONLY: network_only,
    StrategyId.CACHE_FIRST: cache_first,
    StrategyId.NETWORK_FIRST: network_first,
    StrategyId.STALE_WHILE_REVALIDATE: stale_while_revalidate,
}

_unmapped = set(StrategyId) - set(_RESOLVERS)
if _unmapped:  # pragma: no cover
    raise RuntimeError(f"Strategies without a resolver: {sorted(m.value for m in _unmapped)}")
