"""Network access for the engine.

Strategies never talk to :mod:`httpx` directly; they receive an object
satisfying the :class:`Network` protocol and call ``await
network.fetch(request)``.  This mirrors the semantics of the browser
``fetch()`` call the engine replaces:

* any HTTP status (including 4xx and 5xx) is a *successful* fetch and is
  returned as-is;
* request failures (DNS, refused connection, timeout, redirect loops,
  undecodable bodies) raise :class:`~swcache.exceptions.NetworkError`.

:class:`HttpxNetwork` is the production implementation, backed by a
single :class:`httpx.AsyncClient`.  Tests pass an
:class:`httpx.MockTransport` or a hand-written stub.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

import httpx

from swcache.exceptions import NetworkError
from swcache.output import debug

#: Exceptions a strategy treats as "the network is unreachable".
NETWORK_ERRORS: tuple[type[BaseException], ...] = (NetworkError, httpx.RequestError)


@runtime_checkable
class Network(Protocol):
    """Anything that can turn a request into a fully-read response."""

    async def fetch(self, request: httpx.Request) -> httpx.Response:  # pragma: no cover
        ...


class HttpxNetwork:
    """:class:`Network` backed by :class:`httpx.AsyncClient`.

    Response bodies are read into memory before :meth:`fetch` returns, so
    callers can both store and return the same response.

    Args:
        timeout: Timeout in seconds applied to connect, read and write.
        transport: Optional transport override (``httpx.MockTransport`` in
            tests).
        verify: Verify TLS certificates.

    Example::

        async with HttpxNetwork(timeout=10) as network:
            response = await network.fetch(httpx.Request("GET", "https://example.com/"))
    """

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify: bool = True,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            verify=verify,
            follow_redirects=True,
        )

    async def __aenter__(self) -> HttpxNetwork:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self, request: httpx.Request) -> httpx.Response:
        """Send *request* and return the fully-read response.

        Raises:
            NetworkError: On connection, DNS, protocol, timeout, redirect or
                decoding errors.
        """
        try:
            response = await self._client.send(request)
        except httpx.RequestError as exc:
            debug(f"Network error for {request.method} {request.url}: {exc!r}")
            raise NetworkError(f"{request.method} {request.url} failed: {exc}") from exc
        debug(f"Network {request.method} {request.url} -> {response.status_code}")
        return response
