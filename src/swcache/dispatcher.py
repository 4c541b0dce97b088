"""Per-request routing from an intercepted request to one strategy."""

from __future__ import annotations

from typing import Optional

import httpx

from swcache.exceptions import StoreError
from swcache.models import EngineConfig
from swcache.network import Network
from swcache.output import debug, warning
from swcache.store import Namespace
from swcache.strategies import StrategyId, is_dynamic


class Dispatcher:
    """Selects the configured strategy for every intercepted request.

    Routing rules, in order:

    1. Non-GET requests are declined (never cached).
    2. An unknown ``request_processing_method`` declines every request.
       The request then goes to the network untouched, as if no engine
       were installed.
    3. Requests whose path starts with ``dynamic_folder`` use
       ``networkOnly`` whatever the configured strategy.
    4. Everything else goes to the configured strategy.

    A declined request is signalled by :meth:`dispatch` returning ``None``.

    Args:
        config: Immutable engine configuration.
        store: Handle to the current namespace.
        network: Network used by the strategies.
    """

    def __init__(self, config: EngineConfig, store: Namespace, network: Network) -> None:
        self._config = config
        self._store = store
        self._network = network
        self._strategy = StrategyId.lookup(config.request_processing_method)
        if self._strategy is None:
            warning(
                f"Unknown request processing method '{config.request_processing_method}'; "
                "requests will not be intercepted"
            )

    @property
    def strategy(self) -> Optional[StrategyId]:
        """The configured strategy, or ``None`` when requests pass through."""
        return self._strategy

    def select(self, request: httpx.Request) -> Optional[StrategyId]:
        """Return the strategy that would handle *request*, or ``None`` to decline."""
        if request.method.upper() != "GET" or self._strategy is None:
            return None
        if is_dynamic(request, self._config.dynamic_folder):
            return StrategyId.NETWORK_ONLY
        return self._strategy

    async def dispatch(self, request: httpx.Request) -> Optional[httpx.Response]:
        """Resolve *request*, or return ``None`` to let it pass through."""
        strategy = self.select(request)
        if strategy is None:
            debug(f"Passing through {request.method} {request.url}")
            return None

        debug(f"{strategy.value}: {request.url}")
        try:
            return await strategy.resolve(
                request,
                self._store,
                self._network,
                dynamic_prefix=self._config.dynamic_folder,
            )
        except StoreError as exc:
            warning(f"Cache store unavailable ({exc}); using the network for {request.url}")
            return await StrategyId.NETWORK_ONLY.resolve(request, self._store, self._network)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        """Like :meth:`dispatch`, but performs the pass-through fetch itself.

        Raises:
            NetworkError: If a declined request cannot reach the network.
        """
        response = await self.dispatch(request)
        if response is None:
            response = await self._network.fetch(request)
        return response
