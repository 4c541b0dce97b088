"""Install / activate / upgrade lifecycle of engine instances.

A deployed version of the engine is a :class:`ServiceWorker`.  Instances of
one origin are tracked by a :class:`Registration`, which decides when a new
instance takes over and notifies the connected :class:`Client` objects.

State machine of one instance::

    parsed -> installing -> installed (waiting) -> activating -> activated
                   |                |
                   +-> redundant    +-> redundant (superseded)

* **install** seeds the instance's namespace with the asset manifest.  A
  failed seed makes the instance redundant and leaves the active instance
  untouched.
* **activate** deletes every namespace other than the instance's own.
  Removal failures are logged and do not stop activation.
* **SKIP_WAITING** promotes a waiting instance immediately; every connected
  client then receives one controller-change signal and is expected to
  reload.
* **GET_VERSION** broadcasts ``cache_version`` to every connected client.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Coroutine
from typing import Any, Optional

import httpx

from swcache.dispatcher import Dispatcher
from swcache.exceptions import LifecycleError, SeedError
from swcache.manifest import AssetManifest
from swcache.models import CacheNamespace, EngineConfig, LifecycleState, WorkerMessage
from swcache.network import Network
from swcache.output import debug, info, warning
from swcache.store import CacheStore, Namespace


class Client:
    """A consumer of the engine (an open page, a tab, a CLI session).

    Receives out-of-band messages posted by the active instance and the
    controller-change signal after a forced upgrade.

    Args:
        client_id: Optional identifier; a random one is generated otherwise.
    """

    def __init__(self, client_id: Optional[str] = None) -> None:
        self.id = client_id or uuid.uuid4().hex
        self.controller: Optional[ServiceWorker] = None
        self.controller_changes = 0
        self._messages: asyncio.Queue[Any] = asyncio.Queue()
        self._listeners: list[Callable[[Client], None]] = []

    def post_message(self, data: Any) -> None:
        self._messages.put_nowait(data)

    async def next_message(self, timeout: Optional[float] = None) -> Any:
        """Wait for the next message posted to this client."""
        return await asyncio.wait_for(self._messages.get(), timeout)

    def on_controller_change(self, callback: Callable[[Client], None]) -> None:
        self._listeners.append(callback)

    def _set_controller(self, worker: ServiceWorker) -> None:
        self.controller = worker
        self.controller_changes += 1
        for callback in self._listeners:
            callback(self)

    def __repr__(self) -> str:
        return f"Client({self.id!r})"


class ServiceWorker:
    """One deployed instance of the engine.

    Args:
        config: Immutable deployment configuration.
        store: Shared persistent store.
        network: Network used for seeding and by the strategies.
        manifest: Asset manifest; defaults to ``config.content_to_cache``.
    """

    def __init__(
        self,
        config: EngineConfig,
        store: CacheStore,
        network: Network,
        manifest: Optional[AssetManifest] = None,
    ) -> None:
        self.config = config
        self.manifest = manifest if manifest is not None else AssetManifest.from_config(config)
        self.state = LifecycleState.PARSED
        self.registration: Optional[Registration] = None
        self.skip_waiting_requested = False
        self._store = store
        self._network = network
        self._handle: Optional[Namespace] = None
        self._dispatcher: Optional[Dispatcher] = None
        self._activation: Optional[asyncio.Future[list[str]]] = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def namespace(self) -> CacheNamespace:
        return self.config.namespace

    @property
    def version(self) -> str:
        return self.config.cache_version

    @property
    def dispatcher(self) -> Dispatcher:
        if self._dispatcher is None:
            self._dispatcher = Dispatcher(self.config, self._open_namespace(), self._network)
        return self._dispatcher

    # ------------------------------------------------------------------ #
    # Lifecycle events
    # ------------------------------------------------------------------ #

    async def install(self) -> None:
        """Seed this instance's namespace with the asset manifest.

        Raises:
            SeedError: If any manifest resource could not be seeded.  The
                instance becomes redundant.
            LifecycleError: If the instance was already installed.
        """
        if self.state is not LifecycleState.PARSED:
            raise LifecycleError(f"Cannot install {self.namespace} in state {self.state.value}")

        self.state = LifecycleState.INSTALLING
        info(f"{self.namespace} Installation")
        try:
            count = await self._store.seed(
                self._open_namespace(), self.manifest, self._network, self.config.origin
            )
        except SeedError:
            self.state = LifecycleState.REDUNDANT
            raise
        self.state = LifecycleState.INSTALLED
        debug(f"{self.namespace} installed with {count} assets")

    async def restore(self) -> None:
        """Adopt a namespace that an earlier process already installed.

        Raises:
            LifecycleError: If the instance is not fresh or its namespace
                was never seeded to completion.
        """
        if self.state is not LifecycleState.PARSED:
            raise LifecycleError(f"Cannot restore {self.namespace} in state {self.state.value}")
        if not await self._store.is_installed(self.namespace.id):
            raise LifecycleError(f"{self.namespace} is not installed")
        self.state = LifecycleState.INSTALLED

    async def activate(self) -> list[str]:
        """Remove every namespace except this instance's own.

        Runs once; concurrent or repeated calls wait for and return the
        result of the first run.

        Returns:
            Names of the namespaces that were removed.

        Raises:
            LifecycleError: If the instance is not installed.
        """
        if self._activation is None:
            if self.state is not LifecycleState.INSTALLED:
                raise LifecycleError(
                    f"Cannot activate {self.namespace} in state {self.state.value}"
                )
            self._activation = asyncio.ensure_future(self._run_activation())
        return await asyncio.shield(self._activation)

    async def _run_activation(self) -> list[str]:
        self.state = LifecycleState.ACTIVATING
        current = self.namespace.id
        stale = [name for name in await self._store.list_namespaces() if name != current]
        results = await asyncio.gather(*(self._store.remove(name) for name in stale))
        removed = [name for name, ok in zip(stale, results) if ok]
        for name, ok in zip(stale, results):
            if not ok:
                warning(f"Stale namespace {name} was not removed")
        self.state = LifecycleState.ACTIVATED
        info(f"{self.namespace} activated")
        return removed

    async def fetch(self, request: httpx.Request) -> Optional[httpx.Response]:
        """Handle an intercepted request; ``None`` means pass-through.

        Raises:
            LifecycleError: If this instance is not active.
        """
        if self.state is not LifecycleState.ACTIVATED:
            raise LifecycleError(f"{self.namespace} is {self.state.value}, not active")
        return await self.dispatcher.dispatch(request)

    # ------------------------------------------------------------------ #
    # Message channel
    # ------------------------------------------------------------------ #

    def post_message(self, data: Any) -> Optional[asyncio.Task[Any]]:
        """Deliver a message from a client.

        Handling happens in a background task, which is returned so callers
        may await it.  Unrecognised messages are ignored.
        """
        if data == WorkerMessage.SKIP_WAITING.value:
            return self._spawn(self.skip_waiting())
        if data == WorkerMessage.GET_VERSION.value:
            return self._spawn(self._broadcast_version())
        debug(f"{self.namespace} ignored message {data!r}")
        return None

    async def skip_waiting(self) -> None:
        """Ask to become active without waiting for clients to detach."""
        self.skip_waiting_requested = True
        if self.registration is not None and self.state is LifecycleState.INSTALLED:
            await self.registration.skip_waiting(self)

    async def _broadcast_version(self) -> None:
        clients = self.registration.clients if self.registration is not None else ()
        for client in clients:
            client.post_message(self.config.cache_version)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _open_namespace(self) -> Namespace:
        if self._handle is None:
            self._handle = self._store.open(self.namespace)
        return self._handle

    def __repr__(self) -> str:
        return f"ServiceWorker({self.namespace.id!r}, {self.state.value})"


class Registration:
    """Tracks the engine instances of one origin and their clients.

    At most one instance is active.  A newly registered instance is
    installed, then either activated at once (no active instance, nobody
    connected, or skip-waiting already requested) or parked as ``waiting``
    until :meth:`skip_waiting` or until the last client disconnects.

    Args:
        scope: The origin this registration controls.
    """

    def __init__(self, scope: str) -> None:
        self.scope = scope
        self.installing: Optional[ServiceWorker] = None
        self.waiting: Optional[ServiceWorker] = None
        self.active: Optional[ServiceWorker] = None
        self._clients: list[Client] = []

    @property
    def clients(self) -> tuple[Client, ...]:
        return tuple(self._clients)

    async def register(self, worker: ServiceWorker) -> ServiceWorker:
        """Install *worker* and promote it when allowed.

        Raises:
            SeedError: If installation fails.  The current active instance
                keeps serving.
        """
        worker.registration = self
        self.installing = worker
        try:
            await worker.install()
        finally:
            self.installing = None

        if self.waiting is not None:
            self.waiting.state = LifecycleState.REDUNDANT
        self.waiting = worker

        if self.active is None or not self._clients:
            await self._promote(worker, notify=False)
        elif worker.skip_waiting_requested:
            await self._promote(worker, notify=True)
        else:
            info(f"{worker.namespace} waiting to activate")
        return worker

    async def skip_waiting(self, worker: ServiceWorker) -> None:
        """Promote *worker* now if it is the waiting instance."""
        if worker is self.waiting:
            await self._promote(worker, notify=True)

    def connect(self, client: Optional[Client] = None) -> Client:
        """Attach a client; it is controlled by the current active instance."""
        client = client or Client()
        self._clients.append(client)
        client.controller = self.active
        return client

    async def disconnect(self, client: Client) -> None:
        """Detach a client; the last one leaving lets a waiting instance take over."""
        if client in self._clients:
            self._clients.remove(client)
        client.controller = None
        if not self._clients and self.waiting is not None:
            await self._promote(self.waiting, notify=False)

    async def fetch(self, request: httpx.Request) -> Optional[httpx.Response]:
        """Route *request* through the active instance; ``None`` means pass-through."""
        if self.active is None:
            return None
        return await self.active.fetch(request)

    async def _promote(self, worker: ServiceWorker, notify: bool) -> None:
        # Cleared before awaiting so a repeated SKIP_WAITING cannot promote twice.
        if self.waiting is worker:
            self.waiting = None
        previous = self.active
        await worker.activate()
        self.active = worker
        if previous is not None and previous is not worker:
            previous.state = LifecycleState.REDUNDANT
        if notify:
            for client in self._clients:
                client._set_controller(worker)
        else:
            for client in self._clients:
                client.controller = worker
