"""Shared test fixtures for swcache.

Provides isolated config environments, a throw-away cache store, and
network doubles built on :class:`httpx.MockTransport`.  These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Optional

import httpx
import pytest

from swcache.exceptions import NetworkError
from swcache.models import EngineConfig
from swcache.network import HttpxNetwork
from swcache.output import OutputFormat, OutputManager, reset_output, set_output
from swcache.store import CacheStore

ORIGIN = "https://shop.example/"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path, clears all SWCACHE_* environment
    variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("swcache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["SWCACHE_CONFIG", "SWCACHE_ORIGIN", "SWCACHE_STORE_DIR"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def verbose_output() -> OutputManager:
    """Install a PLAIN-format OutputManager that shows debug messages."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(
        cacheTitle="app",
        cacheVersion="v1",
        contentToCache=["/", "index.html", "assets/app.js"],
        requestProcessingMethod="cacheFirst",
        dynamicFolder="/api/",
        origin=ORIGIN,
    )


@pytest.fixture
def store(tmp_path: Path) -> CacheStore:
    """A CacheStore rooted in a fresh temporary directory."""
    cache_store = CacheStore(tmp_path / "store")
    yield cache_store
    cache_store.close()


# ---------------------------------------------------------------------------
# Network doubles
# ---------------------------------------------------------------------------


class RecordingNetwork(HttpxNetwork):
    """HttpxNetwork over a MockTransport that records every request it sends.

    Args:
        routes: Map of URL path to ``(status, body)``.  Paths not listed
            answer 404.
        offline: Paths whose requests fail with a transport error.
    """

    def __init__(
        self,
        routes: Optional[dict[str, tuple[int, str]]] = None,
        offline: tuple[str, ...] = (),
    ) -> None:
        self.routes = dict(routes or {})
        self.offline = set(offline)
        self.requests: list[httpx.Request] = []
        super().__init__(transport=httpx.MockTransport(self._handle))

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path in self.offline:
            raise httpx.ConnectError("connection refused", request=request)
        status, body = self.routes.get(request.url.path, (404, "not found"))
        return httpx.Response(status, text=body, headers={"X-Origin": "network"})

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


class FailingNetwork:
    """A network that is always unreachable."""

    def __init__(self) -> None:
        self.calls = 0

    async def fetch(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        raise NetworkError(f"{request.url} unreachable")


class StalledNetwork:
    """A network whose fetches never complete until :meth:`release` is called."""

    def __init__(self, status: int = 200, body: str = "fresh") -> None:
        self.started = 0
        self._status = status
        self._body = body
        self._release = asyncio.Event()

    def release(self) -> None:
        self._release.set()

    async def fetch(self, request: httpx.Request) -> httpx.Response:
        self.started += 1
        await self._release.wait()
        return httpx.Response(self._status, text=self._body, request=request)


@pytest.fixture
def make_network() -> Callable[..., RecordingNetwork]:
    """Factory for RecordingNetwork instances."""
    return RecordingNetwork


@pytest.fixture
def failing_network() -> FailingNetwork:
    return FailingNetwork()


@pytest.fixture
def stalled_network() -> StalledNetwork:
    return StalledNetwork()


@pytest.fixture
def site_routes() -> dict[str, tuple[int, str]]:
    """Routes serving every asset of ``engine_config``'s manifest."""
    return {
        "/": (200, "<html>home</html>"),
        "/index.html": (200, "<html>index</html>"),
        "/assets/app.js": (200, "console.log('app')"),
    }


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
