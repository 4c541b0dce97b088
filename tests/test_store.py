"""Tests for swcache.store -- namespaces, matching, writes and atomic seeding."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest

from swcache.exceptions import SeedError, StoreError
from swcache.manifest import AssetManifest
from swcache.models import CacheNamespace
from swcache.store import CacheStore, request_key

ORIGIN = "https://shop.example/"


def _get(path: str) -> httpx.Request:
    return httpx.Request("GET", ORIGIN.rstrip("/") + path)


def _response(status: int = 200, body: str = "ok", **headers: str) -> httpx.Response:
    return httpx.Response(status, text=body, headers=headers)


# ---------------------------------------------------------------------------
# Request keys
# ---------------------------------------------------------------------------


class TestRequestKey:
    def test_same_url_same_key(self) -> None:
        assert request_key(_get("/a")) == request_key(_get("/a"))

    def test_string_url_matches_get_request(self) -> None:
        assert request_key(ORIGIN + "a") == request_key(_get("/a"))

    def test_fragment_ignored(self) -> None:
        assert request_key(ORIGIN + "a#top") == request_key(ORIGIN + "a")

    def test_query_is_significant(self) -> None:
        assert request_key(ORIGIN + "a?x=1") != request_key(ORIGIN + "a?x=2")

    def test_method_is_significant(self) -> None:
        post = httpx.Request("POST", ORIGIN + "a")
        assert request_key(post) != request_key(_get("/a"))


# ---------------------------------------------------------------------------
# Namespaces
# ---------------------------------------------------------------------------


class TestNamespaces:
    def test_open_is_idempotent(self, store: CacheStore) -> None:
        first = store.open("app-v1")
        second = store.open("app-v1")
        assert first.name == second.name == "app-v1"
        assert len(first) == 0

    def test_open_accepts_cache_namespace(self, store: CacheStore) -> None:
        handle = store.open(CacheNamespace(title="app", version="v2"))
        assert handle.name == "app-v2"

    @pytest.mark.parametrize("name", ["", ".", "..", ".hidden", "a/b", "a\\b"])
    def test_invalid_names_rejected(self, store: CacheStore, name: str) -> None:
        with pytest.raises(StoreError):
            store.open(name)

    @pytest.mark.asyncio
    async def test_list_namespaces(self, store: CacheStore) -> None:
        store.open("app-v2")
        store.open("app-v1")
        (store.root / "not-a-cache").mkdir()
        assert await store.list_namespaces() == ["app-v1", "app-v2"]

    @pytest.mark.asyncio
    async def test_remove(self, store: CacheStore) -> None:
        handle = store.open("app-v1")
        await handle.put(_get("/a"), _response())

        assert await store.remove("app-v1") is True
        assert await store.list_namespaces() == []
        assert not (store.root / "app-v1").exists()

    @pytest.mark.asyncio
    async def test_remove_missing_returns_false(self, store: CacheStore) -> None:
        assert await store.remove("app-v9") is False

    @pytest.mark.asyncio
    async def test_removed_namespace_reopens_empty(self, store: CacheStore) -> None:
        await store.open("app-v1").put(_get("/a"), _response())
        await store.remove("app-v1")
        assert await store.open("app-v1").match(_get("/a")) is None

    def test_stats(self, store: CacheStore) -> None:
        store.open("app-v1")
        stats = store.stats()
        assert stats["directory"] == str(store.root)
        assert stats["namespaces"] == {"app-v1": 0}
        assert stats["pending_writes"] == 0

    def test_root_created(self, tmp_path: Path) -> None:
        root = tmp_path / "nested" / "store"
        CacheStore(root).close()
        assert root.is_dir()


# ---------------------------------------------------------------------------
# Match and put
# ---------------------------------------------------------------------------


class TestMatchPut:
    @pytest.mark.asyncio
    async def test_miss_returns_none(self, store: CacheStore) -> None:
        assert await store.open("app-v1").match(_get("/missing")) is None

    @pytest.mark.asyncio
    async def test_put_then_match(self, store: CacheStore) -> None:
        handle = store.open("app-v1")
        await handle.put(_get("/a"), _response(body="hello", **{"X-Test": "1"}))

        hit = await handle.match(_get("/a"))
        assert hit is not None
        assert hit.status_code == 200
        assert hit.body == b"hello"
        assert ("x-test", "1") in [(k.lower(), v) for k, v in hit.headers]

    @pytest.mark.asyncio
    async def test_last_write_wins(self, store: CacheStore) -> None:
        handle = store.open("app-v1")
        await handle.put(_get("/a"), _response(body="first"))
        await handle.put(_get("/a"), _response(body="second"))

        hit = await handle.match(_get("/a"))
        assert hit is not None
        assert hit.body == b"second"
        assert len(handle) == 1

    @pytest.mark.asyncio
    async def test_error_statuses_are_stored(self, store: CacheStore) -> None:
        handle = store.open("app-v1")
        await handle.put(_get("/gone"), _response(status=404, body="nope"))
        hit = await handle.match(_get("/gone"))
        assert hit is not None
        assert hit.status_code == 404

    @pytest.mark.asyncio
    async def test_namespaces_are_isolated(self, store: CacheStore) -> None:
        await store.open("app-v1").put(_get("/a"), _response(body="v1"))
        assert await store.open("app-v2").match(_get("/a")) is None

    @pytest.mark.asyncio
    async def test_stored_copy_is_independent(self, store: CacheStore) -> None:
        handle = store.open("app-v1")
        await handle.put(_get("/a"), _response(body="body"))
        hit = await handle.match(_get("/a"))
        assert hit is not None

        first = hit.to_response()
        second = hit.to_response()
        assert first.content == second.content == b"body"
        assert first is not second

    @pytest.mark.asyncio
    async def test_non_get_never_matches(self, store: CacheStore) -> None:
        handle = store.open("app-v1")
        await handle.put(_get("/a"), _response())
        assert await handle.match(httpx.Request("POST", ORIGIN + "a")) is None

    @pytest.mark.asyncio
    async def test_non_get_put_refused(self, store: CacheStore) -> None:
        handle = store.open("app-v1")
        with pytest.raises(StoreError, match="Only GET"):
            await handle.put(httpx.Request("POST", ORIGIN + "a"), _response())

    @pytest.mark.asyncio
    async def test_partial_response_refused(self, store: CacheStore) -> None:
        handle = store.open("app-v1")
        with pytest.raises(StoreError, match="Partial"):
            await handle.put(_get("/video"), _response(status=206))

    @pytest.mark.asyncio
    async def test_entries(self, store: CacheStore) -> None:
        handle = store.open("app-v1")
        await handle.put(_get("/a"), _response(body="a"))
        await handle.put(_get("/b"), _response(body="b"))
        bodies = sorted(entry.body for entry in await handle.entries())
        assert bodies == [b"a", b"b"]


# ---------------------------------------------------------------------------
# Background writes
# ---------------------------------------------------------------------------


class TestBackgroundWrites:
    @pytest.mark.asyncio
    async def test_put_in_background_lands_after_drain(self, store: CacheStore) -> None:
        handle = store.open("app-v1")
        handle.put_in_background(_get("/a"), _response(body="later"))
        await store.drain()

        hit = await handle.match(_get("/a"))
        assert hit is not None
        assert hit.body == b"later"
        assert store.pending == 0

    @pytest.mark.asyncio
    async def test_background_failure_is_logged_only(
        self, store: CacheStore, capfd: pytest.CaptureFixture[str]
    ) -> None:
        async def _boom() -> None:
            raise StoreError("disk full")

        task = store.spawn(_boom(), "write of /a")
        await task
        assert task.exception() is None
        assert "disk full" in capfd.readouterr().err

    @pytest.mark.asyncio
    async def test_aclose_cancels_pending(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path / "store")
        never = asyncio.Event()
        store.spawn(never.wait(), "wait")
        assert store.pending == 1

        await store.aclose()
        assert store.pending == 0


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


class TestSeed:
    @pytest.mark.asyncio
    async def test_seed_stores_every_asset(
        self, store: CacheStore, make_network, site_routes
    ) -> None:
        network = make_network(site_routes)
        handle = store.open("app-v1")
        manifest = AssetManifest(["/", "index.html", "assets/app.js"])

        count = await store.seed(handle, manifest, network, ORIGIN)

        assert count == 3
        assert sorted(network.paths) == ["/", "/assets/app.js", "/index.html"]
        hit = await handle.match(_get("/assets/app.js"))
        assert hit is not None
        assert hit.body == b"console.log('app')"

    @pytest.mark.asyncio
    async def test_unreachable_asset_stores_nothing(
        self, store: CacheStore, make_network, site_routes
    ) -> None:
        network = make_network(site_routes, offline=("/index.html",))
        handle = store.open("app-v1")
        manifest = AssetManifest(["/", "index.html", "assets/app.js"])

        with pytest.raises(SeedError) as exc_info:
            await store.seed(handle, manifest, network, ORIGIN)

        assert exc_info.value.url == ORIGIN + "index.html"
        assert len(handle) == 0

    @pytest.mark.asyncio
    async def test_error_status_fails_seed(
        self, store: CacheStore, make_network, site_routes
    ) -> None:
        routes = dict(site_routes)
        routes["/assets/app.js"] = (500, "boom")
        handle = store.open("app-v1")
        manifest = AssetManifest(["/", "index.html", "assets/app.js"])

        with pytest.raises(SeedError, match="HTTP 500"):
            await store.seed(handle, manifest, make_network(routes), ORIGIN)
        assert len(handle) == 0

    @pytest.mark.asyncio
    async def test_empty_manifest(self, store: CacheStore, make_network) -> None:
        count = await store.seed(store.open("app-v1"), AssetManifest([]), make_network(), ORIGIN)
        assert count == 0

    @pytest.mark.asyncio
    async def test_successful_seed_marks_installed(
        self, store: CacheStore, make_network, site_routes
    ) -> None:
        handle = store.open("app-v1")
        assert await store.is_installed("app-v1") is False

        await store.seed(handle, AssetManifest(["/"]), make_network(site_routes), ORIGIN)

        assert await store.is_installed("app-v1") is True
        assert len(handle) == 1

    @pytest.mark.asyncio
    async def test_failed_seed_is_not_installed(
        self, store: CacheStore, make_network, site_routes
    ) -> None:
        network = make_network(site_routes, offline=("/index.html",))
        handle = store.open("app-v2")

        with pytest.raises(SeedError):
            await store.seed(handle, AssetManifest(["/", "index.html"]), network, ORIGIN)

        assert await store.list_namespaces() == ["app-v2"]
        assert await store.is_installed("app-v2") is False

    @pytest.mark.asyncio
    async def test_missing_namespace_is_not_installed(self, store: CacheStore) -> None:
        assert await store.is_installed("app-v9") is False
