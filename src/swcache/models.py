"""Canonical Pydantic models shared across all swcache modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- serialised as JSON in ``swcache.json`` or the
user's config directory:
    :class:`EngineConfig`.

**Runtime models** -- produced and consumed by the store, strategies and
lifecycle manager:
    :class:`CacheNamespace`, :class:`StoredResponse`,
    :class:`LifecycleState` and :class:`WorkerMessage`.

Configuration fields accept both the snake_case attribute name and the
camelCase deployment name (``cacheTitle``, ``contentToCache``, ...) so that
existing deployment constants can be dropped into a config file unchanged.
"""

from __future__ import annotations

import enum
import time
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CONTENT_TO_CACHE: tuple[str, ...] = (
    # Pages
    "/",
    "index.html",
    # Favicons
    "favicon.ico",
    "favicon-16.png",
    "favicon-32.png",
    # CSS
    "assets/css/pwabunga.css",
    "assets/css/styles.css",
    # JS
    "assets/js/scripts.js",
    # PWA
    "pwa/css/pwabunga-ui.css",
    "pwa/icons/apple-touch-icon.png",
    "pwa/icons/icon-192.png",
    "pwa/icons/icon-512.png",
    "pwa/icons/icon-maskable-192.png",
    "pwa/icons/icon-maskable-512.png",
    "pwa/js/pwabunga.js",
    "pwa/app.webmanifest",
)

# Headers describing the wire encoding of a body that has already been
# decoded into memory.  They must not be replayed with the decoded bytes.
_HOP_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


# --- Configuration ---


class EngineConfig(BaseModel):
    """Deployment configuration of one engine instance.

    Immutable once built: the dispatcher and lifecycle manager receive it
    at construction time and never see a different value.  Loaded by
    :func:`~swcache.config.resolve_config`.

    Example::

        EngineConfig(
            cacheTitle="shop",
            cacheVersion="v2.1",
            contentToCache=["/", "app.js"],
            requestProcessingMethod="staleWhileRevalidate",
            dynamicFolder="/api/",
        )
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cache_title: str = Field(
        default="yourAppName", alias="cacheTitle", description="Cache name prefix"
    )
    cache_version: str = Field(
        default="v1.0", alias="cacheVersion", description="Deployed version string"
    )
    content_to_cache: tuple[str, ...] = Field(
        default=DEFAULT_CONTENT_TO_CACHE,
        alias="contentToCache",
        description="Static assets seeded at install time, in order",
    )
    request_processing_method: str = Field(
        default="cacheFirst",
        alias="requestProcessingMethod",
        description="cacheOnly, networkOnly, cacheFirst, networkFirst, staleWhileRevalidate",
    )
    dynamic_folder: str = Field(
        default="/api/",
        alias="dynamicFolder",
        description="URL path prefix that is never cached (empty disables)",
    )
    origin: str = Field(
        default="http://localhost:8000/",
        description="Base URL that manifest paths and relative requests resolve against",
    )
    timeout: float = Field(default=30.0, description="Network timeout in seconds")
    store_dir: Optional[str] = Field(
        default=None, description="Override for the cache store root directory"
    )

    @field_validator("cache_title", "cache_version")
    @classmethod
    def _check_namespace_part(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be empty")
        if "/" in value or "\\" in value or value.startswith("."):
            raise ValueError(f"'{value}' cannot be used as part of a cache name")
        return value

    @field_validator("origin")
    @classmethod
    def _check_origin(cls, value: str) -> str:
        url = httpx.URL(value)
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"origin must be an absolute http(s) URL, got '{value}'")
        return value if value.endswith("/") else value + "/"

    @property
    def namespace(self) -> CacheNamespace:
        """The namespace this deployment owns."""
        return CacheNamespace(title=self.cache_title, version=self.cache_version)

    @property
    def cache_name(self) -> str:
        """Shorthand for ``namespace.id``."""
        return self.namespace.id


# --- Runtime ---


class CacheNamespace(BaseModel):
    """A versioned partition of the cache store, identified as ``title-version``."""

    model_config = ConfigDict(frozen=True)

    title: str
    version: str

    @property
    def id(self) -> str:
        return f"{self.title}-{self.version}"

    def __str__(self) -> str:
        return self.id


class StoredResponse(BaseModel):
    """A response as persisted in the cache store.

    Entries are written whole and never mutated; a second write for the
    same key replaces the first.  :meth:`to_response` builds a fresh
    :class:`httpx.Response` on every call, so handing one out never
    consumes the stored copy.
    """

    url: str
    status_code: int
    reason_phrase: str = ""
    headers: list[tuple[str, str]] = Field(default_factory=list)
    body: bytes = b""
    stored_at: float = Field(default_factory=time.time)

    @classmethod
    def from_response(cls, response: httpx.Response) -> StoredResponse:
        """Snapshot an already-read :class:`httpx.Response`.

        Raises:
            httpx.ResponseNotRead: If the response body was streamed and
                not read yet.
        """
        headers = [
            (name, value)
            for name, value in response.headers.multi_items()
            if name.lower() not in _HOP_HEADERS
        ]
        try:
            url = str(response.request.url)
        except RuntimeError:
            # Response built without a request (test doubles).
            url = ""
        return cls(
            url=url,
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            headers=headers,
            body=response.content,
        )

    def to_response(self, request: Optional[httpx.Request] = None) -> httpx.Response:
        """Build a new :class:`httpx.Response` carrying this entry."""
        extensions = {}
        if self.reason_phrase:
            extensions["reason_phrase"] = self.reason_phrase.encode("ascii", "replace")
        return httpx.Response(
            status_code=self.status_code,
            headers=self.headers,
            content=self.body,
            request=request,
            extensions=extensions,
        )


class LifecycleState(str, enum.Enum):
    """States an engine instance moves through.

    ``INSTALLED`` is the *waiting* state: the namespace is fully seeded and
    the instance is ready to replace the active one.
    """

    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class WorkerMessage(str, enum.Enum):
    """Literal payloads recognised on the worker message channel."""

    SKIP_WAITING = "SKIP_WAITING"
    GET_VERSION = "GET_VERSION"
