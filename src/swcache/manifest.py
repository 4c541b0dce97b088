"""The static asset manifest seeded into a namespace at install time."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from pathlib import Path

import httpx
import yaml

from swcache.exceptions import ConfigError
from swcache.models import EngineConfig


class AssetManifest:
    """Ordered, immutable list of resource paths known at build time.

    Paths are resolved against the engine origin the way a browser
    resolves them against the worker script URL: ``"/"`` is the origin
    root, ``"index.html"`` and ``"assets/app.js"`` are relative to it.

    Raises:
        ConfigError: If a path is empty or listed more than once.
    """

    def __init__(self, paths: Iterable[str]) -> None:
        ordered = tuple(paths)
        seen: set[str] = set()
        for path in ordered:
            if not isinstance(path, str) or not path:
                raise ConfigError(f"Invalid manifest entry: {path!r}")
            if path in seen:
                raise ConfigError(f"Duplicate manifest entry: {path}")
            seen.add(path)
        self._paths = ordered

    @classmethod
    def from_config(cls, config: EngineConfig) -> AssetManifest:
        return cls(config.content_to_cache)

    @classmethod
    def load(cls, path: str | Path) -> AssetManifest:
        """Read a manifest from a JSON or YAML file.

        The file holds either a plain list of paths or an object with a
        ``contentToCache`` (or ``content_to_cache``) list.  Files ending in
        ``.yaml`` or ``.yml`` are parsed as YAML, everything else as JSON.
        """
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(content)
            else:
                data = json.loads(content)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot read manifest {path}: {exc}") from exc

        if isinstance(data, dict):
            data = data.get("contentToCache", data.get("content_to_cache"))
        if not isinstance(data, list):
            raise ConfigError(f"Manifest {path} must contain a list of paths")
        return cls(data)

    @property
    def paths(self) -> tuple[str, ...]:
        return self._paths

    def urls(self, origin: str) -> list[str]:
        """Absolute URLs for every path, in manifest order."""
        base = httpx.URL(origin if origin.endswith("/") else origin + "/")
        return [str(base.join(path)) for path in self._paths]

    def requests(self, origin: str) -> list[httpx.Request]:
        return [httpx.Request("GET", url) for url in self.urls(origin)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def __repr__(self) -> str:
        return f"AssetManifest({list(self._paths)!r})"
