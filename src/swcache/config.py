"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for swcache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.swcache/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Engine config** -- a JSON object deserialised into an immutable
  :class:`~swcache.models.EngineConfig`.  Keys may use either the
  snake_case field names or the camelCase deployment names.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config and user config into the
  final effective configuration.
* **Store location** -- :func:`get_store_dir` picks the cache store root.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) so a crash never leaves a truncated config behind.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from swcache.exceptions import ConfigError
from swcache.models import EngineConfig

_APP_NAME = "swcache"
_CONFIG_FILENAME = "config.json"
PROJECT_CONFIG_FILENAME = "swcache.json"

ENV_CONFIG = "SWCACHE_CONFIG"
ENV_ORIGIN = "SWCACHE_ORIGIN"
ENV_STORE_DIR = "SWCACHE_STORE_DIR"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/swcache/`` (default ``~/.config/swcache/``).
    On macOS/Windows: ``~/.swcache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    The default cache store lives here.  Deleting it only costs a re-seed.

    On Linux/BSD: ``$XDG_CACHE_HOME/swcache/`` (default ``~/.cache/swcache/``).
    On macOS/Windows: ``~/.swcache/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/swcache/`` (default ``~/.local/share/swcache/``).
    On macOS/Windows: ``~/.swcache/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_store_dir(config: EngineConfig) -> Path:
    """Root directory of the cache store for *config*.

    ``config.store_dir`` wins; otherwise ``<cache_dir>/store``.
    """
    if config.store_dir:
        return Path(config.store_dir).expanduser()
    return get_cache_dir() / "store"


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created next to *path* so that ``os.replace`` is
    an atomic rename on POSIX systems.  On failure the temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Reading and writing config files ---


_ALIASES: dict[str, str] = {
    field.alias: name for name, field in EngineConfig.model_fields.items() if field.alias
}


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Map camelCase deployment names onto field names so layers merge cleanly."""
    return {_ALIASES.get(key, key): value for key, value in data.items()}


def _read_config_file(path: Path) -> dict[str, Any]:
    """Load a JSON object from *path* with its keys normalised.

    Raises:
        ConfigError: If the file cannot be read or is not a JSON object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config at {path} must be a JSON object")
    return _normalize_keys(data)


def user_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_user_config() -> dict[str, Any]:
    """Settings from ``~/.config/swcache/config.json`` (empty if absent)."""
    path = user_config_path()
    if not path.is_file():
        return {}
    return _read_config_file(path)


def load_project_config() -> dict[str, Any]:
    """Settings from ``./swcache.json`` (empty if absent)."""
    path = Path.cwd() / PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return {}
    return _read_config_file(path)


def load_engine_config(path: str | Path) -> EngineConfig:
    """Load and validate a single config file (no precedence merging).

    Raises:
        ConfigError: If the file is missing, not JSON, or fails validation.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    return _validate(_read_config_file(path), str(path))


def save_engine_config(config: EngineConfig, path: str | Path) -> None:
    """Persist *config* atomically, using the camelCase deployment names."""
    data = config.model_dump(mode="json", by_alias=True, exclude_none=True)
    _atomic_write(Path(path), json.dumps(data, indent=2) + "\n")


def _validate(data: dict[str, Any], source: str) -> EngineConfig:
    try:
        return EngineConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration ({source}): {exc}") from exc


# --- Precedence resolution ---


def resolve_config(
    cli_config: Optional[str] = None,
    cli_origin: Optional[str] = None,
    cli_store_dir: Optional[str] = None,
) -> EngineConfig:
    """Resolve the effective engine configuration.

    Precedence (high to low):
        1. CLI flags (``--config`` file, ``--origin``, ``--store-dir``)
        2. Environment variables (``SWCACHE_CONFIG`` file,
           ``SWCACHE_ORIGIN``, ``SWCACHE_STORE_DIR``)
        3. Project config (``./swcache.json``)
        4. User config (``~/.config/swcache/config.json``)
        5. Defaults

    A config *file* named by a flag or env var is layered over the project
    config; individual field overrides are applied last.

    Raises:
        ConfigError: If any layer is unreadable or the result is invalid.
    """
    data: dict[str, Any] = {}
    data.update(load_user_config())
    data.update(load_project_config())

    config_file = cli_config or os.environ.get(ENV_CONFIG)
    if config_file:
        path = Path(config_file).expanduser()
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        data.update(_read_config_file(path))

    env_origin = os.environ.get(ENV_ORIGIN)
    if cli_origin is not None:
        data["origin"] = cli_origin
    elif env_origin:
        data["origin"] = env_origin

    env_store = os.environ.get(ENV_STORE_DIR)
    if cli_store_dir is not None:
        data["store_dir"] = cli_store_dir
    elif env_store:
        data["store_dir"] = env_store

    return _validate(data, "resolved")
