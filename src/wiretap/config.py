"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for wiretap:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.wiretap/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Global config** -- A single :class:`~wiretap.models.GlobalConfig`
  JSON file storing server, cache, and live-update settings.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, and the config file into the effective settings.
* **Derived locations** -- :func:`get_store_dir` for the durable response
  store and :func:`websocket_url` for the live-update socket.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from wiretap.exceptions import ConfigError
from wiretap.models import GlobalConfig

_APP_NAME = "wiretap"
_CONFIG_FILENAME = "config.json"
_STORE_DIRNAME = "responses"
_WS_PATH = "/api/ws"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
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

    On Linux/BSD: ``$XDG_CONFIG_HOME/wiretap/`` (default ``~/.config/wiretap/``).
    On macOS/Windows: ``~/.wiretap/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the durable response store. Its contents can be deleted at any
    time; the in-memory tier of a running process is unaffected.

    On Linux/BSD: ``$XDG_CACHE_HOME/wiretap/`` (default ``~/.cache/wiretap/``).
    On macOS/Windows: ``~/.wiretap/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/wiretap/`` (default ``~/.local/share/wiretap/``).
    On macOS/Windows: ``~/.wiretap/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_store_dir(config: Optional[GlobalConfig] = None) -> Path:
    """Return the durable response store directory.

    Precedence: ``WIRETAP_CACHE_DIR`` > ``cache.directory`` > ``<cache_dir>/responses``.
    The directory itself is created lazily by the store on first open.
    """
    env_dir = os.environ.get("WIRETAP_CACHE_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    if config is not None and config.cache.directory:
        return Path(config.cache.directory).expanduser()
    return get_cache_dir() / _STORE_DIRNAME


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is cleaned up.
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


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~wiretap.models.GlobalConfig`, or a default
        instance when no file exists.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def resolve_config(
    cli_api_url: Optional[str] = None,
    cli_ws_url: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_api_url``, ``cli_ws_url``, ``cli_format``)
        2. Environment variables (``WIRETAP_API_URL``, ``WIRETAP_WS_URL``)
        3. User config (``~/.config/wiretap/config.json``)
        4. Defaults

    ``WIRETAP_CACHE_DIR`` is honoured separately by :func:`get_store_dir`.
    """
    config = load_global_config()

    env_api_url = os.environ.get("WIRETAP_API_URL")
    if cli_api_url is not None:
        config.server.api_url = cli_api_url
    elif env_api_url:
        config.server.api_url = env_api_url

    env_ws_url = os.environ.get("WIRETAP_WS_URL")
    if cli_ws_url is not None:
        config.live.url = cli_ws_url
    elif env_ws_url:
        config.live.url = env_ws_url

    if cli_format is not None:
        config.output.format = cli_format

    return config


def websocket_url(config: GlobalConfig) -> str:
    """Return the live-update socket URL for *config*.

    An explicit ``live.url`` wins. Otherwise the API URL is reused with its
    scheme swapped to ``ws``/``wss`` and the path set to ``/api/ws``.

    Example::

        >>> websocket_url(GlobalConfig())
        'ws://localhost:20000/api/ws'
    """
    if config.live.url:
        return config.live.url
    parts = urlsplit(config.server.api_url)
    scheme = "wss" if parts.scheme == "https" else "ws"
    return urlunsplit((scheme, parts.netloc, _WS_PATH, "", ""))
