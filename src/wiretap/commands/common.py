"""Helpers shared by the command modules."""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, NoReturn, Optional, TypeVar

import typer

from wiretap.exceptions import InvalidUsageError, WiretapError
from wiretap.models import GlobalConfig, Header

T = TypeVar("T")


def load_config(ctx: typer.Context) -> GlobalConfig:
    """Resolve the effective config using the root callback's overrides."""
    from wiretap.config import resolve_config

    obj: dict[str, Any] = ctx.obj or {}
    try:
        return resolve_config(
            cli_api_url=obj.get("api_url"),
            cli_ws_url=obj.get("ws_url"),
            cli_format=obj.get("format"),
        )
    except WiretapError as exc:
        fail(exc)


def build_manager(config: GlobalConfig):  # noqa: ANN201
    """Return a :class:`~wiretap.cache.manager.ResponseCacheManager` for *config*."""
    from wiretap.cache.manager import ResponseCacheManager
    from wiretap.config import get_store_dir
    from wiretap.runtime import get_store

    store = get_store(get_store_dir(config)) if config.cache.enabled else None
    return ResponseCacheManager.from_config(config.cache, store)


def parse_header(raw: str) -> Header:
    """Parse a ``-H 'Name: value'`` argument.

    Raises:
        InvalidUsageError: If there is no colon or the name is blank.
    """
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise InvalidUsageError(f"Invalid header {raw!r}, expected 'Name: value'")
    return Header(key=name.strip(), value=value.strip())


def parse_headers(raw: Optional[list[str]]) -> list[Header]:
    try:
        return [parse_header(item) for item in raw or []]
    except WiretapError as exc:
        fail(exc)


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* to completion, turning :class:`WiretapError` into a clean exit."""
    try:
        return asyncio.run(coro)
    except WiretapError as exc:
        fail(exc)


def fail(exc: WiretapError) -> NoReturn:
    from wiretap.output import error

    error(str(exc))
    raise typer.Exit(code=exc.exit_code)
