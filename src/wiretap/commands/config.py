"""Config commands -- view and modify global configuration.

Provides the ``wiretap config`` sub-command group for reading, updating and
resetting :class:`~wiretap.models.GlobalConfig`, which controls the
inspector URL, the live-update socket, and the response cache limits.
"""

from __future__ import annotations

from typing import Any

import typer

from wiretap.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)

_NULL_WORDS = ("none", "null")


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Example::

        wiretap config show
        wiretap --json config show
    """
    from wiretap.config import get_config_dir, get_store_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    info(f"Response store: {get_store_dir(config)}")
    format_response(config.model_dump(mode="json"))


def _coerce(key: str, current: Any, value: str) -> Any:  # noqa: ANN401
    """Convert *value* to the type of the field's current value."""
    if value.lower() in _NULL_WORDS:
        return None
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes", "on")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    if isinstance(current, float):
        try:
            return float(value)
        except ValueError:
            error(f"Expected number for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    if current is None and value.isdigit():
        return int(value)
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'cache.max_entries')."
    ),
    value: str = typer.Argument(help="Value to set. Use 'none' to unset optional keys."),
) -> None:
    """Set a configuration value.

    The value is coerced to the type of the existing field and the whole
    config is validated before it is saved.

    Example::

        wiretap config set server.api_url http://inspector:20000
        wiretap config set cache.max_entries 500
        wiretap config set live.url none
    """
    from pydantic import ValidationError

    from wiretap.config import load_global_config, save_global_config
    from wiretap.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    coerced = _coerce(key, target[final_key], value)
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset configuration to defaults.

    Asks for confirmation unless ``--force`` is active.
    """
    from wiretap.config import save_global_config
    from wiretap.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
