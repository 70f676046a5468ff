"""Typer application and CLI entry point for wiretap.

The root callback installs the :class:`~wiretap.output.OutputManager`,
configures :mod:`logging`, and stores connection overrides in ``ctx.obj``.
:func:`main` is the console-script entry point declared in
``pyproject.toml``; it maps :class:`~wiretap.exceptions.WiretapError` to its
exit code and writes a crash log for anything else.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from wiretap import __version__
from wiretap.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="wiretap",
    help="Send requests through an HTTP inspector and follow its live updates.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_log_handler: Optional[logging.Handler] = None


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"wiretap {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    api_url: Optional[str] = typer.Option(
        None, "--api-url", help="Inspector API base URL."
    ),
    ws_url: Optional[str] = typer.Option(
        None, "--ws-url", help="Live-update websocket URL."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
) -> None:
    """Root callback executed before every sub-command.

    Args:
        ctx: Typer invocation context.
        version: If ``True``, print the version string and exit.
        api_url: Inspector API override (highest precedence).
        ws_url: Websocket URL override (highest precedence).
        json_output: Force JSON output format.
        plain_output: Force plain-text output format.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug logging on stderr.
        force: Skip interactive confirmations.
    """
    from wiretap.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url
    ctx.obj["ws_url"] = ws_url
    ctx.obj["format"] = None if fmt == OutputFormat.AUTO else fmt.value
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


def _configure_logging(verbose: bool) -> None:
    """Send library logs to stderr; DEBUG with ``--verbose``, else WARNING."""
    global _log_handler
    root = logging.getLogger("wiretap")
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if _log_handler is not None:
        root.removeHandler(_log_handler)
    # Bound to the current sys.stderr, which CliRunner swaps per invocation.
    _log_handler = logging.StreamHandler(sys.stderr)
    _log_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(_log_handler)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback under the data directory and return its path."""
    from wiretap.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def register_commands() -> None:
    """Attach the built-in sub-commands to :data:`app`. Idempotent."""
    if getattr(app, "_wiretap_registered", False):
        return
    from wiretap.commands.cache import cache_app
    from wiretap.commands.config import config_app
    from wiretap.commands.send import curl_command, fingerprint_command, send_command, show_command
    from wiretap.commands.watch import watch_command

    app.command("send")(send_command)
    app.command("show")(show_command)
    app.command("curl")(curl_command)
    app.command("fingerprint")(fingerprint_command)
    app.command("watch")(watch_command)
    app.add_typer(cache_app, name="cache", help="Inspect and prune the response cache.")
    app.add_typer(config_app, name="config", help="Configuration management.")
    app._wiretap_registered = True  # type: ignore[attr-defined]


def main() -> None:
    """CLI entry point invoked by the ``wiretap`` console script.

    Unhandled :class:`~wiretap.exceptions.WiretapError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions produce
    a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        register_commands()
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from wiretap.exceptions import WiretapError
        from wiretap.output import error

        if isinstance(exc, WiretapError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
