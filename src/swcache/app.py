"""Typer application and CLI entry point for swcache.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``install``, ``activate``, ``version``,
``fetch``, ``cache``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.  It installs a SIGINT handler and invokes the Typer
app.  :class:`~swcache.exceptions.SwcacheError` exits with its own code;
any other exception is written to a crash log under the data directory.

See Also:
    :mod:`swcache.config`: Configuration resolution.
    :mod:`swcache.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from swcache import __version__
from swcache.commands.cache import cache_app
from swcache.commands.config import config_app
from swcache.commands.fetch import fetch_command
from swcache.commands.lifecycle import activate_command, install_command, version_command
from swcache.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="swcache",
    help="Offline-first request cache with versioned namespaces.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("install")(install_command)
app.command("activate")(activate_command)
app.command("version")(version_command)
app.command("fetch")(fetch_command)
app.add_typer(cache_app, name="cache", help="Inspect and prune cache namespaces.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"swcache {__version__}")
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
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Config file (overrides ./swcache.json)."
    ),
    origin: Optional[str] = typer.Option(None, "--origin", help="Override the site origin."),
    store_dir: Optional[str] = typer.Option(
        None, "--store-dir", help="Override the cache store directory."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~swcache.output.OutputManager` and stores
    the configuration overrides in ``ctx.obj`` for the sub-commands.
    """
    from swcache.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["origin"] = origin
    ctx.obj["store_dir"] = store_dir


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log() -> str:
    """Write the current traceback to disk and return the log file path."""
    from swcache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``swcache`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from swcache.exceptions import SwcacheError
        from swcache.output import error

        if isinstance(exc, SwcacheError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log()
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
