"""Typer application and CLI entry point for ger.

This module wires together the top-level Typer application and registers
the built-in commands (``init``, ``status``, ``show``, ``mine``,
``incoming``, ``comment``, ``abandon``, ``comments``, ``diff``, ``cache``,
``config``).

The root callback opens the local change cache once per invocation and,
unless disabled in the global config, sweeps expired rows before the
command runs. A cache that cannot be opened never blocks a command: ger
continues without one.

:func:`main` is the ``ger`` console script. Errors raised by commands become
exit codes there; see :mod:`ger.exit_codes`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from ger import __version__
from ger.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED

app = typer.Typer(
    name="ger",
    help="Work with Gerrit code review from the command line.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"ger {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Send DEBUG records to stderr when ``--verbose`` is active."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s",
            force=True,
        )


def _open_cache(ctx: typer.Context, sweep_on_startup: bool) -> Any:
    """Open the shared cache database and sweep expired rows.

    Returns a :class:`~ger.cache.CacheManager`, or ``None`` if the database
    cannot be opened. A failed sweep keeps the cache usable.
    """
    from ger.cache import CacheManager, CacheStore
    from ger.config import get_cache_db_path
    from ger.exceptions import CacheError
    from ger.output import debug

    store = CacheStore(get_cache_db_path())
    try:
        store.initialize()
    except CacheError as exc:
        debug(f"Cache unavailable, continuing without it: {exc}")
        return None
    ctx.call_on_close(store.close)

    manager = CacheManager(store)
    if sweep_on_startup:
        try:
            removed = manager.clear_expired_cache()
        except CacheError as exc:
            debug(f"Cache sweep failed: {exc}")
        else:
            if removed.changes or removed.metadata:
                debug(
                    f"Removed {removed.changes} expired changes and "
                    f"{removed.metadata} metadata entries from the cache"
                )
    return manager


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
    json_output: bool = typer.Option(
        False, "--json", help="Emit JSON."
    ),
    xml_output: bool = typer.Option(
        False, "--xml", help="Emit XML with free text in CDATA (for LLM tools)."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Emit tab-separated text."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="No colours or styling (also NO_COLOR)."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only print results, warnings and errors."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log HTTP requests and cache activity to stderr."
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Bypass the local change cache."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~ger.output.OutputManager` from CLI
    flags (falling back to the configured default format), sets up
    logging, opens the change cache, and stores shared state in
    ``ctx.obj`` for sub-commands:

    * ``config`` -- the loaded :class:`~ger.models.GlobalConfig`.
    * ``cache`` -- a :class:`~ger.cache.CacheManager` or ``None``.
    * ``no_cache`` / ``verbose`` -- the raw flags.

    A ``transport`` key already present in ``ctx.obj`` is preserved and
    handed to every :class:`~ger.client.GerritClient` the commands create.
    """
    from ger.config import load_global_config
    from ger.exceptions import ConfigError
    from ger.models import GlobalConfig
    from ger.output import OutputFormat, OutputManager, set_output, warning

    _configure_logging(verbose)

    config_error: Optional[ConfigError] = None
    try:
        config = load_global_config()
    except ConfigError as exc:
        config, config_error = GlobalConfig(), exc

    flagged = [
        fmt
        for fmt, chosen in (
            (OutputFormat.JSON, json_output),
            (OutputFormat.XML, xml_output),
            (OutputFormat.PLAIN, plain_output),
        )
        if chosen
    ]
    fmt = flagged[0] if flagged else OutputFormat(config.output.format)
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    if config_error is not None:
        warning(f"{config_error}. Using default settings.")

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["no_cache"] = no_cache
    ctx.obj["verbose"] = verbose
    ctx.obj.setdefault("transport", None)

    cache = None
    if config.cache.enabled and not no_cache and ctx.invoked_subcommand != "cache":
        cache = _open_cache(ctx, config.cache.sweep_on_startup)
    ctx.obj["cache"] = cache


def _register_commands() -> None:
    """Attach every built-in command to the root app."""
    from ger.commands.cache import cache_app
    from ger.commands.changes import (
        abandon_command,
        comment_command,
        comments_command,
        incoming_command,
        mine_command,
        show_command,
    )
    from ger.commands.config import config_app
    from ger.commands.diff import diff_command
    from ger.commands.init import init_command, status_command

    app.command("init")(init_command)
    app.command("status")(status_command)
    app.command("show")(show_command)
    app.command("mine")(mine_command)
    app.command("incoming")(incoming_command)
    app.command("comment")(comment_command)
    app.command("abandon")(abandon_command)
    app.command("comments")(comments_command)
    app.command("diff")(diff_command)
    app.add_typer(cache_app, name="cache", help="Inspect and maintain the local cache.")
    app.add_typer(config_app, name="config", help="Configuration management.")


_register_commands()


def _interrupted(signum: int = signal.SIGINT, frame: Any = None) -> None:
    sys.stderr.write("\nCancelled.\n")
    sys.exit(EXIT_INTERRUPTED)


def _setup_signal_handlers() -> None:
    signal.signal(signal.SIGINT, _interrupted)


def _write_crash_log() -> Path:
    """Save the traceback being handled under ``<data_dir>/logs``."""
    from ger.config import get_data_dir

    log_path = get_data_dir() / "logs" / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    log_path.write_text(f"ger {__version__}\n{traceback.format_exc()}", encoding="utf-8")
    return log_path


def main() -> None:
    """Console-script entry point.

    A :class:`~ger.exceptions.GerError` escaping a command is printed and
    turned into its ``exit_code``. Anything else is a bug: the traceback is
    saved to a crash log and the process exits with status 1.
    """
    from ger.exceptions import GerError
    from ger.output import error

    _setup_signal_handlers()
    try:
        app()
    except KeyboardInterrupt:
        _interrupted()
    except GerError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception:
        error(f"Unexpected error. Debug log: {_write_crash_log()}")
        sys.exit(EXIT_GENERIC_FAILURE)
