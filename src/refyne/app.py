"""Typer application and CLI entry point for refyne.

The root callback turns global flags into an
:class:`~refyne.output.OutputManager` and stores connection overrides in
``ctx.obj``; each sub-command then builds its own client with
:func:`~refyne.commands.build_client`.

:func:`main` is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler, runs the app, and turns
:class:`~refyne.exceptions.RefyneError` into an error message plus the
exception's exit code. Anything else is written to a crash log under the
data directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from refyne import __version__
from refyne.commands.config import config_app
from refyne.commands.extract import (
    analyze_command,
    crawl_command,
    extract_command,
    usage_command,
)
from refyne.commands.jobs import jobs_app
from refyne.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="refyne",
    help="Extract structured data from web pages with the Refyne API.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("extract")(extract_command)
app.command("crawl")(crawl_command)
app.command("analyze")(analyze_command)
app.command("usage")(usage_command)
app.add_typer(jobs_app, name="jobs", help="Inspect crawl and extraction jobs.")
app.add_typer(config_app, name="config", help="View and modify settings.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"refyne {__version__}")
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
    api_key: Optional[str] = typer.Option(
        None, "--api-key", help="API key (overrides REFYNE_API_KEY and config)."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="API root URL."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show SDK debug output."
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Do not read or store cached responses."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~refyne.output.OutputManager` (format from
    the flags, else the ``output_format`` setting) and stores
    the connection overrides (``api_key``, ``base_url``, ``no_cache``) in
    ``ctx.obj``.
    """
    from refyne.config import load_settings
    from refyne.output import OutputFormat, OutputManager, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat(load_settings().output_format)

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["api_key"] = api_key
    ctx.obj["base_url"] = base_url
    ctx.obj["no_cache"] = no_cache


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback to ``<data_dir>/logs`` and return the path."""
    from refyne.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``refyne`` console script.

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
        from refyne.exceptions import RefyneError, ValidationError
        from refyne.output import error

        if isinstance(exc, RefyneError):
            error(str(exc))
            if isinstance(exc, ValidationError):
                for field, message in sorted(exc.errors.items()):
                    error(f"  {field}: {message}")
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
