"""Command-line entry point for sonique.

Command tree::

    sonique auth   login | callback | status | refresh | logout
    sonique config show | set | use
    sonique search | artist | top-tracks | albums
    sonique saved | contains | save | remove

:func:`main` is the ``sonique`` console script. A
:class:`~sonique.exceptions.SoniqueError` that escapes a command ends the
process with that error's exit code; anything else leaves a traceback in
``<data dir>/logs`` and exits with :data:`~sonique.exit_codes.EXIT_GENERIC_FAILURE`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from sonique import __version__
from sonique.commands import library
from sonique.commands.auth import auth_app
from sonique.commands.config import config_app
from sonique.config import get_data_dir
from sonique.exceptions import SoniqueError
from sonique.exit_codes import EXIT_GENERIC_FAILURE
from sonique.output import OutputFormat, OutputManager, error, set_output

# Conventional exit status for a process stopped by SIGINT.
_INTERRUPTED = 130

app = typer.Typer(
    name="sonique",
    help="Log in to your music service with PKCE and browse your library.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(auth_app, name="auth", help="Log in, log out, and inspect the session.")
app.add_typer(config_app, name="config", help="Show and edit profile settings.")

for _name, _command in (
    ("search", library.search_command),
    ("artist", library.artist_command),
    ("top-tracks", library.top_tracks_command),
    ("albums", library.albums_command),
    ("saved", library.saved_command),
    ("contains", library.contains_command),
    ("save", library.save_command),
    ("remove", library.remove_command),
):
    app.command(_name)(_command)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"sonique {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Print the version and exit."
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Profile to use instead of the default one."
    ),
    json_output: bool = typer.Option(False, "--json", help="Write JSON to stdout."),
    plain_output: bool = typer.Option(False, "--plain", help="Write tab-separated text to stdout."),
    no_color: bool = typer.Option(False, "--no-color", help="Never use colour."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print data, warnings and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print debug messages to stderr."),
) -> None:
    """Install the output settings and remember the chosen profile."""
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat.AUTO
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj.update(profile=profile, verbose=verbose)


def _on_sigint(signum: int, frame: Any) -> None:
    sys.stderr.write("\nInterrupted.\n")
    sys.exit(_INTERRUPTED)


def _setup_signal_handlers() -> None:
    signal.signal(signal.SIGINT, _on_sigint)


def _write_crash_log(exc: BaseException) -> str:
    """Save the traceback of *exc* and return the file it went to."""
    directory = get_data_dir() / "logs"
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    target.write_text("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    return str(target)


def main() -> None:
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nInterrupted.\n")
        sys.exit(_INTERRUPTED)
    except SoniqueError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        error(f"Unexpected error, traceback saved to {_write_crash_log(exc)}")
        sys.exit(EXIT_GENERIC_FAILURE)
