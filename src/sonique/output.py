"""Terminal output for sonique: data on stdout, diagnostics on stderr.

Anything a script might parse (API payloads, tables, the authorization
URL) is written to **stdout**. Everything addressed to the person at the
terminal (login progress, rate-limit waits, errors, next-step hints) is
written to **stderr**, so ``sonique saved --json | jq`` always receives
clean JSON.

Three renderings are available for stdout:

* ``RICH`` -- coloured tables and highlighted JSON, used when stdout is a
  terminal.
* ``PLAIN`` -- tab-separated text, used when stdout is piped.
* ``JSON`` -- machine-readable output, selected with ``--json``.

Colour is dropped when ``NO_COLOR`` is set (to any value), when
``TERM=dumb``, or when ``--no-color`` is passed.

:mod:`sonique.auth` and :mod:`sonique.client` report what they are doing
through :func:`debug` only, which prints nothing unless the CLI was run
with ``--verbose``.

The CLI installs one :class:`OutputManager` per invocation in
:func:`~sonique.app.main_callback`; the module-level helpers forward to it.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """Rendering used for stdout. ``AUTO`` picks ``RICH`` or ``PLAIN``."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Routes data and diagnostics to the right stream in the right format.

    Args:
        format: Requested rendering. ``AUTO`` becomes ``RICH`` on a colour
            terminal and ``PLAIN`` otherwise.
        no_color: Strip colour and markup from everything.
        quiet: Hide ``info``, ``success``, and ``suggest`` messages.
            Warnings, errors, and stdout data are always shown.
        verbose: Show ``debug`` messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._format = self._resolve(format)

        rich_stdout = self._format == OutputFormat.RICH
        self._out = Console(file=sys.stdout, no_color=self._no_color, force_terminal=rich_stdout)
        self._err = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    def _resolve(self, requested: OutputFormat) -> OutputFormat:
        if requested != OutputFormat.AUTO:
            return requested
        if _is_tty() and not self._no_color:
            return OutputFormat.RICH
        return OutputFormat.PLAIN

    @property
    def format(self) -> OutputFormat:
        return self._format

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def print_data(self, text: str) -> None:
        """Write one line of raw text to stdout."""
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: Any) -> None:
        """Render a decoded payload (dict, list, or scalar) on stdout."""
        if self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
            return
        text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        if self._format == OutputFormat.JSON:
            self.print_data(text)
        else:
            self._out.print(Syntax(text, "json", theme="monokai", word_wrap=True))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Render rows under *headers* on stdout.

        JSON mode prints a list of objects keyed by header, plain mode one
        tab-separated line per row (headers first), and Rich mode a table
        with *title* as its caption.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(json.dumps([dict(zip(headers, r)) for r in rows], indent=2, ensure_ascii=False))
            return
        if self._format == OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return

        table = Table(title=title, header_style="bold cyan")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        self._out.print(table)

    # ------------------------------------------------------------------ #
    # stderr
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._note(message, message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._note(message, f"[green]{message}[/green]")

    def suggest(self, message: str) -> None:
        """Print a hint for what to run next, e.g. ``sonique auth login``."""
        if not self._quiet:
            hint = f"→ {message}"
            self._note(hint, f"[dim]{hint}[/dim]")

    def warning(self, message: str) -> None:
        self._note(f"Warning: {message}", f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        self._note(f"Error: {message}", f"[bold red]Error:[/bold red] {message}")

    def debug(self, message: str) -> None:
        """Print a ``[debug]`` line, only with ``--verbose``."""
        if self._verbose:
            self._note(f"[debug] {message}", f"[dim]\\[debug] {message}[/dim]")

    def _note(self, plain: str, markup: str) -> None:
        if self._no_color:
            print(plain, file=sys.stderr, flush=True)
        else:
            self._err.print(markup)


def _plain_lines(data: Any) -> list[str]:
    """Flatten a payload into tab-separated lines for piping."""
    if isinstance(data, dict):
        return [f"{key}\t{value}" for key, value in data.items()]
    if isinstance(data, list):
        return [
            "\t".join(str(v) for v in item.values()) if isinstance(item, dict) else str(item)
            for item in data
        ]
    return [str(data)]


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """``NO_COLOR`` (any value, even empty) or ``TERM=dumb`` turns colour off."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Process-wide instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager. Tests call this between runs."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
