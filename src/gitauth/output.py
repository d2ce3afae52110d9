"""Diagnostics output on stderr.

A credential helper's stdout belongs to Git: it carries the
``username=``/``password=`` lines of the credential protocol and nothing
else. Everything meant for the human -- "open this URL", "enter this code",
warnings -- goes to stderr through :class:`OutputManager`.

* **TTY detection** -- Rich formatting when stderr is an interactive
  terminal, plain text otherwise.
* **Colour control** -- respects ``NO_COLOR`` and ``TERM=dumb``.

Flows receive an :class:`OutputManager` explicitly (or build their own);
there is no module-level instance.
"""

from __future__ import annotations

import os
import sys

from rich.console import Console
from rich.markup import escape


class OutputManager:
    """stderr writer for prompts and diagnostics.

    Args:
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential informational messages.
        verbose: Enable debug-level messages.
    """

    def __init__(
        self,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._stderr = Console(
            file=sys.stderr,
            no_color=self._no_color,
            stderr=True,
            highlight=False,
        )

    @property
    def is_quiet(self) -> bool:
        """Whether quiet mode is enabled."""
        return self._quiet

    def highlight(self, text: str) -> str:
        """Return *text* marked up in bold, escaped for Rich.

        In no-colour mode the text is returned unchanged so it can be
        copied verbatim from the terminal.
        """
        if self._no_color:
            return text
        return f"[bold]{escape(text)}[/bold]"

    def info(self, message: str) -> None:
        """Print an informational message to stderr. Suppressed by ``quiet``."""
        if not self._quiet:
            self._emit(message)

    def prompt(self, message: str) -> None:
        """Print an instruction the user must act on. Never suppressed.

        Used for the authorization URL and the device user code: without
        them the flow cannot complete.
        """
        self._emit(message)

    def block(self, text: str) -> None:
        """Print pre-rendered text (e.g. a QR code) verbatim. Never suppressed."""
        if self._no_color:
            print(text, file=sys.stderr, flush=True)
        else:
            self._stderr.print(text, markup=False, highlight=False, no_wrap=True, crop=False)

    def success(self, message: str) -> None:
        """Print a green success message to stderr. Suppressed by ``quiet``."""
        if not self._quiet:
            if self._no_color:
                self._emit(message)
            else:
                self._stderr.print(f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        """Print a yellow warning to stderr. NOT suppressed by ``quiet``."""
        if self._no_color:
            self._emit(f"Warning: {message}")
        else:
            self._stderr.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Print a bold-red error to stderr. Never suppressed."""
        if self._no_color:
            self._emit(f"Error: {message}")
        else:
            self._stderr.print(f"[bold red]Error:[/bold red] {message}")

    def debug(self, message: str) -> None:
        """Print a debug message to stderr. Only shown when ``verbose`` is active."""
        if self._verbose:
            if self._no_color:
                self._emit(f"[debug] {message}")
            else:
                self._stderr.print(f"[dim]\\[debug] {message}[/dim]")

    def _emit(self, message: str) -> None:
        if self._no_color:
            print(message, file=sys.stderr, flush=True)
        else:
            self._stderr.print(message)


def _should_disable_color() -> bool:
    """Check environment for colour-disabling signals.

    Returns ``True`` when ``NO_COLOR`` is set (any value, per
    https://no-color.org/), ``TERM`` is ``dumb``, or stderr is not a
    terminal.
    """
    if "NO_COLOR" in os.environ:
        return True
    if os.environ.get("TERM") == "dumb":
        return True
    return not sys.stderr.isatty()
