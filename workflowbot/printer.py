"""
printer.py

Responsibility: User-facing progress output.

Each line is `<prefix> [ STATUS ] message`, where the prefix shows nesting depth
(repository, file, action) and the status is colored. Messages are plain text, never
rich markup, so file names and URLs print verbatim.
"""

from __future__ import annotations

from rich.console import Console
from rich.text import Text

_STATUS_OK = (" OK      ", "green")
_STATUS_SKIPPED = (" Skipped ", "yellow")
_STATUS_INFO = (" Info    ", "blue")
_STATUS_ERROR = (" Error   ", "red")

_console = Console(highlight=False)


class ScopePrinter:
    def __init__(self, prefix: str = "", console: Console | None = None) -> None:
        self.prefix = prefix
        self.console = console or _console

    def add_prefix(self, prefix: str) -> ScopePrinter:
        return ScopePrinter(self.prefix + prefix, self.console)

    def scope(self, prefix: str) -> ScopePrinter:
        return ScopePrinter(prefix, self.console)

    def _print(self, status: tuple[str, str], message: str, args: tuple[object, ...]) -> None:
        text = Text()
        if self.prefix:
            text.append(self.prefix, style="dim italic")
            text.append(" ")
        label, color = status
        text.append("[")
        text.append(label, style=color)
        text.append("] ")
        text.append(message % args if args else message)
        self.console.print(text, soft_wrap=True)

    def ok(self, message: str, *args: object) -> None:
        self._print(_STATUS_OK, message, args)

    def skipped(self, message: str, *args: object) -> None:
        self._print(_STATUS_SKIPPED, message, args)

    def info(self, message: str, *args: object) -> None:
        self._print(_STATUS_INFO, message, args)

    def error(self, message: str, *args: object) -> None:
        self._print(_STATUS_ERROR, message, args)

    def rule(self, title: str) -> None:
        self.console.print()
        self.console.print(Text(f"------- {title} -------", style="dim"), soft_wrap=True)
