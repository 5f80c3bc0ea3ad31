"""Human-readable status output."""

import json
import threading
from typing import Any

from rich.console import Console


class OutputFormatter:
    """Writes status lines to the terminal.

    Safe to call from worker threads; the dispatcher reports operation
    outcomes from its pool.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit one JSON object per line instead of text
            quiet: Suppress informational messages (errors are still shown)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)
        self._lock = threading.Lock()

    def _emit(self, level: str, message: str, style: str, stderr: bool) -> None:
        console = self.err_console if stderr else self.console
        with self._lock:
            if self.json_output:
                console.print_json(json.dumps({"level": level, "message": message}))
            else:
                console.print(message, style=style, markup=False)

    def info(self, message: str) -> None:
        if not self.quiet:
            self._emit("info", message, "", stderr=False)

    def success(self, message: str) -> None:
        if not self.quiet:
            self._emit("success", message, "green", stderr=False)

    def warning(self, message: str) -> None:
        if not self.quiet:
            self._emit("warning", message, "yellow", stderr=True)

    def error(self, message: str) -> None:
        self._emit("error", message, "bold red", stderr=True)

    def print(self, message: str = "") -> None:
        """Print a plain line (ignored in JSON mode)."""
        if self.quiet or self.json_output:
            return
        with self._lock:
            self.console.print(message, markup=False)

    def output_json(self, data: Any) -> None:
        with self._lock:
            self.console.print_json(json.dumps(data))
