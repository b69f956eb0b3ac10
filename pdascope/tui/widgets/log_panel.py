"""LogPanel: scrollable, color-coded event log."""

from __future__ import annotations

from datetime import datetime

from rich.markup import escape
from textual.widgets import RichLog


class LogPanel(RichLog):
    """Scrollable log with color-coded, timestamped entries."""

    DEFAULT_CSS = """
    LogPanel {
        background: #0a0e17;
        border: solid #1a3a4a;
        padding: 0 1;
        min-height: 6;
        max-height: 30%;
    }
    LogPanel:focus {
        border: solid #00ffcc;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(highlight=False, markup=True, wrap=True, **kwargs)

    def _write(self, color: str, message: str) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        self.write(f"[#4a5568]{stamp}[/] [{color}]{escape(message)}[/]")

    def log_info(self, message: str) -> None:
        self._write("#8892a4", message)

    def log_success(self, message: str) -> None:
        self._write("#39ff14", message)

    def log_error(self, message: str) -> None:
        self._write("#ff3366", message)

    def log_warning(self, message: str) -> None:
        self._write("#ffaa00", message)
