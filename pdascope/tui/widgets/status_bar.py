"""StatusBar: bottom bar showing cluster, schema and refresh state."""

from __future__ import annotations

from rich.markup import escape
from textual.app import ComposeResult
from textual.css.query import NoMatches
from textual.reactive import reactive
from textual.widget import Widget
from textual.widgets import Static


class StatusBar(Widget):
    """Single-line status bar at the bottom of the screen."""

    DEFAULT_CSS = """
    StatusBar {
        dock: bottom;
        height: 1;
        background: #111827;
        layout: horizontal;
        padding: 0 2;
    }
    StatusBar .cluster-label {
        color: #00ffcc;
        text-style: bold;
        width: auto;
        padding-right: 2;
    }
    StatusBar .schema-label {
        color: #ff00aa;
        width: 1fr;
    }
    StatusBar .op-label {
        color: #ffaa00;
        width: auto;
    }
    """

    cluster: reactive[str] = reactive("")
    schema: reactive[str] = reactive("")
    operation: reactive[str] = reactive("")

    def compose(self) -> ComposeResult:
        yield Static("", classes="cluster-label", id="sb-cluster")
        yield Static("", classes="schema-label", id="sb-schema")
        yield Static("", classes="op-label", id="sb-op")

    def _set(self, selector: str, text: str) -> None:
        try:
            self.query_one(selector, Static).update(text)
        except NoMatches:
            pass

    def watch_cluster(self, value: str) -> None:
        self._set("#sb-cluster", escape(f"[{value}]") if value else "")

    def watch_schema(self, value: str) -> None:
        self._set("#sb-schema", escape(value))

    def watch_operation(self, value: str) -> None:
        self._set("#sb-op", escape(value))
