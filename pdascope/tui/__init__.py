"""pdascope dashboard: live terminal view of an inspection."""

from __future__ import annotations

from ..engine import Inspector


def launch_dashboard(inspector: Inspector, interval: float = 2.0, auto_refresh: bool = False) -> int:
    """Launch the dashboard application."""
    from .app import DashboardApp

    app = DashboardApp(inspector, interval=interval, auto_refresh=auto_refresh)
    app.run()
    return 0
