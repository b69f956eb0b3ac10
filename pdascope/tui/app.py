"""DashboardApp: periodically re-runs the inspection and shows the latest result."""

from __future__ import annotations

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.timer import Timer
from textual.widgets import DataTable, Footer, Header, Static

from ..engine import InspectionRun, Inspector
from ..errors import PdascopeError
from ..render import simulation_lines
from ..report import Classification
from .widgets.log_panel import LogPanel
from .widgets.status_bar import StatusBar

_CATEGORY_COLORS = {
    "ok": "#39ff14",
    "operational": "#ffaa00",
    "configuration": "#ff3366",
    "transport": "#ff00aa",
}


def _status_cell(classification: Classification) -> Text:
    return Text(str(classification), style=_CATEGORY_COLORS.get(classification.category, ""))


class DashboardApp(App):
    """Live view of program presence and the derived account topology."""

    TITLE = "PDASCOPE"
    SUB_TITLE = "PDA topology inspector"

    CSS = """
    Screen {
        background: #0a0e17;
    }
    #run-summary {
        height: auto;
        padding: 0 1;
        color: #8892a4;
    }
    .section-title {
        padding: 1 1 0 1;
        color: #00ffcc;
        text-style: bold;
    }
    #programs {
        height: auto;
        max-height: 8;
    }
    #accounts {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("r", "refresh", "Refresh", show=True),
        Binding("a", "toggle_auto", "Auto-refresh", show=True),
        Binding("s", "toggle_simulate", "Simulate", show=True),
        Binding("q", "quit", "Quit", show=True),
        Binding("ctrl+c", "quit", "Quit", show=False),
    ]

    def __init__(
        self, inspector: Inspector, interval: float = 2.0, auto_refresh: bool = False
    ) -> None:
        super().__init__()
        self.inspector = inspector
        self.interval = interval
        self.auto_refresh = auto_refresh
        self.simulate = inspector.config.enable_simulation
        self.last_run: InspectionRun | None = None
        self._timer: Timer | None = None
        self._refreshing = False

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical():
            yield Static("Waiting for first inspection...", id="run-summary")
            yield Static("Program presence", classes="section-title")
            yield DataTable(id="programs", cursor_type="row")
            yield Static("Derived accounts", classes="section-title")
            yield DataTable(id="accounts", cursor_type="row")
            yield LogPanel(id="log")
        yield StatusBar(id="status")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#programs", DataTable).add_columns("Program", "Pubkey", "Status")
        self.query_one("#accounts", DataTable).add_columns("Account", "Pubkey", "Bump", "Status", "Details")
        status = self.query_one(StatusBar)
        status.cluster = self.inspector.config.rpc_url
        status.schema = f"schema {self.inspector.schema.name} v{self.inspector.schema.version}"
        self._update_operation("idle")
        if self.inspector.ephemeral_identity:
            self._log().log_warning("No keypair file found; using an ephemeral payer.")
        self._timer = self.set_interval(self.interval, self._tick, pause=not self.auto_refresh)
        self._start_refresh()

    # ── Actions ────────────────────────────────────────────────────

    def action_refresh(self) -> None:
        self._start_refresh()

    def action_toggle_auto(self) -> None:
        self.auto_refresh = not self.auto_refresh
        if self._timer is not None:
            if self.auto_refresh:
                self._timer.resume()
            else:
                self._timer.pause()
        self._log().log_info(f"Auto-refresh {'on' if self.auto_refresh else 'off'}")
        self._update_operation("idle")

    def action_toggle_simulate(self) -> None:
        self.simulate = not self.simulate
        self._log().log_info(f"Simulation {'enabled' if self.simulate else 'disabled'}")
        self._update_operation("idle")

    # ── Refresh cycle ──────────────────────────────────────────────

    def _tick(self) -> None:
        if self._refreshing or self.inspector.busy:
            return
        self._start_refresh()

    def _start_refresh(self) -> None:
        if self._refreshing or self.inspector.busy:
            self._log().log_info("Inspection already running; skipped.")
            return
        self._refreshing = True
        self.run_worker(self._refresh(), group="inspect")

    async def _refresh(self) -> None:
        self._update_operation("inspecting...")
        try:
            run = await self.inspector.run(simulate_programs=self.simulate)
        except PdascopeError as exc:
            self._log().log_error(str(exc))
            self._update_operation("error")
            return
        finally:
            self._refreshing = False
        self.last_run = run
        self._render_run(run)
        self._update_operation("idle")

    # ── Rendering ──────────────────────────────────────────────────

    def _render_run(self, run: InspectionRun) -> None:
        report = run.report
        topology = report.topology
        roots = topology.roots
        version = run.version.get("solana-core") if run.version else None
        self.query_one("#run-summary", Static).update(
            Text(
                f"payer {run.identity}  user {roots.get('user')}  market {roots.get('market')}  "
                f"nonce {roots.get('nonce')}  rpc {version or '<unavailable>'}  "
                f"{run.elapsed:.2f}s{'  (timed out)' if run.timed_out else ''}"
            )
        )

        programs = self.query_one("#programs", DataTable)
        programs.clear()
        for presence in report.programs:
            programs.add_row(presence.label, str(presence.address), _status_cell(presence.classification))

        accounts = self.query_one("#accounts", DataTable)
        accounts.clear()
        for name, derived in topology.items():
            observation = report.observation(name)
            if observation is None:
                details = str(getattr(report.observations[name], "cause", ""))
            elif observation.exists:
                details = f"owner {observation.owner}  {observation.data_length} bytes"
            else:
                details = ""
            accounts.add_row(
                topology.label(name),
                str(derived),
                str(derived.bump),
                _status_cell(report.classifications[name]),
                details,
            )

        log = self._log()
        counts = report.categories()
        summary = ", ".join(f"{key}={counts[key]}" for key in sorted(counts))
        if report.has_transport_failures:
            log.log_warning(f"Inspection finished with read failures: {summary}")
        else:
            log.log_success(f"Inspection finished: {summary}")
        for error in run.errors:
            log.log_error(error)
        labels = {presence.address: presence.label for presence in report.programs}
        for item in run.simulations:
            for line in simulation_lines(item, labels.get(item.program_id, str(item.program_id))):
                log.log_info(line)

    def _update_operation(self, state: str) -> None:
        flags = f"auto {'on' if self.auto_refresh else 'off'} | simulate {'on' if self.simulate else 'off'}"
        self.query_one(StatusBar).operation = f"{state} | {flags}"

    def _log(self) -> LogPanel:
        return self.query_one("#log", LogPanel)
