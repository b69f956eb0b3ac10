import asyncio
import time
import unittest
from unittest.mock import Mock

import httpx

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from pdascope.config import InspectConfig
from pdascope.engine import Inspector
from pdascope.report import Classification
from pdascope.simulate import SimulationOutcome, SimulationSkipped
from pdascope.transport import SolanaRpcTransport

from tests.fakes import FakeLedger, data_account, program_account

SYSTEM = Pubkey.from_string("11111111111111111111111111111111")
MEMO = Pubkey.from_string("MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr")


class InspectorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.identity = Keypair()
        self.config = InspectConfig(concurrency=4, timeout=5.0)

    def _inspector(self, ledger: FakeLedger) -> Inspector:
        return Inspector(self.config, identity=self.identity, transport_factory=lambda _: ledger)

    def test_empty_cluster(self) -> None:
        ledger = FakeLedger({SYSTEM: program_account(), MEMO: program_account()})
        inspector = self._inspector(ledger)
        run = asyncio.run(inspector.run(simulate_programs=True))

        report = run.report
        self.assertEqual(report.program("System").classification, Classification.EXECUTABLE)
        self.assertEqual(report.program("Router").classification, Classification.ABSENT)
        self.assertEqual(report.program("Slab").classification, Classification.ABSENT)
        self.assertEqual(len(report.classifications), 7)
        self.assertTrue(all(c is Classification.ABSENT for c in report.classifications.values()))
        self.assertEqual(report.categories(), {"ok": 2, "operational": 9})

        self.assertEqual(len(run.simulations), 2)
        for item in run.simulations:
            self.assertIsInstance(item, SimulationSkipped)
        self.assertEqual(run.simulations[0].reason, "Router not found or not executable (absent)")
        self.assertNotIn("simulateTransaction", ledger.calls)
        self.assertEqual(run.version["solana-core"], "1.18.0")
        self.assertFalse(run.timed_out)
        self.assertEqual(run.identity, self.identity.pubkey())
        self.assertFalse(inspector.busy)

    def test_deployed_protocol(self) -> None:
        inspector = self._inspector(FakeLedger())
        topology = inspector.derive_topology()
        accounts = {
            SYSTEM: program_account(),
            MEMO: program_account(),
            self.config.router_program_id: program_account(),
            self.config.slab_program_id: program_account(),
            topology["slab_state"].pubkey: data_account(self.config.slab_program_id),
            topology["vault"].pubkey: data_account(self.config.router_program_id),
            topology["registry"].pubkey: data_account(SYSTEM),
        }
        ledger = FakeLedger(accounts, logs=["Program log: noop"])
        inspector = self._inspector(ledger)
        run = asyncio.run(inspector.run(simulate_programs=True))

        classes = run.report.classifications
        self.assertEqual(classes["slab_state"], Classification.MATCHES_OWNER)
        self.assertEqual(classes["vault"], Classification.MATCHES_OWNER)
        self.assertEqual(classes["registry"], Classification.OWNER_MISMATCH)
        self.assertEqual(classes["escrow"], Classification.ABSENT)
        self.assertEqual([type(item) for item in run.simulations], [SimulationOutcome, SimulationOutcome])
        self.assertTrue(all(item.succeeded for item in run.simulations))

    def test_transport_failures_are_recorded(self) -> None:
        inspector = self._inspector(FakeLedger())
        vault = inspector.derive_topology()["vault"].pubkey
        inspector = self._inspector(FakeLedger(failing={vault}))
        run = asyncio.run(inspector.run())
        self.assertEqual(run.report.classifications["vault"], Classification.PROBE_FAILED)
        self.assertTrue(run.report.has_transport_failures)
        self.assertEqual(run.simulations, ())

    def test_probe_executability(self) -> None:
        ledger = FakeLedger({SYSTEM: program_account(), MEMO: data_account(SYSTEM)})
        inspector = self._inspector(ledger)
        self.assertEqual(asyncio.run(inspector.probe_executability(SYSTEM)), Classification.EXECUTABLE)
        self.assertEqual(asyncio.run(inspector.probe_executability(MEMO)), Classification.NOT_EXECUTABLE)
        router = self.config.router_program_id
        self.assertEqual(asyncio.run(inspector.probe_executability(router)), Classification.ABSENT)

    def test_explicit_roots_override_identity(self) -> None:
        inspector = self._inspector(FakeLedger())
        user = Keypair().pubkey()
        config = self.config.with_overrides(user=str(user))
        other = Inspector(config, identity=self.identity, transport_factory=lambda _: FakeLedger())
        self.assertNotEqual(
            inspector.derive_topology()["portfolio"].address,
            other.derive_topology()["portfolio"].address,
        )
        self.assertEqual(other.derive_topology().roots["user"], user)


class RunDeadlineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.identity = Keypair()

    def test_timeout_yields_partial_results(self) -> None:
        config = InspectConfig(concurrency=8, timeout=0.5)
        offline = Inspector(config, identity=self.identity, transport_factory=lambda _: FakeLedger())
        vault = offline.derive_topology()["vault"].pubkey
        accounts = {
            SYSTEM: program_account(),
            MEMO: program_account(),
            config.router_program_id: program_account(),
            config.slab_program_id: program_account(),
        }
        ledger = FakeLedger(accounts, blocked={vault}, stalled={"getVersion", "simulateTransaction"})
        inspector = Inspector(config, identity=self.identity, transport_factory=lambda _: ledger)

        started = time.monotonic()
        run = asyncio.run(inspector.run(simulate_programs=True))
        self.assertLess(time.monotonic() - started, 3.0)

        self.assertTrue(run.timed_out)
        classes = run.report.classifications
        self.assertEqual(len(classes), 7)
        self.assertEqual(classes["vault"], Classification.PROBE_FAILED)
        self.assertIn("timed out", run.report.observations["vault"].cause)
        self.assertEqual(classes["slab_state"], Classification.ABSENT)
        self.assertEqual(run.report.program("Router").classification, Classification.EXECUTABLE)

        self.assertEqual(len(run.simulations), 2)
        for item in run.simulations:
            self.assertIsInstance(item, SimulationSkipped)
            self.assertEqual(item.reason, "simulation timed out")
        self.assertIn("getVersion timed out", run.errors)
        self.assertEqual(run.version, {})
        self.assertIsNone(ledger.deadline)
        self.assertFalse(inspector.busy)

    def test_get_version_failure_is_recorded(self) -> None:
        ledger = FakeLedger(version_error=RuntimeError("unexpected payload"))
        config = InspectConfig(concurrency=4, timeout=5.0)
        inspector = Inspector(config, identity=self.identity, transport_factory=lambda _: ledger)
        run = asyncio.run(inspector.run())
        self.assertEqual(run.version, {})
        self.assertIn("getVersion failed: unexpected payload", run.errors)
        self.assertEqual(len(run.report.classifications), 7)
        self.assertFalse(run.timed_out)

    def test_retries_stop_at_the_run_deadline(self) -> None:
        client = Mock()
        for method in ("get_account_info", "get_version"):
            getattr(client, method).side_effect = httpx.ConnectError("refused")
        transport = SolanaRpcTransport("http://127.0.0.1:8899", client=client, retries=3)
        config = InspectConfig(concurrency=4, timeout=0.3)
        inspector = Inspector(config, identity=self.identity, transport_factory=lambda _: transport)

        started = time.monotonic()
        run = asyncio.run(inspector.run())
        self.assertLess(time.monotonic() - started, 1.0)

        self.assertTrue(all(c is Classification.PROBE_FAILED for c in run.report.classifications.values()))
        self.assertTrue(run.errors)
        self.assertIsNone(transport.deadline)



if __name__ == "__main__":
    unittest.main()
