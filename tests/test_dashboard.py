import unittest

from solders.keypair import Keypair

from pdascope.config import InspectConfig
from pdascope.engine import Inspector
from pdascope.tui.app import DashboardApp

from tests.fakes import FakeLedger


class DashboardAppTests(unittest.TestCase):
    def setUp(self) -> None:
        self.inspector = Inspector(
            InspectConfig(), identity=Keypair(), transport_factory=lambda _: FakeLedger()
        )

    def test_auto_refresh_starts_off(self) -> None:
        app = DashboardApp(self.inspector)
        self.assertFalse(app.auto_refresh)
        self.assertEqual(app.interval, 2.0)

    def test_auto_refresh_can_start_on(self) -> None:
        app = DashboardApp(self.inspector, interval=5.0, auto_refresh=True)
        self.assertTrue(app.auto_refresh)
        self.assertEqual(app.interval, 5.0)


if __name__ == "__main__":
    unittest.main()
