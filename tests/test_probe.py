import asyncio
import unittest

from solders.keypair import Keypair

from pdascope.batch import BatchExecutor
from pdascope.probe import AccountObservation, ProbeFailed, probe

from tests.fakes import FakeLedger, data_account


def _keys(count: int) -> list:
    return [Keypair().pubkey() for _ in range(count)]


class ProbeTests(unittest.TestCase):
    def _probe(self, ledger, addresses, limit=4, timeout=5.0):
        async def go():
            async with BatchExecutor(limit) as executor:
                return await probe(ledger, addresses, executor=executor, timeout=timeout)

        return asyncio.run(go())

    def test_absent_and_present(self) -> None:
        present, absent = _keys(2)
        owner = Keypair().pubkey()
        ledger = FakeLedger({present: data_account(owner, 64)})
        results = self._probe(ledger, [present, absent])
        self.assertEqual(results[absent], AccountObservation.absent())
        self.assertEqual(results[present].owner, owner)
        self.assertEqual(results[present].data_length, 64)
        self.assertTrue(results[present].exists)

    def test_failures_are_isolated(self) -> None:
        good, bad = _keys(2)
        ledger = FakeLedger(failing={bad})
        results = self._probe(ledger, [good, bad])
        self.assertIsInstance(results[bad], ProbeFailed)
        self.assertIn("503", results[bad].cause)
        self.assertFalse(results[good].exists)

    def test_duplicates_are_probed_once(self) -> None:
        key = Keypair().pubkey()
        ledger = FakeLedger()
        results = self._probe(ledger, [key, key, key])
        self.assertEqual(list(results), [key])
        self.assertEqual(ledger.calls.count("getAccountInfo"), 1)

    def test_repeat_probe_is_stable(self) -> None:
        keys = _keys(3)
        ledger = FakeLedger({keys[0]: data_account(keys[1])})
        self.assertEqual(self._probe(ledger, keys), self._probe(ledger, keys))

    def test_concurrency_is_bounded(self) -> None:
        ledger = FakeLedger(delay=0.05)
        self._probe(ledger, _keys(10), limit=3)
        self.assertLessEqual(ledger.max_active, 3)
        self.assertGreaterEqual(ledger.max_active, 2)

    def test_timeout_returns_partial_results(self) -> None:
        slow, fast = _keys(2)
        ledger = FakeLedger(blocked={slow})

        async def go():
            async with BatchExecutor(2) as executor:
                results = await probe(ledger, [slow, fast], executor=executor, timeout=0.2)
                ledger.release.set()
                return results

        results = asyncio.run(go())
        self.assertIsInstance(results[slow], ProbeFailed)
        self.assertIn("timed out", results[slow].cause)
        self.assertEqual(results[fast], AccountObservation.absent())


class BatchExecutorTests(unittest.TestCase):
    def test_map_collects_results_and_errors(self) -> None:
        def work(key):
            if key == "boom":
                raise RuntimeError("boom")
            return key.upper()

        async def go():
            async with BatchExecutor(2) as executor:
                return await executor.map(work, ["a", "boom", "b"])

        results, errors, pending = asyncio.run(go())
        self.assertEqual(results, {"a": "A", "b": "B"})
        self.assertIsInstance(errors["boom"], RuntimeError)
        self.assertEqual(pending, set())

    def test_rejects_invalid_limit(self) -> None:
        with self.assertRaises(ValueError):
            BatchExecutor(0)

    def test_call_outside_context(self) -> None:
        async def go():
            await BatchExecutor(1).call(len, "x")

        with self.assertRaises(RuntimeError):
            asyncio.run(go())


if __name__ == "__main__":
    unittest.main()
