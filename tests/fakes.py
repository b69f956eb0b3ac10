"""In-memory ledger used by the tests."""

from __future__ import annotations

import threading
import time
from typing import Dict, Optional

from solders.hash import Hash
from solders.pubkey import Pubkey

from pdascope.errors import TransportError
from pdascope.transport import AccountInfo, LedgerTransport, SimulationResult

BPF_LOADER = Pubkey.from_string("BPFLoaderUpgradeab1e11111111111111111111111")


class FakeLedger(LedgerTransport):
    def __init__(
        self,
        accounts: Optional[Dict[Pubkey, AccountInfo]] = None,
        *,
        delay: float = 0.0,
        failing: Optional[set] = None,
        blocked: Optional[set] = None,
        logs: Optional[list] = None,
        sim_err: object = None,
        stalled: Optional[set] = None,
        version_error: Optional[Exception] = None,
    ) -> None:
        self.accounts = dict(accounts or {})
        self.delay = delay
        self.failing = set(failing or ())
        self.blocked = set(blocked or ())
        self.release = threading.Event()
        self.logs = list(logs or [])
        self.sim_err = sim_err
        self.stalled = set(stalled or ())
        self.version_error = version_error
        self.calls: list = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def _enter(self, name: str) -> None:
        with self._lock:
            self.calls.append(name)
            self.active += 1
            self.max_active = max(self.max_active, self.active)

    def _exit(self) -> None:
        with self._lock:
            self.active -= 1

    def _stall(self) -> None:
        remaining = self.remaining()
        self.release.wait(5 if remaining is None else max(remaining, 0.0) + 0.2)

    def get_account_info(self, address: Pubkey) -> AccountInfo | None:
        self._enter("getAccountInfo")
        try:
            if self.delay:
                time.sleep(self.delay)
            if address in self.blocked:
                self._stall()
            if address in self.failing:
                raise TransportError("getAccountInfo: RPC HTTP error 503")
            return self.accounts.get(address)
        finally:
            self._exit()

    def get_latest_blockhash(self) -> Hash:
        self._enter("getLatestBlockhash")
        self._exit()
        return Hash.default()

    def simulate_transaction(self, transaction) -> SimulationResult:
        self._enter("simulateTransaction")
        try:
            if "simulateTransaction" in self.stalled:
                self._stall()
        finally:
            self._exit()
        return SimulationResult(logs=list(self.logs), err=self.sim_err)

    def get_version(self) -> dict:
        self._enter("getVersion")
        try:
            if "getVersion" in self.stalled:
                self._stall()
            if self.version_error is not None:
                raise self.version_error
        finally:
            self._exit()
        return {"solana-core": "1.18.0", "feature-set": 1}


def program_account() -> AccountInfo:
    return AccountInfo(lamports=1_141_440, owner=BPF_LOADER, executable=True, data_length=36)


def data_account(owner: Pubkey, size: int = 128) -> AccountInfo:
    return AccountInfo(lamports=2_000_000, owner=owner, executable=False, data_length=size)
