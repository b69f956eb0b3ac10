"""Ledger transport: the RPC reads the engine consumes.

``LedgerTransport`` is the seam the probe and simulator depend on;
``SolanaRpcTransport`` implements it on top of solana-py's ``Client``.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException
from solders.errors import SerdeJSONError
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.rpc.responses import (
    GetAccountInfoResp,
    GetLatestBlockhashResp,
    GetVersionResp,
    SimulateTransactionResp,
)
from solders.transaction import Transaction

from .constants import DEFAULT_COMMITMENT, DEFAULT_RPC_RETRIES
from .errors import TransportError

logger = logging.getLogger(__name__)

_RETRY_STATUS = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class AccountInfo:
    lamports: int
    owner: Pubkey
    executable: bool
    data_length: int


@dataclass(frozen=True)
class SimulationResult:
    logs: list[str]
    err: Any = None


class LedgerTransport:
    """Read-only ledger operations. Implementations must be thread-safe.

    ``deadline`` is a ``time.monotonic()`` value; while it is set, calls
    made after it has passed fail fast with TransportError.
    """

    deadline: float | None = None

    @contextmanager
    def bounded(self, deadline: float | None) -> Iterator["LedgerTransport"]:
        previous, self.deadline = self.deadline, deadline
        try:
            yield self
        finally:
            self.deadline = previous

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def get_account_info(self, address: Pubkey) -> AccountInfo | None:
        raise NotImplementedError

    def get_latest_blockhash(self) -> Hash:
        raise NotImplementedError

    def simulate_transaction(self, transaction: Transaction) -> SimulationResult:
        raise NotImplementedError

    def get_version(self) -> dict[str, Any]:
        raise NotImplementedError


def _http_status(exc: BaseException) -> int | None:
    seen: BaseException | None = exc
    while seen is not None:
        if isinstance(seen, httpx.HTTPStatusError):
            return seen.response.status_code
        seen = seen.__cause__ or seen.__context__
    return None


def _is_retryable(exc: BaseException) -> bool:
    status = _http_status(exc)
    if status is not None:
        return status in _RETRY_STATUS
    return True


class SolanaRpcTransport(LedgerTransport):
    def __init__(
        self,
        rpc_url: str,
        *,
        commitment: str = DEFAULT_COMMITMENT,
        timeout: float = 10.0,
        retries: int = DEFAULT_RPC_RETRIES,
        client: Client | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.retries = retries
        self.timeout = timeout
        self.client = client or Client(rpc_url, commitment=Commitment(commitment), timeout=timeout)

    def _cap_request_timeout(self, remaining: float | None) -> None:
        """Shrink the HTTP timeout so no single request outlives the deadline."""
        session = getattr(getattr(self.client, "_provider", None), "session", None)
        if not isinstance(session, httpx.Client):
            return
        limit = self.timeout if remaining is None else max(min(self.timeout, remaining), 0.001)
        session.timeout = httpx.Timeout(limit)

    def _call(self, method: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        for attempt in range(self.retries + 1):
            remaining = self.remaining()
            if remaining is not None and remaining <= 0:
                raise TransportError(f"{method}: run deadline exceeded")
            self._cap_request_timeout(remaining)
            try:
                return fn(*args, **kwargs)
            except SerdeJSONError as exc:
                raise TransportError(f"{method}: malformed RPC response: {exc}") from exc
            except RPCException as exc:
                raise TransportError(f"{method}: RPC error: {exc}") from exc
            except (SolanaRpcException, httpx.HTTPError) as exc:
                delay = 0.25 * (2**attempt)
                remaining = self.remaining()
                in_budget = remaining is None or delay < remaining
                if attempt < self.retries and _is_retryable(exc) and in_budget:
                    logger.warning("%s failed (%s); retrying in %.2fs", method, exc, delay)
                    time.sleep(delay)
                    continue
                status = _http_status(exc)
                if status is not None:
                    raise TransportError(f"{method}: RPC HTTP error {status}") from exc
                raise TransportError(f"{method}: RPC transport error: {exc}") from exc
        raise TransportError(f"{method}: RPC request failed after retries")

    @staticmethod
    def _expect(method: str, resp: Any, resp_type: type) -> Any:
        if not isinstance(resp, resp_type):
            raise TransportError(f"{method}: RPC error: {resp}")
        return resp

    def get_account_info(self, address: Pubkey) -> AccountInfo | None:
        resp = self._call("getAccountInfo", self.client.get_account_info, address)
        value = self._expect("getAccountInfo", resp, GetAccountInfoResp).value
        if value is None:
            return None
        return AccountInfo(
            lamports=value.lamports,
            owner=value.owner,
            executable=value.executable,
            data_length=len(value.data),
        )

    def get_latest_blockhash(self) -> Hash:
        resp = self._call("getLatestBlockhash", self.client.get_latest_blockhash)
        return self._expect("getLatestBlockhash", resp, GetLatestBlockhashResp).value.blockhash

    def simulate_transaction(self, transaction: Transaction) -> SimulationResult:
        resp = self._call("simulateTransaction", self.client.simulate_transaction, transaction)
        value = self._expect("simulateTransaction", resp, SimulateTransactionResp).value
        return SimulationResult(logs=list(value.logs or []), err=value.err)

    def get_version(self) -> dict[str, Any]:
        resp = self._call("getVersion", self.client.get_version)
        value = self._expect("getVersion", resp, GetVersionResp).value
        return {"solana-core": value.solana_core, "feature-set": value.feature_set}
