"""Network protocol used by the executor, and per-account submission locks."""

from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Protocol

from deployer.artifacts import CompiledContract
from deployer.models.types import normalize_address


@dataclass(frozen=True)
class Receipt:
    """Confirmation of a mined, successful transaction."""

    tx_hash: str
    block_number: int | None = None
    contract_address: str | None = None
    gas_used: int | None = None


class Network(Protocol):
    """A target chain that can deploy contracts and send calls.

    Implementations block until the transaction is confirmed, and raise
    ``SubmissionError`` (transport, RPC, timeout) or ``RevertError`` (the
    transaction executed and reverted). They never retry on their own.
    """

    name: str

    @property
    def chain_id(self) -> int:
        """Chain id reported by the node."""
        ...

    def deploy(self, contract: CompiledContract, args: Sequence[Any], value: int = 0) -> Receipt:
        """Deploy ``contract`` with constructor ``args``."""
        ...

    def call(
        self,
        contract: CompiledContract,
        address: str,
        method: str,
        args: Sequence[Any],
        value: int = 0,
    ) -> Receipt:
        """Send a transaction calling ``method`` on the contract at ``address``."""
        ...


class AccountLocks:
    """One lock per submitting account.

    Holding the lock across sign/send/confirm keeps at most one transaction
    in flight per account, so nonces are assigned in order even when several
    modules deploy concurrently.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def for_account(self, account: str) -> threading.Lock:
        key = normalize_address(account)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, account: str) -> Iterator[None]:
        with self.for_account(account):
            yield


# Shared by every network adapter in the process
ACCOUNT_LOCKS = AccountLocks()


__all__ = ["ACCOUNT_LOCKS", "AccountLocks", "Network", "Receipt"]
