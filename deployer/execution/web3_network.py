"""web3.py implementation of the Network protocol.

Transactions are built by web3 (gas estimation included), signed locally
with eth-account and sent raw, so the node never needs an unlocked account.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import structlog
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from deployer.artifacts import CompiledContract
from deployer.config import NetworkConfig
from deployer.errors import ConfigurationError, RevertError, SubmissionError
from deployer.execution.network import ACCOUNT_LOCKS, AccountLocks, Receipt
from deployer.models.types import is_valid_address

logger = structlog.get_logger()

# Errors web3 and its HTTP provider raise for transport/RPC failures
_TRANSPORT_ERRORS = (Web3Exception, OSError, ValueError)


def _encode_argument(value: Any) -> Any:
    """Checksum address-shaped strings; web3 rejects lowercase addresses."""
    if isinstance(value, str) and is_valid_address(value):
        return Web3.to_checksum_address(value)
    if isinstance(value, list | tuple):
        return [_encode_argument(item) for item in value]
    return value


def _revert_reason(err: ContractLogicError) -> str:
    return getattr(err, "message", None) or str(err)


class Web3Network:
    """Deploys and calls contracts through a JSON-RPC endpoint."""

    def __init__(
        self,
        name: str,
        web3: Web3,
        account: LocalAccount,
        *,
        timeout: float = 120.0,
        poll_latency: float = 0.5,
        expected_chain_id: int | None = None,
        locks: AccountLocks = ACCOUNT_LOCKS,
    ) -> None:
        self.name = name
        self.web3 = web3
        self.account = account
        self.timeout = timeout
        self.poll_latency = poll_latency
        self.expected_chain_id = expected_chain_id
        self.locks = locks
        self._chain_id: int | None = None

    @classmethod
    def from_config(cls, name: str, config: NetworkConfig, private_key: str) -> Web3Network:
        """Create an adapter for a configured network and resolved account key."""
        web3 = Web3(Web3.HTTPProvider(config.url, request_kwargs={"timeout": config.timeout}))
        return cls(
            name,
            web3,
            Account.from_key(private_key),
            timeout=config.timeout,
            poll_latency=config.poll_latency,
            expected_chain_id=config.chain_id,
        )

    @property
    def address(self) -> str:
        return self.account.address

    @property
    def chain_id(self) -> int:
        """Chain id reported by the node (cached).

        Raises:
            SubmissionError: If the node cannot be reached
            ConfigurationError: If it differs from the configured chainId
        """
        if self._chain_id is None:
            try:
                chain_id = int(self.web3.eth.chain_id)
            except _TRANSPORT_ERRORS as err:
                raise SubmissionError(f"Cannot reach network {self.name!r}: {err}") from err
            if self.expected_chain_id is not None and chain_id != self.expected_chain_id:
                raise ConfigurationError(
                    f"Network {self.name!r} reports chain id {chain_id}, "
                    f"configured {self.expected_chain_id}"
                )
            self._chain_id = chain_id
        return self._chain_id

    def deploy(self, contract: CompiledContract, args: Sequence[Any], value: int = 0) -> Receipt:
        factory = self.web3.eth.contract(abi=contract.abi, bytecode=contract.bytecode)
        encoded = _encode_argument(list(args))
        receipt = self._transact(lambda: factory.constructor(*encoded), value, contract.name)
        if not receipt.contract_address:
            raise SubmissionError(
                f"Deployment of {contract.name} confirmed without a contract address "
                f"(tx {receipt.tx_hash})"
            )
        return receipt

    def call(
        self,
        contract: CompiledContract,
        address: str,
        method: str,
        args: Sequence[Any],
        value: int = 0,
    ) -> Receipt:
        instance = self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=contract.abi)
        encoded = _encode_argument(list(args))
        return self._transact(
            lambda: instance.get_function_by_name(method)(*encoded),
            value,
            f"{contract.name}.{method}",
        )

    def _transact(self, build: Callable[[], Any], value: int, label: str) -> Receipt:
        """Build, sign, send and confirm one transaction under the account lock."""
        sender = self.account.address
        with self.locks.hold(sender):
            try:
                chain_id = self.chain_id
                nonce = self.web3.eth.get_transaction_count(sender, "pending")
                tx = build().build_transaction(
                    {"from": sender, "nonce": nonce, "value": value, "chainId": chain_id}
                )
            except ContractLogicError as err:
                # Gas estimation executes the transaction and surfaces reverts
                raise RevertError(_revert_reason(err)) from err
            except _TRANSPORT_ERRORS as err:
                raise SubmissionError(f"Cannot build transaction for {label}: {err}") from err

            signed = self.account.sign_transaction(tx)
            try:
                tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
            except _TRANSPORT_ERRORS as err:
                raise SubmissionError(f"Cannot send transaction for {label}: {err}") from err
            tx_hex = Web3.to_hex(tx_hash)
            logger.info("transaction_sent", network=self.name, label=label, tx_hash=tx_hex, nonce=nonce)

            try:
                receipt = self.web3.eth.wait_for_transaction_receipt(
                    tx_hash, timeout=self.timeout, poll_latency=self.poll_latency
                )
            except TimeExhausted as err:
                raise SubmissionError(
                    f"Transaction {tx_hex} for {label} not confirmed within {self.timeout}s"
                ) from err
            except _TRANSPORT_ERRORS as err:
                raise SubmissionError(f"Cannot confirm transaction {tx_hex}: {err}") from err

        if receipt["status"] == 0:
            raise RevertError(self._replay_reason(tx, receipt["blockNumber"]), tx_hash=tx_hex)

        contract_address = receipt.get("contractAddress")
        return Receipt(
            tx_hash=tx_hex,
            block_number=receipt["blockNumber"],
            contract_address=str(contract_address) if contract_address else None,
            gas_used=receipt.get("gasUsed"),
        )

    def _replay_reason(self, tx: dict[str, Any], block_number: int) -> str | None:
        """Re-run a reverted transaction as a call to recover its revert reason."""
        replay = {key: tx[key] for key in ("from", "to", "data", "value") if key in tx}
        try:
            self.web3.eth.call(replay, block_identifier=block_number)
        except ContractLogicError as err:
            return _revert_reason(err)
        except _TRANSPORT_ERRORS as err:
            logger.debug("revert_reason_unavailable", network=self.name, error=str(err))
        return None


__all__ = ["Web3Network"]
