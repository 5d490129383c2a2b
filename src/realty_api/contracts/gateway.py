"""Uniform read/write surface over the bound contract handles."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from hexbytes import HexBytes

from ..config import DEFAULT_RECEIPT_TIMEOUT
from ..exceptions import (
    ContractRevertedError,
    DecodeError,
    InsufficientFundsError,
    NetworkMismatchError,
    RealtyProtocolError,
    StaleBindingError,
    ValidationError,
)
from ..types import ContractName, TransactionResult
from ..utils import format_address, format_ether, normalize_error, serialise_receipt, to_bytes32
from ..wallet.connection import WalletConnection
from .abi import find_function
from .registry import ContractHandle, ContractRegistry

logger = logging.getLogger(__name__)

ContractRef = ContractName | str | ContractHandle


class CallGateway:
    """The only component allowed to invoke contract handles."""

    def __init__(
        self,
        registry: ContractRegistry,
        connection: WalletConnection,
        *,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
    ) -> None:
        self._registry = registry
        self._connection = connection
        self._receipt_timeout = receipt_timeout
        self._noise_generation: int | None = None
        self.last_error: RealtyProtocolError | None = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def read(
        self,
        contract: ContractRef,
        method: str,
        args: Sequence[Any] = (),
        *,
        fields: Sequence[str] | None = None,
    ) -> Any:
        """Call a view method; ``fields`` names the members of a multi-value return."""

        handle = self._resolve(contract)
        call_args = self._prepare_args(handle, method, args)

        try:
            result = await getattr(handle.functions, method)(*call_args).call({"from": handle.signer})
        except Exception as exc:
            error = self._failure(handle, method, exc)
            if error is exc:
                raise
            raise error from exc

        if not self._registry.is_current(handle):
            raise self._record(
                StaleBindingError(
                    f"{handle.name}.{method} resolved after the signer changed; result discarded",
                    details={"contract": str(handle.name), "method": method},
                )
            )

        if fields is None:
            return result
        return self._destructure(handle, method, result, fields)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def write(
        self,
        contract: ContractRef,
        method: str,
        args: Sequence[Any] = (),
        value: int | None = None,
    ) -> TransactionResult:
        """Submit a transaction and wait for its inclusion."""

        handle = self._resolve(contract)
        call_args = self._prepare_args(handle, method, args)

        entry = find_function(handle.abi, method, len(call_args)) or {}
        if value and entry.get("stateMutability") != "payable":
            raise ValidationError(
                f"{handle.name}.{method} does not accept value", field="value", value=value
            )

        tx: dict[str, Any] = {"from": handle.signer}
        if value:
            tx["value"] = int(value)

        self._registry.ensure_current(handle)
        logger.info("Dispatching %s.%s", handle.name, method)

        try:
            tx_hash = await getattr(handle.functions, method)(*call_args).transact(tx)
        except Exception as exc:
            error = self._failure(handle, method, exc, write=True)
            if error is exc:
                raise
            raise error from exc

        tx_hex = HexBytes(tx_hash).to_0x_hex()
        logger.info("Transaction sent for %s.%s hash=%s", handle.name, method, tx_hex)

        try:
            receipt = await handle.web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except Exception as exc:
            error = self._failure(handle, method, exc, write=True)
            if error is exc:
                raise
            raise error from exc

        serialised = serialise_receipt(receipt)
        block_number = receipt.get("blockNumber") if receipt else None
        status = bool(receipt is None or receipt.get("status", 0) == 1)

        if not status:
            raise self._record(
                ContractRevertedError(
                    f"{handle.name}.{method} reverted on-chain",
                    reason="transaction reverted",
                    tx_hash=tx_hex,
                    details={"receipt": serialised},
                ),
                write=True,
            )

        logger.info(
            "Transaction confirmed for %s.%s hash=%s block=%s",
            handle.name,
            method,
            tx_hex,
            block_number,
        )
        return TransactionResult(
            tx_hash=tx_hex,
            contract=handle.name,
            method=method,
            status=status,
            block_number=block_number,
            value=int(value or 0),
            receipt=serialised,
        )

    async def write_paid(
        self,
        contract: ContractRef,
        method: str,
        args: Sequence[Any] = (),
        *,
        fee_method: str,
    ) -> TransactionResult:
        """Attach exactly the contract's current fee, read fresh, to ``method``."""

        handle = self._resolve(contract)
        self._prepare_args(handle, method, args)

        fee = int(await self.read(handle, fee_method))
        available = await self._connection.fetch_balance()
        if available < fee:
            logger.warning(
                "Rejecting %s.%s locally: fee %s exceeds balance %s",
                handle.name,
                method,
                fee,
                available,
            )
            raise self._record(
                InsufficientFundsError(
                    f"Insufficient balance. Required: {format_ether(fee)}, "
                    f"Available: {format_ether(available)}",
                    required=fee,
                    available=available,
                ),
                write=True,
            )

        return await self.write(handle, method, args, value=fee)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _resolve(self, contract: ContractRef) -> ContractHandle:
        if isinstance(contract, ContractHandle):
            self._registry.ensure_current(contract)
            return contract
        try:
            name = ContractName(contract)
        except ValueError as exc:
            raise ValidationError("Unknown contract", field="contract", value=contract) from exc
        return self._registry.handle(name)

    def _prepare_args(self, handle: ContractHandle, method: str, args: Sequence[Any]) -> list[Any]:
        entry = find_function(handle.abi, method, len(args))
        if entry is None:
            raise ValidationError(
                f"{handle.name} has no method {method} taking {len(args)} arguments",
                field="method",
                value=method,
            )

        prepared: list[Any] = []
        for spec, value in zip(entry["inputs"], args):
            kind = spec["type"]
            field = spec.get("name") or kind
            if kind == "address":
                prepared.append(format_address(value, field=field))
            elif kind == "address[]":
                prepared.append([format_address(item, field=field) for item in value])
            elif kind == "bytes32":
                prepared.append(to_bytes32(value, field=field))
            elif kind == "bytes32[]":
                prepared.append([to_bytes32(item, field=field) for item in value])
            else:
                prepared.append(value)
        return prepared

    def _destructure(
        self, handle: ContractHandle, method: str, result: Any, fields: Sequence[str]
    ) -> dict[str, Any]:
        if not isinstance(result, list | tuple) or len(result) != len(fields):
            raise self._record(
                DecodeError(
                    f"Unexpected return shape from {handle.name}.{method}",
                    details={"expected": list(fields), "received": repr(result)},
                )
            )
        return dict(zip(fields, result))

    def _failure(
        self, handle: ContractHandle, method: str, exc: BaseException, *, write: bool = False
    ) -> RealtyProtocolError:
        error = normalize_error(exc)
        if not self._registry.is_current(handle) and not isinstance(error, StaleBindingError):
            error = NetworkMismatchError(
                f"Signer changed while {handle.name}.{method} was in flight",
                details={"contract": str(handle.name), "method": method, "error": str(exc)},
            )
        return self._record(error, write=write, context=f"{handle.name}.{method}")

    def _record(
        self, error: RealtyProtocolError, *, write: bool = False, context: str | None = None
    ) -> RealtyProtocolError:
        self.last_error = error
        label = context or "contract call"
        if isinstance(error, NetworkMismatchError):
            generation = self._registry.generation
            if self._noise_generation != generation:
                self._noise_generation = generation
                logger.warning("Network changed during %s; repeats suppressed", label)
            return error
        if write:
            logger.error("%s failed: %s", label, error)
        else:
            logger.debug("%s failed: %s", label, error)
        return error
