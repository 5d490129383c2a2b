"""Contract handles bound to the wallet's current signing identity."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from eth_typing import ChecksumAddress
from web3 import AsyncWeb3

from ..config import ContractAddresses
from ..exceptions import ConfigurationError, NotInitializedError, StaleBindingError
from ..types import ConnectionSnapshot, ContractName
from ..utils import addresses_equal, format_address
from ..wallet.connection import WalletConnection
from .abi import CONTRACT_ABIS, GuardedERC20_abi

logger = logging.getLogger(__name__)

ContractFactory = Callable[[AsyncWeb3, ChecksumAddress, list[dict[str, Any]]], Any]
InvalidationListener = Callable[[int], Any]

TOKEN_HANDLE_PREFIX = "GuardedERC20"


def _build_contract(web3: AsyncWeb3, address: ChecksumAddress, abi: list[dict[str, Any]]) -> Any:
    return web3.eth.contract(address=address, abi=abi)


@dataclass(frozen=True)
class ContractHandle:
    """A contract interface bound to one signer generation."""

    name: ContractName | str
    address: ChecksumAddress
    abi: list[dict[str, Any]]
    signer: ChecksumAddress
    generation: int
    contract: Any
    web3: AsyncWeb3

    @property
    def functions(self) -> Any:
        return self.contract.functions


class ContractRegistry:
    """Rebuild the named handles whenever the connection identity changes."""

    def __init__(
        self,
        connection: WalletConnection,
        addresses: ContractAddresses,
        *,
        contract_factory: ContractFactory | None = None,
    ) -> None:
        missing = [name.value for name in ContractName if name not in CONTRACT_ABIS]
        if missing:
            raise ConfigurationError("Missing contract interfaces", details={"contracts": missing})

        self._connection = connection
        self._addresses = addresses.as_mapping()
        self._factory = contract_factory or _build_contract
        self._handles: dict[ContractName, ContractHandle] = {}
        self._tokens: dict[str, ContractHandle] = {}
        self._generation: int | None = None
        self._listeners: list[InvalidationListener] = []
        self._unsubscribe = connection.on_change(self._on_connection_change)
        self.sync()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def generation(self) -> int | None:
        return self._generation

    @property
    def addresses(self) -> Mapping[ContractName, ChecksumAddress]:
        return MappingProxyType(self._addresses)

    def handles(self) -> Mapping[ContractName, ContractHandle]:
        """Return the current handles; empty while disconnected."""

        return MappingProxyType(dict(self._handles))

    def handle(self, name: ContractName) -> ContractHandle:
        self.sync()
        handle = self._handles.get(ContractName(name))
        if handle is None:
            raise NotInitializedError(
                f"{ContractName(name).value} is not initialized; connect a wallet on the target network",
                details={"contract": ContractName(name).value},
            )
        return handle

    def token(self, address: str) -> ContractHandle:
        """Return a GuardedERC20 handle for ``address`` bound to the current signer."""

        self.sync()
        checksum = format_address(address, field="token")
        cached = self._tokens.get(checksum)
        if cached is not None:
            return cached
        if not self._handles:
            raise NotInitializedError(
                "Token handles are unavailable while disconnected", details={"token": checksum}
            )
        handle = self._bind(f"{TOKEN_HANDLE_PREFIX}:{checksum}", checksum, GuardedERC20_abi)
        self._tokens[checksum] = handle
        return handle

    def is_current(self, handle: ContractHandle) -> bool:
        return (
            bool(self._handles)
            and handle.generation == self._generation
            and addresses_equal(handle.signer, self._connection.account)
        )

    def ensure_current(self, handle: ContractHandle) -> None:
        if not self.is_current(handle):
            raise StaleBindingError(
                f"Handle for {handle.name} was bound to a superseded signer",
                details={
                    "contract": str(handle.name),
                    "handle_generation": handle.generation,
                    "current_generation": self._generation,
                },
            )

    def on_invalidate(self, listener: InvalidationListener) -> None:
        self._listeners.append(listener)

    def close(self) -> None:
        self._unsubscribe()
        self._handles = {}
        self._tokens = {}

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------
    def sync(self) -> None:
        """Rebuild handles if the connection's identity generation moved."""

        generation = self._connection.generation
        if generation == self._generation:
            return

        self._handles = {}
        self._tokens = {}

        if self._connection.is_connected and self._connection.account is not None:
            # Left unsynced on failure so the next change retries the binding.
            self._handles = {
                name: self._bind(name, address, CONTRACT_ABIS[name])
                for name, address in self._addresses.items()
            }
            logger.info(
                "Bound %d contract handles to %s (generation %s)",
                len(self._handles),
                self._connection.account,
                generation,
            )
        else:
            logger.debug("Contract handles cleared (generation %s)", generation)

        self._generation = generation

        for listener in list(self._listeners):
            listener(generation)

    def _bind(self, name: ContractName | str, address: ChecksumAddress, abi: list[dict[str, Any]]) -> ContractHandle:
        web3 = self._connection.web3
        signer = self._connection.account
        if signer is None:
            raise NotInitializedError("No signing account is bound")
        try:
            contract = self._factory(web3, address, abi)
        except Exception as exc:
            raise ConfigurationError(
                f"Failed to initialize contract {name}",
                field=str(name),
                details={"address": address, "error": str(exc)},
            ) from exc
        return ContractHandle(
            name=name,
            address=address,
            abi=abi,
            signer=format_address(signer, field="signer"),
            generation=self._connection.generation,
            contract=contract,
            web3=web3,
        )

    def _on_connection_change(self, _snapshot: ConnectionSnapshot) -> None:
        self.sync()
