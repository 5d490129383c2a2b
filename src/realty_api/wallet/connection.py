"""Wallet connection state machine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

from web3 import AsyncWeb3

from ..config import NetworkConfig
from ..constants import (
    ACCOUNTS_CHANGED,
    CHAIN_CHANGED,
    ETH_ACCOUNTS,
    ETH_CHAIN_ID,
    ETH_GET_BALANCE,
    ETH_REQUEST_ACCOUNTS,
    UNRECOGNIZED_CHAIN_CODE,
    WALLET_ADD_CHAIN,
    WALLET_SWITCH_CHAIN,
)
from ..exceptions import (
    ConfigurationError,
    DecodeError,
    InvalidAddressError,
    NoAccountsError,
    NotInitializedError,
    ProviderRequestError,
    ProviderUnavailableError,
    RealtyProtocolError,
    ValidationError,
    WrongNetworkError,
)
from ..types import ConnectionSnapshot, ConnectionStatus
from ..utils import addresses_equal, format_address, format_ether, normalize_error, parse_chain_id, parse_quantity
from .provider import build_injected_web3
from .transport import ProviderBinding

logger = logging.getLogger(__name__)

Observer = Callable[[ConnectionSnapshot], Any]
Web3Factory = Callable[[ProviderBinding], AsyncWeb3]


class WalletConnection:
    """Single owner and only writer of the wallet connection fields."""

    def __init__(
        self,
        binding: ProviderBinding,
        network: NetworkConfig,
        *,
        web3_factory: Web3Factory | None = None,
    ) -> None:
        self._binding = binding
        self._network = network
        self._web3_factory = web3_factory or build_injected_web3
        self._web3: AsyncWeb3 | None = None
        self._account: str | None = None
        self._chain_id: int | None = None
        self._status = ConnectionStatus.DISCONNECTED
        self._balance = "0"
        self._last_error: RealtyProtocolError | None = None
        self._generation = 0
        self._identity: tuple[Any, ...] = self._identity_key()
        self._attempt = 0
        self._observers: list[Observer] = []
        self._balance_task: asyncio.Task | None = None
        self._balance_task_generation: int | None = None
        self._attached = False

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def snapshot(self) -> ConnectionSnapshot:
        return ConnectionSnapshot(
            account=self._account,
            chain_id=self._chain_id,
            is_connected=self.is_connected,
            is_connecting=self._status is ConnectionStatus.CONNECTING,
            balance=self._balance,
            last_error=self._last_error,
            status=self._status,
            generation=self._generation,
        )

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def account(self) -> str | None:
        return self._account

    @property
    def chain_id(self) -> int | None:
        return self._chain_id

    @property
    def balance(self) -> str:
        return self._balance

    @property
    def last_error(self) -> RealtyProtocolError | None:
        return self._last_error

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def network(self) -> NetworkConfig:
        return self._network

    @property
    def binding(self) -> ProviderBinding:
        return self._binding

    @property
    def is_connected(self) -> bool:
        return (
            self._status is ConnectionStatus.CONNECTED
            and self._account is not None
            and self._chain_id == self._network.chain_id
        )

    @property
    def web3(self) -> AsyncWeb3:
        if self._web3 is None:
            raise NotInitializedError("Wallet is not connected; call connect() first")
        return self._web3

    def on_change(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer`` for every state transition; returns an unsubscribe callable."""

        self._observers.append(observer)

        def _remove() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _remove

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def attach(self) -> None:
        """Subscribe to wallet events once; later calls are no-ops."""

        if self._attached or not self._binding.is_available():
            return
        self._binding.subscribe(ACCOUNTS_CHANGED, self._handle_accounts_changed)
        self._binding.subscribe(CHAIN_CHANGED, self._handle_chain_changed)
        self._attached = True

    def close(self) -> None:
        """Release wallet listeners and forget the session."""

        self.disconnect()
        self._binding.unsubscribe_all()
        self._attached = False

    async def connect(self) -> ConnectionSnapshot:
        if self._status in (ConnectionStatus.CONNECTED, ConnectionStatus.CONNECTING):
            return self.snapshot

        if not self._binding.is_available():
            error = ProviderUnavailableError(
                "No compatible wallet detected; install a wallet extension to continue"
            )
            self._last_error = error
            self._commit()
            raise error

        self.attach()
        attempt = self._begin_attempt()

        try:
            accounts = await self._binding.request(ETH_REQUEST_ACCOUNTS, [])
            if attempt != self._attempt:
                return self.snapshot
            if not accounts:
                raise NoAccountsError("Wallet returned no authorized accounts")
            chain_id = parse_chain_id(await self._binding.request(ETH_CHAIN_ID, []))
        except (ProviderRequestError, RealtyProtocolError) as exc:
            error = normalize_error(exc)
            if attempt == self._attempt:
                logger.error("Failed to connect wallet: %s", error)
                self._reset(error)
            if error is exc:
                raise
            raise error from exc

        if attempt != self._attempt:
            return self.snapshot

        self._establish(accounts, chain_id)
        if self._status is ConnectionStatus.WRONG_NETWORK:
            await self.switch_network()
        return self.snapshot

    async def restore(self) -> ConnectionSnapshot:
        """Silently reconnect when the wallet already authorizes an account."""

        if self._status is not ConnectionStatus.DISCONNECTED or not self._binding.is_available():
            return self.snapshot

        self.attach()
        try:
            accounts = await self._binding.request(ETH_ACCOUNTS, [])
        except ProviderRequestError as exc:
            logger.warning("Failed to check existing wallet authorization: %s", exc)
            return self.snapshot
        if not accounts or self._status is not ConnectionStatus.DISCONNECTED:
            return self.snapshot

        attempt = self._begin_attempt()
        try:
            chain_id = parse_chain_id(await self._binding.request(ETH_CHAIN_ID, []))
        except (ProviderRequestError, RealtyProtocolError) as exc:
            if attempt == self._attempt:
                logger.warning("Failed to restore wallet session: %s", exc)
                self._reset(None)
            return self.snapshot

        if attempt == self._attempt:
            self._establish(accounts, chain_id)
        return self.snapshot

    def disconnect(self) -> None:
        self._attempt += 1
        if self._status is ConnectionStatus.DISCONNECTED and self._account is None:
            if self._last_error is not None:
                self._last_error = None
                self._commit()
            return
        logger.info("Disconnecting wallet %s", self._account)
        self._reset(None)

    async def switch_network(self) -> ConnectionSnapshot:
        """Ask the wallet to switch to (or add) the configured target network."""

        if self._account is None:
            raise NotInitializedError("Connect a wallet before switching networks")
        if self.is_connected:
            return self.snapshot

        target = self._network
        attempt = self._attempt
        try:
            await self._binding.request(WALLET_SWITCH_CHAIN, [{"chainId": target.hex_chain_id}])
        except ProviderRequestError as exc:
            if exc.code != UNRECOGNIZED_CHAIN_CODE:
                raise self._fail_network(exc) from exc
            try:
                await self._binding.request(WALLET_ADD_CHAIN, [target.add_chain_params()])
            except ProviderRequestError as add_exc:
                raise self._fail_network(add_exc) from add_exc

        if attempt != self._attempt or self._account is None:
            return self.snapshot

        logger.info("Wallet switched to %s (chain id %s)", target.chain_name, target.chain_id)
        self._chain_id = target.chain_id
        self._status = ConnectionStatus.CONNECTED
        self._last_error = None
        self._commit_connected()
        return self.snapshot

    # ------------------------------------------------------------------
    # Balance
    # ------------------------------------------------------------------
    async def fetch_balance(self) -> int:
        """Read the active account's native balance fresh from the wallet."""

        account = self._account
        if account is None:
            raise NotInitializedError("Wallet is not connected; call connect() first")
        try:
            raw = await self._binding.request(ETH_GET_BALANCE, [account, "latest"])
        except ProviderRequestError as exc:
            raise normalize_error(exc) from exc
        try:
            return parse_quantity(raw)
        except (TypeError, ValueError) as exc:
            raise DecodeError(
                "Wallet returned a malformed balance", details={"balance": raw, "error": str(exc)}
            ) from exc

    async def refresh_balance(self) -> str:
        """Refresh the advisory display balance."""

        generation = self._generation
        if self._account is None:
            self._balance = "0"
            return self._balance
        try:
            wei = await self.fetch_balance()
        except RealtyProtocolError as exc:
            logger.warning("Failed to refresh balance: %s", exc)
            wei = 0
        if generation != self._generation:
            return self._balance
        self._balance = format_ether(wei)
        self._notify()
        return self._balance

    def _schedule_balance_refresh(self) -> None:
        task = self._balance_task
        if task is not None and not task.done():
            if self._balance_task_generation == self._generation:
                return
            task.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._balance_task = loop.create_task(self.refresh_balance())
        self._balance_task_generation = self._generation

    # ------------------------------------------------------------------
    # Wallet events
    # ------------------------------------------------------------------
    def _handle_accounts_changed(self, accounts: Sequence[str]) -> None:
        if self._status in (ConnectionStatus.DISCONNECTED, ConnectionStatus.CONNECTING):
            return
        if not accounts:
            logger.info("Wallet reported no authorized accounts; disconnecting")
            self._attempt += 1
            self._reset(None)
            return
        try:
            account = format_address(accounts[0])
        except InvalidAddressError:
            logger.warning("Ignoring malformed account from wallet: %r", accounts[0])
            return
        if addresses_equal(account, self._account):
            return
        logger.info("Active wallet account changed to %s", account)
        self._account = account
        self._commit_connected()

    def _handle_chain_changed(self, raw_chain_id: str) -> None:
        if self._status in (ConnectionStatus.DISCONNECTED, ConnectionStatus.CONNECTING):
            return
        try:
            chain_id = parse_chain_id(raw_chain_id)
        except ValidationError:
            logger.warning("Ignoring malformed chain id from wallet: %r", raw_chain_id)
            return
        self._chain_id = chain_id
        if chain_id == self._network.chain_id:
            self._status = ConnectionStatus.CONNECTED
            self._last_error = None
            self._commit_connected()
            return
        self._status = ConnectionStatus.WRONG_NETWORK
        self._last_error = self._wrong_network_error(chain_id)
        logger.warning(
            "Wrong network detected: %s. Expected: %s", chain_id, self._network.chain_id
        )
        self._commit()

    # ------------------------------------------------------------------
    # Internal transitions
    # ------------------------------------------------------------------
    def _begin_attempt(self) -> int:
        self._attempt += 1
        self._status = ConnectionStatus.CONNECTING
        self._last_error = None
        self._commit()
        return self._attempt

    def _establish(self, accounts: Sequence[str], chain_id: int) -> None:
        try:
            account = format_address(accounts[0])
        except InvalidAddressError as exc:
            self._reset(exc)
            raise
        self._account = account
        self._chain_id = chain_id
        self._web3 = self._web3_factory(self._binding)

        if chain_id == self._network.chain_id:
            logger.info("Connected wallet %s on chain %s", account, chain_id)
            self._status = ConnectionStatus.CONNECTED
            self._last_error = None
            self._commit_connected()
            return

        logger.warning("Wrong network detected: %s. Expected: %s", chain_id, self._network.chain_id)
        self._status = ConnectionStatus.WRONG_NETWORK
        self._last_error = self._wrong_network_error(chain_id)
        self._commit()

    def _fail_network(self, exc: ProviderRequestError) -> WrongNetworkError:
        error = self._wrong_network_error(self._chain_id, cause=exc)
        logger.warning("Network switch to %s failed: %s", self._network.chain_name, exc)
        if self._account is not None:
            self._status = ConnectionStatus.WRONG_NETWORK
            self._last_error = error
            self._commit()
        return error

    def _wrong_network_error(
        self, actual: int | None, cause: ProviderRequestError | None = None
    ) -> WrongNetworkError:
        details: dict[str, Any] = {}
        if cause is not None:
            details = {"code": cause.code, "error": cause.message}
        return WrongNetworkError(
            f"Please switch to {self._network.chain_name} (Chain ID: {self._network.chain_id})",
            expected_chain_id=self._network.chain_id,
            actual_chain_id=actual,
            details=details,
        )

    def _reset(self, error: RealtyProtocolError | None) -> None:
        task = self._balance_task
        if task is not None and not task.done():
            task.cancel()
        self._balance_task = None
        self._balance_task_generation = None
        self._web3 = None
        self._account = None
        self._chain_id = None
        self._status = ConnectionStatus.DISCONNECTED
        self._balance = "0"
        self._last_error = error
        self._commit()

    def _identity_key(self) -> tuple[Any, ...]:
        return (id(self._web3) if self._web3 is not None else None, self._account, self.is_connected)

    def _commit(self, *, refresh_balance: bool = False) -> None:
        identity = self._identity_key()
        if identity != self._identity:
            self._identity = identity
            self._generation += 1
        if refresh_balance and self._account is not None:
            self._schedule_balance_refresh()
        self._notify()

    def _commit_connected(self) -> None:
        """Commit a connected identity, dropping back to disconnected if observers cannot bind it."""

        try:
            self._commit(refresh_balance=True)
        except ConfigurationError as exc:
            logger.error("Failed to bind contracts for %s: %s", self._account, exc)
            self._attempt += 1
            self._reset(exc)
            raise

    def _notify(self) -> None:
        snapshot = self.snapshot
        for observer in list(self._observers):
            observer(snapshot)
