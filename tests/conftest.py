"""Shared fixtures: a scripted EIP-1193 wallet and an in-memory contract chain."""

from __future__ import annotations

import itertools
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from realty_api.client import RealtyClient
from realty_api.config import AVALANCHE_FUJI, AVALANCHE_MAINNET, ContractAddresses, RealtyClientConfig
from realty_api.constants import UNRECOGNIZED_CHAIN_CODE
from realty_api.exceptions import ProviderRequestError
from realty_api.wallet.transport import Listener, WalletTransport, dispatch_event

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
STABLE = "0x3333333333333333333333333333333333333333"
FRACTION_TOKEN = "0x4444444444444444444444444444444444444444"


class FakeWallet(WalletTransport):
    """Scripted stand-in for ``window.ethereum``."""

    isAvalanche = True

    def __init__(
        self,
        accounts: Sequence[str] = (ALICE,),
        chain_id: int = AVALANCHE_FUJI.chain_id,
        balance: int = 10**18,
    ) -> None:
        self.accounts = list(accounts)
        self.chain_id = chain_id
        self.balance = balance
        self.known_chains = {AVALANCHE_FUJI.chain_id, AVALANCHE_MAINNET.chain_id}
        self.failures: dict[str, BaseException] = {}
        self.requests: list[tuple[str, list[Any]]] = []
        self.listeners: dict[str, list[Listener]] = {}

    async def request(self, method: str, params: Sequence[Any] | None = None) -> Any:
        params = list(params or [])
        self.requests.append((method, params))
        failure = self.failures.get(method)
        if failure is not None:
            raise failure

        if method in ("eth_requestAccounts", "eth_accounts"):
            return list(self.accounts)
        if method == "eth_chainId":
            return hex(self.chain_id)
        if method == "eth_getBalance":
            return hex(self.balance)
        if method == "wallet_switchEthereumChain":
            target = int(params[0]["chainId"], 16)
            if target not in self.known_chains:
                raise ProviderRequestError(UNRECOGNIZED_CHAIN_CODE, "Unrecognized chain")
            self.chain_id = target
            return None
        if method == "wallet_addEthereumChain":
            target = int(params[0]["chainId"], 16)
            self.known_chains.add(target)
            self.chain_id = target
            return None
        raise ProviderRequestError(-32601, f"Method {method} not supported")

    def on(self, event: str, callback: Listener) -> None:
        self.listeners.setdefault(event, []).append(callback)

    def remove_listener(self, event: str, callback: Listener) -> None:
        listeners = self.listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    async def emit(self, event: str, payload: Any) -> None:
        await dispatch_event(self.listeners.get(event, []), payload)

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.requests if name == method)


# ----------------------------------------------------------------------
# In-memory contracts
# ----------------------------------------------------------------------
class DummyContract:
    """Per-address contract whose methods are scripted through ``reads``."""

    def __init__(self, chain: DummyChain, address: str) -> None:
        self.chain = chain
        self.address = address
        self.reads: dict[str, Any] = {}
        self.write_failures: dict[str, BaseException] = {}
        self.functions = _Functions(self)


class _Functions:
    def __init__(self, contract: DummyContract) -> None:
        self._contract = contract

    def __getattr__(self, method: str) -> Callable[..., DummyCall]:
        return lambda *args: DummyCall(self._contract, method, args)


class DummyCall:
    def __init__(self, contract: DummyContract, method: str, args: tuple[Any, ...]) -> None:
        self._contract = contract
        self._method = method
        self._args = args

    async def call(self, tx: dict[str, Any] | None = None) -> Any:
        chain = self._contract.chain
        chain.calls.append((self._contract.address, self._method, self._args, tx))
        if chain.before_call is not None:
            await chain.before_call(self._method)
        value = self._contract.reads.get(self._method)
        if isinstance(value, BaseException):
            raise value
        if callable(value):
            value = value(*self._args)
        if value is None and self._method not in self._contract.reads:
            raise ProviderRequestError(3, f"execution reverted: {self._method} not scripted")
        return value

    async def transact(self, tx: dict[str, Any] | None = None) -> bytes:
        chain = self._contract.chain
        chain.sent.append((self._contract.address, self._method, self._args, dict(tx or {})))
        failure = self._contract.write_failures.get(self._method)
        if failure is not None:
            raise failure
        return next(chain.hashes).to_bytes(32, "big")


class DummyEth:
    def __init__(self, chain: DummyChain) -> None:
        self._chain = chain

    def contract(self, address: str, abi: list[dict[str, Any]]) -> DummyContract:
        return self._chain.contract(address)

    async def wait_for_transaction_receipt(self, tx_hash: bytes, timeout: float) -> dict[str, Any]:
        self._chain.receipt_timeouts.append(timeout)
        status = self._chain.receipt_status
        return {"status": status, "blockNumber": 100, "transactionHash": tx_hash}


class DummyWeb3:
    def __init__(self, chain: DummyChain) -> None:
        self.eth = DummyEth(chain)


class DummyChain:
    """Shared state behind every ``DummyWeb3`` built for a test."""

    def __init__(self) -> None:
        self.contracts: dict[str, DummyContract] = {}
        self.calls: list[tuple[str, str, tuple[Any, ...], Any]] = []
        self.sent: list[tuple[str, str, tuple[Any, ...], dict[str, Any]]] = []
        self.receipt_status = 1
        self.receipt_timeouts: list[float] = []
        self.hashes = itertools.count(1)
        self.before_call: Callable[[str], Any] | None = None
        self.web3_built = 0

    def contract(self, address: str) -> DummyContract:
        key = address.lower()
        if key not in self.contracts:
            self.contracts[key] = DummyContract(self, address)
        return self.contracts[key]

    def web3_factory(self, _binding: Any) -> DummyWeb3:
        self.web3_built += 1
        return DummyWeb3(self)

    def methods_called(self, method: str) -> int:
        return sum(1 for _, name, _, _ in self.calls if name == method)


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------
@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet()


@pytest.fixture
def chain() -> DummyChain:
    return DummyChain()


@pytest.fixture
def addresses() -> ContractAddresses:
    return ContractAddresses(
        compliance_registry="0x00000000000000000000000000000000000000c1",
        title_nft="0x00000000000000000000000000000000000000c2",
        fractionalizer="0x00000000000000000000000000000000000000c3",
        rent_pool_merkle="0x00000000000000000000000000000000000000c4",
    )


@pytest.fixture
def config(addresses: ContractAddresses) -> RealtyClientConfig:
    return RealtyClientConfig(contracts=addresses, receipt_timeout=5.0)


class ManualClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def client(
    wallet: FakeWallet, chain: DummyChain, config: RealtyClientConfig, clock: ManualClock
) -> RealtyClient:
    return RealtyClient(wallet, config, web3_factory=chain.web3_factory, clock=clock)
