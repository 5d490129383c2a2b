"""Wallet transport backed by a local private key and a JSON-RPC endpoint."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, cast

import requests
from eth_account import Account
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes

from ..config import AVALANCHE_FUJI, DEFAULT_REQUEST_TIMEOUT, NETWORKS, NetworkConfig
from ..constants import (
    ACCOUNTS_CHANGED,
    CHAIN_CHANGED,
    ETH_ACCOUNTS,
    ETH_CHAIN_ID,
    ETH_REQUEST_ACCOUNTS,
    INTERNAL_ERROR_CODE,
    UNAUTHORIZED_CODE,
    UNRECOGNIZED_CHAIN_CODE,
    WALLET_ADD_CHAIN,
    WALLET_EVENTS,
    WALLET_SWITCH_CHAIN,
)
from ..exceptions import ConfigurationError, ProviderRequestError, ValidationError
from ..utils import addresses_equal, parse_chain_id, parse_quantity
from .transport import Listener, WalletTransport, dispatch_event

logger = logging.getLogger(__name__)

ETH_SEND_TRANSACTION = "eth_sendTransaction"
_QUANTITY_FIELDS = ("value", "gas", "gasPrice", "maxFeePerGas", "maxPriorityFeePerGas", "nonce", "chainId")


def _load_account(private_key: str) -> LocalAccount:
    try:
        return cast(LocalAccount, Account.from_key(private_key))  # type: ignore[arg-type]
    except Exception as exc:
        raise ConfigurationError(
            "Failed to derive signer account from provided private key",
            field="private_key",
            details={"error": str(exc)},
        ) from exc


class LocalKeyTransport(WalletTransport):
    """Script-side stand-in for an injected wallet.

    Account and chain requests are answered locally, ``eth_sendTransaction`` is
    signed with the local key and broadcast raw, and every other request is
    forwarded to the active network's RPC endpoint.
    """

    isAvalanche = True

    def __init__(
        self,
        private_key: str,
        *,
        network: NetworkConfig = AVALANCHE_FUJI,
        networks: Iterable[NetworkConfig] | None = None,
        session: requests.Session | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._account: LocalAccount | None = _load_account(private_key)
        self._rpc_urls: dict[int, str] = {}
        for config in networks if networks is not None else NETWORKS.values():
            self._register(config.chain_id, config.rpc_urls)
        self._register(network.chain_id, network.rpc_urls)
        self._chain_id = network.chain_id
        self._session = session or requests.Session()
        self._request_timeout = request_timeout
        self._listeners: dict[str, list[Listener]] = {event: [] for event in WALLET_EVENTS}
        self._request_ids = itertools.count(1)

    @property
    def address(self) -> str | None:
        return self._account.address if self._account is not None else None

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def rpc_url(self) -> str:
        return self._rpc_urls[self._chain_id]

    # ------------------------------------------------------------------
    # EIP-1193 surface
    # ------------------------------------------------------------------
    async def request(self, method: str, params: Sequence[Any] | None = None) -> Any:
        params = list(params or [])
        if method in (ETH_REQUEST_ACCOUNTS, ETH_ACCOUNTS):
            return [self.address] if self.address else []
        if method == ETH_CHAIN_ID:
            return hex(self._chain_id)
        if method == WALLET_SWITCH_CHAIN:
            return await self._switch_chain(params)
        if method == WALLET_ADD_CHAIN:
            return await self._add_chain(params)
        if method == ETH_SEND_TRANSACTION:
            return await self._send_transaction(params)
        return await asyncio.to_thread(self._rpc, method, params)

    def on(self, event: str, callback: Listener) -> None:
        if event not in self._listeners:
            raise ValidationError("Unsupported wallet event", field="event", value=event)
        self._listeners[event].append(callback)

    def remove_listener(self, event: str, callback: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    # ------------------------------------------------------------------
    # Wallet-side actions
    # ------------------------------------------------------------------
    async def use_account(self, private_key: str) -> None:
        """Switch the active key, as a user would in the wallet UI."""

        self._account = _load_account(private_key)
        logger.info("Local wallet account switched to %s", self._account.address)
        await dispatch_event(self._listeners[ACCOUNTS_CHANGED], [self._account.address])

    async def lock(self) -> None:
        """Revoke every authorized account."""

        self._account = None
        logger.info("Local wallet locked")
        await dispatch_event(self._listeners[ACCOUNTS_CHANGED], [])

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _register(self, chain_id: int, rpc_urls: Sequence[str]) -> None:
        if rpc_urls:
            self._rpc_urls[chain_id] = rpc_urls[0]

    async def _switch_chain(self, params: list[Any]) -> None:
        chain_id = parse_chain_id(self._first_param(params).get("chainId", ""))
        if chain_id not in self._rpc_urls:
            raise ProviderRequestError(
                UNRECOGNIZED_CHAIN_CODE, f"Unrecognized chain ID {hex(chain_id)}"
            )
        if chain_id == self._chain_id:
            return None
        self._chain_id = chain_id
        logger.info("Local wallet switched to chain %s", chain_id)
        await dispatch_event(self._listeners[CHAIN_CHANGED], hex(chain_id))
        return None

    async def _add_chain(self, params: list[Any]) -> None:
        payload = self._first_param(params)
        chain_id = parse_chain_id(payload.get("chainId", ""))
        rpc_urls = payload.get("rpcUrls") or []
        if not rpc_urls:
            raise ProviderRequestError(INTERNAL_ERROR_CODE, "rpcUrls must not be empty")
        self._register(chain_id, list(rpc_urls))
        return await self._switch_chain([{"chainId": hex(chain_id)}])

    async def _send_transaction(self, params: list[Any]) -> str:
        if self._account is None:
            raise ProviderRequestError(UNAUTHORIZED_CODE, "Wallet is locked")

        tx: dict[str, Any] = dict(self._first_param(params))
        sender = tx.pop("from", None)
        if sender is not None and not addresses_equal(sender, self._account.address):
            raise ProviderRequestError(
                UNAUTHORIZED_CODE, f"Account {sender} is not authorized by this wallet"
            )

        for key in _QUANTITY_FIELDS:
            if key in tx:
                tx[key] = parse_quantity(tx[key])
        tx.setdefault("chainId", self._chain_id)
        tx.setdefault("value", 0)

        if "nonce" not in tx:
            tx["nonce"] = parse_quantity(
                await asyncio.to_thread(
                    self._rpc, "eth_getTransactionCount", [self._account.address, "pending"]
                )
            )
        if "gas" not in tx:
            estimate = {"from": self._account.address, **{k: v for k, v in tx.items() if k != "chainId"}}
            estimate = {k: hex(v) if isinstance(v, int) else v for k, v in estimate.items()}
            tx["gas"] = parse_quantity(await asyncio.to_thread(self._rpc, "eth_estimateGas", [estimate]))
        if "gasPrice" not in tx and "maxFeePerGas" not in tx:
            tx["gasPrice"] = parse_quantity(await asyncio.to_thread(self._rpc, "eth_gasPrice", []))

        signed = self._account.sign_transaction(tx)
        raw = HexBytes(signed.raw_transaction).to_0x_hex()
        tx_hash = await asyncio.to_thread(self._rpc, "eth_sendRawTransaction", [raw])
        logger.debug("Broadcast signed transaction nonce=%s hash=%s", tx["nonce"], tx_hash)
        return tx_hash

    @staticmethod
    def _first_param(params: list[Any]) -> Mapping[str, Any]:
        if not params or not isinstance(params[0], Mapping):
            raise ProviderRequestError(INTERNAL_ERROR_CODE, "Expected an object as the first parameter")
        return params[0]

    def _rpc(self, method: str, params: list[Any]) -> Any:
        url = self.rpc_url
        payload = {"jsonrpc": "2.0", "id": next(self._request_ids), "method": method, "params": params}
        try:
            response = self._session.post(url, json=payload, timeout=self._request_timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ProviderRequestError(
                INTERNAL_ERROR_CODE, f"RPC request to {url} failed: {exc}"
            ) from exc

        body = response.json()
        if not isinstance(body, Mapping):
            raise ProviderRequestError(INTERNAL_ERROR_CODE, "Malformed JSON-RPC response")
        error = body.get("error")
        if error:
            if isinstance(error, Mapping):
                raise ProviderRequestError(
                    int(error.get("code", INTERNAL_ERROR_CODE)),
                    str(error.get("message", "")),
                    error.get("data"),
                )
            raise ProviderRequestError(INTERNAL_ERROR_CODE, str(error))
        return body.get("result")
