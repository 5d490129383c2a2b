"""Static configuration for the realty dApp client."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from eth_typing import ChecksumAddress
from web3 import Web3

from .exceptions import ConfigurationError
from .types import ContractName

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_RECEIPT_TIMEOUT = 120.0
DEFAULT_DASHBOARD_MIN_INTERVAL_MS = 3000
DEFAULT_KYC_MIN_INTERVAL_MS = 2000
DEFAULT_EPOCH_SCAN_COUNT = 5
DEFAULT_WALLET_FLAG = "isAvalanche"


@dataclass(frozen=True)
class NativeCurrency:
    name: str
    symbol: str
    decimals: int = 18


@dataclass(frozen=True)
class NetworkConfig:
    """A network the wallet may be asked to switch to or add."""

    key: str
    chain_id: int
    chain_name: str
    rpc_urls: tuple[str, ...]
    block_explorer_urls: tuple[str, ...]
    native_currency: NativeCurrency

    @property
    def hex_chain_id(self) -> str:
        return hex(self.chain_id)

    def add_chain_params(self) -> dict:
        """Return the ``wallet_addEthereumChain`` payload for this network."""

        return {
            "chainId": self.hex_chain_id,
            "chainName": self.chain_name,
            "rpcUrls": list(self.rpc_urls),
            "blockExplorerUrls": list(self.block_explorer_urls),
            "nativeCurrency": {
                "name": self.native_currency.name,
                "symbol": self.native_currency.symbol,
                "decimals": self.native_currency.decimals,
            },
        }


AVALANCHE_FUJI = NetworkConfig(
    key="testnet",
    chain_id=43113,
    chain_name="Avalanche Fuji Testnet",
    rpc_urls=("https://api.avax-test.network/ext/bc/C/rpc",),
    block_explorer_urls=("https://testnet.snowtrace.io/",),
    native_currency=NativeCurrency(name="AVAX", symbol="AVAX", decimals=18),
)

AVALANCHE_MAINNET = NetworkConfig(
    key="mainnet",
    chain_id=43114,
    chain_name="Avalanche C-Chain",
    rpc_urls=("https://api.avax.network/ext/bc/C/rpc",),
    block_explorer_urls=("https://snowtrace.io/",),
    native_currency=NativeCurrency(name="AVAX", symbol="AVAX", decimals=18),
)

NETWORKS: Mapping[str, NetworkConfig] = {
    AVALANCHE_FUJI.key: AVALANCHE_FUJI,
    AVALANCHE_MAINNET.key: AVALANCHE_MAINNET,
}


def _checksum(field_name: str, value: str) -> ChecksumAddress:
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ConfigurationError(
            f"Malformed contract address for {field_name}",
            field=field_name,
            details={"value": value},
        )
    return Web3.to_checksum_address(value)


@dataclass(frozen=True)
class ContractAddresses:
    """Deployed contract addresses; checksummed at construction."""

    compliance_registry: str = "0x954f55f370f35ffdf976fb6d04e6982296900f5e"
    title_nft: str = "0xa5151a11bbb1f9f2272d14a78736a9e2d9ebed57"
    fractionalizer: str = "0xa3874e90c79dab20e054ed131f26bd804a3db882"
    rent_pool_merkle: str = "0xea670f4105ce7dd1c60fd14c07b994d3db2e4af8"

    def __post_init__(self) -> None:
        for field_name in ("compliance_registry", "title_nft", "fractionalizer", "rent_pool_merkle"):
            object.__setattr__(self, field_name, _checksum(field_name, getattr(self, field_name)))

    def address_of(self, name: ContractName) -> ChecksumAddress:
        return {
            ContractName.COMPLIANCE_REGISTRY: self.compliance_registry,
            ContractName.TITLE_NFT: self.title_nft,
            ContractName.FRACTIONALIZER: self.fractionalizer,
            ContractName.RENT_POOL_MERKLE: self.rent_pool_merkle,
        }[name]

    def as_mapping(self) -> dict[ContractName, ChecksumAddress]:
        return {name: self.address_of(name) for name in ContractName}


@dataclass(frozen=True)
class RealtyClientConfig:
    """Aggregated configuration used to construct the realty client."""

    contracts: ContractAddresses = field(default_factory=ContractAddresses)
    network: NetworkConfig = AVALANCHE_FUJI
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    wallet_flag: str | None = DEFAULT_WALLET_FLAG
    dashboard_min_interval_ms: int = DEFAULT_DASHBOARD_MIN_INTERVAL_MS
    kyc_min_interval_ms: int = DEFAULT_KYC_MIN_INTERVAL_MS
    epoch_scan_count: int = DEFAULT_EPOCH_SCAN_COUNT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RealtyClientConfig:
        """Build a configuration from ``REALTY_*`` environment variables."""

        env = os.environ if environ is None else environ

        network_key = env.get("REALTY_NETWORK", AVALANCHE_FUJI.key).lower()
        if network_key not in NETWORKS:
            raise ConfigurationError(
                f"Unknown network '{network_key}'; expected one of {sorted(NETWORKS)}",
                field="REALTY_NETWORK",
            )

        defaults = ContractAddresses()
        contracts = ContractAddresses(
            compliance_registry=env.get("REALTY_COMPLIANCE_REGISTRY", defaults.compliance_registry),
            title_nft=env.get("REALTY_TITLE_NFT", defaults.title_nft),
            fractionalizer=env.get("REALTY_FRACTIONALIZER", defaults.fractionalizer),
            rent_pool_merkle=env.get("REALTY_RENT_POOL_MERKLE", defaults.rent_pool_merkle),
        )

        try:
            receipt_timeout = float(env.get("REALTY_RECEIPT_TIMEOUT", DEFAULT_RECEIPT_TIMEOUT))
        except ValueError as exc:
            raise ConfigurationError(
                "REALTY_RECEIPT_TIMEOUT must be numeric", field="REALTY_RECEIPT_TIMEOUT"
            ) from exc

        wallet_flag = env.get("REALTY_WALLET_FLAG", DEFAULT_WALLET_FLAG) or None

        return cls(
            contracts=contracts,
            network=NETWORKS[network_key],
            receipt_timeout=receipt_timeout,
            wallet_flag=wallet_flag,
        )
