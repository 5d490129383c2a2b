"""Realty API - wallet-mediated client for tokenized real-estate contracts.

This library connects a browser-style wallet to the compliance registry,
title NFT, fractionalizer and rent pool contracts, and exposes a uniform
read/write surface over them.
"""

from .client import RealtyClient
from .config import (
    AVALANCHE_FUJI,
    AVALANCHE_MAINNET,
    NETWORKS,
    ContractAddresses,
    NetworkConfig,
    RealtyClientConfig,
)
from .constants import Role
from .contracts.gateway import CallGateway
from .contracts.registry import ContractHandle, ContractRegistry
from .contracts.roles import RoleResolver
from .exceptions import (
    ConfigurationError,
    ContractRevertedError,
    DecodeError,
    ErrorKind,
    InsufficientFundsError,
    InvalidAddressError,
    NetworkMismatchError,
    NoAccountsError,
    NotInitializedError,
    ProviderRequestError,
    ProviderUnavailableError,
    RealtyProtocolError,
    StaleBindingError,
    TransportError,
    UserRejectedError,
    ValidationError,
    WrongNetworkError,
)
from .guard import LoadGuard
from .types import (
    SKIP,
    Address,
    ConnectionSnapshot,
    ConnectionStatus,
    ContractName,
    EpochRecord,
    FractionalizationRecord,
    KYCInfo,
    PortfolioSnapshot,
    PropertyData,
    PropertyRecord,
    PropertyType,
    TokenInfo,
    TransactionResult,
    Wei,
)
from .utils import format_bytes32_string, format_ether, parse_bytes32_string, parse_ether
from .wallet.connection import WalletConnection
from .wallet.local import LocalKeyTransport
from .wallet.transport import ProviderBinding, WalletTransport

__version__ = "0.1.0"

__all__ = [
    # Client and components
    "RealtyClient",
    "ProviderBinding",
    "WalletTransport",
    "LocalKeyTransport",
    "WalletConnection",
    "ContractRegistry",
    "ContractHandle",
    "CallGateway",
    "LoadGuard",
    "RoleResolver",
    # Configuration
    "RealtyClientConfig",
    "ContractAddresses",
    "NetworkConfig",
    "AVALANCHE_FUJI",
    "AVALANCHE_MAINNET",
    "NETWORKS",
    # Types and enums
    "SKIP",
    "Address",
    "Wei",
    "Role",
    "ConnectionSnapshot",
    "ConnectionStatus",
    "ContractName",
    "EpochRecord",
    "FractionalizationRecord",
    "KYCInfo",
    "PortfolioSnapshot",
    "PropertyData",
    "PropertyRecord",
    "PropertyType",
    "TokenInfo",
    "TransactionResult",
    # Exceptions
    "ErrorKind",
    "RealtyProtocolError",
    "ProviderRequestError",
    "ProviderUnavailableError",
    "NoAccountsError",
    "WrongNetworkError",
    "UserRejectedError",
    "InsufficientFundsError",
    "ContractRevertedError",
    "ValidationError",
    "InvalidAddressError",
    "DecodeError",
    "StaleBindingError",
    "NotInitializedError",
    "NetworkMismatchError",
    "ConfigurationError",
    "TransportError",
    # Utility functions
    "format_ether",
    "parse_ether",
    "format_bytes32_string",
    "parse_bytes32_string",
]
