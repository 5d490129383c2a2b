"""Type definitions and data models for the realty dApp client."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exceptions import RealtyProtocolError

Address = str  # Checksummed hex address
Wei = int  # Integer base-unit amount
DecimalString = str  # Display-only decimal rendering of a Wei amount


class ContractName(str, Enum):
    """The four deployed contracts the client binds to."""

    COMPLIANCE_REGISTRY = "ComplianceRegistry"
    TITLE_NFT = "TitleNFT"
    FRACTIONALIZER = "Fractionalizer"
    RENT_POOL_MERKLE = "RentPoolMerkle"

    def __str__(self) -> str:
        return self.value


class AuthorizationModel(Enum):
    """How a contract decides who may call privileged methods."""

    ROLE_BASED = "role_based"
    SINGLE_OWNER = "single_owner"


class ConnectionStatus(str, Enum):
    """States of the wallet connection machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    WRONG_NETWORK = "wrong_network"


class PropertyType(str, Enum):
    """Property categories offered when minting a title."""

    HOUSE = "House"
    APARTMENT = "Apartment"
    CONDO = "Condo"
    COMMERCIAL = "Commercial"
    LAND = "Land"


class Skip(Enum):
    """Sentinel returned by a guarded load that did not run."""

    SKIP = "skip"

    def __repr__(self) -> str:
        return "SKIP"

    def __bool__(self) -> bool:
        return False


SKIP = Skip.SKIP


@dataclass(frozen=True)
class ConnectionSnapshot:
    """Immutable view of the wallet connection state."""

    account: Address | None = None
    chain_id: int | None = None
    is_connected: bool = False
    is_connecting: bool = False
    balance: DecimalString = "0"
    last_error: RealtyProtocolError | None = None
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    generation: int = 0


@dataclass(frozen=True)
class KYCInfo:
    """Decoded ``getKYCInfo`` result."""

    kyc_status: bool
    timestamp: int
    expiry: int
    is_valid: bool


@dataclass(frozen=True)
class PropertyData:
    """The on-chain ``PropertyData`` struct, as written by mint/update."""

    location: str
    value: Wei
    area: int
    property_type: PropertyType | str
    is_verified: bool = False

    def as_tuple(self) -> tuple[str, int, int, str, bool]:
        """Return the struct as a tuple consumable by web3."""

        property_type = (
            self.property_type.value
            if isinstance(self.property_type, PropertyType)
            else str(self.property_type)
        )
        return (self.location, int(self.value), int(self.area), property_type, bool(self.is_verified))


@dataclass(frozen=True)
class FractionalizationRecord:
    """Fractionalization state of a title token."""

    token_id: int
    token_address: Address
    total_supply: Wei
    fractionalizer: Address
    timestamp: int
    is_active: bool


@dataclass(frozen=True)
class PropertyRecord:
    """Read-only projection of a title token owned by an address."""

    token_id: int
    owner: Address
    location: str
    value: Wei
    area: int
    property_type: PropertyType | str
    is_verified: bool
    mint_timestamp: int
    doc_uri: str
    fractionalization: FractionalizationRecord | None = None


@dataclass(frozen=True)
class EpochRecord:
    """Rental-income epoch totals and the querying identity's claim status."""

    epoch_id: int
    total_deposits: Wei
    is_claimed: bool


@dataclass(frozen=True)
class TokenInfo:
    """Metadata of a fraction (GuardedERC20) token."""

    address: Address
    name: str
    symbol: str
    decimals: int
    total_supply: Wei
    balance: Wei


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Aggregate dashboard view for one address."""

    account: Address
    properties: list[PropertyRecord] = field(default_factory=list)
    fractionalized: list[PropertyRecord] = field(default_factory=list)
    epochs: list[EpochRecord] = field(default_factory=list)


@dataclass
class TransactionResult:
    """Confirmed outcome of a state-changing call."""

    tx_hash: str
    contract: ContractName | str
    method: str
    status: bool
    block_number: int | None = None
    value: Wei = 0
    receipt: dict[str, Any] | None = None
