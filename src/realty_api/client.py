"""High-level realty client wiring the wallet connection to the four contracts."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any, TypeVar

from .config import RealtyClientConfig
from .constants import Role
from .contracts.gateway import CallGateway, ContractRef
from .contracts.registry import ContractFactory, ContractRegistry
from .contracts.roles import RoleId, RoleResolver
from .exceptions import (
    InsufficientFundsError,
    InvalidAddressError,
    NetworkMismatchError,
    NotInitializedError,
    RealtyProtocolError,
    StaleBindingError,
    ValidationError,
)
from .guard import LoadGuard
from .types import (
    SKIP,
    Address,
    AuthorizationModel,
    ConnectionSnapshot,
    ContractName,
    EpochRecord,
    FractionalizationRecord,
    KYCInfo,
    PortfolioSnapshot,
    PropertyData,
    PropertyRecord,
    PropertyType,
    Skip,
    TokenInfo,
    TransactionResult,
    Wei,
)
from .utils import format_address, format_bytes32_string, format_ether
from .wallet.connection import WalletConnection, Web3Factory
from .wallet.transport import ProviderBinding, WalletTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")

COMPLIANCE = ContractName.COMPLIANCE_REGISTRY
TITLE = ContractName.TITLE_NFT
FRACTIONALIZER = ContractName.FRACTIONALIZER
RENT_POOL = ContractName.RENT_POOL_MERKLE

KYC_INFO_FIELDS = ("kycStatus", "timestamp", "expiry", "isValid")
PROPERTY_DATA_FIELDS = ("location", "value", "area", "propertyType", "isVerified")
FRACTIONALIZATION_FIELDS = ("tokenAddress", "totalSupply", "fractionalizer", "timestamp", "isActive")

# Aggregate reads abandon on these instead of skipping the failing item.
_IDENTITY_FAILURES = (StaleBindingError, NetworkMismatchError, NotInitializedError)


def _property_type(raw: str) -> PropertyType | str:
    try:
        return PropertyType(raw)
    except ValueError:
        return raw


def _bytes32_arg(value: bytes | str) -> bytes | str:
    """Treat 0x-prefixed 32-byte hex as raw bytes32 and any other string as text."""

    if isinstance(value, str) and not (value.lower().startswith("0x") and len(value) == 66):
        return format_bytes32_string(value)
    return value


def _role_arg(role: RoleId) -> RoleId:
    if isinstance(role, str) and role in Role.__members__:
        return Role[role]
    return role


class RealtyClient:
    """Wallet-mediated client for the compliance, title, fractionalization and rent contracts.

    Reads recover locally: a failure is recorded on ``last_read_error`` and
    reported as an absence of data (``None``, ``False``, ``0`` or ``[]``).
    Writes always raise a :class:`RealtyProtocolError` subclass on failure.
    """

    def __init__(
        self,
        transport: WalletTransport | None,
        config: RealtyClientConfig | None = None,
        *,
        web3_factory: Web3Factory | None = None,
        contract_factory: ContractFactory | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or RealtyClientConfig()
        self.binding = ProviderBinding(transport, wallet_flag=self.config.wallet_flag)
        self.connection = WalletConnection(
            self.binding, self.config.network, web3_factory=web3_factory
        )
        self.registry = ContractRegistry(
            self.connection, self.config.contracts, contract_factory=contract_factory
        )
        self.gateway = CallGateway(
            self.registry, self.connection, receipt_timeout=self.config.receipt_timeout
        )
        self.roles = RoleResolver(self.gateway)
        self.guard = LoadGuard(clock)
        self.registry.on_invalidate(self._on_registry_invalidated)
        self.last_read_error: RealtyProtocolError | None = None

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    @property
    def snapshot(self) -> ConnectionSnapshot:
        return self.connection.snapshot

    @property
    def account(self) -> Address | None:
        return self.connection.account

    async def connect(self) -> ConnectionSnapshot:
        return await self.connection.connect()

    async def restore(self) -> ConnectionSnapshot:
        return await self.connection.restore()

    async def switch_network(self) -> ConnectionSnapshot:
        return await self.connection.switch_network()

    def disconnect(self) -> None:
        self.connection.disconnect()

    def close(self) -> None:
        self.guard.invalidate_all()
        self.registry.close()
        self.connection.close()

    # ------------------------------------------------------------------
    # Compliance registry
    # ------------------------------------------------------------------
    async def check_kyc(self, address: str | None = None) -> bool:
        user = self._subject(address)
        if user is None:
            return False
        return bool(await self._read_or(False, COMPLIANCE, "isKYCValid", (user,)))

    async def get_kyc_info(self, address: str | None = None) -> KYCInfo | None:
        user = self._subject(address)
        if user is None:
            return None
        raw = await self._read_or(None, COMPLIANCE, "getKYCInfo", (user,), fields=KYC_INFO_FIELDS)
        if raw is None:
            return None
        return KYCInfo(
            kyc_status=bool(raw["kycStatus"]),
            timestamp=int(raw["timestamp"]),
            expiry=int(raw["expiry"]),
            is_valid=bool(raw["isValid"]),
        )

    async def set_kyc(
        self,
        user: str,
        status: bool,
        expiry_timestamp: int,
        encrypted_data: bytes | str = "",
    ) -> TransactionResult:
        return await self.gateway.write(
            COMPLIANCE,
            "setKYC",
            (user, bool(status), int(expiry_timestamp), _bytes32_arg(encrypted_data)),
        )

    async def batch_set_kyc(
        self, users: Sequence[str], status: bool, expiry_timestamp: int
    ) -> TransactionResult:
        return await self.gateway.write(
            COMPLIANCE, "batchSetKYC", (list(users), bool(status), int(expiry_timestamp))
        )

    async def set_encrypted_kyc_data(self, user: str, encrypted_data: bytes | str) -> TransactionResult:
        return await self.gateway.write(
            COMPLIANCE, "setEncryptedKYCData", (user, _bytes32_arg(encrypted_data))
        )

    async def set_commitment(self, commitment: bytes | str) -> TransactionResult:
        return await self.gateway.write(COMPLIANCE, "setCommitment", (_bytes32_arg(commitment),))

    async def revoke_kyc(self, user: str) -> TransactionResult:
        return await self.gateway.write(COMPLIANCE, "revokeKYC", (user,))

    async def batch_revoke_kyc(self, users: Sequence[str]) -> TransactionResult:
        return await self.gateway.write(COMPLIANCE, "batchRevokeKYC", (list(users),))

    # ------------------------------------------------------------------
    # Title NFT
    # ------------------------------------------------------------------
    async def mint_property(
        self, to: str, metadata_uri: str, data: PropertyData
    ) -> TransactionResult:
        return await self.gateway.write(TITLE, "mintTitle", (to, metadata_uri, data.as_tuple()))

    async def get_property_data(self, token_id: int) -> PropertyData | None:
        raw = await self._read_or(
            None, TITLE, "getPropertyData", (int(token_id),), fields=PROPERTY_DATA_FIELDS
        )
        if raw is None:
            return None
        return PropertyData(
            location=raw["location"],
            value=int(raw["value"]),
            area=int(raw["area"]),
            property_type=_property_type(raw["propertyType"]),
            is_verified=bool(raw["isVerified"]),
        )

    async def get_user_properties(self, address: str | None = None) -> list[PropertyRecord]:
        """Enumerate the title tokens held by ``address`` (default: the connected account).

        A token whose detail reads fail is left out; the rest are returned.
        """

        owner = self._subject(address)
        if owner is None:
            return []

        balance = int(await self._read_or(0, TITLE, "balanceOf", (owner,)))
        properties: list[PropertyRecord] = []
        for index in range(balance):
            try:
                token_id = int(await self.gateway.read(TITLE, "tokenOfOwnerByIndex", (owner, index)))
                properties.append(await self._property_record(token_id))
            except _IDENTITY_FAILURES as exc:
                self._record_read_error(exc)
                return []
            except RealtyProtocolError as exc:
                self._record_read_error(exc)
        return properties

    async def update_property_data(self, token_id: int, data: PropertyData) -> TransactionResult:
        return await self.gateway.write(TITLE, "updatePropertyData", (int(token_id), data.as_tuple()))

    async def update_metadata_uri(self, token_id: int, uri: str) -> TransactionResult:
        return await self.gateway.write(TITLE, "updateMetadataURI", (int(token_id), uri))

    async def set_encrypted_metadata(self, token_id: int, encrypted_data: bytes | str) -> TransactionResult:
        return await self.gateway.write(
            TITLE, "setEncryptedMetadata", (int(token_id), _bytes32_arg(encrypted_data))
        )

    async def verify_property(self, token_id: int) -> TransactionResult:
        return await self.gateway.write(TITLE, "verifyProperty", (int(token_id),))

    async def burn_property(self, token_id: int) -> TransactionResult:
        return await self.gateway.write(TITLE, "burn", (int(token_id),))

    # ------------------------------------------------------------------
    # Fractionalizer
    # ------------------------------------------------------------------
    async def fractionalize_property(
        self, token_id: int, name: str, symbol: str, total_supply: Wei
    ) -> TransactionResult:
        """Fractionalize a title, paying exactly the fee the contract reports right now."""

        return await self.gateway.write_paid(
            FRACTIONALIZER,
            "fractionalize",
            (int(token_id), name, symbol, int(total_supply)),
            fee_method="fractionalizationFee",
        )

    async def defractionalize_property(self, token_id: int) -> TransactionResult:
        return await self.gateway.write(FRACTIONALIZER, "defractionalize", (int(token_id),))

    async def get_fractionalization_data(self, token_id: int) -> FractionalizationRecord | None:
        raw = await self._read_or(
            None,
            FRACTIONALIZER,
            "getFractionalizationData",
            (int(token_id),),
            fields=FRACTIONALIZATION_FIELDS,
        )
        if raw is None:
            return None
        return FractionalizationRecord(
            token_id=int(token_id),
            token_address=raw["tokenAddress"],
            total_supply=int(raw["totalSupply"]),
            fractionalizer=raw["fractionalizer"],
            timestamp=int(raw["timestamp"]),
            is_active=bool(raw["isActive"]),
        )

    async def is_property_fractionalized(self, token_id: int) -> bool:
        return bool(
            await self._read_or(False, FRACTIONALIZER, "isPropertyFractionalized", (int(token_id),))
        )

    async def get_fractionalization_fee(self) -> Wei:
        return int(await self._read_or(0, FRACTIONALIZER, "fractionalizationFee"))

    async def set_fractionalization_fee(self, new_fee: Wei) -> TransactionResult:
        return await self.gateway.write(FRACTIONALIZER, "setFractionalizationFee", (int(new_fee),))

    async def set_fee_recipient(self, recipient: str) -> TransactionResult:
        return await self.gateway.write(FRACTIONALIZER, "setFeeRecipient", (recipient,))

    async def withdraw_fees(self) -> TransactionResult:
        return await self.gateway.write(FRACTIONALIZER, "withdrawFees")

    async def get_fraction_token_info(
        self, token_address: str, holder: str | None = None
    ) -> TokenInfo | None:
        owner = self._subject(holder)
        try:
            token = self.registry.token(token_address)
            name = await self.gateway.read(token, "name")
            symbol = await self.gateway.read(token, "symbol")
            decimals = await self.gateway.read(token, "decimals")
            total_supply = await self.gateway.read(token, "totalSupply")
            balance = await self.gateway.read(token, "balanceOf", (owner,)) if owner else 0
        except RealtyProtocolError as exc:
            self._record_read_error(exc)
            return None
        return TokenInfo(
            address=token.address,
            name=name,
            symbol=symbol,
            decimals=int(decimals),
            total_supply=int(total_supply),
            balance=int(balance),
        )

    # ------------------------------------------------------------------
    # Rent pool
    # ------------------------------------------------------------------
    async def deposit_rent(self, epoch_id: int, amount: Wei) -> TransactionResult:
        """Deposit stable tokens into an epoch after a fresh balance check."""

        amount = int(amount)
        if amount <= 0:
            raise ValidationError("Deposit amount must be positive", field="amount", value=amount)

        stable = self.registry.token(await self.gateway.read(RENT_POOL, "stable"))
        available = int(await self.gateway.read(stable, "balanceOf", (stable.signer,)))
        if available < amount:
            logger.warning(
                "Rejecting rent deposit locally: amount %s exceeds stable balance %s",
                amount,
                available,
            )
            raise InsufficientFundsError(
                f"Insufficient balance. Required: {format_ether(amount)}, "
                f"Available: {format_ether(available)}",
                required=amount,
                available=available,
                details={"token": stable.address},
            )
        return await self.gateway.write(RENT_POOL, "depositRent", (int(epoch_id), amount))

    async def claim_rental_income(
        self, epoch_id: int, amount: Wei, proof: Sequence[bytes | str]
    ) -> TransactionResult:
        # Proof shape is the contract's concern; an empty proof is submitted as-is.
        return await self.gateway.write(
            RENT_POOL, "claim", (int(epoch_id), int(amount), list(proof))
        )

    async def is_claimed(self, epoch_id: int, address: str | None = None) -> bool:
        user = self._subject(address)
        if user is None:
            return False
        return bool(await self._read_or(False, RENT_POOL, "isClaimed", (int(epoch_id), user)))

    async def get_epoch_total_deposits(self, epoch_id: int) -> Wei:
        return int(await self._read_or(0, RENT_POOL, "getEpochTotalDeposits", (int(epoch_id),)))

    async def get_epoch_root(self, epoch_id: int) -> bytes | None:
        root = await self._read_or(None, RENT_POOL, "epochRoot", (int(epoch_id),))
        return bytes(root) if root is not None else None

    async def set_epoch_root(self, epoch_id: int, root: bytes | str) -> TransactionResult:
        return await self.gateway.write(RENT_POOL, "setEpochRoot", (int(epoch_id), root))

    async def set_encrypted_amount(
        self, epoch_id: int, encrypted_amount: bytes | str
    ) -> TransactionResult:
        return await self.gateway.write(
            RENT_POOL, "setEncryptedAmount", (int(epoch_id), _bytes32_arg(encrypted_amount))
        )

    async def emergency_withdraw(self, token: str, amount: Wei) -> TransactionResult:
        return await self.gateway.write(RENT_POOL, "emergencyWithdraw", (token, int(amount)))

    # ------------------------------------------------------------------
    # Roles and emergency controls
    # ------------------------------------------------------------------
    async def has_role(
        self, contract: ContractName | str, role: RoleId | None, address: str | None = None
    ) -> bool:
        subject = address or self.connection.account
        if subject is None:
            return False
        role_id = _role_arg(role) if role is not None else None
        return await self.roles.has_authorization(contract, role_id, subject)

    async def grant_role(
        self, contract: ContractName | str, role: RoleId, address: str
    ) -> TransactionResult:
        name = self._role_based(contract)
        return await self.gateway.write(name, "grantRole", (_role_arg(role), address))

    async def revoke_role(
        self, contract: ContractName | str, role: RoleId, address: str
    ) -> TransactionResult:
        name = self._role_based(contract)
        return await self.gateway.write(name, "revokeRole", (_role_arg(role), address))

    async def admin_overview(self, address: str | None = None) -> dict[ContractName, bool]:
        """Report admin rights (or rent-pool ownership) on every contract."""

        return {
            name: await self.has_role(name, Role.DEFAULT_ADMIN_ROLE, address)
            for name in ContractName
        }

    async def pause_contract(self, contract: ContractName | str) -> TransactionResult:
        return await self.gateway.write(contract, "pause")

    async def unpause_contract(self, contract: ContractName | str) -> TransactionResult:
        return await self.gateway.write(contract, "unpause")

    # ------------------------------------------------------------------
    # Guarded aggregate loads
    # ------------------------------------------------------------------
    async def load_portfolio(self, address: str | None = None) -> PortfolioSnapshot | Skip:
        """Load properties, their fractionalization and recent epochs for the dashboard."""

        owner = self._subject(address)
        if owner is None or not self.connection.is_connected:
            logger.debug("Portfolio load skipped: wallet not connected")
            return SKIP

        async def _load() -> PortfolioSnapshot:
            properties: list[PropertyRecord] = []
            fractionalized: list[PropertyRecord] = []
            for record in await self.get_user_properties(owner):
                if await self.is_property_fractionalized(record.token_id):
                    data = await self.get_fractionalization_data(record.token_id)
                    record = replace(record, fractionalization=data)
                    fractionalized.append(record)
                properties.append(record)
            epochs = await self._scan_epochs(owner)
            return PortfolioSnapshot(
                account=owner, properties=properties, fractionalized=fractionalized, epochs=epochs
            )

        return await self.guard.guard(
            ("portfolio", owner), self.config.dashboard_min_interval_ms, _load
        )

    async def load_epochs(self, address: str | None = None) -> list[EpochRecord] | Skip:
        owner = self._subject(address)
        if owner is None or not self.connection.is_connected:
            return SKIP
        return await self.guard.guard(
            ("epochs", owner),
            self.config.dashboard_min_interval_ms,
            lambda: self._scan_epochs(owner),
        )

    async def refresh_kyc(self, address: str | None = None) -> KYCInfo | None | Skip:
        user = self._subject(address)
        if user is None or not self.connection.is_connected:
            return SKIP
        return await self.guard.guard(
            ("kyc", user), self.config.kyc_min_interval_ms, lambda: self.get_kyc_info(user)
        )

    def abandon_loads(self) -> None:
        """Tear down every guarded load, e.g. when the consuming view goes away."""

        self.guard.invalidate_all()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _scan_epochs(self, owner: str) -> list[EpochRecord]:
        return [
            EpochRecord(
                epoch_id=epoch_id,
                total_deposits=await self.get_epoch_total_deposits(epoch_id),
                is_claimed=await self.is_claimed(epoch_id, owner),
            )
            for epoch_id in range(1, self.config.epoch_scan_count + 1)
        ]

    async def _property_record(self, token_id: int) -> PropertyRecord:
        data = await self.gateway.read(
            TITLE, "getPropertyData", (token_id,), fields=PROPERTY_DATA_FIELDS
        )
        owner = await self.gateway.read(TITLE, "getPropertyOwner", (token_id,))
        minted_at = await self.gateway.read(TITLE, "getMintTimestamp", (token_id,))
        doc_uri = await self.gateway.read(TITLE, "getDocURI", (token_id,))
        return PropertyRecord(
            token_id=token_id,
            owner=owner,
            location=data["location"],
            value=int(data["value"]),
            area=int(data["area"]),
            property_type=_property_type(data["propertyType"]),
            is_verified=bool(data["isVerified"]),
            mint_timestamp=int(minted_at),
            doc_uri=doc_uri,
        )

    async def _read_or(
        self,
        default: T,
        contract: ContractRef,
        method: str,
        args: Sequence[Any] = (),
        *,
        fields: Sequence[str] | None = None,
    ) -> Any | T:
        try:
            return await self.gateway.read(contract, method, args, fields=fields)
        except RealtyProtocolError as exc:
            self._record_read_error(exc)
            return default

    def _record_read_error(self, exc: RealtyProtocolError) -> None:
        self.last_read_error = exc
        logger.debug("Read recovered as empty: %s", exc)

    def _subject(self, address: str | None) -> str | None:
        candidate = address or self.connection.account
        if candidate is None:
            return None
        try:
            return format_address(candidate)
        except InvalidAddressError as exc:
            self._record_read_error(exc)
            return None

    @staticmethod
    def _role_based(contract: ContractName | str) -> ContractName:
        model = RoleResolver.model_of(contract)
        name = ContractName(contract)
        if model is not AuthorizationModel.ROLE_BASED:
            raise ValidationError(
                f"{name.value} uses single-owner authorization; roles cannot be granted",
                field="contract",
                value=name.value,
            )
        return name

    def _on_registry_invalidated(self, generation: int) -> None:
        logger.debug("Abandoning guarded loads after rebind (generation %s)", generation)
        self.guard.invalidate_all()
