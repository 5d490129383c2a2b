"""Utility functions for the realty dApp client."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import (
    BadFunctionCallOutput,
    ContractLogicError,
    TimeExhausted,
    Web3RPCError,
)

from .constants import (
    EXECUTION_REVERTED_CODE,
    NETWORK_NOISE_MARKERS,
    REVERT_SELECTOR,
    UNAUTHORIZED_CODE,
    USER_REJECTED_CODE,
)
from .exceptions import (
    ContractRevertedError,
    DecodeError,
    InsufficientFundsError,
    InvalidAddressError,
    NetworkMismatchError,
    ProviderRequestError,
    RealtyProtocolError,
    TransportError,
    UserRejectedError,
    ValidationError,
)

# ----------------------------------------------------------------------
# Addresses and units
# ----------------------------------------------------------------------


def format_address(value: Any, field: str = "address") -> ChecksumAddress:
    """Return the checksummed form of ``value`` or raise ``InvalidAddressError``.

    Names (``alice.eth``) and malformed strings are rejected rather than
    forwarded, so nothing downstream can mistake them for a resolver lookup.
    """
    if isinstance(value, bytes | bytearray) and len(value) == 20:
        return Web3.to_checksum_address(value)
    if not isinstance(value, str) or not Web3.is_address(value):
        raise InvalidAddressError(f"Invalid address: {value!r}", field=field, value=value)
    return Web3.to_checksum_address(value)


def addresses_equal(left: str | None, right: str | None) -> bool:
    """Case-insensitive address comparison; ``None`` never matches."""
    if not left or not right:
        return False
    return left.lower() == right.lower()


def format_ether(wei: int) -> str:
    """Render a Wei amount as a plain decimal string of the native unit."""
    value = Web3.from_wei(int(wei), "ether")
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def parse_ether(amount: str | int | Decimal) -> int:
    """Convert a decimal native-unit amount into Wei."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValidationError("Amount must be numeric", field="amount", value=amount) from exc
    if value < 0:
        raise ValidationError("Amount cannot be negative", field="amount", value=amount)
    return int(Web3.to_wei(value, "ether"))


def parse_chain_id(value: str | int) -> int:
    """Parse a chain id reported as hex string, decimal string or int."""
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        return int(text, 16) if text.lower().startswith("0x") else int(text)
    except ValueError as exc:
        raise ValidationError("Malformed chain id", field="chain_id", value=value) from exc


def parse_quantity(value: str | int) -> int:
    """Parse a JSON-RPC quantity (hex string) into an int."""
    if isinstance(value, int):
        return value
    return int(str(value), 16)


# ----------------------------------------------------------------------
# Bytes32 helpers
# ----------------------------------------------------------------------


def format_bytes32_string(text: str) -> bytes:
    """Encode a short UTF-8 string as a zero-padded bytes32 value."""
    raw = text.encode("utf-8")
    if len(raw) > 31:
        raise ValidationError("bytes32 string must be at most 31 bytes", field="text", value=text)
    return raw.ljust(32, b"\x00")


def parse_bytes32_string(value: bytes) -> str:
    """Decode a zero-padded bytes32 string."""
    return bytes(value).rstrip(b"\x00").decode("utf-8", errors="replace")


def to_bytes32(value: bytes | str, field: str = "value") -> bytes:
    """Coerce a hex string or bytes into exactly 32 bytes."""
    if isinstance(value, str):
        if not value.lower().startswith("0x"):
            raise ValidationError("bytes32 hex must be 0x-prefixed", field=field, value=value)
        try:
            raw = bytes(HexBytes(value))
        except ValueError as exc:
            raise ValidationError("Malformed bytes32 hex", field=field, value=value) from exc
    else:
        raw = bytes(value)
    if len(raw) != 32:
        raise ValidationError("Value must be exactly 32 bytes", field=field, value=value)
    return raw


def serialise_receipt(receipt: Any) -> Any:
    """Serialise web3 receipt objects into JSON-friendly structures."""
    if receipt is None:
        return None
    if isinstance(receipt, Mapping):
        return {key: serialise_receipt(value) for key, value in receipt.items()}
    if isinstance(receipt, Sequence) and not isinstance(
        receipt, str | bytes | bytearray | HexBytes
    ):
        return [serialise_receipt(item) for item in receipt]
    if isinstance(receipt, bytes | bytearray | HexBytes):
        return HexBytes(receipt).to_0x_hex()
    return receipt


# ----------------------------------------------------------------------
# Error normalisation
# ----------------------------------------------------------------------


def decode_revert_reason(data: Any) -> str | None:
    """Extract the ``Error(string)`` reason from a revert payload, if present."""
    if isinstance(data, Mapping):
        data = data.get("data")
    if data is None:
        return None
    try:
        raw = bytes(HexBytes(data))
    except (TypeError, ValueError):
        return None
    if not raw.startswith(REVERT_SELECTOR):
        return None
    try:
        (reason,) = abi_decode(["string"], raw[len(REVERT_SELECTOR) :])
    except DecodingError:
        return None
    return str(reason)


def is_network_noise(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in NETWORK_NOISE_MARKERS)


def classify_provider_failure(
    code: int | None, message: str, data: Any = None
) -> RealtyProtocolError:
    """Map a provider error code/message onto the client taxonomy."""
    details = {"code": code, "error": message}
    lowered = message.lower()

    if code in (USER_REJECTED_CODE, UNAUTHORIZED_CODE):
        return UserRejectedError(message or "User rejected the request", details=details)
    if is_network_noise(message):
        return NetworkMismatchError("Network changed during the call", details=details)
    if "insufficient funds" in lowered:
        return InsufficientFundsError(message, details=details)
    if code == EXECUTION_REVERTED_CODE or "revert" in lowered:
        reason = decode_revert_reason(data) or message
        return ContractRevertedError(f"Contract reverted: {reason}", reason=reason, details=details)
    return TransportError(message or "Provider request failed", code=code, details=details)


def normalize_error(exc: BaseException) -> RealtyProtocolError:
    """Convert any provider, web3 or eth_abi failure into a client error."""
    if isinstance(exc, RealtyProtocolError):
        return exc

    if isinstance(exc, ProviderRequestError):
        return classify_provider_failure(exc.code, exc.message, exc.data)

    if isinstance(exc, ContractLogicError):
        reason = decode_revert_reason(exc.data) or exc.message or str(exc)
        return ContractRevertedError(
            f"Contract reverted: {reason}",
            reason=reason,
            details={"data": exc.data},
        )

    if isinstance(exc, BadFunctionCallOutput | DecodingError):
        return DecodeError("Failed to decode contract response", details={"error": str(exc)})

    if isinstance(exc, TimeExhausted):
        return TransportError("Timed out waiting for transaction receipt", details={"error": str(exc)})

    if isinstance(exc, Web3RPCError):
        response = exc.rpc_response or {}
        error = response.get("error") or {}
        if isinstance(error, Mapping):
            return classify_provider_failure(
                error.get("code"), str(error.get("message", exc)), error.get("data")
            )

    message = str(exc)
    if is_network_noise(message):
        return NetworkMismatchError("Network changed during the call", details={"error": message})
    return TransportError(
        message or exc.__class__.__name__,
        details={"error": message, "type": exc.__class__.__name__},
    )
