"""Exception hierarchy for the realty dApp client."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Normalized failure categories surfaced to callers."""

    PROVIDER_UNAVAILABLE = "provider_unavailable"
    NO_ACCOUNTS = "no_accounts"
    WRONG_NETWORK = "wrong_network"
    USER_REJECTED = "user_rejected"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    CONTRACT_REVERTED = "contract_reverted"
    INVALID_ADDRESS = "invalid_address"
    VALIDATION = "validation"
    DECODE_ERROR = "decode_error"
    STALE_BINDING = "stale_binding"
    NOT_INITIALIZED = "not_initialized"
    NETWORK_MISMATCH = "network_mismatch"
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"


class RealtyProtocolError(Exception):
    """Base exception for all realty client errors."""

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ProviderUnavailableError(RealtyProtocolError):
    """Raised when no wallet transport is injected."""

    kind = ErrorKind.PROVIDER_UNAVAILABLE


class NoAccountsError(RealtyProtocolError):
    """Raised when the wallet authorizes zero accounts."""

    kind = ErrorKind.NO_ACCOUNTS


class WrongNetworkError(RealtyProtocolError):
    """Raised when the wallet is on a chain other than the configured target."""

    kind = ErrorKind.WRONG_NETWORK

    def __init__(
        self,
        message: str,
        expected_chain_id: int | None = None,
        actual_chain_id: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.expected_chain_id = expected_chain_id
        self.actual_chain_id = actual_chain_id


class UserRejectedError(RealtyProtocolError):
    """Raised when the user declines a wallet prompt."""

    kind = ErrorKind.USER_REJECTED


class InsufficientFundsError(RealtyProtocolError):
    """Raised when the signer cannot cover a transaction's value or fee."""

    kind = ErrorKind.INSUFFICIENT_FUNDS

    def __init__(
        self,
        message: str,
        required: int | None = None,
        available: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.required = required
        self.available = available


class ContractRevertedError(RealtyProtocolError):
    """Raised when a contract call or transaction reverts."""

    kind = ErrorKind.CONTRACT_REVERTED

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        tx_hash: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.reason = reason
        self.tx_hash = tx_hash


class ValidationError(RealtyProtocolError):
    """Raised when input validation fails."""

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value


class InvalidAddressError(ValidationError):
    """Raised when a string is not a well-formed hex address."""

    kind = ErrorKind.INVALID_ADDRESS


class DecodeError(RealtyProtocolError):
    """Raised when a contract return value cannot be decoded."""

    kind = ErrorKind.DECODE_ERROR


class StaleBindingError(RealtyProtocolError):
    """Raised when a handle bound to a superseded signer is invoked."""

    kind = ErrorKind.STALE_BINDING


class NotInitializedError(RealtyProtocolError):
    """Raised when contract handles are requested while disconnected."""

    kind = ErrorKind.NOT_INITIALIZED


class NetworkMismatchError(RealtyProtocolError):
    """Raised when the signer or network changed underneath an in-flight call."""

    kind = ErrorKind.NETWORK_MISMATCH


class ConfigurationError(RealtyProtocolError):
    """Raised at startup for malformed static configuration."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.field = field


class TransportError(RealtyProtocolError):
    """Raised for provider failures outside the other categories."""

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        code: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.code = code


class ProviderRequestError(Exception):
    """Rejection raised by a wallet transport, carrying an EIP-1193 error code."""

    def __init__(self, code: int, message: str, data: Any | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def __repr__(self) -> str:
        return f"ProviderRequestError(code={self.code!r}, message={self.message!r})"
