"""Tests for utility functions."""

from decimal import Decimal

import pytest
from eth_abi import encode as abi_encode
from hexbytes import HexBytes
from web3.exceptions import TimeExhausted

from realty_api.constants import REVERT_SELECTOR
from realty_api.exceptions import (
    ContractRevertedError,
    ErrorKind,
    InsufficientFundsError,
    InvalidAddressError,
    NetworkMismatchError,
    ProviderRequestError,
    TransportError,
    UserRejectedError,
    ValidationError,
)
from realty_api.utils import (
    addresses_equal,
    classify_provider_failure,
    decode_revert_reason,
    format_address,
    format_bytes32_string,
    format_ether,
    normalize_error,
    parse_bytes32_string,
    parse_chain_id,
    parse_ether,
    serialise_receipt,
    to_bytes32,
)

CHECKSUMMED = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


class TestAddresses:
    """Test address validation and comparison."""

    def test_format_address_checksums(self):
        """Lowercase input comes back checksummed."""
        assert format_address(CHECKSUMMED.lower()) == CHECKSUMMED

    @pytest.mark.parametrize("value", ["", "0x1234", "alice.eth", None, 42])
    def test_format_address_rejects_malformed(self, value):
        """Names and malformed strings are rejected."""
        with pytest.raises(InvalidAddressError) as exc_info:
            format_address(value, field="recipient")
        assert exc_info.value.field == "recipient"
        assert exc_info.value.kind is ErrorKind.INVALID_ADDRESS

    def test_addresses_equal_ignores_case(self):
        """Comparison is case-insensitive and None never matches."""
        assert addresses_equal(CHECKSUMMED, CHECKSUMMED.lower())
        assert not addresses_equal(CHECKSUMMED, None)
        assert not addresses_equal(None, None)


class TestUnits:
    """Test Wei <-> native unit conversion."""

    def test_format_ether(self):
        """Whole and fractional amounts render without trailing zeros."""
        assert format_ether(10**18) == "1"
        assert format_ether(0) == "0"
        assert format_ether(1_234_500_000_000_000_000) == "1.2345"

    def test_parse_ether(self):
        """Decimal strings and Decimals convert to Wei."""
        assert parse_ether("1.5") == 1_500_000_000_000_000_000
        assert parse_ether(Decimal("0.01")) == 10**16
        assert parse_ether(2) == 2 * 10**18

    @pytest.mark.parametrize("value", ["-1", "abc"])
    def test_parse_ether_rejects_bad_amounts(self, value):
        """Negative and non-numeric amounts are rejected."""
        with pytest.raises(ValidationError):
            parse_ether(value)

    def test_parse_chain_id(self):
        """Hex, decimal string and int forms are accepted."""
        assert parse_chain_id("0xa869") == 43113
        assert parse_chain_id("43114") == 43114
        assert parse_chain_id(43113) == 43113
        with pytest.raises(ValidationError):
            parse_chain_id("fuji")


class TestBytes32:
    """Test bytes32 encoding helpers."""

    def test_string_round_trip(self):
        """Short strings are zero padded and decoded back."""
        encoded = format_bytes32_string("enc:v1")
        assert len(encoded) == 32
        assert parse_bytes32_string(encoded) == "enc:v1"
        assert format_bytes32_string("") == b"\x00" * 32

    def test_string_too_long(self):
        """Strings over 31 bytes do not fit."""
        with pytest.raises(ValidationError):
            format_bytes32_string("x" * 32)

    def test_to_bytes32(self):
        """Hex strings and raw bytes are coerced to 32 bytes."""
        assert to_bytes32("0x" + "ab" * 32) == bytes.fromhex("ab" * 32)
        assert to_bytes32(b"\x01" * 32) == b"\x01" * 32

    @pytest.mark.parametrize("value", ["ab" * 32, "0x1234", "0x" + "zz" * 32, b"\x00" * 31])
    def test_to_bytes32_rejects(self, value):
        """Unprefixed, short and malformed values are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            to_bytes32(value, field="root")
        assert exc_info.value.field == "root"


class TestReceipts:
    """Test receipt serialisation."""

    def test_serialise_receipt(self):
        """Bytes become 0x-hex and nested containers are walked."""
        receipt = {
            "transactionHash": HexBytes("0x" + "01" * 32),
            "status": 1,
            "logs": [{"topics": [b"\x02" * 32]}],
        }

        result = serialise_receipt(receipt)

        assert result["transactionHash"] == "0x" + "01" * 32
        assert result["status"] == 1
        assert result["logs"][0]["topics"] == ["0x" + "02" * 32]
        assert serialise_receipt(None) is None


class TestErrorNormalisation:
    """Test mapping of provider failures onto the client taxonomy."""

    def test_decode_revert_reason(self):
        """Error(string) payloads decode to their reason."""
        payload = "0x" + (REVERT_SELECTOR + abi_encode(["string"], ["Not KYC verified"])).hex()
        assert decode_revert_reason(payload) == "Not KYC verified"
        assert decode_revert_reason({"data": payload}) == "Not KYC verified"
        assert decode_revert_reason("0xdeadbeef") is None
        assert decode_revert_reason(None) is None

    @pytest.mark.parametrize(
        ("code", "message", "expected"),
        [
            (4001, "User denied transaction signature", UserRejectedError),
            (4100, "Unauthorized", UserRejectedError),
            (-32000, "insufficient funds for gas * price + value", InsufficientFundsError),
            (3, "execution reverted", ContractRevertedError),
            (-32603, "underlying network changed", NetworkMismatchError),
            (-32603, "header not found", TransportError),
        ],
    )
    def test_classify_provider_failure(self, code, message, expected):
        """Provider codes and messages pick the matching error class."""
        assert isinstance(classify_provider_failure(code, message), expected)

    def test_normalize_provider_request_error(self):
        """Provider errors keep their revert reason."""
        data = "0x" + (REVERT_SELECTOR + abi_encode(["string"], ["Fee required"])).hex()

        error = normalize_error(ProviderRequestError(3, "execution reverted", data))

        assert isinstance(error, ContractRevertedError)
        assert error.reason == "Fee required"
        assert error.details["code"] == 3

    def test_normalize_passes_client_errors_through(self):
        """Already-normalized errors are returned unchanged."""
        error = ValidationError("bad", field="amount")
        assert normalize_error(error) is error

    def test_normalize_other_failures(self):
        """Timeouts and unknown exceptions become transport errors."""
        assert isinstance(normalize_error(TimeExhausted()), TransportError)
        assert isinstance(normalize_error(RuntimeError("boom")), TransportError)
        assert isinstance(normalize_error(RuntimeError("chain mismatch")), NetworkMismatchError)
