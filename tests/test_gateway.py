from __future__ import annotations

import asyncio
import logging

import pytest
import pytest_asyncio
from eth_abi import encode as abi_encode

from realty_api.client import RealtyClient
from realty_api.config import ContractAddresses
from realty_api.constants import REVERT_SELECTOR
from realty_api.exceptions import (
    ContractRevertedError,
    DecodeError,
    InsufficientFundsError,
    InvalidAddressError,
    NetworkMismatchError,
    NotInitializedError,
    ProviderRequestError,
    StaleBindingError,
    UserRejectedError,
    ValidationError,
)
from realty_api.types import ContractName

from .conftest import ALICE, BOB, DummyChain, FakeWallet


def _revert_data(reason: str) -> str:
    return "0x" + (REVERT_SELECTOR + abi_encode(["string"], [reason])).hex()


@pytest_asyncio.fixture
async def connected(client: RealtyClient) -> RealtyClient:
    await client.connect()
    return client


# ----------------------------------------------------------------------
# Reads
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_read_calls_from_the_bound_signer(
    connected: RealtyClient, chain: DummyChain, addresses: ContractAddresses
) -> None:
    chain.contract(addresses.compliance_registry).reads["isKYCValid"] = True

    result = await connected.gateway.read(ContractName.COMPLIANCE_REGISTRY, "isKYCValid", (BOB,))

    assert result is True
    _, method, args, tx = chain.calls[-1]
    assert method == "isKYCValid"
    assert args == (BOB,)
    assert tx == {"from": ALICE}


@pytest.mark.asyncio
async def test_read_destructures_named_fields(
    connected: RealtyClient, chain: DummyChain, addresses: ContractAddresses
) -> None:
    chain.contract(addresses.compliance_registry).reads["getKYCInfo"] = (True, 1700000000, 1800000000, True)

    info = await connected.gateway.read(
        "ComplianceRegistry",
        "getKYCInfo",
        (ALICE,),
        fields=("kycStatus", "timestamp", "expiry", "isValid"),
    )

    assert info == {"kycStatus": True, "timestamp": 1700000000, "expiry": 1800000000, "isValid": True}


@pytest.mark.asyncio
async def test_read_with_unexpected_shape_is_decode_error(
    connected: RealtyClient, chain: DummyChain, addresses: ContractAddresses
) -> None:
    chain.contract(addresses.compliance_registry).reads["getKYCInfo"] = (True, 1)

    with pytest.raises(DecodeError):
        await connected.gateway.read(
            ContractName.COMPLIANCE_REGISTRY, "getKYCInfo", (ALICE,), fields=("a", "b", "c", "d")
        )


@pytest.mark.asyncio
async def test_read_revert_reason_is_decoded(
    connected: RealtyClient, chain: DummyChain, addresses: ContractAddresses
) -> None:
    chain.contract(addresses.title_nft).reads["getPropertyData"] = ProviderRequestError(
        3, "execution reverted", _revert_data("Token does not exist")
    )

    with pytest.raises(ContractRevertedError) as exc_info:
        await connected.gateway.read(ContractName.TITLE_NFT, "getPropertyData", (9,))

    assert exc_info.value.reason == "Token does not exist"
    assert connected.gateway.last_error is exc_info.value


@pytest.mark.asyncio
async def test_read_while_disconnected_is_not_initialized(client: RealtyClient) -> None:
    with pytest.raises(NotInitializedError):
        await client.gateway.read(ContractName.TITLE_NFT, "totalSupply")


@pytest.mark.asyncio
async def test_unknown_method_and_contract_are_rejected(connected: RealtyClient) -> None:
    with pytest.raises(ValidationError):
        await connected.gateway.read(ContractName.RENT_POOL_MERKLE, "hasRole", (b"\x00" * 32, ALICE))
    with pytest.raises(ValidationError):
        await connected.gateway.read("Marketplace", "owner")


# ----------------------------------------------------------------------
# Writes
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_write_waits_for_receipt(connected: RealtyClient, chain: DummyChain) -> None:
    result = await connected.gateway.write(ContractName.TITLE_NFT, "verifyProperty", (7,))

    assert result.status is True
    assert result.method == "verifyProperty"
    assert result.block_number == 100
    assert result.tx_hash == "0x" + "00" * 31 + "01"
    assert result.receipt is not None and result.receipt["transactionHash"] == result.tx_hash
    assert chain.receipt_timeouts == [5.0]
    _, method, args, tx = chain.sent[-1]
    assert (method, args, tx) == ("verifyProperty", (7,), {"from": ALICE})


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["not-an-address", "alice.eth", "0x1234"])
async def test_write_rejects_malformed_address_before_submission(
    connected: RealtyClient, chain: DummyChain, bad: str
) -> None:
    with pytest.raises(InvalidAddressError):
        await connected.gateway.write(ContractName.COMPLIANCE_REGISTRY, "revokeKYC", (bad,))
    with pytest.raises(InvalidAddressError):
        await connected.gateway.write(
            ContractName.COMPLIANCE_REGISTRY, "batchRevokeKYC", ([ALICE, bad],)
        )
    assert chain.sent == []


@pytest.mark.asyncio
async def test_write_checksums_addresses(connected: RealtyClient, chain: DummyChain) -> None:
    lower = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"

    await connected.gateway.write(ContractName.COMPLIANCE_REGISTRY, "revokeKYC", (lower,))

    _, _, args, _ = chain.sent[-1]
    assert args[0] != lower
    assert args[0].lower() == lower


@pytest.mark.asyncio
async def test_reverted_receipt_raises(connected: RealtyClient, chain: DummyChain) -> None:
    chain.receipt_status = 0

    with pytest.raises(ContractRevertedError) as exc_info:
        await connected.gateway.write(ContractName.TITLE_NFT, "burn", (1,))

    assert exc_info.value.tx_hash is not None


@pytest.mark.asyncio
async def test_user_rejection_propagates(
    connected: RealtyClient, chain: DummyChain, addresses: ContractAddresses
) -> None:
    chain.contract(addresses.title_nft).write_failures["burn"] = ProviderRequestError(
        4001, "User denied transaction signature"
    )

    with pytest.raises(UserRejectedError):
        await connected.gateway.write(ContractName.TITLE_NFT, "burn", (1,))


@pytest.mark.asyncio
async def test_value_on_nonpayable_method_is_rejected(
    connected: RealtyClient, chain: DummyChain
) -> None:
    with pytest.raises(ValidationError):
        await connected.gateway.write(ContractName.TITLE_NFT, "burn", (1,), value=10)
    assert chain.sent == []


# ----------------------------------------------------------------------
# Fee-bearing writes
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_write_paid_attaches_the_current_fee(
    connected: RealtyClient, chain: DummyChain, addresses: ContractAddresses
) -> None:
    fractionalizer = chain.contract(addresses.fractionalizer)
    fractionalizer.reads["fractionalizationFee"] = 10**16
    await connected.gateway.read(ContractName.FRACTIONALIZER, "fractionalizationFee")
    fractionalizer.reads["fractionalizationFee"] = 2 * 10**16

    result = await connected.gateway.write_paid(
        ContractName.FRACTIONALIZER,
        "fractionalize",
        (1, "Villa", "VILLA", 1000),
        fee_method="fractionalizationFee",
    )

    _, method, _, tx = chain.sent[-1]
    assert method == "fractionalize"
    assert tx["value"] == 2 * 10**16
    assert result.value == 2 * 10**16


@pytest.mark.asyncio
async def test_write_paid_rejects_locally_on_fresh_balance(
    connected: RealtyClient, chain: DummyChain, wallet: FakeWallet, addresses: ContractAddresses
) -> None:
    chain.contract(addresses.fractionalizer).reads["fractionalizationFee"] = 10**17
    await asyncio.sleep(0)
    balance_reads = wallet.count("eth_getBalance")
    wallet.balance = 10**16

    with pytest.raises(InsufficientFundsError) as exc_info:
        await connected.gateway.write_paid(
            ContractName.FRACTIONALIZER,
            "fractionalize",
            (1, "Villa", "VILLA", 1000),
            fee_method="fractionalizationFee",
        )

    assert exc_info.value.required == 10**17
    assert exc_info.value.available == 10**16
    assert wallet.count("eth_getBalance") == balance_reads + 1
    assert chain.sent == []


# ----------------------------------------------------------------------
# Identity changes
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_stale_handle_is_refused(
    connected: RealtyClient, chain: DummyChain, wallet: FakeWallet, addresses: ContractAddresses
) -> None:
    chain.contract(addresses.title_nft).reads["totalSupply"] = 3
    handle = connected.registry.handle(ContractName.TITLE_NFT)

    await wallet.emit("accountsChanged", [BOB])

    with pytest.raises(StaleBindingError):
        await connected.gateway.read(handle, "totalSupply")
    with pytest.raises(StaleBindingError):
        await connected.gateway.write(handle, "burn", (1,))
    assert chain.sent == []
    assert await connected.gateway.read(ContractName.TITLE_NFT, "totalSupply") == 3


@pytest.mark.asyncio
async def test_result_arriving_after_signer_change_is_discarded(
    connected: RealtyClient, chain: DummyChain, wallet: FakeWallet, addresses: ContractAddresses
) -> None:
    chain.contract(addresses.title_nft).reads["totalSupply"] = 3

    async def switch_account(_method: str) -> None:
        await wallet.emit("accountsChanged", [BOB])

    chain.before_call = switch_account

    with pytest.raises(StaleBindingError):
        await connected.gateway.read(ContractName.TITLE_NFT, "totalSupply")


@pytest.mark.asyncio
async def test_mid_flight_failures_coalesce_into_network_mismatch(
    connected: RealtyClient,
    chain: DummyChain,
    wallet: FakeWallet,
    addresses: ContractAddresses,
    caplog: pytest.LogCaptureFixture,
) -> None:
    chain.contract(addresses.title_nft).reads["totalSupply"] = ProviderRequestError(
        -32603, "could not coalesce error"
    )
    gate = asyncio.Event()

    async def hold(_method: str) -> None:
        await gate.wait()

    chain.before_call = hold
    caplog.set_level(logging.WARNING, logger="realty_api.contracts.gateway")

    reads = [
        asyncio.create_task(connected.gateway.read(ContractName.TITLE_NFT, "totalSupply"))
        for _ in range(3)
    ]
    await asyncio.sleep(0)
    await wallet.emit("accountsChanged", [BOB])
    gate.set()
    results = await asyncio.gather(*reads, return_exceptions=True)

    assert all(isinstance(result, NetworkMismatchError) for result in results)
    warnings = [record for record in caplog.records if "Network changed" in record.getMessage()]
    assert len(warnings) == 1
