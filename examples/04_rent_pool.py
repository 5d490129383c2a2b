"""Example: Deposit rent into an epoch and claim a share with a Merkle proof."""

from __future__ import annotations

import asyncio
import json
import logging
import os

from dotenv import load_dotenv

from realty_api import (
    ContractName,
    InsufficientFundsError,
    LocalKeyTransport,
    RealtyClient,
    RealtyClientConfig,
    RealtyProtocolError,
    parse_ether,
)

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

EPOCH_ID = int(os.getenv("EPOCH_ID", "1"))


async def main() -> None:
    """Deposit rent as the pool owner, or claim as a holder when CLAIM_PROOF is set."""

    private_key = os.getenv("PRIVATE_KEY")
    if not private_key:
        raise ValueError("PRIVATE_KEY not found in environment variables")

    config = RealtyClientConfig.from_env()
    client = RealtyClient(LocalKeyTransport(private_key, network=config.network), config)
    await client.connect()

    try:
        deposit = os.getenv("DEPOSIT_AMOUNT")
        if deposit:
            try:
                result = await client.deposit_rent(EPOCH_ID, parse_ether(deposit))
            except InsufficientFundsError as exc:
                print(f"Deposit rejected before signing: {exc}")
            else:
                print(f"depositRent tx hash: {result.tx_hash}")

        claim_amount = os.getenv("CLAIM_AMOUNT")
        if claim_amount:
            # JSON array of 0x-prefixed bytes32 hashes
            proof = json.loads(os.getenv("CLAIM_PROOF", "[]"))
            if await client.is_claimed(EPOCH_ID):
                print(f"Epoch {EPOCH_ID} already claimed")
            else:
                result = await client.claim_rental_income(EPOCH_ID, parse_ether(claim_amount), proof)
                print(f"claim tx hash: {result.tx_hash}")

        is_owner = await client.has_role(ContractName.RENT_POOL_MERKLE, None)
        print(f"Connected account owns the rent pool: {is_owner}")

        epochs = await client.load_epochs()
        for epoch in epochs or []:
            print(f"epoch {epoch.epoch_id}: deposits={epoch.total_deposits} claimed={epoch.is_claimed}")
    except RealtyProtocolError as exc:
        print(f"Rent pool operation failed ({exc.kind.value}): {exc}")
    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(main())
