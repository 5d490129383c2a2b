"""Example: Grant, inspect and revoke KYC as a compliance officer."""

from __future__ import annotations

import asyncio
import logging
import os
import time

from dotenv import load_dotenv

from realty_api import (
    ContractName,
    LocalKeyTransport,
    RealtyClient,
    RealtyClientConfig,
    RealtyProtocolError,
    Role,
)

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

KYC_VALIDITY_SECONDS = 365 * 24 * 3600


async def main() -> None:
    """Set KYC for a user, read it back and optionally revoke it."""

    private_key = os.getenv("PRIVATE_KEY")
    if not private_key:
        raise ValueError("PRIVATE_KEY not found in environment variables")
    user = os.getenv("KYC_USER")
    if not user:
        raise ValueError("KYC_USER not found in environment variables")

    config = RealtyClientConfig.from_env()
    client = RealtyClient(LocalKeyTransport(private_key, network=config.network), config)
    await client.connect()

    try:
        is_officer = await client.has_role(
            ContractName.COMPLIANCE_REGISTRY, Role.COMPLIANCE_OFFICER_ROLE
        )
        if not is_officer:
            print("Connected account is not a compliance officer; aborting")
            return

        expiry = int(time.time()) + KYC_VALIDITY_SECONDS
        print(f"Setting KYC for {user} (expires at {expiry})")
        result = await client.set_kyc(user, True, expiry)
        print(f"setKYC tx hash: {result.tx_hash} (block {result.block_number})")

        info = await client.get_kyc_info(user)
        print(f"KYC info: {info}")

        if os.getenv("REVOKE_AFTER", "").lower() in ("1", "true", "yes"):
            result = await client.revoke_kyc(user)
            print(f"revokeKYC tx hash: {result.tx_hash}")
            print(f"KYC valid after revoke: {await client.check_kyc(user)}")
    except RealtyProtocolError as exc:
        print(f"KYC operation failed ({exc.kind.value}): {exc}")
        if exc.details:
            print("Details:", exc.details)
    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(main())
