"""Example: Connect a local-key wallet and inspect the realty dashboard."""

from __future__ import annotations

import asyncio
import logging
import os

from dotenv import load_dotenv

from realty_api import (
    SKIP,
    LocalKeyTransport,
    RealtyClient,
    RealtyClientConfig,
    RealtyProtocolError,
)

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


async def main() -> None:
    """Connect, then print KYC status, owned titles and recent rent epochs."""

    private_key = os.getenv("PRIVATE_KEY")
    if not private_key:
        raise ValueError("PRIVATE_KEY not found in environment variables")

    config = RealtyClientConfig.from_env()
    transport = LocalKeyTransport(private_key, network=config.network)
    client = RealtyClient(transport, config)

    try:
        snapshot = await client.connect()
    except RealtyProtocolError as exc:
        print(f"Connection failed ({exc.kind.value}): {exc}")
        return

    try:
        print(f"Connected: {snapshot.account} on chain {snapshot.chain_id}")
        print(f"Native balance: {await client.connection.refresh_balance()} AVAX")

        kyc = await client.get_kyc_info()
        if kyc is None:
            print("KYC info unavailable")
        else:
            print(f"KYC valid: {kyc.is_valid} (expires at {kyc.expiry})")

        portfolio = await client.load_portfolio()
        if portfolio is SKIP:
            print("Portfolio load skipped")
            return

        print(f"Titles owned: {len(portfolio.properties)}")
        for record in portfolio.properties:
            print(
                f"  #{record.token_id} {record.location} ({record.property_type}) "
                f"verified={record.is_verified}"
            )
        for record in portfolio.fractionalized:
            if record.fractionalization is not None:
                print(f"  #{record.token_id} fractionalized as {record.fractionalization.token_address}")
        for epoch in portfolio.epochs:
            print(f"  epoch {epoch.epoch_id}: deposits={epoch.total_deposits} claimed={epoch.is_claimed}")

        overview = await client.admin_overview()
        print("Admin rights:", {name.value: allowed for name, allowed in overview.items()})
    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(main())
