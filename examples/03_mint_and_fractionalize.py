"""Example: Mint a property title and fractionalize it."""

from __future__ import annotations

import asyncio
import logging
import os

from dotenv import load_dotenv

from realty_api import (
    InsufficientFundsError,
    LocalKeyTransport,
    PropertyData,
    PropertyType,
    RealtyClient,
    RealtyClientConfig,
    RealtyProtocolError,
    format_ether,
    parse_ether,
)

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

PROPERTY = PropertyData(
    location="12 Harbour Street, Lisbon",
    value=parse_ether("450000"),
    area=120,
    property_type=PropertyType.APARTMENT,
)
FRACTION_NAME = "Harbour Street Fractions"
FRACTION_SYMBOL = "HARB"
FRACTION_SUPPLY = parse_ether("1000")


async def main() -> None:
    """Mint a title to the connected account, then split it into fraction tokens."""

    private_key = os.getenv("PRIVATE_KEY")
    if not private_key:
        raise ValueError("PRIVATE_KEY not found in environment variables")
    metadata_uri = os.getenv("METADATA_URI", "ipfs://example-metadata")

    config = RealtyClientConfig.from_env()
    client = RealtyClient(LocalKeyTransport(private_key, network=config.network), config)
    snapshot = await client.connect()

    try:
        mint = await client.mint_property(snapshot.account, metadata_uri, PROPERTY)
        print(f"mintTitle tx hash: {mint.tx_hash} (block {mint.block_number})")

        properties = await client.get_user_properties()
        if not properties:
            print("Minted title not visible yet")
            return
        token_id = properties[-1].token_id

        fee = await client.get_fractionalization_fee()
        print(f"Fractionalizing title #{token_id}; current fee {format_ether(fee)} AVAX")
        try:
            result = await client.fractionalize_property(
                token_id, FRACTION_NAME, FRACTION_SYMBOL, FRACTION_SUPPLY
            )
        except InsufficientFundsError as exc:
            print(f"Not enough AVAX for the fee: {exc}")
            return
        print(f"fractionalize tx hash: {result.tx_hash} (paid {format_ether(result.value)} AVAX)")

        record = await client.get_fractionalization_data(token_id)
        if record is not None:
            info = await client.get_fraction_token_info(record.token_address)
            print(f"Fraction token: {info}")
    except RealtyProtocolError as exc:
        print(f"Operation failed ({exc.kind.value}): {exc}")
    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(main())
