"""
CoinGecko fiat price feed.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

import httpx
from loguru import logger

from zipwallet.backends.base import PriceFeed
from zipwallet.errors import PriceUnavailable

COIN_ID = "bitcoin-sv"


class CoinGeckoPriceFeed(PriceFeed):
    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def get_price(self, currency: str) -> Decimal:
        code = currency.lower()
        try:
            response = await self.client.get(
                f"{self.base_url}/simple/price", params={"ids": COIN_ID, "vs_currencies": code}
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Price lookup failed for {currency}: {e}")
            raise PriceUnavailable(f"Price feed unreachable for {currency}", cause=str(e)) from e
        except ValueError as e:
            raise PriceUnavailable("Malformed price response", cause=str(e)) from e

        try:
            # Go through str so the float's shortest repr is kept
            return Decimal(str(data[COIN_ID][code]))
        except (KeyError, TypeError, InvalidOperation) as e:
            raise PriceUnavailable(f"No {currency.upper()} price available", cause=str(e)) from e

    async def close(self) -> None:
        await self.client.aclose()
