"""
WhatsOnChain REST chain index backend.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from zipwallet.backends.base import AddressUnspent, ChainIndex
from zipwallet.errors import ChainIndexUnavailable

DEFAULT_TIMEOUT = 30.0

NETWORK_PATHS = {
    "mainnet": "main",
    "testnet": "test",
    "regtest": "test",
}


def _history_order(entry: dict[str, Any]) -> int:
    # Unconfirmed entries report height 0 or -1 and sort last
    height = entry.get("height") or 0
    return height if height > 0 else 2**31


class WhatsOnChainBackend(ChainIndex):
    """
    Chain index backed by the WhatsOnChain API.

    Endpoints used (relative to {base_url}/{main|test}):
    - GET  address/{address}/balance
    - GET  address/{address}/history
    - GET  address/{address}/unspent
    - POST tx/raw
    """

    def __init__(
        self,
        base_url: str = "https://api.whatsonchain.com/v1/bsv",
        network: str = "mainnet",
        timeout: float = DEFAULT_TIMEOUT,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.network = network
        self.base_url = f"{base_url.rstrip('/')}/{NETWORK_PATHS[network]}"
        headers = {"Authorization": api_key} if api_key else None
        self.client = client or httpx.AsyncClient(timeout=timeout, headers=headers)

    async def _api_call(self, method: str, endpoint: str, data: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}/{endpoint}"
        try:
            if method == "GET":
                response = await self.client.get(url)
            elif method == "POST":
                response = await self.client.post(url, json=data)
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")

            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            detail = e.response.text.strip()[:200]
            logger.error(f"WhatsOnChain call failed: {endpoint} - {e.response.status_code} {detail}")
            raise ChainIndexUnavailable(
                f"Chain index rejected {endpoint}", cause=f"{e.response.status_code} {detail}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"WhatsOnChain call failed: {endpoint} - {e}")
            raise ChainIndexUnavailable(f"Chain index unreachable for {endpoint}", cause=str(e)) from e
        except ValueError as e:
            raise ChainIndexUnavailable(f"Malformed response for {endpoint}", cause=str(e)) from e

    async def query_balance(self, address: str) -> int:
        data = await self._api_call("GET", f"address/{address}/balance")
        try:
            return int(data["confirmed"]) + int(data.get("unconfirmed", 0))
        except (KeyError, TypeError, ValueError) as e:
            raise ChainIndexUnavailable("Malformed balance response", cause=str(e)) from e

    async def query_tx_history(self, address: str) -> list[str]:
        data = await self._api_call("GET", f"address/{address}/history")
        try:
            entries = sorted(data, key=_history_order)
            return [e["tx_hash"] for e in entries]
        except (KeyError, TypeError, AttributeError) as e:
            raise ChainIndexUnavailable("Malformed history response", cause=str(e)) from e

    async def list_unspent(self, address: str) -> list[AddressUnspent]:
        data = await self._api_call("GET", f"address/{address}/unspent")
        try:
            return [
                AddressUnspent(
                    txid=u["tx_hash"],
                    vout=int(u["tx_pos"]),
                    value=int(u["value"]),
                    height=u.get("height") or None,
                )
                for u in data
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ChainIndexUnavailable("Malformed unspent response", cause=str(e)) from e

    async def broadcast(self, tx_hex: str) -> str:
        txid = await self._api_call("POST", "tx/raw", {"txhex": tx_hex})
        if not isinstance(txid, str):
            raise ChainIndexUnavailable("Malformed broadcast response", cause=repr(txid))
        logger.info(f"Broadcast transaction {txid}")
        return txid

    async def close(self) -> None:
        await self.client.aclose()
