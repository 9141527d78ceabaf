"""
PayMail (bsvalias) payment directory client.

Capability discovery reads https://{domain}/.well-known/bsvalias directly;
DNS SRV delegation is not followed.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import httpx
from loguru import logger

from zipwallet.backends.base import PaymentDestination, PaymentDirectory
from zipwallet.errors import PaymentDirectoryError

DEFAULT_TIMEOUT = 30.0

# BRFC capability identifiers
CAP_PAYMENT_DESTINATION = "paymentDestination"
CAP_P2P_PAYMENT_DESTINATION = "2a40af698840"
CAP_P2P_RECEIVE_TX = "5f1323cddf31"

FEATURE_ALIASES = {
    "p2pTx": CAP_P2P_RECEIVE_TX,
    "p2pPaymentDestination": CAP_P2P_PAYMENT_DESTINATION,
}


def split_handle(handle: str) -> tuple[str, str]:
    """Split ``alias@domain`` into its parts"""
    alias, sep, domain = handle.strip().partition("@")
    if not sep or not alias or "." not in domain or "@" in domain:
        raise PaymentDirectoryError(f"Invalid PayMail handle: {handle!r}")
    return alias.lower(), domain.lower()


class PaymailClient(PaymentDirectory):
    """
    bsvalias client for paying other users' handles.

    Supports:
    - P2P payment destination (2a40af698840), preferred when advertised
    - Basic paymentDestination as fallback
    - P2P receive transaction (5f1323cddf31) for direct delivery
    """

    def __init__(
        self,
        sender_handle: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.sender_handle = sender_handle
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._capabilities: dict[str, dict[str, Any]] = {}

    async def _request(self, method: str, url: str, data: dict[str, Any] | None = None) -> Any:
        try:
            if method == "GET":
                response = await self.client.get(url)
            else:
                response = await self.client.post(url, json=data)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"PayMail request failed: {url} - {e.response.status_code}")
            raise PaymentDirectoryError(
                f"PayMail host rejected request to {url}", cause=str(e.response.status_code)
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"PayMail request failed: {url} - {e}")
            raise PaymentDirectoryError(f"PayMail host unreachable: {url}", cause=str(e)) from e
        except ValueError as e:
            raise PaymentDirectoryError(f"Malformed PayMail response from {url}", cause=str(e)) from e

    async def capabilities(self, domain: str) -> dict[str, Any]:
        """Fetch and cache the capability document of a PayMail host."""
        if domain not in self._capabilities:
            doc = await self._request("GET", f"https://{domain}/.well-known/bsvalias")
            caps = doc.get("capabilities") if isinstance(doc, dict) else None
            if not isinstance(caps, dict):
                raise PaymentDirectoryError(f"No bsvalias capabilities published by {domain}")
            self._capabilities[domain] = caps
            logger.debug(f"Discovered {len(caps)} PayMail capabilities for {domain}")
        return self._capabilities[domain]

    async def _endpoint(self, handle: str, capability: str) -> str | None:
        alias, domain = split_handle(handle)
        template = (await self.capabilities(domain)).get(capability)
        if not isinstance(template, str):
            return None
        return template.replace("{alias}", alias).replace("{domain.tld}", domain)

    async def has_capability(self, handle: str, feature: str) -> bool:
        capability = FEATURE_ALIASES.get(feature, feature)
        _, domain = split_handle(handle)
        return bool((await self.capabilities(domain)).get(capability))

    async def resolve(self, handle: str, amount: int) -> PaymentDestination:
        url = await self._endpoint(handle, CAP_P2P_PAYMENT_DESTINATION)
        if url is not None:
            data = await self._request("POST", url, {"satoshis": amount})
            outputs = data.get("outputs") or []
            if len(outputs) != 1:
                raise PaymentDirectoryError(
                    f"{handle} returned {len(outputs)} outputs, exactly one is supported"
                )
            try:
                script = bytes.fromhex(outputs[0]["script"])
                resolved = int(outputs[0]["satoshis"])
            except (KeyError, TypeError, ValueError) as e:
                raise PaymentDirectoryError(f"Malformed destination for {handle}", cause=str(e)) from e
            logger.info(f"Resolved {handle} via P2P destination")
            return PaymentDestination(script=script, amount=resolved, reference=data.get("reference"))

        url = await self._endpoint(handle, CAP_PAYMENT_DESTINATION)
        if url is None:
            raise PaymentDirectoryError(f"{handle} does not accept payments")

        request = {
            "senderHandle": self.sender_handle,
            "dt": datetime.now(UTC).isoformat(),
            "amount": amount,
            "purpose": "",
        }
        data = await self._request("POST", url, request)
        try:
            script = bytes.fromhex(data["output"])
        except (KeyError, TypeError, ValueError) as e:
            raise PaymentDirectoryError(f"Malformed destination for {handle}", cause=str(e)) from e
        logger.info(f"Resolved {handle} via basic payment destination")
        return PaymentDestination(script=script, amount=amount)

    async def send_direct(
        self, handle: str, tx_hex: str, metadata: dict[str, Any], reference: str
    ) -> str:
        url = await self._endpoint(handle, CAP_P2P_RECEIVE_TX)
        if url is None:
            raise PaymentDirectoryError(f"{handle} does not accept P2P transactions")

        data = await self._request(
            "POST", url, {"hex": tx_hex, "metadata": metadata, "reference": reference}
        )
        txid = data.get("txid") if isinstance(data, dict) else None
        if not txid:
            raise PaymentDirectoryError(f"{handle} did not acknowledge the transaction")
        logger.info(f"Delivered transaction {txid} to {handle}")
        return txid

    async def close(self) -> None:
        await self.client.aclose()
