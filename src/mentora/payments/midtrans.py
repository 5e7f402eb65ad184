"""Async HTTP client for the Midtrans Snap and Core APIs."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog

from mentora.config import Settings, get_settings
from mentora.errors import UpstreamFailure

logger = structlog.get_logger()

SNAP_URLS = {
    True: "https://app.midtrans.com/snap/v1/transactions",
    False: "https://app.sandbox.midtrans.com/snap/v1/transactions",
}
CORE_URLS = {
    True: "https://api.midtrans.com/v2",
    False: "https://api.sandbox.midtrans.com/v2",
}


class PaymentGatewayError(UpstreamFailure):
    """Midtrans was unreachable, rejected the call, or is not configured."""


def resolve_production(server_key: str, configured: bool) -> bool:
    """Trust the key prefix over the flag: SB- keys only work on sandbox."""
    if server_key.startswith("SB-") or "SB-Mid-server" in server_key:
        return False
    if server_key.startswith("Mid-server-"):
        return True
    return configured


class MidtransClient:
    """Thin wrapper over the two Midtrans endpoints the API needs."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.server_key = settings.midtrans_server_key
        self.client_key = settings.midtrans_client_key
        self.is_production = resolve_production(self.server_key, settings.midtrans_is_production)
        self.timeout = settings.midtrans_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self.server_key:
            raise PaymentGatewayError("Missing MIDTRANS_SERVER_KEY")
        return httpx.AsyncClient(
            auth=(self.server_key, ""),
            headers={"Accept": "application/json"},
            timeout=self.timeout,
            transport=self._transport,
        )

    async def create_snap_transaction(self, params: dict[str, Any]) -> dict[str, Any]:
        """Create a Snap checkout; returns the gateway body ({token, redirect_url})."""
        if not self.client_key:
            raise PaymentGatewayError("Missing MIDTRANS_CLIENT_KEY")
        order_id = params.get("transaction_details", {}).get("order_id")
        try:
            async with self._client() as client:
                response = await client.post(SNAP_URLS[self.is_production], json=params)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("midtrans_snap_rejected", order_id=order_id, status=e.response.status_code)
            raise PaymentGatewayError(f"Midtrans snap error: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning("midtrans_snap_failed", order_id=order_id, error=str(e))
            raise PaymentGatewayError(f"Midtrans snap error: {e}") from e

        if not body.get("token"):
            raise PaymentGatewayError("Midtrans snap error: no token in response")
        logger.info("midtrans_snap_created", order_id=order_id, production=self.is_production)
        return body

    async def get_transaction_status(self, order_id: str) -> dict[str, Any]:
        """Query the Core API for the current state of an order."""
        url = f"{CORE_URLS[self.is_production]}/{quote(order_id, safe='')}/status"
        try:
            async with self._client() as client:
                response = await client.get(url)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            raise PaymentGatewayError(f"Midtrans status error: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise PaymentGatewayError(f"Midtrans status error: {e}") from e
        if not isinstance(body, dict):
            raise PaymentGatewayError("Midtrans status error: unexpected response")
        return body


def get_gateway() -> MidtransClient:
    """FastAPI dependency; overridden in tests."""
    return MidtransClient(get_settings())
