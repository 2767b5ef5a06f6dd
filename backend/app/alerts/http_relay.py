"""
http_relay.py — Client-side alert sender that goes through the HTTP service.

A device without provider credentials hands the alert to the service:

    POST {base_url}/send-alert   {"phone", "latitude", "longitude"}

    200 → {"message": "Alert sent successfully!"}
    400 → {"message": "Missing required fields!"}
    500 → {"message": "Error sending alert", "error": ..., "text_sent": ..., "call_placed": ...}

The response is mapped back onto an AlertDeliveryResult so the dispatcher
treats the relay exactly like a local gateway.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from backend.app.alerts.models import AlertDeliveryResult
from backend.app.core.config import Settings, settings as default_settings
from backend.app.core.logging_config import mask_phone
from backend.app.spatial.distance import Position

logger = logging.getLogger(__name__)

SEND_ALERT_PATH = "/send-alert"


class HttpAlertRelay:
    """Send alerts by calling the service's ``POST /send-alert``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._http_client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    @staticmethod
    def _body(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    async def send_alert(self, phone: str, position: Position) -> AlertDeliveryResult:
        client = await self._get_client()
        payload = {
            "phone": phone,
            "latitude": position.latitude,
            "longitude": position.longitude,
        }

        try:
            response = await client.post(f"{self.base_url}{SEND_ALERT_PATH}", json=payload)
        except httpx.HTTPError as e:
            logger.error("Alert relay request failed for %s: %s", mask_phone(phone), e)
            return AlertDeliveryResult(detail=f"Alert service unreachable: {e}")

        body = self._body(response)
        message = str(body.get("message", ""))

        if response.is_success:
            return AlertDeliveryResult(text_sent=True, call_placed=True, detail=message)

        detail = str(body.get("error") or message or f"HTTP {response.status_code}")
        logger.error(
            "Alert relay returned %d for %s: %s",
            response.status_code, mask_phone(phone), detail,
            extra={"status_code": response.status_code},
        )
        return AlertDeliveryResult(
            text_sent=bool(body.get("text_sent", False)),
            call_placed=bool(body.get("call_placed", False)),
            detail=detail,
        )


def build_relay(config: Optional[Settings] = None) -> HttpAlertRelay:
    """Relay pointed at ``ALERT_SERVICE_URL`` with ``RELAY_TIMEOUT_SECONDS``."""
    config = config or default_settings
    return HttpAlertRelay(
        config.ALERT_SERVICE_URL,
        timeout_seconds=config.RELAY_TIMEOUT_SECONDS,
    )
