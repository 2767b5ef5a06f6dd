"""
delivery.py — The "send alert" capability: text, then voice call.

═══════════════════════════════════════════════════════════════════════════
SEQUENCE
═══════════════════════════════════════════════════════════════════════════

    send_alert(phone, position)
        │
        ├─ 1. send_text(phone, "🚨 HELP! Here is my location: <map link>")
        │       └─ failure → stop, text_sent=False, call_placed=False
        │
        └─ 2. place_call(phone, <Say>Emergency Alert! ...</Say>)
                └─ failure → text_sent=True, call_placed=False (partial)

There is no rollback and no retry: a text that went out stays out, and a
second attempt is the caller's decision. Provider errors are logged here
with full detail; the result only carries the summary text.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from backend.app.alerts.channels import MessageGateway
from backend.app.alerts.channels.simulation import SimulatedGateway
from backend.app.alerts.models import AlertDeliveryResult
from backend.app.core.config import Settings, settings as default_settings
from backend.app.core.errors import GatewayError
from backend.app.core.logging_config import mask_phone
from backend.app.spatial.distance import Position, map_link

logger = logging.getLogger(__name__)

ALERT_TEXT_TEMPLATE = "🚨 HELP! Here is my location: {link}"
VOICE_TWIML = (
    "<Response><Say>Emergency Alert! Check your SMS for the location.</Say></Response>"
)


def build_alert_text(position: Position) -> str:
    """Text body with a map pin at the user's coordinates."""
    return ALERT_TEXT_TEMPLATE.format(link=map_link(position.coordinate))


class AlertSender(Protocol):
    """Anything that can deliver an alert for a phone + position."""

    async def send_alert(self, phone: str, position: Position) -> AlertDeliveryResult: ...


class GatewayAlertSender:
    """Runs the text-then-call sequence against one gateway."""

    def __init__(self, gateway: MessageGateway) -> None:
        self.gateway = gateway

    def _log_failure(self, step: str, phone: str, exc: Exception) -> str:
        if isinstance(exc, GatewayError):
            logger.error(
                "[%s] %s to %s failed: %s (code=%s status=%s)",
                exc.provider, step, mask_phone(phone), exc.message, exc.code, exc.status,
                extra={"channel": step, "phone": phone},
            )
            return exc.message
        logger.exception(
            "[%s] %s to %s failed: %s", self.gateway.name, step, mask_phone(phone), exc,
            extra={"channel": step, "phone": phone},
        )
        return str(exc) or type(exc).__name__

    async def send_alert(self, phone: str, position: Position) -> AlertDeliveryResult:
        result = AlertDeliveryResult()

        try:
            result.text_sid = await self.gateway.send_text(phone, build_alert_text(position))
            result.text_sent = True
        except Exception as exc:
            result.detail = self._log_failure("sms", phone, exc)
            return result

        try:
            result.call_sid = await self.gateway.place_call(phone, VOICE_TWIML)
            result.call_placed = True
        except Exception as exc:
            result.detail = self._log_failure("voice", phone, exc)
            return result

        logger.info(
            "Alert delivered to %s (sms=%s call=%s)",
            mask_phone(phone), result.text_sid, result.call_sid,
            extra={"lat": position.latitude, "lon": position.longitude},
        )
        return result


def build_gateway(config: Optional[Settings] = None) -> MessageGateway:
    """
    Pick the delivery gateway from settings.

    ``ALERT_PROVIDER``:
        simulation — always simulate
        twilio     — require Twilio credentials
        auto       — Twilio when credentials are present, else simulate
        relay      — as auto; the relay choice only affects ``build_sender``
    """
    config = config or default_settings
    provider = config.ALERT_PROVIDER.lower()

    if provider == "twilio" or (provider in ("auto", "relay") and config.has_twilio_credentials):
        if not config.has_twilio_credentials:
            raise ValueError(
                "ALERT_PROVIDER=twilio needs TWILIO_SID, TWILIO_AUTH_TOKEN and TWILIO_PHONE"
            )
        from backend.app.alerts.channels.twilio_gateway import TwilioGateway
        return TwilioGateway(
            config.TWILIO_SID, config.TWILIO_AUTH_TOKEN, config.TWILIO_PHONE,
        )

    if provider not in ("auto", "simulation", "relay"):
        logger.warning("Unknown ALERT_PROVIDER %r, using simulation", provider)
    return SimulatedGateway()


def build_sender(config: Optional[Settings] = None) -> AlertSender:
    """
    Sender for the in-process pipeline.

    ``ALERT_PROVIDER=relay`` hands alerts to the HTTP service at
    ``ALERT_SERVICE_URL``; every other value sends through a local gateway.
    """
    config = config or default_settings
    if config.ALERT_PROVIDER.lower() == "relay":
        from backend.app.alerts.http_relay import build_relay
        return build_relay(config)
    return GatewayAlertSender(build_gateway(config))
