"""
dispatcher.py — Orchestrates one alert attempt.

═══════════════════════════════════════════════════════════════════════════
ORCHESTRATION FLOW
═══════════════════════════════════════════════════════════════════════════

    ┌──────────────────────┐
    │ 1. Load contact      │  absent/expired → "contact required" (no call)
    └──────────┬───────────┘
               ▼
    ┌──────────────────────┐
    │ 2. Refresh TTL       │  re-save contact, every attempt
    └──────────┬───────────┘
               ▼
    ┌──────────────────────┐
    │ 3. Read latest fix   │  none yet → "location pending" (no call)
    └──────────┬───────────┘
               ▼
    ┌──────────────────────┐
    │ 4. send_alert once   │  text → call; no automatic retry
    └──────────┬───────────┘
               ▼
         DispatchOutcome

Dispatches are not serialized: two triggers in quick succession run two
independent attempts and can alert the contact twice.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from backend.app.alerts.contact_store import ContactStore
from backend.app.alerts.delivery import AlertSender
from backend.app.alerts.models import (
    MESSAGE_CONTACT_REQUIRED,
    MESSAGE_LOCATION_PENDING,
    AlertDeliveryResult,
    AlertRequest,
    DispatchOutcome,
    TriggerEvent,
)
from backend.app.core.errors import ContactMissing, LocationUnavailable
from backend.app.core.logging_config import mask_phone
from backend.app.spatial.distance import Position

logger = logging.getLogger(__name__)


class PositionSnapshot(Protocol):
    @property
    def latest(self) -> Optional[Position]: ...


class AlertDispatcher:
    """
    Parameters
    ----------
    contacts : ContactStore
        Source of the emergency contact; refreshed on every attempt.
    location : PositionSnapshot
        Anything exposing ``latest`` (normally a LocationFeed).
    sender : AlertSender
        The delivery capability (gateway sender or HTTP relay).
    ttl_hours : float | None
        TTL used for the refresh; the store's default when None.
    """

    def __init__(
        self,
        contacts: ContactStore,
        location: PositionSnapshot,
        sender: AlertSender,
        *,
        ttl_hours: Optional[float] = None,
    ) -> None:
        self.contacts = contacts
        self.location = location
        self.sender = sender
        self.ttl_hours = ttl_hours
        self.attempts = 0

    async def _prepare(self, source: str) -> AlertRequest:
        """Contact, TTL refresh and position; raises for the two waiting states."""
        contact = await self.contacts.load()
        if contact is None:
            logger.warning(
                "Alert requested (%s) but no emergency contact is stored", source,
                extra={"trigger_source": source, "outcome": "contact_required"},
            )
            raise ContactMissing(MESSAGE_CONTACT_REQUIRED, trigger_source=source)

        contact = await self.contacts.save(contact.phone, contact.email, self.ttl_hours)

        position = self.location.latest
        if position is None:
            logger.warning(
                "Alert requested (%s) before a location fix", source,
                extra={"trigger_source": source, "outcome": "location_pending"},
            )
            raise LocationUnavailable(MESSAGE_LOCATION_PENDING, trigger_source=source)

        return AlertRequest(contact=contact, position=position)

    async def dispatch(self, trigger: Optional[TriggerEvent] = None) -> DispatchOutcome:
        self.attempts += 1
        source = trigger.source.value if trigger else "direct"

        try:
            request = await self._prepare(source)
        except ContactMissing:
            return DispatchOutcome.contact_required()
        except LocationUnavailable:
            return DispatchOutcome.location_pending()

        logger.info(
            "Dispatching alert (%s) to %s at %.5f, %.5f",
            source, mask_phone(request.contact.phone),
            request.position.latitude, request.position.longitude,
            extra={
                "trigger_source": source,
                "lat": request.position.latitude,
                "lon": request.position.longitude,
            },
        )

        try:
            delivery = await self.sender.send_alert(request.contact.phone, request.position)
        except Exception as exc:
            logger.exception("Alert sender raised: %s", exc)
            delivery = AlertDeliveryResult(detail=str(exc) or type(exc).__name__)

        if delivery.ok:
            return DispatchOutcome.sent(delivery)

        logger.error(
            "Alert delivery failed (text_sent=%s call_placed=%s): %s",
            delivery.text_sent, delivery.call_placed, delivery.detail,
            extra={"outcome": "provider_error"},
        )
        return DispatchOutcome.provider_error(delivery)
