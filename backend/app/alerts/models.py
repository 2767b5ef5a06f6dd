"""
models.py — Shared data structures for the alert pipeline.

Defines:
    • TriggerSource / TriggerEvent — what asked for an alert
    • ContactRecord   — the single stored emergency contact
    • AlertRequest    — contact + position, ready to dispatch
    • AlertDeliveryResult — two-step (text, call) provider result
    • DispatchReason / DispatchOutcome — what the caller is told

═══════════════════════════════════════════════════════════════════════════
DISPATCH OUTCOMES
═══════════════════════════════════════════════════════════════════════════

    Reason             success   message                      Provider calls
    ────────────────   ───────   ──────────────────────────   ──────────────
    CONTACT_REQUIRED   False     "contact required"           0
    LOCATION_PENDING   False     "location pending"           0
    PROVIDER_ERROR     False     "Error sending alert"        1 or 2
    SENT               True      "Alert sent successfully!"   2

═══════════════════════════════════════════════════════════════════════════
PARTIAL DELIVERY
═══════════════════════════════════════════════════════════════════════════

Delivery is text first, then voice call. A failed text stops the
sequence, so the reachable states are:

    text_sent   call_placed   meaning
    ─────────   ───────────   ──────────────────────────────────────
    False       False         nothing reached the contact
    True        False         partial: map link delivered, no call
    True        True          complete
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from backend.app.spatial.distance import Position


MESSAGE_SENT = "Alert sent successfully!"
MESSAGE_PROVIDER_ERROR = "Error sending alert"
MESSAGE_CONTACT_REQUIRED = "contact required"
MESSAGE_LOCATION_PENDING = "location pending"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════
# Triggers
# ═══════════════════════════════════════════════════════════════════════════

class TriggerSource(str, Enum):
    MANUAL = "manual"  # help button
    VOICE  = "voice"   # keyword in a recognized utterance


@dataclass(frozen=True)
class TriggerEvent:
    """A single "alert requested" signal."""
    source: TriggerSource
    transcript: str = ""
    at: datetime = field(default_factory=_now)


# ═══════════════════════════════════════════════════════════════════════════
# Contact
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ContactRecord:
    """
    The emergency contact.

    Valid only while ``now < expires_at``; an expired record is treated
    exactly like a missing one.
    """
    phone: str
    email: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phone": self.phone,
            "email": self.email,
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass(frozen=True)
class AlertRequest:
    """Contact and position for one dispatch. Never persisted."""
    contact: ContactRecord
    position: Position


# ═══════════════════════════════════════════════════════════════════════════
# Results
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class AlertDeliveryResult:
    """Outcome of the text-then-call sequence against the provider."""
    text_sent: bool = False
    call_placed: bool = False
    detail: str = ""
    text_sid: Optional[str] = None
    call_sid: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.text_sent and self.call_placed

    @property
    def partial(self) -> bool:
        return self.text_sent and not self.call_placed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "text_sent": self.text_sent,
            "call_placed": self.call_placed,
            "detail": self.detail,
            "text_sid": self.text_sid,
            "call_sid": self.call_sid,
        }


class DispatchReason(str, Enum):
    SENT             = "sent"
    CONTACT_REQUIRED = "contact_required"
    LOCATION_PENDING = "location_pending"
    PROVIDER_ERROR   = "provider_error"


@dataclass
class DispatchOutcome:
    """What a dispatch attempt reports back to the caller / UI."""
    success: bool
    message: str
    reason: DispatchReason
    detail: str = ""
    delivery: Optional[AlertDeliveryResult] = None

    @classmethod
    def sent(cls, delivery: AlertDeliveryResult) -> "DispatchOutcome":
        return cls(True, MESSAGE_SENT, DispatchReason.SENT, delivery=delivery)

    @classmethod
    def contact_required(cls) -> "DispatchOutcome":
        return cls(False, MESSAGE_CONTACT_REQUIRED, DispatchReason.CONTACT_REQUIRED)

    @classmethod
    def location_pending(cls) -> "DispatchOutcome":
        return cls(False, MESSAGE_LOCATION_PENDING, DispatchReason.LOCATION_PENDING)

    @classmethod
    def provider_error(cls, delivery: AlertDeliveryResult) -> "DispatchOutcome":
        return cls(
            False, MESSAGE_PROVIDER_ERROR, DispatchReason.PROVIDER_ERROR,
            detail=delivery.detail, delivery=delivery,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "reason": self.reason.value,
            "detail": self.detail,
            "delivery": self.delivery.to_dict() if self.delivery else None,
        }
