"""
contact_store.py — TTL-backed persistence of the emergency contact.

The contact lives under two fixed keys, ``"Email"`` and ``"Phone"``, each
holding a JSON envelope with a millisecond expiry stamp:

    Phone → {"value": "+15551234567", "expiry": 1767225600000}
    Email → {"value": "a@b.com",      "expiry": 1767225600000}

Expiry is lazy: nothing sweeps in the background. ``load()`` checks the
stamps against the clock and purges both keys as soon as either half is
missing, unreadable or expired, so a half-written record never surfaces.

A record is valid only while ``now < expiry``.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from backend.app.alerts.models import ContactRecord
from backend.app.core.cache import KeyValueStore
from backend.app.core.errors import ValidationError
from backend.app.core.logging_config import mask_phone

logger = logging.getLogger(__name__)

PHONE_KEY = "Phone"
EMAIL_KEY = "Email"
DEFAULT_TTL_HOURS = 96.0

_MS_PER_HOUR = 60 * 60 * 1000


def _from_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)


class ContactStore:
    """
    Owner of the single contact slot.

    Parameters
    ----------
    backend : KeyValueStore
        Where the two envelopes are kept (memory or Redis).
    default_ttl_hours : float
        TTL used by ``save``/``refresh`` when none is given.
    clock : callable
        Returns the current time in epoch seconds; injectable for tests.
    """

    def __init__(
        self,
        backend: KeyValueStore,
        *,
        default_ttl_hours: float = DEFAULT_TTL_HOURS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self.default_ttl_hours = default_ttl_hours
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def save(
        self,
        phone: str,
        email: str,
        ttl_hours: Optional[float] = None,
    ) -> ContactRecord:
        """Store the contact, replacing any previous one."""
        phone = (phone or "").strip()
        email = (email or "").strip()
        if not phone or not email:
            raise ValidationError(
                "Emergency phone number and email are both required",
                field="phone" if not phone else "email",
            )

        ttl = self.default_ttl_hours if ttl_hours is None else ttl_hours
        ttl_ms = int(round(ttl * _MS_PER_HOUR))
        expiry = self._now_ms() + ttl_ms

        for key, value in ((PHONE_KEY, phone), (EMAIL_KEY, email)):
            envelope = json.dumps({"value": value, "expiry": expiry})
            if not await self._backend.set(key, envelope, ttl_ms=ttl_ms):
                logger.warning("Contact field %s was not persisted", key)

        logger.debug("Saved contact %s (ttl=%.1fh)", mask_phone(phone), ttl)
        return ContactRecord(phone=phone, email=email, expires_at=_from_ms(expiry))

    async def _read(self, key: str, now_ms: int) -> Tuple[Optional[str], Optional[int]]:
        raw = await self._backend.get(key)
        if raw is None:
            return None, None
        try:
            envelope = json.loads(raw)
            value = envelope["value"]
            expiry = int(envelope["expiry"])
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding unreadable %s entry: %s", key, exc)
            return None, None
        if not value or now_ms >= expiry:
            return None, None
        return str(value), expiry

    async def load(self) -> Optional[ContactRecord]:
        """Return the stored contact, or None if absent or expired."""
        now_ms = self._now_ms()
        phone, phone_expiry = await self._read(PHONE_KEY, now_ms)
        email, email_expiry = await self._read(EMAIL_KEY, now_ms)

        if phone is None or email is None:
            await self._backend.delete(PHONE_KEY, EMAIL_KEY)
            return None

        expiry = min(phone_expiry, email_expiry)
        return ContactRecord(phone=phone, email=email, expires_at=_from_ms(expiry))

    async def refresh(self, ttl_hours: Optional[float] = None) -> Optional[ContactRecord]:
        """Re-save the current contact with a fresh TTL, if there is one."""
        record = await self.load()
        if record is None:
            return None
        return await self.save(record.phone, record.email, ttl_hours)

    async def clear(self) -> None:
        """Forget the contact unconditionally."""
        await self._backend.delete(PHONE_KEY, EMAIL_KEY)
        logger.info("Emergency contact cleared")
