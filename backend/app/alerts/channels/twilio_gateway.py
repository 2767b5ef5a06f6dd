"""
twilio_gateway.py — Text + voice delivery through Twilio.

    App  →  twilio.rest.Client  →  Twilio API  →  Carrier  →  Handset
              messages.create(body, from_, to)
              calls.create(twiml, from_, to)

The Twilio SDK is synchronous; each request runs in a worker thread so a
slow provider round trip never stalls the event loop (trigger detection
and location updates keep running while a dispatch is in flight).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.rest import Client

from backend.app.core.errors import GatewayError
from backend.app.core.logging_config import mask_phone

logger = logging.getLogger(__name__)


class TwilioGateway:
    """
    Gateway bound to one Twilio account and originating number.

    Parameters
    ----------
    account_sid, auth_token : str
        Twilio credentials (TWILIO_SID / TWILIO_AUTH_TOKEN).
    from_number : str
        Originating number in E.164 format (TWILIO_PHONE).
    client : twilio.rest.Client | None
        Pre-built client; created from the credentials when omitted.
    """

    name = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        client: Optional[Any] = None,
    ) -> None:
        if not from_number:
            raise ValueError("Twilio originating number is required")
        self.from_number = from_number
        self._client = client or Client(account_sid, auth_token)
        logger.info("Twilio gateway ready | SID=%s...", (account_sid or "")[:5])

    @staticmethod
    def _wrap(exc: TwilioException) -> GatewayError:
        if isinstance(exc, TwilioRestException):
            return GatewayError(
                exc.msg or str(exc),
                provider="twilio",
                code=exc.code,
                status=exc.status,
            )
        return GatewayError(str(exc), provider="twilio")

    async def send_text(self, to: str, body: str) -> str:
        try:
            message = await asyncio.to_thread(
                self._client.messages.create,
                body=body,
                from_=self.from_number,
                to=to,
            )
        except TwilioException as exc:
            raise self._wrap(exc) from exc
        logger.info("[Twilio] SMS %s → %s", message.sid, mask_phone(to))
        return message.sid

    async def place_call(self, to: str, twiml: str) -> str:
        try:
            call = await asyncio.to_thread(
                self._client.calls.create,
                twiml=twiml,
                from_=self.from_number,
                to=to,
            )
        except TwilioException as exc:
            raise self._wrap(exc) from exc
        logger.info("[Twilio] Call %s → %s", call.sid, mask_phone(to))
        return call.sid
