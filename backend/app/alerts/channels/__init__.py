"""
channels — Delivery backends for the emergency contact.

Each gateway exposes two coroutines against one provider account:
    send_text(to, body)   → provider message id
    place_call(to, twiml) → provider call id

and raises GatewayError when the provider rejects a request. Gateways are
stateless apart from their client; sequencing lives in alerts.delivery.
"""

from __future__ import annotations

from typing import Protocol


class MessageGateway(Protocol):
    name: str

    async def send_text(self, to: str, body: str) -> str: ...

    async def place_call(self, to: str, twiml: str) -> str: ...
