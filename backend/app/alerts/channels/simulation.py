"""
simulation.py — Logging-only gateway for development.

Used when no provider credentials are configured. Nothing leaves the
process; each request is logged and answered with a synthetic id.
"""

from __future__ import annotations

import logging
import uuid

from backend.app.core.logging_config import mask_phone

logger = logging.getLogger(__name__)


class SimulatedGateway:
    name = "simulation"

    async def send_text(self, to: str, body: str) -> str:
        sid = f"SM{uuid.uuid4().hex}"
        logger.info(
            "[SMS/simulated] %s → %s: %d chars → '%s'",
            sid, mask_phone(to), len(body),
            body[:80] + ("..." if len(body) > 80 else ""),
        )
        return sid

    async def place_call(self, to: str, twiml: str) -> str:
        sid = f"CA{uuid.uuid4().hex}"
        logger.info("[Call/simulated] %s → %s", sid, mask_phone(to))
        return sid
