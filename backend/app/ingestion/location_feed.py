"""
location_feed.py — Latest-known-position cell fed by a position source.

The feed is the only writer of the "latest position" value. Everything
else reads snapshots through ``latest`` and never waits: if no fix has
arrived yet, ``latest`` is simply None and the dispatcher reports
"location pending".

Sources push fixes and errors through callbacks:

    source.subscribe(on_fix, on_error) → unsubscribe()

``PositionStream`` adapts any async iterator of fixes to that interface,
which is how a real sensor loop or a scripted test sequence is plugged in.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import AsyncIterable, Callable, Optional, Protocol

from backend.app.spatial.distance import Position

logger = logging.getLogger(__name__)

FixCallback = Callable[[Position], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class LocationErrorCode(str, Enum):
    PERMISSION_DENIED    = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT              = "timeout"
    UNSUPPORTED          = "unsupported"


class LocationError(Exception):
    """A position source failure (denied, unavailable, timed out)."""

    def __init__(self, code: LocationErrorCode, message: str = ""):
        super().__init__(message or code.value)
        self.code = code
        self.message = message or code.value


class PositionSource(Protocol):
    def subscribe(self, on_fix: FixCallback, on_error: ErrorCallback) -> Unsubscribe: ...


class PositionStream:
    """Pump an async iterator of fixes into subscriber callbacks."""

    def __init__(self, fixes: AsyncIterable[Position]) -> None:
        self._fixes = fixes
        self._task: Optional[asyncio.Task] = None

    async def _pump(self, on_fix: FixCallback, on_error: ErrorCallback) -> None:
        try:
            async for fix in self._fixes:
                on_fix(fix)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            on_error(exc)

    def subscribe(self, on_fix: FixCallback, on_error: ErrorCallback) -> Unsubscribe:
        self._task = asyncio.get_running_loop().create_task(self._pump(on_fix, on_error))

        def unsubscribe() -> None:
            if self._task and not self._task.done():
                self._task.cancel()

        return unsubscribe

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task


class LocationFeed:
    """Single-owner cell holding the most recent fix and the last error."""

    def __init__(self, source: Optional[PositionSource] = None) -> None:
        self._source = source
        self._unsubscribe: Optional[Unsubscribe] = None
        self._latest: Optional[Position] = None
        self._error: Optional[Exception] = None
        self.fix_count = 0

    # ── snapshot reads ──

    @property
    def latest(self) -> Optional[Position]:
        return self._latest

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    @property
    def has_fix(self) -> bool:
        return self._latest is not None

    @property
    def has_source(self) -> bool:
        return self._source is not None

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    # ── producer side ──

    def on_fix(self, fix: Position) -> None:
        current = self._latest
        if current is not None and fix.timestamp < current.timestamp:
            logger.debug("Discarding stale fix from %s", fix.timestamp.isoformat())
            return
        self._latest = fix
        self._error = None
        self.fix_count += 1
        logger.debug(
            "Position fix #%d: %.5f, %.5f", self.fix_count, fix.latitude, fix.longitude,
            extra={"lat": fix.latitude, "lon": fix.longitude},
        )

    def on_error(self, error: Exception) -> None:
        self._error = error
        logger.warning("Error fetching location: %s", error)

    # ── lifecycle ──

    def start(self) -> None:
        if self._source is None:
            raise RuntimeError("LocationFeed has no position source")
        if self._unsubscribe is None:
            self._unsubscribe = self._source.subscribe(self.on_fix, self.on_error)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
