"""
alert_service.py — Wires the alert pipeline together.

═══════════════════════════════════════════════════════════════════════════
ORCHESTRATION FLOW
═══════════════════════════════════════════════════════════════════════════

    position source ──► LocationFeed (latest fix)
                               │
    help button ─┐             │
                 ├─► TriggerDetector ──► handle_trigger (task)
    recognizer ──┘                           │
                                             ├─► StationRanker  → nearest_stations
                                             └─► AlertDispatcher → last_outcome

The pipeline keeps only snapshots a UI would render: the ranked stations,
the listening flag and the most recent dispatch outcomes (a bounded
history). Each trigger runs its own task; ``close()`` stops inputs but
leaves in-flight dispatches to finish, ``drain()`` waits for them and
``aclose()`` does both, then releases the sender's HTTP client if it has one.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Deque, List, Optional, Sequence

from backend.app.alerts.contact_store import ContactStore
from backend.app.alerts.delivery import AlertSender, build_sender
from backend.app.alerts.dispatcher import AlertDispatcher
from backend.app.alerts.models import DispatchOutcome, TriggerEvent
from backend.app.alerts.trigger_detector import TriggerDetector, UtteranceSource
from backend.app.core.cache import build_key_value_store
from backend.app.core.config import Settings, settings as default_settings
from backend.app.ingestion.location_feed import LocationFeed, PositionSource
from backend.app.spatial.stations import RankedStation, Station, load_stations, nearest

logger = logging.getLogger(__name__)

# Most recent dispatch outcomes kept for display
OUTCOME_HISTORY = 20


class SafetyAlertPipeline:
    """Trigger → dispatch → nearest stations, for one user."""

    def __init__(
        self,
        *,
        feed: LocationFeed,
        detector: TriggerDetector,
        dispatcher: AlertDispatcher,
        stations: Sequence[Station],
        nearest_count: int = 2,
        utterance_source: Optional[UtteranceSource] = None,
        outcome_history: int = OUTCOME_HISTORY,
    ) -> None:
        self.feed = feed
        self.detector = detector
        self.dispatcher = dispatcher
        self.stations = tuple(stations)
        self.nearest_count = nearest_count
        self._utterance_source = utterance_source
        self.nearest_stations: List[RankedStation] = []
        self.outcomes: Deque[DispatchOutcome] = deque(maxlen=outcome_history)
        self.detector.add_listener(self.handle_trigger)

    @classmethod
    def build(
        cls,
        *,
        position_source: Optional[PositionSource] = None,
        utterance_source: Optional[UtteranceSource] = None,
        sender: Optional[AlertSender] = None,
        contacts: Optional[ContactStore] = None,
        stations: Optional[Sequence[Station]] = None,
        config: Optional[Settings] = None,
    ) -> "SafetyAlertPipeline":
        """Assemble a pipeline from settings, overriding any part."""
        config = config or default_settings
        contacts = contacts or ContactStore(
            build_key_value_store(config),
            default_ttl_hours=config.CONTACT_TTL_HOURS,
        )
        sender = sender or build_sender(config)
        feed = LocationFeed(position_source)
        if stations is None:
            stations = load_stations(config.STATIONS_FILE)

        return cls(
            feed=feed,
            detector=TriggerDetector(),
            dispatcher=AlertDispatcher(
                contacts, feed, sender, ttl_hours=config.CONTACT_TTL_HOURS,
            ),
            stations=stations,
            nearest_count=config.NEAREST_STATION_COUNT,
            utterance_source=utterance_source,
        )

    # ── snapshots ──

    @property
    def last_outcome(self) -> Optional[DispatchOutcome]:
        return self.outcomes[-1] if self.outcomes else None

    @property
    def listening(self) -> bool:
        return self.detector.listening

    # ── lifecycle ──

    def start(self) -> None:
        if self.feed.has_source:
            self.feed.start()
        if self._utterance_source is not None:
            self.detector.attach(self._utterance_source)
        self.detector.start()
        logger.info("Safety alert pipeline started (%d stations)", len(self.stations))

    def close(self) -> None:
        self.detector.stop()
        self.detector.detach()
        self.feed.stop()
        logger.info("Safety alert pipeline stopped")

    async def drain(self) -> List[DispatchOutcome]:
        """Wait for every in-flight dispatch and return the retained outcomes."""
        pending = self.detector.pending
        if pending:
            await asyncio.gather(*pending)
        return list(self.outcomes)

    async def aclose(self) -> None:
        """Stop inputs, let in-flight dispatches finish, then close the sender."""
        self.close()
        await self.drain()
        close_sender = getattr(self.dispatcher.sender, "close", None)
        if close_sender is not None:
            await close_sender()

    # ── actions ──

    def press_help(self) -> TriggerEvent:
        return self.detector.press()

    def rank_nearest(self) -> List[RankedStation]:
        position = self.feed.latest
        if position is None:
            return []
        self.nearest_stations = nearest(position, self.stations, self.nearest_count)
        return self.nearest_stations

    async def handle_trigger(self, event: TriggerEvent) -> DispatchOutcome:
        self.rank_nearest()
        outcome = await self.dispatcher.dispatch(event)
        self.outcomes.append(outcome)
        logger.info(
            "Trigger (%s) → %s", event.source.value, outcome.message,
            extra={"trigger_source": event.source.value, "outcome": outcome.reason.value},
        )
        return outcome
