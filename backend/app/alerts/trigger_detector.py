"""
trigger_detector.py — Turns button presses and spoken keywords into
"alert requested" events.

═══════════════════════════════════════════════════════════════════════════
KEYWORD MATCHING
═══════════════════════════════════════════════════════════════════════════

Speech recognizers deliver an utterance as a series of fragments: partial
hypotheses that grow ("please", "please send", "please send help") and a
final one that closes the utterance. Each fragment is lower-cased and
trimmed, then checked for any of:

    help · emergency · police

The first hit emits one event and resets the buffer. The rest of that
utterance, including its final fragment, cannot fire again. A fragment
belongs to the utterance that fired while it extends the transcript that
fired; anything else starts a new utterance. Recognizers that never mark
fragments final therefore still retrigger on each new phrase.

    fragment                     final   emits
    ─────────────────────────    ─────   ─────
    "please send"                no      -
    "please send help"           no      ✔
    "please send help now"       no      - (extends the hit)
    "nice weather"               no      - (new utterance, no keyword)
    "police"                     no      ✔ (new utterance)
    "police come"                yes     - (extends the hit, closes it)
    "help"                       yes     ✔ (new utterance)

A noisy recognizer that splits one spoken phrase into several final
fragments can therefore alert more than once; over-delivery is accepted
for an emergency signal.

The manual press bypasses all of this and fires even while not listening.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import (
    AsyncIterable,
    Awaitable,
    Callable,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Protocol,
    Set,
    Union,
)

from backend.app.alerts.models import TriggerEvent, TriggerSource

logger = logging.getLogger(__name__)

TRIGGER_KEYWORDS: FrozenSet[str] = frozenset({"help", "emergency", "police"})

TriggerListener = Callable[[TriggerEvent], Union[None, Awaitable[None]]]
UtteranceCallback = Callable[[str, bool], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class Utterance:
    """A recognized speech fragment."""
    text: str
    is_final: bool = False


class UtteranceSource(Protocol):
    def subscribe(self, on_utterance: UtteranceCallback) -> Unsubscribe: ...


class UtteranceStream:
    """Pump an async iterator of Utterances into a subscriber callback."""

    def __init__(self, utterances: AsyncIterable[Utterance]) -> None:
        self._utterances = utterances
        self._task: Optional[asyncio.Task] = None

    async def _pump(self, on_utterance: UtteranceCallback) -> None:
        async for u in self._utterances:
            on_utterance(u.text, u.is_final)

    def subscribe(self, on_utterance: UtteranceCallback) -> Unsubscribe:
        self._task = asyncio.get_running_loop().create_task(self._pump(on_utterance))

        def unsubscribe() -> None:
            if self._task and not self._task.done():
                self._task.cancel()

        return unsubscribe

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task


def contains_keyword(text: str, keywords: Iterable[str] = TRIGGER_KEYWORDS) -> bool:
    """Substring match on normalized text."""
    normalized = text.lower().strip()
    return any(k in normalized for k in keywords)


class TriggerDetector:
    """
    Emits TriggerEvents to registered listeners.

    Listeners may be plain callables or coroutine functions. Coroutines are
    scheduled as tasks on the running loop, so a slow dispatch never holds
    up detection; ``stop()`` does not touch those tasks.
    """

    def __init__(
        self,
        keywords: Iterable[str] = TRIGGER_KEYWORDS,
        listeners: Optional[Iterable[TriggerListener]] = None,
    ) -> None:
        self.keywords: FrozenSet[str] = frozenset(k.lower() for k in keywords)
        self._listeners: List[TriggerListener] = list(listeners or [])
        self._listening = False
        self._buffer = ""
        self._utterance_fired = False
        self._fired_transcript = ""
        self._unsubscribe: Optional[Unsubscribe] = None
        self._tasks: Set[asyncio.Future] = set()
        self.events_emitted = 0

    # ── state ──

    @property
    def listening(self) -> bool:
        return self._listening

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def pending(self) -> Set[asyncio.Future]:
        """Listener tasks still running."""
        return set(self._tasks)

    def add_listener(self, listener: TriggerListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        if not self._listening:
            self._listening = True
            logger.info("Voice trigger listening started")

    def stop(self) -> None:
        if self._listening:
            self._listening = False
            self._reset_buffer()
            logger.info("Voice trigger listening stopped")

    def toggle(self) -> bool:
        if self._listening:
            self.stop()
        else:
            self.start()
        return self._listening

    # ── sources ──

    def attach(self, source: UtteranceSource) -> None:
        """Subscribe to a recognizer; replaces any previous one."""
        self.detach()
        self._unsubscribe = source.subscribe(self.feed_utterance)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ── inputs ──

    def press(self) -> TriggerEvent:
        """Manual help button: always fires."""
        event = TriggerEvent(source=TriggerSource.MANUAL)
        logger.info("Help button pressed", extra={"trigger_source": event.source.value})
        self._emit(event)
        return event

    def feed_utterance(self, text: str, is_final: bool = False) -> Optional[TriggerEvent]:
        """Process one recognizer fragment; returns the event if one fired."""
        if not self._listening:
            return None

        normalized = (text or "").lower().strip()

        if self._utterance_fired:
            if normalized.startswith(self._fired_transcript):
                if is_final:
                    self._reset_buffer()
                return None
            self._reset_buffer()

        self._buffer = normalized

        if contains_keyword(normalized, self.keywords):
            event = TriggerEvent(source=TriggerSource.VOICE, transcript=normalized)
            logger.info(
                "Emergency detected! Transcript: %s", normalized,
                extra={"trigger_source": event.source.value},
            )
            self._buffer = ""
            self._utterance_fired = not is_final
            self._fired_transcript = normalized if not is_final else ""
            self._emit(event)
            return event

        if is_final:
            self._reset_buffer()
        return None

    # ── internals ──

    def _reset_buffer(self) -> None:
        self._buffer = ""
        self._utterance_fired = False
        self._fired_transcript = ""

    def _emit(self, event: TriggerEvent) -> None:
        self.events_emitted += 1
        for listener in list(self._listeners):
            result = listener(event)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
