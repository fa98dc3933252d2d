"""
speech_manager.py
=================
Speech Queue Manager: owns one FIFO of ScheduledUtterances per channel and
keeps at most one utterance in flight per channel (the queue head).

State per channel:
- IDLE:      queue empty, engine not asked to speak.
- SPEAKING:  queue head submitted to the channel's engine; no finished event
             observed for it yet.

Scheduling is "latest request wins": every schedule() call first silences all
channels and discards everything queued, then installs the new batch.

Staleness:
- Every utterance gets a sequence number when scheduled. Engines echo it in
  their events; on_utterance_finished() advances a channel only when the
  event's seq equals that channel's current head. Events for utterances that
  a later schedule()/stop_speaking() superseded are ignored.

Threading:
- schedule() runs on HTTP request threads, engine events arrive on the
  EventBus dispatcher thread. One RLock serializes every mutation. Engine
  speak()/stop() calls made under the lock only enqueue or signal.
"""
from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Callable, Deque, Dict, Iterable, List, Optional, Tuple
import itertools
import logging
import threading

from voxd.l0_core.bus import EventBus
from voxd.l0_core.events import (
    ChannelKey, ScheduledUtterance, UtteranceCancelled, UtteranceFinished,
    UtteranceRequest, UtteranceStarted,
    SpeechEvent, TOPIC_CANCELLED, TOPIC_FINISHED, TOPIC_STARTED, topic_for,
)
from .channels import Channel, ChannelRegistry

log = logging.getLogger(__name__)


class ChannelState(str, Enum):
    IDLE = "idle"
    SPEAKING = "speaking"


class SpeechManager:
    """
    High-level queue manager driving one SpeechEngine per channel.

    Usage:
        manager = SpeechManager(registry)
        manager.attach(bus)                 # engine events -> manager
        manager.schedule([UtteranceRequest(0, "hello"), UtteranceRequest(0, "world")])
    """

    def __init__(self, registry: ChannelRegistry) -> None:
        self._registry = registry
        self._lock = threading.RLock()
        self._queues: Dict[ChannelKey, Deque[ScheduledUtterance]] = {
            key: deque() for key in registry.keys()
        }
        self._seq = itertools.count(1)

    # -------------------------------------------------------------------------
    # Wiring
    # -------------------------------------------------------------------------
    def attach(self, eventbus: EventBus) -> None:
        """
        Route every channel engine's events through ``eventbus`` to this manager.

        Engines publish from their own threads; the manager's handlers then
        run on the bus dispatcher thread.
        """
        eventbus.subscribe(TOPIC_STARTED, self.on_utterance_started)
        eventbus.subscribe(TOPIC_FINISHED, self.on_utterance_finished)
        eventbus.subscribe(TOPIC_CANCELLED, self.on_utterance_cancelled)
        for channel in self._registry:
            channel.engine.set_listener(_publisher(eventbus))

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------
    def schedule(self, requests: Iterable[UtteranceRequest]) -> None:
        """
        Replace all queued speech with ``requests``.

        Behavior:
        - Cancels every speaking channel and empties every queue.
        - Drops requests whose channel does not resolve (logged at debug).
        - Preserves submission order per channel and starts each channel's
          first utterance. Channels without requests stay idle.
        """
        with self._lock:
            self._cancel_all_locked()

            batches: Dict[ChannelKey, List[ScheduledUtterance]] = {}
            channels: Dict[ChannelKey, Channel] = {}
            dropped = 0
            for req in requests:
                channel = self._registry.resolve(req.channel)
                if channel is None:
                    dropped += 1
                    continue
                utterance = ScheduledUtterance(
                    seq=next(self._seq),
                    channel=channel.key,
                    text=req.text,
                    params=channel.speech_params(),
                )
                batches.setdefault(channel.key, []).append(utterance)
                channels[channel.key] = channel
            if dropped:
                log.debug("schedule: dropped %d request(s) for unknown channels", dropped)

            for key, utterances in batches.items():
                queue = self._queues[key]
                queue.extend(utterances)
                channels[key].engine.speak(queue[0])
                log.info("channel %r: speaking %d utterance(s)", key, len(utterances))

    def stop_speaking(self) -> None:
        """Cancel every channel immediately and empty all queues. Idempotent."""
        with self._lock:
            self._cancel_all_locked()

    # -------------------------------------------------------------------------
    # Engine events
    # -------------------------------------------------------------------------
    def on_utterance_finished(self, event: UtteranceFinished) -> None:
        """
        Advance ``event.channel`` if ``event.seq`` is its current head.

        A finished event for anything else belongs to an utterance superseded
        by a later schedule()/stop_speaking() and is ignored.
        """
        with self._lock:
            queue = self._queues.get(event.channel)
            if not queue or queue[0].seq != event.seq:
                log.debug("channel %r: ignoring stale finish seq=%d", event.channel, event.seq)
                return
            queue.popleft()
            if queue:
                self._registry[event.channel].engine.speak(queue[0])
            else:
                log.debug("channel %r: idle", event.channel)

    def on_utterance_cancelled(self, event: UtteranceCancelled) -> None:
        # Cancellation always follows schedule()/stop_speaking(), which already replaced the queue.
        log.debug("channel %r: cancelled seq=%d", event.channel, event.seq)

    def on_utterance_started(self, event: UtteranceStarted) -> None:
        log.debug("channel %r: started seq=%d", event.channel, event.seq)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------
    def state(self, key: ChannelKey) -> ChannelState:
        with self._lock:
            return ChannelState.SPEAKING if self._queues[key] else ChannelState.IDLE

    def pending(self, key: ChannelKey) -> Tuple[ScheduledUtterance, ...]:
        """Snapshot of the channel's queue, head (in flight) first."""
        with self._lock:
            return tuple(self._queues[key])

    def in_flight(self, key: ChannelKey) -> Optional[ScheduledUtterance]:
        with self._lock:
            queue = self._queues[key]
            return queue[0] if queue else None

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    def _cancel_all_locked(self) -> None:
        for key, queue in self._queues.items():
            if not queue:
                continue
            queue.clear()
            self._registry[key].engine.stop()
            log.debug("channel %r: cancelled", key)


def _publisher(eventbus: EventBus) -> Callable[[SpeechEvent], None]:
    def _publish(event: SpeechEvent) -> None:
        eventbus.publish(topic_for(event), event)
    return _publish
