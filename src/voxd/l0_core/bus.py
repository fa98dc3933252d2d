from __future__ import annotations

from voxd.l0_core.bounded_queue import BoundedQueue

from typing import Callable, DefaultDict, List
from collections import defaultdict
import logging
import threading

log = logging.getLogger(__name__)

_STOP_TOPIC = "__stop__"


class EventBus:
    """
    Lightweight in-process pub/sub.

    * Bounded queue prevents unbounded growth (drop-newest policy).
    * Single dispatcher thread delivers events serially to all subscribers.
    * Subscribers run on the dispatcher thread, so keep handlers non-blocking.

    Speech engines publish their started/finished/cancelled notifications here
    from their own worker threads; the SpeechManager is the subscriber, so
    engine threads never execute queue-manager code directly.
    """

    def __init__(self, capacity: int = 1024, publish_timeout_ms: int = 10) -> None:
        self._subscribers: DefaultDict[str, List[Callable[[object], None]]] = defaultdict(list)
        self._queue: BoundedQueue = BoundedQueue(maxsize=capacity, name="EventBus")
        self._publish_timeout = publish_timeout_ms / 1000.0
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="EventBus-Dispatcher", daemon=True
        )
        self._thread.start()

    # ---- subscription API ----
    def subscribe(self, topic: str, callback: Callable[[object], None]) -> None:
        """
        Register ``callback`` to receive events for ``topic``.

        Parameters
        ----------
        topic : str
            Topic name (e.g., "speech.finished").
        callback : Callable[[object], None]
            Function invoked with the event payload. Runs on the dispatcher
            thread; keep it fast or offload work internally.
        """
        self._subscribers[topic].append(callback)

    def unsubscribe(self, topic: str, callback: Callable[[object], None]) -> None:
        """Remove ``callback`` from ``topic`` if previously subscribed."""
        if callback in self._subscribers[topic]:
            self._subscribers[topic].remove(callback)

    # ---- publishing API ----
    def publish(self, topic: str, event: object) -> bool:
        """
        Short-wait publish. Returns True if enqueued; False if the queue was full.

        Policy: drop newest when full (protects the producer thread).
        """
        ok = self._queue.put((topic, event), timeout=self._publish_timeout)
        if not ok:
            log.warning("EventBus full; dropped event on topic '%s'", topic)
        return ok

    # ---- lifecycle ----
    def close(self) -> None:
        """Stop the dispatcher thread. Events still queued are discarded."""
        self._stop.set()
        # best-effort sentinel to wake the dispatcher; if full it exits via the get timeout
        self._queue.put((_STOP_TOPIC, None), timeout=0.0)
        if self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)

    # ---- dispatcher loop ----
    def _run(self) -> None:
        while not self._stop.is_set():
            ok, item = self._queue.get(timeout=0.1)
            if not ok:
                continue
            topic, event = item
            if topic == _STOP_TOPIC:
                break
            for callback in list(self._subscribers.get(topic, [])):
                try:
                    callback(event)  # all callbacks run on this single dispatcher thread
                except Exception:
                    log.exception("EventBus subscriber error on topic '%s'", topic)
