from __future__ import annotations

from typing import Optional
import threading
import logging

from voxd.l0_core.events import (
    ScheduledUtterance, UtteranceCancelled, UtteranceFinished, UtteranceStarted, now_ms,
)
from .pyttsx3_engine import BASE_WORDS_PER_MINUTE, NORMAL_ENGINE_RATE
from .speech_engine import SpeechEngine

log = logging.getLogger(__name__)


class PrintSpeechEngine(SpeechEngine):
    """
    Trivial speech engine that prints the text to stdout.
    Useful for development and tests where real audio is not needed.

    Responsibility:
    - Print "[SAY <channel>] <text>" when an utterance starts.
    - Pretend to speak for roughly as long as a voice at the utterance's rate
      would take, then report it finished. A timer thread does the waiting so
      speak() returns immediately.
    - stop() cancels the timer and reports the utterance cancelled.

    Like a real engine it speaks one utterance at a time; a speak() while busy
    replaces nothing and simply queues behind the current one.
    """

    def __init__(self, seconds_per_word: Optional[float] = None, name: str = "print") -> None:
        super().__init__()
        self._seconds_per_word = seconds_per_word
        self._name = name
        self._lock = threading.Lock()
        self._current: Optional[ScheduledUtterance] = None
        self._timer: Optional[threading.Timer] = None
        self._backlog: list[ScheduledUtterance] = []

    def speak(self, utterance: ScheduledUtterance) -> None:
        with self._lock:
            if self._current is not None:
                self._backlog.append(utterance)
                return
            self._start_locked(utterance)
        self._announce(utterance)

    def stop(self) -> None:
        with self._lock:
            dropped = ([self._current] if self._current is not None else []) + self._backlog
            self._backlog = []
            self._current = None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        for utterance in dropped:
            self._notify(UtteranceCancelled(now_ms(), utterance.channel, utterance.seq))

    def is_speaking(self) -> bool:
        with self._lock:
            return self._current is not None

    # ---- internals ----
    def _duration(self, utterance: ScheduledUtterance) -> float:
        words = max(1, len(utterance.text.split()))
        if self._seconds_per_word is not None:
            return words * self._seconds_per_word
        rate = utterance.params.rate if utterance.params.rate > 0 else NORMAL_ENGINE_RATE
        wpm = BASE_WORDS_PER_MINUTE * rate / NORMAL_ENGINE_RATE
        return words * 60.0 / wpm

    def _start_locked(self, utterance: ScheduledUtterance) -> None:
        self._current = utterance
        self._timer = threading.Timer(self._duration(utterance), self._on_timer, args=(utterance.seq,))
        self._timer.daemon = True
        self._timer.start()

    def _announce(self, utterance: ScheduledUtterance) -> None:
        print(f"[SAY {utterance.channel}] {utterance.text}")
        self._notify(UtteranceStarted(now_ms(), utterance.channel, utterance.seq))

    def _on_timer(self, seq: int) -> None:
        with self._lock:
            finished = self._current
            if finished is None or finished.seq != seq:
                return  # stopped meanwhile
            self._current = None
            self._timer = None
            upcoming = self._backlog.pop(0) if self._backlog else None
            if upcoming is not None:
                self._start_locked(upcoming)
        self._notify(UtteranceFinished(now_ms(), finished.channel, finished.seq))
        if upcoming is not None:
            self._announce(upcoming)
        log.debug("%s finished seq=%d", self._name, seq)
