from __future__ import annotations

from typing import Any, Callable, List, Optional
import threading
import logging

import pyttsx3  # offline TTS; drives espeak / nsss / sapi5 depending on platform
from pyttsx3.engine import Engine

from voxd.l0_core.bounded_queue import BoundedQueue
from voxd.l0_core.errors import EngineError
from voxd.l0_core.events import (
    ScheduledUtterance, SpeechParams, UtteranceCancelled, UtteranceFinished,
    UtteranceStarted, VoiceInfo, VoiceQuality, now_ms,
)
from .speech_engine import SpeechEngine

# pyttsx3 speaks in words per minute; SpeechParams.rate 0.5 maps to this.
BASE_WORDS_PER_MINUTE = 200
NORMAL_ENGINE_RATE = 0.5

PENDING_QUEUE_MAX = 256
Q_PUT_TIMEOUT = 0.01
Q_GET_TIMEOUT = 0.10
SENTINEL = object()  # wakes the worker during close()

log = logging.getLogger(__name__)


def words_per_minute(engine_rate: float) -> int:
    """Convert an engine rate (0.5 = normal) into pyttsx3's words-per-minute rate."""
    return max(1, int(round(BASE_WORDS_PER_MINUTE * engine_rate / NORMAL_ENGINE_RATE)))


def voice_quality(voice_id: str) -> VoiceQuality:
    """
    Infer the quality tier from a voice identifier.

    macOS identifiers carry the tier ("com.apple.voice.premium.en-US.Zoe",
    "com.apple.voice.compact.en-US.Samantha"); other backends say nothing.
    """
    vid = voice_id.lower()
    if ".premium." in vid:
        return VoiceQuality.PREMIUM
    if ".enhanced." in vid:
        return VoiceQuality.ENHANCED
    if ".compact." in vid or "speech.synthesis.voice." in vid:
        return VoiceQuality.DEFAULT
    return VoiceQuality.UNKNOWN


def _language_of(voice: Any) -> str:
    langs = getattr(voice, "languages", None) or []
    if not langs:
        return ""
    lang = langs[0]
    if isinstance(lang, bytes):
        # espeak prefixes the language with a priority byte
        lang = lang.decode("utf-8", "replace")
    lang = "".join(ch for ch in str(lang) if ch.isprintable()).strip()
    return lang.replace("_", "-")


def voice_info(voice: Any) -> VoiceInfo:
    """Build a VoiceInfo from a pyttsx3 Voice object."""
    vid = str(getattr(voice, "id", "") or "")
    name = str(getattr(voice, "name", "") or vid)
    return VoiceInfo(id=vid, name=name, language=_language_of(voice), quality=voice_quality(vid))


def list_voices(driver_name: Optional[str] = None) -> List[VoiceInfo]:
    """
    Enumerate the voices of the platform's pyttsx3 driver.

    Raises:
        EngineError: If the driver cannot be loaded.
    """
    try:
        engine = pyttsx3.init(driver_name)
        voices = engine.getProperty("voices") or []
    except Exception as e:
        raise EngineError(f"Failed to enumerate voices: {e}") from e
    return [voice_info(v) for v in voices]


class Pyttsx3Engine(SpeechEngine):
    """
    SpeechEngine backed by a private pyttsx3 Engine.

    pyttsx3 blocks inside runAndWait() while it speaks, and its engines are not
    meant to be shared across threads, so each instance owns:
    - a worker thread that creates the pyttsx3 Engine and speaks one utterance
      at a time, and
    - a bounded pending queue fed by speak().

    Cancellation:
    - stop() bumps a generation counter, drains the pending queue (each
      drained utterance is reported as cancelled) and interrupts the current
      utterance with Engine.stop(), which ends runAndWait() early.
    - Items tagged with an older generation that the worker already dequeued
      are reported cancelled instead of being spoken. The worker checks the
      generation again right before say(); if a stop() slips in after that,
      the started-utterance callback interrupts playback itself, because
      Engine.stop() does nothing while the driver is not yet playing.

    Pitch:
    - pyttsx3 exposes no portable pitch property; SpeechParams.pitch is not applied.
    """

    def __init__(self, driver_name: Optional[str] = None,
                 engine_factory: Optional[Callable[[], Any]] = None,
                 name: str = "speech") -> None:
        super().__init__()
        self._engine_factory = engine_factory or (lambda: Engine(driver_name))
        self._name = name

        self._pending = BoundedQueue(PENDING_QUEUE_MAX, f"{name}-pending")
        self._state_lock = threading.Lock()
        self._generation = 0
        self._current: Optional[ScheduledUtterance] = None
        self._current_generation = 0

        self._engine: Any = None
        self._default_voice: Optional[str] = None
        self._ready = threading.Event()
        self._stop_flag = threading.Event()
        self._worker: Optional[threading.Thread] = None

    # ---- lifecycle ----
    def open(self) -> None:
        """
        Start the worker thread and wait until it has created its pyttsx3 Engine.

        Raises:
            EngineError: If the engine could not be created within 5 seconds.
        """
        if self._worker is not None:
            return
        self._stop_flag.clear()
        self._worker = threading.Thread(
            target=self._worker_loop, name=f"{self._name}-worker", daemon=True
        )
        self._worker.start()
        if not self._ready.wait(timeout=5.0) or self._engine is None:
            raise EngineError(f"pyttsx3 engine for '{self._name}' failed to start")

    def close(self) -> None:
        """Stop speaking, detach the listener and join the worker thread."""
        self.set_listener(None)
        self.stop()
        self._stop_flag.set()
        self._pending.put(SENTINEL, timeout=0)
        t = self._worker
        if t and t.is_alive() and t is not threading.current_thread():
            t.join(timeout=1.0)
            if t.is_alive():
                log.warning("%s worker did not stop within 1s", self._name)
        self._worker = None

    # ---- SpeechEngine API ----
    def speak(self, utterance: ScheduledUtterance) -> None:
        with self._state_lock:
            generation = self._generation
        if not self._pending.put((generation, utterance), timeout=Q_PUT_TIMEOUT):
            log.warning("%s pending queue full; dropping seq=%d", self._name, utterance.seq)
            self._notify(UtteranceCancelled(now_ms(), utterance.channel, utterance.seq))

    def stop(self) -> None:
        with self._state_lock:
            self._generation += 1
            speaking = self._current is not None
        for item in self._pending.drain():
            if item is SENTINEL:
                continue
            _, utterance = item
            self._notify(UtteranceCancelled(now_ms(), utterance.channel, utterance.seq))
        if speaking and self._engine is not None:
            try:
                self._engine.stop()
            except Exception as e:
                raise EngineError(f"{self._name}: stop failed: {e}") from e

    def is_speaking(self) -> bool:
        with self._state_lock:
            return self._current is not None or self._pending.qsize() > 0

    # ---- worker ----
    def _worker_loop(self) -> None:
        try:
            engine = self._engine_factory()
            engine.connect("started-utterance", self._on_started)
            engine.connect("finished-utterance", self._on_finished)
            self._default_voice = engine.getProperty("voice")
        except Exception:
            log.exception("%s: failed to create pyttsx3 engine", self._name)
            self._ready.set()
            return
        self._engine = engine
        self._ready.set()
        log.info("%s worker started", self._name)

        while not self._stop_flag.is_set():
            ok, item = self._pending.get(timeout=Q_GET_TIMEOUT)
            if not ok:
                continue
            if item is SENTINEL:
                break
            generation, utterance = item
            with self._state_lock:
                stale = generation != self._generation
                if not stale:
                    self._current = utterance
                    self._current_generation = generation
            if stale:
                self._notify(UtteranceCancelled(now_ms(), utterance.channel, utterance.seq))
                continue
            self._run_one(engine, utterance, generation)
        log.info("%s worker stopped", self._name)

    def _run_one(self, engine: Any, utterance: ScheduledUtterance, generation: int) -> None:
        try:
            self._apply(engine, utterance.params)
            # Engine.stop() is a no-op until playback begins; a stop() that landed
            # since dequeue must be caught here.
            with self._state_lock:
                superseded = generation != self._generation
            if not superseded:
                engine.say(utterance.text, str(utterance.seq))
                engine.runAndWait()
        except Exception:
            log.exception("%s: failed to speak seq=%d", self._name, utterance.seq)
        # No finished-utterance callback (superseded, driver error or interrupted before start).
        leftover = self._take_current(utterance.seq)
        if leftover is not None:
            self._notify(UtteranceCancelled(now_ms(), leftover.channel, leftover.seq))

    def _apply(self, engine: Any, params: SpeechParams) -> None:
        engine.setProperty("rate", words_per_minute(params.rate))
        engine.setProperty("volume", max(0.0, min(1.0, params.volume)))
        voice = params.voice_id or self._default_voice
        if voice:
            engine.setProperty("voice", voice)

    def _take_current(self, seq: int) -> Optional[ScheduledUtterance]:
        with self._state_lock:
            current = self._current
            if current is None or current.seq != seq:
                return None
            self._current = None
            return current

    # ---- pyttsx3 callbacks (run on the worker thread inside runAndWait) ----
    def _on_started(self, name: str) -> None:
        with self._state_lock:
            current = self._current
            stale = self._current_generation != self._generation
        if current is None or str(current.seq) != name:
            return
        if stale:
            # stop() arrived between the generation check and playback
            log.debug("%s: interrupting superseded seq=%d", self._name, current.seq)
            self._engine.stop()
            return
        self._notify(UtteranceStarted(now_ms(), current.channel, current.seq))

    def _on_finished(self, name: str, completed: bool) -> None:
        try:
            seq = int(name)
        except (TypeError, ValueError):
            log.debug("%s: ignoring finished-utterance for unknown name %r", self._name, name)
            return
        utterance = self._take_current(seq)
        if utterance is None:
            return
        if completed:
            self._notify(UtteranceFinished(now_ms(), utterance.channel, utterance.seq))
        else:
            self._notify(UtteranceCancelled(now_ms(), utterance.channel, utterance.seq))

