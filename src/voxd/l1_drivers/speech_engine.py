from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable, Optional

from voxd.l0_core.events import ScheduledUtterance, SpeechEvent

# Receives every started/finished/cancelled notification for one engine.
SpeechListener = Callable[[SpeechEvent], None]


class SpeechEngine(ABC):
    """
    Base class for speech engines (one instance per channel).

    Responsibility:
    - Start speaking a ScheduledUtterance with its SpeechParams.
    - Stop immediately on request.
    - Report exactly one terminal event per submitted utterance:
      UtteranceFinished when spoken to the end, UtteranceCancelled when
      interrupted or dropped by stop(). An UtteranceStarted may precede it.

    Threading:
    - speak(...) and stop() must return quickly. They are called while the
      SpeechManager holds its lock; queue work internally rather than block.
    - The listener may be invoked from any engine-owned thread.
    """

    def __init__(self) -> None:
        self._listener: Optional[SpeechListener] = None

    def set_listener(self, listener: Optional[SpeechListener]) -> None:
        """
        Register or remove the callback for this engine's SpeechEvents.

        Passing None drops notifications, which is what close() relies on to
        keep late events from reaching a manager that is shutting down.
        """
        self._listener = listener

    def _notify(self, event: SpeechEvent) -> None:
        listener = self._listener
        if listener is not None:
            listener(event)

    def open(self) -> None:
        """Acquire engine resources (threads, native handles). Default: nothing to do."""

    @abstractmethod
    def speak(self, utterance: ScheduledUtterance) -> None:
        """Begin speaking (or enqueue) the utterance; return immediately."""
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        """Interrupt the current utterance and discard anything queued."""
        raise NotImplementedError

    @abstractmethod
    def is_speaking(self) -> bool:
        """True while an utterance is queued or being spoken."""
        raise NotImplementedError

    def close(self) -> None:
        """Release engine resources. Default: stop and detach the listener."""
        self.stop()
        self.set_listener(None)
