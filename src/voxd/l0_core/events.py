from __future__ import annotations

from enum import Enum
import time
from dataclasses import dataclass
from typing import Union

# Channel keys are list indices or configured names, depending on the settings shape.
ChannelKey = Union[int, str]


def now_ms() -> int:
    """Gives a steady (monotonic) clock for event timing in milliseconds
        for timestamps in logs/events (steady, not wall-clock).
    """
    return time.monotonic_ns() // 1_000_000


class VoiceQuality(str, Enum):
    DEFAULT = "default"
    ENHANCED = "enhanced"
    PREMIUM = "premium"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class VoiceInfo:
    """
    One voice as enumerated by a speech engine.

    Fields:
      - id: engine-specific identifier passed back to the engine when speaking
      - name: human-facing name used for lookup (e.g., "Samantha")
      - language: BCP-47-ish tag as reported by the engine (e.g., "en-US"), may be ""
      - quality: quality tier, UNKNOWN when the engine does not say
    """
    id: str
    name: str
    language: str = ""
    quality: VoiceQuality = VoiceQuality.UNKNOWN


@dataclass(frozen=True, slots=True)
class UtteranceRequest:
    """
    A piece of text bound for one channel, as decoded from a POST /speak body.

    channel : int | str
        Channel reference. Not validated here; the ChannelRegistry resolves it
        and the SpeechManager drops references that do not resolve.
    text : str
        The text to speak.
    """
    channel: ChannelKey
    text: str


@dataclass(frozen=True, slots=True)
class SpeechParams:
    """
    Engine-ready voice parameters.

    Fields
    ------
    pitch : float
        Pitch multiplier (1.0 = engine normal).
    rate : float
        Engine speaking rate where 0.5 is normal speed. Channels are configured
        with a multiplier (1.0 = normal) and halve it when building these params.
    volume : float
        0.0 (silent) .. 1.0 (full).
    voice_id : str | None
        Engine voice identifier; None lets the engine use its default voice.
    """
    pitch: float = 1.0
    rate: float = 0.5
    volume: float = 1.0
    voice_id: str | None = None


@dataclass(frozen=True, slots=True)
class ScheduledUtterance:
    """
    An UtteranceRequest resolved against a channel and queued by the SpeechManager.

    seq is assigned from a process-wide monotonically increasing counter when the
    utterance is scheduled. Engines echo it back in every SpeechEvent so the
    manager can tell the current queue head from superseded utterances; two
    utterances with identical text are still distinct.
    """
    seq: int
    channel: ChannelKey
    text: str
    params: SpeechParams


@dataclass(frozen=True, slots=True)
class UtteranceStarted:
    timestamp_millis: int
    channel: ChannelKey
    seq: int


@dataclass(frozen=True, slots=True)
class UtteranceFinished:
    """The engine spoke the utterance to the end."""
    timestamp_millis: int
    channel: ChannelKey
    seq: int


@dataclass(frozen=True, slots=True)
class UtteranceCancelled:
    """The utterance was interrupted or dropped before it finished (engine stop())."""
    timestamp_millis: int
    channel: ChannelKey
    seq: int


SpeechEvent = Union[UtteranceStarted, UtteranceFinished, UtteranceCancelled]

# EventBus topics for engine notifications
TOPIC_STARTED = "speech.started"
TOPIC_FINISHED = "speech.finished"
TOPIC_CANCELLED = "speech.cancelled"


def topic_for(event: SpeechEvent) -> str:
    """Map a SpeechEvent to the EventBus topic it is published on."""
    if isinstance(event, UtteranceFinished):
        return TOPIC_FINISHED
    if isinstance(event, UtteranceCancelled):
        return TOPIC_CANCELLED
    return TOPIC_STARTED
