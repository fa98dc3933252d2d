from __future__ import annotations

from typing import Callable, Dict, List, Optional

import pytest

from voxd.l0_core.events import (
    ScheduledUtterance, SpeechEvent, UtteranceCancelled, UtteranceFinished, UtteranceStarted,
    VoiceInfo, VoiceQuality, now_ms,
)
from voxd.l1_drivers.speech_engine import SpeechEngine
from voxd.l2_speech.channels import ChannelRegistry, ChannelSettings
from voxd.l2_speech.speech_manager import SpeechManager
from voxd.l2_speech.voices import VoiceResolution


class RecordingEngine(SpeechEngine):
    """
    In-memory engine: records calls and lets the test decide when an
    utterance finishes. Counts any speak() that arrives while another
    utterance is still in flight.
    """

    def __init__(self) -> None:
        super().__init__()
        self.spoken: List[ScheduledUtterance] = []
        self.cancelled: List[ScheduledUtterance] = []
        self.current: Optional[ScheduledUtterance] = None
        self.stops = 0
        self.overlaps = 0

    def speak(self, utterance: ScheduledUtterance) -> None:
        if self.current is not None:
            self.overlaps += 1
        self.current = utterance
        self.spoken.append(utterance)
        self._notify(UtteranceStarted(now_ms(), utterance.channel, utterance.seq))

    def stop(self) -> None:
        self.stops += 1
        current, self.current = self.current, None
        if current is not None:
            self.cancelled.append(current)
            self._notify(UtteranceCancelled(now_ms(), current.channel, current.seq))

    def is_speaking(self) -> bool:
        return self.current is not None

    def finish(self) -> ScheduledUtterance:
        """Complete the current utterance and report it."""
        current, self.current = self.current, None
        assert current is not None, "nothing in flight"
        self._notify(UtteranceFinished(now_ms(), current.channel, current.seq))
        return current


VOICES = [
    VoiceInfo(id="com.apple.voice.compact.en-US.Samantha", name="Samantha",
              language="en-US", quality=VoiceQuality.DEFAULT),
    VoiceInfo(id="com.apple.voice.enhanced.en-GB.Daniel", name="Daniel",
              language="en-GB", quality=VoiceQuality.ENHANCED),
    VoiceInfo(id="com.apple.voice.premium.fr-FR.Amelie", name="Amélie",
              language="fr-FR", quality=VoiceQuality.PREMIUM),
]


def deliver_to(manager: SpeechManager) -> Callable[[SpeechEvent], None]:
    """Engine listener that routes events straight to the manager (no EventBus)."""
    def _deliver(event: SpeechEvent) -> None:
        if isinstance(event, UtteranceFinished):
            manager.on_utterance_finished(event)
        elif isinstance(event, UtteranceCancelled):
            manager.on_utterance_cancelled(event)
        else:
            manager.on_utterance_started(event)
    return _deliver


def wire(manager: SpeechManager, registry: ChannelRegistry) -> None:
    for channel in registry:
        channel.engine.set_listener(deliver_to(manager))


@pytest.fixture
def voices() -> List[VoiceInfo]:
    return list(VOICES)


@pytest.fixture
def engines() -> Dict[object, RecordingEngine]:
    return {}


@pytest.fixture
def make_registry(engines, voices):
    def _make(layout=None, policy=VoiceResolution.FAIL_FAST) -> ChannelRegistry:
        if layout is None:
            layout = [ChannelSettings(), ChannelSettings(voice="Daniel")]

        def _factory(key):
            engines[key] = RecordingEngine()
            return engines[key]

        return ChannelRegistry.build(layout, _factory, voices, policy)
    return _make


@pytest.fixture
def manager(make_registry):
    registry = make_registry()
    mgr = SpeechManager(registry)
    wire(mgr, registry)
    return mgr
