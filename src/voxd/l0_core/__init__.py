"""
voxd.l0_core
Foundational Core layer (contracts & buses) for voxd.

Public API:
- now_ms, ChannelKey, VoiceQuality, VoiceInfo
- UtteranceRequest, SpeechParams, ScheduledUtterance
- UtteranceStarted, UtteranceFinished, UtteranceCancelled, SpeechEvent
- EventBus, BoundedQueue
- VoxdError, ConfigError, VoiceNotFoundError, EngineError
"""

from .events import (  # noqa: F401
    now_ms, ChannelKey, VoiceQuality, VoiceInfo,
    UtteranceRequest, SpeechParams, ScheduledUtterance,
    UtteranceStarted, UtteranceFinished, UtteranceCancelled, SpeechEvent,
    TOPIC_STARTED, TOPIC_FINISHED, TOPIC_CANCELLED, topic_for,
)
from .bounded_queue import BoundedQueue  # noqa: F401
from .bus import EventBus  # noqa: F401
from .errors import VoxdError, ConfigError, VoiceNotFoundError, EngineError  # noqa: F401

__all__ = [
    "now_ms", "ChannelKey", "VoiceQuality", "VoiceInfo",
    "UtteranceRequest", "SpeechParams", "ScheduledUtterance",
    "UtteranceStarted", "UtteranceFinished", "UtteranceCancelled", "SpeechEvent",
    "TOPIC_STARTED", "TOPIC_FINISHED", "TOPIC_CANCELLED", "topic_for",
    "EventBus", "BoundedQueue",
    "VoxdError", "ConfigError", "VoiceNotFoundError", "EngineError",
]
