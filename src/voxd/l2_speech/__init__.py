"""
voxd.l2_speech
Channel registry and the speech queue manager.
"""

from .channels import Channel, ChannelRegistry, ChannelSettings  # noqa: F401
from .speech_manager import ChannelState, SpeechManager  # noqa: F401
from .voices import VoiceResolution  # noqa: F401

__all__ = [
    "Channel", "ChannelRegistry", "ChannelSettings",
    "ChannelState", "SpeechManager", "VoiceResolution",
]
