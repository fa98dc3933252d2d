"""
channels.py
===========
Channel Registry: the static, loaded-once mapping from a channel key to its
voice parameters and its dedicated SpeechEngine.

Two shapes are supported, chosen by the settings file:
- list:   channels are addressed by index (0, 1, ...); out-of-range indices
          do not resolve.
- named:  channels are addressed by name; an unknown name resolves to the
          channel called "default" when one is configured.

Usage:
    registry = ChannelRegistry.build(settings.channels, factory, voices)
    channel = registry.resolve(0)
    channel.engine.speak(...)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Union
import logging

from voxd.l0_core.events import ChannelKey, SpeechParams, VoiceInfo
from voxd.l1_drivers.speech_engine import SpeechEngine
from .voices import VoiceResolution, resolve_voice

DEFAULT_VOICE_NAME = "Samantha"
DEFAULT_CHANNEL_NAME = "default"

log = logging.getLogger(__name__)

# Builds the engine owned by one channel.
EngineFactory = Callable[[ChannelKey], SpeechEngine]


@dataclass(frozen=True, slots=True)
class ChannelSettings:
    """
    Voice parameters for one channel, as written in the settings file.

    Fields
    ------
    pitch : float
        Pitch multiplier, 1.0 = normal.
    rate : float
        Speaking-rate multiplier, 1.0 = normal. Halved for the engine.
    volume : float
        0.0 .. 1.0.
    voice : str
        Voice name, matched case-insensitively against the engine's voices.
    """
    pitch: float = 1.0
    rate: float = 1.0
    volume: float = 1.0
    voice: str = DEFAULT_VOICE_NAME


ChannelLayout = Union[Sequence[ChannelSettings], Mapping[str, ChannelSettings]]


@dataclass(frozen=True, slots=True)
class Channel:
    """An independently configured output line. Built once, never mutated."""
    key: ChannelKey
    pitch: float
    rate: float
    volume: float
    voice: Optional[VoiceInfo]  # None = engine default voice
    engine: SpeechEngine

    def speech_params(self) -> SpeechParams:
        """Engine-ready parameters: pitch and volume unchanged, rate halved."""
        return SpeechParams(
            pitch=self.pitch,
            rate=self.rate / 2,
            volume=self.volume,
            voice_id=self.voice.id if self.voice is not None else None,
        )


class ChannelRegistry:
    """
    Immutable set of channels keyed by index or by name.

    Construct with build(); resolve() is safe to call from any thread.
    """

    def __init__(self, channels: Iterable[Channel], named: bool) -> None:
        self._named = named
        self._channels: Dict[ChannelKey, Channel] = {c.key: c for c in channels}

    @classmethod
    def build(cls, layout: ChannelLayout, engine_factory: EngineFactory,
              voices: Sequence[VoiceInfo],
              policy: VoiceResolution = VoiceResolution.FAIL_FAST) -> "ChannelRegistry":
        """
        Resolve every channel's voice and allocate one engine per channel.

        Parameters
        ----------
        layout : list of ChannelSettings, or mapping name -> ChannelSettings
            A list gives index keys; a mapping gives name keys.
        engine_factory : Callable[[ChannelKey], SpeechEngine]
            Called once per channel.
        voices : Sequence[VoiceInfo]
            The engine's enumerated voices.
        policy : VoiceResolution
            FAIL_FAST raises on an unknown voice; ENGINE_DEFAULT falls back.

        Raises
        ------
        VoiceNotFoundError
            Under FAIL_FAST when a configured voice does not exist. No engine
            is allocated in that case.
        """
        named = isinstance(layout, Mapping)
        items = list(layout.items()) if named else list(enumerate(layout))

        # Resolve all voices before allocating engines so a fatal lookup leaves nothing behind.
        resolved = [(key, cfg, resolve_voice(cfg.voice, voices, policy)) for key, cfg in items]

        channels: List[Channel] = []
        for key, cfg, voice in resolved:
            channels.append(Channel(
                key=key,
                pitch=cfg.pitch,
                rate=cfg.rate,
                volume=cfg.volume,
                voice=voice,
                engine=engine_factory(key),
            ))
            log.debug("channel %r: voice=%s pitch=%.2f rate=%.2f volume=%.2f",
                      key, voice.name if voice else "<default>", cfg.pitch, cfg.rate, cfg.volume)
        return cls(channels, named=named)

    @property
    def named(self) -> bool:
        """True when channels are addressed by name rather than index."""
        return self._named

    @property
    def key_type(self) -> type:
        return str if self._named else int

    def resolve(self, ref: object) -> Optional[Channel]:
        """
        Map a channel reference from a request to a Channel, or None.

        Index registries accept only ints in [0, len). Named registries accept
        only strings and fall back to the "default" channel when present.
        """
        if isinstance(ref, bool):
            return None
        if self._named:
            if not isinstance(ref, str):
                return None
            return self._channels.get(ref) or self._channels.get(DEFAULT_CHANNEL_NAME)
        if not isinstance(ref, int) or ref < 0:
            return None
        return self._channels.get(ref)

    def keys(self) -> List[ChannelKey]:
        return list(self._channels)

    def open_all(self) -> None:
        """Open every channel's engine (start worker threads)."""
        for channel in self:
            channel.engine.open()

    def close_all(self) -> None:
        """Close every engine; errors are logged so the rest still close."""
        for channel in self:
            try:
                channel.engine.close()
            except Exception:
                log.exception("Error while closing engine for channel %r", channel.key)

    def __iter__(self) -> Iterator[Channel]:
        return iter(self._channels.values())

    def __len__(self) -> int:
        return len(self._channels)

    def __getitem__(self, key: ChannelKey) -> Channel:
        return self._channels[key]
