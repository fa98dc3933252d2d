from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Tuple, Union
import json
import logging

import yaml

from voxd.l0_core.errors import ConfigError
from voxd.l2_speech.channels import ChannelSettings, DEFAULT_VOICE_NAME
from voxd.l2_speech.voices import VoiceResolution

DEFAULT_CONFIG_PATH = Path("~/.config/voxd.json")
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 1729

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Immutable daemon settings.

    Fields
    ------
    port : int
        TCP port for the HTTP endpoint. Defaults to 1729.
    host : str
        Interface to bind. Defaults to localhost only.
    channels : tuple[ChannelSettings, ...] | Mapping[str, ChannelSettings]
        A tuple gives index-addressed channels, a mapping name-addressed ones.
        Defaults to a single channel with default parameters.
    voice_resolution : VoiceResolution
        What to do with a voice name no engine voice matches.
    """
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    channels: Union[Tuple[ChannelSettings, ...], Mapping[str, ChannelSettings]] = field(
        default_factory=lambda: (ChannelSettings(),)
    )
    voice_resolution: VoiceResolution = VoiceResolution.FAIL_FAST


def _number(data: Mapping[str, Any], key: str, default: float) -> float:
    v = data.get(key, default)
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        log.warning("ignoring non-numeric %s=%r; using %s", key, v, default)
        return default
    return float(v)


def _channel(data: Any) -> ChannelSettings:
    """Build ChannelSettings; a missing or mistyped field takes its default."""
    if not isinstance(data, Mapping):
        raise ConfigError(f"channel must be an object, got {type(data).__name__}")
    voice = data.get("voice", DEFAULT_VOICE_NAME)
    if not isinstance(voice, str) or not voice.strip():
        log.warning("ignoring invalid voice=%r; using %s", voice, DEFAULT_VOICE_NAME)
        voice = DEFAULT_VOICE_NAME
    return ChannelSettings(
        pitch=_number(data, "pitch", 1.0),
        rate=_number(data, "rate", 1.0),
        volume=_number(data, "volume", 1.0),
        voice=voice.strip(),
    )


def _port(data: Mapping[str, Any]) -> int:
    v = data.get("port", DEFAULT_PORT)
    if isinstance(v, bool) or not isinstance(v, int) or not 0 < v < 65536:
        log.warning("ignoring invalid port=%r; using %d", v, DEFAULT_PORT)
        return DEFAULT_PORT
    return v


def parse_settings(data: Any) -> Settings:
    """
    Build Settings from an already-decoded JSON/YAML document.

    Raises ConfigError when the document or a channel is not an object, the
    channels are neither a list nor a mapping, or voice_resolution is unknown.
    """
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigError("settings must be an object")

    raw_channels = data.get("channels")
    channels: Union[Tuple[ChannelSettings, ...], Mapping[str, ChannelSettings]]
    if raw_channels is None:
        channels = (ChannelSettings(),)
    elif isinstance(raw_channels, list):
        channels = tuple(_channel(c) for c in raw_channels)
    elif isinstance(raw_channels, Mapping):
        channels = {str(name): _channel(c) for name, c in raw_channels.items()}
    else:
        raise ConfigError("channels must be a list or an object")

    try:
        policy = VoiceResolution(str(data.get("voice_resolution", VoiceResolution.FAIL_FAST.value)))
    except ValueError as e:
        valid = ", ".join(p.value for p in VoiceResolution)
        raise ConfigError(f"voice_resolution must be one of: {valid}") from e

    host = data.get("host", DEFAULT_HOST)
    if not isinstance(host, str) or not host.strip():
        host = DEFAULT_HOST

    return Settings(port=_port(data), host=host.strip(), channels=channels, voice_resolution=policy)


def load_settings(path: str | Path = DEFAULT_CONFIG_PATH) -> Settings:
    """
    Load daemon settings from a JSON or YAML file.

    Supported shapes:
      JSON (list: channels addressed by index):
        {"port": 1729,
         "channels": [{"pitch": 1.0, "rate": 1.0, "volume": 1.0, "voice": "Samantha"},
                      {"voice": "Daniel", "rate": 1.2}]}

      YAML (mapping: channels addressed by name, "default" catches unknown names):
        port: 1729
        voice_resolution: engine-default
        channels:
          default: {voice: Samantha}
          narrator: {voice: Daniel, pitch: 0.9}

    Raises ConfigError on a missing/unreadable file or malformed content.
    """
    p = Path(path).expanduser()
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read settings file {p}: {e}") from e

    try:
        if p.suffix.lower() in {".yml", ".yaml"}:
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"malformed settings file {p}: {e}") from e

    settings = parse_settings(data)
    log.info("loaded settings from %s (%d channel(s))", p, len(settings.channels))
    return settings
