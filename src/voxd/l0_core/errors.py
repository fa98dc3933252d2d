class VoxdError(Exception):
    """Base exception for all voxd errors."""


class ConfigError(VoxdError):
    """Settings file missing, unreadable or malformed. Fatal at startup."""


class VoiceNotFoundError(VoxdError):
    """A configured voice name matched none of the engine's voices."""

    def __init__(self, voice_name: str) -> None:
        super().__init__(f"Unknown voice: {voice_name}")
        self.voice_name = voice_name


class EngineError(VoxdError):
    """The speech engine failed to start, speak or stop."""
