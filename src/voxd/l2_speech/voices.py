from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Optional, Sequence
import logging

from voxd.l0_core.errors import VoiceNotFoundError
from voxd.l0_core.events import VoiceInfo

log = logging.getLogger(__name__)

NAME_WIDTH = 15
QUALITY_WIDTH = 8


class VoiceResolution(str, Enum):
    """What to do when a configured voice name matches no engine voice."""
    FAIL_FAST = "fail-fast"            # abort startup with VoiceNotFoundError
    ENGINE_DEFAULT = "engine-default"  # warn and let the engine pick its default voice


def filter_voices(voices: Iterable[VoiceInfo], languages: Sequence[str]) -> List[VoiceInfo]:
    """
    Keep voices whose language equals one of ``languages`` (case-insensitive).

    An empty ``languages`` keeps every voice.
    """
    wanted = {lang.lower() for lang in languages}
    return [v for v in voices if not wanted or v.language.lower() in wanted]


def format_voice_table(voices: Iterable[VoiceInfo]) -> List[str]:
    """Render voices as fixed-width 'Name Quality Language' lines, header first."""
    lines = [f"{'Name':<{NAME_WIDTH}} {'Quality':<{QUALITY_WIDTH}} Language"]
    for v in voices:
        name = v.name[:NAME_WIDTH].ljust(NAME_WIDTH)
        lines.append(f"{name} {v.quality.value:<{QUALITY_WIDTH}} {v.language}")
    return lines


def resolve_voice(name: str, voices: Iterable[VoiceInfo],
                  policy: VoiceResolution = VoiceResolution.FAIL_FAST) -> Optional[VoiceInfo]:
    """
    Find the voice whose name equals ``name`` case-insensitively.

    Returns:
        The first matching VoiceInfo, or None under ENGINE_DEFAULT when nothing matches.

    Raises:
        VoiceNotFoundError: Under FAIL_FAST when nothing matches.
    """
    wanted = name.lower()
    for voice in voices:
        if voice.name.lower() == wanted:
            return voice
    if policy is VoiceResolution.FAIL_FAST:
        raise VoiceNotFoundError(name)
    log.warning("Unknown voice '%s'; using the engine default voice", name)
    return None
