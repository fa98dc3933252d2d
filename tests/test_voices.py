import pytest

from voxd.l0_core.errors import VoiceNotFoundError
from voxd.l0_core.events import VoiceInfo, VoiceQuality
from voxd.l2_speech.voices import VoiceResolution, filter_voices, format_voice_table, resolve_voice


def test_filter_by_language_is_case_insensitive_exact(voices):
    extra = VoiceInfo(id="x", name="Fred", language="en-USX")

    picked = filter_voices(voices + [extra], ["EN-us"])

    assert [v.name for v in picked] == ["Samantha"]


def test_filter_accepts_several_languages(voices):
    picked = filter_voices(voices, ["en-us", "fr-fr"])
    assert [v.name for v in picked] == ["Samantha", "Amélie"]


def test_empty_filter_keeps_everything(voices):
    assert filter_voices(voices, []) == voices


def test_table_layout(voices):
    lines = format_voice_table(voices)

    assert lines[0] == "Name            Quality  Language"
    assert lines[1] == "Samantha        default  en-US"
    assert lines[2] == "Daniel          enhanced en-GB"
    assert lines[3] == "Amélie          premium  fr-FR"


def test_table_truncates_long_names_and_shows_unknown_quality():
    lines = format_voice_table([VoiceInfo(id="v", name="A very long voice name", language="")])
    assert lines[1] == "A very long voi unknown  "


def test_resolve_voice_policies(voices):
    assert resolve_voice("SAMANTHA", voices).quality is VoiceQuality.DEFAULT
    assert resolve_voice("nobody", voices, VoiceResolution.ENGINE_DEFAULT) is None
    with pytest.raises(VoiceNotFoundError):
        resolve_voice("nobody", voices, VoiceResolution.FAIL_FAST)
