import pytest

from voxd.l0_core.errors import VoiceNotFoundError
from voxd.l2_speech.channels import ChannelSettings
from voxd.l2_speech.voices import VoiceResolution


def test_index_registry_bounds_checks(make_registry):
    registry = make_registry()

    assert registry.key_type is int
    assert registry.resolve(0).key == 0
    assert registry.resolve(1).key == 1
    assert registry.resolve(2) is None
    assert registry.resolve(-1) is None
    assert registry.resolve("0") is None
    assert registry.resolve(True) is None


def test_named_registry_uses_default_sentinel(make_registry):
    registry = make_registry({"default": ChannelSettings(), "alerts": ChannelSettings(volume=0.3)})

    assert registry.named and registry.key_type is str
    assert registry.resolve("alerts").key == "alerts"
    assert registry.resolve("missing").key == "default"
    assert registry.resolve(0) is None


def test_named_registry_without_default_drops_unknown_names(make_registry):
    registry = make_registry({"alerts": ChannelSettings()})
    assert registry.resolve("missing") is None


def test_voice_is_matched_case_insensitively(make_registry):
    registry = make_registry([ChannelSettings(voice="daniel"), ChannelSettings(voice="AMÉLIE")])

    assert registry[0].voice.id == "com.apple.voice.enhanced.en-GB.Daniel"
    assert registry[1].voice.name == "Amélie"


def test_unknown_voice_is_fatal_under_fail_fast(make_registry, engines):
    with pytest.raises(VoiceNotFoundError) as exc:
        make_registry([ChannelSettings(), ChannelSettings(voice="Nobody")])

    assert "Nobody" in str(exc.value)
    assert engines == {}  # nothing allocated


def test_unknown_voice_falls_back_under_engine_default(make_registry):
    registry = make_registry([ChannelSettings(voice="Nobody")], policy=VoiceResolution.ENGINE_DEFAULT)

    assert registry[0].voice is None
    assert registry[0].speech_params().voice_id is None


def test_one_engine_per_channel(make_registry, engines):
    registry = make_registry([ChannelSettings(), ChannelSettings(), ChannelSettings()])

    assert len(registry) == 3
    assert len({id(e) for e in engines.values()}) == 3
    assert [c.engine for c in registry] == [engines[0], engines[1], engines[2]]


def test_speech_params_halve_rate_only(make_registry):
    registry = make_registry([ChannelSettings(pitch=1.2, rate=0.8, volume=0.5, voice="Daniel")])

    params = registry[0].speech_params()

    assert (params.pitch, params.rate, params.volume) == (1.2, 0.4, 0.5)
    assert params.voice_id == "com.apple.voice.enhanced.en-GB.Daniel"
