import json
import os
import signal
import time
from urllib import error, request

import pytest

from voxd import cli
from voxd.l0_core.events import UtteranceRequest
from voxd.l2_speech.channels import ChannelSettings
from voxd.l2_speech.speech_manager import ChannelState
from voxd.l2_speech.voices import VoiceResolution
from voxd.l3_domain.config import Settings

from conftest import VOICES


@pytest.fixture
def print_backend(monkeypatch):
    backend = cli.Backend(
        engine_factory=cli.BACKENDS["print"].engine_factory,
        list_voices=lambda: list(VOICES),
        resolves_voices=False,
    )
    monkeypatch.setitem(cli.BACKENDS, "print", backend)
    return backend


def test_invalid_command_exits_non_zero():
    with pytest.raises(SystemExit) as exc:
        cli.main(["dance"])
    assert exc.value.code != 0


def test_voices_lists_filtered_table(print_backend, capsys):
    assert cli.main(["--engine", "print", "voices", "en-gb"]) == 0

    out = capsys.readouterr().out.splitlines()
    assert out[0].startswith("Name")
    assert [line.split()[0] for line in out[1:]] == ["Daniel"]


def test_voices_without_filter_lists_everything(print_backend, capsys):
    assert cli.main(["--engine", "print", "voices"]) == 0
    assert len(capsys.readouterr().out.splitlines()) == 1 + len(VOICES)


def test_missing_config_is_an_error(tmp_path, capsys):
    assert cli.main(["--engine", "print", "--config", str(tmp_path / "nope.json"), "serve"]) == 1
    assert "ERROR" in capsys.readouterr().err


def test_daemon_speaks_posted_batch(print_backend, capsys):
    settings = Settings(
        port=0,
        channels=(ChannelSettings(), ChannelSettings(voice="Nobody")),
        voice_resolution=VoiceResolution.FAIL_FAST,
    )
    daemon = cli.Daemon(settings, print_backend)
    daemon.start()
    try:
        host, port = daemon.bridge.address
        body = json.dumps([{"channel": 1, "text": "hello daemon"}]).encode()
        req = request.Request(f"http://{host}:{port}/speak", data=body,
                              headers={"Content-Type": "application/json"})
        with request.urlopen(req, timeout=2.0) as resp:
            assert resp.status == 202

        out = ""
        deadline = time.monotonic() + 2.0
        while "[SAY 1] hello daemon" not in out and time.monotonic() < deadline:
            time.sleep(0.01)
            out += capsys.readouterr().out
        assert "[SAY 1] hello daemon" in out
    finally:
        daemon.stop()

    assert daemon.manager.state(1) is ChannelState.IDLE


@pytest.fixture
def restore_signal_handlers():
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler)


def test_sigint_shuts_down_and_exits_zero(print_backend, monkeypatch, capsys, restore_signal_handlers):
    daemons = []

    class RecordingDaemon(cli.Daemon):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            daemons.append(self)

    real_sleep = time.sleep

    def interrupt(seconds):
        daemon = daemons[0]
        daemon.manager.schedule([UtteranceRequest(0, "still talking when the user hits ctrl c")])
        assert daemon.manager.state(0) is ChannelState.SPEAKING
        os.kill(os.getpid(), signal.SIGINT)
        for _ in range(200):  # the handler runs on the main thread at the next check
            real_sleep(0.01)
        raise AssertionError("SIGINT handler did not run")

    monkeypatch.setattr(cli, "Daemon", RecordingDaemon)
    monkeypatch.setattr(cli.time, "sleep", interrupt)

    with pytest.raises(SystemExit) as exc:
        cli.cmd_serve(Settings(port=0), print_backend)

    assert exc.value.code == 0
    daemon = daemons[0]
    assert daemon.manager.state(0) is ChannelState.IDLE
    assert "shutting down" in capsys.readouterr().out

    host, port = daemon.bridge.address
    with pytest.raises(error.URLError):
        request.urlopen(request.Request(f"http://{host}:{port}/speak", data=b"[]"), timeout=1.0)
