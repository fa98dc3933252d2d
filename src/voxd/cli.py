"""
voxd command line
=================

    voxd [--config PATH] [--engine {print,pyttsx3}] [--log-level LEVEL] [voices [LANG ...] | serve]

- voices:  list the engine's voices, optionally only those whose language
           equals one of LANG (case-insensitive).
- serve:   (default) load settings and speak POST /speak batches until Ctrl+C.
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from voxd.l0_core import EventBus, VoxdError
from voxd.l0_core.events import ChannelKey, VoiceInfo
from voxd.l1_drivers.print_engine import PrintSpeechEngine
from voxd.l1_drivers.pyttsx3_engine import Pyttsx3Engine, list_voices
from voxd.l1_drivers.speech_engine import SpeechEngine
from voxd.l2_speech.channels import ChannelRegistry
from voxd.l2_speech.speech_manager import SpeechManager
from voxd.l2_speech.voices import VoiceResolution, filter_voices, format_voice_table
from voxd.l3_domain.bridges.speak_http_bridge import SpeakHttpBridge
from voxd.l3_domain.config import DEFAULT_CONFIG_PATH, Settings, load_settings

log = logging.getLogger("voxd")


@dataclass(frozen=True)
class Backend:
    """A speech backend: how to make one engine per channel and how to list voices."""
    engine_factory: Callable[[ChannelKey], SpeechEngine]
    list_voices: Callable[[], List[VoiceInfo]]
    # print has no voices to match against, so unknown voices must not be fatal
    resolves_voices: bool = True


BACKENDS = {
    "pyttsx3": Backend(
        engine_factory=lambda key: Pyttsx3Engine(name=f"channel-{key}"),
        list_voices=list_voices,
    ),
    "print": Backend(
        engine_factory=lambda key: PrintSpeechEngine(name=f"channel-{key}"),
        list_voices=lambda: [],
        resolves_voices=False,
    ),
}


class Daemon:
    """
    Wires the runtime together.

    What this object holds
    ----------------------
    1) An EventBus (bounded queue + one dispatcher thread) that carries engine
       started/finished/cancelled events to the SpeechManager.
    2) The ChannelRegistry: one engine per configured channel.
    3) The SpeechManager, subscribed to the bus.
    4) The SpeakHttpBridge feeding POST /speak batches into the manager.
    """

    def __init__(self, settings: Settings, backend: Backend) -> None:
        policy = settings.voice_resolution
        if not backend.resolves_voices and policy is not VoiceResolution.ENGINE_DEFAULT:
            log.info("engine has no voice list; using engine-default voice resolution")
            policy = VoiceResolution.ENGINE_DEFAULT

        voices = backend.list_voices() if backend.resolves_voices else []
        self.registry = ChannelRegistry.build(settings.channels, backend.engine_factory, voices, policy)
        self.bus = EventBus(capacity=1024, publish_timeout_ms=10)
        self.manager = SpeechManager(self.registry)
        self.manager.attach(self.bus)
        try:
            self.bridge = SpeakHttpBridge(
                self.manager, key_type=self.registry.key_type, host=settings.host, port=settings.port
            )
        except OSError as e:
            self.bus.close()
            raise VoxdError(f"cannot listen on {settings.host}:{settings.port}: {e}") from e

    def start(self) -> None:
        self.registry.open_all()
        self.bridge.start()

    def stop(self) -> None:
        """Stop accepting requests, silence every channel and release engines."""
        try:
            self.bridge.stop()
            self.manager.stop_speaking()
        finally:
            self.registry.close_all()
            self.bus.close()


# ---- commands ----
def cmd_voices(backend: Backend, languages: Sequence[str]) -> int:
    for line in format_voice_table(filter_voices(backend.list_voices(), languages)):
        print(line)
    return 0


def cmd_serve(settings: Settings, backend: Backend) -> int:
    daemon = Daemon(settings, backend)
    daemon.start()
    host, port = daemon.bridge.address
    print(f"Have {len(daemon.registry)} channels")
    print(f"[voxd] listening on http://{host}:{port}/speak  (Ctrl+C to exit)")
    print("Try:")
    print('  curl -i -H "Content-Type: application/json" \\')
    print('    -d \'[{"channel":0,"text":"Hello there"}]\' \\')
    print(f"    http://{host}:{port}/speak")

    def _on_signal(sig, frame):
        print("\n[voxd] shutting down...")
        try:
            daemon.stop()
        finally:
            sys.exit(0)

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    # Keep the process alive; requests and engine events run on their own threads.
    while True:
        time.sleep(1)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="voxd", description="Local multi-channel text-to-speech daemon")
    ap.add_argument("--config", default=str(DEFAULT_CONFIG_PATH),
                    help=f"Settings file, JSON or YAML (default: {DEFAULT_CONFIG_PATH})")
    ap.add_argument("--engine", choices=sorted(BACKENDS), default="pyttsx3",
                    help="Speech backend (default: pyttsx3)")
    ap.add_argument("--log-level", default="INFO",
                    choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level (default: INFO)")

    sub = ap.add_subparsers(dest="command", metavar="{voices,serve}")
    voices = sub.add_parser("voices", help="List available voices")
    voices.add_argument("languages", nargs="*", metavar="LANG", help="Only voices of these languages, e.g. en-US")
    sub.add_parser("serve", help="Serve POST /speak (default)")
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    backend = BACKENDS[args.engine]

    try:
        if args.command == "voices":
            return cmd_voices(backend, args.languages)
        settings = load_settings(args.config)
        return cmd_serve(settings, backend)
    except VoxdError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
