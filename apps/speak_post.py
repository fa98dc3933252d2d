#!/usr/bin/env python3
"""
speak_post.py - tiny client to send utterance batches to a running voxd.

Examples:
  # one utterance on channel 0
  ./apps/speak_post.py "Hello there"

  # several utterances, spoken in order on channel 1
  ./apps/speak_post.py --channel 1 "First line" "Second line"

  # named channels (settings with a "channels" mapping)
  ./apps/speak_post.py --channel narrator "Once upon a time"

  # silence every channel
  ./apps/speak_post.py --stop
"""
from __future__ import annotations

import argparse
import json
from urllib import error, request

DEFAULT_URL = "http://127.0.0.1:1729/speak"


def post_json(url: str, payload: list) -> int:
    data = json.dumps(payload).encode("utf-8")
    req = request.Request(url, data=data, headers={"Content-Type": "application/json"})
    try:
        with request.urlopen(req, timeout=5) as resp:
            print(f"[HTTP {resp.status}]")
            return 0
    except error.HTTPError as e:
        print(f"[HTTP {e.code}] rejected")
        return 1


def _channel_ref(value: str) -> int | str:
    return int(value) if value.lstrip("-").isdigit() else value


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Send an utterance batch to voxd")
    ap.add_argument("--url", default=DEFAULT_URL, help=f"Endpoint URL (default: {DEFAULT_URL})")
    ap.add_argument("--channel", default="0", help="Channel index or name (default: 0)")
    ap.add_argument("--stop", action="store_true", help="Send an empty batch (silences all channels)")
    ap.add_argument("text", nargs="*", help="Utterances, spoken in order")

    args = ap.parse_args(argv)

    if args.stop and args.text:
        ap.error("Use either --stop or text (not both).")
    if not args.stop and not args.text:
        ap.error("Provide text to speak or --stop.")

    channel = _channel_ref(args.channel)
    payload = [{"channel": channel, "text": t} for t in args.text]
    return post_json(args.url, payload)


if __name__ == "__main__":
    raise SystemExit(main())
