from __future__ import annotations
"""
Speak HTTP Bridge
=================
This module defines the boundary adapter that accepts utterance batches over
HTTP (on localhost) and hands them to the SpeechManager.

Design intent:
- Keep all HTTP/transport concerns **outside** the core. Inside the app, we
  only deal with typed value objects (UtteranceRequest).
- Protect the process at the trust boundary with explicit validation:
  - Cap body size (prevents unbounded memory use).
  - Require JSON media type when a Content-Type is given.
  - Validate the array and every item's shape before scheduling anything.
- Preserve responsiveness for multiple producers:
  - Use ThreadingHTTPServer so each request is handled in its own short-lived thread.
  - SpeechManager.schedule() only enqueues work for the engines, so requests stay short.

Accepted payload (POST /speak):
  [{"channel": 0, "text": "Hello"}, {"channel": 1, "text": "world"}]
  [{"channel": "narrator", "text": "Hello"}]     # named channel settings

Channels that do not exist are dropped by the SpeechManager; the request is
still accepted.
"""

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, List, Protocol, Sequence, Tuple

from voxd.l0_core.events import UtteranceRequest

# ---- module-level defaults (explicit contract and safe limits) ----
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 1729
DEFAULT_MAX_BODY_BYTES = 256 * 1024  # plenty for a batch of captions
SPEAK_PATH = "/speak"

log = logging.getLogger(__name__)


class Scheduler(Protocol):
    """The one SpeechManager operation the bridge depends on."""
    def schedule(self, requests: Sequence[UtteranceRequest]) -> None: ...


def decode_utterances(raw: bytes, key_type: type = int) -> List[UtteranceRequest]:
    """
    Decode a POST /speak body into UtteranceRequests.

    Parameters:
        raw:       Request body bytes.
        key_type:  int for index-addressed channels, str for named channels.

    Returns:
        The requests in submission order (possibly empty).

    Raises:
        ValueError: Empty body, invalid UTF-8/JSON, not an array, or an item
                    that is not {"channel": <key_type>, "text": <string>}.
    """
    if not raw or not raw.strip():
        raise ValueError("empty body")
    try:
        doc = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"invalid json: {e}") from e
    if not isinstance(doc, list):
        raise ValueError("body must be a JSON array")

    requests: List[UtteranceRequest] = []
    for i, item in enumerate(doc):
        if not isinstance(item, dict):
            raise ValueError(f"item {i} is not an object")
        channel = item.get("channel")
        text = item.get("text")
        if isinstance(channel, bool) or not isinstance(channel, key_type):
            raise ValueError(f"item {i}: channel must be {key_type.__name__}")
        if not isinstance(text, str):
            raise ValueError(f"item {i}: text must be a string")
        requests.append(UtteranceRequest(channel=channel, text=text))
    return requests


class SpeakHttpBridge:
    """
    SpeakHttpBridge
    ---------------
    Purpose:
        Accept utterance batches from local clients and schedule them.

    Responsibilities:
        • Run a small HTTP server bound to localhost.
        • Validate and decode POST /speak bodies into UtteranceRequests.
        • Call scheduler.schedule(...) and answer without a response body:
            - 202 Accepted - batch decoded and scheduled.
            - 422 Unprocessable Entity - empty or undecodable body.

    Non-goals:
        • Do not leak HTTP concepts into the rest of the system.
        • Do not report dropped channel references; the batch is still accepted.

    Threading model:
        Each HTTP request is handled on a short-lived server thread created by
        ThreadingHTTPServer. The SpeechManager serializes schedule() calls with
        its own lock.

    Parameters:
        scheduler:         The SpeechManager (anything with schedule()).
        key_type:          int or str, the channel key type of the registry.
        host:              Interface to bind (default 127.0.0.1).
        port:              TCP port (default 1729; 0 picks a free port).
        max_body_bytes:    Maximum allowed body size in bytes.

    Lifecycle:
        start() → starts background server thread.
        stop()  → shuts down server and joins the thread.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        key_type: type = int,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
    ) -> None:
        self._scheduler = scheduler
        self._key_type = key_type
        self._max_body = max_body_bytes

        # Create a concurrent server so independent clients do not block each other.
        self._server = ThreadingHTTPServer((host, port), self._make_handler())
        self._server.daemon_threads = True

        # Run the server in a background daemon thread so start() is non-blocking.
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="SpeakHttpBridge", daemon=True
        )

    @property
    def address(self) -> Tuple[str, int]:
        """(host, port) actually bound; useful when constructed with port=0."""
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        """
        Start the HTTP server in a background thread.

        Effects:
            • Returns immediately; the server begins accepting POST requests.
        """
        self._thread.start()
        log.info("SpeakHttpBridge listening on http://%s:%d%s", *self.address, SPEAK_PATH)

    def stop(self) -> None:
        """
        Shutdown the HTTP server and join the background thread.

        Notes:
            • Safe to call during application shutdown, also before start().
        """
        if self._thread.is_alive():
            self._server.shutdown()
            self._thread.join(timeout=1.0)
        self._server.server_close()

    # ---- internals (request handling) ----
    def _make_handler(self) -> type[BaseHTTPRequestHandler]:
        """
        Build and return a request handler class bound to this bridge’s configuration.

        The handler enforces:
            • Path must be /speak (otherwise 404).
            • Maximum body size (payload too large → 413).
            • JSON content type when given (unsupported media type → 415).
            • Empty or undecodable body → 422.
            • On success: schedule and respond 202 Accepted.
        """
        scheduler = self._scheduler
        key_type = self._key_type
        max_body = self._max_body

        class Handler(BaseHTTPRequestHandler):
            """Per-request handler bound to the enclosing bridge’s configuration."""

            def _reply(self, code: int) -> None:
                """Send a status line with an empty body."""
                self.send_response(code)
                self.send_header("Content-Length", "0")
                self.end_headers()

            # ------------------- main POST entrypoint -------------------
            def do_POST(self) -> None:  # noqa: N802 (httpserver naming)
                """
                Decode one utterance batch and schedule it.

                Responses:
                    • 202 Accepted - batch scheduled (possibly empty).
                    • 404 Not Found - path other than /speak.
                    • 413 Payload Too Large - body exceeds configured cap.
                    • 415 Unsupported Media Type - Content-Type present but not JSON.
                    • 422 Unprocessable Entity - empty or undecodable body.
                """
                # 1) Enforce a safe body cap; a missing length means an empty body.
                try:
                    n = int(self.headers.get("Content-Length", "0"))
                except ValueError:
                    return self._reply(422)
                if n > max_body:
                    return self._reply(413)
                raw = self.rfile.read(n) if n > 0 else b""

                # 2) Only one route.
                if self.path.split("?", 1)[0] != SPEAK_PATH:
                    return self._reply(404)

                # 3) Require JSON content type when provided.
                content_type = (self.headers.get("Content-Type") or "").lower()
                if content_type and "json" not in content_type:
                    return self._reply(415)

                # 4) Decode the batch.
                try:
                    requests = decode_utterances(raw, key_type)
                except ValueError as e:
                    log.debug("rejecting /speak body: %s", e)
                    return self._reply(422)

                # 5) Hand over; unknown channels are the manager's business.
                scheduler.schedule(requests)
                return self._reply(202)

            def log_message(self, fmt: str, *args: Any) -> None:  # noqa: D401
                log.debug("%s - %s", self.address_string(), fmt % args)

        return Handler
