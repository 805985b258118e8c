"""
Shared fixtures and helpers for the download-link service tests.

Unit tests fake every outbound call with httpx.MockTransport. Live tests
(marked ``live``) hit real public instances and skip when they are down.
"""

import json
import os
import pathlib
import sys
from typing import Callable, Dict

import httpx
import pytest

# ─── Path + .env loading (must happen before any package import) ─────────────

_ROOT = pathlib.Path(__file__).parent.parent
sys.path.insert(0, str(_ROOT))

# Load .env so COBALT_API_TOKEN, *_INSTANCES etc. are available to live tests
_env_file = _ROOT / ".env"
if _env_file.exists():
    for _line in _env_file.read_text().splitlines():
        _line = _line.strip()
        if _line and not _line.startswith("#") and "=" in _line:
            _k, _v = _line.split("=", 1)
            os.environ.setdefault(_k.strip(), _v.strip())

# ─── Constants ───────────────────────────────────────────────────────────────

TEST_VIDEO_ID = "dQw4w9WgXcQ"
TEST_VIDEO_URL = f"https://www.youtube.com/watch?v={TEST_VIDEO_ID}"

COBALT = "https://cobalt.test"
INVIDIOUS = "https://invidious.test"
PIPED = "https://piped.test"


# ─── Fake HTTP ───────────────────────────────────────────────────────────────

class FakeUpstream:
    """
    Routes outbound requests by host to canned handlers and records every call.

    Unrouted hosts answer 503 so a missing route looks like a dead instance.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.calls: list[httpx.Request] = []

    def route(self, host: str, handler) -> None:
        self.routes[host] = handler

    def json(self, host: str, payload, status_code: int = 200) -> None:
        self.routes[host] = lambda request: httpx.Response(status_code, json=payload)

    def fail(self, host: str, exc: Exception) -> None:
        def _raise(request):
            raise exc
        self.routes[host] = _raise

    def hosts_called(self) -> list[str]:
        return [r.url.host for r in self.calls]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get(request.url.host)
        if handler is None:
            return httpx.Response(503, text="no route")
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def request_json(request: httpx.Request):
    return json.loads(request.content.decode())


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def client(upstream):
    """An AsyncClient whose every request goes to the FakeUpstream."""
    return httpx.AsyncClient(transport=upstream.transport, timeout=5)


@pytest.fixture
def make_chain(upstream):
    """Build a ProviderChain over FakeUpstream; yt-dlp is off unless asked for."""
    from youtube_download.resolver import ProviderChain

    def _make(cobalt=(COBALT,), invidious=(INVIDIOUS,), piped=(PIPED,), enable_ytdlp=False, **kwargs):
        return ProviderChain(
            cobalt_instances=list(cobalt),
            invidious_instances=list(invidious),
            piped_instances=list(piped),
            enable_ytdlp=enable_ytdlp,
            transport=upstream.transport,
            timeout_seconds=5,
            **kwargs,
        )

    return _make


# ─── Helpers ─────────────────────────────────────────────────────────────────

def assert_media_resolved(media, error, msg_prefix: str = "") -> None:
    """
    Assert that a provider returned a usable media URL.

    Args:
        media:      The ResolvedMedia returned by the provider (None on failure).
        error:      The error string returned alongside it.
        msg_prefix: Optional prefix for assertion messages.
    """
    prefix = f"{msg_prefix}: " if msg_prefix else ""
    assert error is None, f"{prefix}unexpected error: {error}"
    assert media is not None, f"{prefix}media is None, provider returned no URL"
    assert media.url.startswith("http"), f"{prefix}not an absolute URL: {media.url}"
    assert media.filename, f"{prefix}empty filename"
