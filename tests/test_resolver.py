"""
Tests for the sequential provider fallback chain.

Run:
    pytest tests/test_resolver.py -v
"""

import httpx
import pytest

from youtube_download.models import ErrorCode
from youtube_download.providers import CobaltProvider, InvidiousProvider, PipedProvider, YtDlpProvider
from youtube_download.resolver import ProviderChain, classify_error

from .conftest import TEST_VIDEO_ID

COBALT_OK = {"status": "tunnel", "url": "https://cobalt-b.test/tunnel?id=1", "filename": "v.mp4"}


def test_provider_order(make_chain):
    chain = make_chain(
        cobalt=["https://cobalt-a.test", "https://cobalt-b.test"],
        invidious=["https://inv.test"],
        piped=["https://piped.test"],
        enable_ytdlp=True,
    )
    providers = chain.build_provider_list()
    assert [type(p) for p in providers] == [
        CobaltProvider, CobaltProvider, InvidiousProvider, PipedProvider, YtDlpProvider,
    ]
    assert [p.name for p in providers] == [
        "cobalt (cobalt-a.test)",
        "cobalt (cobalt-b.test)",
        "invidious (inv.test)",
        "piped (piped.test)",
        "yt-dlp",
    ]


def test_api_token_reaches_cobalt_providers(make_chain):
    chain = make_chain(cobalt_api_token="tok")
    assert chain.build_provider_list()[0].api_token == "tok"


@pytest.mark.asyncio
async def test_first_success_wins_and_stops(make_chain, upstream):
    upstream.json("cobalt-a.test", {"status": "error", "error": {"code": "error.api.fetch.fail"}})
    upstream.json("cobalt-b.test", COBALT_OK)
    upstream.json("invidious.test", {"formatStreams": [{"url": "https://x", "resolution": "360p"}]})
    chain = make_chain(cobalt=["https://cobalt-a.test", "https://cobalt-b.test"])

    media, errors = await chain.resolve(TEST_VIDEO_ID, "1080", False)

    assert media is not None
    assert media.provider == "cobalt (cobalt-b.test)"
    assert upstream.hosts_called() == ["cobalt-a.test", "cobalt-b.test"]
    assert errors == ["[cobalt (cobalt-a.test)]: cobalt error: error.api.fetch.fail"]


@pytest.mark.asyncio
async def test_every_provider_gets_the_same_video(make_chain, upstream):
    chain = make_chain(cobalt=["https://cobalt-a.test", "https://cobalt-b.test"], invidious=[], piped=[])
    await chain.resolve(TEST_VIDEO_ID, "720", True)

    bodies = [call.content for call in upstream.calls]
    assert len(bodies) == 2
    assert bodies[0] == bodies[1]


@pytest.mark.asyncio
async def test_falls_through_to_invidious(make_chain, upstream):
    upstream.fail("cobalt.test", httpx.ConnectError("refused"))
    upstream.json("invidious.test", {
        "title": "T",
        "formatStreams": [{"url": "/latest_version?itag=18", "resolution": "360p", "container": "mp4"}],
    })

    media, errors = await chain_resolve(make_chain)

    assert media.provider == "invidious (invidious.test)"
    assert media.url == "https://invidious.test/latest_version?itag=18"
    assert len(errors) == 1
    assert "piped.test" not in upstream.hosts_called()


async def chain_resolve(make_chain, **kwargs):
    return await make_chain(**kwargs).resolve(TEST_VIDEO_ID, "1080", False)


@pytest.mark.asyncio
async def test_exhaustion_returns_all_errors(make_chain, upstream):
    upstream.json("cobalt.test", {"status": "error", "error": {"code": "error.api.youtube.login"}})
    upstream.json("invidious.test", {"error": "blocked"})
    # piped.test unrouted → 503

    media, errors = await chain_resolve(make_chain)

    assert media is None
    assert upstream.hosts_called() == ["cobalt.test", "invidious.test", "piped.test"]
    assert errors == [
        "[cobalt (cobalt.test)]: cobalt error: error.api.youtube.login",
        "[invidious (invidious.test)]: Invidious error: blocked",
        "[piped (piped.test)]: Piped API HTTP 503",
    ]


@pytest.mark.asyncio
async def test_permanent_errors_do_not_stop_the_chain(make_chain, upstream):
    upstream.json("cobalt.test", {"status": "error", "error": {"code": "error.api.content.video.unavailable"}})
    upstream.json("invidious.test", {"formatStreams": [{"url": "https://ok.test/v", "resolution": "360p"}]})

    media, errors = await chain_resolve(make_chain)

    assert media is not None
    assert media.provider.startswith("invidious")


@pytest.mark.asyncio
async def test_unexpected_provider_exception_is_contained(make_chain, upstream, monkeypatch):
    async def boom(self, *args, **kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(CobaltProvider, "resolve", boom)
    upstream.json("invidious.test", {"formatStreams": [{"url": "https://ok.test/v", "resolution": "360p"}]})

    media, errors = await chain_resolve(make_chain)

    assert media is not None
    assert errors == ["[cobalt (cobalt.test)]: Unexpected exception in provider: kaboom"]


@pytest.mark.asyncio
async def test_only_provider(make_chain, upstream):
    upstream.json("cobalt.test", COBALT_OK)
    upstream.json("piped.test", {"videoStreams": [{"url": "https://p.test/v", "height": 360, "videoOnly": False}]})
    chain = make_chain()

    media, errors = await chain.resolve(TEST_VIDEO_ID, "1080", False, only_provider=3)

    assert media.provider == "piped (piped.test)"
    assert upstream.hosts_called() == ["piped.test"]


@pytest.mark.asyncio
async def test_only_provider_out_of_range(make_chain, upstream):
    media, errors = await make_chain().resolve(TEST_VIDEO_ID, "1080", False, only_provider=9)
    assert media is None
    assert "out of range" in errors[0]
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_empty_provider_list(make_chain):
    media, errors = await make_chain(cobalt=[], invidious=[], piped=[]).resolve(TEST_VIDEO_ID, "1080", False)
    assert media is None
    assert errors == []


def test_defaults_come_from_config(monkeypatch):
    from youtube_download import config

    monkeypatch.setattr(config, "COBALT_INSTANCES", ["https://c.test"])
    monkeypatch.setattr(config, "INVIDIOUS_INSTANCES", [])
    monkeypatch.setattr(config, "PIPED_INSTANCES", [])
    monkeypatch.setattr(config, "ENABLE_YTDLP_PROVIDER", False)

    chain = ProviderChain()
    assert [p.name for p in chain.build_provider_list()] == ["cobalt (c.test)"]


# ─── Error classification ────────────────────────────────────────────────────

@pytest.mark.parametrize("message, code", [
    ("cobalt error: error.api.content.video.unavailable", ErrorCode.VIDEO_UNAVAILABLE),
    ("Invidious error: This video is private", ErrorCode.VIDEO_UNAVAILABLE),
    ("cobalt error: error.api.rate_exceeded", ErrorCode.RATE_LIMITED),
    ("Piped API HTTP 429", ErrorCode.RATE_LIMITED),
    ("cobalt request timed out: ReadTimeout", ErrorCode.PROVIDER_TIMEOUT),
    ("Invidious API request failed: [Errno 111] Connection refused", ErrorCode.NETWORK_ERROR),
    ("cobalt error: error.api.fetch.fail", ErrorCode.PROVIDER_ERROR),
])
def test_classify_error(message, code):
    detail = classify_error(message)
    assert detail.code == code
    assert detail.details == {"error": message}


def test_unavailable_is_not_transient():
    assert classify_error("Video unavailable").is_transient is False
    assert classify_error("HTTP 429").is_transient is True
