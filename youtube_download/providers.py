"""
Media URL providers: one adapter per third-party API.

Every provider turns (video_id, quality, audio_only) into a direct media URL:
  cobalt    : POST to a cobalt instance; response shape is sniffed from
              "status": redirect | tunnel | stream | picker | local-processing | error
  invidious : GET /api/v1/videos/{id}?local=true; streams proxied by the instance
  piped     : GET /streams/{id}; streams proxied by Piped's CDN
  ytdlp     : yt-dlp extract_info(download=False); direct googlevideo URL

resolve() never raises. It returns (ResolvedMedia, None) on success and
(None, error_message) on failure, so the caller can move on to the next one.
"""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import httpx
import yt_dlp

from .models import ProviderStatus, ResolvedMedia, quality_to_height

logger = logging.getLogger(__name__)

_FILENAME_DISALLOWED = re.compile(r"[^\w\s\-.()]")

YTDLP_TIMEOUT_SECONDS = 60


def clean_filename(name: Optional[str], audio_only: bool = False) -> str:
    """Strip characters browsers choke on; empty result falls back to a default."""
    default = "audio.mp3" if audio_only else "video.mp4"
    if not name:
        return default
    cleaned = _FILENAME_DISALLOWED.sub("", name).strip()
    return cleaned or default


def _filename_from_title(title: Optional[str], ext: str, audio_only: bool) -> str:
    if not title:
        return clean_filename(None, audio_only)
    return clean_filename(f"{title}.{ext}", audio_only)


def _host(instance: str) -> str:
    return instance.replace("https://", "").replace("http://", "").rstrip("/")


class Provider:
    """Base class for a single external endpoint."""

    kind = "base"

    def __init__(self, instance: str = ""):
        self.instance = instance.rstrip("/")

    @property
    def name(self) -> str:
        return f"{self.kind} ({_host(self.instance)})" if self.instance else self.kind

    async def resolve(
        self,
        client: httpx.AsyncClient,
        video_id: str,
        video_url: str,
        quality: str,
        audio_only: bool,
    ) -> tuple[Optional[ResolvedMedia], Optional[str]]:
        raise NotImplementedError


# =============================================================================
# COBALT
# =============================================================================


class CobaltProvider(Provider):
    """cobalt.tools-compatible API instance."""

    kind = "cobalt"

    def __init__(self, instance: str, api_token: Optional[str] = None):
        super().__init__(instance)
        self.api_token = api_token

    def build_payload(self, video_url: str, quality: str, audio_only: bool) -> Dict[str, Any]:
        return {
            "url": video_url,
            "videoQuality": quality,
            "audioFormat": "mp3",
            "downloadMode": "audio" if audio_only else "auto",
            "filenameStyle": "pretty",
        }

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Api-Key {self.api_token}"
        return headers

    @staticmethod
    def _error_code(data: Any) -> str:
        err = data.get("error", {}) if isinstance(data, dict) else {}
        if isinstance(err, dict):
            return err.get("code") or str(err)
        return str(err)

    async def resolve(self, client, video_id, video_url, quality, audio_only):
        """Ask the instance for a media URL and sniff the response shape."""
        try:
            resp = await client.post(
                f"{self.instance}/",
                json=self.build_payload(video_url, quality, audio_only),
                headers=self._headers(),
                follow_redirects=True,
            )
        except httpx.TimeoutException as e:
            return None, f"cobalt request timed out: {e}"
        except httpx.HTTPError as e:
            return None, f"cobalt API request failed: {e}"

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.status_code != 200:
            if isinstance(data, dict) and data.get("status") == "error":
                return None, f"cobalt error: {self._error_code(data)} (HTTP {resp.status_code})"
            return None, f"cobalt API HTTP {resp.status_code}: {resp.text[:200]}"

        if not isinstance(data, dict):
            return None, f"cobalt invalid JSON: {resp.text[:200]}"

        return self.parse_response(data, audio_only)

    def parse_response(
        self, data: Dict[str, Any], audio_only: bool
    ) -> tuple[Optional[ResolvedMedia], Optional[str]]:
        status = data.get("status", "")

        if status == ProviderStatus.ERROR.value:
            return None, f"cobalt error: {self._error_code(data)}"

        filename = data.get("filename")
        stream_url: Optional[str] = None

        if status in (ProviderStatus.REDIRECT.value, ProviderStatus.TUNNEL.value, ProviderStatus.STREAM.value):
            stream_url = data.get("url")

        elif status == ProviderStatus.PICKER.value:
            items = data.get("picker") or []
            if audio_only and data.get("audio"):
                stream_url = data["audio"]
                filename = data.get("audioFilename") or filename
            elif items:
                videos = [i for i in items if i.get("type") == "video"]
                stream_url = (videos or items)[0].get("url")
            else:
                return None, "cobalt picker returned no items"

        elif status == ProviderStatus.LOCAL_PROCESSING.value:
            tunnels = data.get("tunnel") or []
            if len(tunnels) != 1:
                return None, f"cobalt local-processing needs client-side merge of {len(tunnels)} tunnels"
            stream_url = tunnels[0]
            output = data.get("output") or {}
            filename = output.get("filename") or filename

        else:
            return None, f"cobalt unexpected status '{status}': {str(data)[:200]}"

        if not stream_url:
            return None, "cobalt returned no stream URL"

        return ResolvedMedia(
            url=stream_url,
            filename=clean_filename(filename, audio_only),
            ext="mp3" if audio_only else "mp4",
            provider=self.name,
            status=ProviderStatus(status),
            mime_type="audio/mpeg" if audio_only else "video/mp4",
        ), None


# =============================================================================
# INVIDIOUS
# =============================================================================


def _invidious_height(stream: Dict[str, Any]) -> int:
    res = str(stream.get("resolution") or stream.get("qualityLabel") or stream.get("size") or "")
    try:
        if "x" in res:
            return int(res.split("x")[1])
        return int(res.rstrip("p").split("p")[0])
    except (ValueError, IndexError):
        return 0


def _bitrate(stream: Dict[str, Any]) -> int:
    try:
        return int(stream.get("bitrate") or 0)
    except (TypeError, ValueError):
        return 0


def pick_by_height(streams: List[Dict[str, Any]], max_height: int, height_of) -> Optional[Dict[str, Any]]:
    """Highest stream at or below max_height; the smallest one if none fit."""
    best = None
    best_height = 0
    for stream in streams:
        h = height_of(stream)
        if best_height < h <= max_height:
            best_height = h
            best = stream
    if best is None and streams:
        best = min(streams, key=height_of)
    return best


class InvidiousProvider(Provider):
    """Invidious instance; local=true makes the instance proxy the stream."""

    kind = "invidious"

    async def resolve(self, client, video_id, video_url, quality, audio_only):
        try:
            resp = await client.get(
                f"{self.instance}/api/v1/videos/{video_id}",
                params={"local": "true"},
                follow_redirects=True,
            )
        except httpx.TimeoutException as e:
            return None, f"Invidious request timed out: {e}"
        except httpx.HTTPError as e:
            return None, f"Invidious API request failed: {e}"

        if resp.status_code != 200:
            return None, f"Invidious API HTTP {resp.status_code}"

        try:
            data = resp.json()
        except ValueError:
            return None, "Invidious invalid JSON response"

        if not isinstance(data, dict):
            return None, "Invidious invalid JSON response"
        if "error" in data:
            return None, f"Invidious error: {data['error']}"

        title = data.get("title")
        if audio_only:
            audio = [f for f in data.get("adaptiveFormats", []) if str(f.get("type", "")).startswith("audio/")]
            if not audio:
                return None, "Invidious: no audio streams available"
            mp4 = [f for f in audio if str(f.get("type", "")).startswith("audio/mp4")]
            stream = max(mp4 or audio, key=_bitrate)
            ext = "m4a" if mp4 else "webm"
        else:
            format_streams = data.get("formatStreams", [])
            if not format_streams:
                return None, "Invidious: no format streams available"
            stream = pick_by_height(format_streams, quality_to_height(quality), _invidious_height)
            ext = stream.get("container") or "mp4"

        stream_url = stream.get("url")
        if not stream_url:
            return None, "Invidious: stream has no URL"

        return ResolvedMedia(
            url=urljoin(self.instance + "/", stream_url),
            filename=_filename_from_title(title, ext, audio_only),
            ext=ext,
            provider=self.name,
            status=ProviderStatus.TUNNEL,
            title=title,
            author=data.get("author"),
            mime_type=str(stream.get("type", "")).split(";")[0] or None,
        ), None


# =============================================================================
# PIPED
# =============================================================================


class PipedProvider(Provider):
    """Piped API instance; every stream URL goes through Piped's proxy."""

    kind = "piped"

    async def resolve(self, client, video_id, video_url, quality, audio_only):
        try:
            resp = await client.get(
                f"{self.instance}/streams/{video_id}",
                headers={"Accept": "application/json"},
                follow_redirects=True,
            )
        except httpx.TimeoutException as e:
            return None, f"Piped request timed out: {e}"
        except httpx.HTTPError as e:
            return None, f"Piped API request failed: {e}"

        if resp.status_code != 200:
            return None, f"Piped API HTTP {resp.status_code}"

        try:
            data = resp.json()
        except ValueError:
            return None, "Piped invalid JSON response"

        if not isinstance(data, dict):
            return None, "Piped invalid JSON response"
        if "error" in data:
            return None, f"Piped error: {data['error']}"

        title = data.get("title")
        if audio_only:
            audio = data.get("audioStreams", [])
            if not audio:
                return None, "Piped: no audioStreams in response"
            stream = max(audio, key=_bitrate)
            ext = "m4a" if "mp4" in str(stream.get("mimeType", "")) else "webm"
        else:
            video_streams = data.get("videoStreams", [])
            if not video_streams:
                return None, "Piped: no videoStreams in response"
            progressive = [s for s in video_streams if not s.get("videoOnly", True)]
            if not progressive:
                return None, "Piped: no progressive (audio+video) stream"
            stream = pick_by_height(progressive, quality_to_height(quality), lambda s: s.get("height", 0) or 0)
            ext = (stream.get("format") or "mp4").lower()
            if ext not in ("mp4", "webm"):
                ext = "mp4"

        stream_url = stream.get("url")
        if not stream_url:
            return None, "Piped: stream entry has no URL"

        return ResolvedMedia(
            url=stream_url,
            filename=_filename_from_title(title, ext, audio_only),
            ext=ext,
            provider=self.name,
            status=ProviderStatus.TUNNEL,
            title=title,
            author=data.get("uploader"),
            mime_type=stream.get("mimeType"),
        ), None


# =============================================================================
# YT-DLP
# =============================================================================


class YtDlpProvider(Provider):
    """Local yt-dlp extraction; returns the format URL without downloading."""

    kind = "yt-dlp"

    def __init__(self, timeout_seconds: float = YTDLP_TIMEOUT_SECONDS):
        super().__init__("")
        self.timeout_seconds = timeout_seconds

    @staticmethod
    def format_selector(quality: str, audio_only: bool) -> str:
        # Single-file formats only; merged formats have no one URL to hand back
        if audio_only:
            return "bestaudio[ext=m4a]/bestaudio"
        h = quality_to_height(quality)
        return f"best[height<={h}][ext=mp4]/best[height<={h}]/best"

    def build_opts(self, quality: str, audio_only: bool) -> Dict[str, Any]:
        return {
            "format": self.format_selector(quality, audio_only),
            "skip_download": True,
            "noplaylist": True,
            "quiet": True,
            "no_warnings": True,
        }

    async def resolve(self, client, video_id, video_url, quality, audio_only):
        opts = self.build_opts(quality, audio_only)

        def _extract():
            with yt_dlp.YoutubeDL(opts) as ydl:
                return ydl.extract_info(video_url, download=False)

        loop = asyncio.get_event_loop()
        try:
            info = await asyncio.wait_for(
                loop.run_in_executor(None, _extract),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            return None, f"yt-dlp extraction timed out after {self.timeout_seconds:.0f}s"
        except yt_dlp.utils.DownloadError as e:
            return None, str(e)
        except Exception as e:
            return None, f"yt-dlp failed: {e}"

        return self.parse_info(info, audio_only)

    def parse_info(
        self, info: Optional[Dict[str, Any]], audio_only: bool
    ) -> tuple[Optional[ResolvedMedia], Optional[str]]:
        if not info:
            return None, "yt-dlp returned no info"

        stream_url = info.get("url")
        ext = info.get("ext") or ("m4a" if audio_only else "mp4")
        if not stream_url:
            requested = info.get("requested_formats") or []
            if len(requested) == 1:
                stream_url = requested[0].get("url")
                ext = requested[0].get("ext") or ext
        if not stream_url:
            return None, "yt-dlp selected no single-file format"

        return ResolvedMedia(
            url=stream_url,
            filename=_filename_from_title(info.get("title"), ext, audio_only),
            ext=ext,
            provider=self.name,
            status=ProviderStatus.REDIRECT,
            title=info.get("title"),
            author=info.get("channel") or info.get("uploader"),
        ), None
