"""
oEmbed title/author lookup.

Only used for display and for naming files when a provider does not return
a filename; a lookup failure never fails a download request.
"""

import logging
from typing import List, Optional

import httpx

from . import config
from .models import VideoMetadata
from .video_id import canonical_watch_url

logger = logging.getLogger(__name__)


async def fetch_metadata(
    client: httpx.AsyncClient,
    video_id: str,
    endpoints: Optional[List[str]] = None,
) -> tuple[Optional[VideoMetadata], Optional[str]]:
    """Try each oEmbed endpoint in order; first one with a title wins."""
    endpoints = endpoints if endpoints is not None else config.OEMBED_ENDPOINTS
    params = {"url": canonical_watch_url(video_id), "format": "json"}
    errors: List[str] = []

    for endpoint in endpoints:
        try:
            resp = await client.get(endpoint, params=params, follow_redirects=True)
        except httpx.HTTPError as e:
            errors.append(f"{endpoint}: request failed: {e}")
            continue

        if resp.status_code != 200:
            errors.append(f"{endpoint}: HTTP {resp.status_code}")
            continue

        try:
            data = resp.json()
        except ValueError:
            errors.append(f"{endpoint}: invalid JSON")
            continue

        # noembed answers 200 with {"error": "..."} for unknown videos
        if not isinstance(data, dict) or data.get("error"):
            errors.append(f"{endpoint}: {data.get('error') if isinstance(data, dict) else 'bad body'}")
            continue

        title = (data.get("title") or "").strip()
        if not title:
            errors.append(f"{endpoint}: no title")
            continue

        return VideoMetadata(
            video_id=video_id,
            title=title,
            author=data.get("author_name"),
            author_url=data.get("author_url"),
            thumbnail_url=data.get("thumbnail_url"),
            provider=data.get("provider_name") or endpoint,
        ), None

    message = "; ".join(errors) or "no oEmbed endpoints configured"
    logger.warning(f"⚠️ oEmbed lookup failed for {video_id}: {message[:200]}")
    return None, message
