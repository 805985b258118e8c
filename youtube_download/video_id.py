"""
YouTube video ID extraction.
"""

import re
from typing import Optional

VIDEO_ID_LENGTH = 11

_ID = r"([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"

_URL_PATTERNS = [
    re.compile(r"(?:youtube(?:-nocookie)?\.com)/(?:embed|shorts|live|v)/" + _ID),
    re.compile(r"youtu\.be/" + _ID),
    re.compile(r"youtube\.com/.*[?&]v=" + _ID),
]

_BARE_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")


def extract_video_id(value: Optional[str]) -> Optional[str]:
    """Return the 11-character video ID in a YouTube URL (or a bare ID), else None."""
    if not value:
        return None
    value = value.strip()

    if _BARE_ID.match(value):
        return value

    for pattern in _URL_PATTERNS:
        match = pattern.search(value)
        if match:
            return match.group(1)
    return None


def canonical_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"
