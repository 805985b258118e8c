"""
Static third-party download websites, offered when every provider failed.

The user opens one of these manually and pastes the link. The list is
hardcoded and never empty; the first entry is the recommended one.
"""

from typing import List, Tuple

from .models import FallbackService
from .video_id import canonical_watch_url

# (name, url template); "{id}" is the video ID, "{url}" the canonical watch URL
VIDEO_SERVICES: List[Tuple[str, str]] = [
    ("SSYouTube", "https://ssyoutube.com/watch?v={id}"),
    ("Y2Mate", "https://www.y2mate.com/youtube/{id}"),
    ("SaveFrom", "https://en.savefrom.net/#url={url}"),
    ("cobalt", "https://cobalt.tools/"),
]

AUDIO_SERVICES: List[Tuple[str, str]] = [
    ("Y2Mate MP3", "https://www.y2mate.com/youtube-mp3/{id}"),
    ("SSYouTube", "https://ssyoutube.com/watch?v={id}"),
    ("SaveFrom", "https://en.savefrom.net/#url={url}"),
    ("cobalt", "https://cobalt.tools/"),
]


def build_fallback_services(video_id: str, audio_only: bool = False) -> List[FallbackService]:
    templates = AUDIO_SERVICES if audio_only else VIDEO_SERVICES
    watch_url = canonical_watch_url(video_id)
    return [
        FallbackService(
            name=name,
            url=template.format(id=video_id, url=watch_url),
            recommended=index == 0,
        )
        for index, (name, template) in enumerate(templates)
    ]
