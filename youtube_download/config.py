"""
Service configuration, read once from the environment at import time.

Environment variables:
  COBALT_INSTANCES         : comma-separated cobalt API base URLs, tried in order
  COBALT_API_TOKEN         : cobalt API key, sent as "Authorization: Api-Key <token>"
  INVIDIOUS_INSTANCES      : comma-separated Invidious base URLs
  PIPED_INSTANCES          : comma-separated Piped API base URLs
  ENABLE_YTDLP_PROVIDER    : "true"/"false"; yt-dlp URL extraction as last resort
  PROVIDER_TIMEOUT_SECONDS : per-request timeout for every outbound call
  OEMBED_ENDPOINTS         : comma-separated oEmbed endpoints for title/author lookup
  ALLOWED_ORIGINS          : CORS origins, "*" by default
  LOG_LEVEL                : root logging level (INFO)
  HOST / PORT              : bind address when run as a script
"""

import os
from typing import List, Optional


def _csv(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip().rstrip("/") for item in raw.split(",") if item.strip()]


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


COBALT_INSTANCES: List[str] = _csv(
    "COBALT_INSTANCES",
    "https://cobalt-api.kwiatekmiki.com,https://api.cobalt.tools",
)
COBALT_API_TOKEN: Optional[str] = os.getenv("COBALT_API_TOKEN") or None

INVIDIOUS_INSTANCES: List[str] = _csv(
    "INVIDIOUS_INSTANCES",
    "https://inv.nadeko.net,https://yewtu.be,https://invidious.nerdvpn.de",
)
PIPED_INSTANCES: List[str] = _csv(
    "PIPED_INSTANCES",
    "https://pipedapi.kavin.rocks",
)

ENABLE_YTDLP_PROVIDER: bool = _flag("ENABLE_YTDLP_PROVIDER", True)
PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "20"))

OEMBED_ENDPOINTS: List[str] = _csv(
    "OEMBED_ENDPOINTS",
    "https://www.youtube.com/oembed,https://noembed.com/embed",
)

ALLOWED_ORIGINS: List[str] = os.getenv("ALLOWED_ORIGINS", "*").split(",")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "8000"))
