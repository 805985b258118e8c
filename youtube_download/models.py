"""
Pydantic models for request/response schemas

The JSON contract with the browser form uses camelCase keys
(``audioOnly``, ``downloadUrl``...). Fields are declared in snake_case and
serialised with ``by_alias=True``.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any, List, Union
from enum import Enum


class ErrorCode(str, Enum):
    """Error code classifications"""
    MISSING_URL = "MISSING_URL"
    INVALID_URL = "INVALID_URL"
    INVALID_PROVIDER = "INVALID_PROVIDER"
    VIDEO_UNAVAILABLE = "VIDEO_UNAVAILABLE"
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_ERROR = "NETWORK_ERROR"
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    SERVER_ERROR = "SERVER_ERROR"


class ProviderStatus(str, Enum):
    """Response shapes returned by cobalt-style providers"""
    REDIRECT = "redirect"
    TUNNEL = "tunnel"
    STREAM = "stream"
    PICKER = "picker"
    LOCAL_PROCESSING = "local-processing"
    ERROR = "error"


# Quality label → cobalt "videoQuality" value
QUALITY_MAP = {
    "4320p": "4320",
    "2160p": "2160",
    "1440p": "1440",
    "1080p": "1080",
    "720p": "720",
    "480p": "480",
    "360p": "360",
    "240p": "240",
    "144p": "144",
}
DEFAULT_QUALITY = "1080"


def normalize_quality(label: Optional[Union[str, int]]) -> str:
    """Map "1080p", "1080", "best" or "max" onto a cobalt quality string."""
    if not label:
        return DEFAULT_QUALITY
    label = str(label).strip().lower()
    if label in ("max", "best"):
        return "max"
    if label in QUALITY_MAP:
        return QUALITY_MAP[label]
    if label in QUALITY_MAP.values():
        return label
    return DEFAULT_QUALITY


def quality_to_height(quality: str) -> int:
    """Max pixel height for a normalised quality string ("max" → unbounded)."""
    if quality == "max":
        return 99999
    try:
        return int(quality)
    except ValueError:
        return int(DEFAULT_QUALITY)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DownloadRequest(CamelModel):
    """Request schema for /api/v1/download"""
    url: Optional[str] = Field(None, description="YouTube video URL or bare 11-character ID")
    quality: Optional[Union[str, int]] = Field(DEFAULT_QUALITY, description="2160p, 1080p, 720p, 480p, 360p, max")
    audio_only: bool = Field(False, description="Request an MP3/audio-only file")
    only_provider: Optional[int] = Field(
        None,
        description="Run only this provider number (1-based). See GET /api/v1/providers.",
    )

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "url": "https://youtube.com/watch?v=dQw4w9WgXcQ",
                "quality": "1080p",
                "audioOnly": False,
            }
        },
    )


class InfoRequest(CamelModel):
    """Request schema for /api/v1/info"""
    url: Optional[str] = Field(None, description="YouTube video URL")


class VideoMetadata(CamelModel):
    """Display metadata fetched from an oEmbed endpoint"""
    video_id: str
    title: str
    author: Optional[str] = None
    author_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    provider: Optional[str] = None


class ResolvedMedia(CamelModel):
    """A direct media URL handed back by one provider"""
    url: str
    filename: str
    provider: str
    status: ProviderStatus
    title: Optional[str] = None
    author: Optional[str] = None
    mime_type: Optional[str] = None
    ext: Optional[str] = None


class FallbackService(CamelModel):
    """Third-party website the user can open manually"""
    name: str
    url: str
    recommended: bool = False


class ErrorDetail(BaseModel):
    """Classified provider failure"""
    code: ErrorCode
    message: str
    is_transient: bool = Field(..., description="True if retry might succeed, False if permanent")
    retry_after_seconds: Optional[int] = None
    details: Optional[Dict[str, Any]] = None


class DownloadResponse(CamelModel):
    """Success response for /api/v1/download"""
    success: bool = True
    download_url: str
    filename: str
    status: Optional[str] = None
    direct_download: bool = False
    is_external: bool = False
    message: Optional[str] = None
    provider: Optional[str] = None
    title: Optional[str] = None
    author: Optional[str] = None
    fallback_services: List[FallbackService] = Field(default_factory=list)
    provider_errors: List[str] = Field(default_factory=list)


class ErrorResponse(CamelModel):
    """Error response body"""
    success: bool = False
    error: str
    code: ErrorCode
    suggestion: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class InfoResponse(CamelModel):
    """Response schema for /api/v1/info"""
    success: bool = True
    metadata: VideoMetadata


class FallbackServicesResponse(CamelModel):
    """Response schema for /api/v1/fallback-services"""
    video_id: str
    services: List[FallbackService]


class HealthStats(BaseModel):
    """Statistics for health check"""
    total_requests: int
    active_requests: int
    resolved_requests: int
    external_fallbacks: int
    failed_requests: int


class HealthResponse(BaseModel):
    """Response schema for /api/v1/health"""
    status: str
    version: str
    uptime_seconds: float
    providers_configured: int
    stats: HealthStats
    yt_dlp_version: str
