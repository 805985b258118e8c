"""
FastAPI YouTube Download-Link Service
Resolves a YouTube URL to a direct media URL through a chain of public
cobalt / Invidious / Piped instances, with static websites as last resort
"""

import time
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Response
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import yt_dlp

from . import config
from .models import (
    DownloadRequest,
    DownloadResponse,
    ErrorResponse,
    ErrorCode,
    FallbackServicesResponse,
    HealthResponse,
    HealthStats,
    InfoRequest,
    InfoResponse,
    normalize_quality,
)
from .fallback_services import build_fallback_services
from .oembed import fetch_metadata
from .providers import clean_filename
from .resolver import resolver
from .video_id import extract_video_id

# Logging configuration
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# App metadata
VERSION = "1.0.0"
start_time = time.time()

RETRY_SUGGESTION = "Try again or pick a different resolution"

# Statistics tracking
stats = {
    "total_requests": 0,
    "active_requests": 0,
    "resolved_requests": 0,
    "external_fallbacks": 0,
    "failed_requests": 0,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for startup/shutdown tasks"""
    logger.info("🚀 Starting YouTube download-link service...")
    logger.info(f"Version: {VERSION}")
    logger.info(f"yt-dlp version: {yt_dlp.version.__version__}")
    logger.info(
        f"🔗 Providers: {len(resolver.cobalt_instances)} cobalt, "
        f"{len(resolver.invidious_instances)} invidious, "
        f"{len(resolver.piped_instances)} piped, "
        f"yt-dlp {'enabled' if resolver.enable_ytdlp else 'disabled'}"
    )
    logger.info(f"🔑 cobalt API token: {'configured' if resolver.cobalt_api_token else 'not set'}")

    yield

    logger.info("Shutting down YouTube download-link service...")


# Create FastAPI app
app = FastAPI(
    title="YouTube Download-Link Service",
    description="Resolves YouTube URLs to direct media links via cobalt, Invidious and Piped instances",
    version=VERSION,
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, code: ErrorCode, message: str, suggestion: Optional[str] = None, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=message,
            code=code,
            suggestion=suggestion,
            details=details,
        ).model_dump(mode="json", by_alias=True, exclude_none=True),
    )


# ============================================================================
# API ENDPOINTS
# ============================================================================


@app.post("/api/v1/download", response_model=DownloadResponse)
@app.post("/functions/v1/youtube-download", response_model=DownloadResponse, include_in_schema=False)
async def download_video(request: DownloadRequest) -> Response:
    """
    Resolve a YouTube URL to a downloadable media URL

    **Flow:**
    1. Extract the 11-character video ID
    2. Look up title/author via oEmbed (best effort)
    3. Try each provider in order; first success wins
    4. If all providers fail, hand back static third-party websites
    """
    if not request.url or not request.url.strip():
        return _error(400, ErrorCode.MISSING_URL, "URL is required")

    video_id = extract_video_id(request.url)
    if not video_id:
        logger.warning(f"⚠️ Rejected URL without video ID: {request.url[:120]}")
        return _error(400, ErrorCode.INVALID_URL, "Invalid YouTube URL", suggestion="Paste a youtube.com or youtu.be link")

    if request.only_provider is not None:
        total = len(resolver.build_provider_list())
        if not 1 <= request.only_provider <= total:
            return _error(
                400,
                ErrorCode.INVALID_PROVIDER,
                f"onlyProvider must be between 1 and {total}",
                suggestion="See GET /api/v1/providers for the numbering",
            )

    quality = normalize_quality(request.quality)
    logger.info(f"📥 Download request: {video_id} (quality={quality}, audio_only={request.audio_only})")

    stats["total_requests"] += 1
    stats["active_requests"] += 1

    try:
        async with resolver.client() as client:
            metadata, _ = await fetch_metadata(client, video_id)
            media, errors = await resolver.resolve(
                video_id,
                quality,
                request.audio_only,
                only_provider=request.only_provider,
                client=client,
            )

        fallback_services = build_fallback_services(video_id, request.audio_only)
        title = metadata.title if metadata else None
        author = metadata.author if metadata else None

        if media is None:
            stats["external_fallbacks"] += 1
            logger.info(f"↪️ Falling back to {len(fallback_services)} external services for {video_id}")
            return JSONResponse(
                content=DownloadResponse(
                    download_url=fallback_services[0].url,
                    filename="audio.mp3" if request.audio_only else "video.mp4",
                    is_external=True,
                    message="Direct download unavailable; use one of the external services",
                    title=title,
                    author=author,
                    fallback_services=fallback_services,
                    provider_errors=errors,
                ).model_dump(mode="json", by_alias=True)
            )

        stats["resolved_requests"] += 1
        filename = media.filename
        if title and filename in ("video.mp4", "audio.mp3"):
            ext = media.ext or filename.rsplit(".", 1)[1]
            filename = clean_filename(f"{title}.{ext}", request.audio_only)

        logger.info(f"✅ Resolved {video_id} via {media.provider} ({media.status.value}) → {filename}")

        return JSONResponse(
            content=DownloadResponse(
                download_url=media.url,
                filename=filename,
                status="ready",
                direct_download=True,
                provider=media.provider,
                title=title or media.title,
                author=author or media.author,
                fallback_services=fallback_services,
                provider_errors=errors,
            ).model_dump(mode="json", by_alias=True)
        )

    except Exception as e:
        stats["failed_requests"] += 1
        logger.exception(f"💥 Unexpected error while resolving {video_id}: {e}")
        return _error(500, ErrorCode.SERVER_ERROR, str(e) or "Failed to process download", suggestion=RETRY_SUGGESTION)
    finally:
        stats["active_requests"] -= 1


@app.post("/api/v1/info", response_model=InfoResponse)
async def get_video_info(request: InfoRequest) -> Response:
    """
    Get display metadata (title, author, thumbnail) without resolving media
    """
    if not request.url or not request.url.strip():
        return _error(400, ErrorCode.MISSING_URL, "URL is required")

    video_id = extract_video_id(request.url)
    if not video_id:
        return _error(400, ErrorCode.INVALID_URL, "Invalid YouTube URL")

    logger.info(f"ℹ️ Info request: {video_id}")

    async with resolver.client() as client:
        metadata, error = await fetch_metadata(client, video_id)

    if not metadata:
        logger.error(f"❌ Info lookup failed: {error}")
        return _error(502, ErrorCode.VIDEO_UNAVAILABLE, "Could not fetch video metadata", details={"error": error})

    return JSONResponse(
        content=InfoResponse(metadata=metadata).model_dump(mode="json", by_alias=True)
    )


@app.get("/api/v1/fallback-services", response_model=FallbackServicesResponse)
async def list_fallback_services(
    url: str = Query(..., description="YouTube URL or video ID"),
    audio_only: bool = Query(False, alias="audioOnly"),
) -> Response:
    """Static third-party websites for manual download"""
    video_id = extract_video_id(url)
    if not video_id:
        return _error(400, ErrorCode.INVALID_URL, "Invalid YouTube URL")

    return JSONResponse(
        content=FallbackServicesResponse(
            video_id=video_id,
            services=build_fallback_services(video_id, audio_only),
        ).model_dump(mode="json", by_alias=True)
    )


@app.get("/api/v1/providers")
async def list_providers():
    """List all configured providers with their 1-based index numbers."""
    providers = resolver.build_provider_list()
    return {
        "total": len(providers),
        "providers": [
            {"num": i + 1, "name": provider.name, "kind": provider.kind}
            for i, provider in enumerate(providers)
        ]
    }


@app.get("/api/v1/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint for monitoring
    """
    return HealthResponse(
        status="healthy",
        version=VERSION,
        uptime_seconds=time.time() - start_time,
        providers_configured=len(resolver.build_provider_list()),
        stats=HealthStats(**stats),
        yt_dlp_version=yt_dlp.version.__version__,
    )


@app.get("/")
async def root():
    """Root endpoint with service info"""
    return {
        "service": "YouTube Download-Link Service",
        "version": VERSION,
        "status": "running",
        "endpoints": {
            "download": "/api/v1/download",
            "info": "/api/v1/info",
            "fallback_services": "/api/v1/fallback-services",
            "providers": "/api/v1/providers",
            "health": "/api/v1/health",
        },
        "docs": "/docs",
    }


# ============================================================================
# ERROR HANDLERS
# ============================================================================


@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Custom 404 handler"""
    return JSONResponse(
        status_code=404,
        content={"detail": "Endpoint not found. See /docs for API documentation."}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
