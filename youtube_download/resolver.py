"""
Provider fallback chain.

Providers are tried strictly one after another with the same request:
  1.  every cobalt instance   (COBALT_INSTANCES, in order)
  2.  every invidious instance (INVIDIOUS_INSTANCES)
  3.  every piped instance     (PIPED_INSTANCES)
  4.  yt-dlp extraction        (ENABLE_YTDLP_PROVIDER)

The first provider that returns a media URL wins; the rest are never called.
A failing provider is logged and skipped. There is no retry, backoff or
parallel fan-out. When everything fails the caller gets the collected error
list and falls back to static external websites (see fallback_services).
"""

import logging
from typing import List, Optional

import httpx

from . import config
from .models import ErrorCode, ErrorDetail, ResolvedMedia
from .providers import CobaltProvider, InvidiousProvider, PipedProvider, Provider, YtDlpProvider
from .video_id import canonical_watch_url

logger = logging.getLogger(__name__)


def classify_error(error_msg: str) -> ErrorDetail:
    """Classify a provider error string into a structured ErrorDetail."""
    error_lower = error_msg.lower()

    if any(kw in error_lower for kw in ["private", "unavailable", "deleted", "removed", "content.video.age", "age-restricted"]):
        return ErrorDetail(
            code=ErrorCode.VIDEO_UNAVAILABLE,
            message="Video is private, deleted, or unavailable",
            is_transient=False,
            details={"error": error_msg},
        )

    if any(kw in error_lower for kw in ["429", "rate_exceeded", "rate limit", "too many requests"]):
        return ErrorDetail(
            code=ErrorCode.RATE_LIMITED,
            message="Provider rate limit reached",
            is_transient=True,
            retry_after_seconds=300,
            details={"error": error_msg},
        )

    if "timeout" in error_lower or "timed out" in error_lower:
        return ErrorDetail(
            code=ErrorCode.PROVIDER_TIMEOUT,
            message="Provider timed out",
            is_transient=True,
            retry_after_seconds=60,
            details={"error": error_msg},
        )

    if any(kw in error_lower for kw in ["network", "connect", "resolve", "unreachable", "request failed"]):
        return ErrorDetail(
            code=ErrorCode.NETWORK_ERROR,
            message="Network connection error",
            is_transient=True,
            retry_after_seconds=30,
            details={"error": error_msg},
        )

    return ErrorDetail(
        code=ErrorCode.PROVIDER_ERROR,
        message="Provider could not resolve a media URL",
        is_transient=True,
        retry_after_seconds=120,
        details={"error": error_msg},
    )


class ProviderChain:
    """Ordered list of providers tried sequentially until one succeeds."""

    def __init__(
        self,
        cobalt_instances: Optional[List[str]] = None,
        invidious_instances: Optional[List[str]] = None,
        piped_instances: Optional[List[str]] = None,
        enable_ytdlp: Optional[bool] = None,
        cobalt_api_token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cobalt_instances = config.COBALT_INSTANCES if cobalt_instances is None else cobalt_instances
        self.invidious_instances = config.INVIDIOUS_INSTANCES if invidious_instances is None else invidious_instances
        self.piped_instances = config.PIPED_INSTANCES if piped_instances is None else piped_instances
        self.enable_ytdlp = config.ENABLE_YTDLP_PROVIDER if enable_ytdlp is None else enable_ytdlp
        self.cobalt_api_token = cobalt_api_token if cobalt_api_token is not None else config.COBALT_API_TOKEN
        self.timeout_seconds = timeout_seconds or config.PROVIDER_TIMEOUT_SECONDS
        self.transport = transport

    def client(self) -> httpx.AsyncClient:
        """Fresh outbound client; one per request chain."""
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport)

    def build_provider_list(self) -> List[Provider]:
        providers: List[Provider] = []
        for instance in self.cobalt_instances:
            providers.append(CobaltProvider(instance, api_token=self.cobalt_api_token))
        for instance in self.invidious_instances:
            providers.append(InvidiousProvider(instance))
        for instance in self.piped_instances:
            providers.append(PipedProvider(instance))
        if self.enable_ytdlp:
            providers.append(YtDlpProvider(timeout_seconds=max(self.timeout_seconds, 30)))
        return providers

    async def resolve(
        self,
        video_id: str,
        quality: str,
        audio_only: bool,
        only_provider: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> tuple[Optional[ResolvedMedia], List[str]]:
        """
        Resolve a direct media URL for video_id.

        Returns (media, errors). media is None when every provider failed;
        errors holds one "[provider]: message" line per failed attempt.
        """
        providers = self.build_provider_list()
        if only_provider is not None:
            if not 1 <= only_provider <= len(providers):
                return None, [f"only_provider={only_provider} out of range 1..{len(providers)}"]
            providers = [providers[only_provider - 1]]

        if client is None:
            async with self.client() as own_client:
                return await self._run(own_client, providers, video_id, quality, audio_only)
        return await self._run(client, providers, video_id, quality, audio_only)

    async def _run(
        self,
        client: httpx.AsyncClient,
        providers: List[Provider],
        video_id: str,
        quality: str,
        audio_only: bool,
    ) -> tuple[Optional[ResolvedMedia], List[str]]:
        video_url = canonical_watch_url(video_id)
        total = len(providers)
        all_errors: List[str] = []
        mode = "audio" if audio_only else f"video {quality}"

        logger.info(f"🚀 Resolving {video_id} ({mode}) with {total} providers")

        for idx, provider in enumerate(providers, 1):
            name = provider.name
            logger.info(f"🎯 Provider {idx}/{total}: {name}")

            media: Optional[ResolvedMedia] = None
            error_msg: Optional[str] = None
            try:
                media, error_msg = await provider.resolve(client, video_id, video_url, quality, audio_only)
            except Exception as e:
                error_msg = f"Unexpected exception in provider: {e}"

            if media is not None:
                logger.info(f"✅ Provider {idx}/{total} ({name}) succeeded: status={media.status.value}")
                return media, all_errors

            error_summary = error_msg or "unknown error"
            classified = classify_error(error_summary)
            logger.warning(
                f"⚠️ Provider {idx}/{total} ({name}) failed [{classified.code.value}]: {error_summary[:120]}"
            )
            all_errors.append(f"[{name}]: {error_summary[:200]}")

        logger.error(f"❌ All {total} providers failed for {video_id}")
        return None, all_errors


# Global singleton
resolver = ProviderChain()
