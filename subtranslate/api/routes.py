"""FastAPI routes for the subtitle add-on protocol"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from starlette.concurrency import run_in_threadpool

from .models import Manifest, SubtitlesResponse, HealthResponse
from ..config import Settings, get_settings
from ..core.cache_store import FileCacheStore
from ..core.fetcher import SubtitleFetcher
from ..core.pipeline import SubtitlePipeline
from ..core.resolver import SourceResolver
from ..core.translator import SubtitleTranslator
from ..providers.openai_provider import OpenAITranslationProvider, language_name
from ..providers.opensubtitles_provider import OpenSubtitlesProvider
from .. import __version__, __description__

logger = logging.getLogger(__name__)

SUBTITLE_MEDIA_TYPE = "application/x-subrip; charset=utf-8"

# Global instances
_pipeline_instance: Optional[SubtitlePipeline] = None
_cache_instance: Optional[FileCacheStore] = None
_manifest: Optional[Manifest] = None
_start_time = time.time()


def get_cache_store(settings: Settings = Depends(get_settings)) -> FileCacheStore:
    """Get or create the on-disk cache"""
    global _cache_instance
    if _cache_instance is None:
        _cache_instance = FileCacheStore(settings.subs_dir, suffix=settings.cache_suffix)
    return _cache_instance


def build_pipeline(settings: Settings, cache: FileCacheStore) -> SubtitlePipeline:
    """Wire the pipeline from settings"""
    catalog = OpenSubtitlesProvider(
        api_key=settings.opensub_api_key,
        user_agent=settings.opensub_user_agent,
        base_url=settings.opensub_base_url,
        timeout=settings.catalog_timeout,
        max_retries=settings.http_max_retries,
    )
    translation = OpenAITranslationProvider(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout=settings.translation_timeout,
        base_url=settings.openai_base_url,
    )
    return SubtitlePipeline(
        resolver=SourceResolver(catalog, source_language=settings.source_language),
        fetcher=SubtitleFetcher(
            timeout=settings.download_timeout,
            min_bytes=settings.min_subtitle_bytes,
            user_agent=settings.opensub_user_agent,
        ),
        translator=SubtitleTranslator(
            translation,
            source_language=settings.source_language,
            line_threshold=settings.chunk_line_threshold,
            batch_size=settings.chunk_batch_size,
            verify_structure=settings.verify_structure,
        ),
        cache=cache,
        target_language=settings.target_language,
        base_url=settings.base_url,
        wait_timeout=settings.inflight_wait_timeout,
    )


def get_pipeline(settings: Settings = Depends(get_settings),
                 cache: FileCacheStore = Depends(get_cache_store)) -> SubtitlePipeline:
    """Get or create the pipeline instance"""
    global _pipeline_instance
    if _pipeline_instance is None:
        _pipeline_instance = build_pipeline(settings, cache)
    return _pipeline_instance


def build_manifest(settings: Settings) -> Manifest:
    target = language_name(settings.target_language)
    source = language_name(settings.source_language)
    return Manifest(
        id=f"community.ai-subtitles.{settings.target_language.lower()}",
        version=__version__,
        name=f"AI {target} Subtitles",
        description=(
            f"Fetches {source} subtitles from OpenSubtitles and translates them "
            f"to {target} using AI ({settings.openai_model})."
        ),
    )


def get_manifest(settings: Settings = Depends(get_settings)) -> Manifest:
    """Manifest is computed once per process"""
    global _manifest
    if _manifest is None:
        _manifest = build_manifest(settings)
    return _manifest


# Create router
router = APIRouter(tags=["subtitle-addon"])


@router.get("/manifest.json", response_model=Manifest)
async def manifest(manifest: Manifest = Depends(get_manifest)):
    """Add-on manifest"""
    return manifest


async def _subtitles(media_type: str, content_id: str, pipeline: SubtitlePipeline) -> SubtitlesResponse:
    logger.info(f"Subtitles handler invoked with type={media_type!r} id={content_id!r}")
    try:
        # The pipeline blocks on network and disk I/O
        body = await run_in_threadpool(pipeline.subtitles_for, media_type, content_id)
    except Exception as e:
        logger.error(f"Unexpected error in subtitles handler for {content_id}: {e}")
        return SubtitlesResponse()
    return SubtitlesResponse(**body)


@router.get("/subtitles/{media_type}/{content_id}.json", response_model=SubtitlesResponse)
async def subtitles(media_type: str, content_id: str,
                    pipeline: SubtitlePipeline = Depends(get_pipeline)):
    """Subtitle query; always 200 with a possibly empty list"""
    return await _subtitles(media_type, content_id, pipeline)


@router.get("/subtitles/{media_type}/{content_id}/{extra}.json", response_model=SubtitlesResponse)
async def subtitles_with_extra(media_type: str, content_id: str, extra: str,
                               pipeline: SubtitlePipeline = Depends(get_pipeline)):
    """Subtitle query with player extras (videoHash, filename, ...), which are ignored"""
    logger.debug(f"Ignoring subtitle extras for {content_id}: {extra}")
    return await _subtitles(media_type, content_id, pipeline)


@router.get("/subs/{filename}")
async def serve_subtitle(filename: str, cache: FileCacheStore = Depends(get_cache_store)):
    """Serve a cached translation byte-for-byte"""
    path = cache.resolve_filename(filename)
    if path is None:
        raise HTTPException(status_code=404, detail="Subtitle not found")
    return FileResponse(path, media_type=SUBTITLE_MEDIA_TYPE)


@router.get("/health", response_model=HealthResponse)
async def health(settings: Settings = Depends(get_settings),
                 cache: FileCacheStore = Depends(get_cache_store)):
    """Health check endpoint"""
    credentials_configured = settings.credentials_configured
    cache_writable = cache.is_writable()
    return HealthResponse(
        status="healthy" if credentials_configured and cache_writable else "degraded",
        version=__version__,
        uptime=time.time() - _start_time,
        credentials_configured=credentials_configured,
        cache_writable=cache_writable,
        cache_dir=str(cache.directory),
    )


@router.get("/")
async def root(settings: Settings = Depends(get_settings)):
    """Root endpoint"""
    return {
        "service": "AI Subtitle Translator",
        "version": __version__,
        "description": __description__,
        "manifest": f"{settings.base_url}/manifest.json",
        "health": "/health",
    }


# Cleanup function
def cleanup_pipeline():
    """Cleanup pipeline resources"""
    global _pipeline_instance, _cache_instance, _manifest
    if _pipeline_instance:
        _pipeline_instance.close()
        _pipeline_instance = None
    _cache_instance = None
    _manifest = None
