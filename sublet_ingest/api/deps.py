from functools import lru_cache

from fastapi import Depends

from sublet_ingest.core.config import get_settings
from sublet_ingest.core.ratelimit import MinIntervalLimiter
from sublet_ingest.services.ai_extractor import GeminiExtractor
from sublet_ingest.services.dedupe import DuplicateResolver
from sublet_ingest.services.extraction import FallbackExtractionPolicy, HeuristicFieldExtractor
from sublet_ingest.services.gazetteer import GeoPoint, build_tel_aviv_gazetteer
from sublet_ingest.services.geocoding import NominatimGeocoder, get_geocode_cache
from sublet_ingest.services.heuristics import HeuristicExtractor
from sublet_ingest.services.images import ImageResolver
from sublet_ingest.services.ingestion import IngestionOrchestrator
from sublet_ingest.services.reparse import ReparseService
from sublet_ingest.services.repository import ListingRepository, get_repository


@lru_cache
def get_extraction_policy() -> FallbackExtractionPolicy:
    settings = get_settings()
    gazetteer = build_tel_aviv_gazetteer(center=GeoPoint(settings.default_lat, settings.default_lng))
    fallback = HeuristicFieldExtractor(HeuristicExtractor(gazetteer))
    primary = None
    if settings.ai_extraction_enabled:
        primary = GeminiExtractor(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout_seconds=settings.gemini_timeout_seconds,
        )
    return FallbackExtractionPolicy(
        primary,
        fallback,
        limiter=MinIntervalLimiter(settings.ai_min_interval_seconds),
    )


@lru_cache
def get_geocoder() -> NominatimGeocoder:
    settings = get_settings()
    return NominatimGeocoder(
        cache=get_geocode_cache(),
        limiter=MinIntervalLimiter(settings.geocoder_min_interval_seconds),
        base_url=settings.geocoder_base_url,
        user_agent=settings.geocoder_user_agent,
        timeout_seconds=settings.geocoder_timeout_seconds,
    )


@lru_cache
def get_image_resolver() -> ImageResolver:
    settings = get_settings()
    return ImageResolver(
        upload_base_url=settings.image_upload_base_url,
        timeout_seconds=settings.image_timeout_seconds,
    )


def get_orchestrator(repository: ListingRepository = Depends(get_repository)) -> IngestionOrchestrator:
    return IngestionOrchestrator(
        repository=repository,
        extraction=get_extraction_policy(),
        geocoder=get_geocoder(),
        images=get_image_resolver(),
        parser_version=get_settings().parser_version,
    )


def get_reparse_service(repository: ListingRepository = Depends(get_repository)) -> ReparseService:
    return ReparseService(
        repository=repository,
        extraction=get_extraction_policy(),
        geocoder=get_geocoder(),
        parser_version=get_settings().parser_version,
    )


def get_duplicate_resolver(repository: ListingRepository = Depends(get_repository)) -> DuplicateResolver:
    return DuplicateResolver(repository, delete_batch_size=get_settings().dedup_delete_batch_size)
