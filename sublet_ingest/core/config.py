from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "sublet-ingest"
    environment: str = "dev"
    storage_backend: Literal["postgres", "memory"] = "postgres"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    ai_extraction_enabled: bool = True
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout_seconds: float = 60.0
    ai_min_interval_seconds: float = 4.5
    geocoder_base_url: str = "https://nominatim.openstreetmap.org"
    geocoder_user_agent: str = "sublet-ingest/1.0"
    geocoder_timeout_seconds: float = 10.0
    geocoder_min_interval_seconds: float = 1.1
    default_lat: float = 32.0853
    default_lng: float = 34.7818
    parser_version: str = "2.1.0"
    ingest_batch_deadline_seconds: float | None = None
    dedup_delete_batch_size: int = 400
    image_upload_base_url: str | None = None
    image_timeout_seconds: float = 15.0
    worker_api_base_url: str = "http://localhost:8000"
    worker_dedup_interval_seconds: float = 3600.0
    worker_retry_base_seconds: float = 5.0
    worker_max_backoff_seconds: float = 300.0
    otel_enabled: bool = True
    otel_service_name: str = "sublet-ingest"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="SUBLET_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
