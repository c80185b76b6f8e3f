"""
Application configuration with environment-based settings.

Configuration is centralized here to allow easy swapping between
development, staging, and production environments. Upstream base URLs,
per-call timeouts and result limits all live here so the pipeline
components never hardcode them.
"""

from pydantic_settings import BaseSettings
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    app_name: str = "Species Resolver API"
    app_version: str = "0.1.0"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4

    # Upstream services
    gbif_base_url: str = "https://api.gbif.org/v1"
    inaturalist_base_url: str = "https://api.inaturalist.org/v1"
    wikipedia_base_url: str = "https://en.wikipedia.org/api/rest_v1"
    flickr_feed_url: str = "https://www.flickr.com/services/feeds/photos_public.gne"
    user_agent: str = "species-resolver/0.1 (+https://www.gbif.org/developer/summary)"

    # Per-call timeouts (seconds)
    search_timeout: float = 10.0
    detail_timeout: float = 5.0
    enrichment_timeout: float = 3.0
    image_timeout: float = 3.0
    name_lookup_timeout: float = 2.0

    # Result limits
    max_species_options: int = 8
    canonical_search_limit: int = 10
    common_name_search_limit: int = 50
    fallback_search_limit: int = 5
    enrichment_search_limit: int = 10
    genus_search_limit: int = 5
    media_limit: int = 3
    inaturalist_photo_limit: int = 5

    # Concurrency and caching
    max_concurrency: int = 4
    search_cache_ttl_seconds: float = 300.0
    search_cache_max_entries: int = 512

    # Vocabulary data (common names, exclusion terms, lineage rules)
    vocabulary_path: Optional[str] = None

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "SPECIES_RESOLVER_"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
