"""
FastAPI Dependency Injection Providers.

Hierarchy:
    1. get_settings() - Loads and caches application configuration
    2. get_service_config() - Validated ServiceConfig
    3. get_pronunciation_service() - Singleton PronunciationService

Tests replace ``get_pronunciation_service`` through
``app.dependency_overrides`` to run against an in-memory store.
"""
from __future__ import annotations

from functools import lru_cache

from phonos_ms.core.config import ServiceConfig, Settings, load_settings_or_defaults
from phonos_ms.services.pronunciation import PronunciationService, get_service


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    Reads PHONOS_SETTINGS (default ``config/settings.yaml``); a missing
    file means defaults plus environment overrides.
    """
    return load_settings_or_defaults()


def get_service_config() -> ServiceConfig:
    return get_settings().get_service_config()


def get_pronunciation_service() -> PronunciationService:
    """The global PronunciationService instance."""
    return get_service(get_service_config())
