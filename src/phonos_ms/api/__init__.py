"""
FastAPI REST API Layer for phonos-ms.

This package defines all HTTP endpoints:
    - routes.py: Pronunciation endpoints (/v1/pronunciation, /v1/audio,
      /v1/languages, /health, /metrics)
    - schemas.py: Response Pydantic models
    - dependencies.py: FastAPI dependency injection
"""
