"""
phonos-ms: IPA pronunciation audio microservice.

Renders pronunciation audio for IPA input through a pluggable TTS backend
(espeak, Google Cloud TTS, Larynx) and keeps the rendered MP3 files in a
content-addressed blob store, so identical requests are served without
rendering again.

Key Features:
    - Deterministic file names: backend, IPA, text, language and format
      version hash to one 31-character token
    - Background generation jobs with deduplication
    - Failed renders are remembered and not retried until the record expires
    - Expiry stamping with jitter on header-capable stores
    - Prometheus metrics and structured logging

Example Usage:
    >>> from phonos_ms.services import get_service
    >>>
    >>> service = get_service()
    >>> result = service.resolve("/həˈvænə/", "Havana", "en", synchronous=True)
    >>> result.url
    '/media/0/8/08h2h100e3dgycsfj2my0oc8ll84q3a.mp3'
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
