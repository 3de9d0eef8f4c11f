"""
Pronunciation API Routes.

Endpoints:
    GET /v1/pronunciation  - Resolve a pronunciation to its URL and state
    GET /v1/audio          - SSML plus base64 MP3, rendering if needed
    GET /v1/languages      - Languages supported by the active backend
    GET /health            - Health check for load balancers and probes
    GET /metrics           - Prometheus metrics

Error Handling:
    Errors are returned as JSON with the stable message key:
    {
        "ok": false,
        "error": "phonos-engine-error",
        "args": ["Google", "API key not valid"],
        "message": "The Google engine failed: API key not valid"
    }

    HTTP status codes are mapped from the message key:
        - phonos-param-error, phonos-ipa-too-long -> 400 Bad Request
        - phonos-unsupported-language(-with-suggestions) -> 422
        - phonos-rendering-disabled -> 503 Service Unavailable
        - phonos-engine-error, phonos-empty-file-error -> 502 Bad Gateway
        - storage and conversion errors -> 500

Example Usage:
    curl 'http://localhost:8000/v1/pronunciation?ipa=/h%C9%99%CB%88v%C3%A6n%C9%99/&text=Havana&lang=en'
"""
from __future__ import annotations

import base64
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse

from phonos_ms.api.dependencies import get_pronunciation_service
from phonos_ms.api.schemas import AudioResponse, LanguagesResponse, PronunciationResponse
from phonos_ms.core.errors import ErrorKey, PhonosError
from phonos_ms.core.logging import error, get_logger, set_request_id
from phonos_ms.core.metrics import metrics
from phonos_ms.services.pronunciation import PronunciationService

router = APIRouter()

_LOG = get_logger("phonos-ms.api")

_STATUS_MAP = {
    ErrorKey.PARAM: 400,
    ErrorKey.IPA_TOO_LONG: 400,
    ErrorKey.UNSUPPORTED_LANGUAGE: 422,
    ErrorKey.UNSUPPORTED_LANGUAGE_WITH_SUGGESTIONS: 422,
    ErrorKey.RENDERING_DISABLED: 503,
    ErrorKey.ENGINE: 502,
    ErrorKey.EMPTY_FILE: 502,
    ErrorKey.AUDIO_CONVERSION: 500,
    ErrorKey.STORAGE: 500,
    ErrorKey.DIRECTORY: 500,
}


def _new_request_id() -> str:
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)
    return rid


def _error_response(err: PhonosError, rid: str) -> JSONResponse:
    return JSONResponse(
        status_code=_STATUS_MAP.get(err.key, 500),
        content=err.to_dict(),
        headers={"X-Request-Id": rid},
    )


def _internal_error(rid: str, exc: Exception) -> JSONResponse:
    error(_LOG, "unhandled_error", error=repr(exc), exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": "internal-error",
            "args": [],
            "message": "Internal server error",
            "request_id": rid,
        },
    )


@router.get("/v1/pronunciation", response_model=PronunciationResponse)
def pronunciation(
    ipa: str = Query("", description="IPA transcription"),
    text: str = Query("", description="Display text"),
    lang: Optional[str] = Query(None, description="Language code"),
    sync: Optional[bool] = Query(None, description="Render now instead of queueing"),
    service: PronunciationService = Depends(get_pronunciation_service),
):
    """
    Resolve a pronunciation.

    Always answers with the file URL. Unsupported languages and cached
    generation failures are reported in ``error`` with status 200; only
    invalid input is an HTTP error.
    """
    rid = _new_request_id()
    try:
        result = service.resolve(ipa, text, lang, synchronous=sync)
    except PhonosError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(rid, e)

    return JSONResponse(content=result.to_dict(), headers={"X-Request-Id": rid})


@router.get("/v1/audio", response_model=AudioResponse)
def audio(
    ipa: str = Query("", description="IPA transcription"),
    text: str = Query("", description="Display text"),
    lang: Optional[str] = Query(None, description="Language code"),
    service: PronunciationService = Depends(get_pronunciation_service),
):
    """SSML and base64-encoded MP3 for a pronunciation."""
    rid = _new_request_id()
    try:
        ssml, data = service.render_audio(ipa, text, lang)
    except PhonosError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(rid, e)

    return JSONResponse(
        content={"ssml": ssml, "audio_data": base64.b64encode(data).decode("ascii")},
        headers={"X-Request-Id": rid},
    )


@router.get("/v1/languages", response_model=LanguagesResponse)
def languages(service: PronunciationService = Depends(get_pronunciation_service)):
    rid = _new_request_id()
    try:
        langs = service.supported_languages()
    except PhonosError as e:
        return _error_response(e, rid)

    return {"engine": service.engine.backend.display_name, "languages": langs}


@router.get("/health")
def health(service: PronunciationService = Depends(get_pronunciation_service)):
    """
    Health check endpoint for load balancers and orchestration.

    Reports the active backend plus job queue and error cache statistics.
    """
    jobs = service.job_queue.stats()
    return {
        "status": "ok",
        "engine": service.engine.backend.display_name,
        "storage": {
            "root": service.engine.store.root_path(),
            "supports_headers": service.engine.store.supports_headers,
        },
        "jobs": {
            "enqueued": jobs.enqueued,
            "deduplicated": jobs.deduplicated,
            "completed": jobs.completed,
            "failed": jobs.failed,
            "pending": jobs.pending,
        },
        "error_cache": service.engine.error_cache.stats(),
    }


@router.get("/metrics")
def prometheus_metrics():
    """Prometheus text exposition of the phonos_* metrics."""
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
