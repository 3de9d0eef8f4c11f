"""
API Response Schemas.

Pydantic models for the phonos-ms endpoints. They drive response
validation and the generated OpenAPI documentation.

Example /v1/pronunciation response:
    {
        "ok": true,
        "state": "generation_queued",
        "url": "/media/0/8/08h2h100e3dgycsfj2my0oc8ll84q3a.mp3",
        "file": "08h2h100e3dgycsfj2my0oc8ll84q3a.mp3",
        "lang": "en",
        "error": null
    }
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    """
    Error payload shared by every endpoint.

    ``error`` is the stable message key, ``args`` its arguments.
    """
    ok: bool = False
    error: str = Field(..., description="Stable message key, e.g. phonos-engine-error")
    args: List[str] = Field(default_factory=list)
    message: str = Field(..., description="English rendering of the error")


class PronunciationResponse(BaseModel):
    ok: bool
    state: str = Field(
        ...,
        description="not_requested, persisted, generation_queued or generation_failed",
    )
    url: str = Field(..., description="Public URL of the MP3, valid before it exists")
    file: str
    lang: str
    error: Optional[ErrorBody] = None


class AudioResponse(BaseModel):
    """Rendered audio, matching the ``action=phonos`` API module."""
    ssml: str
    audio_data: str = Field(..., description="Base64-encoded MP3")


class LanguagesResponse(BaseModel):
    engine: str
    languages: Optional[List[str]] = Field(
        default=None,
        description="Supported language codes; null means unrestricted",
    )
