"""
TTS Backend Implementations.

Available Backends:
    - EspeakBackend: Local espeak binary, WAV converted to MP3
    - GoogleBackend: Google Cloud Text-to-Speech, MP3 returned directly
    - LarynxBackend: Larynx HTTP server, WAV converted to MP3

Use create_backend() in tts/backend.py rather than instantiating these
directly; it wires the shared runner, encoder and HTTP client.
"""
from __future__ import annotations

from phonos_ms.tts.backends.espeak_backend import EspeakBackend
from phonos_ms.tts.backends.google_backend import GoogleBackend
from phonos_ms.tts.backends.larynx_backend import LarynxBackend

__all__ = ["EspeakBackend", "GoogleBackend", "LarynxBackend"]
