"""
TTS Backend Base Class and Factory.

This module provides:
    - AudioRequest: The (ipa, text, lang) triple identifying a rendering
    - BaseBackend: Abstract base class for all TTS backends
    - build_http_client(): Shared httpx client honouring proxy and timeout
    - create_backend(): Closed factory selecting a backend by name

Backend Selection:
    The backend is selected via the PHONOS_ENGINE environment variable or
    the ``engine`` key in settings.yaml. Supported backends:
        - espeak: Local espeak binary run in the command sandbox
        - google: Google Cloud Text-to-Speech REST API
        - larynx: Self-hosted Larynx HTTP server

Implementing a New Backend:
    1. Create backends/<name>_backend.py
    2. Inherit from BaseBackend
    3. Implement ssml() and synthesize(), and supported_languages() if the
       backend can list its languages
    4. Register it in create_backend()

The ``name`` attribute is part of every cache key. Changing it orphans
every file the backend has rendered, so treat it as a constant.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import httpx

from phonos_ms.core.config import Defaults, HttpConfig, ServiceConfig
from phonos_ms.core.logging import get_logger
from phonos_ms.tts.encoder import Mp3Encoder
from phonos_ms.tts.sandbox import CommandRunner

SSML_NAMESPACE = "http://www.w3.org/2001/10/synthesis"


@dataclass(frozen=True)
class AudioRequest:
    """
    One pronunciation to render.

    Attributes:
        ipa: IPA transcription, e.g. ``/həˈvænə/``.
        text: Display text, e.g. ``Havana``. May be empty.
        lang: Language code, e.g. ``en``.
    """
    ipa: str
    text: str
    lang: str

    def identity(self) -> str:
        """Error-cache key; independent of backend and format version."""
        return "|".join([self.ipa, self.text, self.lang])


class BaseBackend:
    """
    Abstract base class for TTS backends.

    Subclasses return audio already encoded as MP3 from synthesize() and
    raise EngineError (or AudioConversionError from the encoder) on
    failure.

    Attributes:
        name: Stable identifier used in cache keys.
        display_name: Name shown in error messages.
        min_file_size: Outputs smaller than this are treated as empty.
    """
    name: str = "BaseBackend"
    display_name: str = "base"
    min_file_size: int = Defaults.MIN_FILE_SIZE

    def __init__(
        self,
        config: ServiceConfig,
        runner: CommandRunner,
        encoder: Mp3Encoder,
        http_client: Optional[httpx.Client] = None,
    ):
        self.config = config
        self.runner = runner
        self.encoder = encoder
        self.http_client = http_client
        self.logger = get_logger(f"phonos-ms.backend.{self.display_name.lower()}")

    def ssml(self, req: AudioRequest) -> str:
        """SSML document sent to the synthesizer."""
        raise NotImplementedError

    def synthesize(self, req: AudioRequest) -> bytes:
        """Render ``req`` and return MP3 bytes."""
        raise NotImplementedError

    def supported_languages(self) -> Optional[List[str]]:
        """
        Language codes this backend can speak.

        None means unrestricted; any language is passed through.
        """
        return None

    def _http(self) -> httpx.Client:
        if self.http_client is None:
            self.http_client = build_http_client(self.config.http)
        return self.http_client


def build_http_client(http: HttpConfig) -> httpx.Client:
    """httpx client with the configured outbound proxy and timeout."""
    return httpx.Client(proxy=http.proxy or None, timeout=http.timeout_s)


def create_backend(
    engine_type: str,
    config: ServiceConfig,
    runner: CommandRunner,
    encoder: Mp3Encoder,
    http_client: Optional[httpx.Client] = None,
) -> BaseBackend:
    """
    Create a TTS backend instance.

    Args:
        engine_type: ``espeak``, ``google`` or ``larynx``.
        config: Validated service configuration.
        runner: Command runner for local binaries.
        encoder: MP3 encoder for WAV-producing backends.
        http_client: Optional pre-built client (tests pass a mock transport).

    Raises:
        ValueError: If engine_type is unknown.
    """
    engine_type = engine_type.strip().lower()

    if engine_type == "espeak":
        from phonos_ms.tts.backends.espeak_backend import EspeakBackend
        return EspeakBackend(config, runner, encoder, http_client)

    if engine_type == "google":
        from phonos_ms.tts.backends.google_backend import GoogleBackend
        return GoogleBackend(config, runner, encoder, http_client)

    if engine_type == "larynx":
        from phonos_ms.tts.backends.larynx_backend import LarynxBackend
        return LarynxBackend(config, runner, encoder, http_client)

    raise ValueError(f"Unknown engine type: {engine_type}")
