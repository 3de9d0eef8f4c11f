"""
Pronunciation Engine.

The Engine is the backend-independent API the service, the job worker
and the HTTP layer use. It owns:
    - content-addressed naming of rendered files (tts/keys.py)
    - persistence and expiry stamping against a BlobStore (tts/storage.py)
    - the per-request error cache that suppresses retries (tts/cache.py)
    - the supported-language cache and language normalisation
    - MP3 conversion through the command sandbox (tts/encoder.py)

Engine methods block. Concurrency comes from the host: FastAPI's
threadpool for requests and the JobQueue worker pool for generation.

Usage:
    from phonos_ms.tts.engine import get_engine
    from phonos_ms.tts.backend import AudioRequest

    engine = get_engine()
    req = AudioRequest(ipa="/həˈvænə/", text="Havana", lang="en")
    url = engine.get_file_url(req)
    mp3 = engine.get_audio_data(req)
"""
from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import httpx

from phonos_ms.core.config import ServiceConfig, load_settings_or_defaults
from phonos_ms.core.errors import (
    DirectoryError,
    EmptyOutputError,
    StorageError,
    UnsupportedLanguageError,
    UnsupportedLanguageWithSuggestionsError,
)
from phonos_ms.core.logging import get_logger, info, verbose, warn
from phonos_ms.core.metrics import metrics
from phonos_ms.tts.backend import AudioRequest, BaseBackend, create_backend
from phonos_ms.tts.cache import TTLCache
from phonos_ms.tts.encoder import Mp3Encoder
from phonos_ms.tts.keys import FileProperties, derive_properties
from phonos_ms.tts.sandbox import CommandRunner, SubprocessRunner
from phonos_ms.tts.storage import BlobStore, BlobStoreError, FSBlobStore
from phonos_ms.utils.timeit import timeit

_LOG = get_logger("phonos-ms.engine")

EXPIRY_HEADER = "X-Delete-At"


@dataclass(frozen=True)
class ErrorRecord:
    """A cached generation failure: message key plus arguments."""
    kind: str
    args: List[str] = field(default_factory=list)


def normalize_lang(lang: str) -> str:
    """``en_US`` -> ``en-us``."""
    return lang.replace("_", "-").lower()


class Engine:
    """
    Backend-independent rendering and storage API.

    Attributes:
        backend: The TTS backend that renders missing audio.
        store: Blob store holding rendered MP3 files.
        config: Validated service configuration.
    """

    def __init__(
        self,
        backend: BaseBackend,
        store: BlobStore,
        config: ServiceConfig,
        encoder: Mp3Encoder,
        error_cache: Optional[TTLCache[ErrorRecord]] = None,
        language_cache: Optional[TTLCache[List[str]]] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.backend = backend
        self.store = store
        self.config = config
        self.encoder = encoder
        self.error_cache = error_cache if error_cache is not None else TTLCache(
            max_items=config.error_cache.max_items,
            ttl_seconds=config.error_cache.ttl_seconds,
        )
        self.language_cache = language_cache if language_cache is not None else TTLCache(
            max_items=16,
            ttl_seconds=config.languages.cache_ttl_seconds,
        )
        self._clock = clock
        self._rng = rng or random.Random()

    # ─────────────────────────────────────────────────────────────────────────
    # Naming
    # ─────────────────────────────────────────────────────────────────────────

    def file_properties(self, req: AudioRequest) -> FileProperties:
        storage = self.config.storage
        return derive_properties(
            self.backend.name,
            req.ipa,
            req.text,
            req.lang,
            format_version=storage.format_version,
            storage_root=self.store.root_path(),
            upload_path=storage.upload_path,
        )

    def get_file_url(self, req: AudioRequest) -> str:
        """Public URL of the rendered file; valid before the file exists."""
        return self.file_properties(req).public_url

    def get_file_name(self, req: AudioRequest) -> str:
        return self.file_properties(req).file_name

    # ─────────────────────────────────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────────────────────────────────

    def is_persisted(self, req: AudioRequest) -> bool:
        return self.store.exists(self.file_properties(req).full_path)

    def get_persisted_audio(self, req: AudioRequest) -> Optional[bytes]:
        props = self.file_properties(req)
        if not self.store.exists(props.full_path):
            return None
        try:
            return self.store.read(props.full_path)
        except BlobStoreError as e:
            raise StorageError(str(e)) from e

    def generate_expiry_ts(self) -> int:
        """
        Deletion timestamp for a freshly written or refreshed file.

        Drawn uniformly from ``[now + floor*ttl, now + ttl]`` so files
        written together do not all expire (and regenerate) together.
        """
        storage = self.config.storage
        ttl = storage.file_expiry_days * 86400
        return int(self._clock()) + self._rng.randint(int(ttl * storage.expiry_jitter_floor), ttl)

    def persist_audio(self, req: AudioRequest, data: bytes) -> None:
        """
        Write rendered audio to the blob store.

        Raises:
            EmptyOutputError: ``data`` is below the backend's minimum size.
            DirectoryError: The destination directory could not be prepared.
            StorageError: The write failed.
        """
        if self.backend.min_file_size and len(data) < self.backend.min_file_size:
            raise EmptyOutputError(["text"])

        props = self.file_properties(req)
        try:
            self.store.prepare(props.storage_path)
        except BlobStoreError as e:
            raise DirectoryError(str(e)) from e

        headers = None
        if self.store.supports_headers:
            headers = {EXPIRY_HEADER: str(self.generate_expiry_ts())}

        try:
            self.store.create(props.full_path, data, overwrite_same=True, headers=headers)
        except BlobStoreError as e:
            raise StorageError(str(e)) from e

        info(_LOG, "persisted", file=props.file_name, bytes=len(data))

    def update_file_expiry(self, req: AudioRequest) -> None:
        """Push the deletion timestamp forward; no-op without header support."""
        if not self.store.supports_headers:
            return

        props = self.file_properties(req)
        try:
            self.store.describe(props.full_path, {EXPIRY_HEADER: str(self.generate_expiry_ts())})
        except BlobStoreError as e:
            # Best effort: the file is still served, it just keeps its old expiry.
            warn(_LOG, "expiry_refresh_failed", file=props.file_name, error=str(e))

    # ─────────────────────────────────────────────────────────────────────────
    # Languages
    # ─────────────────────────────────────────────────────────────────────────

    def get_supported_languages(self) -> Optional[List[str]]:
        """Backend language list, cached for ``languages.cache_ttl_seconds``."""
        key = f"{self.backend.name}:languages"
        langs = self.language_cache.get(key)
        if langs is None:
            langs = self.backend.supported_languages()
            if langs is not None:
                self.language_cache.set(key, langs)
                verbose(_LOG, "languages_loaded", backend=self.backend.display_name, count=len(langs))
        return langs

    def check_language_support(self, lang: str) -> str:
        """
        Resolve ``lang`` to the backend's own spelling of it.

        Returns ``lang`` unchanged when the backend is unrestricted.

        Raises:
            UnsupportedLanguageWithSuggestionsError: Not supported, but some
                supported codes contain ``lang`` (case-insensitive).
            UnsupportedLanguageError: Not supported and nothing similar.
        """
        supported = self.get_supported_languages()
        if supported is None:
            return lang

        wanted = normalize_lang(lang)
        for candidate in supported:
            if normalize_lang(candidate) == wanted:
                return candidate

        needle = lang.lower()
        suggestions = [s for s in supported if needle in s.lower()]
        if suggestions:
            raise UnsupportedLanguageWithSuggestionsError(lang, suggestions)
        raise UnsupportedLanguageError(lang)

    # ─────────────────────────────────────────────────────────────────────────
    # Error cache
    # ─────────────────────────────────────────────────────────────────────────

    def get_error(self, req: AudioRequest) -> Optional[ErrorRecord]:
        return self.error_cache.get(req.identity())

    def set_error(self, req: AudioRequest, kind: str, args: List[str]) -> None:
        self.error_cache.set(req.identity(), ErrorRecord(kind=kind, args=[str(a) for a in args]))

    def clear_error(self, req: AudioRequest) -> None:
        self.error_cache.delete(req.identity())

    # ─────────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────────

    def convert_to_output_codec(self, data: bytes) -> bytes:
        """WAV -> MP3 through the sandboxed encoder."""
        return self.encoder.encode(data)

    def get_ssml(self, req: AudioRequest) -> str:
        return self.backend.ssml(req)

    def get_audio_data(self, req: AudioRequest) -> bytes:
        """
        Return MP3 bytes for ``req``, rendering and persisting on a miss.

        Raises:
            PhonosError: Any backend, conversion or storage failure.
        """
        persisted = self.get_persisted_audio(req)
        if persisted:
            verbose(_LOG, "storage_hit", file=self.get_file_name(req))
            return persisted

        t = timeit("synthesize")
        try:
            with t:
                data = self.backend.synthesize(req)
        finally:
            metrics.observe_backend(self.backend.display_name.lower(), t.timing.seconds)

        info(
            _LOG, "rendered",
            backend=self.backend.display_name,
            lang=req.lang,
            bytes=len(data),
            seconds=round(t.timing.seconds, 4),
        )
        self.persist_audio(req, data)
        return data


# =============================================================================
# Engine Factory (Singleton Pattern)
# =============================================================================

_ENGINE: Optional[Engine] = None
_ENGINE_LOCK = threading.Lock()


def build_engine(
    config: ServiceConfig,
    store: Optional[BlobStore] = None,
    runner: Optional[CommandRunner] = None,
    http_client: Optional[httpx.Client] = None,
) -> Engine:
    """
    Wire an Engine from configuration.

    Any collaborator can be supplied to replace the default (filesystem
    store, subprocess runner, proxy-aware httpx client).
    """
    runner = runner or SubprocessRunner(
        wrapper=config.sandbox.wrapper,
        timeout_s=config.sandbox.timeout_s,
    )
    encoder = Mp3Encoder(runner, lame_path=config.encoder.lame_path)
    backend = create_backend(config.engine, config, runner, encoder, http_client)
    store = store or FSBlobStore(config.storage.base_dir)
    return Engine(backend, store, config, encoder)


def get_engine(config: Optional[ServiceConfig] = None) -> Engine:
    """
    Get or create the global Engine.

    Args:
        config: Service configuration. Loaded from PHONOS_SETTINGS (or
            defaults) when omitted on first use.
    """
    global _ENGINE
    if _ENGINE is None:
        with _ENGINE_LOCK:
            if _ENGINE is None:
                if config is None:
                    config = load_settings_or_defaults().get_service_config()
                _ENGINE = build_engine(config)
                info(_LOG, "engine_ready", backend=_ENGINE.backend.display_name)
    return _ENGINE


def reset_engine() -> None:
    """Reset the global Engine (for testing)."""
    global _ENGINE
    with _ENGINE_LOCK:
        _ENGINE = None
