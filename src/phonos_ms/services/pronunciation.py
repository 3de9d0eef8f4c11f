"""
Pronunciation Service.

Resolves a pronunciation request (IPA, text, language) to the public
URL of its audio file and reports where that file is in its life cycle:

    NOT_REQUESTED ──render ok──────────▶ PERSISTED ◀── hit: expiry refreshed
          │                                   ▲
          ├──async────▶ GENERATION_QUEUED ────┘ (job succeeds)
          │                   │
          └──render fails─────┴──▶ GENERATION_FAILED  (cached error,
                                                       no retry until it expires)

Resolution order:
    1. Validate input (IPA required and bounded)
    2. Check language support; unsupported languages are reported in the
       result so the caller can render a disabled control
    3. File exists: refresh its expiry, PERSISTED
    4. Cached error: GENERATION_FAILED with that error, no new attempt
    5. Rendering disabled: NOT_REQUESTED with RenderingDisabledError
    6. Synchronous: render now; asynchronous: queue a GenerationJob

The URL is returned in every state, including before the file exists.

Usage:
    service = get_service()
    result = service.resolve("/həˈvænə/", "Havana", "en")
    print(result.state, result.url)
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from phonos_ms.core.config import ServiceConfig
from phonos_ms.core.errors import (
    PhonosError,
    RenderingDisabledError,
    phonos_error_from_record,
)
from phonos_ms.core.logging import get_logger, get_request_id, info, verbose, warn
from phonos_ms.core.metrics import metrics
from phonos_ms.services.validators import validate_ipa, validate_language, validate_text
from phonos_ms.tts.backend import AudioRequest
from phonos_ms.tts.engine import Engine, get_engine
from phonos_ms.tts.jobs import GenerationJob, JobQueue, get_job_queue, reset_job_queue

_LOG = get_logger("phonos-ms.service")


class AudioState(str, Enum):
    NOT_REQUESTED = "not_requested"
    PERSISTED = "persisted"
    GENERATION_QUEUED = "generation_queued"
    GENERATION_FAILED = "generation_failed"


@dataclass
class PronunciationResult:
    """
    Outcome of resolving one pronunciation.

    Attributes:
        state: Where the audio file is in its life cycle.
        url: Public URL of the audio file (may not exist yet).
        file_name: ``{token}.mp3``.
        lang: Language as spelled by the backend.
        error: Error to show instead of a working player, if any.
    """
    state: AudioState
    url: str
    file_name: str
    lang: str
    error: Optional[PhonosError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "state": self.state.value,
            "url": self.url,
            "file": self.file_name,
            "lang": self.lang,
            "error": self.error.to_dict() if self.error else None,
        }


class PronunciationService:
    """
    Request-facing orchestration over the Engine and the JobQueue.

    Thread-safe: all mutable state lives in the Engine's caches, the blob
    store and the JobQueue, each of which locks internally.
    """

    def __init__(
        self,
        engine: Engine,
        config: ServiceConfig,
        job_queue: Optional[JobQueue] = None,
    ):
        self.engine = engine
        self.config = config
        self.job_queue = job_queue or JobQueue(engine, max_workers=config.jobs.max_workers)

    def _surface(self, err: PhonosError) -> PhonosError:
        metrics.record_error(err.key)
        return err

    def _finish(self, result: PronunciationResult) -> PronunciationResult:
        metrics.record_request(result.state.value)
        info(
            _LOG, "resolved",
            state=result.state.value,
            file=result.file_name,
            kind=result.error.key if result.error else None,
        )
        return result

    def _validated(self, ipa: Optional[str], text: Optional[str], lang: Optional[str]) -> AudioRequest:
        rendering = self.config.rendering
        try:
            return AudioRequest(
                ipa=validate_ipa(ipa, max_length=rendering.max_ipa_length),
                text=validate_text(text),
                lang=validate_language(lang, default=rendering.default_language),
            )
        except PhonosError as e:
            raise self._surface(e)

    def resolve(
        self,
        ipa: Optional[str],
        text: Optional[str] = "",
        lang: Optional[str] = None,
        *,
        synchronous: Optional[bool] = None,
    ) -> PronunciationResult:
        """
        Resolve a pronunciation to its URL and audio state.

        Args:
            ipa: IPA transcription (required).
            text: Display text.
            lang: Language code; ``rendering.default_language`` if empty.
            synchronous: Render missing audio in this call instead of
                queueing a job. Defaults to ``rendering.synchronous``.

        Raises:
            ParamError: IPA missing.
            IpaTooLongError: IPA over the configured limit.
        """
        req = self._validated(ipa, text, lang)
        if synchronous is None:
            synchronous = self.config.rendering.synchronous

        try:
            req = AudioRequest(req.ipa, req.text, self.engine.check_language_support(req.lang))
        except PhonosError as e:
            props = self.engine.file_properties(req)
            return self._finish(PronunciationResult(
                AudioState.NOT_REQUESTED, props.public_url, props.file_name, req.lang, self._surface(e),
            ))

        props = self.engine.file_properties(req)

        def result(state: AudioState, err: Optional[PhonosError] = None) -> PronunciationResult:
            return self._finish(PronunciationResult(state, props.public_url, props.file_name, req.lang, err))

        if self.engine.is_persisted(req):
            self.engine.update_file_expiry(req)
            return result(AudioState.PERSISTED)

        record = self.engine.get_error(req)
        if record is not None:
            verbose(_LOG, "cached_error", file=props.file_name, kind=record.kind)
            return result(
                AudioState.GENERATION_FAILED,
                self._surface(phonos_error_from_record(record.kind, record.args)),
            )

        if not self.config.rendering.enabled:
            return result(AudioState.NOT_REQUESTED, self._surface(RenderingDisabledError()))

        if synchronous:
            try:
                self.engine.get_audio_data(req)
            except PhonosError as e:
                self.engine.set_error(req, e.key, e.args_list)
                warn(_LOG, "render_failed", kind=e.key, message=e.message)
                return result(AudioState.GENERATION_FAILED, self._surface(e))
            self.engine.clear_error(req)
            return result(AudioState.PERSISTED)

        job = GenerationJob(
            {"ipa": req.ipa, "text": req.text, "lang": req.lang},
            request_id=get_request_id(),
        )
        self.job_queue.enqueue(job)
        return result(AudioState.GENERATION_QUEUED)

    def render_audio(
        self,
        ipa: Optional[str],
        text: Optional[str] = "",
        lang: Optional[str] = None,
    ) -> Tuple[str, bytes]:
        """
        SSML and MP3 bytes for a pronunciation, rendering if needed.

        Raises:
            PhonosError: Invalid input, unsupported language or a
                rendering failure.
        """
        req = self._validated(ipa, text, lang)
        try:
            req = AudioRequest(req.ipa, req.text, self.engine.check_language_support(req.lang))
            return self.engine.get_ssml(req), self.engine.get_audio_data(req)
        except PhonosError as e:
            raise self._surface(e)

    def supported_languages(self) -> Optional[List[str]]:
        return self.engine.get_supported_languages()

    def shutdown(self) -> None:
        self.job_queue.shutdown()


# =============================================================================
# Global Service Singleton
# =============================================================================

_service: Optional[PronunciationService] = None
_service_lock = threading.Lock()


def get_service(config: Optional[ServiceConfig] = None) -> PronunciationService:
    """
    Get or create the global PronunciationService instance.

    Thread-safe lazy singleton built on the global Engine and JobQueue.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                engine = get_engine(config)
                config = config or engine.config
                _service = PronunciationService(
                    engine,
                    config,
                    job_queue=get_job_queue(engine, max_workers=config.jobs.max_workers),
                )
    return _service


def reset_service() -> None:
    """
    Reset the global service instance.

    Used primarily for testing to ensure clean state between tests.
    """
    global _service
    with _service_lock:
        _service = None
    reset_job_queue()
