"""
Background Audio Generation.

When a pronunciation is requested and its file does not exist yet, the
service answers immediately with the file URL and queues a
GenerationJob. The job renders and persists the audio; the next request
for the same pronunciation then finds the file.

A failed job records the error in the engine's error cache. Until that
record expires, requests for the same pronunciation report the failure
instead of queueing another attempt; the job itself never retries.

Deduplication:
    Jobs are keyed by type and sorted parameters. While a job with the
    same key is queued or running, further enqueues are dropped.

Thread Safety:
    - Pending keys protected by _lock
    - Bounded ThreadPoolExecutor (``jobs.max_workers`` threads)

Usage:
    queue = JobQueue(engine, max_workers=2)
    queue.enqueue(GenerationJob({"ipa": "/həˈvænə/", "text": "Havana", "lang": "en"}))
    queue.drain(timeout=10)
"""
from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, Optional, Set

from phonos_ms.core.errors import PhonosError
from phonos_ms.core.logging import error, get_logger, info, set_request_id, verbose
from phonos_ms.core.metrics import metrics
from phonos_ms.tts.backend import AudioRequest
from phonos_ms.tts.engine import Engine

_LOG = get_logger("phonos-ms.jobs")


class GenerationJob:
    """
    Render and persist one pronunciation.

    Attributes:
        params: ``{"ipa": ..., "text": ..., "lang": ...}``.
    """
    job_type = "phonosIPAFilePersist"

    def __init__(self, params: Dict[str, str], request_id: str = "-"):
        self.params = {
            "ipa": str(params.get("ipa", "")),
            "text": str(params.get("text", "")),
            "lang": str(params.get("lang", "")),
        }
        self.request_id = request_id

    @property
    def request(self) -> AudioRequest:
        return AudioRequest(**self.params)

    @property
    def dedup_key(self) -> str:
        parts = [f"{k}={self.params[k]}" for k in sorted(self.params)]
        return "|".join([self.job_type, *parts])

    def run(self, engine: Engine) -> None:
        """
        Raises:
            PhonosError: After recording it in the error cache.
        """
        req = self.request
        try:
            engine.get_audio_data(req)
        except PhonosError as e:
            engine.set_error(req, e.key, e.args_list)
            metrics.record_error(e.key)
            metrics.record_job("failed")
            error(
                _LOG, "generation_failed",
                kind=e.key,
                message=e.message,
                ipa=req.ipa,
                lang=req.lang,
            )
            raise

        engine.clear_error(req)
        metrics.record_job("success")
        info(_LOG, "generation_done", file=engine.get_file_name(req))


@dataclass
class JobQueueStats:
    enqueued: int
    deduplicated: int
    completed: int
    failed: int
    pending: int


class JobQueue:
    """Deduplicating job queue on a bounded thread pool."""

    def __init__(self, engine: Engine, max_workers: int = 2):
        self._engine = engine
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="phonos-job",
        )
        self._lock = threading.Lock()
        self._pending: Set[str] = set()
        self._futures: Set[Future] = set()

        self._enqueued = 0
        self._deduplicated = 0
        self._completed = 0
        self._failed = 0

        info(_LOG, "job_queue_init", max_workers=max_workers)

    def enqueue(self, job: GenerationJob) -> bool:
        """
        Queue ``job`` unless an identical one is queued or running.

        Returns:
            True if the job was queued, False if it was a duplicate.
        """
        key = job.dedup_key
        with self._lock:
            if key in self._pending:
                self._deduplicated += 1
                metrics.record_job("skipped")
                verbose(_LOG, "job_deduplicated", key=key)
                return False
            self._pending.add(key)
            self._enqueued += 1
            future = self._executor.submit(self._run, job, key)
            self._futures.add(future)

        future.add_done_callback(self._discard_future)
        return True

    def _discard_future(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    def _run(self, job: GenerationJob, key: str) -> None:
        set_request_id(job.request_id)
        try:
            job.run(self._engine)
        except PhonosError:
            # Already recorded and logged by the job.
            with self._lock:
                self._failed += 1
        except Exception as e:
            metrics.record_job("crashed")
            error(_LOG, "job_crashed", key=key, error=repr(e), exc_info=True)
            with self._lock:
                self._failed += 1
        else:
            with self._lock:
                self._completed += 1
        finally:
            with self._lock:
                self._pending.discard(key)

    def is_pending(self, job: GenerationJob) -> bool:
        with self._lock:
            return job.dedup_key in self._pending

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for queued and running jobs.

        Returns:
            True if everything finished within ``timeout``.
        """
        with self._lock:
            futures = list(self._futures)
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    def stats(self) -> JobQueueStats:
        with self._lock:
            return JobQueueStats(
                enqueued=self._enqueued,
                deduplicated=self._deduplicated,
                completed=self._completed,
                failed=self._failed,
                pending=len(self._pending),
            )

    def shutdown(self, wait_for_jobs: bool = False) -> None:
        self._executor.shutdown(wait=wait_for_jobs)
        info(_LOG, "job_queue_shutdown")


_job_queue: Optional[JobQueue] = None
_job_queue_lock = threading.Lock()


def get_job_queue(engine: Engine, max_workers: int = 2) -> JobQueue:
    """Get or create the global JobQueue."""
    global _job_queue
    if _job_queue is None:
        with _job_queue_lock:
            if _job_queue is None:
                _job_queue = JobQueue(engine, max_workers=max_workers)
    return _job_queue


def reset_job_queue() -> None:
    """Shut down and drop the global JobQueue (for testing)."""
    global _job_queue
    with _job_queue_lock:
        if _job_queue is not None:
            _job_queue.shutdown()
        _job_queue = None
