"""
Tests for background generation jobs.

Tests cover:
- GenerationJob success persists audio and clears cached errors
- GenerationJob failure records the error and re-raises
- JobQueue deduplication while a job is pending
- Queue statistics and drain
"""
import threading

import pytest

from phonos_ms.core.errors import EngineError, ErrorKey
from phonos_ms.core.metrics import metrics
from phonos_ms.tts.backend import AudioRequest
from phonos_ms.tts.jobs import GenerationJob, JobQueue
from phonos_ms.tts.sandbox import CommandResult

PARAMS = {"ipa": "/həˈvænə/", "text": "Havana", "lang": "en"}
HAVANA = AudioRequest(**PARAMS)


def _failing_espeak(argv, stdin):
    if "--voices" in argv:
        return CommandResult(0, b"header\n")
    return CommandResult(1, stderr=b"espeak: crashed")


class TestGenerationJob:

    def test_dedup_key(self):
        job = GenerationJob(PARAMS)
        assert job.dedup_key == "phonosIPAFilePersist|ipa=/həˈvænə/|lang=en|text=Havana"
        assert job.request == HAVANA

    def test_missing_params_default_to_empty(self):
        assert GenerationJob({"ipa": "/a/"}).request == AudioRequest("/a/", "", "")

    def test_run_success(self, engine):
        engine.set_error(HAVANA, ErrorKey.ENGINE, ["eSpeak", "old failure"])
        before = metrics.get_sample("phonos_jobs_total", {"status": "success"})

        GenerationJob(PARAMS).run(engine)

        assert engine.is_persisted(HAVANA)
        assert engine.get_error(HAVANA) is None
        assert metrics.get_sample("phonos_jobs_total", {"status": "success"}) == before + 1

    def test_run_failure_records_error(self, engine, runner):
        runner.handlers["espeak"] = _failing_espeak
        errors_before = metrics.get_sample("phonos_errors_total", {"kind": "phonos_engine_error"})
        failed_before = metrics.get_sample("phonos_jobs_total", {"status": "failed"})

        with pytest.raises(EngineError):
            GenerationJob(PARAMS).run(engine)

        record = engine.get_error(HAVANA)
        assert record.kind == ErrorKey.ENGINE
        assert record.args == ["eSpeak", "espeak: crashed"]
        assert not engine.is_persisted(HAVANA)
        assert metrics.get_sample("phonos_errors_total", {"kind": "phonos_engine_error"}) == errors_before + 1
        assert metrics.get_sample("phonos_jobs_total", {"status": "failed"}) == failed_before + 1


class TestJobQueue:

    def test_enqueue_and_drain(self, engine):
        queue = JobQueue(engine, max_workers=1)
        try:
            assert queue.enqueue(GenerationJob(PARAMS)) is True
            assert queue.drain(timeout=5) is True
            assert engine.is_persisted(HAVANA)

            stats = queue.stats()
            assert stats.enqueued == 1
            assert stats.completed == 1
            assert stats.failed == 0
            assert stats.pending == 0
        finally:
            queue.shutdown()

    def test_failure_counted(self, engine, runner):
        runner.handlers["espeak"] = _failing_espeak
        queue = JobQueue(engine, max_workers=1)
        try:
            queue.enqueue(GenerationJob(PARAMS))
            assert queue.drain(timeout=5) is True
            assert queue.stats().failed == 1
            assert engine.get_error(HAVANA) is not None
        finally:
            queue.shutdown()

    def test_duplicate_dropped_while_pending(self, engine, runner):
        started = threading.Event()
        release = threading.Event()
        default_espeak = runner.handlers["espeak"]

        def blocking_espeak(argv, stdin):
            started.set()
            release.wait(timeout=5)
            return default_espeak(argv, stdin)

        runner.handlers["espeak"] = blocking_espeak
        queue = JobQueue(engine, max_workers=1)
        try:
            job = GenerationJob(PARAMS)
            assert queue.enqueue(job) is True
            assert started.wait(timeout=5)

            assert queue.is_pending(job)
            assert queue.enqueue(GenerationJob(dict(PARAMS))) is False

            release.set()
            assert queue.drain(timeout=5) is True

            stats = queue.stats()
            assert stats.enqueued == 1
            assert stats.deduplicated == 1
            assert not queue.is_pending(job)

            # Finished jobs no longer block a new enqueue
            assert queue.enqueue(job) is True
            assert queue.drain(timeout=5) is True
        finally:
            release.set()
            queue.shutdown()

    def test_unexpected_exception_counted_as_failure(self, engine):
        def boom(req):
            raise RuntimeError("unexpected")

        engine.backend.synthesize = boom
        queue = JobQueue(engine, max_workers=1)
        try:
            queue.enqueue(GenerationJob(PARAMS))
            assert queue.drain(timeout=5) is True
            assert queue.stats().failed == 1
        finally:
            queue.shutdown()
