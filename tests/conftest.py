"""
Shared fixtures.

Nothing here touches a real espeak, lame or network endpoint: commands go
through FakeRunner and HTTP backends get an httpx.MockTransport client.
"""
from __future__ import annotations

import os
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import httpx
import pytest

from phonos_ms.core.config import ServiceConfig, Settings
from phonos_ms.tts.engine import Engine, build_engine
from phonos_ms.tts.sandbox import CommandResult, CommandRunner
from phonos_ms.tts.storage import MemoryBlobStore

os.environ.setdefault("PHONOS_SKIP_WARMUP", "1")

ESPEAK_VOICES = (
    "Pty Language Age/Gender VoiceName          File          Other Languages\n"
    " 5  af             M  afrikaans            other/af\n"
    " 5  en             M  default              default\n"
    " 5  en-us          M  english-us           en-us         (en 2)\n"
    " 5  fr-fr          M  french               fr            (fr 5)\n"
)

FAKE_WAV = b"RIFF\x24\x00\x00\x00WAVEfmt " + b"\x00" * 64
FAKE_MP3 = b"ID3\x03\x00" + b"\xff\xfb" * 32

Handler = Callable[[List[str], Optional[bytes]], CommandResult]


class FakeRunner(CommandRunner):
    """
    Records every command and answers from ``handlers`` keyed by program.

    Defaults: ``espeak --voices`` lists a few voices, espeak synthesis
    returns WAV, ``lame`` returns MP3.
    """

    def __init__(self):
        self.calls: List[Tuple[List[str], Optional[bytes]]] = []
        self.handlers: Dict[str, Handler] = {
            "espeak": self._espeak,
            "lame": lambda argv, stdin: CommandResult(0, FAKE_MP3),
        }

    @staticmethod
    def _espeak(argv: List[str], stdin: Optional[bytes]) -> CommandResult:
        if "--voices" in argv:
            return CommandResult(0, ESPEAK_VOICES.encode())
        return CommandResult(0, FAKE_WAV)

    def run(self, argv: Sequence[str], stdin: Optional[bytes] = None) -> CommandResult:
        argv = list(argv)
        self.calls.append((argv, stdin))
        handler = self.handlers.get(argv[0])
        if handler is None:
            return CommandResult(127, stderr=f"{argv[0]}: not found".encode())
        return handler(argv, stdin)

    def programs(self) -> List[str]:
        return [argv[0] for argv, _ in self.calls]


def make_config(raw: Optional[dict] = None) -> ServiceConfig:
    return Settings(raw=dict(raw or {})).get_service_config()


def make_engine(
    raw: Optional[dict] = None,
    store: Optional[MemoryBlobStore] = None,
    runner: Optional[FakeRunner] = None,
    handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
) -> Engine:
    config = make_config(raw)
    http_client = httpx.Client(transport=httpx.MockTransport(handler)) if handler else None
    return build_engine(
        config,
        store=store or MemoryBlobStore(),
        runner=runner or FakeRunner(),
        http_client=http_client,
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def engine(store, runner) -> Engine:
    """espeak engine on an in-memory store."""
    return make_engine(store=store, runner=runner)


@pytest.fixture(autouse=True)
def _reset_singletons():
    yield
    from phonos_ms.api.dependencies import get_settings
    from phonos_ms.services.pronunciation import reset_service
    from phonos_ms.tts.engine import reset_engine
    from phonos_ms.tts.jobs import reset_job_queue

    reset_service()
    reset_engine()
    reset_job_queue()
    get_settings.cache_clear()
