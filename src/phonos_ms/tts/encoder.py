"""
WAV to MP3 conversion with lame.

All stored audio is MP3. Backends that produce WAV (espeak, Larynx) pipe
their output through ``lame - -`` inside the command sandbox.
"""
from __future__ import annotations

from phonos_ms.core.errors import AudioConversionError
from phonos_ms.core.logging import get_logger, verbose
from phonos_ms.tts.sandbox import CommandRunner
from phonos_ms.utils.timeit import timeit

_LOG = get_logger("phonos-ms.encoder")


class Mp3Encoder:
    def __init__(self, runner: CommandRunner, lame_path: str = "lame"):
        self.runner = runner
        self.lame_path = lame_path

    def encode(self, wav: bytes) -> bytes:
        """
        Convert WAV bytes to MP3 bytes.

        Raises:
            AudioConversionError: lame exited non-zero; carries its stderr.
        """
        with timeit("mp3_encode") as t:
            result = self.runner.run([self.lame_path, "-", "-"], stdin=wav)

        if not result.ok:
            raise AudioConversionError(result.stderr_text)

        verbose(
            _LOG, "encoded",
            wav_bytes=len(wav),
            mp3_bytes=len(result.stdout),
            seconds=round(t.timing.seconds, 4),
        )
        return result.stdout
