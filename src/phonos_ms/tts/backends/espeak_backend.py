"""
eSpeak Backend.

Runs the local ``espeak`` binary through the command sandbox. The SSML
document is piped on stdin and WAV audio is read from stdout, then
converted to MP3 with lame.

    espeak --stdin -m --stdout      # -m: interpret SSML markup

settings.yaml:
    engine: espeak
    espeak:
      path: /usr/bin/espeak
    sandbox:
      wrapper: ["firejail", "--quiet", "--net=none"]
"""
from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import List, Optional

from phonos_ms.core.errors import EngineError
from phonos_ms.core.logging import debug
from phonos_ms.tts.backend import SSML_NAMESPACE, AudioRequest, BaseBackend


def parse_voices_output(output: str) -> List[str]:
    """
    Extract language codes from ``espeak --voices`` output.

    The first line is a column header; the language is the second
    whitespace-separated column of every following line.
    """
    langs = []
    for line in output.strip().splitlines()[1:]:
        cols = line.split()
        if len(cols) >= 2:
            langs.append(cols[1])
    return langs


class EspeakBackend(BaseBackend):
    name = "EspeakEngine"
    display_name = "eSpeak"

    @property
    def espeak_path(self) -> str:
        return self.config.espeak.path

    def ssml(self, req: AudioRequest) -> str:
        speak = ET.Element("speak", {
            "xmlns": SSML_NAMESPACE,
            "version": "1.1",
            "xml:lang": req.lang,
        })
        phoneme = ET.SubElement(speak, "phoneme", {"alphabet": "ipa", "ph": req.ipa})
        phoneme.text = req.text
        return '<?xml version="1.0"?>\n' + ET.tostring(speak, encoding="unicode") + "\n"

    def synthesize(self, req: AudioRequest) -> bytes:
        ssml = self.ssml(req)
        debug(self.logger, "ssml", ssml=ssml.strip())

        result = self.runner.run(
            [self.espeak_path, "--stdin", "-m", "--stdout"],
            stdin=ssml.encode("utf-8"),
        )
        if not result.ok:
            raise EngineError(self.display_name, result.stderr_text)

        return self.encoder.encode(result.stdout)

    def supported_languages(self) -> Optional[List[str]]:
        result = self.runner.run([self.espeak_path, "--voices"])
        if not result.ok:
            raise EngineError(self.display_name, result.stderr_text)
        return parse_voices_output(result.stdout.decode("utf-8", errors="replace"))
