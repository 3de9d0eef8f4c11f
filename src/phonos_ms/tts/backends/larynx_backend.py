"""
Larynx Backend.

Larynx is a self-hosted TTS server. The SSML document travels in the
query string and the response body is WAV, which is always converted to
MP3 before it is returned.

    GET {endpoint}?ssml=true&voice=en-us/blizzard_lessac-glow_tts&text=<ssml>

When no display text is given the IPA itself is used as the ``<w>``
content so the server still has a word to attach the phonemes to.
"""
from __future__ import annotations

import xml.etree.ElementTree as ET

import httpx

from phonos_ms.core.errors import EngineError
from phonos_ms.core.logging import debug
from phonos_ms.tts.backend import SSML_NAMESPACE, AudioRequest, BaseBackend


class LarynxBackend(BaseBackend):
    name = "LarynxEngine"
    display_name = "Larynx"

    def ssml(self, req: AudioRequest) -> str:
        ipa = req.ipa.strip()
        speak = ET.Element("speak", {
            "xmlns": SSML_NAMESPACE,
            "version": "1.1",
            "xml:lang": req.lang,
        })
        phoneme = ET.SubElement(speak, "phoneme", {"alphabet": "ipa", "ph": ipa})
        word = ET.SubElement(phoneme, "w")
        word.text = req.text or ipa
        return '<?xml version="1.0"?>\n' + ET.tostring(speak, encoding="unicode") + "\n"

    def synthesize(self, req: AudioRequest) -> bytes:
        ssml = self.ssml(req).strip()
        debug(self.logger, "request", ssml=ssml)

        params = {
            "ssml": "true",
            "voice": self.config.larynx.voice,
            "text": ssml,
        }
        try:
            response = self._http().get(self.config.larynx.endpoint, params=params)
        except httpx.HTTPError as e:
            raise EngineError(self.display_name, str(e)) from e

        if response.is_error:
            raise EngineError(
                self.display_name,
                response.reason_phrase or f"HTTP {response.status_code}",
            )

        return self.encoder.encode(response.content)
