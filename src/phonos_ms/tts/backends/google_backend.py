"""
Google Cloud Text-to-Speech Backend.

Calls the ``text:synthesize`` REST method with an API key and asks for
MP3 directly, so no local conversion is needed.

Request:
    POST {endpoint}text:synthesize?key=...
    {"audioConfig": {"audioEncoding": "MP3"},
     "input": {"ssml": "<speak><phoneme ...>...</phoneme></speak>"},
     "voice": {"languageCode": "en"}}

Response:
    {"audioContent": "<base64>"}

Google rejects a few IPA conventions common in wikitext, so the IPA is
cleaned before it goes into the SSML: enclosing slashes are removed,
ASCII apostrophes become U+02C8 and parentheses are dropped.

settings.yaml:
    engine: google
    google:
      endpoint: https://texttospeech.googleapis.com/v1/
      api_key: ...            # or PHONOS_API_KEY_GOOGLE
    http:
      proxy: http://proxy:8080
"""
from __future__ import annotations

import base64
import binascii
import xml.etree.ElementTree as ET
from typing import List, Optional

import httpx

from phonos_ms.core.errors import EngineError
from phonos_ms.core.logging import debug
from phonos_ms.tts.backend import AudioRequest, BaseBackend


def clean_ipa(ipa: str) -> str:
    """Normalize IPA for Google: ``/'hʌsən/`` -> ``ˈhʌsən``."""
    ipa = ipa.strip("/")
    ipa = ipa.replace("'", "ˈ")
    return ipa.replace("(", "").replace(")", "")


def error_message(response: httpx.Response) -> str:
    """``error.message`` from a Google error body, else the HTTP status text."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"


class GoogleBackend(BaseBackend):
    name = "GoogleEngine"
    display_name = "Google"

    @property
    def min_file_size(self) -> int:  # type: ignore[override]
        return self.config.google.min_file_size

    def _url(self, method: str) -> str:
        return self.config.google.endpoint + method

    def ssml(self, req: AudioRequest) -> str:
        # No XML declaration; Google bills per input character.
        speak = ET.Element("speak")
        phoneme = ET.SubElement(speak, "phoneme", {"alphabet": "ipa", "ph": clean_ipa(req.ipa)})
        phoneme.text = req.text
        return ET.tostring(speak, encoding="unicode")

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = self._http().request(
                method, url, params={"key": self.config.google.api_key}, **kwargs
            )
        except httpx.HTTPError as e:
            raise EngineError(self.display_name, str(e)) from e

        if response.is_error:
            raise EngineError(self.display_name, error_message(response))
        return response

    def synthesize(self, req: AudioRequest) -> bytes:
        payload = {
            "audioConfig": {"audioEncoding": "MP3"},
            "input": {"ssml": self.ssml(req).strip()},
            "voice": {"languageCode": req.lang},
        }
        debug(self.logger, "request", ssml=payload["input"]["ssml"], lang=req.lang)

        response = self._request("POST", self._url("text:synthesize"), json=payload)

        try:
            content = response.json()["audioContent"]
            return base64.b64decode(content)
        except (ValueError, KeyError, TypeError, binascii.Error) as e:
            raise EngineError(self.display_name, f"malformed response: {e}") from e

    def supported_languages(self) -> Optional[List[str]]:
        response = self._request("GET", self._url("voices"))
        try:
            voices = response.json().get("voices", [])
        except ValueError as e:
            raise EngineError(self.display_name, f"malformed response: {e}") from e

        langs: List[str] = []
        for voice in voices:
            for code in voice.get("languageCodes", []):
                if code not in langs:
                    langs.append(code)
        return langs
