"""
Input Validation for pronunciation requests.

Validation happens before any storage or backend access so that bad
input never produces a cache key, a job or a backend call.

Validation Rules:
    - IPA: Required, at most ``rendering.max_ipa_length`` bytes (UTF-8)
    - Text: Optional, surrounding whitespace removed
    - Language: Optional, falls back to ``rendering.default_language``

Errors are PhonosErrors (ParamError, IpaTooLongError) so they flow
through the same result/response path as rendering failures.

Usage:
    from phonos_ms.services.validators import validate_ipa, validate_language

    ipa = validate_ipa(raw_ipa, max_length=300)
    lang = validate_language(raw_lang, default="en")
"""
from __future__ import annotations

from typing import Optional

from phonos_ms.core.errors import IpaTooLongError, ParamError

MAX_LANGUAGE_LENGTH = 35


def validate_ipa(ipa: Optional[str], max_length: int = 300) -> str:
    """
    Raises:
        ParamError: IPA missing or blank.
        IpaTooLongError: IPA longer than ``max_length`` bytes.
    """
    if not ipa or not ipa.strip():
        raise ParamError("ipa")

    ipa = ipa.strip()
    if len(ipa.encode("utf-8")) > max_length:
        raise IpaTooLongError(max_length)

    return ipa


def validate_text(text: Optional[str]) -> str:
    return (text or "").strip()


def validate_language(lang: Optional[str], default: str = "en") -> str:
    """
    Raises:
        ParamError: Language code longer than any real BCP 47 tag.
    """
    lang = (lang or "").strip()
    if not lang:
        return default

    if len(lang) > MAX_LANGUAGE_LENGTH:
        raise ParamError("lang")

    return lang
