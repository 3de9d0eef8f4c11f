"""
Error Types for phonos-ms.

Every failure the pronunciation pipeline can surface is a PhonosError
carrying a stable message key (``phonos-storage-error``) and a list of
string arguments. The key and arguments are what gets cached in the
error cache, counted in metrics and returned by the API, so they must
stay stable across releases.

Hierarchy:
    PhonosError
    ├── EmptyOutputError             phonos-empty-file-error
    ├── DirectoryError               phonos-directory-error
    ├── StorageError                 phonos-storage-error
    ├── AudioConversionError         phonos-audio-conversion-error
    ├── EngineError                  phonos-engine-error
    ├── UnsupportedLanguageError     phonos-unsupported-language
    │   └── UnsupportedLanguageWithSuggestionsError
    ├── ParamError                   phonos-param-error
    ├── IpaTooLongError              phonos-ipa-too-long
    └── RenderingDisabledError       phonos-rendering-disabled
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence


class ErrorKey:
    """Stable message keys."""
    EMPTY_FILE = "phonos-empty-file-error"
    DIRECTORY = "phonos-directory-error"
    STORAGE = "phonos-storage-error"
    AUDIO_CONVERSION = "phonos-audio-conversion-error"
    ENGINE = "phonos-engine-error"
    UNSUPPORTED_LANGUAGE = "phonos-unsupported-language"
    UNSUPPORTED_LANGUAGE_WITH_SUGGESTIONS = "phonos-unsupported-language-with-suggestions"
    PARAM = "phonos-param-error"
    IPA_TOO_LONG = "phonos-ipa-too-long"
    RENDERING_DISABLED = "phonos-rendering-disabled"


# English renderings of each key; $1, $2 are positional arguments.
_MESSAGES = {
    ErrorKey.EMPTY_FILE: "The rendered $1 audio file was empty.",
    ErrorKey.DIRECTORY: "Unable to create storage directory: $1",
    ErrorKey.STORAGE: "Unable to save audio file: $1",
    ErrorKey.AUDIO_CONVERSION: "Unable to convert audio: $1",
    ErrorKey.ENGINE: "The $1 engine failed: $2",
    ErrorKey.UNSUPPORTED_LANGUAGE: "Language not supported: $1",
    ErrorKey.UNSUPPORTED_LANGUAGE_WITH_SUGGESTIONS: "Language not supported: $1. Did you mean: $2?",
    ErrorKey.PARAM: "Missing or invalid parameter: $1",
    ErrorKey.IPA_TOO_LONG: "IPA is longer than the maximum of $1 characters.",
    ErrorKey.RENDERING_DISABLED: "Audio rendering is currently disabled.",
}


def list_to_text(items: Sequence[str]) -> str:
    """Join items for display: ``["en-US", "en-GB"]`` -> ``"en-US, en-GB"``."""
    return ", ".join(items)


def sanitize_kind(key: str) -> str:
    """Metric-safe form of an error key: non-alphanumerics become ``_``."""
    return re.sub(r"[^A-Za-z0-9]", "_", key)


class PhonosError(Exception):
    """
    Base exception for pronunciation rendering errors.

    Attributes:
        key: Stable message key (see ErrorKey).
        args_list: String arguments substituted into the message.
    """
    key: str = "phonos-error"

    def __init__(self, key: Optional[str] = None, args: Optional[Sequence[Any]] = None):
        if key is not None:
            self.key = key
        self.args_list: List[str] = [str(a) for a in (args or [])]
        super().__init__(self.message)

    @property
    def message(self) -> str:
        """Human-readable message with arguments substituted."""
        text = _MESSAGES.get(self.key, self.key)
        for i, arg in enumerate(self.args_list, start=1):
            text = text.replace(f"${i}", arg)
        return text

    def key_and_args(self) -> List[str]:
        """``[key, *args]``, the form stored in the error cache."""
        return [self.key, *self.args_list]

    def stats_key(self) -> str:
        """Key as used in the error counter label."""
        return sanitize_kind(self.key)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to standardized error response dict for API."""
        return {
            "ok": False,
            "error": self.key,
            "args": list(self.args_list),
            "message": self.message,
        }


class EmptyOutputError(PhonosError):
    """Backend returned fewer bytes than its minimum file size."""
    key = ErrorKey.EMPTY_FILE

    def __init__(self, args: Optional[Sequence[Any]] = None):
        super().__init__(args=args if args is not None else ["text"])


class DirectoryError(PhonosError):
    key = ErrorKey.DIRECTORY

    def __init__(self, detail: str = ""):
        super().__init__(args=[detail])


class StorageError(PhonosError):
    key = ErrorKey.STORAGE

    def __init__(self, detail: str = ""):
        super().__init__(args=[detail])


class AudioConversionError(PhonosError):
    """The MP3 encoder exited non-zero; carries its stderr."""
    key = ErrorKey.AUDIO_CONVERSION

    def __init__(self, detail: str = ""):
        super().__init__(args=[detail])


class EngineError(PhonosError):
    """A TTS backend failed. Args are ``[backend display name, detail]``."""
    key = ErrorKey.ENGINE

    def __init__(self, backend: str, detail: str = ""):
        self.backend = backend
        super().__init__(args=[backend, detail])


class UnsupportedLanguageError(PhonosError):
    key = ErrorKey.UNSUPPORTED_LANGUAGE

    def __init__(self, lang: str):
        self.lang = lang
        super().__init__(args=[lang])


class UnsupportedLanguageWithSuggestionsError(UnsupportedLanguageError):
    """Unsupported language, with supported codes that contain the input."""
    key = ErrorKey.UNSUPPORTED_LANGUAGE_WITH_SUGGESTIONS

    def __init__(self, lang: str, suggestions: Sequence[str]):
        self.lang = lang
        self.suggestions = list(suggestions)
        PhonosError.__init__(self, args=[lang, list_to_text(self.suggestions)])


class ParamError(PhonosError):
    key = ErrorKey.PARAM

    def __init__(self, param: str = "ipa"):
        super().__init__(args=[param])


class IpaTooLongError(PhonosError):
    key = ErrorKey.IPA_TOO_LONG

    def __init__(self, limit: int | str):
        super().__init__(args=[limit])


class RenderingDisabledError(PhonosError):
    key = ErrorKey.RENDERING_DISABLED

    def __init__(self):
        super().__init__(args=[])


def phonos_error_from_record(kind: str, args: Sequence[Any]) -> PhonosError:
    """
    Rebuild a typed error from a cached ``(kind, args)`` record.

    Unknown kinds come back as a plain PhonosError with the same key.
    """
    args = [str(a) for a in args]
    if kind == ErrorKey.ENGINE and len(args) >= 2:
        return EngineError(args[0], args[1])
    if kind == ErrorKey.UNSUPPORTED_LANGUAGE_WITH_SUGGESTIONS and len(args) >= 2:
        suggestions = [s for s in args[1].split(", ") if s]
        return UnsupportedLanguageWithSuggestionsError(args[0], suggestions)
    if kind == ErrorKey.UNSUPPORTED_LANGUAGE and args:
        return UnsupportedLanguageError(args[0])
    if kind == ErrorKey.EMPTY_FILE:
        return EmptyOutputError(args)

    simple = {
        ErrorKey.DIRECTORY: DirectoryError,
        ErrorKey.STORAGE: StorageError,
        ErrorKey.AUDIO_CONVERSION: AudioConversionError,
    }
    if kind in simple and args:
        return simple[kind](args[0])
    if kind == ErrorKey.PARAM and args:
        return ParamError(args[0])
    if kind == ErrorKey.IPA_TOO_LONG and args:
        return IpaTooLongError(args[0])
    if kind == ErrorKey.RENDERING_DISABLED:
        return RenderingDisabledError()

    return PhonosError(kind, args)
