"""
Tests for request validation.

Tests cover:
- validate_ipa: required, stripped, byte-length limit
- validate_text: optional, stripped
- validate_language: default, length limit
"""
import pytest

from phonos_ms.core.errors import IpaTooLongError, ParamError
from phonos_ms.services.validators import (
    MAX_LANGUAGE_LENGTH,
    validate_ipa,
    validate_language,
    validate_text,
)


class TestValidateIpa:

    def test_valid(self):
        assert validate_ipa("  /həˈvænə/ ") == "/həˈvænə/"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing(self, value):
        with pytest.raises(ParamError) as exc_info:
            validate_ipa(value)
        assert exc_info.value.args_list == ["ipa"]

    def test_limit_counts_bytes(self):
        assert validate_ipa("a" * 10, max_length=10) == "a" * 10
        with pytest.raises(IpaTooLongError) as exc_info:
            validate_ipa("ə" * 6, max_length=10)
        assert exc_info.value.message == "IPA is longer than the maximum of 10 characters."


class TestValidateText:

    def test_optional(self):
        assert validate_text(None) == ""
        assert validate_text("  Havana ") == "Havana"


class TestValidateLanguage:

    def test_default(self):
        assert validate_language(None) == "en"
        assert validate_language("  ", default="de") == "de"

    def test_passthrough(self):
        assert validate_language(" en-GB ") == "en-GB"

    def test_too_long(self):
        with pytest.raises(ParamError) as exc_info:
            validate_language("x" * (MAX_LANGUAGE_LENGTH + 1))
        assert exc_info.value.args_list == ["lang"]
