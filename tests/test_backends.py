"""
Tests for the espeak, Google and Larynx backends.

HTTP backends run against httpx.MockTransport; espeak and lame go
through FakeRunner.
"""
import base64
import json

import httpx
import pytest

from conftest import FAKE_MP3, FAKE_WAV, FakeRunner, make_config
from phonos_ms.core.errors import EngineError
from phonos_ms.tts.backend import AudioRequest, create_backend
from phonos_ms.tts.backends import EspeakBackend, GoogleBackend, LarynxBackend
from phonos_ms.tts.backends.espeak_backend import parse_voices_output
from phonos_ms.tts.backends.google_backend import clean_ipa
from phonos_ms.tts.encoder import Mp3Encoder
from phonos_ms.tts.sandbox import CommandResult


def _backend(engine_type, raw=None, handler=None, runner=None):
    config = make_config({"engine": engine_type, **(raw or {})})
    runner = runner or FakeRunner()
    client = httpx.Client(transport=httpx.MockTransport(handler)) if handler else None
    return create_backend(engine_type, config, runner, Mp3Encoder(runner), client)


class TestFactory:

    @pytest.mark.parametrize(
        "engine_type,cls,name",
        [
            ("espeak", EspeakBackend, "EspeakEngine"),
            ("google", GoogleBackend, "GoogleEngine"),
            ("larynx", LarynxBackend, "LarynxEngine"),
        ],
    )
    def test_create_backend(self, engine_type, cls, name):
        backend = _backend(engine_type)
        assert isinstance(backend, cls)
        assert backend.name == name

    def test_engine_type_normalized(self):
        config = make_config()
        runner = FakeRunner()
        assert isinstance(create_backend(" Google ", config, runner, Mp3Encoder(runner)), GoogleBackend)

    def test_unknown_engine(self):
        config = make_config()
        runner = FakeRunner()
        with pytest.raises(ValueError, match="Unknown engine type"):
            create_backend("festival", config, runner, Mp3Encoder(runner))


class TestEspeak:

    def test_ssml(self):
        backend = _backend("espeak")
        assert backend.ssml(AudioRequest("/həˈvænə/", "Havana", "en")) == (
            '<?xml version="1.0"?>\n'
            '<speak xmlns="http://www.w3.org/2001/10/synthesis" version="1.1" xml:lang="en">'
            '<phoneme alphabet="ipa" ph="/həˈvænə/">Havana</phoneme></speak>\n'
        )

    def test_ssml_escapes_markup(self):
        ssml = _backend("espeak").ssml(AudioRequest('a"b', "<b>&", "en"))
        assert 'ph="a&quot;b"' in ssml
        assert "&lt;b&gt;&amp;" in ssml

    def test_parse_voices_output(self):
        output = (
            "\nPty Language Age/Gender VoiceName          File          Other Languages\n"
            " 5  af             M  afrikaans            other/af\n"
            " 5  an             M  aragonese            europe/an\n"
            " 5  bg             -  bulgarian            europe/bg\n"
        )
        assert parse_voices_output(output) == ["af", "an", "bg"]

    def test_synthesize_pipes_ssml_and_converts(self):
        runner = FakeRunner()
        backend = _backend("espeak", {"espeak": {"path": "espeak"}}, runner=runner)
        req = AudioRequest("/həˈvænə/", "Havana", "en")

        assert backend.synthesize(req) == FAKE_MP3

        (espeak_argv, espeak_stdin), (lame_argv, lame_stdin) = runner.calls
        assert espeak_argv == ["espeak", "--stdin", "-m", "--stdout"]
        assert espeak_stdin == backend.ssml(req).encode("utf-8")
        assert lame_argv == ["lame", "-", "-"]
        assert lame_stdin == FAKE_WAV

    def test_synthesize_failure(self):
        runner = FakeRunner()
        runner.handlers["espeak"] = lambda argv, stdin: CommandResult(127, stderr=b"espeak: not found")
        backend = _backend("espeak", runner=runner)
        with pytest.raises(EngineError) as exc_info:
            backend.synthesize(AudioRequest("/a/", "a", "en"))
        assert exc_info.value.message == "The eSpeak engine failed: espeak: not found"

    def test_supported_languages(self):
        assert _backend("espeak").supported_languages() == ["af", "en", "en-us", "fr-fr"]


class TestGoogle:

    def test_clean_ipa(self):
        assert clean_ipa("/'hʌsən 'mɪnhɑː(d)ʒ/") == "ˈhʌsən ˈmɪnhɑːdʒ"

    def test_ssml(self):
        backend = _backend("google")
        assert backend.ssml(AudioRequest("/'hʌsən 'mɪnhɑː(d)ʒ/", "Hasan Minhaj", "en")) == (
            '<speak><phoneme alphabet="ipa" ph="ˈhʌsən ˈmɪnhɑːdʒ">Hasan Minhaj</phoneme></speak>'
        )

    def test_min_file_size_from_config(self):
        assert _backend("google", {"google": {"min_file_size": 42}}).min_file_size == 42

    def test_synthesize(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"audioContent": base64.b64encode(b"mp3!").decode()})

        backend = _backend("google", {"google": {"api_key": "secret"}}, handler=handler)
        assert backend.synthesize(AudioRequest("/'a/", "a", "en-GB")) == b"mp3!"

        assert seen["url"].path == "/v1/text:synthesize"
        assert seen["url"].params["key"] == "secret"
        assert seen["body"] == {
            "audioConfig": {"audioEncoding": "MP3"},
            "input": {"ssml": '<speak><phoneme alphabet="ipa" ph="ˈa">a</phoneme></speak>'},
            "voice": {"languageCode": "en-GB"},
        }

    def test_error_message_from_body(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"code": 400, "message": "API key not valid."}})

        backend = _backend("google", handler=handler)
        with pytest.raises(EngineError) as exc_info:
            backend.synthesize(AudioRequest("/a/", "a", "en"))
        assert exc_info.value.args_list == ["Google", "API key not valid."]

    def test_error_message_falls_back_to_reason(self):
        def handler(request):
            return httpx.Response(503, text="<html>down</html>")

        backend = _backend("google", handler=handler)
        with pytest.raises(EngineError) as exc_info:
            backend.synthesize(AudioRequest("/a/", "a", "en"))
        assert exc_info.value.args_list == ["Google", "Service Unavailable"]

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend = _backend("google", handler=handler)
        with pytest.raises(EngineError, match="connection refused"):
            backend.synthesize(AudioRequest("/a/", "a", "en"))

    def test_malformed_response(self):
        backend = _backend("google", handler=lambda request: httpx.Response(200, json={}))
        with pytest.raises(EngineError, match="malformed response"):
            backend.synthesize(AudioRequest("/a/", "a", "en"))

    def test_supported_languages(self):
        def handler(request):
            assert request.url.path == "/v1/voices"
            return httpx.Response(200, json={"voices": [
                {"languageCodes": ["en-US"], "name": "en-US-A"},
                {"languageCodes": ["en-US"], "name": "en-US-B"},
                {"languageCodes": ["cmn-CN", "yue-HK"], "name": "x"},
            ]})

        assert _backend("google", handler=handler).supported_languages() == ["en-US", "cmn-CN", "yue-HK"]


class TestLarynx:

    def test_ssml(self):
        backend = _backend("larynx")
        assert backend.ssml(AudioRequest("həˈləʊ", "hello", "en")) == (
            '<?xml version="1.0"?>\n'
            '<speak xmlns="http://www.w3.org/2001/10/synthesis" version="1.1" xml:lang="en">'
            '<phoneme alphabet="ipa" ph="həˈləʊ"><w>hello</w></phoneme></speak>\n'
        )

    def test_ssml_without_text_uses_ipa(self):
        ssml = _backend("larynx").ssml(AudioRequest(" həˈləʊ ", "", "en"))
        assert '<phoneme alphabet="ipa" ph="həˈləʊ"><w>həˈləʊ</w></phoneme>' in ssml

    def test_synthesize_converts_wav(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, content=FAKE_WAV)

        runner = FakeRunner()
        backend = _backend(
            "larynx",
            {"larynx": {"endpoint": "http://larynx:5002/api/tts", "voice": "en-us/test"}},
            handler=handler,
            runner=runner,
        )
        req = AudioRequest("həˈləʊ", "hello", "en")

        assert backend.synthesize(req) == FAKE_MP3
        assert seen["params"] == {
            "ssml": "true",
            "voice": "en-us/test",
            "text": backend.ssml(req).strip(),
        }
        assert runner.calls[0] == (["lame", "-", "-"], FAKE_WAV)

    def test_error(self):
        backend = _backend("larynx", handler=lambda request: httpx.Response(500))
        with pytest.raises(EngineError) as exc_info:
            backend.synthesize(AudioRequest("a", "a", "en"))
        assert exc_info.value.args_list == ["Larynx", "Internal Server Error"]

    def test_unrestricted_languages(self):
        assert _backend("larynx").supported_languages() is None
