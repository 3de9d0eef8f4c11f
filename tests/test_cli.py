"""
Tests for the phonos-ms CLI.

Real rendering needs espeak and lame, so the full run is exercised with
build_engine patched to use FakeRunner and an in-memory store.
"""
import json

import pytest

from conftest import FAKE_MP3, FakeRunner
from phonos_ms import cli
from phonos_ms.tts import engine as engine_module
from phonos_ms.tts.storage import MemoryBlobStore


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("PHONOS_SETTINGS", str(tmp_path / "absent.yaml"))
    monkeypatch.delenv("PHONOS_ENGINE", raising=False)


@pytest.fixture
def fake_engine(monkeypatch):
    real_build = engine_module.build_engine
    store = MemoryBlobStore()

    def build(config, **kwargs):
        return real_build(config, store=store, runner=FakeRunner())

    monkeypatch.setattr(engine_module, "build_engine", build)
    return store


def test_cli_dry_run(capsys):
    code = cli.main(["--ipa", "/həˈvænə/", "--text", "Havana", "--lang", "en", "--dry-run", "--json"])
    assert code == 0

    out = capsys.readouterr().out
    assert "DRY_RUN_OK" in out
    payload = json.loads(next(line for line in out.splitlines() if line.startswith("{")))
    item = payload["items"][0]
    assert item["file"] == "08h2h100e3dgycsfj2my0oc8ll84q3a.mp3"
    assert item["url"] == "/media/0/8/08h2h100e3dgycsfj2my0oc8ll84q3a.mp3"
    assert item["persisted"] is False


def test_cli_requires_input():
    with pytest.raises(SystemExit):
        cli.main(["--dry-run"])


def test_cli_invalid_config(tmp_path, capsys, monkeypatch):
    bad = tmp_path / "bad.yaml"
    bad.write_text("engine: festival\n", encoding="utf-8")
    assert cli.main(["--settings", str(bad), "--ipa", "/a/", "--dry-run"]) == 2
    assert "Invalid configuration" in capsys.readouterr().out


def test_cli_renders_to_file(tmp_path, capsys, fake_engine):
    out_path = tmp_path / "havana.mp3"
    code = cli.main(["--ipa", "/həˈvænə/", "--text", "Havana", "--out", str(out_path)])

    assert code == 0
    assert out_path.read_bytes() == FAKE_MP3
    assert "CLI_OK" in capsys.readouterr().out


def test_cli_batch(tmp_path, capsys, fake_engine):
    words = tmp_path / "words.tsv"
    words.write_text("/həˈvænə/\tHavana\ten\n\nhəˈləʊ\thello\n", encoding="utf-8")
    out_dir = tmp_path / "rendered"

    code = cli.main(["--file", str(words), "--out", str(out_dir), "--json"])

    assert code == 0
    assert len(list(out_dir.iterdir())) == 2
    assert (out_dir / "08h2h100e3dgycsfj2my0oc8ll84q3a.mp3").read_bytes() == FAKE_MP3


def test_cli_reports_failure(capsys, fake_engine):
    code = cli.main(["--ipa", "/a/", "--lang", "xx", "--json"])
    assert code == 1

    out = capsys.readouterr().out
    assert "CLI_FAILED" in out
    payload = json.loads(next(line for line in out.splitlines() if line.startswith("{")))
    assert payload["items"][0]["error"] == "phonos-unsupported-language"


def test_cli_languages(capsys, fake_engine):
    assert cli.main(["--languages", "--json"]) == 0
    out = capsys.readouterr().out
    payload = json.loads(next(line for line in out.splitlines() if line.startswith("{")))
    assert payload["languages"] == ["af", "en", "en-us", "fr-fr"]
