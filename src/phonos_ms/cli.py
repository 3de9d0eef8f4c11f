"""
Command-Line Interface for phonos-ms.

Renders pronunciations without running the HTTP server. Files are
written to the configured blob store exactly as the service would, and
optionally copied to ``--out``.

Usage Examples:
    # Render one pronunciation
    phonos-ms --ipa "/həˈvænə/" --text Havana --lang en --out havana.mp3

    # Show file name and URL without rendering
    phonos-ms --ipa "/həˈvænə/" --text Havana --dry-run --json

    # Batch: one "ipa<TAB>text<TAB>lang" per line
    phonos-ms --file words.tsv --out rendered/

    # Languages supported by the configured backend
    phonos-ms --languages

Environment Variables:
    PHONOS_SETTINGS: Settings file (default config/settings.yaml)
    PHONOS_ENGINE: Backend override (espeak, google, larynx)
    PHONOS_API_KEY_GOOGLE: Google API key
"""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import List, Optional, Tuple
from uuid import uuid4

from phonos_ms.core.config import ConfigValidationError, load_settings_or_defaults
from phonos_ms.core.errors import PhonosError
from phonos_ms.core.logging import configure_logging, get_logger, info, set_request_id
from phonos_ms.services.validators import validate_ipa, validate_language, validate_text
from phonos_ms.tts.backend import AudioRequest


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="phonos-ms CLI (render IPA pronunciations)")

    parser.add_argument("--ipa", help="IPA transcription")
    parser.add_argument("--text", default="", help="Display text")
    parser.add_argument("--lang", help="Language code")
    parser.add_argument("--file", help="Batch input, one 'ipa<TAB>text<TAB>lang' per line")

    parser.add_argument("--out", help="Copy rendered MP3 here (file, or dir in batch mode)")

    parser.add_argument("--engine", help="Backend override (espeak, google, larynx)")
    parser.add_argument("--settings", help="Settings file path")

    parser.add_argument("--dry-run", action="store_true",
                        help="Show file names and URLs without rendering")
    parser.add_argument("--json", action="store_true",
                        help="Print JSON summary")
    parser.add_argument("--languages", action="store_true",
                        help="List languages supported by the backend")

    return parser.parse_args(argv)


def _load_items(args: argparse.Namespace) -> List[Tuple[str, str, Optional[str]]]:
    """
    Raises:
        SystemExit: No input, or both --ipa and --file given.
    """
    if args.file:
        if args.ipa:
            raise SystemExit("Use --file without --ipa.")
        items = []
        for line in Path(args.file).read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            cols = line.split("\t")
            items.append((cols[0], cols[1] if len(cols) > 1 else "", cols[2] if len(cols) > 2 else None))
        if not items:
            raise SystemExit("Input file is empty.")
        return items

    if not args.ipa:
        raise SystemExit("Provide --ipa or --file.")
    return [(args.ipa, args.text, args.lang)]


def _output_path(args: argparse.Namespace, file_name: str) -> Optional[Path]:
    if not args.out:
        return None
    if args.file:
        out_dir = Path(args.out)
        out_dir.mkdir(parents=True, exist_ok=True)
        return out_dir / file_name
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    return out_path


def _print(payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 if any item failed, 2 for bad config).
    """
    args = _parse_args(argv)

    if args.engine:
        os.environ["PHONOS_ENGINE"] = args.engine

    configure_logging()
    log = get_logger("phonos-ms.cli")
    set_request_id(str(uuid4())[:12])

    try:
        config = load_settings_or_defaults(args.settings).get_service_config()
    except (OSError, ConfigValidationError) as e:
        print(f"Invalid configuration: {e}")
        return 2

    from phonos_ms.tts.engine import build_engine
    engine = build_engine(config)

    if args.languages:
        try:
            langs = engine.get_supported_languages()
        except PhonosError as e:
            _print(e.to_dict(), args.json)
            return 1
        _print({"ok": True, "engine": engine.backend.display_name, "languages": langs}, args.json)
        return 0

    items = _load_items(args)

    if args.dry_run:
        summaries = []
        for ipa, text, lang in items:
            req = AudioRequest(
                ipa=validate_ipa(ipa, config.rendering.max_ipa_length),
                text=validate_text(text),
                lang=validate_language(lang, config.rendering.default_language),
            )
            props = engine.file_properties(req)
            summaries.append({
                "ipa": req.ipa,
                "text": req.text,
                "lang": req.lang,
                "file": props.file_name,
                "url": props.public_url,
                "persisted": engine.is_persisted(req),
            })
        info(log, "dry_run", items=len(items), backend=engine.backend.display_name)
        _print({"ok": True, "dry_run": True, "items": summaries}, args.json)
        print("DRY_RUN_OK")
        return 0

    from phonos_ms.services.pronunciation import PronunciationService
    service = PronunciationService(engine, config)
    results = []
    failed = 0

    try:
        for ipa, text, lang in items:
            try:
                ssml, data = service.render_audio(ipa, text, lang)
            except PhonosError as e:
                failed += 1
                results.append({"ipa": ipa, **e.to_dict()})
                continue

            req = AudioRequest(ipa.strip(), validate_text(text), engine.check_language_support(
                validate_language(lang, config.rendering.default_language)))
            props = engine.file_properties(req)
            out_path = _output_path(args, props.file_name)
            if out_path is not None:
                out_path.write_bytes(data)

            info(log, "rendered", file=props.file_name, bytes=len(data))
            results.append({
                "ok": True,
                "ipa": req.ipa,
                "file": props.file_name,
                "url": props.public_url,
                "bytes": len(data),
                "out": str(out_path) if out_path else None,
            })
    finally:
        service.shutdown()

    _print({"ok": failed == 0, "dry_run": False, "items": results}, args.json)
    print("CLI_OK" if failed == 0 else "CLI_FAILED")
    return 0 if failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
