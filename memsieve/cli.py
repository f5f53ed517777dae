"""Command line entry points for recording, splitting and transcribing dictation audio."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from pydantic import ValidationError

from .audio.power_monitor import EngineStartFailure
from .audio.recorder import DictationRecorder
from .audio.splitter import ExportFailure, split_audio_file
from .config import CONFIG, RecorderConfig
from .services.logger import LogBuffer, setup_logging
from .services.network import ApiClient
from .services.transcriber import TranscriptionService, TranscriptionWorker
from .store.preset_store import PresetStore
from .store.recording_store import STATUS_DONE, RecordingStore
from .store.settings_store import SettingsStore


def _data_dir(args: argparse.Namespace) -> Path:
    return Path(args.data_dir or CONFIG.data_dir)


def _open_stores(args: argparse.Namespace) -> tuple[SettingsStore, RecordingStore, PresetStore]:
    root = _data_dir(args)
    return (
        SettingsStore(root / CONFIG.settings_file),
        RecordingStore(root / CONFIG.recordings_file),
        PresetStore(root / CONFIG.presets_file),
    )


def _build_client(settings: SettingsStore) -> ApiClient:
    return ApiClient(settings)


def _build_service(args: argparse.Namespace) -> TranscriptionService:
    settings, recordings, presets = _open_stores(args)
    return TranscriptionService(
        _build_client(settings),
        recordings,
        presets,
        LogBuffer(CONFIG.log_history),
        settings=settings,
    )


def _report(service: TranscriptionService, recording_id: str) -> int:
    item = service.recordings.get(recording_id)
    if item is None or item.status != STATUS_DONE:
        print(f"error: transcription failed for {recording_id}", file=sys.stderr)
        return 1
    print(item.transcription)
    return 0


def _transcribe_one(service: TranscriptionService, recording_id: str) -> int:
    if service.transcribe_recording(recording_id):
        service.apply_preset_prompt(recording_id)
    return _report(service, recording_id)


def _split(args: argparse.Namespace) -> int:
    try:
        chunks = split_audio_file(args.source, args.output, args.max_chunk, format=args.format)
    except ExportFailure as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    for chunk in chunks:
        print(chunk)
    return 0


def _record(args: argparse.Namespace) -> int:
    settings, recordings, presets = _open_stores(args)
    saved = settings.get()
    try:
        config = RecorderConfig.model_validate(
            {
                **CONFIG.model_dump(),
                "silence_threshold_db": saved.silence_threshold_db if args.threshold is None else args.threshold,
                "silence_min_duration": saved.silence_min_duration if args.min_silence is None else args.min_silence,
            }
        )
    except ValidationError as exc:
        print(f"error: invalid recorder settings: {exc}", file=sys.stderr)
        return 2
    if presets.get(args.preset) is None:
        print(f"error: unknown preset {args.preset}", file=sys.stderr)
        return 2

    logger = LogBuffer(config.log_history)
    recorder = DictationRecorder(
        args.output or _data_dir(args) / "chunks",
        logger,
        config=config,
        on_chunk_cut=lambda cut: print(f"chunk {cut.index}: {cut.path} ({cut.reason})"),
    )
    try:
        recorder.start()
    except EngineStartFailure as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    print("Recording... press Ctrl+C to stop.")
    try:
        while recorder.is_recording:
            time.sleep(0.2)
    except KeyboardInterrupt:
        pass
    result = recorder.stop()
    if recorder.error is not None:
        print(f"error: recording aborted: {recorder.error}", file=sys.stderr)
    if not result.chunks:
        print("error: nothing was recorded", file=sys.stderr)
        return 1

    item = recordings.add(result.chunks, preset=args.preset, label=args.label, duration=result.duration)
    print(f"saved {item.id} ({len(item.chunks)} chunk(s), {item.duration:.0f}s)")
    if args.transcribe:
        service = _build_service(args)
        try:
            code = _transcribe_one(service, item.id)
        finally:
            service.client.close()
        if code:
            return code
    return 1 if recorder.error is not None else 0


def _transcribe(args: argparse.Namespace) -> int:
    if not args.recording_id and not args.pending:
        print("error: give a recording id or --pending", file=sys.stderr)
        return 2
    service = _build_service(args)
    try:
        if args.pending:
            return _drain_pending(service)
        if service.recordings.mark_pending(args.recording_id) is None:
            print(f"error: unknown recording {args.recording_id}", file=sys.stderr)
            return 1
        return _transcribe_one(service, args.recording_id)
    finally:
        service.client.close()


def _drain_pending(service: TranscriptionService) -> int:
    queued = [item.id for item in service.recordings.pending()]
    if not queued:
        print("nothing pending")
        return 0
    worker = TranscriptionWorker(service, poll_interval=0.5)
    worker.start()
    try:
        worker.idle.wait()
    except KeyboardInterrupt:
        pass
    finally:
        worker.stop()
    failed = 0
    for recording_id in queued:
        item = service.recordings.get(recording_id)
        status = item.status if item else "deleted"
        failed += status != STATUS_DONE
        print(f"{recording_id} {status}")
    return 1 if failed else 0


def _import(args: argparse.Namespace) -> int:
    service = _build_service(args)
    try:
        item = service.import_audio_file(args.source, args.preset)
    except (ExportFailure, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        service.client.close()
    print(f"imported {item.id} ({len(item.chunks)} chunk(s), {item.duration:.0f}s)")
    return _report(service, item.id)


def _settings(args: argparse.Namespace) -> int:
    store, _, _ = _open_stores(args)
    changes = {
        key: value
        for key, value in (
            ("server_url", args.server_url),
            ("api_key", args.api_key),
            ("transcription_language", args.language),
            ("silence_threshold_db", args.threshold),
            ("silence_min_duration", args.min_silence),
        )
        if value is not None
    }
    settings = store.update(**changes) if changes else store.get()
    print(f"server_url: {settings.server_url}")
    print(f"api_key: {'set' if settings.api_key else 'missing'}")
    print(f"transcription_language: {settings.transcription_language}")
    print(f"silence_threshold_db: {settings.silence_threshold_db}")
    print(f"silence_min_duration: {settings.silence_min_duration}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="memsieve", description="Silence-aware dictation chunking.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory holding settings and recordings.")
    sub = parser.add_subparsers(dest="command", required=True)

    split = sub.add_parser("split", help="Split an existing audio file into fixed-length chunks.")
    split.add_argument("source", type=Path)
    split.add_argument("--output", type=Path, default=Path("chunks"))
    split.add_argument(
        "--max-chunk",
        type=float,
        default=CONFIG.max_chunk_duration,
        help=f"Maximum chunk length in seconds (default: {CONFIG.max_chunk_duration:.0f}).",
    )
    split.add_argument("--format", default="FLAC")
    split.set_defaults(func=_split)

    record = sub.add_parser("record", help="Record from the default input until interrupted.")
    record.add_argument("--output", type=Path, default=None)
    record.add_argument("--threshold", type=float, default=None, help="Silence threshold in dB.")
    record.add_argument("--min-silence", type=float, default=None, help="Seconds of silence.")
    record.add_argument("--preset", default="default")
    record.add_argument("--label", default="")
    record.add_argument("--transcribe", action="store_true", help="Transcribe as soon as recording stops.")
    record.set_defaults(func=_record)

    transcribe = sub.add_parser("transcribe", help="Transcribe a saved recording.")
    transcribe.add_argument("recording_id", nargs="?")
    transcribe.add_argument("--pending", action="store_true", help="Transcribe every pending recording.")
    transcribe.set_defaults(func=_transcribe)

    imported = sub.add_parser("import", help="Import, split and transcribe an audio file.")
    imported.add_argument("source", type=Path)
    imported.add_argument("--preset", default="default")
    imported.set_defaults(func=_import)

    settings = sub.add_parser("settings", help="Show or change the saved settings.")
    settings.add_argument("--server-url")
    settings.add_argument("--api-key")
    settings.add_argument("--language")
    settings.add_argument("--threshold", type=float)
    settings.add_argument("--min-silence", type=float)
    settings.set_defaults(func=_settings)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
