"""Transcription, AI reformatting and file import for stored recordings."""

from __future__ import annotations

import logging
import shutil
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from pathlib import Path
from typing import Optional

import soundfile as sf

from ..audio.splitter import ExportFailure, split_audio_file
from ..config import CONFIG
from ..store.preset_store import PresetStore
from ..store.recording_store import STATUS_DONE, STATUS_FAILED, RecordingItem, RecordingStore
from ..store.settings_store import SettingsStore
from .logger import LogBuffer
from .network import ApiClient, ApiError


def build_edit_message(text: str, request: str) -> str:
    return (
        "<PROVIDED TEXT>\n"
        f"{text.strip()}\n"
        "</PROVIDED TEXT>\n\n"
        "<USER REQUEST>\n"
        f"{request.strip()}\n"
        "</USER REQUEST>"
    )


class TranscriptionService:
    def __init__(
        self,
        client: ApiClient,
        recordings: RecordingStore,
        presets: PresetStore,
        logger: LogBuffer,
        *,
        settings: SettingsStore | None = None,
        timeout: float = 120.0,
        max_workers: int = 4,
        import_root: Path | None = None,
        max_chunk_duration: float | None = None,
    ) -> None:
        self.client = client
        self.recordings = recordings
        self.presets = presets
        self.logger = logger
        self.settings = settings or client.settings_store
        self.timeout = timeout
        self.max_workers = max(1, max_workers)
        self.import_root = Path(import_root) if import_root else recordings.path.parent
        self.max_chunk_duration = max_chunk_duration or CONFIG.max_chunk_duration

    def transcribe_recording(self, recording_id: str) -> str:
        """Transcribe every chunk and store the texts joined in recording order."""
        item = self._require(recording_id)
        if not item.chunks:
            self.logger.add(f"No chunks found for recording {recording_id[:6]}", logging.WARNING)
            self.recordings.set_transcription(recording_id, "", STATUS_FAILED)
            return ""
        prompt = self.presets.transcription_prompt_for(item.preset)
        self.logger.add(f"Transcribing {len(item.chunks)} chunk(s) of {recording_id[:6]}")
        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(item.chunks)))
        try:
            futures = [
                executor.submit(self.client.transcribe_chunk, path, prompt=prompt or None)
                for path in item.chunk_paths
            ]
            deadline = time.monotonic() + self.timeout
            texts = [future.result(timeout=max(0.0, deadline - time.monotonic())) for future in futures]
        except (ApiError, FuturesTimeout) as exc:
            reason = "timed out" if isinstance(exc, FuturesTimeout) else str(exc)
            self.logger.add(f"Transcription failed ({recording_id[:6]}): {reason}", logging.ERROR)
            self.recordings.set_transcription(recording_id, "", STATUS_FAILED)
            return ""
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        text = "\n\n".join(texts)
        self.recordings.set_transcription(recording_id, text, STATUS_DONE)
        self.logger.add(f"Recording {recording_id[:6]} transcribed ({len(text)} characters)")
        return text

    def apply_auto_prompt(self, recording_id: str, prompt: str) -> Optional[str]:
        item = self._require(recording_id)
        if not item.transcription:
            self.logger.add(f"No transcription to format for {recording_id[:6]}", logging.WARNING)
            return None
        try:
            formatted = self.client.chat_completion(prompt, item.transcription)
        except ApiError as exc:
            self.logger.add(f"Auto prompt failed ({recording_id[:6]}): {exc}", logging.ERROR)
            return None
        self.recordings.set_transcription(recording_id, formatted, STATUS_DONE)
        return formatted

    def apply_preset_prompt(self, recording_id: str) -> Optional[str]:
        item = self._require(recording_id)
        preset = self.presets.get(item.preset)
        if preset is None or not preset.auto_prompt:
            return None
        return self.apply_auto_prompt(recording_id, preset.auto_prompt)

    def edit_text(
        self,
        recording_id: str,
        request: str,
        selection: tuple[int, int] | None = None,
    ) -> str:
        """Rewrite the whole transcription, or only ``text[start:end]``, per ``request``."""
        item = self._require(recording_id)
        text = item.transcription
        start, end = selection if selection else (0, len(text))
        if not 0 <= start <= end <= len(text):
            raise ValueError("selection is outside the transcription")
        edited = self.client.chat_completion(
            self.settings.get().ai_system_message,
            build_edit_message(text[start:end], request),
        )
        updated = text[:start] + edited + text[end:]
        self.recordings.set_transcription(recording_id, updated, STATUS_DONE)
        return updated

    def import_audio_file(self, source: Path, preset_id: str = "default") -> RecordingItem:
        """Copy, split and transcribe an existing audio file as a new recording."""
        source = Path(source)
        import_dir = self.import_root / f"import_{uuid.uuid4().hex}"
        import_dir.mkdir(parents=True, exist_ok=True)
        copied = import_dir / f"source{source.suffix}"
        shutil.copyfile(source, copied)
        try:
            chunks = split_audio_file(copied, import_dir, self.max_chunk_duration)
        except ExportFailure as exc:
            shutil.rmtree(import_dir, ignore_errors=True)
            self.logger.add(f"Import of {source.name} failed: {exc}", logging.ERROR)
            raise
        finally:
            copied.unlink(missing_ok=True)
        duration = _duration_of(chunks)
        item = self.recordings.add(chunks, preset=preset_id, label="Imported Recording", duration=duration)
        self.logger.add(f"Imported {source.name} as {len(chunks)} chunk(s)")
        if self.transcribe_recording(item.id):
            self.apply_preset_prompt(item.id)
        return self.recordings.get(item.id) or item

    def _require(self, recording_id: str) -> RecordingItem:
        item = self.recordings.get(recording_id)
        if item is None:
            raise KeyError(f"Unknown recording {recording_id}")
        return item


def _duration_of(chunks: list[Path]) -> float:
    return float(sum(sf.info(str(chunk)).duration for chunk in chunks))


class TranscriptionWorker:
    """Background thread that transcribes pending recordings oldest first."""

    def __init__(self, service: TranscriptionService, *, poll_interval: float = 2.0) -> None:
        self.service = service
        self.poll_interval = poll_interval
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self.idle = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self.idle.clear()
        self._thread = threading.Thread(target=self._run, name="memsieve-transcriber", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        self._wake_event.set()
        if self._thread:
            self._thread.join(timeout=2)

    def wake(self) -> None:
        self._wake_event.set()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            pending = self.service.recordings.pending()
            if not pending:
                self.idle.set()
                self._wake_event.wait(timeout=self.poll_interval)
                self._wake_event.clear()
                continue
            self.idle.clear()
            entry = pending[0]
            try:
                if self.service.transcribe_recording(entry.id):
                    self.service.apply_preset_prompt(entry.id)
            except KeyError:
                continue
            except Exception as exc:
                self.service.logger.add(f"Transcription worker error ({entry.id[:6]}): {exc}", logging.ERROR)
                self._stop_event.wait(1)


__all__ = ["TranscriptionService", "TranscriptionWorker", "build_edit_message"]
