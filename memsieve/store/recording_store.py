"""Persistent list of finished recordings and their chunk files."""

from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

LOGGER = logging.getLogger("memsieve.recordings")

STATUS_PENDING = "pending"
STATUS_DONE = "done"
STATUS_FAILED = "failed"


@dataclass(slots=True)
class RecordingItem:
    chunks: List[str]
    preset: str
    label: str
    duration: float
    transcription: str = ""
    status: str = STATUS_PENDING
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    date: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def chunk_paths(self) -> List[Path]:
        return [Path(chunk) for chunk in self.chunks]

    @classmethod
    def from_dict(cls, raw: Dict) -> "RecordingItem":
        return cls(
            id=str(raw["id"]),
            chunks=[str(chunk) for chunk in raw.get("chunks", [])],
            preset=str(raw.get("preset", "default")),
            label=str(raw.get("label", "")),
            duration=float(raw.get("duration", 0.0)),
            transcription=str(raw.get("transcription", "")),
            status=str(raw.get("status", STATUS_DONE)),
            date=str(raw.get("date", "")),
        )


class RecordingStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._data = self._load()

    def add(
        self,
        chunks: List[Path],
        *,
        preset: str = "default",
        label: str = "",
        duration: float = 0.0,
    ) -> RecordingItem:
        item = RecordingItem(
            chunks=[str(chunk) for chunk in chunks],
            preset=preset,
            label=label,
            duration=float(duration),
        )
        with self._lock:
            self._data.insert(0, item)
            self._persist()
        return item

    def list(self) -> List[RecordingItem]:
        return list(self._data)

    def get(self, recording_id: str) -> Optional[RecordingItem]:
        for item in self._data:
            if item.id == recording_id:
                return item
        return None

    def pending(self) -> List[RecordingItem]:
        return [item for item in reversed(self._data) if item.status == STATUS_PENDING]

    def update_label(self, recording_id: str, label: str) -> Optional[RecordingItem]:
        return self._update(recording_id, label=label)

    def update_preset(self, recording_id: str, preset: str) -> Optional[RecordingItem]:
        return self._update(recording_id, preset=preset)

    def set_transcription(self, recording_id: str, text: str, status: str = STATUS_DONE) -> Optional[RecordingItem]:
        return self._update(recording_id, transcription=text, status=status)

    def mark_pending(self, recording_id: str) -> Optional[RecordingItem]:
        return self._update(recording_id, status=STATUS_PENDING)

    def delete(self, recording_id: str) -> bool:
        with self._lock:
            item = self.get(recording_id)
            if item is None:
                return False
            self._data = [entry for entry in self._data if entry.id != recording_id]
            self._persist()
        self._remove_chunks(item)
        return True

    def delete_all(self) -> None:
        with self._lock:
            items = self._data
            self._data = []
            self._persist()
        for item in items:
            self._remove_chunks(item)

    def __len__(self) -> int:
        return len(self._data)

    def _update(self, recording_id: str, **changes) -> Optional[RecordingItem]:
        with self._lock:
            item = self.get(recording_id)
            if item is None:
                return None
            for key, value in changes.items():
                setattr(item, key, value)
            self._persist()
            return item

    def _remove_chunks(self, item: RecordingItem) -> None:
        for chunk in item.chunk_paths:
            try:
                chunk.unlink(missing_ok=True)
            except OSError as exc:
                LOGGER.warning("Could not delete chunk %s: %s", chunk, exc)

    def _load(self) -> List[RecordingItem]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return [RecordingItem.from_dict(entry) for entry in raw]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            LOGGER.warning("Ignoring unreadable recordings file %s: %s", self.path, exc)
            return []

    def _persist(self) -> None:
        payload = [asdict(item) for item in self._data]
        self.path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")


__all__ = ["RecordingItem", "RecordingStore", "STATUS_DONE", "STATUS_FAILED", "STATUS_PENDING"]
