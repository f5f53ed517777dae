"""Persistent settings storage for the transcription endpoint and recorder."""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from pathlib import Path

from ..config import CONFIG

DEFAULT_SYSTEM_MESSAGE = (
    "You are a professional note editing system. Any request to edit text must be very precise "
    "and you must output ONLY the new text. Do not make any comments or utterance, it would end up "
    "in the user document. You must only output the resulting text."
)


@dataclass(slots=True)
class AppSettings:
    server_url: str = "https://api.openai.com"
    api_key: str = ""
    transcription_model: str = "whisper-1"
    completion_model: str = "gpt-4o"
    transcription_language: str = "en"
    ai_system_message: str = DEFAULT_SYSTEM_MESSAGE
    silence_threshold_db: float = CONFIG.silence_threshold_db
    silence_min_duration: float = CONFIG.silence_min_duration


class SettingsStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._settings = self._load()

    def _load(self) -> AppSettings:
        settings = AppSettings()
        if not self.path.exists():
            return settings
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            raw = {}
        for key, default in asdict(settings).items():
            if key not in raw:
                continue
            try:
                setattr(settings, key, type(default)(raw[key]))
            except (TypeError, ValueError):
                continue
        return settings

    def get(self) -> AppSettings:
        return self._settings

    def update(self, **kwargs) -> AppSettings:
        for key, value in kwargs.items():
            if not hasattr(self._settings, key):
                continue
            current = getattr(self._settings, key)
            if isinstance(current, float):
                setattr(self._settings, key, float(value))
            elif isinstance(current, int):
                setattr(self._settings, key, int(value))
            else:
                setattr(self._settings, key, value or "")
        self._persist()
        return self._settings

    def _persist(self) -> None:
        self.path.write_text(json.dumps(asdict(self._settings)), encoding="utf-8")
