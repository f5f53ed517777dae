"""Recording presets: transcription hints plus an optional reformatting prompt."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import List, Optional

DEFAULT_TRANSCRIPTION_PROMPT = "Dictated personal notes. Use standard punctuation."

_REFORMAT_RULES = (
    "If it is already formatted, just return the original text. "
    "You MUST NOT change any of the content or add any new content. "
    "You are purely transforming the form and improving the quality."
)


@dataclass(slots=True, frozen=True)
class RecordingPreset:
    id: str
    name: str
    auto_prompt: Optional[str] = None
    transcription_prompt: str = DEFAULT_TRANSCRIPTION_PROMPT


DEFAULT_PRESETS = (
    RecordingPreset(id="default", name="Default"),
    RecordingPreset(
        id="bullets",
        name="Bullet Points",
        auto_prompt=(
            "You will be provided a transcript based on an audio recording. "
            "Your task is to transform the transcript by removing any utterances, fixing transcription "
            "errors, adding punctuation, and formatting it into sections and bullet-points inside those "
            "sections. " + _REFORMAT_RULES
        ),
    ),
    RecordingPreset(
        id="thoughts",
        name="Thoughts",
        auto_prompt=(
            "You will be provided a transcript based on an audio recording. "
            "Your task is to transform the transcript by removing any utterances, fixing transcription "
            "errors, adding punctuation, and formatting it into clear sections with headings and "
            "paragraphs. " + _REFORMAT_RULES
        ),
    ),
)


class PresetStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._presets = self._load()

    def list(self) -> List[RecordingPreset]:
        return list(self._presets)

    def get(self, preset_id: str) -> Optional[RecordingPreset]:
        for preset in self._presets:
            if preset.id == preset_id:
                return preset
        return None

    def update(self, preset_id: str, **changes) -> Optional[RecordingPreset]:
        for index, preset in enumerate(self._presets):
            if preset.id == preset_id:
                updated = replace(preset, **{k: v for k, v in changes.items() if k != "id"})
                self._presets[index] = updated
                self._persist()
                return updated
        return None

    def transcription_prompt_for(self, preset_id: str) -> str:
        preset = self.get(preset_id)
        return preset.transcription_prompt if preset else DEFAULT_TRANSCRIPTION_PROMPT

    def _load(self) -> List[RecordingPreset]:
        if not self.path.exists():
            return list(DEFAULT_PRESETS)
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return [RecordingPreset(**entry) for entry in raw]
        except (OSError, ValueError, TypeError):
            return list(DEFAULT_PRESETS)

    def _persist(self) -> None:
        self.path.write_text(json.dumps([asdict(p) for p in self._presets], ensure_ascii=False), encoding="utf-8")


__all__ = ["DEFAULT_PRESETS", "DEFAULT_TRANSCRIPTION_PROMPT", "PresetStore", "RecordingPreset"]
