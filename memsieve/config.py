"""Recorder configuration resolved from the environment."""

from __future__ import annotations

import math
import os
from functools import lru_cache

from pydantic import BaseModel, Field, field_validator, model_validator


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


class RecorderConfig(BaseModel):
    sample_rate: int = Field(default=int(os.getenv("MEMSIEVE_SAMPLE_RATE", "44100")))
    channels: int = Field(default=int(os.getenv("MEMSIEVE_CHANNELS", "1")))
    block_size: int = Field(default=int(os.getenv("MEMSIEVE_BLOCK_SIZE", "1024")))
    chunk_format: str = Field(default=os.getenv("MEMSIEVE_CHUNK_FORMAT", "FLAC"))
    chunk_subtype: str = Field(default=os.getenv("MEMSIEVE_CHUNK_SUBTYPE", "PCM_16"))

    silence_threshold_db: float = Field(default=_env_float("MEMSIEVE_SILENCE_THRESHOLD_DB", "-50.0"))
    silence_min_duration: float = Field(default=_env_float("MEMSIEVE_SILENCE_MIN_DURATION", "0.5"))
    smoothing_count: int = Field(default=int(os.getenv("MEMSIEVE_SMOOTHING_COUNT", "5")))

    chunk_threshold: float = Field(default=_env_float("MEMSIEVE_CHUNK_THRESHOLD", "700"))
    hard_limit: float = Field(default=_env_float("MEMSIEVE_HARD_LIMIT", "780"))
    max_chunk_duration: float = Field(default=_env_float("MEMSIEVE_MAX_CHUNK_DURATION", "800"))
    silence_reference: str = Field(default=os.getenv("MEMSIEVE_SILENCE_REFERENCE", "recording"))
    tick_interval: float = Field(default=_env_float("MEMSIEVE_TICK_INTERVAL", "1.0"))

    max_chunk_bytes: int = Field(default=int(os.getenv("MEMSIEVE_MAX_CHUNK_BYTES", str(25 * 1024 * 1024))))
    estimated_bytes_per_second: int = Field(
        default=int(os.getenv("MEMSIEVE_BYTES_PER_SECOND", str(24 * 1024)))
    )

    data_dir: str = Field(default=os.getenv("MEMSIEVE_DATA_DIR", "."))
    settings_file: str = Field(default=os.getenv("MEMSIEVE_SETTINGS_FILE", "settings.json"))
    recordings_file: str = Field(default=os.getenv("MEMSIEVE_RECORDINGS_FILE", "recordings.json"))
    presets_file: str = Field(default=os.getenv("MEMSIEVE_PRESETS_FILE", "presets.json"))
    log_history: int = Field(default=int(os.getenv("MEMSIEVE_LOG_HISTORY", "200")))

    @field_validator("silence_threshold_db", "silence_min_duration", "chunk_threshold", "hard_limit")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("value must be finite")
        return value

    @field_validator("silence_min_duration", "tick_interval")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("duration must be >= 0")
        return value

    @field_validator("silence_reference")
    @classmethod
    def _reference(cls, value: str) -> str:
        if value not in {"recording", "chunk"}:
            raise ValueError("silence_reference must be 'recording' or 'chunk'")
        return value

    @model_validator(mode="after")
    def _limits(self) -> "RecorderConfig":
        if self.hard_limit > self.max_chunk_duration:
            raise ValueError("hard_limit must not exceed max_chunk_duration")
        return self

    def estimated_chunk_bytes(self, duration: float | None = None) -> int:
        """Rough encoded size of a chunk of ``duration`` seconds (hard limit by default)."""
        seconds = self.hard_limit if duration is None else duration
        return int(seconds * self.estimated_bytes_per_second)


@lru_cache()
def get_config() -> RecorderConfig:
    return RecorderConfig()


CONFIG = get_config()
