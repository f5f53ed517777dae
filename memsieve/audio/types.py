"""Dataclasses shared across audio helpers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np


@dataclass(slots=True)
class AudioBuffer:
    """One block of PCM samples as delivered by the input stream."""

    samples: Optional[np.ndarray]
    sample_time: int
    sample_rate: float

    @property
    def timestamp(self) -> float:
        """Seconds since the stream started, derived from the frame position."""
        if not self.sample_rate:
            return 0.0
        return self.sample_time / float(self.sample_rate)

    @property
    def frames(self) -> int:
        if self.samples is None:
            return 0
        return int(np.shape(self.samples)[0]) if np.ndim(self.samples) else 0


@dataclass(slots=True, frozen=True)
class PowerUpdate:
    """Instantaneous and smoothed loudness (dB) for one buffer."""

    current: float
    smoothed: float
    timestamp: float


@dataclass(slots=True, frozen=True)
class SilenceInterval:
    """A sub-threshold run that lasted at least the configured minimum."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(slots=True, frozen=True)
class ChunkCut:
    """A completed chunk; ``index`` is the chunk that was opened in its place."""

    index: int
    path: Path
    elapsed: float
    reason: str


@dataclass(slots=True, frozen=True)
class ChunkWindow:
    """Time range of one offline chunk, in seconds."""

    index: int
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(slots=True)
class RecordingResult:
    """Chunks produced by a finished live recording, in recording order."""

    chunks: list[Path]
    duration: float
