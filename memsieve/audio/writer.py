"""Chunk file writer backed by soundfile."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import soundfile as sf


class SoundFileWriter:
    def __init__(self, sample_rate: int, channels: int, *, format: str = "FLAC", subtype: str = "PCM_16") -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.format = format
        self.subtype = subtype

    @property
    def suffix(self) -> str:
        return f".{self.format.lower()}"

    def open(self, path: Path) -> sf.SoundFile:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        return sf.SoundFile(
            str(path),
            mode="w",
            samplerate=self.sample_rate,
            channels=self.channels,
            format=self.format,
            subtype=self.subtype,
        )

    def write(self, handle: sf.SoundFile, block: np.ndarray) -> None:
        handle.write(np.asarray(block, dtype=np.float32))

    def stop(self, handle: sf.SoundFile) -> Path:
        handle.close()
        return Path(handle.name)


__all__ = ["SoundFileWriter"]
