"""Fixed-window splitting for recordings that already exist on disk."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Optional

import soundfile as sf

from .types import ChunkWindow

LOGGER = logging.getLogger("memsieve.splitter")


class ExportFailure(Exception):
    """A chunk could not be exported; the whole split is abandoned."""

    def __init__(self, index: int, window: Optional[ChunkWindow], message: str) -> None:
        super().__init__(f"Export failed for chunk {index + 1}: {message}")
        self.index = index
        self.window = window


def plan_windows(duration: float, window: float) -> list[ChunkWindow]:
    """Cover ``[0, duration)`` with contiguous windows of at most ``window`` seconds."""
    if not math.isfinite(window) or window <= 0:
        raise ValueError("window must be a positive finite number")
    if not math.isfinite(duration) or duration <= 0:
        return []
    windows: list[ChunkWindow] = []
    for index in range(math.ceil(duration / window)):
        start = index * window
        if start >= duration:
            break
        windows.append(ChunkWindow(index=index, start=start, end=min((index + 1) * window, duration)))
    return windows


def plan_frame_windows(total_frames: int, sample_rate: int, window: float) -> list[tuple[int, int]]:
    if not math.isfinite(window) or window <= 0:
        raise ValueError("window must be a positive finite number")
    if total_frames <= 0 or sample_rate <= 0:
        return []
    step = max(1, int(round(window * sample_rate)))
    return [(start, min(start + step, total_frames)) for start in range(0, total_frames, step)]


def split_audio_file(
    source: Path,
    output_dir: Path,
    max_chunk_duration: float = 800.0,
    *,
    format: str = "FLAC",
    subtype: str = "PCM_16",
    prefix: str = "chunk",
) -> list[Path]:
    """Export ``source`` as consecutive chunk files no longer than ``max_chunk_duration``."""
    source = Path(source)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    try:
        handle = sf.SoundFile(str(source))
    except Exception as exc:
        raise ExportFailure(0, None, f"cannot read {source.name}: {exc}") from exc

    suffix = f".{format.lower()}"
    chunks: list[Path] = []
    with handle as src:
        rate = src.samplerate
        spans = plan_frame_windows(src.frames, rate, max_chunk_duration)
        LOGGER.info("Splitting %s (%.1fs) into %d chunk(s)", source.name, src.frames / rate, len(spans))
        for index, (start, end) in enumerate(spans):
            window = ChunkWindow(index=index, start=start / rate, end=end / rate)
            path = output_dir / f"{prefix}{index + 1:03d}{suffix}"
            try:
                src.seek(start)
                data = src.read(end - start, dtype="float32", always_2d=True)
                if len(data) != end - start:
                    raise ValueError(f"expected {end - start} frames, read {len(data)}")
                sf.write(str(path), data, rate, format=format, subtype=subtype)
            except Exception as exc:
                for written in [*chunks, path]:
                    written.unlink(missing_ok=True)
                LOGGER.error("Export failed for chunk %d of %s: %s", index + 1, source.name, exc)
                raise ExportFailure(index, window, str(exc)) from exc
            chunks.append(path)
    return chunks


__all__ = ["ExportFailure", "plan_frame_windows", "plan_windows", "split_audio_file"]
