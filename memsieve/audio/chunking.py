"""Decide when a live recording should roll over into a new chunk file."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from .types import ChunkCut, SilenceInterval

LOGGER = logging.getLogger("memsieve.chunking")

REASON_SILENCE = "silence"
REASON_HARD_LIMIT = "hard_limit"


class FileWriter(Protocol):
    def open(self, path: Path) -> Any: ...

    def stop(self, handle: Any) -> Path: ...


@dataclass(slots=True, frozen=True)
class ChunkPolicy:
    """Timing limits for live chunking, in seconds.

    ``silence_reference`` picks what a silence cut compares against
    ``chunk_threshold``: the whole recording (``"recording"``) or the time
    since the previous cut (``"chunk"``).
    """

    chunk_threshold: float = 700.0
    hard_limit: float = 780.0
    max_chunk_duration: float = 800.0
    silence_reference: str = "recording"

    def __post_init__(self) -> None:
        for name in ("chunk_threshold", "hard_limit", "max_chunk_duration"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be a positive finite number")
        if self.hard_limit > self.max_chunk_duration:
            raise ValueError("hard_limit must not exceed max_chunk_duration")
        if self.silence_reference not in ("recording", "chunk"):
            raise ValueError("silence_reference must be 'recording' or 'chunk'")

    @classmethod
    def from_config(cls, config) -> "ChunkPolicy":
        return cls(
            chunk_threshold=config.chunk_threshold,
            hard_limit=config.hard_limit,
            max_chunk_duration=config.max_chunk_duration,
            silence_reference=config.silence_reference,
        )


class ChunkState(enum.Enum):
    IDLE = "idle"
    OPEN = "open"
    CLOSED = "closed"


class ChunkBoundaryController:
    """Own the chunk list of one recording and cut it at pauses or hard limits.

    Every method must be called from the same control thread; ticks, silence
    events and cuts are expected to arrive already serialized.
    """

    def __init__(
        self,
        writer: FileWriter,
        output_dir: Path,
        policy: ChunkPolicy | None = None,
        *,
        prefix: str = "chunk",
        suffix: str = ".flac",
    ) -> None:
        self.writer = writer
        self.output_dir = Path(output_dir)
        self.policy = policy or ChunkPolicy()
        self.prefix = prefix
        self.suffix = suffix
        self.state = ChunkState.IDLE
        self.elapsed = 0.0
        self.last_chunk_time = 0.0
        self._chunks: list[Path] = []
        self._handle: Any = None
        self._cutting = False
        self._listeners: list[Callable[[ChunkCut], None]] = []

    @property
    def chunks(self) -> list[Path]:
        return list(self._chunks)

    @property
    def current_chunk_duration(self) -> float:
        return self.elapsed - self.last_chunk_time

    @property
    def chunk_index(self) -> int:
        return len(self._chunks)

    def subscribe(self, listener: Callable[[ChunkCut], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        if self.state is not ChunkState.IDLE:
            raise RuntimeError(f"Controller cannot start from state {self.state.value}")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.elapsed = 0.0
        self.last_chunk_time = 0.0
        self._chunks = []
        self._handle = self.writer.open(self._next_path())
        self.state = ChunkState.OPEN
        LOGGER.info("Chunked recording started in %s", self.output_dir)

    def on_tick(self, elapsed: float) -> Optional[ChunkCut]:
        if self.state is not ChunkState.OPEN:
            return None
        self.elapsed = max(self.elapsed, float(elapsed))
        if self.current_chunk_duration >= self.policy.hard_limit:
            LOGGER.warning("Reached hard limit (%.0fs), forcing chunk split", self.policy.hard_limit)
            return self.cut(REASON_HARD_LIMIT)
        return None

    def on_silence(self, event: SilenceInterval) -> Optional[ChunkCut]:
        if self.state is not ChunkState.OPEN:
            return None
        if self.policy.silence_reference == "chunk":
            measured = self.current_chunk_duration
        else:
            measured = self.elapsed
        if measured < self.policy.chunk_threshold:
            return None
        LOGGER.info("Silence from %.2fs to %.2fs after threshold, splitting", event.start, event.end)
        return self.cut(REASON_SILENCE)

    def cut(self, reason: str) -> ChunkCut:
        if self.state is not ChunkState.OPEN:
            raise RuntimeError("No open chunk to cut")
        if self._cutting:
            raise RuntimeError("A chunk cut is already in progress")
        self._cutting = True
        try:
            completed = self._close_current()
            self.last_chunk_time = self.elapsed
            self._handle = self.writer.open(self._next_path())
        except Exception:
            self.state = ChunkState.CLOSED
            raise
        finally:
            self._cutting = False
        cut = ChunkCut(index=self.chunk_index, path=completed, elapsed=self.elapsed, reason=reason)
        LOGGER.info("Started chunk %d at %.1fs (%s)", cut.index + 1, cut.elapsed, reason)
        for listener in list(self._listeners):
            listener(cut)
        return cut

    def stop(self) -> list[Path]:
        if self.state is ChunkState.OPEN and self._handle is not None:
            self.state = ChunkState.CLOSED
            self._close_current()
            LOGGER.info("Chunked recording stopped with %d chunk(s)", len(self._chunks))
        self.state = ChunkState.CLOSED
        return self.chunks

    def write(self, block: Any) -> None:
        """Append audio to the open chunk, if the writer supports it."""
        if self.state is not ChunkState.OPEN or self._handle is None:
            return
        write = getattr(self.writer, "write", None)
        if write is not None:
            write(self._handle, block)

    def _close_current(self) -> Path:
        handle = self._handle
        self._handle = None
        if handle is None:
            raise RuntimeError("Current chunk has no open file")
        path = Path(self.writer.stop(handle))
        self._chunks.append(path)
        return path

    def _next_path(self) -> Path:
        return self.output_dir / f"{self.prefix}{len(self._chunks) + 1:03d}{self.suffix}"


__all__ = [
    "ChunkBoundaryController",
    "ChunkPolicy",
    "ChunkState",
    "FileWriter",
    "REASON_HARD_LIMIT",
    "REASON_SILENCE",
]
