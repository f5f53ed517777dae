"""Live loudness monitor with smoothed levels and silence-interval events."""

from __future__ import annotations

import logging
import math
import threading
from collections import deque
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Optional, Union

import numpy as np

from .control import ControlQueue
from .types import AudioBuffer, PowerUpdate, SilenceInterval

LOGGER = logging.getLogger("memsieve.power")

SILENCE_FLOOR_DB = -160.0

PowerEvent = Union[PowerUpdate, SilenceInterval]
Listener = Callable[[PowerEvent], None]


class EngineStartFailure(Exception):
    """The audio input could not be opened or started."""


def _try_import_sounddevice():
    try:
        import sounddevice as sd  # type: ignore

        return sd
    except Exception:
        return None


def calculate_power(samples: Any) -> float:
    """RMS level of ``samples`` (float PCM in [-1, 1]) in dB, floored at -160."""
    if samples is None:
        return SILENCE_FLOOR_DB
    try:
        data = np.asarray(samples, dtype=np.float64)
    except (TypeError, ValueError):
        return SILENCE_FLOOR_DB
    if data.size == 0:
        return SILENCE_FLOOR_DB
    mean_square = float(np.mean(np.square(data)))
    if not math.isfinite(mean_square) or mean_square <= 0.0:
        return SILENCE_FLOOR_DB
    return max(20.0 * math.log10(math.sqrt(mean_square)), SILENCE_FLOOR_DB)


class SmoothingWindow:
    """Moving average over the most recent power samples."""

    def __init__(self, capacity: int = 5) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._values: deque[float] = deque(maxlen=capacity)

    def push(self, value: float) -> float:
        self._values.append(float(value))
        return self.mean

    @property
    def mean(self) -> float:
        if not self._values:
            return SILENCE_FLOOR_DB
        return sum(self._values) / len(self._values)

    @property
    def values(self) -> list[float]:
        return list(self._values)

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)


@dataclass(slots=True, frozen=True)
class SilenceConfig:
    threshold: float = -50.0
    min_duration: float = 0.5

    def __post_init__(self) -> None:
        if not math.isfinite(self.threshold):
            raise ValueError("threshold must be finite")
        if not math.isfinite(self.min_duration) or self.min_duration < 0:
            raise ValueError("min_duration must be a finite value >= 0")


@dataclass(slots=True)
class SilenceCandidate:
    start: float
    emitted: bool = False


class SilenceTracker:
    """Turn a stream of (power, timestamp) readings into silence intervals.

    A candidate opens on the first sub-threshold reading and is dropped on the
    first reading at or above the threshold. Each candidate yields at most one
    interval, as soon as it has lasted ``min_duration`` seconds.
    """

    def __init__(self, config: SilenceConfig) -> None:
        self.config = config
        self.candidate: Optional[SilenceCandidate] = None

    def observe(self, power: float, timestamp: float) -> Optional[SilenceInterval]:
        if power >= self.config.threshold:
            self.candidate = None
            return None
        if self.candidate is None:
            self.candidate = SilenceCandidate(start=timestamp)
        candidate = self.candidate
        if candidate.emitted or timestamp - candidate.start < self.config.min_duration:
            return None
        candidate.emitted = True
        return SilenceInterval(start=candidate.start, end=timestamp)

    def reset(self) -> None:
        self.candidate = None


class PowerMonitor:
    """Publish loudness updates and silence intervals for a live input stream.

    The stream callback only measures the block and posts the reading to the
    control queue; smoothing, silence tracking and listener fan-out all run on
    the control thread, in buffer order.
    """

    def __init__(
        self,
        config: SilenceConfig | None = None,
        *,
        smoothing_count: int = 5,
        sample_rate: float | None = None,
        channels: int = 1,
        block_size: int = 1024,
        control: ControlQueue | None = None,
        stream_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.config = config or SilenceConfig()
        self.sample_rate = sample_rate
        self.channels = channels
        self.block_size = block_size
        self.current_power = SILENCE_FLOOR_DB
        self.smoothed_power = SILENCE_FLOOR_DB
        self._window = SmoothingWindow(smoothing_count)
        self._tracker = SilenceTracker(self.config)
        self._listeners: list[tuple[Listener, type | None]] = []
        self._lock = threading.RLock()
        self._control = control
        self._owns_control = False
        self._stream_factory = stream_factory
        self._stream: Any = None
        self._stream_rate: float = float(sample_rate or 0.0)
        self._frames_seen = 0
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._stream is not None

    @property
    def window(self) -> SmoothingWindow:
        return self._window

    def subscribe(self, listener: Listener, event_type: type | None = None) -> Callable[[], None]:
        entry = (listener, event_type)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def process_buffer(self, buffer: AudioBuffer) -> list[PowerEvent]:
        """Measure one buffer and publish the resulting events synchronously."""
        power = calculate_power(buffer.samples)
        with self._lock:
            return self._process_power_level(power, buffer.timestamp)

    def start(self) -> None:
        with self._lock:
            if self._stream is not None:
                return
            if self._control is None:
                self._control = ControlQueue(name="memsieve-power")
                self._owns_control = True
            self._control.start()
            self._generation += 1
            self._frames_seen = 0
            factory = self._stream_factory or self._default_stream_factory
            stream = None
            try:
                stream = factory(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    blocksize=self.block_size,
                    callback=partial(self._audio_callback, self._generation),
                )
                self._stream_rate = float(getattr(stream, "samplerate", None) or self.sample_rate or 0.0)
                stream.start()
            except Exception as exc:
                self._generation += 1
                if stream is not None:
                    _close_quietly(stream)
                self._release_control()
                if isinstance(exc, EngineStartFailure):
                    raise
                raise EngineStartFailure(f"Audio input could not start: {exc}") from exc
            self._stream = stream
        LOGGER.info(
            "Power monitoring started (threshold %.1f dB, min silence %.2fs, %.0f Hz)",
            self.config.threshold,
            self.config.min_duration,
            self._stream_rate,
        )

    def stop(self) -> None:
        with self._lock:
            stream = self._stream
            self._stream = None
            self._generation += 1
            self._window.clear()
            self._tracker.reset()
            self.current_power = SILENCE_FLOOR_DB
            self.smoothed_power = SILENCE_FLOOR_DB
        if stream is None:
            return
        _close_quietly(stream)
        self._release_control()
        LOGGER.info("Power monitoring stopped")

    def _release_control(self) -> None:
        if self._owns_control and self._control is not None:
            self._control.stop(drain=False)
            self._control = None
            self._owns_control = False

    def _default_stream_factory(self, **kwargs: Any) -> Any:
        sd = _try_import_sounddevice()
        if sd is None:
            raise EngineStartFailure("sounddevice is not available")
        return sd.InputStream(dtype="float32", **kwargs)

    def _audio_callback(self, generation: int, indata, frames, time_info, status) -> None:  # noqa: ARG002
        if generation != self._generation:
            return
        control = self._control
        if control is None:
            return
        try:
            if status:
                LOGGER.debug("Input stream status: %s", status)
            power = calculate_power(indata)
            sample_time = self._frames_seen
            self._frames_seen += int(frames)
            timestamp = sample_time / self._stream_rate if self._stream_rate else 0.0
            control.post(self._deliver, generation, power, timestamp)
        except Exception:  # pragma: no cover - never raise on the audio thread
            LOGGER.debug("Dropped audio block", exc_info=True)

    def _deliver(self, generation: int, power: float, timestamp: float) -> None:
        with self._lock:
            if generation != self._generation or self._stream is None:
                return
            self._process_power_level(power, timestamp)

    def _process_power_level(self, power: float, timestamp: float) -> list[PowerEvent]:
        generation = self._generation
        self.current_power = power
        self.smoothed_power = self._window.push(power)
        events: list[PowerEvent] = [PowerUpdate(power, self.smoothed_power, timestamp)]
        silence = self._tracker.observe(power, timestamp)
        if silence is not None:
            LOGGER.debug("Silence detected from %.2fs to %.2fs", silence.start, silence.end)
            events.append(silence)
        for event in events:
            if generation != self._generation:
                break
            self._publish(event)
        return events

    def _publish(self, event: PowerEvent) -> None:
        for listener, event_type in list(self._listeners):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                listener(event)
            except Exception:
                LOGGER.exception("Power listener failed")


def _close_quietly(stream: Any) -> None:
    try:
        stream.stop()
        stream.close()
    except Exception as exc:
        LOGGER.warning("Failed to close input stream: %s", exc)


__all__ = [
    "EngineStartFailure",
    "PowerMonitor",
    "SILENCE_FLOOR_DB",
    "SilenceCandidate",
    "SilenceConfig",
    "SilenceTracker",
    "SmoothingWindow",
    "calculate_power",
]
