"""Live dictation recorder with silence-aware chunked output."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable

from ..config import CONFIG, RecorderConfig
from ..services.logger import LogBuffer
from .chunking import ChunkBoundaryController, ChunkPolicy
from .control import ControlQueue
from .power_monitor import EngineStartFailure, PowerMonitor, SilenceConfig
from .types import ChunkCut, PowerUpdate, RecordingResult, SilenceInterval
from .writer import SoundFileWriter


class DictationRecorder:
    def __init__(
        self,
        output_dir: Path,
        logger: LogBuffer,
        *,
        config: RecorderConfig | None = None,
        on_chunk_cut: Callable[[ChunkCut], None] | None = None,
        level_callback: Callable[[float, float], None] | None = None,
        stream_factory: Callable[..., Any] | None = None,
        monitor_factory: Callable[[ControlQueue], PowerMonitor] | None = None,
        writer: Any = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.logger = logger
        self.config = config or CONFIG
        self.on_chunk_cut = on_chunk_cut
        self.level_callback = level_callback
        self._stream_factory = stream_factory
        self._monitor_factory = monitor_factory
        self._writer = writer
        self._clock = clock
        self._control: ControlQueue | None = None
        self._controller: ChunkBoundaryController | None = None
        self._monitor: PowerMonitor | None = None
        self._stream: Any = None
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._session_lock = threading.Lock()
        self._started_at = 0.0
        self.duration = 0.0
        self.monitoring_active = False
        self.is_recording = False
        self.error: BaseException | None = None

    def _try_import_sounddevice(self):
        try:
            import sounddevice as sd  # type: ignore

            return sd
        except Exception:
            return None

    def start(self) -> None:
        if self.is_recording:
            return
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.error = None
        self.duration = 0.0
        control = ControlQueue(error_handler=self._handle_control_error)
        control.start()
        writer = self._writer or SoundFileWriter(
            self.config.sample_rate,
            self.config.channels,
            format=self.config.chunk_format,
            subtype=self.config.chunk_subtype,
        )
        controller = ChunkBoundaryController(
            writer,
            self.output_dir,
            ChunkPolicy.from_config(self.config),
            prefix=f"{int(time.time() * 1000)}_chunk",
            suffix=getattr(writer, "suffix", ".flac"),
        )
        controller.subscribe(self._handle_cut)
        try:
            controller.start()
            stream = self._open_stream()
        except Exception as exc:
            controller.stop()
            control.stop(drain=False)
            if isinstance(exc, EngineStartFailure):
                raise
            raise EngineStartFailure(f"Recording could not start: {exc}") from exc
        self._control = control
        self._controller = controller
        self._stream = stream
        self._started_at = self._clock()
        self.is_recording = True
        try:
            self._start_monitor(control)
            self._stop.clear()
            self._thread = threading.Thread(target=self._loop, name="memsieve-ticks", daemon=True)
            self._thread.start()
        except Exception:
            self._teardown(drain=False)
            raise
        if self.config.estimated_chunk_bytes() > self.config.max_chunk_bytes:
            self.logger.add(
                f"Chunks may reach {self.config.estimated_chunk_bytes()} bytes, "
                f"above the {self.config.max_chunk_bytes} byte upload limit",
                logging.WARNING,
            )
        self.logger.add("Recording started")

    def stop(self) -> RecordingResult:
        with self._session_lock:
            if self.is_recording:
                self._teardown(drain=True)
                self.logger.add(f"Recording stopped ({self._controller.chunk_index} chunk(s), {self.duration:.0f}s)")
        chunks = self._controller.chunks if self._controller else []
        return RecordingResult(chunks=chunks, duration=self.duration)

    def _teardown(self, *, drain: bool) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread and thread is not threading.current_thread():
            thread.join(timeout=2)
        if self._monitor:
            self._monitor.stop()
            self._monitor = None
        self._close_stream()
        if self._control:
            self._control.stop(drain=drain)
            self._control = None
        self.duration = max(self.duration, self._clock() - self._started_at)
        if self._controller:
            self._controller.stop()
        self.is_recording = False
        self.monitoring_active = False

    def _abort(self) -> None:
        with self._session_lock:
            if not self.is_recording:
                return
            self._teardown(drain=False)
        completed = self._controller.chunk_index if self._controller else 0
        self.logger.add(f"Recording aborted, kept {completed} completed chunk(s)", logging.ERROR)

    def _open_stream(self) -> Any:
        factory = self._stream_factory or self._default_stream_factory
        stream = factory(
            samplerate=self.config.sample_rate,
            channels=self.config.channels,
            blocksize=self.config.block_size,
            callback=self._capture_callback,
        )
        try:
            stream.start()
        except Exception:
            self._stream = stream
            self._close_stream()
            raise
        return stream

    def _default_stream_factory(self, **kwargs: Any) -> Any:
        sd = self._try_import_sounddevice()
        if sd is None:
            raise EngineStartFailure("sounddevice is not available")
        return sd.InputStream(dtype="float32", **kwargs)

    def _close_stream(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as exc:
            self.logger.add(f"Input stream close error: {exc}", logging.WARNING)

    def _start_monitor(self, control: ControlQueue) -> None:
        factory = self._monitor_factory or self._default_monitor
        monitor = factory(control)
        monitor.subscribe(self._handle_power, PowerUpdate)
        monitor.subscribe(self._handle_silence, SilenceInterval)
        try:
            monitor.start()
        except EngineStartFailure as exc:
            self.monitoring_active = False
            self.logger.add(f"Level monitoring unavailable, hard-limit chunking only: {exc}", logging.WARNING)
            return
        self._monitor = monitor
        self.monitoring_active = True

    def _default_monitor(self, control: ControlQueue) -> PowerMonitor:
        return PowerMonitor(
            SilenceConfig(self.config.silence_threshold_db, self.config.silence_min_duration),
            smoothing_count=self.config.smoothing_count,
            sample_rate=self.config.sample_rate,
            block_size=self.config.block_size,
            control=control,
        )

    def _capture_callback(self, indata, frames, time_info, status) -> None:  # noqa: ARG002
        control = self._control
        if control is not None:
            control.post(self._write_block, indata.copy())

    def _loop(self) -> None:
        while not self._stop.wait(self.config.tick_interval):
            control = self._control
            if control is None:
                return
            control.post(self._tick, self._clock() - self._started_at)

    def _tick(self, elapsed: float) -> None:
        self.duration = elapsed
        if self._controller:
            self._controller.on_tick(elapsed)

    def _write_block(self, block) -> None:
        if self._controller:
            self._controller.write(block)

    def _handle_silence(self, event: SilenceInterval) -> None:
        if self._controller:
            self._controller.on_silence(event)

    def _handle_power(self, update: PowerUpdate) -> None:
        if self.level_callback:
            self.level_callback(update.current, update.smoothed)

    def _handle_cut(self, cut: ChunkCut) -> None:
        self.logger.add(f"Chunk {cut.index} saved ({cut.reason}): {cut.path.name}")
        if self.on_chunk_cut:
            self.on_chunk_cut(cut)

    def _handle_control_error(self, exc: BaseException) -> None:
        self.error = exc
        self.logger.add(f"Recording error: {exc}", logging.ERROR)
        # Runs on the control thread, which the teardown has to join.
        threading.Thread(target=self._abort, name="memsieve-abort", daemon=True).start()


__all__ = ["DictationRecorder"]
