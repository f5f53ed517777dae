"""Single ordered control thread shared by the monitor, ticks and chunk cuts."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Optional

LOGGER = logging.getLogger("memsieve.control")

_STOP = object()


class ControlQueue:
    """Run posted callables one at a time, in arrival order, on one worker thread."""

    def __init__(
        self,
        *,
        name: str = "memsieve-control",
        error_handler: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self.name = name
        self.error_handler = error_handler
        self._queue: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        self._queue.put((fn, args))

    def join(self, timeout: float | None = None) -> bool:
        """Block until every job posted before this call has run."""
        if not self.running:
            return False
        done = threading.Event()
        self.post(done.set)
        return done.wait(timeout)

    def stop(self, *, drain: bool = True, timeout: float = 2.0) -> None:
        if not self._thread:
            return
        if not drain:
            self._discard_pending()
        self._queue.put(_STOP)
        if not self.in_control_thread():
            self._thread.join(timeout=timeout)
        self._thread = None

    def in_control_thread(self) -> bool:
        return self._thread is threading.current_thread()

    def _discard_pending(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            fn, args = item
            try:
                fn(*args)
            except Exception as exc:
                LOGGER.exception("Control job %s failed", getattr(fn, "__name__", fn))
                if self.error_handler:
                    self.error_handler(exc)


__all__ = ["ControlQueue"]
