"""In-memory log history for display, mirrored into stdlib logging."""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger("memsieve")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(handler)
    return logger


class LogBuffer:
    def __init__(self, max_lines: int = 200, *, logger: logging.Logger | None = None) -> None:
        self._lines: deque[str] = deque(maxlen=max(1, int(max_lines)))
        self._lock = threading.Lock()
        self._logger = logger or logging.getLogger("memsieve.app")

    def add(self, message: str, level: int = logging.INFO) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        with self._lock:
            self._lines.append(f"[{stamp}] {message}")
        self._logger.log(level, message)

    def get(self) -> list[str]:
        with self._lock:
            return list(self._lines)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    def __len__(self) -> int:
        return len(self._lines)


__all__ = ["LogBuffer", "setup_logging"]
