"""Audio helpers (level monitoring, chunk boundaries, offline splitting)."""

from .chunking import ChunkBoundaryController, ChunkPolicy, ChunkState
from .power_monitor import EngineStartFailure, PowerMonitor, SilenceConfig, calculate_power
from .splitter import ExportFailure, plan_windows, split_audio_file
from .types import AudioBuffer, ChunkCut, ChunkWindow, PowerUpdate, SilenceInterval

__all__ = [
    "AudioBuffer",
    "ChunkBoundaryController",
    "ChunkCut",
    "ChunkPolicy",
    "ChunkState",
    "ChunkWindow",
    "EngineStartFailure",
    "ExportFailure",
    "PowerMonitor",
    "PowerUpdate",
    "SilenceConfig",
    "SilenceInterval",
    "calculate_power",
    "plan_windows",
    "split_audio_file",
]
