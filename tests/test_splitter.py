import math

import numpy as np
import pytest
import soundfile as sf

from memsieve.audio import splitter as splitter_mod
from memsieve.audio.splitter import ExportFailure, plan_frame_windows, plan_windows, split_audio_file


@pytest.mark.parametrize(
    "duration, window",
    [(1600.0, 800.0), (2000.0, 800.0), (799.9, 800.0), (0.3, 0.1), (3601.25, 800.0)],
)
def test_plan_windows_cover_duration_exactly(duration, window):
    windows = plan_windows(duration, window)
    assert len(windows) == math.ceil(duration / window)
    assert windows[0].start == 0.0
    assert windows[-1].end == pytest.approx(duration)
    for previous, current in zip(windows, windows[1:]):
        assert current.start == previous.end
    assert all(0 < w.duration <= window + 1e-9 for w in windows)
    assert [w.index for w in windows] == list(range(len(windows)))


def test_plan_windows_edge_cases():
    assert plan_windows(0.0, 800.0) == []
    with pytest.raises(ValueError):
        plan_windows(10.0, 0.0)


def test_plan_frame_windows_are_contiguous():
    spans = plan_frame_windows(10_500, 1000, 4.0)
    assert spans == [(0, 4000), (4000, 8000), (8000, 10_500)]


def _write_source(path, seconds: float, rate: int = 8000, channels: int = 1):
    frames = int(seconds * rate)
    ramp = np.linspace(-0.5, 0.5, frames, dtype=np.float32)
    data = ramp if channels == 1 else np.stack([ramp] * channels, axis=1)
    sf.write(str(path), data, rate)
    return frames


def test_split_audio_file_exports_ordered_chunks(tmp_path):
    source = tmp_path / "imported.wav"
    total = _write_source(source, 2.5)

    chunks = split_audio_file(source, tmp_path / "out", 1.0)

    assert [c.name for c in chunks] == ["chunk001.flac", "chunk002.flac", "chunk003.flac"]
    lengths = [sf.info(str(c)).frames for c in chunks]
    assert lengths == [8000, 8000, 4000]
    assert sum(lengths) == total
    first = sf.read(str(chunks[1]), dtype="float32")[0]
    assert first[0] > -0.5 + 0.3  # second chunk starts a third of the way up the ramp


def test_split_short_file_yields_single_chunk(tmp_path):
    source = tmp_path / "short.wav"
    _write_source(source, 0.5, channels=2)
    chunks = split_audio_file(source, tmp_path / "out", 800.0)
    assert len(chunks) == 1
    assert sf.info(str(chunks[0])).channels == 2


def test_split_unreadable_source_raises(tmp_path):
    bogus = tmp_path / "bogus.wav"
    bogus.write_bytes(b"not audio")
    with pytest.raises(ExportFailure):
        split_audio_file(bogus, tmp_path / "out", 1.0)


def test_split_aborts_on_chunk_export_error(tmp_path, monkeypatch):
    source = tmp_path / "imported.wav"
    _write_source(source, 2.5)
    real_write = sf.write
    calls = {"count": 0}

    def flaky_write(path, *args, **kwargs):
        calls["count"] += 1
        if calls["count"] == 2:
            raise RuntimeError("encoder crashed")
        return real_write(path, *args, **kwargs)

    monkeypatch.setattr(splitter_mod.sf, "write", flaky_write)
    with pytest.raises(ExportFailure) as excinfo:
        split_audio_file(source, tmp_path / "out", 1.0)

    assert excinfo.value.index == 1
    assert excinfo.value.window.start == pytest.approx(1.0)
    assert not (tmp_path / "out" / "chunk001.flac").exists()
    assert not (tmp_path / "out" / "chunk002.flac").exists()
    assert not (tmp_path / "out" / "chunk003.flac").exists()
