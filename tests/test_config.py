import importlib

import pytest
from pydantic import ValidationError

from memsieve import config as config_mod
from memsieve.audio.chunking import ChunkPolicy
from memsieve.config import RecorderConfig


def test_defaults_match_upload_limits():
    config = RecorderConfig()
    assert config.silence_threshold_db == -50.0
    assert config.silence_min_duration == 0.5
    assert (config.chunk_threshold, config.hard_limit, config.max_chunk_duration) == (700, 780, 800)
    assert config.estimated_chunk_bytes() < config.max_chunk_bytes
    policy = ChunkPolicy.from_config(config)
    assert policy.hard_limit == 780


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MEMSIEVE_HARD_LIMIT", "600")
    monkeypatch.setenv("MEMSIEVE_SILENCE_THRESHOLD_DB", "-42.5")
    reloaded = importlib.reload(config_mod)
    try:
        config = reloaded.RecorderConfig()
        assert config.hard_limit == 600
        assert config.silence_threshold_db == -42.5
    finally:
        monkeypatch.delenv("MEMSIEVE_HARD_LIMIT")
        monkeypatch.delenv("MEMSIEVE_SILENCE_THRESHOLD_DB")
        importlib.reload(config_mod)


@pytest.mark.parametrize(
    "overrides",
    [
        {"silence_threshold_db": float("inf")},
        {"silence_min_duration": -1.0},
        {"hard_limit": 900.0},
        {"silence_reference": "wall"},
    ],
)
def test_invalid_values_rejected(overrides):
    with pytest.raises(ValidationError):
        RecorderConfig(**overrides)
