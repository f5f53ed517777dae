from memsieve.store.preset_store import DEFAULT_TRANSCRIPTION_PROMPT, PresetStore


def test_builtin_presets(tmp_path):
    store = PresetStore(tmp_path / "presets.json")
    assert [p.id for p in store.list()] == ["default", "bullets", "thoughts"]
    assert store.get("default").auto_prompt is None
    assert "bullet-points" in store.get("bullets").auto_prompt
    assert store.transcription_prompt_for("missing") == DEFAULT_TRANSCRIPTION_PROMPT


def test_preset_update_persists(tmp_path):
    path = tmp_path / "presets.json"
    store = PresetStore(path)
    updated = store.update("thoughts", transcription_prompt="Names: Ann, Jan.", id="ignored")
    assert updated.id == "thoughts"
    assert store.update("missing", name="x") is None

    reloaded = PresetStore(path)
    assert reloaded.transcription_prompt_for("thoughts") == "Names: Ann, Jan."
    assert reloaded.get("bullets").name == "Bullet Points"
