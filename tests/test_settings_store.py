from memsieve.store.settings_store import SettingsStore


def test_settings_store_roundtrip(tmp_path):
    path = tmp_path / "settings.json"
    store = SettingsStore(path)
    assert store.get().api_key == ""
    assert store.get().transcription_language == "en"
    assert store.get().silence_threshold_db == -50.0

    store.update(server_url="https://example.com", api_key="abc", silence_threshold_db=-45, unknown="x")
    data = path.read_text()
    assert "example.com" in data
    assert "-45.0" in data

    store2 = SettingsStore(path)
    assert store2.get().api_key == "abc"
    assert store2.get().silence_threshold_db == -45.0
    assert store2.get().silence_min_duration == 0.5


def test_settings_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    assert SettingsStore(path).get().server_url == "https://api.openai.com"
