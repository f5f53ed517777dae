from memsieve.store.recording_store import STATUS_DONE, STATUS_PENDING, RecordingStore


def test_recording_store_add_and_reload(tmp_path):
    store = RecordingStore(tmp_path / "recordings.json")
    first = store.add([tmp_path / "a_chunk001.flac"], preset="default", label="First", duration=12.0)
    second = store.add(
        [tmp_path / "b_chunk001.flac", tmp_path / "b_chunk002.flac"],
        preset="bullets",
        label="Second",
        duration=900.0,
    )
    assert [item.id for item in store.list()] == [second.id, first.id]
    assert [item.id for item in store.pending()] == [first.id, second.id]

    store.set_transcription(first.id, "hello", STATUS_DONE)
    store.update_label(second.id, "Renamed")
    store.update_preset(second.id, "thoughts")

    reloaded = RecordingStore(tmp_path / "recordings.json")
    assert len(reloaded) == 2
    item = reloaded.get(second.id)
    assert item.label == "Renamed"
    assert item.preset == "thoughts"
    assert item.status == STATUS_PENDING
    assert [p.name for p in item.chunk_paths] == ["b_chunk001.flac", "b_chunk002.flac"]
    assert reloaded.get(first.id).transcription == "hello"
    assert reloaded.update_label("missing", "x") is None


def test_recording_store_delete_removes_chunks(tmp_path):
    chunk = tmp_path / "chunk001.flac"
    chunk.write_bytes(b"data")
    other = tmp_path / "chunk002.flac"
    other.write_bytes(b"data")
    store = RecordingStore(tmp_path / "recordings.json")
    item = store.add([chunk])
    store.add([other])

    assert store.delete(item.id) is True
    assert not chunk.exists()
    assert store.delete(item.id) is False

    store.delete_all()
    assert len(store) == 0
    assert not other.exists()
