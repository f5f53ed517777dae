import json

import httpx
import pytest

from memsieve.services.network import ApiClient, ApiError
from memsieve.store.settings_store import SettingsStore


def make_client(tmp_path, transport, **kwargs):
    settings = SettingsStore(tmp_path / "settings.json")
    settings.update(server_url="https://api.example.com", api_key="k", transcription_language="de")
    return ApiClient(settings, client=httpx.Client(transport=transport), **kwargs)


def test_transcribe_chunk_success(tmp_path):
    def handler(request):
        if request.method == "POST" and request.url.path == "/v1/audio/transcriptions":
            assert request.headers["Authorization"] == "Bearer k"
            body = request.content.decode("utf-8", errors="ignore")
            assert "whisper-1" in body
            assert "Names: Ann" in body
            assert 'name="language"' in body and "de" in body
            assert "audio/flac" in body
            return httpx.Response(200, json={"text": "hello there"})
        if request.url.path == "/v1/models":
            return httpx.Response(200, json={"data": []})
        raise AssertionError("Unexpected request")

    client = make_client(tmp_path, httpx.MockTransport(handler))
    audio = tmp_path / "chunk001.flac"
    audio.write_bytes(b"123")
    assert client.transcribe_chunk(audio, prompt="Names: Ann") == "hello there"
    assert client.test_connection() is True


def test_transcribe_chunk_rejects_oversized_file(tmp_path):
    def handler(request):
        raise AssertionError("Oversized chunk must not be uploaded")

    client = make_client(tmp_path, httpx.MockTransport(handler), max_chunk_bytes=10)
    audio = tmp_path / "chunk001.flac"
    audio.write_bytes(b"x" * 11)
    with pytest.raises(ApiError, match="byte limit"):
        client.transcribe_chunk(audio)


def test_transcribe_chunk_errors(tmp_path):
    def handler(request):
        return httpx.Response(401)

    client = make_client(tmp_path, httpx.MockTransport(handler))
    audio = tmp_path / "chunk001.flac"
    audio.write_bytes(b"123")
    with pytest.raises(ApiError, match="Unauthorized"):
        client.transcribe_chunk(audio)
    with pytest.raises(ApiError, match="unreadable"):
        client.transcribe_chunk(tmp_path / "missing.flac")


def test_chat_completion(tmp_path):
    def handler(request):
        payload = json.loads(request.content)
        assert payload["model"] == "gpt-4o"
        assert payload["messages"][0] == {"role": "system", "content": "Format it"}
        assert payload["messages"][1]["content"] == "raw text"
        return httpx.Response(200, json={"choices": [{"message": {"content": "Formatted."}}]})

    client = make_client(tmp_path, httpx.MockTransport(handler))
    assert client.chat_completion("Format it", "raw text") == "Formatted."


def test_chat_completion_server_error(tmp_path):
    client = make_client(tmp_path, httpx.MockTransport(lambda request: httpx.Response(500)))
    with pytest.raises(ApiError, match="500"):
        client.chat_completion("sys", "text")


def test_missing_api_key(tmp_path):
    settings = SettingsStore(tmp_path / "settings.json")
    client = ApiClient(settings, client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200))))
    with pytest.raises(ApiError, match="API key missing"):
        client.chat_completion("sys", "text")
