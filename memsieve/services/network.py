"""HTTP client for the speech-to-text and text completion endpoints."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import httpx

from ..config import CONFIG
from ..store.settings_store import SettingsStore


class ApiError(Exception):
    pass


class ApiClient:
    def __init__(
        self,
        settings: SettingsStore,
        *,
        timeout: float = 60.0,
        max_chunk_bytes: int | None = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.settings_store = settings
        self.timeout = timeout
        self.max_chunk_bytes = max_chunk_bytes or CONFIG.max_chunk_bytes
        self._client = client or httpx.Client(timeout=timeout)

    def _headers(self) -> dict:
        api_key = self.settings_store.get().api_key
        if not api_key:
            raise ApiError("API key missing")
        return {"Authorization": f"Bearer {api_key}"}

    def _url(self, path: str) -> str:
        base = self.settings_store.get().server_url.rstrip("/")
        if not base:
            raise ApiError("Server URL missing")
        return f"{base}{path}"

    def test_connection(self) -> bool:
        try:
            resp = self._client.get(self._url("/v1/models"), headers=self._headers())
            return resp.status_code == 200
        except ApiError:
            raise
        except Exception as exc:
            raise ApiError(str(exc)) from exc

    def transcribe_chunk(
        self,
        file_path: Path,
        *,
        prompt: str | None = None,
        language: str | None = None,
        temperature: float = 0.2,
    ) -> str:
        path = Path(file_path)
        try:
            size = path.stat().st_size
        except OSError as exc:
            raise ApiError(f"Chunk unreadable: {exc}") from exc
        if size > self.max_chunk_bytes:
            raise ApiError(f"Chunk {path.name} is {size} bytes, above the {self.max_chunk_bytes} byte limit")
        settings = self.settings_store.get()
        payload = {"model": settings.transcription_model, "temperature": str(temperature)}
        if prompt:
            payload["prompt"] = prompt
        language = language or settings.transcription_language
        if language:
            payload["language"] = language
        try:
            with path.open("rb") as fh:
                files = {"file": (path.name, fh, self._mime_type(path))}
                resp = self._client.post(
                    self._url("/v1/audio/transcriptions"),
                    headers=self._headers(),
                    files=files,
                    data=payload,
                )
            if resp.status_code == 401:
                raise ApiError("Unauthorized: check API key")
            resp.raise_for_status()
            return str(resp.json().get("text", ""))
        except ApiError:
            raise
        except httpx.HTTPStatusError as exc:
            raise ApiError(f"Transcription failed: {exc.response.status_code}") from exc
        except ValueError as exc:
            raise ApiError(f"Invalid response: {exc}") from exc
        except Exception as exc:
            raise ApiError(str(exc)) from exc

    def chat_completion(self, system: str, text: str) -> str:
        settings = self.settings_store.get()
        body = {
            "model": settings.completion_model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": text},
            ],
        }
        try:
            resp = self._client.post(self._url("/v1/chat/completions"), headers=self._headers(), json=body)
            if resp.status_code == 401:
                raise ApiError("Unauthorized: check API key")
            resp.raise_for_status()
            choices = resp.json().get("choices") or []
            if not choices:
                return ""
            content = (choices[0].get("message") or {}).get("content")
            return content if isinstance(content, str) else ""
        except ApiError:
            raise
        except httpx.HTTPStatusError as exc:
            raise ApiError(f"Completion failed: {exc.response.status_code}") from exc
        except ValueError as exc:
            raise ApiError(f"Invalid response: {exc}") from exc
        except Exception as exc:
            raise ApiError(str(exc)) from exc

    def _mime_type(self, path: Path) -> str:
        suffix = path.suffix.lower()
        if suffix == ".flac":
            return "audio/flac"
        if suffix == ".mp3":
            return "audio/mpeg"
        if suffix in {".m4a", ".mp4"}:
            return "audio/mp4"
        return "audio/wav"

    def close(self) -> None:
        self._client.close()
