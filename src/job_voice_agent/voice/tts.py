"""Text-to-speech providers.

`PiperTTS` runs the local piper CLI via subprocess; `OpenAITTS` calls an
OpenAI-compatible `/audio/speech` endpoint. Both write WAV files and raise
`SynthesisError` on failure.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)


class SynthesisError(Exception):
    """Raised when speech cannot be synthesized."""


@dataclass(frozen=True)
class TTSConfig:
    piper_bin: str = "piper"
    model_path: str | None = None  # path to *.onnx
    speaker_id: int | None = None
    max_chars_per_chunk: int = 350
    timeout_s: float = 60.0


class TTSProvider:
    @property
    def voice_id(self) -> str:
        """Identifies the voice for cache keys."""
        return type(self).__name__

    async def synthesize_to_wavs(self, text: str, out_dir: str | Path, base_name: str) -> list[Path]:
        raise NotImplementedError


class PiperTTS(TTSProvider):
    def __init__(self, config: TTSConfig | None = None) -> None:
        self._config = config or TTSConfig()
        self._validated_piper_path: str | None = None

    @property
    def config(self) -> TTSConfig:
        return self._config

    @property
    def voice_id(self) -> str:
        return f"piper:{self._config.model_path}:{self._config.speaker_id}"

    def is_available(self) -> tuple[bool, str]:
        try:
            self._require_piper()
            return True, "ok"
        except SynthesisError as e:
            return False, str(e)

    def _require_piper(self) -> str:
        if self._validated_piper_path:
            return self._validated_piper_path

        p = shutil.which(self._config.piper_bin)
        if not p:
            raise SynthesisError(
                "piper CLI not found. Install piper (binary) and ensure it's on PATH, "
                "or set PIPER_BIN to its location."
            )
        if not self._config.model_path:
            raise SynthesisError("Piper model path not configured. Set PIPER_MODEL=/path/to/voice.onnx.")

        self._validated_piper_path = p
        return p

    def _chunk_text(self, text: str) -> list[str]:
        t = (text or "").strip()
        if not t:
            return []

        parts = [p.strip() for p in re.split(r"(?<=[.!?])\s+", t) if p.strip()]
        chunks: list[str] = []
        current = ""
        for p in parts:
            if current and len(current) + 1 + len(p) > self._config.max_chars_per_chunk:
                chunks.append(current)
                current = p
            else:
                current = f"{current} {p}".strip()
        if current:
            chunks.append(current)
        return chunks

    async def synthesize_to_wavs(self, text: str, out_dir: str | Path, base_name: str) -> list[Path]:
        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)

        piper_bin = self._require_piper()
        wavs: list[Path] = []

        for idx, chunk in enumerate(self._chunk_text(text)):
            wav_path = out_dir / f"{base_name}_{idx:02d}.wav"
            cmd = [piper_bin, "--model", str(self._config.model_path), "--output_file", str(wav_path)]
            if self._config.speaker_id is not None:
                cmd += ["--speaker", str(self._config.speaker_id)]

            def _call(cmd: list[str] = cmd, chunk: str = chunk) -> None:
                try:
                    subprocess.run(
                        cmd,
                        input=chunk,
                        text=True,
                        check=True,
                        stdout=subprocess.DEVNULL,
                        stderr=subprocess.PIPE,
                        timeout=self._config.timeout_s,
                    )
                except subprocess.TimeoutExpired as e:
                    raise SynthesisError(f"piper timed out after {self._config.timeout_s:.1f}s") from e
                except subprocess.CalledProcessError as e:
                    stderr = (e.stderr or "").strip()
                    raise SynthesisError(f"piper failed (exit={e.returncode}) stderr={stderr or '<empty>'}") from e

            await asyncio.to_thread(_call)
            wavs.append(wav_path)

        return wavs


class OpenAITTS(TTSProvider):
    """Remote OpenAI-compatible speech endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str = "tts-1",
        voice: str = "nova",
        speed: float = 1.1,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._voice = voice
        self._speed = speed
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def voice_id(self) -> str:
        return f"openai:{self._model}:{self._voice}:{self._speed}"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def synthesize_to_wavs(self, text: str, out_dir: str | Path, base_name: str) -> list[Path]:
        if not (text or "").strip():
            return []
        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)

        client = await self._get_client()
        try:
            response = await client.post(
                "/audio/speech",
                json={
                    "model": self._model,
                    "input": text,
                    "voice": self._voice,
                    "speed": self._speed,
                    "response_format": "wav",
                },
            )
        except httpx.HTTPError as e:
            raise SynthesisError(f"TTS request failed: {e}") from e

        if response.status_code != 200:
            raise SynthesisError(f"TTS API error: {response.status_code}")

        wav_path = out_dir / f"{base_name}_00.wav"
        await asyncio.to_thread(wav_path.write_bytes, response.content)
        return [wav_path]
