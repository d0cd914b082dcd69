"""Speech-to-text.

Two providers: local `faster-whisper` (default) and a remote
OpenAI-compatible `/audio/transcriptions` endpoint. `TranscriptionAdapter`
wraps either one and never raises: any failure becomes empty text with
zero confidence.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

JOB_SEARCH_PROMPT = (
    "This is a voice command for job searching. "
    "Common phrases include: search for, find, apply to, show me, filter by, "
    "looking for, frontend, backend, software engineer, remote, USA, "
    "United States, salary, experience, senior, junior, full-time, part-time."
)
JOB_SEARCH_TEMPERATURE = 0.2
# The remote endpoint reports no confidence; a successful transcript is assumed reliable.
REMOTE_CONFIDENCE = 0.95


@dataclass(frozen=True)
class STTConfig:
    model_size: str = "small"
    # Default to CPU to avoid hard crashes when CUDA/cuDNN aren't present.
    device: str = "cpu"  # cpu|cuda|auto
    compute_type: str | None = None  # e.g. int8, float16
    language: str | None = "en"
    vad_filter: bool = True


@dataclass(frozen=True)
class TranscriptionOptions:
    language: str | None = None
    prompt: str | None = None
    temperature: float | None = None


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    confidence: float = 0.0
    language: str | None = None
    avg_logprob: float | None = None
    no_speech_prob: float | None = None

    @classmethod
    def empty(cls) -> "TranscriptionResult":
        return cls(text="", confidence=0.0)


class STTProvider:
    async def transcribe_file(
        self,
        wav_path: str | Path,
        options: TranscriptionOptions | None = None,
    ) -> TranscriptionResult:
        raise NotImplementedError


class WhisperSTT(STTProvider):
    """faster-whisper wrapper."""

    def __init__(self, config: STTConfig | None = None) -> None:
        self._config = config or STTConfig()
        self._model = None

    @property
    def config(self) -> STTConfig:
        return self._config

    def _load_model(self):
        if self._model is not None:
            return self._model

        try:
            from faster_whisper import WhisperModel  # type: ignore
        except Exception as e:  # pragma: no cover
            raise RuntimeError(
                "faster-whisper is required for STT. Install with: pip install -e '.[voice]'"
            ) from e

        device = self._config.device
        if device == "auto":
            device = "cpu"

        kwargs = {}
        if self._config.compute_type:
            kwargs["compute_type"] = self._config.compute_type

        self._model = WhisperModel(self._config.model_size, device=device, **kwargs)
        return self._model

    async def transcribe_file(
        self,
        wav_path: str | Path,
        options: TranscriptionOptions | None = None,
    ) -> TranscriptionResult:
        wav_path = Path(wav_path)
        opts = options or TranscriptionOptions()

        def _run() -> TranscriptionResult:
            model = self._load_model()
            kwargs = {}
            if opts.prompt:
                kwargs["initial_prompt"] = opts.prompt
            if opts.temperature is not None:
                kwargs["temperature"] = opts.temperature

            segments, info = model.transcribe(
                str(wav_path),
                language=opts.language or self._config.language,
                vad_filter=self._config.vad_filter,
                **kwargs,
            )
            texts: list[str] = []
            logprobs: list[float] = []
            no_speech: list[float] = []
            for s in segments:
                if s.text:
                    texts.append(s.text.strip())
                if getattr(s, "avg_logprob", None) is not None:
                    logprobs.append(float(s.avg_logprob))
                if getattr(s, "no_speech_prob", None) is not None:
                    no_speech.append(float(s.no_speech_prob))

            text = " ".join(t for t in texts if t).strip()
            avg_logprob = sum(logprobs) / len(logprobs) if logprobs else None
            confidence = 0.0
            if text:
                confidence = min(1.0, math.exp(avg_logprob)) if avg_logprob is not None else REMOTE_CONFIDENCE
            return TranscriptionResult(
                text=text,
                confidence=confidence,
                language=getattr(info, "language", None),
                avg_logprob=avg_logprob,
                no_speech_prob=max(no_speech) if no_speech else None,
            )

        return await asyncio.to_thread(_run)


class OpenAITranscriptionProvider(STTProvider):
    """Remote OpenAI-compatible transcription endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str = "whisper-1",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
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

    async def transcribe_file(
        self,
        wav_path: str | Path,
        options: TranscriptionOptions | None = None,
    ) -> TranscriptionResult:
        wav_path = Path(wav_path)
        opts = options or TranscriptionOptions()

        data = {"model": self._model, "response_format": "json"}
        if opts.language:
            data["language"] = opts.language
        if opts.prompt:
            data["prompt"] = opts.prompt
        if opts.temperature is not None:
            data["temperature"] = str(opts.temperature)

        audio = await asyncio.to_thread(wav_path.read_bytes)
        client = await self._get_client()
        response = await client.post(
            "/audio/transcriptions",
            data=data,
            files={"file": (wav_path.name, audio, "audio/wav")},
        )
        response.raise_for_status()

        text = str(response.json().get("text") or "").strip()
        return TranscriptionResult(
            text=text,
            confidence=REMOTE_CONFIDENCE if text else 0.0,
            language=opts.language or "en",
        )


class TranscriptionAdapter:
    """Fail-open front for an `STTProvider`."""

    def __init__(self, provider: STTProvider) -> None:
        self._provider = provider

    @property
    def provider(self) -> STTProvider:
        return self._provider

    async def transcribe(
        self,
        audio_uri: str | Path,
        options: TranscriptionOptions | None = None,
    ) -> TranscriptionResult:
        """Transcribe a recording. Any failure returns empty text with zero confidence."""
        path = Path(audio_uri)
        if not path.exists():
            logger.warning(f"[VOICE][STT] audio file not found: {path}")
            return TranscriptionResult.empty()

        try:
            result = await self._provider.transcribe_file(path, options)
        except Exception as e:
            logger.error(f"[VOICE][STT] transcription failed: {e}")
            return TranscriptionResult.empty()

        logger.info(f"[VOICE][STT] text=\"{result.text[:80]}\" conf={result.confidence:.2f}")
        return result

    async def transcribe_job_command(self, audio_uri: str | Path) -> TranscriptionResult:
        """Transcribe with a job-search vocabulary hint and a low temperature."""
        return await self.transcribe(
            audio_uri,
            TranscriptionOptions(
                language="en",
                prompt=JOB_SEARCH_PROMPT,
                temperature=JOB_SEARCH_TEMPERATURE,
            ),
        )
