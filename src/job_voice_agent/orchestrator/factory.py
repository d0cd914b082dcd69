"""
Composition root.

Builds one orchestrator and its collaborators from settings. The host
application owns the returned objects; nothing here is a module-level
singleton.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from job_voice_agent.agents.intent_parser import VoiceCommandParser
from job_voice_agent.agents.match_scorer import MatchScorer
from job_voice_agent.config import Settings, get_settings
from job_voice_agent.jobs.api_client import JobSearchClient
from job_voice_agent.jobs.corpus import JobCorpusCache
from job_voice_agent.models.llm_client import LLMClient
from job_voice_agent.orchestrator.voice_orchestrator import VoiceCommandOrchestrator
from job_voice_agent.voice.capture import AudioCaptureSession, RecordingConfig, SoundDeviceRecorder
from job_voice_agent.voice.feedback import SoundDevicePlayer, SpeechFeedback
from job_voice_agent.voice.stt import (
    OpenAITranscriptionProvider,
    STTConfig,
    STTProvider,
    TranscriptionAdapter,
    WhisperSTT,
)
from job_voice_agent.voice.tts import OpenAITTS, PiperTTS, TTSConfig, TTSProvider
from job_voice_agent.voice.wake_word import WakeWordEngine, build_wake_word_detector

logger = logging.getLogger(__name__)


@dataclass
class VoiceAssistant:
    """Everything `build_voice_assistant` wired together."""

    orchestrator: VoiceCommandOrchestrator
    parser: VoiceCommandParser
    corpus: JobCorpusCache
    llm_client: LLMClient
    job_client: JobSearchClient
    feedback: SpeechFeedback | None = None
    # HTTP-backed providers that hold a client to close.
    _closeables: list[Any] = field(default_factory=list)

    async def close(self) -> None:
        await self.orchestrator.close()
        await self.llm_client.close()
        await self.job_client.close()
        for closeable in self._closeables:
            await closeable.close()


def build_stt_provider(settings: Settings) -> STTProvider:
    if settings.stt_backend == "openai":
        return OpenAITranscriptionProvider(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            model=settings.stt_remote_model,
        )
    return WhisperSTT(
        STTConfig(
            model_size=settings.stt_model_size,
            device=settings.stt_device,
            language=settings.stt_language,
        )
    )


def build_tts_provider(settings: Settings) -> TTSProvider:
    if settings.tts_backend == "openai":
        return OpenAITTS(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            model=settings.tts_remote_model,
            voice=settings.tts_voice,
            speed=settings.tts_speed,
        )
    return PiperTTS(TTSConfig(piper_bin=settings.piper_bin, model_path=settings.piper_model))


def recording_config_from_settings(settings: Settings) -> RecordingConfig:
    return RecordingConfig(
        max_duration_ms=settings.recording_max_duration_ms,
        silence_threshold_ms=settings.recording_silence_threshold_ms,
        silence_floor_db=settings.recording_silence_floor_db,
    )


def build_voice_assistant(
    settings: Settings | None = None,
    *,
    voice: bool = True,
    tts: bool = True,
    stt_provider: STTProvider | None = None,
    tts_provider: TTSProvider | None = None,
    wake_word_engine: WakeWordEngine | None = None,
) -> VoiceAssistant:
    """
    Wire the voice command pipeline.

    Args:
        settings: Settings to use (cached settings if None).
        voice: Build microphone capture and transcription. Text-only hosts
            pass False and never touch audio devices.
        tts: Build spoken feedback (only when ``voice`` is set).
        stt_provider: Override the configured speech-to-text backend.
        tts_provider: Override the configured text-to-speech backend.
        wake_word_engine: Host-supplied wake-word engine.

    Returns:
        The wired assistant.
    """
    settings = settings or get_settings()

    llm_client = LLMClient(
        model=settings.llm_model_name,
        base_url=settings.llm_base_url,
        api_key=settings.llm_api_key,
        max_retries=settings.llm_max_retries,
        timeout=settings.llm_timeout,
    )
    job_client = JobSearchClient(
        base_url=settings.jobs_api_base_url,
        token=settings.jobs_api_token,
        timeout=settings.jobs_api_timeout,
        max_retries=settings.jobs_api_max_retries,
    )
    corpus = JobCorpusCache(
        job_client,
        batch_size=settings.jobs_batch_size,
        prefetch_threshold=settings.jobs_prefetch_threshold,
        platforms=settings.jobs_platforms,
    )
    parser = VoiceCommandParser(llm_client=llm_client, model_enabled=settings.intent_model_enabled)
    scorer = MatchScorer(minimum_match_score=settings.minimum_match_score)

    closeables: list[Any] = []
    capture = None
    transcriber = None
    feedback = None
    if voice:
        capture = AudioCaptureSession(
            SoundDeviceRecorder(sample_rate=settings.sample_rate),
            recording_dir=settings.recording_dir,
            default_config=recording_config_from_settings(settings),
        )
        stt = stt_provider or build_stt_provider(settings)
        transcriber = TranscriptionAdapter(stt)
        if tts:
            synth = tts_provider or build_tts_provider(settings)
            feedback = SpeechFeedback(synth, SoundDevicePlayer(), cache_dir=settings.tts_cache_dir)
            closeables.append(synth)
        closeables.append(stt)

    orchestrator = VoiceCommandOrchestrator(
        parser=parser,
        capture=capture,
        transcriber=transcriber,
        scorer=scorer,
        corpus=corpus,
        feedback=feedback,
        wake_word=build_wake_word_detector(settings, wake_word_engine),
    )
    logger.info(
        f"Voice assistant ready (voice={voice}, stt={settings.stt_backend}, "
        f"tts={settings.tts_backend if feedback else 'off'}, model={settings.llm_model_name})"
    )
    return VoiceAssistant(
        orchestrator=orchestrator,
        parser=parser,
        corpus=corpus,
        llm_client=llm_client,
        job_client=job_client,
        feedback=feedback,
        _closeables=[c for c in closeables if hasattr(c, "close")],
    )
