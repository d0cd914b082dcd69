"""Local voice subsystem.

mic -> capture -> STT -> orchestrator -> TTS feedback -> speaker

Audio device access (sounddevice) and model runtimes (faster-whisper,
piper) are loaded lazily, so importing this package stays lightweight.
"""

from job_voice_agent.voice.capture import AudioCaptureSession, RecordingConfig, RecordingResult, SoundDeviceRecorder
from job_voice_agent.voice.feedback import CANNED_PHRASES, SoundDevicePlayer, SpeechFeedback
from job_voice_agent.voice.stt import (
    OpenAITranscriptionProvider,
    STTConfig,
    STTProvider,
    TranscriptionAdapter,
    TranscriptionResult,
    WhisperSTT,
)
from job_voice_agent.voice.tts import OpenAITTS, PiperTTS, SynthesisError, TTSConfig, TTSProvider
from job_voice_agent.voice.wake_word import WakeWordDetector, build_wake_word_detector

__all__ = [
    "AudioCaptureSession",
    "CANNED_PHRASES",
    "OpenAITTS",
    "OpenAITranscriptionProvider",
    "PiperTTS",
    "RecordingConfig",
    "RecordingResult",
    "STTConfig",
    "STTProvider",
    "SoundDevicePlayer",
    "SoundDeviceRecorder",
    "SpeechFeedback",
    "SynthesisError",
    "TTSConfig",
    "TTSProvider",
    "TranscriptionAdapter",
    "TranscriptionResult",
    "WakeWordDetector",
    "WhisperSTT",
    "build_wake_word_detector",
]
