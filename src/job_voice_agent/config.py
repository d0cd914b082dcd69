"""
Application configuration using pydantic-settings.

Loads configuration from environment variables and .env files.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Job search backend
    jobs_api_base_url: str = Field(
        default="http://localhost:8000/api",
        description="Base URL of the job search backend",
    )
    jobs_api_token: str | None = Field(
        default=None,
        description="Optional bearer token for the job search backend",
    )
    jobs_api_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for job search requests",
    )
    jobs_api_max_retries: int = Field(
        default=2,
        description="Retries on network errors, 429 and 5xx responses",
    )
    jobs_batch_size: int = Field(
        default=50,
        description="Jobs requested per page",
    )
    jobs_prefetch_threshold: int = Field(
        default=30,
        description="Start a background prefetch when this many jobs remain",
    )
    jobs_platforms: list[str] = Field(
        default=["rippling", "ashby", "workable"],
        description="ATS platforms accepted by the backend",
    )

    # LLM configuration (OpenAI-compatible chat completions endpoint)
    llm_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of an OpenAI-compatible API (Ollama serves one at /v1)",
    )
    llm_api_key: str = Field(
        default="",
        description="API key for the LLM / speech endpoints",
    )
    llm_model_name: str = Field(
        default="gpt-4o-mini",
        description="Model used for intent parsing",
    )
    llm_timeout: float = Field(
        default=20.0,
        description="Timeout in seconds for LLM requests",
    )
    llm_max_retries: int = Field(
        default=1,
        description="Number of retries on LLM failure",
    )
    llm_temperature: float = Field(
        default=0.3,
        description="Sampling temperature for intent parsing",
    )
    llm_max_tokens: int = Field(
        default=500,
        description="Maximum tokens in an intent parsing response",
    )
    intent_model_enabled: bool = Field(
        default=True,
        description="Enable the language-model tier of the intent parser",
    )

    # Speech-to-text
    stt_backend: Literal["whisper", "openai"] = Field(
        default="whisper",
        description="Local faster-whisper or a remote OpenAI-compatible transcription endpoint",
    )
    stt_model_size: str = Field(default="small", description="faster-whisper model size")
    stt_device: str = Field(default="cpu", description="faster-whisper device (cpu|cuda|auto)")
    stt_remote_model: str = Field(default="whisper-1", description="Remote transcription model")
    stt_language: str | None = Field(default="en", description="Default transcription language")

    # Text-to-speech
    tts_backend: Literal["piper", "openai"] = Field(
        default="piper",
        description="Local Piper CLI or a remote OpenAI-compatible speech endpoint",
    )
    piper_bin: str = Field(default="piper", description="Piper binary name or path")
    piper_model: str | None = Field(default=None, description="Path to a Piper *.onnx voice")
    tts_remote_model: str = Field(default="tts-1", description="Remote speech model")
    tts_voice: str = Field(default="nova", description="Remote speech voice")
    tts_speed: float = Field(default=1.1, description="Remote speech speed")
    tts_cache_dir: str = Field(
        default="./data/tts_cache",
        description="Directory for cached feedback audio",
    )

    # Audio capture
    recording_max_duration_ms: int = Field(
        default=15000,
        description="Hard cap on a single voice command recording",
    )
    recording_silence_threshold_ms: int = Field(
        default=2000,
        description="Continuous silence that ends a recording",
    )
    recording_silence_floor_db: float = Field(
        default=-40.0,
        description="Level (dBFS) below which input counts as silence",
    )
    recording_dir: str = Field(
        default="./data/recordings",
        description="Where temporary recordings are written",
    )
    sample_rate: int = Field(default=16000, description="Capture sample rate")

    # Matching
    minimum_match_score: float = Field(
        default=50.0,
        ge=0.0,
        le=100.0,
        description="Minimum match score for auto-apply",
    )

    # Wake word
    wake_word_enabled: bool = Field(default=False, description="Enable wake-word detection")
    wake_word_provider: Literal["disabled", "engine"] = Field(
        default="disabled",
        description="Wake-word detector implementation",
    )

    # Application
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
