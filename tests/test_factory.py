import pytest

from job_voice_agent.config import Settings
from job_voice_agent.orchestrator.factory import build_voice_assistant, recording_config_from_settings
from job_voice_agent.voice.stt import STTProvider
from job_voice_agent.voice.tts import TTSProvider


class ClosingSTT(STTProvider):
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class SilentTTS(TTSProvider):
    async def synthesize_to_wavs(self, text, out_dir, base_name):
        return []


@pytest.mark.asyncio
async def test_text_only_assistant_has_no_audio():
    assistant = build_voice_assistant(Settings(intent_model_enabled=False), voice=False)

    assert not assistant.orchestrator.is_configured()
    assert assistant.feedback is None
    assert not assistant.parser.model_enabled
    assert await assistant.orchestrator.enable_wake_word() is False

    result = await assistant.orchestrator.process_text_command("help")
    assert result.success
    await assistant.close()


@pytest.mark.asyncio
async def test_voice_assistant_uses_supplied_providers(tmp_path):
    stt = ClosingSTT()
    settings = Settings(recording_dir=str(tmp_path / "rec"), tts_cache_dir=str(tmp_path / "tts"))
    assistant = build_voice_assistant(settings, stt_provider=stt, tts_provider=SilentTTS())

    assert assistant.orchestrator.is_configured()
    assert assistant.feedback is not None

    await assistant.close()
    assert stt.closed


def test_recording_config_from_settings():
    cfg = recording_config_from_settings(
        Settings(recording_max_duration_ms=9000, recording_silence_threshold_ms=1500)
    )
    assert cfg.max_duration_ms == 9000
    assert cfg.silence_threshold_ms == 1500
