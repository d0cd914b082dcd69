import pytest


def test_voice_runner_env_defaults_are_used(monkeypatch):
    monkeypatch.setenv("VOICE_PIPER_BIN", "/tmp/piper")
    monkeypatch.setenv("VOICE_PIPER_MODEL", "/tmp/voice.onnx")
    monkeypatch.setenv("VOICE_STT_MODEL", "base")
    monkeypatch.setenv("VOICE_STT_DEVICE", "cuda")
    monkeypatch.setenv("VOICE_TTS_ENABLED", "false")
    monkeypatch.setenv("VOICE_MAX_DURATION_MS", "8000")

    from scripts.voice_assistant import _flag, build_parser

    args = build_parser().parse_args(["--keywords", "python", "remote"])
    assert args.piper_bin == "/tmp/piper"
    assert args.piper_model == "/tmp/voice.onnx"
    assert args.stt_model == "base"
    assert args.stt_device == "cuda"
    assert _flag(args.tts_enabled) is False
    assert args.max_duration_ms == 8000
    assert args.silence_ms == 2000
    assert args.keywords == ["python", "remote"]


def test_voice_runner_rejects_two_job_sources():
    from scripts.voice_assistant import build_parser

    with pytest.raises(SystemExit):
        build_parser().parse_args(["--jobs-file", "jobs.json", "--keywords", "python"])


def test_voice_runner_requires_a_job_source():
    from scripts import voice_assistant

    args = voice_assistant.build_parser().parse_args([])
    with pytest.raises(RuntimeError, match="No job source given"):
        voice_assistant._require_job_source(args)
