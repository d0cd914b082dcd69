#!/usr/bin/env python

import argparse
import asyncio
import logging
import os
import sys

from job_voice_agent.config import get_settings
from job_voice_agent.io.text_interface import load_jobs_file, load_profile_file
from job_voice_agent.io.voice_interface import VoiceInterface
from job_voice_agent.orchestrator.factory import build_voice_assistant
from job_voice_agent.schemas import SearchPreferences


def _flag(v: str) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _require_job_source(args) -> None:
    if not args.jobs_file and not args.keywords:
        raise RuntimeError(
            "No job source given. Pass --jobs-file with backend job records "
            "or --keywords to fetch jobs from the backend."
        )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Run the job search assistant in voice mode")

    g = p.add_mutually_exclusive_group()
    g.add_argument("--jobs-file", help="JSON file of backend job records")
    g.add_argument("--keywords", nargs="+", help="Fetch jobs from the backend for these keywords")

    p.add_argument("--profile-file", help="JSON file with the user's job profile")
    p.add_argument("--sample-rate", type=int, default=16000)
    p.add_argument(
        "--recordings-dir",
        default=os.getenv("VOICE_RECORDINGS_DIR", "data/recordings"),
        help="Where temporary recordings are written (default: VOICE_RECORDINGS_DIR or data/recordings)",
    )

    # TTS gating
    p.add_argument(
        "--tts-enabled",
        default=os.getenv("VOICE_TTS_ENABLED", "true"),
        help="Enable spoken feedback (default: VOICE_TTS_ENABLED or true)",
    )
    p.add_argument(
        "--tts-warmup",
        default=os.getenv("VOICE_TTS_WARMUP", "true"),
        help="Cache canned phrases at startup (default: VOICE_TTS_WARMUP or true)",
    )

    # Intent parsing
    p.add_argument(
        "--intent-model",
        default=os.getenv("VOICE_INTENT_MODEL", "true"),
        help="Use the language-model intent tier (default: VOICE_INTENT_MODEL or true)",
    )

    # STT
    p.add_argument(
        "--stt-model",
        default=os.getenv("VOICE_STT_MODEL", "small"),
        help="faster-whisper model size (default: VOICE_STT_MODEL or 'small')",
    )
    p.add_argument(
        "--stt-device",
        default=os.getenv("VOICE_STT_DEVICE", "cpu"),
        choices=["cpu", "cuda", "auto"],
        help="STT device (default: VOICE_STT_DEVICE or 'cpu')",
    )

    # TTS
    p.add_argument(
        "--piper-bin",
        default=os.getenv("VOICE_PIPER_BIN", "piper"),
        help="Path/name of Piper TTS binary (default: VOICE_PIPER_BIN or 'piper')",
    )
    p.add_argument(
        "--piper-model",
        default=os.getenv("VOICE_PIPER_MODEL", None),
        help="Path to Piper .onnx model (default: VOICE_PIPER_MODEL)",
    )

    # Capture
    p.add_argument(
        "--max-duration-ms",
        type=int,
        default=int(os.getenv("VOICE_MAX_DURATION_MS", "15000") or "15000"),
        help="Recording cap per command (default: VOICE_MAX_DURATION_MS or 15000)",
    )
    p.add_argument(
        "--silence-ms",
        type=int,
        default=int(os.getenv("VOICE_SILENCE_MS", "2000") or "2000"),
        help="Silence that ends a recording (default: VOICE_SILENCE_MS or 2000)",
    )

    return p


async def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    _require_job_source(args)

    settings = get_settings().model_copy(
        update={
            "stt_model_size": args.stt_model,
            "stt_device": args.stt_device,
            "piper_bin": args.piper_bin,
            "piper_model": args.piper_model,
            "sample_rate": args.sample_rate,
            "recording_dir": args.recordings_dir,
            "recording_max_duration_ms": args.max_duration_ms,
            "recording_silence_threshold_ms": args.silence_ms,
            "intent_model_enabled": _flag(args.intent_model),
        }
    )

    assistant = build_voice_assistant(settings, voice=True, tts=_flag(args.tts_enabled))
    orchestrator = assistant.orchestrator
    interface = VoiceInterface(
        orchestrator,
        assistant.corpus,
        feedback=assistant.feedback,
        warmup=_flag(args.tts_warmup),
    )

    try:
        if args.profile_file:
            orchestrator.set_user_profile(load_profile_file(args.profile_file))
        if args.jobs_file:
            orchestrator.set_jobs(load_jobs_file(args.jobs_file))
        else:
            await assistant.corpus.fetch_initial(SearchPreferences(keywords=args.keywords))
            interface.use_corpus_feed()

        await interface.run()
    finally:
        await assistant.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, handlers=[logging.StreamHandler(sys.stdout)])
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        raise SystemExit(0)
