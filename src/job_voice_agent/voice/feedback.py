"""Spoken feedback with an on-disk phrase cache.

Canned short phrases are synthesized once (at warmup) and stored under
their key; arbitrary text is cached under a content hash. Only one sound
plays at a time, and `stop()` invalidates any synthesis still in flight so
stale audio is never played.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import shutil
import time
import uuid
import wave
from pathlib import Path
from typing import Protocol

import numpy as np

from job_voice_agent.voice.speakable import to_speakable
from job_voice_agent.voice.tts import SynthesisError, TTSProvider

logger = logging.getLogger(__name__)

# Synthesis writes here first; only complete files are moved into the cache.
STAGING_DIR = ".partial"

CANNED_PHRASES: dict[str, str] = {
    "hmm": "Hmmm...",
    "got_it": "Got it!",
    "on_it": "On it!",
    "sorry": "Sorry, I need internet for that.",
    "no_understand": "Sorry, I didn't catch that.",
}


class AudioPlayer(Protocol):
    async def play(self, wav_path: str | Path) -> None: ...

    def stop(self) -> None: ...


class SoundDevicePlayer:
    """Plays 16-bit WAV files through sounddevice."""

    def _require_sounddevice(self):
        try:
            import sounddevice as sd  # type: ignore

            return sd
        except Exception as e:  # pragma: no cover
            raise RuntimeError(
                "sounddevice is required for playback. Install with: pip install -e '.[voice]'"
            ) from e

    @staticmethod
    def read_wav(wav_path: str | Path) -> tuple[np.ndarray, int]:
        with wave.open(str(wav_path), "rb") as wf:
            sr = wf.getframerate()
            n_channels = wf.getnchannels()
            sampwidth = wf.getsampwidth()
            if sampwidth != 2:
                raise ValueError(f"Only 16-bit WAV supported, got sampwidth={sampwidth}")
            frames = wf.readframes(wf.getnframes())

        audio = np.frombuffer(frames, dtype=np.int16).reshape(-1, n_channels)
        return audio, sr

    async def play(self, wav_path: str | Path) -> None:
        sd = self._require_sounddevice()
        audio, sr = self.read_wav(wav_path)
        audio_f32 = audio.astype(np.float32) / 32768.0
        if audio_f32.shape[1] == 1:
            audio_f32 = audio_f32.squeeze(-1)

        sd.play(audio_f32, samplerate=sr, blocking=False)
        await asyncio.to_thread(sd.wait)

    def stop(self) -> None:
        try:
            sd = self._require_sounddevice()
            sd.stop()
        except RuntimeError as e:
            logger.debug(f"[VOICE][AUDIO] stop ignored: {e}")


class SpeechFeedback:
    """
    TTS feedback adapter.

    Args:
        tts: Synthesis backend.
        player: Output device.
        cache_dir: Directory for cached WAV files.
    """

    def __init__(
        self,
        tts: TTSProvider,
        player: AudioPlayer,
        cache_dir: str | Path = "./data/tts_cache",
        max_chars: int = 200,
        max_sentences: int = 2,
    ) -> None:
        self._tts = tts
        self._player = player
        self._cache_dir = Path(cache_dir)
        self._max_chars = max_chars
        self._max_sentences = max_sentences

        # Bumped by every speak/stop; work started under an older value is stale.
        self._generation = 0
        self._synthesis_task: asyncio.Task | None = None
        self._current_playback: int | None = None

    @property
    def is_playing(self) -> bool:
        return self._current_playback is not None

    def cache_key(self, text: str) -> str:
        digest = hashlib.sha1((self._tts.voice_id + "\n" + text).encode("utf-8")).hexdigest()[:16]
        return f"dyn_{digest}"

    def cached_wavs(self, key: str) -> list[Path]:
        if not self._cache_dir.exists():
            return []
        return sorted(self._cache_dir.glob(f"{key}_*.wav"))

    def is_cached(self, key: str) -> bool:
        return bool(self.cached_wavs(key))

    async def warmup_cache(self) -> int:
        """Synthesize any missing canned phrase. Returns how many were generated."""
        generated = 0
        for key, phrase in CANNED_PHRASES.items():
            if self.is_cached(key):
                continue
            try:
                await self._synthesize_into_cache(phrase, key)
            except SynthesisError as e:
                logger.warning(f"[VOICE][TTS] failed to cache phrase '{key}': {e}")
                continue
            generated += 1
            logger.debug(f"[VOICE][TTS] cached phrase '{key}'")
        return generated

    async def _synthesize_into_cache(self, text: str, key: str) -> list[Path]:
        staging = self._cache_dir / STAGING_DIR / f"{key}_{uuid.uuid4().hex[:8]}"
        staging.mkdir(parents=True, exist_ok=True)
        try:
            produced = await self._tts.synthesize_to_wavs(text, out_dir=staging, base_name=key)
            published = []
            for wav in produced:
                target = self._cache_dir / Path(wav).name
                Path(wav).replace(target)
                published.append(target)
            return published
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    async def speak(self, text: str) -> bool:
        """
        Speak text, synthesizing and caching it on a miss.

        Returns True if audio was played. Synthesis failures and superseded
        requests return False.
        """
        speakable, dbg = to_speakable(text, max_chars=self._max_chars, max_sentences=self._max_sentences)
        if speakable is None:
            logger.info(f"[VOICE][TTS] skipped reason={dbg.get('skip_reason')}")
            return False
        return await self._speak_key(self.cache_key(speakable), speakable)

    async def speak_cached(self, key: str) -> bool:
        """Speak one of the canned phrases by key."""
        phrase = CANNED_PHRASES.get(key)
        if phrase is None:
            logger.warning(f"[VOICE][TTS] unknown canned phrase '{key}'")
            return False
        return await self._speak_key(key, phrase)

    async def _speak_key(self, key: str, text: str) -> bool:
        self._generation += 1
        generation = self._generation
        self._halt_playback()

        wavs = self.cached_wavs(key)
        if not wavs:
            t0 = time.perf_counter()
            self._synthesis_task = asyncio.create_task(self._synthesize_into_cache(text, key))
            try:
                wavs = await self._synthesis_task
            except asyncio.CancelledError:
                if generation != self._generation:
                    logger.debug("[VOICE][TTS] synthesis aborted")
                    return False
                raise
            except SynthesisError as e:
                logger.warning(f"[VOICE][TTS] synthesis failed; staying silent: {e}")
                return False
            finally:
                if generation == self._generation:
                    self._synthesis_task = None

            logger.info(
                f"[VOICE][TTS] speak len={len(text)} dur={time.perf_counter() - t0:.2f}s text=\"{text[:80]}\""
            )

        if generation != self._generation:
            logger.debug("[VOICE][TTS] discarding stale audio")
            return False

        return await self._play(wavs, generation)

    async def _play(self, wavs: list[Path], generation: int) -> bool:
        played = False
        self._current_playback = generation
        try:
            for wav in wavs:
                if generation != self._generation:
                    break
                await self._player.play(wav)
                played = True
        finally:
            if self._current_playback == generation:
                self._current_playback = None
        return played

    def _halt_playback(self) -> None:
        if self._synthesis_task is not None and not self._synthesis_task.done():
            self._synthesis_task.cancel()
        self._synthesis_task = None
        if self._current_playback is not None:
            self._player.stop()
            self._current_playback = None

    def stop(self) -> None:
        """Abort any in-flight synthesis and stop the current sound."""
        self._generation += 1
        self._halt_playback()
