"""Microphone capture session.

Owns the one and only recorder handle. A single poll loop (~100ms) drives
metering, silence detection and the max-duration cutoff, so the two
auto-stop triggers can never race each other. `stop()` is idempotent:
a second call reports "No active recording" instead of releasing the
handle twice.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
import uuid
import wave
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Protocol

import numpy as np

logger = logging.getLogger(__name__)

NO_ACTIVE_RECORDING = "No active recording"
MIN_LEVEL_DB = -160.0


class RecorderError(Exception):
    """Raised by a recorder when the capture device cannot be opened or closed."""


@dataclass(frozen=True)
class RecordingConfig:
    max_duration_ms: int = 15000
    silence_threshold_ms: int = 2000
    silence_floor_db: float = -40.0
    poll_interval_ms: int = 100
    on_metering_update: Callable[[float], None] | None = None
    on_silence_detected: Callable[[], None] | None = None


@dataclass
class RecordingSession:
    path: Path
    started_at: float
    max_duration_ms: int
    silence_threshold_ms: int
    is_recording: bool = True
    silence_accumulated_ms: int = 0
    peak_level_db: float = MIN_LEVEL_DB


@dataclass(frozen=True)
class RecordingResult:
    success: bool
    uri: str | None = None
    duration_ms: int | None = None
    is_silent: bool | None = None
    error: str | None = None
    stop_reason: str | None = None


class MicrophonePermissions(Protocol):
    async def is_granted(self) -> bool: ...

    async def request(self) -> bool: ...


class AlwaysGrantedPermissions:
    """Desktop hosts have no runtime microphone prompt."""

    async def is_granted(self) -> bool:
        return True

    async def request(self) -> bool:
        return True


class Recorder(Protocol):
    async def open(self, path: Path) -> None: ...

    def level_db(self) -> float: ...

    async def close(self) -> Path | None: ...

    async def reset_routing(self) -> None: ...


def rms_to_db(samples: np.ndarray) -> float:
    """dBFS of an int16 block."""
    if samples.size == 0:
        return MIN_LEVEL_DB
    rms = float(np.sqrt(np.mean(np.square(samples.astype(np.float32) / 32768.0))))
    if rms <= 0.0:
        return MIN_LEVEL_DB
    return max(MIN_LEVEL_DB, 20.0 * math.log10(rms))


async def _call_host(name: str, callback: Callable[..., Any], *args: Any) -> None:
    """Run a host callback; a failing callback must not kill the poll loop."""
    try:
        outcome = callback(*args)
        if asyncio.iscoroutine(outcome):
            await outcome
    except Exception as e:
        logger.error(f"[VOICE][CAPTURE] {name} callback failed: {e}")


class SoundDeviceRecorder:
    """sounddevice-backed recorder writing 16-bit mono WAV."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1) -> None:
        self._sample_rate = sample_rate
        self._channels = channels
        self._stream = None
        self._frames: list[np.ndarray] = []
        self._path: Path | None = None
        self._level_db = MIN_LEVEL_DB

    def _require_sounddevice(self):
        try:
            import sounddevice as sd  # type: ignore

            return sd
        except Exception as e:  # pragma: no cover
            raise RecorderError(
                "sounddevice is required for voice capture. Install with: pip install -e '.[voice]'. "
                "If you see 'PortAudio library not found', install PortAudio (Debian/Ubuntu: sudo apt-get install portaudio19-dev)."
            ) from e

    async def open(self, path: Path) -> None:
        sd = self._require_sounddevice()
        self._frames = []
        self._path = path
        self._level_db = MIN_LEVEL_DB

        def callback(indata, frames, time_info, status):  # noqa: ANN001
            if status:
                logger.debug(f"Input status: {status}")
            block = indata.copy()
            self._frames.append(block)
            self._level_db = rms_to_db(block)

        try:
            self._stream = sd.InputStream(
                samplerate=self._sample_rate,
                channels=self._channels,
                dtype="int16",
                callback=callback,
            )
            await asyncio.to_thread(self._stream.start)
        except Exception as e:
            self._stream = None
            raise RecorderError(f"Could not open microphone: {e}") from e

    def level_db(self) -> float:
        return self._level_db

    async def close(self) -> Path | None:
        if self._stream is None:
            return None

        stream = self._stream
        self._stream = None
        try:
            await asyncio.to_thread(stream.stop)
            await asyncio.to_thread(stream.close)
        except Exception as e:
            raise RecorderError(f"Could not close microphone: {e}") from e

        if self._path is None:
            return None

        audio = (
            np.concatenate(self._frames, axis=0)
            if self._frames
            else np.zeros((0, self._channels), dtype=np.int16)
        )
        self._frames = []
        return self._write_wav(self._path, audio)

    def _write_wav(self, wav_path: Path, audio: np.ndarray) -> Path:
        wav_path.parent.mkdir(parents=True, exist_ok=True)
        if audio.ndim == 1:
            audio = audio[:, None]

        with wave.open(str(wav_path), "wb") as wf:
            wf.setnchannels(self._channels)
            wf.setsampwidth(2)  # int16
            wf.setframerate(self._sample_rate)
            wf.writeframes(audio.astype(np.int16, copy=False).tobytes())
        return wav_path

    async def reset_routing(self) -> None:
        # PortAudio input and output streams are independent; nothing to restore.
        return None


class AudioCaptureSession:
    """
    Microphone lifecycle manager.

    At most one `RecordingSession` exists at a time; starting a new one
    stops the previous one first.
    """

    def __init__(
        self,
        recorder: Recorder,
        permissions: MicrophonePermissions | None = None,
        recording_dir: str | Path = "./data/recordings",
        default_config: RecordingConfig | None = None,
    ) -> None:
        self._recorder = recorder
        self._permissions = permissions or AlwaysGrantedPermissions()
        self._recording_dir = Path(recording_dir)
        self._default_config = default_config or RecordingConfig()

        self._session: RecordingSession | None = None
        self._config: RecordingConfig = self._default_config
        self._poll_task: asyncio.Task | None = None
        self._auto_stop_result: RecordingResult | None = None
        self._auto_stop_listeners: list[Callable[[RecordingResult], Any]] = []
        self.last_error: str | None = None

    @property
    def is_recording(self) -> bool:
        return self._session is not None and self._session.is_recording

    @property
    def session(self) -> RecordingSession | None:
        return self._session

    def elapsed_ms(self) -> int:
        if self._session is None:
            return 0
        return int((time.monotonic() - self._session.started_at) * 1000)

    def add_auto_stop_listener(self, listener: Callable[[RecordingResult], Any]) -> Callable[[], None]:
        """Called with the result whenever silence or max duration ends a recording."""
        self._auto_stop_listeners.append(listener)

        def _remove() -> None:
            if listener in self._auto_stop_listeners:
                self._auto_stop_listeners.remove(listener)

        return _remove

    def take_auto_stop_result(self) -> RecordingResult | None:
        """Return and clear the result of the last automatic stop, if any."""
        result, self._auto_stop_result = self._auto_stop_result, None
        return result

    async def start(self, config: RecordingConfig | None = None, **overrides: Any) -> bool:
        """
        Begin recording to a temporary WAV file.

        Returns False when permission is denied or the device cannot be
        opened; the reason is kept in `last_error`.
        """
        self.last_error = None
        if not await self._ensure_permission():
            self.last_error = "Microphone permission not granted"
            logger.warning(f"[VOICE][CAPTURE] {self.last_error}")
            return False

        if self._session is not None:
            logger.info("[VOICE][CAPTURE] stopping previous recording before starting a new one")
            previous = await self.stop()
            if previous.uri:
                delete_recording(previous.uri)
        else:
            await self._release_handle()

        # Drop any unclaimed auto-stop artifact from an earlier session.
        stale = self.take_auto_stop_result()
        if stale and stale.uri:
            delete_recording(stale.uri)

        cfg = config or self._default_config
        if overrides:
            cfg = replace(cfg, **overrides)
        self._config = cfg

        path = self._recording_dir / f"cmd_{uuid.uuid4().hex[:12]}.wav"
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            await self._recorder.open(path)
        except RecorderError as e:
            self.last_error = str(e)
            logger.error(f"[VOICE][CAPTURE] start failed: {e}")
            await self._release_handle()
            return False

        self._session = RecordingSession(
            path=path,
            started_at=time.monotonic(),
            max_duration_ms=cfg.max_duration_ms,
            silence_threshold_ms=cfg.silence_threshold_ms,
        )
        self._poll_task = asyncio.create_task(self._poll_loop(self._session))
        logger.info(
            f"[VOICE][CAPTURE] started max={cfg.max_duration_ms}ms silence={cfg.silence_threshold_ms}ms"
        )
        return True

    async def _ensure_permission(self) -> bool:
        try:
            if await self._permissions.is_granted():
                return True
            return await self._permissions.request()
        except Exception as e:
            logger.error(f"[VOICE][CAPTURE] permission check failed: {e}")
            return False

    async def _poll_loop(self, session: RecordingSession) -> None:
        cfg = self._config
        interval_ms = max(1, cfg.poll_interval_ms)
        while self._session is session and session.is_recording:
            await asyncio.sleep(interval_ms / 1000)
            if self._session is not session:
                return

            level = self._recorder.level_db()
            session.peak_level_db = max(session.peak_level_db, level)
            if cfg.on_metering_update is not None:
                await _call_host("metering", cfg.on_metering_update, level)

            if level < cfg.silence_floor_db:
                session.silence_accumulated_ms += interval_ms
            else:
                session.silence_accumulated_ms = 0

            reason = None
            if self.elapsed_ms() >= session.max_duration_ms:
                reason = "max_duration"
            elif session.silence_accumulated_ms >= session.silence_threshold_ms:
                reason = "silence"
                if cfg.on_silence_detected is not None:
                    await _call_host("silence", cfg.on_silence_detected)

            if reason is not None:
                logger.info(f"[VOICE][CAPTURE] auto-stop reason={reason}")
                result = await self._stop(stop_reason=reason, from_poll=True)
                if result.success:
                    self._auto_stop_result = result
                for listener in list(self._auto_stop_listeners):
                    await _call_host("auto-stop", listener, result)
                return

    async def stop(self) -> RecordingResult:
        """Stop recording and hand over the WAV file. Safe to call repeatedly."""
        return await self._stop(stop_reason="manual", from_poll=False)

    async def _stop(self, stop_reason: str, from_poll: bool) -> RecordingResult:
        session = self._session
        if session is None or not session.is_recording:
            return RecordingResult(success=False, error=NO_ACTIVE_RECORDING)

        # Claim the session before any await so a concurrent stop sees nothing.
        session.is_recording = False
        self._session = None

        poll_task, self._poll_task = self._poll_task, None
        if poll_task is not None and not from_poll:
            poll_task.cancel()

        duration_ms = int((time.monotonic() - session.started_at) * 1000)
        try:
            path = await self._recorder.close()
        except RecorderError as e:
            logger.error(f"[VOICE][CAPTURE] stop failed: {e}")
            return RecordingResult(success=False, error=str(e), stop_reason=stop_reason)
        finally:
            await self._reset_routing()

        path = path or session.path
        if not Path(path).exists():
            return RecordingResult(success=False, error="Recording file not found", stop_reason=stop_reason)

        is_silent = session.peak_level_db <= self._config.silence_floor_db
        logger.info(
            f"[VOICE][CAPTURE] stopped reason={stop_reason} dur={duration_ms}ms "
            f"peak={session.peak_level_db:.1f}dB silent={is_silent}"
        )
        return RecordingResult(
            success=True,
            uri=str(path),
            duration_ms=duration_ms,
            is_silent=is_silent,
            stop_reason=stop_reason,
        )

    async def cancel(self) -> None:
        """Stop without keeping the recording; the temp file is deleted."""
        result = await self.stop()
        if result.uri:
            delete_recording(result.uri)
        pending = self.take_auto_stop_result()
        if pending and pending.uri:
            delete_recording(pending.uri)

    async def _release_handle(self) -> None:
        try:
            await self._recorder.close()
        except RecorderError as e:
            logger.debug(f"[VOICE][CAPTURE] release failed: {e}")
        finally:
            await self._reset_routing()

    async def _reset_routing(self) -> None:
        try:
            await self._recorder.reset_routing()
        except Exception as e:
            logger.warning(f"[VOICE][CAPTURE] audio routing reset failed: {e}")


def delete_recording(uri: str | Path) -> None:
    """Remove a recording file; missing files are ignored."""
    try:
        Path(uri).unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"[VOICE][CAPTURE] could not delete {uri}: {e}")

