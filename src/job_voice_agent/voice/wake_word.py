"""Wake-word detection strategies.

The detector is chosen once at startup from settings. The default is a
disabled detector that never fires; the engine-backed detector wraps a
wake-word engine supplied by the host application.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Protocol

from job_voice_agent.config import Settings

logger = logging.getLogger(__name__)

WakeWordCallback = Callable[[], None]


class WakeWordEngine(Protocol):
    """Host-provided engine. It calls ``on_detect`` from its own listening loop."""

    async def start(self, on_detect: Callable[[int], None]) -> None: ...

    async def stop(self) -> None: ...


class WakeWordDetector(ABC):
    """Abstract base class for wake-word detectors."""

    def __init__(self) -> None:
        self._callback: WakeWordCallback | None = None

    def on_wake_word_detected(self, callback: WakeWordCallback) -> None:
        self._callback = callback

    def _fire(self, keyword_index: int = 0) -> None:
        logger.debug(f"[VOICE][WAKE] wake word detected index={keyword_index}")
        if self._callback is not None:
            self._callback()

    @property
    @abstractmethod
    def is_enabled(self) -> bool:
        ...

    @property
    @abstractmethod
    def is_running(self) -> bool:
        ...

    @abstractmethod
    async def start(self) -> bool:
        """Start listening. Returns False when detection is unavailable."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...


class DisabledWakeWordDetector(WakeWordDetector):
    """No-op detector used when wake-word detection is not configured."""

    @property
    def is_enabled(self) -> bool:
        return False

    @property
    def is_running(self) -> bool:
        return False

    async def start(self) -> bool:
        logger.debug("[VOICE][WAKE] disabled")
        return False

    async def stop(self) -> None:
        return None


class EngineWakeWordDetector(WakeWordDetector):
    """Detector delegating to an external wake-word engine."""

    def __init__(self, engine: WakeWordEngine) -> None:
        super().__init__()
        self._engine = engine
        self._running = False

    @property
    def is_enabled(self) -> bool:
        return True

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> bool:
        if self._running:
            return True
        try:
            await self._engine.start(self._fire)
        except Exception as e:
            logger.warning(f"[VOICE][WAKE] failed to start: {e}")
            self._running = False
            return False
        self._running = True
        logger.debug("[VOICE][WAKE] listening started")
        return True

    async def stop(self) -> None:
        if not self._running:
            return
        try:
            await self._engine.stop()
            logger.debug("[VOICE][WAKE] stopped")
        except Exception as e:
            logger.error(f"[VOICE][WAKE] stop error: {e}")
        finally:
            self._running = False


def build_wake_word_detector(settings: Settings, engine: WakeWordEngine | None = None) -> WakeWordDetector:
    """Pick the detector implementation from configuration."""
    if not settings.wake_word_enabled or settings.wake_word_provider == "disabled":
        return DisabledWakeWordDetector()
    if engine is None:
        logger.warning("[VOICE][WAKE] engine provider selected but no engine supplied; disabling")
        return DisabledWakeWordDetector()
    return EngineWakeWordDetector(engine)
