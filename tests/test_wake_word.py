import asyncio

import pytest

from job_voice_agent.config import Settings
from job_voice_agent.voice.wake_word import (
    DisabledWakeWordDetector,
    EngineWakeWordDetector,
    build_wake_word_detector,
)


class FakeEngine:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.on_detect = None
        self.stopped = 0

    async def start(self, on_detect):
        if self.fail:
            raise RuntimeError("no access key")
        self.on_detect = on_detect

    async def stop(self):
        self.stopped += 1


def test_builder_defaults_to_disabled():
    assert isinstance(build_wake_word_detector(Settings(wake_word_enabled=False)), DisabledWakeWordDetector)
    assert isinstance(
        build_wake_word_detector(Settings(wake_word_enabled=True, wake_word_provider="engine")),
        DisabledWakeWordDetector,
    )

    detector = build_wake_word_detector(
        Settings(wake_word_enabled=True, wake_word_provider="engine"), engine=FakeEngine()
    )
    assert isinstance(detector, EngineWakeWordDetector)
    assert detector.is_enabled


def test_disabled_detector_never_starts():
    detector = DisabledWakeWordDetector()
    assert asyncio.run(detector.start()) is False
    assert not detector.is_running


@pytest.mark.asyncio
async def test_engine_detector_fires_callback_and_stops_once():
    engine = FakeEngine()
    detector = EngineWakeWordDetector(engine)
    fired = []
    detector.on_wake_word_detected(lambda: fired.append(True))

    assert await detector.start()
    assert detector.is_running
    engine.on_detect(0)
    assert fired == [True]

    await detector.stop()
    await detector.stop()
    assert engine.stopped == 1
    assert not detector.is_running


@pytest.mark.asyncio
async def test_engine_start_failure_reports_false():
    detector = EngineWakeWordDetector(FakeEngine(fail=True))
    assert await detector.start() is False
    assert not detector.is_running
