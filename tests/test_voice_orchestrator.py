import asyncio
import threading
from pathlib import Path

import pytest

from job_voice_agent.agents.intent_parser import IntentParserBase, VoiceCommandParser
from job_voice_agent.agents.match_scorer import MatchScorer
from job_voice_agent.jobs.api_client import JobSearchBackend, JobSearchPage
from job_voice_agent.jobs.corpus import JobCorpusCache
from job_voice_agent.orchestrator.session_state import VoicePhase
from job_voice_agent.orchestrator.voice_orchestrator import (
    CANCELLED,
    NO_JOB_SELECTED,
    NO_MATCHING_JOBS,
    NOT_RECORDING,
    NOT_UNDERSTOOD,
    VoiceCommandOrchestrator,
)
from job_voice_agent.schemas import (
    CommandIntent,
    CommandParams,
    JobLocation,
    JobPreferences,
    JobProfile,
    NormalizedJob,
    ParsedCommand,
    SearchPreferences,
)
from job_voice_agent.voice.capture import AudioCaptureSession, RecordingConfig
from job_voice_agent.voice.stt import STTProvider, TranscriptionAdapter, TranscriptionResult
from job_voice_agent.voice.wake_word import EngineWakeWordDetector


class FakeRecorder:
    def __init__(self, level_db: float = -20.0):
        self.level = level_db
        self.path: Path | None = None

    async def open(self, path: Path) -> None:
        self.path = path
        path.write_bytes(b"RIFF")

    def level_db(self) -> float:
        return self.level

    async def close(self) -> Path | None:
        path, self.path = self.path, None
        return path

    async def reset_routing(self) -> None:
        return None


class FakeSTT(STTProvider):
    def __init__(self, text: str):
        self.text = text
        self.seen: list[Path] = []

    async def transcribe_file(self, wav_path, options=None):
        path = Path(wav_path)
        if not path.exists():
            raise AssertionError("recording deleted before transcription")
        self.seen.append(path)
        return TranscriptionResult(text=self.text, confidence=0.9)


class GatedParser(IntentParserBase):
    """Blocks inside parse until released."""

    def __init__(self):
        self.gate = asyncio.Event()

    async def parse(self, text: str) -> ParsedCommand:
        await self.gate.wait()
        return ParsedCommand(intent=CommandIntent.SKIP, raw_text=text, confidence=0.8)


class StaticBackend(JobSearchBackend):
    def __init__(self, jobs):
        self.jobs = jobs

    async def search(self, payload):
        return JobSearchPage(jobs=self.jobs)


def _parser() -> VoiceCommandParser:
    return VoiceCommandParser(model_enabled=False)


def _frontend() -> NormalizedJob:
    return NormalizedJob(
        id="fe",
        title="Frontend Developer",
        company="Globex",
        location="San Francisco, California",
        locations=[JobLocation(location="San Francisco, California", city="San Francisco", state="California")],
        work_mode="Remote",
        is_remote=True,
        tags=["Frontend", "Engineering"],
    )


def _backend_onsite() -> NormalizedJob:
    return NormalizedJob(
        id="be",
        title="Backend Engineer",
        company="Initech",
        location="Austin, Texas",
        locations=[JobLocation(location="Austin, Texas", city="Austin", state="Texas")],
        work_mode="On-site",
        tags=["Backend", "Engineering"],
    )


def _profile() -> JobProfile:
    return JobProfile(
        id="u1",
        years_of_experience=6,
        skills=["python", "react"],
        preferences=JobPreferences(desired_salary=120000, remote_only=True, job_type=["full_time"]),
    )


def _strong(i: int) -> NormalizedJob:
    return NormalizedJob(
        id=f"s{i}",
        title="Senior Python Engineer",
        location="Remote",
        salary_min=130000,
        salary_max=160000,
        employment_type="Full-time",
        work_mode="Remote",
        is_remote=True,
        experience="Senior Level",
        tags=["Python", "Senior", "Engineering"],
    )


def _weak(i: int) -> NormalizedJob:
    return NormalizedJob(
        id=f"w{i}",
        title="Junior Accountant",
        location="Dallas, TX",
        salary_min=30000,
        salary_max=40000,
        employment_type="Part-time",
        experience="Entry Level",
        tags=["Accounting"],
    )


def _voice_orchestrator(tmp_path, text="skip", level_db=-20.0, parser=None, wake_word=None):
    stt = FakeSTT(text)
    orchestrator = VoiceCommandOrchestrator(
        parser or _parser(),
        capture=AudioCaptureSession(FakeRecorder(level_db), recording_dir=tmp_path),
        transcriber=TranscriptionAdapter(stt),
        scorer=MatchScorer(minimum_match_score=50),
        wake_word=wake_word,
        recording_config=RecordingConfig(poll_interval_ms=10, silence_threshold_ms=60000),
    )
    return orchestrator, stt


def test_skip_transcript_executes_skip():
    orchestrator = VoiceCommandOrchestrator(_parser())
    result = asyncio.run(orchestrator.process_text_command("skip"))

    assert result.success
    assert result.executed_action == "skip"
    assert result.command.intent == CommandIntent.SKIP
    assert orchestrator.get_session_state().last_result == result


def test_search_over_current_jobs():
    orchestrator = VoiceCommandOrchestrator(_parser())
    orchestrator.set_jobs([_frontend(), _backend_onsite()])

    result = asyncio.run(
        orchestrator.process_text_command("search for remote frontend developer jobs in california")
    )

    assert result.success
    assert result.command.intent == CommandIntent.SEARCH
    assert result.matched_jobs == 1
    assert [j.id for j in result.filtered_jobs] == ["fe"]


@pytest.mark.asyncio
async def test_search_uses_populated_corpus():
    raw = [
        {
            "id": "fe",
            "title": "Frontend Developer",
            "locations": [{"location": "San Francisco, California", "state": "California"}],
            "is_remote": True,
        },
        {
            "id": "be",
            "title": "Backend Engineer",
            "locations": [{"location": "Austin, Texas", "state": "Texas"}],
            "workplace_type": "onsite",
        },
    ]
    corpus = JobCorpusCache(StaticBackend(raw), batch_size=50)
    await corpus.fetch_initial(SearchPreferences(keywords=["developer"]))
    orchestrator = VoiceCommandOrchestrator(_parser(), corpus=corpus)

    result = await orchestrator.process_text_command("search for remote frontend developer jobs in california")

    assert result.matched_jobs == 1
    assert result.filtered_jobs[0].title == "Frontend Developer"


def test_apply_to_all_applies_only_profile_matches():
    orchestrator = VoiceCommandOrchestrator(_parser(), scorer=MatchScorer(minimum_match_score=50))
    orchestrator.set_jobs([_strong(i) for i in range(3)] + [_weak(i) for i in range(7)])
    orchestrator.set_user_profile(_profile())

    result = asyncio.run(orchestrator.process_text_command("apply to all jobs"))

    assert result.success
    assert result.executed_action == "apply_all"
    assert result.matched_jobs == 10
    assert result.applied_jobs == 3
    assert sorted(j.id for j in result.filtered_jobs) == ["s0", "s1", "s2"]


def test_apply_all_with_criteria_and_without_profile():
    orchestrator = VoiceCommandOrchestrator(_parser())
    orchestrator.set_jobs([_strong(0), _weak(0), _frontend()])

    command = ParsedCommand(intent=CommandIntent.APPLY, params=CommandParams(apply_to_all=True, remote=True))
    result = orchestrator.execute_command(command)

    assert result.matched_jobs == 2
    assert result.applied_jobs == 2


def test_apply_with_no_matching_jobs():
    orchestrator = VoiceCommandOrchestrator(_parser())
    orchestrator.set_jobs([_weak(0)])

    command = ParsedCommand(intent=CommandIntent.APPLY, params=CommandParams(remote=True))
    result = orchestrator.execute_command(command)

    assert not result.success
    assert result.error == NO_MATCHING_JOBS
    assert result.matched_jobs == 0


def test_apply_and_details_need_a_current_job():
    orchestrator = VoiceCommandOrchestrator(_parser())
    for intent in (CommandIntent.APPLY, CommandIntent.DETAILS):
        result = orchestrator.execute_command(ParsedCommand(intent=intent))
        assert not result.success
        assert result.error == NO_JOB_SELECTED

    orchestrator.set_jobs([_frontend(), _backend_onsite()])
    orchestrator.set_current_job_index(1)
    result = orchestrator.execute_command(ParsedCommand(intent=CommandIntent.DETAILS))
    assert result.success
    assert result.filtered_jobs[0].id == "be"
    result = orchestrator.execute_command(ParsedCommand(intent=CommandIntent.APPLY))
    assert result.executed_action == "apply"
    assert result.applied_jobs == 1


def test_filter_narrows_current_jobs():
    orchestrator = VoiceCommandOrchestrator(_parser())
    orchestrator.set_jobs([_frontend(), _backend_onsite()])

    result = asyncio.run(orchestrator.process_text_command("filter by texas"))
    assert result.executed_action == "filter"
    assert [j.id for j in result.filtered_jobs] == ["be"]


def test_unknown_intent_is_a_failure_with_suggestion():
    orchestrator = VoiceCommandOrchestrator(_parser())
    result = asyncio.run(orchestrator.process_text_command("the weather is nice"))

    assert not result.success
    assert result.command.intent == CommandIntent.UNKNOWN
    assert result.error.startswith("I didn't understand that")


def test_empty_text_command():
    result = asyncio.run(VoiceCommandOrchestrator(_parser()).process_text_command("  "))
    assert not result.success
    assert result.error == "Empty command"


@pytest.mark.asyncio
async def test_voice_round_trip_deletes_recording_and_notifies(tmp_path):
    orchestrator, stt = _voice_orchestrator(tmp_path, text="skip")
    seen = []
    orchestrator.add_result_listener(seen.append)

    assert await orchestrator.start_listening()
    assert orchestrator.phase == VoicePhase.LISTENING
    assert not await orchestrator.start_listening()
    await asyncio.sleep(0.03)

    result = await orchestrator.stop_listening()

    assert result.success
    assert result.executed_action == "skip"
    assert seen == [result]
    assert len(stt.seen) == 1
    assert not stt.seen[0].exists()
    assert orchestrator.phase == VoicePhase.IDLE
    assert not orchestrator.is_processing


@pytest.mark.asyncio
async def test_silent_recording_skips_transcription(tmp_path):
    orchestrator, stt = _voice_orchestrator(tmp_path, text="skip", level_db=-90.0)

    await orchestrator.start_listening()
    await asyncio.sleep(0.03)
    result = await orchestrator.stop_listening()

    assert not result.success
    assert result.error == NOT_UNDERSTOOD
    assert stt.seen == []
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_stop_without_recording(tmp_path):
    orchestrator, _ = _voice_orchestrator(tmp_path)
    result = await orchestrator.stop_listening()
    assert result.error == NOT_RECORDING


@pytest.mark.asyncio
async def test_start_listening_without_voice_input_sets_error():
    orchestrator = VoiceCommandOrchestrator(_parser())
    assert not orchestrator.is_configured()
    assert not await orchestrator.start_listening()
    assert orchestrator.get_session_state().recording.error == "Voice input is not configured"


@pytest.mark.asyncio
async def test_cancel_is_idempotent_and_discards_recording(tmp_path):
    orchestrator, stt = _voice_orchestrator(tmp_path)
    seen = []
    orchestrator.add_result_listener(seen.append)

    await orchestrator.start_listening()
    await orchestrator.cancel_listening()
    await orchestrator.cancel_listening()

    assert orchestrator.phase == VoicePhase.IDLE
    assert list(tmp_path.iterdir()) == []
    assert stt.seen == []
    assert seen == []
    assert (await orchestrator.stop_listening()).error == NOT_RECORDING


@pytest.mark.asyncio
async def test_result_of_cancelled_command_is_discarded():
    parser = GatedParser()
    orchestrator = VoiceCommandOrchestrator(parser)
    seen = []
    orchestrator.add_result_listener(seen.append)

    pending = asyncio.create_task(orchestrator.process_text_command("skip"))
    await asyncio.sleep(0)
    assert orchestrator.is_processing

    await orchestrator.cancel_listening()
    parser.gate.set()
    result = await pending

    assert not result.success
    assert result.error == CANCELLED
    assert seen == []
    assert orchestrator.get_session_state().last_result is None
    assert not orchestrator.is_processing


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_the_command():
    orchestrator = VoiceCommandOrchestrator(_parser())
    calls = []

    def _broken(result):
        raise RuntimeError("ui gone")

    async def _ok(result):
        calls.append(result.executed_action)

    orchestrator.add_result_listener(_broken)
    remove = orchestrator.add_result_listener(_ok)

    assert (await orchestrator.process_text_command("next")).success
    remove()
    await orchestrator.process_text_command("next")
    assert calls == ["next"]


class ThreadedWakeEngine:
    """Reports detections from its own thread, like a native engine."""

    def __init__(self):
        self.on_detect = None

    async def start(self, on_detect):
        self.on_detect = on_detect

    async def stop(self):
        return None

    def detect_from_thread(self):
        worker = threading.Thread(target=self.on_detect, args=(0,))
        worker.start()
        worker.join()


@pytest.mark.asyncio
async def test_wake_word_from_engine_thread_starts_listening(tmp_path):
    engine = ThreadedWakeEngine()
    orchestrator, _ = _voice_orchestrator(tmp_path, wake_word=EngineWakeWordDetector(engine))

    assert await orchestrator.enable_wake_word()
    engine.detect_from_thread()
    for _ in range(50):
        if orchestrator.phase == VoicePhase.LISTENING:
            break
        await asyncio.sleep(0.01)

    assert orchestrator.phase == VoicePhase.LISTENING
    await orchestrator.close()
    assert orchestrator.phase == VoicePhase.IDLE


def test_feedback_text():
    orchestrator = VoiceCommandOrchestrator(_parser())
    orchestrator.set_jobs([_frontend()])

    search = orchestrator.execute_command(
        ParsedCommand(intent=CommandIntent.SEARCH, params=CommandParams(remote=True))
    )
    assert orchestrator.feedback_text(search) == "Found 1 matching jobs."

    skip = asyncio.run(orchestrator.process_text_command("skip"))
    assert orchestrator.feedback_text(skip) == "Skipping this job"

    unknown = asyncio.run(orchestrator.process_text_command("the weather is nice"))
    assert orchestrator.feedback_text(unknown) == unknown.error
