"""
Voice command orchestrator.

Sequences capture, transcription, intent parsing and dispatch, and exposes
the session state to the UI. Every public method reports problems as a
`VoiceCommandResult` failure instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from job_voice_agent.agents.intent_parser import IntentParserBase
from job_voice_agent.agents.match_scorer import MatchScorer
from job_voice_agent.jobs.corpus import JobCorpusCache
from job_voice_agent.jobs.filters import filter_jobs_by_params
from job_voice_agent.orchestrator.session_state import VoicePhase, VoiceSessionTracker
from job_voice_agent.schemas import (
    CommandIntent,
    JobProfile,
    NormalizedJob,
    ParsedCommand,
    VoiceCommandResult,
    VoiceSessionState,
)
from job_voice_agent.voice.capture import AudioCaptureSession, RecordingConfig, delete_recording
from job_voice_agent.voice.feedback import SpeechFeedback
from job_voice_agent.voice.stt import TranscriptionAdapter
from job_voice_agent.voice.wake_word import WakeWordDetector

NOT_RECORDING = "Not recording"
NOT_UNDERSTOOD = "Could not understand audio"
NO_MATCHING_JOBS = "No jobs found matching your criteria"
NO_JOB_SELECTED = "No job selected"
CANCELLED = "Command cancelled"

ResultListener = Callable[[VoiceCommandResult], Any]
CommandHandler = Callable[[ParsedCommand], VoiceCommandResult]


class VoiceCommandOrchestrator:
    """
    Top-level voice command state machine.

    idle -> listening -> processing -> idle. Cancelling from listening or
    processing returns to idle without emitting a result. A command that
    was superseded (cancelled, or overtaken by a new recording) while it
    was being processed is discarded when it completes.
    """

    def __init__(
        self,
        parser: IntentParserBase,
        capture: AudioCaptureSession | None = None,
        transcriber: TranscriptionAdapter | None = None,
        scorer: MatchScorer | None = None,
        corpus: JobCorpusCache | None = None,
        feedback: SpeechFeedback | None = None,
        wake_word: WakeWordDetector | None = None,
        recording_config: RecordingConfig | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            parser: Intent parser.
            capture: Microphone session. Voice commands are unavailable when None.
            transcriber: Speech-to-text adapter. Required together with capture.
            scorer: Match scorer (default instance if None).
            corpus: Job corpus used by the search handler.
            feedback: Optional spoken feedback for results.
            wake_word: Optional wake-word detector that starts listening.
            recording_config: Capture limits for each command.
        """
        self._logger = logging.getLogger(__name__)
        self._parser = parser
        self._capture = capture
        self._transcriber = transcriber
        self._scorer = scorer or MatchScorer()
        self._corpus = corpus
        self._feedback = feedback
        self._wake_word = wake_word
        self._recording_config = recording_config

        self._state = VoiceSessionTracker()
        self._current_jobs: list[NormalizedJob] = []
        self._current_job_index: int = 0
        self._user_profile: JobProfile | None = None
        self._listeners: list[ResultListener] = []
        self._feedback_enabled = feedback is not None
        self._feedback_task: asyncio.Task | None = None
        self._wake_task: asyncio.Task | None = None
        self._wake_loop: asyncio.AbstractEventLoop | None = None

        # Bumped by cancel and by each new recording; older work is stale.
        self._generation = 0

        self._handlers: dict[CommandIntent, CommandHandler] = {
            CommandIntent.APPLY: self._handle_apply,
            CommandIntent.SKIP: self._handle_skip,
            CommandIntent.SEARCH: self._handle_search,
            CommandIntent.FILTER: self._handle_filter,
            CommandIntent.UNDO: self._handle_undo,
            CommandIntent.NEXT: self._handle_next,
            CommandIntent.DETAILS: self._handle_details,
            CommandIntent.HELP: self._handle_help,
        }

    # --- context set by the UI ------------------------------------------------

    @property
    def phase(self) -> VoicePhase:
        return self._state.phase

    @property
    def is_recording(self) -> bool:
        return self._state.is_recording

    @property
    def is_processing(self) -> bool:
        return self._state.is_processing

    @property
    def current_jobs(self) -> list[NormalizedJob]:
        return list(self._current_jobs)

    @property
    def current_job_index(self) -> int:
        return self._current_job_index

    @property
    def user_profile(self) -> JobProfile | None:
        return self._user_profile

    def is_configured(self) -> bool:
        """True when voice capture and transcription are both wired."""
        return self._capture is not None and self._transcriber is not None

    def set_jobs(self, jobs: list[NormalizedJob]) -> None:
        """Replace the job snapshot the apply, filter and details handlers work on."""
        self._current_jobs = list(jobs)

    def set_current_job_index(self, index: int) -> None:
        self._current_job_index = index

    def set_user_profile(self, profile: JobProfile | None) -> None:
        self._user_profile = profile

    def set_feedback_enabled(self, enabled: bool) -> None:
        self._feedback_enabled = enabled and self._feedback is not None

    def add_result_listener(self, listener: ResultListener) -> Callable[[], None]:
        """
        Register an observer for completed command results.

        Returns:
            Callable that removes the listener.
        """
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def get_session_state(self) -> VoiceSessionState:
        duration = self._capture.elapsed_ms() if self._capture is not None and self._state.is_recording else 0
        return self._state.snapshot(duration_ms=duration)

    # --- voice flow -------------------------------------------------------------

    async def start_listening(self) -> bool:
        """
        Start recording a voice command.

        Returns False if already recording, if voice input is not wired, or
        if the microphone could not be opened (see session state error).
        """
        if self._state.is_recording:
            self._logger.warning("[VOICE] already recording")
            return False
        if self._capture is None or self._transcriber is None:
            self._state.set_error("Voice input is not configured")
            return False

        if self._feedback is not None:
            self._feedback.stop()

        # A command still being processed is superseded by the new recording.
        self._generation += 1
        started = await self._capture.start(self._recording_config)
        if not started:
            self._state.set_error(self._capture.last_error or "Failed to start recording")
            self._logger.warning(f"[VOICE] could not start listening: {self._state.error}")
            return False

        self._state.mark_listening()
        self._logger.info(f"[VOICE] listening session={self._state.session_id}")
        return True

    async def stop_listening(self) -> VoiceCommandResult:
        """
        Stop recording and run the command.

        The recording file is always deleted once transcription finishes.

        Returns:
            Result of the executed command, or a failure result.
        """
        if not self._state.is_recording or self._capture is None:
            return VoiceCommandResult.failure(NOT_RECORDING)

        generation = self._generation
        recording = await self._capture.stop()
        if not recording.success:
            # Silence or max duration may already have ended the recording.
            recording = self._capture.take_auto_stop_result() or recording
        self._state.mark_recording_stopped()

        if not recording.success or not recording.uri:
            error = recording.error or "Recording failed"
            self._state.set_error(error)
            self._state.reset()
            return VoiceCommandResult.failure(error)

        self._state.set_processing(True)
        try:
            text = await self._transcribe(recording.uri, recording.is_silent)
            if not text:
                result = VoiceCommandResult.failure(NOT_UNDERSTOOD)
            else:
                result = await self._run_command(text, generation)
        except Exception as e:
            self._logger.error(f"[VOICE] processing failed: {e}", exc_info=True)
            result = VoiceCommandResult.failure(str(e) or "Processing failed")
        finally:
            if generation == self._generation:
                self._state.reset()

        return await self._finish(result, generation)

    async def process_text_command(self, text: str) -> VoiceCommandResult:
        """Parse and execute a typed command, skipping capture and transcription."""
        if not (text or "").strip():
            return VoiceCommandResult.failure("Empty command")

        generation = self._generation
        self._state.set_processing(True)
        try:
            result = await self._run_command(text, generation)
        except Exception as e:
            self._logger.error(f"[VOICE] text command failed: {e}", exc_info=True)
            result = VoiceCommandResult.failure(str(e) or "Processing failed")
        finally:
            if generation == self._generation:
                self._state.set_processing(False)

        return await self._finish(result, generation)

    async def cancel_listening(self) -> None:
        """Abort the current recording or command. Safe from any state."""
        self._generation += 1
        if self._capture is not None:
            await self._capture.cancel()
        if self._feedback is not None:
            self._feedback.stop()
        self._state.reset()
        self._logger.info("[VOICE] cancelled")

    async def _transcribe(self, uri: str, is_silent: bool | None) -> str:
        try:
            if is_silent or self._transcriber is None:
                self._logger.info("[VOICE] silent recording, skipping transcription")
                return ""
            transcription = await self._transcriber.transcribe_job_command(uri)
            return transcription.text.strip()
        finally:
            delete_recording(uri)

    async def _run_command(self, text: str, generation: int) -> VoiceCommandResult:
        command = await self._parser.parse(text)
        if generation != self._generation:
            return VoiceCommandResult.failure(CANCELLED, command=command)

        self._state.record_command(command)
        self._logger.info(
            f"[VOICE] intent={command.intent.value} conf={command.confidence:.2f} text=\"{text[:80]}\""
        )
        return self.execute_command(command)

    async def _finish(self, result: VoiceCommandResult, generation: int) -> VoiceCommandResult:
        if generation != self._generation:
            self._logger.info("[VOICE] discarding result of superseded command")
            if result.error == CANCELLED:
                return result
            return VoiceCommandResult.failure(CANCELLED, command=result.command)

        self._state.record_result(result)
        for listener in list(self._listeners):
            try:
                outcome = listener(result)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception as e:
                self._logger.warning(f"[VOICE] result listener failed: {e}")

        self._schedule_feedback(result)
        return result

    # --- dispatch ---------------------------------------------------------------

    def execute_command(self, command: ParsedCommand) -> VoiceCommandResult:
        """Dispatch a parsed command to its handler."""
        handler = self._handlers.get(command.intent)
        if handler is None:
            return VoiceCommandResult.failure(command.suggestion or "Command not understood", command=command)
        return handler(command)

    def _current_job(self) -> NormalizedJob | None:
        if 0 <= self._current_job_index < len(self._current_jobs):
            return self._current_jobs[self._current_job_index]
        return None

    def _handle_apply(self, command: ParsedCommand) -> VoiceCommandResult:
        params = command.params
        if params.has_filter_criteria() or params.apply_to_all:
            matched = filter_jobs_by_params(self._current_jobs, params)
            if not matched:
                return VoiceCommandResult.failure(NO_MATCHING_JOBS, command=command, matched_jobs=0)

            # Voice criteria and profile eligibility are AND-composed.
            to_apply = matched
            if self._user_profile is not None and (params.match_profile or params.apply_to_all):
                eligible = self._scorer.get_auto_apply_jobs(matched, self._user_profile)
                to_apply = [m.job for m in eligible]

            self._logger.info(f"[VOICE] apply_all matched={len(matched)} applying={len(to_apply)}")
            return VoiceCommandResult(
                success=True,
                command=command,
                executed_action="apply_all",
                matched_jobs=len(matched),
                applied_jobs=len(to_apply),
                filtered_jobs=to_apply,
            )

        job = self._current_job()
        if job is None:
            return VoiceCommandResult.failure(NO_JOB_SELECTED, command=command)
        return VoiceCommandResult(
            success=True,
            command=command,
            executed_action="apply",
            applied_jobs=1,
            filtered_jobs=[job],
        )

    def _handle_skip(self, command: ParsedCommand) -> VoiceCommandResult:
        return VoiceCommandResult(success=True, command=command, executed_action="skip")

    def _handle_search(self, command: ParsedCommand) -> VoiceCommandResult:
        params = command.params
        if self._corpus is not None and self._corpus.has_jobs():
            results = self._corpus.search_by_voice_params(params)
        else:
            results = filter_jobs_by_params(self._current_jobs, params)

        if params.match_profile and self._user_profile is not None:
            ranked = self._scorer.match_by_voice_params(results, params, self._user_profile)
            results = [m.job for m in ranked]

        return VoiceCommandResult(
            success=True,
            command=command,
            executed_action="search",
            matched_jobs=len(results),
            filtered_jobs=results,
        )

    def _handle_filter(self, command: ParsedCommand) -> VoiceCommandResult:
        filtered = filter_jobs_by_params(self._current_jobs, command.params)
        return VoiceCommandResult(
            success=True,
            command=command,
            executed_action="filter",
            matched_jobs=len(filtered),
            filtered_jobs=filtered,
        )

    def _handle_undo(self, command: ParsedCommand) -> VoiceCommandResult:
        return VoiceCommandResult(success=True, command=command, executed_action="undo")

    def _handle_next(self, command: ParsedCommand) -> VoiceCommandResult:
        return VoiceCommandResult(success=True, command=command, executed_action="next")

    def _handle_details(self, command: ParsedCommand) -> VoiceCommandResult:
        job = self._current_job()
        if job is None:
            return VoiceCommandResult.failure(NO_JOB_SELECTED, command=command)
        return VoiceCommandResult(
            success=True,
            command=command,
            executed_action="details",
            filtered_jobs=[job],
        )

    def _handle_help(self, command: ParsedCommand) -> VoiceCommandResult:
        return VoiceCommandResult(success=True, command=command, executed_action="help")

    # --- feedback and wake word -------------------------------------------------

    def feedback_text(self, result: VoiceCommandResult) -> str | None:
        """Sentence to speak for a result, or None for the canned fallback."""
        if result.success:
            if result.executed_action in ("search", "filter") and result.matched_jobs is not None:
                return f"Found {result.matched_jobs} matching jobs."
            if result.executed_action == "apply_all" and result.applied_jobs is not None:
                return f"Applying to {result.applied_jobs} jobs."
            return result.command.suggestion
        if result.error in (NOT_UNDERSTOOD, NOT_RECORDING):
            return None
        return result.error

    def _schedule_feedback(self, result: VoiceCommandResult) -> None:
        if not self._feedback_enabled or self._feedback is None:
            return
        self._feedback_task = asyncio.create_task(self._speak_result(result))

    async def _speak_result(self, result: VoiceCommandResult) -> None:
        if self._feedback is None:
            return
        text = self.feedback_text(result)
        try:
            if text:
                await self._feedback.speak(text)
            else:
                await self._feedback.speak_cached("no_understand")
        except Exception as e:
            self._logger.warning(f"[VOICE][TTS] feedback failed: {e}")

    async def enable_wake_word(self) -> bool:
        """Start the wake-word detector; detection starts a recording."""
        if self._wake_word is None:
            return False
        self._wake_loop = asyncio.get_running_loop()
        self._wake_word.on_wake_word_detected(self._on_wake_word)
        return await self._wake_word.start()

    def _on_wake_word(self) -> None:
        """May be called from an engine thread; hops onto the orchestrator loop."""
        loop = self._wake_loop
        if loop is None or loop.is_closed():
            self._logger.warning("[VOICE][WAKE] detection after shutdown ignored")
            return
        loop.call_soon_threadsafe(self._start_from_wake_word)

    def _start_from_wake_word(self) -> None:
        if self._state.is_recording:
            return
        self._logger.info("[VOICE][WAKE] starting to listen")
        self._wake_task = asyncio.create_task(self.start_listening())

    async def close(self) -> None:
        """Release the microphone and stop wake-word detection and feedback."""
        await self.cancel_listening()
        if self._wake_word is not None:
            await self._wake_word.stop()
        if self._feedback_task is not None and not self._feedback_task.done():
            self._feedback_task.cancel()
