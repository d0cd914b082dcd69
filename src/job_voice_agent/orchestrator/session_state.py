"""
Voice session state management.

Tracks the phase of the voice command state machine, the recording view
exposed to the UI, and the last command and result.
"""

from enum import Enum
from uuid import uuid4

from job_voice_agent.schemas import (
    ParsedCommand,
    RecordingStatus,
    VoiceCommandResult,
    VoiceSessionState,
)


class VoicePhase(str, Enum):
    """Phases of the voice command state machine."""

    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"


class VoiceSessionTracker:
    """
    Manages the mutable state of one voice session.

    One tracker lives as long as its orchestrator, so the session id is
    issued once per application run rather than once per command.
    """

    def __init__(self) -> None:
        self._session_id: str = f"voice-{uuid4().hex[:12]}"
        self._is_active: bool = False
        self._is_recording: bool = False
        self._is_processing: bool = False
        self._error: str | None = None
        self._last_command: ParsedCommand | None = None
        self._last_result: VoiceCommandResult | None = None

    @property
    def session_id(self) -> str:
        """Get the unique session identifier."""
        return self._session_id

    @property
    def phase(self) -> VoicePhase:
        """Get the current phase; recording takes precedence over processing."""
        if self._is_recording:
            return VoicePhase.LISTENING
        if self._is_processing:
            return VoicePhase.PROCESSING
        return VoicePhase.IDLE

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def last_command(self) -> ParsedCommand | None:
        return self._last_command

    @property
    def last_result(self) -> VoiceCommandResult | None:
        return self._last_result

    def mark_listening(self) -> None:
        """Enter the listening phase."""
        self._is_active = True
        self._is_recording = True
        self._error = None

    def mark_recording_stopped(self) -> None:
        self._is_recording = False

    def set_processing(self, processing: bool) -> None:
        self._is_processing = processing

    def set_error(self, error: str | None) -> None:
        self._error = error

    def record_command(self, command: ParsedCommand) -> None:
        self._last_command = command

    def record_result(self, result: VoiceCommandResult) -> None:
        self._last_result = result
        self._error = None if result.success else result.error

    def reset(self) -> None:
        """Return to idle without touching the command history."""
        self._is_active = False
        self._is_recording = False
        self._is_processing = False

    def snapshot(self, duration_ms: int = 0) -> VoiceSessionState:
        """
        Build an immutable view for the UI.

        Args:
            duration_ms: Elapsed time of the current recording.

        Returns:
            Copy of the session state.
        """
        return VoiceSessionState(
            is_active=self._is_active,
            phase=self.phase.value,
            recording=RecordingStatus(
                is_recording=self._is_recording,
                is_processing=self._is_processing,
                error=self._error,
                duration_ms=duration_ms,
            ),
            last_command=self._last_command,
            last_result=self._last_result,
            session_id=self._session_id,
        )
