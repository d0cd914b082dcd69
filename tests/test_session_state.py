from job_voice_agent.orchestrator.session_state import VoicePhase, VoiceSessionTracker
from job_voice_agent.schemas import CommandIntent, ParsedCommand, VoiceCommandResult


def test_phase_transitions_and_snapshot():
    tracker = VoiceSessionTracker()
    assert tracker.phase == VoicePhase.IDLE
    assert tracker.session_id.startswith("voice-")

    tracker.mark_listening()
    assert tracker.phase == VoicePhase.LISTENING
    assert tracker.snapshot(duration_ms=250).recording.duration_ms == 250

    tracker.mark_recording_stopped()
    tracker.set_processing(True)
    assert tracker.phase == VoicePhase.PROCESSING

    command = ParsedCommand(intent=CommandIntent.HELP)
    tracker.record_command(command)
    tracker.record_result(VoiceCommandResult.failure("No job selected", command=command))
    tracker.reset()

    snap = tracker.snapshot()
    assert snap.phase == "idle"
    assert not snap.is_active
    assert snap.recording.error == "No job selected"
    assert snap.last_command == command
    assert snap.last_result.error == "No job selected"


def test_successful_result_clears_error():
    tracker = VoiceSessionTracker()
    tracker.set_error("Microphone permission not granted")
    tracker.record_result(VoiceCommandResult(success=True, command=ParsedCommand.empty()))
    assert tracker.error is None
