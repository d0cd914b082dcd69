"""
Orchestrator module for sequencing voice commands.
"""

from job_voice_agent.orchestrator.factory import VoiceAssistant, build_voice_assistant
from job_voice_agent.orchestrator.session_state import VoicePhase, VoiceSessionTracker
from job_voice_agent.orchestrator.voice_orchestrator import VoiceCommandOrchestrator

__all__ = [
    "VoiceAssistant",
    "VoiceCommandOrchestrator",
    "VoicePhase",
    "VoiceSessionTracker",
    "build_voice_assistant",
]
