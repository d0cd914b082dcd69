"""
IO module for command interfaces.

Provides text and voice front ends for the command pipeline.
"""

from job_voice_agent.io.text_interface import TextInterface
from job_voice_agent.io.voice_interface import VoiceInterface

__all__ = ["TextInterface", "VoiceInterface"]
