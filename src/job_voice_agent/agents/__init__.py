"""
Agents that interpret commands and rank jobs.

The intent parser turns transcripts into structured commands; the match
scorer ranks jobs against a user profile.
"""

from job_voice_agent.agents.intent_parser import IntentParserBase, VoiceCommandParser
from job_voice_agent.agents.match_scorer import MatchScorer, MatchWeights

__all__ = [
    "IntentParserBase",
    "MatchScorer",
    "MatchWeights",
    "VoiceCommandParser",
]
