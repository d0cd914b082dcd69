"""
Models module for LLM client abstraction.

Provides a unified interface for OpenAI-compatible chat completions.
"""

from job_voice_agent.models.llm_client import (
    DEFAULT_CHAT_MODEL,
    LLMClient,
    LLMClientBase,
    LLMError,
    LLMResponse,
    Message,
    parse_json_object,
)

__all__ = [
    "LLMClient",
    "LLMClientBase",
    "LLMResponse",
    "LLMError",
    "Message",
    "DEFAULT_CHAT_MODEL",
    "parse_json_object",
]
