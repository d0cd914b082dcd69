"""
LLM client abstraction.

Provides a unified interface for chat completions against an
OpenAI-compatible HTTP endpoint (OpenAI itself, or a local Ollama server
exposing `/v1/chat/completions`).
"""

import ast
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import BaseModel, Field

from job_voice_agent.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_CHAT_MODEL = "gpt-4o-mini"


class Message(BaseModel):
    """A message in a conversation."""

    role: str = Field(..., description="Role of the speaker (system, user, assistant)")
    content: str = Field(..., description="Message content")


class LLMResponse(BaseModel):
    """Response from an LLM."""

    content: str = Field(..., description="Generated text content")
    finish_reason: str = Field(default="stop", description="Reason for completion")
    usage: dict[str, int] = Field(
        default_factory=dict,
        description="Token usage information",
    )
    model: str = Field(default="", description="Model used for generation")


class LLMError(Exception):
    """Exception raised when the chat completion endpoint fails."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class LLMClientBase(ABC):
    """Abstract base class for LLM clients."""

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """
        Generate a chat completion.

        Args:
            messages: Conversation history.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens to generate.
            **kwargs: Additional model-specific parameters.

        Returns:
            Generated response.
        """
        ...

    @abstractmethod
    async def chat_with_json(
        self,
        messages: list[Message],
        temperature: float = 0.2,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Generate a chat completion and parse it as a JSON object."""
        ...


class LLMClient(LLMClientBase):
    """
    HTTP chat-completions client.

    Requests are retried up to ``max_retries`` times on transport errors and
    non-2xx responses. Failures never escape `chat`; they surface as a
    response with ``finish_reason="error"``.
    """

    def __init__(
        self,
        model: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        max_retries: int | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the LLM client.

        Args:
            model: Model name (defaults to settings).
            base_url: API base URL, e.g. ``https://api.openai.com/v1``.
            api_key: Bearer token; optional for local servers.
            max_retries: Number of retries on failure.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (tests use MockTransport).
        """
        settings = get_settings()
        self._model = model or settings.llm_model_name or DEFAULT_CHAT_MODEL
        self._base_url = (base_url or settings.llm_base_url).rstrip("/")
        self._api_key = settings.llm_api_key if api_key is None else api_key
        self._max_retries = settings.llm_max_retries if max_retries is None else max_retries
        self._timeout = timeout or settings.llm_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        logger.info(f"Initialized LLM client with model: {self._model}")

    @property
    def model(self) -> str:
        """Get the model name."""
        return self._model

    @property
    def is_configured(self) -> bool:
        """A remote endpoint needs a key; a local one does not."""
        return bool(self._api_key) or "localhost" in self._base_url or "127.0.0.1" in self._base_url

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def _post_chat(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        POST to /chat/completions with retry.

        Raises:
            LLMError: If every attempt fails.
        """
        client = await self._get_client()
        last_error: LLMError | None = None
        attempts = 0

        while attempts <= self._max_retries:
            attempts += 1
            try:
                response = await client.post("/chat/completions", json=payload)
            except httpx.HTTPError as e:
                logger.warning(f"LLM request error (attempt {attempts}): {e}")
                last_error = LLMError(str(e))
                continue

            if response.status_code != 200:
                logger.warning(f"LLM returned HTTP {response.status_code} (attempt {attempts})")
                last_error = LLMError(
                    f"LLM API error: {response.status_code}",
                    status_code=response.status_code,
                    body=response.text[:500],
                )
                continue

            try:
                return response.json()
            except ValueError as e:
                last_error = LLMError(f"LLM returned a non-JSON envelope: {e}")

        raise last_error or LLMError("LLM failed after all retries")

    async def chat(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """
        Generate a chat completion.

        Args:
            messages: Conversation history.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens to generate.
            **kwargs: Additional parameters passed through (e.g. top_p).

        Returns:
            Generated response.
        """
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [m.model_dump() for m in messages],
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        payload.update({k: v for k, v in kwargs.items() if v is not None})

        try:
            data = await self._post_chat(payload)
        except LLMError as e:
            logger.error(f"LLM chat failed: {e}")
            return LLMResponse(content="", finish_reason="error", model=self._model)

        if not isinstance(data, dict):
            logger.warning(f"LLM envelope is {type(data).__name__}, expected an object")
            return LLMResponse(content="", finish_reason="error", model=self._model)

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            logger.warning("LLM response contained no choices")
            return LLMResponse(content="", finish_reason="error", model=self._model)

        choice = choices[0]
        if not isinstance(choice, dict):
            logger.warning(f"LLM choice is {type(choice).__name__}, expected an object")
            return LLMResponse(content="", finish_reason="error", model=self._model)
        message = choice.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if content is None:
            content = ""
        if not isinstance(content, str):
            logger.warning(f"LLM choice has malformed content: {type(content).__name__}")
            return LLMResponse(content="", finish_reason="error", model=self._model)

        usage = data.get("usage")
        finish_reason = choice.get("finish_reason")
        model = data.get("model")
        return LLMResponse(
            content=content.strip(),
            finish_reason=finish_reason if isinstance(finish_reason, str) and finish_reason else "stop",
            usage={k: v for k, v in usage.items() if isinstance(v, int)} if isinstance(usage, dict) else {},
            model=model if isinstance(model, str) and model else self._model,
        )

    async def chat_with_json(
        self,
        messages: list[Message],
        temperature: float = 0.2,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Generate a chat completion and parse a JSON object out of it.

        Args:
            messages: Conversation history.
            temperature: Sampling temperature (lower for more deterministic).
            **kwargs: Additional parameters.

        Returns:
            Parsed JSON object, or empty dict on error.
        """
        response = await self.chat(messages, temperature, **kwargs)

        if response.finish_reason == "error" or not response.content:
            logger.warning("JSON chat failed, returning empty dict")
            return {}

        parsed = parse_json_object(response.content)
        if parsed is None:
            logger.warning("Failed to parse JSON from LLM response")
            logger.debug(f"Response content: {response.content[:500]}")
            return {}
        return parsed

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


def _extract_braced(content: str) -> str | None:
    """Return the first balanced {...} span in content."""
    start = content.find("{")
    if start == -1:
        return None

    depth = 0
    for i, char in enumerate(content[start:], start=start):
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return content[start : i + 1]
    return None


def _repair_json(raw: str) -> str:
    """Fix the usual LLM JSON mistakes: fences, smart quotes, trailing commas, bare keys."""
    result = raw.strip()
    result = re.sub(r"^```(?:json)?\s*", "", result, flags=re.IGNORECASE)
    result = re.sub(r"\s*```$", "", result)
    result = result.replace("“", '"').replace("”", '"').replace("‘", "'").replace("’", "'")
    result = re.sub(r",(\s*[}\]])", r"\1", result)
    result = re.sub(r"\bNone\b", "null", result)
    result = re.sub(r"\bTrue\b", "true", result)
    result = re.sub(r"\bFalse\b", "false", result)
    result = re.sub(r"([\{,]\s*)([A-Za-z_][A-Za-z0-9_\-]*)(\s*:)", r'\1"\2"\3', result)
    if "'" in result and '"' not in result:
        result = result.replace("'", '"')
    return result


def parse_json_object(content: str) -> dict[str, Any] | None:
    """
    Best-effort parse of a JSON object embedded in model output.

    Returns None when nothing usable is found.
    """
    if not content:
        return None

    stripped = re.sub(r"^```(?:json)?\s*|\s*```$", "", content.strip(), flags=re.IGNORECASE)
    candidate = _extract_braced(stripped) or stripped

    for text in (candidate, _repair_json(candidate)):
        try:
            obj = json.loads(text)
        except json.JSONDecodeError:
            continue
        return obj if isinstance(obj, dict) else None

    # Python-literal fallback for single-quoted dicts.
    try:
        obj = ast.literal_eval(candidate)
    except (ValueError, SyntaxError):
        return None
    if not isinstance(obj, dict):
        return None
    try:
        return json.loads(json.dumps(obj, default=str))
    except (TypeError, ValueError):
        return None
