import json

import httpx
import pytest

from job_voice_agent.models.llm_client import LLMClient, LLMResponse, Message, parse_json_object


@pytest.mark.asyncio
async def test_chat_with_json_repairs_single_quotes_and_trailing_commas() -> None:
    client = LLMClient(api_key="test")

    async def fake_chat(messages: list[Message], temperature: float = 0.7, max_tokens=None, **kwargs):
        return LLMResponse(
            content="{'intent': 'skip', 'confidence': 0.9,}",
            finish_reason="stop",
            model="test",
        )

    # Monkeypatch instance method
    client.chat = fake_chat  # type: ignore[assignment]

    data = await client.chat_with_json(messages=[Message(role="user", content="skip")])
    assert data == {"intent": "skip", "confidence": 0.9}


@pytest.mark.asyncio
async def test_chat_with_json_repairs_unquoted_keys_and_fenced_json() -> None:
    client = LLMClient(api_key="test")

    async def fake_chat(messages: list[Message], temperature: float = 0.7, max_tokens=None, **kwargs):
        return LLMResponse(
            content="""```json
            {intent: "search", remote: true, company: null,}
            ```""",
            finish_reason="stop",
            model="test",
        )

    client.chat = fake_chat  # type: ignore[assignment]

    data = await client.chat_with_json(messages=[Message(role="user", content="hi")])
    assert data == {"intent": "search", "remote": True, "company": None}


def test_parse_json_object_finds_object_inside_prose() -> None:
    content = 'Sure! Here is the command: {"intent": "help", "params": {}} Let me know.'
    assert parse_json_object(content) == {"intent": "help", "params": {}}


def test_parse_json_object_returns_none_for_garbage() -> None:
    assert parse_json_object("I could not parse that, sorry.") is None
    assert parse_json_object("") is None


@pytest.mark.asyncio
async def test_chat_posts_openai_compatible_payload() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/chat/completions")
        assert request.headers["Authorization"] == "Bearer secret"
        seen.append(json.loads(request.content))
        return httpx.Response(
            200,
            json={
                "model": "gpt-test",
                "choices": [{"message": {"content": '{"intent": "next"}'}, "finish_reason": "stop"}],
                "usage": {"prompt_tokens": 12, "completion_tokens": 4},
            },
        )

    client = LLMClient(
        model="gpt-test",
        base_url="https://llm.example.com/v1",
        api_key="secret",
        max_retries=0,
        transport=httpx.MockTransport(handler),
    )
    data = await client.chat_with_json([Message(role="user", content="next")], max_tokens=50)
    await client.close()

    assert data == {"intent": "next"}
    assert seen[0]["model"] == "gpt-test"
    assert seen[0]["max_tokens"] == 50
    assert seen[0]["messages"] == [{"role": "user", "content": "next"}]


@pytest.mark.asyncio
async def test_chat_returns_error_response_after_retries() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(503, text="overloaded")

    client = LLMClient(
        base_url="https://llm.example.com/v1",
        api_key="secret",
        max_retries=1,
        transport=httpx.MockTransport(handler),
    )
    response = await client.chat([Message(role="user", content="hi")])
    data = await client.chat_with_json([Message(role="user", content="hi")])
    await client.close()

    assert response.finish_reason == "error"
    assert response.content == ""
    assert data == {}
    assert calls["n"] == 4


def test_is_configured_requires_key_for_remote_endpoints() -> None:
    assert not LLMClient(base_url="https://api.openai.com/v1", api_key="").is_configured
    assert LLMClient(base_url="https://api.openai.com/v1", api_key="k").is_configured
    assert LLMClient(base_url="http://localhost:11434/v1", api_key="").is_configured
