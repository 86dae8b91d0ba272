import json

import anthropic
import httpx
import pytest
import respx

from case_review.client import APIClient
from case_review.config import LLMSettings
from case_review.exceptions import ConfigurationError, EmptyResponseError, TransportError


MESSAGES_URL = "http://llm.test/v1/messages"


def message(content):
    return {
        "id": "msg_01",
        "type": "message",
        "role": "assistant",
        "model": "claude-haiku-4-5",
        "content": content,
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 120, "output_tokens": 45},
    }


@pytest.fixture
def settings():
    return LLMSettings(api_url="http://llm.test/v1/messages", api_token="secret-token", model="claude-haiku-4-5")


def test_base_url_strips_messages_path(settings):
    assert settings.base_url == "http://llm.test"
    assert LLMSettings(api_url="http://llm.test/").base_url == "http://llm.test"


def test_client_requires_endpoint_and_token():
    with pytest.raises(ConfigurationError):
        APIClient(LLMSettings(api_url="", api_token="secret-token"))
    with pytest.raises(ConfigurationError):
        APIClient(LLMSettings(api_url="http://llm.test", api_token=""))


@pytest.mark.asyncio
@respx.mock
async def test_invoke_returns_completion_text(settings):
    route = respx.post(MESSAGES_URL).mock(
        return_value=httpx.Response(200, json=message([{"type": "text", "text": '  {"ok": true}  '}]))
    )
    client = APIClient(settings)
    completion = await client.invoke("system prompt", "user prompt", max_tokens=1024, temperature=0.2)
    await client.close()

    assert completion.text == '{"ok": true}'
    assert completion.usage == {"inputTokens": 120, "outputTokens": 45}
    assert completion.finish_reason == "end_turn"

    request = route.calls.last.request
    assert request.headers["authorization"] == "Bearer secret-token"
    body = json.loads(request.content)
    assert body["max_tokens"] == 1024
    assert body["temperature"] == 0.2
    assert body["system"] == "system prompt"
    assert body["messages"] == [{"role": "user", "content": "user prompt"}]


@pytest.mark.asyncio
@respx.mock
async def test_invoke_raises_transport_error_with_status(settings):
    respx.post(MESSAGES_URL).mock(
        return_value=httpx.Response(500, json={"type": "error", "error": {"type": "api_error", "message": "overloaded"}})
    )
    client = APIClient(settings)
    with pytest.raises(TransportError) as exc:
        await client.invoke("system", "user")
    await client.close()

    assert exc.value.status_code == 500
    assert "overloaded" in exc.value.body
    assert "status 500" in str(exc.value)


@pytest.mark.asyncio
@respx.mock
async def test_invoke_raises_on_connection_failure(settings):
    respx.post(MESSAGES_URL).mock(side_effect=httpx.ConnectError("connection refused"))
    client = APIClient(settings)
    with pytest.raises(TransportError) as exc:
        await client.invoke("system", "user")
    await client.close()
    assert exc.value.status_code is None


@pytest.mark.asyncio
@respx.mock
async def test_invoke_rejects_empty_content(settings):
    respx.post(MESSAGES_URL).mock(return_value=httpx.Response(200, json=message([])))
    client = APIClient(settings)
    with pytest.raises(EmptyResponseError):
        await client.invoke("system", "user")
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_invoke_sends_default_temperature(settings):
    route = respx.post(MESSAGES_URL).mock(
        return_value=httpx.Response(200, json=message([{"type": "text", "text": "ok"}]))
    )
    client = APIClient(settings)
    completion = await client.invoke("system", "user")
    await client.close()

    assert completion.text == "ok"
    body = json.loads(route.calls.last.request.content)
    assert body["temperature"] == settings.temperature
    assert body["model"] == "claude-haiku-4-5"


@pytest.mark.asyncio
async def test_invoke_wraps_unexpected_sdk_errors(settings, monkeypatch):
    client = APIClient(settings)

    async def create(**kwargs):
        raise anthropic.APIError("malformed response", httpx.Request("POST", MESSAGES_URL), body=None)

    monkeypatch.setattr(client.client.messages, "create", create)
    with pytest.raises(TransportError) as exc:
        await client.invoke("system", "user")
    await client.close()
    assert "malformed response" in str(exc.value)
