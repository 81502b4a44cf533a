import json

import httpx
import pytest

from llm_core.domain.exceptions import EmptyResponseError, InvalidArgumentError, UnauthenticatedError
from llm_core.domain.models import SamplingParams
from llm_core.providers.adapter import ProtocolAdapter
from llm_core.providers.anthropic import AnthropicDialect
from llm_core.providers.registry import ANTHROPIC_CONFIG

API_KEY = "sk-ant-0123456789"


def make_adapter(handler, api_key=API_KEY, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ProtocolAdapter(ANTHROPIC_CONFIG, AnthropicDialect(), api_key=api_key, http_client=client, **kwargs)


def message(*texts):
    return httpx.Response(
        200,
        json={
            "id": "msg_01",
            "type": "message",
            "role": "assistant",
            "model": "claude-3-opus-20240229",
            "content": [{"type": "text", "text": t} for t in texts],
            "stop_reason": "end_turn",
            "usage": {"input_tokens": 10, "output_tokens": 4},
        },
    )


@pytest.mark.asyncio
async def test_request_shape_and_headers():
    captured = {}

    def handler(request):
        captured["url"] = str(request.url)
        captured["headers"] = request.headers
        captured["payload"] = json.loads(request.content)
        return message("Hi there")

    adapter = make_adapter(handler)
    adapter.set_system_instruction("You are terse.")
    text = await adapter.send_turn("hello")

    assert text == "Hi there"
    assert captured["url"] == "https://api.anthropic.com/v1/messages"
    assert captured["headers"]["x-api-key"] == API_KEY
    assert captured["headers"]["anthropic-version"] == "2023-06-01"
    assert "Authorization" not in captured["headers"]
    payload = captured["payload"]
    assert payload["model"] == "claude-3-opus-20240229"
    assert payload["system"] == "You are terse."
    assert payload["max_tokens"] == 1024
    assert payload["temperature"] == 0.7
    assert payload["top_p"] == 1.0
    assert payload["messages"] == [{"role": "user", "content": [{"type": "text", "text": "hello"}]}]
    assert adapter.last_result.usage.total_tokens == 14


@pytest.mark.asyncio
async def test_no_system_field_without_instruction():
    captured = {}

    def handler(request):
        captured["payload"] = json.loads(request.content)
        return message("ok")

    adapter = make_adapter(handler)
    await adapter.send_turn("hello")
    assert "system" not in captured["payload"]


@pytest.mark.asyncio
async def test_multiple_content_blocks_joined_with_newline():
    adapter = make_adapter(lambda request: message("first", "second"))
    text = await adapter.send_turn("hello")
    assert text == "first\nsecond"
    assert len(adapter.history()[-1].parts) == 2


@pytest.mark.asyncio
async def test_assistant_history_sent_as_content_blocks():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return message("a", "b")

    adapter = make_adapter(handler)
    await adapter.send_turn("one")
    await adapter.send_turn("two")
    assert bodies[1]["messages"][1] == {
        "role": "assistant",
        "content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}],
    }


@pytest.mark.asyncio
async def test_empty_content_keeps_user_turn():
    adapter = make_adapter(
        lambda request: httpx.Response(200, json={"id": "msg_02", "content": [], "stop_reason": "end_turn"})
    )
    with pytest.raises(EmptyResponseError):
        await adapter.send_turn("hello")
    assert [t.role for t in adapter.history()] == ["user"]


@pytest.mark.asyncio
async def test_missing_key_fails_before_request():
    def handler(request):
        raise AssertionError("no request expected")

    adapter = make_adapter(handler, api_key=None)
    with pytest.raises(UnauthenticatedError) as exc_info:
        await adapter.send_turn("hello")
    assert exc_info.value.code == "MISSING_API_KEY"
    assert adapter.history() == ()
    with pytest.raises(UnauthenticatedError):
        await adapter.list_models()


@pytest.mark.asyncio
async def test_temperature_above_one_rejected():
    def handler(request):
        raise AssertionError("no request expected")

    adapter = make_adapter(handler)
    with pytest.raises(InvalidArgumentError):
        await adapter.send_turn("hello", SamplingParams(temperature=1.5))


@pytest.mark.asyncio
async def test_stream_uses_content_block_deltas():
    events = [
        ("message_start", {"type": "message_start", "message": {"id": "msg_03", "content": []}}),
        ("content_block_start", {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}}),
        ("ping", {"type": "ping"}),
        ("content_block_delta", {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hel"}}),
        ("content_block_delta", {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "lo"}}),
        ("content_block_stop", {"type": "content_block_stop", "index": 0}),
        ("message_stop", {"type": "message_stop"}),
    ]
    body = "".join(f"event: {name}\ndata: {json.dumps(data)}\n\n" for name, data in events)
    captured = {}

    def handler(request):
        captured["payload"] = json.loads(request.content)
        return httpx.Response(200, content=body.encode("utf-8"))

    adapter = make_adapter(handler)
    chunks = []
    text = await adapter.send_turn_stream("hello", chunks.append)
    assert captured["payload"]["stream"] is True
    assert chunks == ["Hel", "lo"]
    assert text == "Hello"
    assert adapter.history()[-1].text == "Hello"


@pytest.mark.asyncio
async def test_list_models_current_shape():
    def handler(request):
        assert str(request.url) == "https://api.anthropic.com/v1/models"
        assert request.headers["x-api-key"] == API_KEY
        return httpx.Response(
            200,
            json={
                "data": [
                    {
                        "type": "model",
                        "id": "claude-3-5-sonnet-20241022",
                        "display_name": "Claude 3.5 Sonnet",
                        "created_at": "2024-10-22T00:00:00Z",
                    }
                ],
                "has_more": False,
            },
        )

    models = await make_adapter(handler).list_models()
    assert len(models) == 1
    assert models[0].name == "claude-3-5-sonnet-20241022"
    assert models[0].display_name == "Claude 3.5 Sonnet"
    assert models[0].created == "2024-10-22T00:00:00Z"


@pytest.mark.asyncio
async def test_list_models_legacy_shape():
    body = {
        "models": [
            {
                "name": "claude-3-opus-20240229",
                "description": "Most capable model",
                "context_window": 200000,
                "max_tokens": 4096,
                "supports_tool_use": True,
            }
        ]
    }
    models = await make_adapter(lambda request: httpx.Response(200, json=body)).list_models()
    assert models[0].name == "claude-3-opus-20240229"
    assert models[0].context_window == 200000
    assert models[0].max_output_tokens == 4096
    assert models[0].capabilities == ("tool_use",)
