"""Tests for the NDJSON line buffer and the streaming model client."""

import json

import httpx
import pytest

from conftest import FakeModel, ndjson, refuse_connection, token, tool_call
from omnibot.llm.ndjson import NDJSONLineBuffer
from omnibot.llm.stream_client import (
    ModelConnectionError,
    ModelStreamClient,
    ModelStreamError,
    parse_tool_calls,
)


def test_record_split_across_reads() -> None:
    buffer = NDJSONLineBuffer()
    assert list(buffer.feed(b'{"message": {"content": "Hel')) == []
    assert buffer.pending == b'{"message": {"content": "Hel'

    records = list(buffer.feed(b'lo"}}\n{"done": true}\n'))
    assert records == [{"message": {"content": "Hello"}}, {"done": True}]
    assert buffer.pending == b""


def test_multibyte_character_split_across_reads() -> None:
    encoded = json.dumps({"content": "café"}, ensure_ascii=False).encode("utf-8") + b"\n"
    split = encoded.index(b"\xc3") + 1
    buffer = NDJSONLineBuffer()
    records = list(buffer.feed(encoded[:split])) + list(buffer.feed(encoded[split:]))
    assert records == [{"content": "café"}]


def test_malformed_lines_are_skipped() -> None:
    buffer = NDJSONLineBuffer()
    records = list(buffer.feed(b'{"a": 1}\nnot json\n[1, 2]\n\n{"b": 2}\n'))
    assert records == [{"a": 1}, {"b": 2}]
    assert buffer.skipped == 2


def test_flush_parses_unterminated_last_line() -> None:
    buffer = NDJSONLineBuffer()
    assert list(buffer.feed(b'{"a": 1}\n{"b": 2}')) == [{"a": 1}]
    assert list(buffer.flush()) == [{"b": 2}]
    assert list(buffer.flush()) == []


def test_parse_tool_calls_accepts_both_argument_styles() -> None:
    calls = parse_tool_calls(
        [
            {"function": {"name": "calculate", "arguments": {"expression": "1+1"}}},
            {"id": "call_7", "function": {"name": "retrieve_documents", "arguments": '{"query": "tax"}'}},
            {"function": {"arguments": {}}},
            "garbage",
        ]
    )
    assert [(c.name, c.args) for c in calls] == [
        ("calculate", {"expression": "1+1"}),
        ("retrieve_documents", {"query": "tax"}),
    ]
    assert calls[1].id == "call_7"
    assert calls[0].id.startswith("call_")


async def _collect(client: ModelStreamClient, **kwargs):
    return [event async for event in client.stream_chat([{"role": "user", "content": "hi"}], **kwargs)]


@pytest.mark.asyncio
async def test_stream_chat_yields_tokens_in_order(fake_model: FakeModel) -> None:
    fake_model.reply(token("Hel"), token("lo "), token("world"), {"done": True}, chunk_size=5)
    client = ModelStreamClient("http://model", "test-model", transport=fake_model.transport)

    events = await _collect(client)

    assert "".join(e.text for e in events) == "Hello world"
    assert fake_model.payloads[0]["stream"] is True
    assert fake_model.payloads[0]["model"] == "test-model"
    assert "tools" not in fake_model.payloads[0]


@pytest.mark.asyncio
async def test_stream_chat_sends_tools_and_parses_calls(fake_model: FakeModel) -> None:
    fake_model.reply(tool_call("calculate", expression="6 * 7"))
    client = ModelStreamClient("http://model", "test-model", transport=fake_model.transport)
    schema = {"type": "function", "function": {"name": "calculate"}}

    events = await _collect(client, tools=[schema])

    assert fake_model.payloads[0]["tools"] == [schema]
    assert len(events) == 1
    assert events[0].tool_calls[0].name == "calculate"
    assert events[0].tool_calls[0].args == {"expression": "6 * 7"}


@pytest.mark.asyncio
async def test_stream_chat_skips_malformed_lines(fake_model: FakeModel) -> None:
    fake_model.reply_raw(ndjson(token("A")), b"{broken\n", ndjson(token("B")))
    client = ModelStreamClient("http://model", "m", transport=fake_model.transport)

    events = await _collect(client)

    assert [e.text for e in events] == ["A", "B"]


@pytest.mark.asyncio
async def test_stream_chat_connection_refused() -> None:
    client = ModelStreamClient("http://model", "m", transport=httpx.MockTransport(refuse_connection))
    with pytest.raises(ModelConnectionError):
        await _collect(client)


@pytest.mark.asyncio
async def test_stream_chat_error_status(fake_model: FakeModel) -> None:
    fake_model.reply({"error": "model not found"}, status=404)
    client = ModelStreamClient("http://model", "m", transport=fake_model.transport)
    with pytest.raises(ModelConnectionError, match="404"):
        await _collect(client)


@pytest.mark.asyncio
async def test_stream_chat_error_record(fake_model: FakeModel) -> None:
    fake_model.reply(token("par"), {"error": "out of memory"})
    client = ModelStreamClient("http://model", "m", transport=fake_model.transport)

    received = []
    with pytest.raises(ModelStreamError, match="out of memory"):
        async for event in client.stream_chat([]):
            received.append(event.text)
    assert received == ["par"]
