"""Tests for the chat WebSocket endpoint."""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import FakeModel, token

FINAL_EVENTS = {"sealed", "aborted", "failed"}


def _receive_until_final(ws) -> list[dict]:
    frames = []
    while True:
        frame = ws.receive_json()
        frames.append(frame)
        if frame["type"] in FINAL_EVENTS:
            return frames


def test_websocket_streams_a_reply(chat_app, fake_model: FakeModel) -> None:
    fake_model.reply(token("Hel"), token("lo"))

    with TestClient(chat_app) as client:
        with client.websocket_connect("/ws/chat") as ws:
            connected = ws.receive_json()
            assert connected["type"] == "status"
            assert connected["content"] == "Connected"

            ws.send_json({"type": "text", "content": "Say hello"})
            frames = _receive_until_final(ws)

    assert [f["type"] for f in frames] == ["user", "token", "token", "sealed"]
    assert frames[0]["message"]["content"] == "Say hello"
    assert [f["content"] for f in frames[1:3]] == ["Hel", "lo"]
    sealed = frames[-1]
    assert sealed["message"]["content"] == "Hello"
    assert sealed["message_id"] == frames[1]["message_id"]
    assert sealed["session_id"] == connected["session_id"]


def test_websocket_cancel_interrupts_reply(chat_app, fake_model: FakeModel) -> None:
    fake_model.reply(token("Hel"), hang=True)

    with TestClient(chat_app) as client:
        with client.websocket_connect("/ws/chat") as ws:
            ws.receive_json()
            ws.send_json({"type": "text", "content": "Greet me"})
            assert ws.receive_json()["type"] == "user"
            assert ws.receive_json()["content"] == "Hel"

            ws.send_json({"type": "cancel"})
            frames = _receive_until_final(ws)
            if not any(f["type"] == "status" for f in frames):
                frames.append(ws.receive_json())

    by_type = {f["type"]: f for f in frames}
    assert by_type["status"]["content"] == "Cancelling"
    assert by_type["aborted"]["message"]["content"] == "Hel"


def test_websocket_rejects_bad_input(chat_app) -> None:
    with TestClient(chat_app) as client:
        with client.websocket_connect("/ws/chat") as ws:
            ws.receive_json()

            ws.send_text("not json")
            invalid = ws.receive_json()
            assert (invalid["type"], invalid["content"]) == ("error", "Invalid JSON")

            ws.send_json({"type": "text", "content": "   "})
            empty = ws.receive_json()
            assert (empty["type"], empty["content"]) == ("error", "Empty or unsupported message")

            ws.send_json({"type": "cancel"})
            idle = ws.receive_json()
            assert (idle["type"], idle["content"]) == ("status", "Nothing to cancel")


def test_websocket_unknown_session(chat_app) -> None:
    with TestClient(chat_app) as client:
        with client.websocket_connect("/ws/chat?session_id=missing") as ws:
            error = ws.receive_json()
            assert error["type"] == "error"
            assert error["content"] == "Session not found"
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()
