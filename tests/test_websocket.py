import pytest
from starlette.websockets import WebSocketDisconnect

ORIGIN = {"origin": "http://localhost:3000"}


def _start(client):
    resp = client.post("/api/agent", json={"query": "Build a 2D puzzle game with scoring"})
    assert resp.status_code == 200


def test_bad_origin_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/api/agent/agent-1/ws", headers={"origin": "https://evil.example"}):
            pass
    assert exc.value.code == 1008


def test_missing_origin_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/api/agent/agent-1/ws"):
            pass
    assert exc.value.code == 1008


def test_unknown_agent_gets_error_then_1011(client):
    with client.websocket_connect("/api/agent/ghost/ws", headers=ORIGIN) as ws:
        message = ws.receive_json()
        assert message == {"type": "error", "error": "Failed to get agent instance: Agent ghost not found"}
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_json()
    assert exc.value.code == 1011


def test_connected_agent_serves_messages(client):
    _start(client)
    with client.websocket_connect("/api/agent/agent-1/ws", headers=ORIGIN) as ws:
        hello = ws.receive_json()
        assert hello["type"] == "agent_connected"
        assert hello["state"]["sessionId"] == "agent-1"

        ws.send_json({"type": "get_state"})
        state = ws.receive_json()
        assert state["type"] == "agent_state"
        assert state["state"]["blueprint"].startswith("# Puzzle game")

        ws.send_json({"type": "user_suggestion", "message": "Add a timer"})
        assert ws.receive_json() == {"type": "user_suggestion_queued", "pending": 1}

        ws.send_json({"type": "client_error", "message": "TypeError: x is undefined"})
        assert ws.receive_json() == {"type": "client_error_recorded", "count": 1}

        ws.send_json({"type": "dance"})
        assert ws.receive_json() == {"type": "error", "error": "Unknown message type: dance"}

        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "error": "Invalid JSON message"}

    state = client.get("/api/agent/agent-1").json()
    assert state["pendingUserInputs"] == ["Add a timer"]
    assert state["clientReportedErrors"][0]["message"] == "TypeError: x is undefined"


def test_agent_in_other_jurisdiction_reached_through_fallback(client, registry):
    import asyncio

    from src.forge.domain.agent_models import CodeGenState, Jurisdiction

    actor = registry.get(registry.id_from_name("eu-agent"), jurisdiction=Jurisdiction.EU)
    asyncio.run(actor.set_state(CodeGenState(session_id="eu-agent", query="Recipe app")))

    with client.websocket_connect("/api/agent/eu-agent/ws", headers=ORIGIN) as ws:
        hello = ws.receive_json()
        assert hello["type"] == "agent_connected"
        assert hello["state"]["query"] == "Recipe app"
