"""
Server adapter tests — HTTP snapshot, WebSocket handshake and command dispatch.
"""

import sys
import os
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from fastapi.testclient import TestClient

import server


@pytest.fixture(autouse=True)
def fresh_rack():
    server.ctrl.reset()
    server.ctrl.pending_events.clear()
    yield
    server.ctrl.reset()


class TestHandleCommand:

    def test_get_state(self):
        reply = server.handle_command({"cmd": "get_state"})
        assert reply["type"] == "state"
        assert len(reply["data"]["balls"]) == 16

    def test_shoot_ack(self):
        reply = server.handle_command({"cmd": "shoot", "angle": 0.0, "power": 40})
        assert reply == {"type": "ack", "cmd": "shoot", "ok": True}
        assert server.ctrl.mode == "running"
        again = server.handle_command({"cmd": "shoot", "angle": 0.0, "power": 40})
        assert again["ok"] is False

    def test_place_cue_ball_refused_without_scratch(self):
        reply = server.handle_command({"cmd": "place_cue_ball", "x": 150, "y": 150})
        assert reply["ok"] is False

    def test_unknown_preset(self):
        reply = server.handle_command({"cmd": "preset", "name": "nope"})
        assert reply["ok"] is False

    def test_preset_loads_position(self):
        assert server.handle_command({"cmd": "preset", "name": "corner"}) is None
        assert list(server.ctrl.ball(3).position) == [60.0, 60.0]

    def test_unknown_command_ignored(self):
        assert server.handle_command({"cmd": "jump"}) is None

    def test_missing_coordinates_raise(self):
        with pytest.raises(KeyError):
            server.handle_command({"cmd": "pointer_down"})

    def test_frame_message_drains_events(self):
        server.handle_command({"cmd": "shoot", "angle": 0.0, "power": 40})
        frame = server._build_frame_message()
        assert '"type":"frame"' in frame
        assert '"cue_hit"' in frame
        assert server.ctrl.pending_events == []


class TestEndpoints:

    def test_state_endpoint(self):
        with TestClient(server.app) as client:
            resp = client.get("/state")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["balls"]) == 16
        assert data["state"]["current_player"] == 1

    def test_websocket_session(self):
        with TestClient(server.app) as client:
            with client.websocket_connect("/ws") as ws:
                init = ws.receive_json()
                assert init["type"] == "init"
                assert len(init["balls"]) == 16

                ws.send_text("not json")
                ws.send_json({"cmd": "get_state"})
                # Frames from the loop may interleave with the reply
                for _ in range(200):
                    msg = ws.receive_json()
                    if msg["type"] == "state":
                        break
                assert msg["type"] == "state"
                assert msg["data"]["mode"] == "idle"
