"""
Server Tests — pointer translation, frame serialization and the WebSocket endpoint.
The tick loop is not started here: TestClient is used without its lifespan context.
"""

import sys
import os
import json
import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import server
from controller import GameState


@pytest.fixture(autouse=True)
def fresh_controller():
    server.ctrl.restart()
    server.ctrl.pending_events.clear()
    yield server.ctrl
    server.ctrl.restart()


class TestPointer:

    def test_centres_paddle_on_pointer(self):
        x = server._translate_pointer({"client_x": 300, "rect_left": 20, "scroll_left": 0})
        assert x == 230.0

    @pytest.mark.parametrize("client_x, expected", [(5, 0.0), (2000, 700.0)])
    def test_clamped_to_surface(self, client_x, expected):
        assert server._translate_pointer({"client_x": client_x, "rect_left": 0}) == expected

    def test_scroll_offset_subtracted(self):
        x = server._translate_pointer({"client_x": 400, "rect_left": 0, "scroll_left": 100})
        assert x == 250.0


class TestFrameMessage:

    def test_frame_contents(self, fresh_controller):
        fresh_controller.tick()
        frame = json.loads(server._build_frame_message())
        assert frame["type"] == "frame"
        assert frame["state"] == "RUNNING"
        assert frame["tick"] == 1
        assert frame["ball"]["pos"] == [393.0, 295.0]
        assert frame["bricks_left"] == len(frame["bricks"])
        assert {"type": "state_changed", "state": "RUNNING"} in frame["events"]

    def test_events_drained(self, fresh_controller):
        fresh_controller.tick()
        server._build_frame_message()
        assert fresh_controller.pending_events == []
        frame = json.loads(server._build_frame_message())
        assert frame["events"] == []

    def test_terminal_state_message(self, fresh_controller):
        fresh_controller.finish(GameState.LOSE, "Game over")
        frame = json.loads(server._build_frame_message())
        assert frame["state"] == "LOSE"
        assert frame["status"] == "Game over"

    def test_no_sounds_after_finish(self, fresh_controller):
        fresh_controller.execute_command(json.dumps(
            {"cmd": "set", "ball": {"pos": [788.0, 400.0], "vel": [3.0, 0.0]}}))
        fresh_controller.tick()
        assert json.loads(server._build_frame_message())["sounds"] == [{"type": "wall", "speed": 3.0}]
        fresh_controller.finish(GameState.WIN)
        fresh_controller.tick()
        assert json.loads(server._build_frame_message())["sounds"] == []

    def test_init_message(self):
        msg = json.loads(server._build_init_message())
        assert msg["type"] == "init"
        assert msg["columns"] == server.ctrl.config.columns_per_row
        assert msg["tick_rate"] == server.ctrl.TICK_RATE


class TestWebSocket:

    def test_init_sent_first(self):
        client = TestClient(server.app)
        with client.websocket_connect("/ws") as ws:
            msg = json.loads(ws.receive_text())
        assert msg["type"] == "init"
        assert msg["variant"] == server.VARIANT

    def test_pointer_moves_paddle(self):
        client = TestClient(server.app)
        with client.websocket_connect("/ws") as ws:
            ws.receive_text()
            ws.send_text(json.dumps({"cmd": "pointer", "client_x": 160, "rect_left": 10}))
            ws.send_text(json.dumps({"cmd": "get_state"}))
            reply = json.loads(ws.receive_text())
        assert reply["type"] == "state_json"
        assert json.loads(reply["data"])["paddle"]["x"] == 100.0

    def test_restart_key(self, fresh_controller):
        fresh_controller.tick()
        client = TestClient(server.app)
        with client.websocket_connect("/ws") as ws:
            ws.receive_text()
            ws.send_text(json.dumps({"cmd": "key_down", "key": "r"}))
            ws.send_text(json.dumps({"cmd": "list_scripts"}))
            reply = json.loads(ws.receive_text())
        assert reply["type"] == "scripts"
        assert fresh_controller.state == GameState.INIT

    def test_root_serves_page(self):
        client = TestClient(server.app)
        resp = client.get("/")
        assert resp.status_code == 200
        assert "<canvas" in resp.text
