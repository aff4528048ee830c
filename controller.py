"""
BreakoutController — Layer 2 (Game Logic)

Owns the ball, paddle, brick grid and physics engine for one session and
runs the round/game state machine on top of them.
Communicates with Layer 3 (server.py / browser renderer) via two queues:
  - pending_events  : rendering commands (reset_bricks, brick_destroyed, …)
  - physics_events  : collision events of the last tick, for sounds

Layer 3 calls:
  ctrl.tick()                 — one simulation tick, once per logical frame
  ctrl.move_paddle(x)         — input sink (already clamped by the caller)
  ctrl.pending_events         — list of dicts to consume and act on
  ctrl.physics_events         — list of collision dicts for sounds
  ctrl.<state properties>     — read-only references to ball, paddle, grid, state
"""

import enum
import csv
import json
import os
from pathlib import Path
import numpy as np

from physics import PhysicsEngine, Ball, Paddle, BrickGrid, GameConfig


# ── Fast state copies (used by simulate) ──────────────────────────────────────
def _copy_ball(b: Ball) -> Ball:
    return Ball(position=b.position.copy(), velocity=b.velocity.copy(),
                radius=b.radius, color=b.color)


def _copy_paddle(p: Paddle) -> Paddle:
    return Paddle(x=p.x, y=p.y, width=p.width, height=p.height, color=p.color)


def _copy_grid(g: BrickGrid) -> BrickGrid:
    ng = BrickGrid(g.rows, g.columns, g.reset_offset_rows, g.brick_width, g.brick_height)
    ng.cells = g.cells.copy()
    ng.bricks_left = g.bricks_left
    return ng


# ── Default info-bar message ───────────────────────────────────────────────────
DEFAULT_INFO_MSG = "Move the mouse to steer the paddle  [R] Restart"


class GameState(enum.Enum):
    INIT = 0
    RUNNING = 1
    WIN = 2
    LOSE = 3


class BreakoutController:
    """Layer 2: round/game state machine + physics orchestration."""

    # ── Class-level constants ─────────────────────────────────────────────────
    TICK_RATE = 60          # logical ticks per second; velocities are per tick

    TERMINAL_STATES = (GameState.WIN, GameState.LOSE)

    # ── Constructor ───────────────────────────────────────────────────────────

    def __init__(self, config: GameConfig | None = None, variant: str = ""):
        self.config  = (config or GameConfig()).validate()
        self.variant = variant

        # Physics (created once, mutated in place every tick)
        self.engine = PhysicsEngine(self.config)
        self.ball   = self.engine.make_ball()
        self.paddle = self.engine.make_paddle()
        self.grid   = BrickGrid.from_config(self.config)   # populated on Init -> Running

        # Game state
        self.state      = GameState.INIT
        self.tick_count = 0
        self.round      = 1
        self.floor_hits = 0

        # Script state
        self._last_script_path = ""
        self._last_script: dict = {}

        # Session recording
        self._session_recording = False
        self._session_rows: list = []
        self._session_header: list = []
        self._session_file = ""

        # Status / info messages (L3 reads these to update text)
        self.status_msg = ""
        self.info_msg   = DEFAULT_INFO_MSG

        # Event queues
        self.pending_events: list[dict] = []   # L3 rendering commands
        self.physics_events: list[dict] = []   # collision sounds

    # ──────────────────────────────────────────────────────────────────────────
    # State machine
    # ──────────────────────────────────────────────────────────────────────────

    def tick(self) -> None:
        """Advance one tick. Called once per logical frame by L3."""
        if self.state == GameState.INIT:
            self.start()
        if self.state != GameState.RUNNING:
            return

        self.physics_events.clear()
        self.engine.update(self.ball, self.paddle, self.grid)
        for ev in self.engine.events:
            self.physics_events.append(ev)
            self._on_physics_event(ev)

        self.tick_count += 1
        if self._session_recording:
            self._session_record_frame()

    def start(self) -> None:
        """Init -> Running: centre the ball and fill the brick grid."""
        if self.state != GameState.INIT:
            return
        self.engine.reset_ball(self.ball)
        self.grid.reset()
        self.pending_events.append({"type": "reset_bricks", "reason": "init",
                                    "bricks_left": self.grid.bricks_left})
        self._set_state(GameState.RUNNING)
        self.status_msg = f"Round {self.round}"

    def finish(self, state: GameState, message: str = "") -> None:
        """Enter a terminal state. Nothing in the tick cycle calls this."""
        if state not in self.TERMINAL_STATES:
            raise ValueError(f"finish: {state} is not a terminal state")
        if self.state in self.TERMINAL_STATES:
            return
        self._set_state(state)
        self.physics_events.clear()
        if self._session_recording:
            self.stop_recording()
        self.status_msg = message or ("You win!" if state == GameState.WIN else "Game over")

    def restart(self) -> None:
        """Rebuild ball, paddle and grid and go back to Init."""
        if self._session_recording:
            self.stop_recording()
        self.ball   = self.engine.make_ball()
        self.paddle = self.engine.make_paddle()
        self.grid   = BrickGrid.from_config(self.config)
        self.tick_count = 0
        self.round      = 1
        self.floor_hits = 0
        self.physics_events.clear()
        self._set_state(GameState.INIT)
        self.status_msg = ""

    def _set_state(self, state: GameState) -> None:
        if state == self.state:
            return
        print(f"[GAME] {self.state.name} -> {state.name}  tick={self.tick_count}")
        self.state = state
        self.pending_events.append({"type": "state_changed", "state": state.name})

    def _on_physics_event(self, ev: dict) -> None:
        kind = ev["type"]
        if kind == "brick":
            self.pending_events.append({
                "type": "brick_destroyed",
                "index": int(ev["row"]) * self.grid.columns + int(ev["col"]),
                "bricks_left": ev["bricks_left"],
            })
        elif kind == "floor":
            self.floor_hits += 1
            self.pending_events.append({"type": "ball_reset"})
        elif kind == "reset_bricks":
            self.pending_events.append(dict(ev))
            if ev["reason"] == "round" and ev["bricks_left"] > 0:
                self.round += 1
                self.status_msg = f"Round {self.round}"
                self.pending_events.append({"type": "round_cleared", "round": self.round})
                print(f"[GAME] wall cleared, starting round {self.round}")

    # ──────────────────────────────────────────────────────────────────────────
    # Input
    # ──────────────────────────────────────────────────────────────────────────

    def move_paddle(self, x: float, y: float | None = None) -> None:
        """Set the paddle position. The caller keeps x inside the surface."""
        self.paddle.x = float(x)
        if y is not None:
            self.paddle.y = float(y)

    # ──────────────────────────────────────────────────────────────────────────
    # State snapshot / command panel
    # ──────────────────────────────────────────────────────────────────────────

    def get_state_json(self) -> str:
        """Return current state as a compact single-line set-command JSON."""
        destroyed = [int(i) for i in np.flatnonzero(~self.grid.cells)]
        payload = {
            "cmd": "set",
            "ball": {
                "pos": [round(self.ball.x, 4), round(self.ball.y, 4)],
                "vel": [round(self.ball.vx, 4), round(self.ball.vy, 4)],
            },
            "paddle": {"x": round(self.paddle.x, 4), "y": round(self.paddle.y, 4)},
            "bricks": {"destroyed": destroyed},
        }
        return json.dumps(payload, separators=(',', ':'))

    def execute_command(self, text: str) -> None:
        """Parse a JSON command string and dispatch to handlers."""
        if not text:
            print("[CMD] execute_command: empty text")
            return
        text = text.replace('\r', '')
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            print(f"[CMD] JSON parse error: {exc}")
            self.status_msg = f"JSON error: {exc}"
            return
        if not isinstance(data, dict):
            self.status_msg = "Command must be a JSON object."
            return
        cmd = str(data.get("cmd", "")).lower().strip()
        print(f"[CMD] cmd={cmd}")
        if cmd == "set":
            try:
                self._cmd_set(data)
            except (TypeError, ValueError, AttributeError, IndexError) as exc:
                print(f"[CMD] set rejected: {exc}")
                self.status_msg = f"set error: {exc}"
        elif cmd == "record":
            self._cmd_record(data)
        elif cmd == "restart":
            self.restart()
        else:
            self.status_msg = f"Unknown cmd '{cmd}'. Use set/record/restart."

    def _cmd_set(self, data: dict) -> None:
        """set: place the ball and paddle and/or rebuild the brick grid.

        Every field is parsed before anything is applied, so a malformed
        command leaves the session untouched and raises ValueError/TypeError.
        """
        ball_data   = self._as_dict(data.get("ball"), "ball")
        paddle_data = self._as_dict(data.get("paddle"), "paddle")
        pos = self._vec2(ball_data["pos"], "ball.pos") if "pos" in ball_data else None
        vel = self._vec2(ball_data["vel"], "ball.vel") if "vel" in ball_data else None
        paddle_x = float(paddle_data["x"]) if "x" in paddle_data else None
        paddle_y = paddle_data.get("y")
        if paddle_y is not None:
            paddle_y = float(paddle_y)
        bricks = data.get("bricks")
        cells = self._parse_destroyed(bricks) if bricks is not None else None

        if self.state == GameState.INIT:
            self.start()
        if pos is not None:
            self.ball.position = pos
        if vel is not None:
            self.ball.velocity = vel
        if paddle_x is not None:
            self.move_paddle(paddle_x, paddle_y)
        if cells is not None:
            self._apply_bricks(cells)

        self.status_msg = f"set: bricks_left={self.grid.bricks_left}"

    @staticmethod
    def _as_dict(value, name: str) -> dict:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise TypeError(f"'{name}' must be an object")
        return value

    @staticmethod
    def _vec2(value, name: str) -> np.ndarray:
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise ValueError(f"'{name}' must be a list of two numbers")
        vec = np.array([float(v) for v in value])
        if not np.all(np.isfinite(vec)):
            raise ValueError(f"'{name}' must be finite")
        return vec

    def _parse_destroyed(self, bricks) -> list:
        destroyed = self._as_dict(bricks, "bricks").get("destroyed", [])
        if not isinstance(destroyed, (list, tuple)):
            raise TypeError("'bricks.destroyed' must be a list")
        cells = []
        for item in destroyed:
            if isinstance(item, (list, tuple)):
                if len(item) != 2:
                    raise ValueError("brick cells are [col, row] pairs")
                cells.append((int(item[0]), int(item[1])))
            else:
                row, col = divmod(int(item), self.grid.columns or 1)
                cells.append((col, row))
        return cells

    def _apply_bricks(self, cells: list) -> None:
        """Reset the grid, then destroy the listed cells through the counter-keeping path."""
        self.grid.reset()
        for col, row in cells:
            self.grid.destroy(col, row)
        self.pending_events.append({"type": "reset_bricks", "reason": "set",
                                    "bricks_left": self.grid.bricks_left})

    def _cmd_record(self, data: dict) -> None:
        if data.get("on", True):
            target = data.get("file")
            self.start_recording(str(target) if target else None)
        else:
            self.stop_recording()

    # ──────────────────────────────────────────────────────────────────────────
    # Script system
    # ──────────────────────────────────────────────────────────────────────────

    def collect_script_files(self) -> list:
        """Return sorted list of .py files from scripts/ dir + serve_script.py."""
        files = []
        scripts_dir = Path("scripts")
        if scripts_dir.is_dir():
            files.extend(sorted(scripts_dir.glob("*.py")))
        local = Path("serve_script.py")
        if local.exists():
            files.insert(0, local)
        return files

    def execute_script(self, script: dict) -> None:
        """Restart and apply a serve-script ``setup`` dict (same shape as ``set``)."""
        self._last_script = script
        self.restart()
        self.start()
        setup = script.get("setup", {})
        try:
            self._cmd_set(setup)
        except (TypeError, ValueError, AttributeError, IndexError) as exc:
            print(f"[SCRIPT] bad setup: {exc}")
            self.status_msg = f"Script error: {exc}"
            return
        self.status_msg = f"Script: {script.get('label', 'serve')}"
        print(f"[SCRIPT] {self.status_msg}  bricks_left={self.grid.bricks_left}")

    def load_script_file(self, path: str) -> None:
        """Load and execute a serve script from a .py file."""
        import importlib.util
        abs_path = os.path.abspath(path)
        if not os.path.exists(abs_path):
            self.status_msg = f"Script not found: {abs_path}"
            return
        spec = importlib.util.spec_from_file_location("_user_serve_script", abs_path)
        mod  = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(mod)
        except Exception as exc:
            print(f"[SCRIPT] load failed: {exc}")
            self.status_msg = f"Script error: {exc}"
            return
        script = getattr(mod, "SCRIPT", None)
        if script is None:
            self.status_msg = f"No SCRIPT variable in {os.path.basename(abs_path)}"
            return
        self._last_script_path = abs_path
        self.execute_script(script)

    def reload_script(self) -> None:
        """Re-execute the last loaded script."""
        if self._last_script_path:
            self.load_script_file(self._last_script_path)
        elif self._last_script:
            self.execute_script(self._last_script)
        else:
            self.status_msg = (
                "No script loaded yet.  "
                "Create serve_script.py or call load_script_file(path)."
            )

    # ──────────────────────────────────────────────────────────────────────────
    # Session recording
    # ──────────────────────────────────────────────────────────────────────────

    _SESSION_HEADER = ["tick", "state", "ball_x", "ball_y", "ball_vx", "ball_vy",
                       "paddle_x", "bricks_left", "round"]

    def start_recording(self, path: str | None = None) -> str:
        if self._session_recording:
            self.stop_recording()
        if path is None:
            from datetime import datetime
            path = datetime.now().strftime("%H%M%S") + "_session.csv"
        elif not path.endswith(".csv"):
            path += ".csv"
        self._session_recording = True
        self._session_rows      = []
        self._session_header    = list(self._SESSION_HEADER)
        self._session_file      = path
        print(f"[REC] Recording started → {path}")
        return path

    def stop_recording(self) -> None:
        if not self._session_recording:
            return
        saved = self._session_file
        self._session_write_csv()
        self.pending_events.append({"type": "session_saved", "file": saved})

    def _session_record_frame(self) -> None:
        b = self.ball
        self._session_rows.append([
            self.tick_count, self.state.name,
            f"{b.x:.4f}", f"{b.y:.4f}", f"{b.vx:.4f}", f"{b.vy:.4f}",
            f"{self.paddle.x:.4f}", self.grid.bricks_left, self.round,
        ])

    def _session_write_csv(self) -> None:
        path = self._session_file
        try:
            with open(path, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow(self._session_header)
                writer.writerows(self._session_rows)
            print(f"[REC] Saved {len(self._session_rows)} ticks → {path}")
        except OSError as e:
            print(f"[REC] Write failed: {e}")
            self.status_msg = f"Recording not saved: {e}"
        self._session_recording = False
        self._session_rows.clear()
        self._session_header = []
        self._session_file   = ""

    # ──────────────────────────────────────────────────────────────────────────
    # Headless API
    # ──────────────────────────────────────────────────────────────────────────

    def get_obs(self) -> np.ndarray:
        """Flat float32 observation: [ball x, y, vx, vy, paddle x, bricks_left, *cells]."""
        return self._make_obs(self.ball, self.paddle, self.grid)

    @staticmethod
    def _make_obs(ball: Ball, paddle: Paddle, grid: BrickGrid) -> np.ndarray:
        head = np.array([ball.x, ball.y, ball.vx, ball.vy, paddle.x, grid.bricks_left],
                        dtype=np.float32)
        return np.concatenate([head, grid.cells.astype(np.float32)])

    def reset(self) -> np.ndarray:
        """Restart, enter Running and return the first observation."""
        self.restart()
        self.start()
        return self.get_obs()

    def simulate(self, ticks: int, paddle_x: float | None = None) -> dict:
        """Run ``ticks`` ticks on copies of the current state.

        Non-destructive: ball, paddle and grid of the controller are left
        as they are. ``paddle_x`` optionally holds the paddle at a fixed x.

        Returns:
            ``dict`` with the final ``obs``, ``bricks_destroyed``,
            ``paddle_hits``, ``floor_hits``, ``rounds_cleared`` and the
            final ``ball`` as ``{"pos": [x, y], "vel": [vx, vy]}``.
        """
        ball   = _copy_ball(self.ball)
        paddle = _copy_paddle(self.paddle)
        grid   = _copy_grid(self.grid)
        if grid.rows and grid.bricks_left == 0 and self.state == GameState.INIT:
            grid.reset()
        if paddle_x is not None:
            paddle.x = float(paddle_x)

        engine = PhysicsEngine(self.config, self.engine.brick_resolver)
        counts = {"brick": 0, "paddle": 0, "floor": 0, "round": 0}
        for _ in range(ticks):
            engine.update(ball, paddle, grid)
            for ev in engine.events:
                if ev["type"] in counts:
                    counts[ev["type"]] += 1
                elif ev["type"] == "reset_bricks" and ev["reason"] == "round" and ev["bricks_left"] > 0:
                    counts["round"] += 1

        return {
            "obs":              self._make_obs(ball, paddle, grid),
            "bricks_destroyed": counts["brick"],
            "paddle_hits":      counts["paddle"],
            "floor_hits":       counts["floor"],
            "rounds_cleared":   counts["round"],
            "bricks_left":      grid.bricks_left,
            "ball": {"pos": [ball.x, ball.y], "vel": [ball.vx, ball.vy]},
        }
