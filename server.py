"""
Breakout Web Server — Layer 3 (FastAPI + WebSocket)

Serves the canvas frontend and runs the fixed-rate tick loop,
communicating game state to browser clients over WebSocket.
"""

import argparse
import asyncio
import json
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from controller import BreakoutController
from variants import DEFAULT_VARIANT, VARIANTS, load_variant

# ── Controller ──────────────────────────────────────────────────────────────

VARIANT = os.environ.get("BREAKOUT_VARIANT", DEFAULT_VARIANT)
ctrl = BreakoutController(load_variant(VARIANT), variant=VARIANT)


# ── Lifespan (startup/shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    print(f"[SERVER] variant={VARIANT}  tick_rate={ctrl.TICK_RATE}")
    task = asyncio.create_task(game_loop())
    yield
    task.cancel()


app = FastAPI(lifespan=lifespan)

# ── Client state ────────────────────────────────────────────────────────────

clients: list[WebSocket] = []

# ── Async game loop ─────────────────────────────────────────────────────────

TICK_DT = 1.0 / ctrl.TICK_RATE
MAX_CATCHUP_TICKS = 5     # ticks per loop pass before dropping time


async def game_loop():
    """Fixed-rate tick loop: logical ticks are decoupled from loop jitter."""
    accumulator = 0.0
    last_time = time.perf_counter()

    while True:
        now = time.perf_counter()
        accumulator += now - last_time
        last_time = now

        # 1. Simulation ticks
        ticks = 0
        while accumulator >= TICK_DT and ticks < MAX_CATCHUP_TICKS:
            ctrl.tick()
            accumulator -= TICK_DT
            ticks += 1
        if ticks == MAX_CATCHUP_TICKS:
            accumulator = 0.0

        # 2. Build frame message and broadcast
        if clients and ticks:
            frame_msg = _build_frame_message()
            dead: list[WebSocket] = []
            for ws in clients:
                try:
                    await ws.send_text(frame_msg)
                except Exception:
                    dead.append(ws)
            for ws in dead:
                if ws in clients:
                    clients.remove(ws)
        elif ticks:
            ctrl.pending_events.clear()

        # Sleep until the next tick is due
        elapsed = time.perf_counter() - now
        sleep_time = TICK_DT - elapsed
        if sleep_time > 0:
            await asyncio.sleep(sleep_time)
        else:
            await asyncio.sleep(0)


def _build_frame_message() -> str:
    """Serialize current state into a JSON frame message."""
    b = ctrl.ball
    p = ctrl.paddle

    events = list(ctrl.pending_events)
    ctrl.pending_events.clear()

    sounds = []
    for ev in ctrl.physics_events:
        sounds.append({
            "type": ev.get("type", ""),
            "speed": round(float(ev.get("speed", 0.0)), 3),
        })

    frame = {
        "type": "frame",
        "tick": ctrl.tick_count,
        "state": ctrl.state.name,
        "ball": {
            "pos": [round(b.x, 3), round(b.y, 3)],
            "radius": b.radius,
            "color": b.color.value,
        },
        "paddle": {
            "x": round(p.x, 3), "y": round(p.y, 3),
            "width": p.width, "height": p.height,
            "color": p.color.value,
        },
        "bricks": ctrl.grid.alive_indices(),
        "bricks_left": ctrl.grid.bricks_left,
        "round": ctrl.round,
        "events": events,
        "sounds": sounds,
        "status": ctrl.status_msg,
        "info": ctrl.info_msg,
    }
    return json.dumps(frame, separators=(',', ':'))


def _build_init_message() -> str:
    c = ctrl.config
    return json.dumps({
        "type": "init",
        "variant": ctrl.variant,
        "surface_width": c.surface_width,
        "surface_height": c.surface_height,
        "brick_width": c.brick_width,
        "brick_height": c.brick_height,
        "brick_rows": c.brick_rows,
        "columns": c.columns_per_row,
        "tick_rate": ctrl.TICK_RATE,
    })


# ── Pointer input ───────────────────────────────────────────────────────────

def _translate_pointer(msg: dict) -> float:
    """Client pointer -> paddle x, centred on the pointer and clamped to the surface."""
    mouse_x = (float(msg.get("client_x", 0.0))
               - float(msg.get("rect_left", 0.0))
               - float(msg.get("scroll_left", 0.0)))
    relative = mouse_x - ctrl.paddle.width / 2
    return min(ctrl.config.surface_width - ctrl.paddle.width, max(0.0, relative))


def _handle_key_down(key: str):
    """Handle a key press event from the client."""
    if key == "r":
        ctrl.restart()
    elif key == "l":
        ctrl.reload_script()


# ── WebSocket endpoint ──────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    clients.append(ws)
    await ws.send_text(_build_init_message())

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue

            cmd = msg.get("cmd", "")
            if cmd == "pointer":
                ctrl.move_paddle(_translate_pointer(msg))
            elif cmd == "key_down":
                _handle_key_down(msg.get("key", ""))
            elif cmd == "execute":
                ctrl.execute_command(msg.get("text", ""))
            elif cmd == "get_state":
                await ws.send_text(json.dumps({
                    "type": "state_json",
                    "data": ctrl.get_state_json(),
                }))
            elif cmd == "load_script":
                ctrl.load_script_file(msg.get("path", ""))
            elif cmd == "list_scripts":
                await ws.send_text(json.dumps({
                    "type": "scripts",
                    "data": [str(p) for p in ctrl.collect_script_files()],
                }))
    except WebSocketDisconnect:
        pass
    finally:
        if ws in clients:
            clients.remove(ws)


# ── Static files + root route ───────────────────────────────────────────────

STATIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "static")

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


@app.get("/")
async def root():
    return FileResponse(os.path.join(STATIC_DIR, "index.html"))


# ── Run with uvicorn ────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    parser = argparse.ArgumentParser(description="Serve the breakout game")
    parser.add_argument("--variant", default=VARIANT, choices=sorted(VARIANTS))
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    os.environ["BREAKOUT_VARIANT"] = args.variant
    uvicorn.run("server:app", host=args.host, port=args.port, reload=False)
