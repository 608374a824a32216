"""
Eight-Ball Web Server — renderer adapter (FastAPI + WebSocket)

Runs the frame loop and streams table snapshots to browser clients over
WebSocket. Clients send pointer input and commands back as JSON.
"""

import asyncio
import json
import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from controller import PoolController
from shot_presets import PRESETS

logger = logging.getLogger(__name__)


def configure_logging(level=logging.INFO) -> None:
    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
    ))
    root.addHandler(handler)


# ── Controller ──────────────────────────────────────────────────────────────

ctrl = PoolController()


# ── Lifespan (startup/shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    task = asyncio.create_task(game_loop())
    yield
    # No tick may run against the controller once the app is torn down
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(lifespan=lifespan)

clients: list[WebSocket] = []

# ── Async game loop ─────────────────────────────────────────────────────────

TARGET_FPS = 60
FRAME_DT = 1.0 / TARGET_FPS


async def game_loop():
    """One physics step per frame at ~60 fps."""
    while True:
        now = time.perf_counter()

        ctrl.tick()

        if clients:
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

        elapsed = time.perf_counter() - now
        sleep_time = FRAME_DT - elapsed
        if sleep_time > 0:
            await asyncio.sleep(sleep_time)
        else:
            await asyncio.sleep(0)


def _build_frame_message() -> str:
    """Serialize current state plus queued events into a JSON frame message."""
    frame = {"type": "frame", **ctrl.snapshot()}
    frame["events"] = list(ctrl.pending_events)
    ctrl.pending_events.clear()
    frame["sounds"] = [
        {"type": ev.get("type", ""), "speed": round(float(ev.get("speed", 0.0)), 3)}
        for ev in ctrl.physics_events
    ]
    return json.dumps(frame, separators=(',', ':'))


# ── Command dispatch ────────────────────────────────────────────────────────

def handle_command(msg: dict) -> dict | None:
    """Apply one client command. Returns a direct reply for the sender, if any."""
    cmd = msg.get("cmd", "")
    if cmd == "pointer_down":
        ctrl.pointer_down(float(msg["x"]), float(msg["y"]))
    elif cmd == "pointer_move":
        ctrl.pointer_move(float(msg["x"]), float(msg["y"]))
    elif cmd == "pointer_up":
        return {"type": "ack", "cmd": cmd, "ok": ctrl.pointer_up()}
    elif cmd == "shoot":
        ok = ctrl.start_shot(float(msg.get("angle", 0.0)), float(msg.get("power", 0.0)))
        return {"type": "ack", "cmd": cmd, "ok": ok}
    elif cmd == "place_cue_ball":
        ok = ctrl.place_cue_ball(float(msg["x"]), float(msg["y"]))
        return {"type": "ack", "cmd": cmd, "ok": ok}
    elif cmd == "reset":
        ctrl.reset()
    elif cmd == "preset":
        preset = PRESETS.get(msg.get("name", ""))
        if preset is None:
            logger.warning("unknown preset %r", msg.get("name"))
            return {"type": "ack", "cmd": cmd, "ok": False}
        ctrl.load_preset(preset)
    elif cmd == "get_state":
        return {"type": "state", "data": ctrl.snapshot()}
    else:
        logger.warning("unknown command %r", cmd)
    return None


# ── WebSocket endpoint ──────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    clients.append(ws)

    await ws.send_text(json.dumps({"type": "init", **ctrl.snapshot()}))

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("dropping malformed message")
                continue
            if not isinstance(msg, dict):
                continue
            try:
                reply = handle_command(msg)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("bad %r command: %s", msg.get("cmd"), exc)
                continue
            if reply is not None:
                await ws.send_text(json.dumps(reply))
    except WebSocketDisconnect:
        pass
    finally:
        if ws in clients:
            clients.remove(ws)


@app.get("/state")
async def state():
    return ctrl.snapshot()


# ── Run with uvicorn ────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    configure_logging()
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=False)
