"""
Eclipse Trainer Web Server — Layer 3 bridge (FastAPI + WebSocket)

Exposes the controller to a browser renderer. Clients send commands over
/ws and receive a JSON frame after every command; a small REST surface
mirrors the same operations for scripted clients.
"""

import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect

from controller import EclipseController
from geometry import (
    BALL_DIAMETER, CUE_BALL_Y, MAX_EI, ORIGIN_X, ORIGIN_Y, POCKET_RADIUS,
    SHOOTER_DIAMETER, TABLE_HEIGHT, TABLE_WIDTH,
)
from trainer_config import configure_logging, load_config

logger = logging.getLogger(__name__)

# ── Controller ──────────────────────────────────────────────────────────────

config = load_config()
ctrl = EclipseController(config)


# ── Lifespan (startup/shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(config.log_level)
    if ctrl.target is None:
        ctrl.start_round()
    logger.info("[SERVER] mode=%s max_balls=%d", config.mode, config.max_balls)
    yield


app = FastAPI(lifespan=lifespan)

clients: list[WebSocket] = []


# ── Frame building ──────────────────────────────────────────────────────────

def _build_frame_message() -> str:
    """Serialize current state plus drained events into a JSON frame."""
    events = list(ctrl.pending_events)
    ctrl.pending_events.clear()
    frame = {
        "type": "frame",
        "state": ctrl.get_state(),
        "events": events,
    }
    return json.dumps(frame, separators=(',', ':'))


def _init_message() -> str:
    return json.dumps({
        "type": "init",
        "mode": config.mode,
        "max_balls": config.max_balls,
        "max_ei": config.max_ei,
        "snap_on_drag": config.snap_on_drag,
        "table_width": TABLE_WIDTH,
        "table_height": TABLE_HEIGHT,
        "origin": [ORIGIN_X, ORIGIN_Y],
        "cue_ball_y": CUE_BALL_Y,
        "ball_diameter": BALL_DIAMETER,
        "shooter_diameter": SHOOTER_DIAMETER,
        "pocket_radius": POCKET_RADIUS,
        "ei_scale": MAX_EI,
    })


async def _broadcast() -> None:
    if not clients:
        ctrl.pending_events.clear()
        return
    frame_msg = _build_frame_message()
    dead: list[WebSocket] = []
    for ws in clients:
        try:
            await ws.send_text(frame_msg)
        except (WebSocketDisconnect, RuntimeError):
            dead.append(ws)
    for ws in dead:
        if ws in clients:
            clients.remove(ws)


# ── Command dispatch ────────────────────────────────────────────────────────

def _handle_command(msg: dict) -> None:
    """Apply one client command to the controller."""
    cmd = msg.get("cmd", "")
    if cmd == "pointer_move":
        ctrl.pointer_move(float(msg.get("dx", 0.0)))
    elif cmd == "pointer_up":
        ctrl.pointer_release()
    elif cmd == "select":
        ctrl.select(float(msg.get("ei", 0.0)), msg.get("direction", "right"))
    elif cmd == "submit":
        ctrl.evaluate()
    elif cmd == "next":
        ctrl.start_round()
    elif cmd == "reset":
        ctrl.reset_game()
    elif cmd == "toggle":
        ctrl.toggle(str(msg.get("name", "")))
    elif cmd == "execute":
        ctrl.execute_command(msg.get("text", ""))
    else:
        logger.debug("[SERVER] unknown cmd %r", cmd)


# ── WebSocket endpoint ──────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    clients.append(ws)

    await ws.send_text(_init_message())
    await ws.send_text(json.dumps({"type": "frame", "state": ctrl.get_state(),
                                   "events": []}, separators=(',', ':')))

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if not isinstance(msg, dict):
                continue

            if msg.get("cmd") == "get_state":
                await ws.send_text(json.dumps({"type": "state_json",
                                               "data": ctrl.get_state()}))
                continue
            try:
                _handle_command(msg)
            except (TypeError, ValueError, OverflowError) as exc:
                logger.warning("[SERVER] bad command %r: %s", msg, exc)
                continue
            await _broadcast()
    except WebSocketDisconnect:
        pass
    finally:
        if ws in clients:
            clients.remove(ws)


# ── REST ────────────────────────────────────────────────────────────────────

@app.get("/state")
async def get_state():
    return ctrl.get_state()


@app.post("/round")
async def post_round():
    ctrl.start_round()
    await _broadcast()
    return ctrl.get_state()


@app.post("/answer")
async def post_answer(body: dict):
    if ctrl.evaluated:
        raise HTTPException(status_code=409, detail="round already evaluated")
    try:
        ctrl.select(float(body["ei"]), body.get("direction", "right"))
    except (KeyError, TypeError, ValueError, OverflowError) as exc:
        raise HTTPException(status_code=422, detail=f"bad answer: {exc}") from None
    result = ctrl.evaluate()
    await _broadcast()
    return {"result": result.value if result else None, "state": ctrl.get_state()}


@app.post("/reset")
async def post_reset():
    ctrl.reset_game()
    await _broadcast()
    return ctrl.get_state()


# ── Run with uvicorn ────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=False)
