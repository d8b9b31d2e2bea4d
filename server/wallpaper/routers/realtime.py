"""Websocket channel that streams session state and accepts UI commands."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..models.session import Operation, SessionState
from ..services.orchestration import WallpaperOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


async def _send(websocket: WebSocket, payload: dict[str, Any]) -> None:
    await websocket.send_text(json.dumps(payload))


@router.websocket("/ws")
async def session_channel(websocket: WebSocket) -> None:
    """Push a ``state`` frame on connect and after every state transition.

    Incoming messages are ``{"type": "set_prompt", "prompt": ...}``,
    ``{"type": "generate", "prompt": optional}`` and ``{"type": "enhance"}``.
    Operations run as background tasks so the channel keeps answering while one
    is pending; each is reserved before it is scheduled, so commands arriving
    meanwhile (even ones already buffered) are rejected with an ``error`` frame.
    """

    orchestrator: WallpaperOrchestrator = websocket.app.state.orchestrator
    await websocket.accept()

    async def push_state(_state: SessionState) -> None:
        await _send(websocket, {"type": "state", "state": orchestrator.snapshot()})

    tasks: set[asyncio.Task[Any]] = set()

    def run_in_background(coro: Any) -> None:
        task = asyncio.create_task(coro)
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    orchestrator.subscribe(push_state)
    try:
        await push_state(orchestrator.state)
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await _send(websocket, {"type": "error", "error": "Malformed JSON message."})
                continue
            if not isinstance(message, dict):
                await _send(websocket, {"type": "error", "error": "Messages must be JSON objects."})
                continue

            kind = message.get("type")
            if kind == "set_prompt":
                await orchestrator.set_prompt(str(message.get("prompt") or ""))
            elif kind in {"generate", "enhance"}:
                if orchestrator.busy:
                    await _send(
                        websocket,
                        {"type": "error", "error": "Another operation is still in progress."},
                    )
                elif kind == "generate":
                    prompt = message.get("prompt")
                    if prompt is None:
                        prompt = orchestrator.state.prompt_text
                    orchestrator.reserve(Operation.GENERATE)
                    run_in_background(orchestrator.generate(str(prompt)))
                else:
                    orchestrator.reserve(Operation.ENHANCE)
                    run_in_background(orchestrator.enhance())
            else:
                await _send(websocket, {"type": "error", "error": f"Unknown message type: {kind}"})
    except WebSocketDisconnect:
        logger.info("Session websocket disconnected")
    finally:
        orchestrator.unsubscribe(push_state)
