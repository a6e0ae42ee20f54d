"""
Route registration for the assistant control API.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Translate requests into assistant API calls
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio

from fastapi import BackgroundTasks, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from assistant.dispatcher import VoiceAssistant
from assistant.errors import SynthesisError
from constants import UNMUTE_ACKNOWLEDGEMENT
from observability.logger import log_error, log_event
from server.hub import EventHub, Payload


class SpeakRequest(BaseModel):
    text: str


def _state_body(assistant: VoiceAssistant) -> dict[str, object]:
    return {"state": assistant.state.value, "muted": assistant.is_muted}


async def _forward_events(ws: WebSocket, queue: asyncio.Queue[Payload]) -> None:
    try:
        while True:
            payload = await queue.get()
            await ws.send_json(payload)
    except asyncio.CancelledError:
        return
    except Exception as exc:  # pylint: disable=broad-exception-caught
        log_error("EVENTS_WS_SEND_FAILED", exc)


async def _acknowledge_unmute(assistant: VoiceAssistant) -> None:
    try:
        await assistant.speak(UNMUTE_ACKNOWLEDGEMENT)
    except SynthesisError as exc:
        log_error("UNMUTE_ACK_FAILED", exc)


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]:  # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/state")
    async def state() -> dict[str, object]:  # pyright: ignore[reportUnusedFunction]
        assistant: VoiceAssistant = app.state.assistant
        return _state_body(assistant)

    @app.post("/mute")
    async def mute(background: BackgroundTasks) -> dict[str, object]:  # pyright: ignore[reportUnusedFunction]
        assistant: VoiceAssistant = app.state.assistant
        assistant.toggle_mute()

        if not assistant.is_muted:
            background.add_task(_acknowledge_unmute, assistant)

        return _state_body(assistant)

    @app.post("/speak")
    async def speak(body: SpeakRequest) -> dict[str, object]:  # pyright: ignore[reportUnusedFunction]
        assistant: VoiceAssistant = app.state.assistant
        text = body.text.strip()
        if not text:
            raise HTTPException(status_code=422, detail="text must not be empty")

        if assistant.is_muted:
            return {"status": "skipped", **_state_body(assistant)}

        try:
            await assistant.speak(text)
        except SynthesisError as exc:
            raise HTTPException(status_code=502, detail=f"TTS Error: {exc}") from exc

        return {"status": "spoken", **_state_body(assistant)}

    @app.websocket("/events")
    async def events(ws: WebSocket) -> None:  # pyright: ignore[reportUnusedFunction]
        hub: EventHub = app.state.hub
        queue = hub.subscribe()
        await ws.accept()
        sender = asyncio.create_task(_forward_events(ws, queue))

        try:
            # Inbound messages are ignored; receiving only detects disconnects
            while True:
                await ws.receive_text()

        except WebSocketDisconnect:
            log_event({"event_type": "EVENTS_WS_DISCONNECT"})

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_error("EVENTS_WS_FATAL_ERROR", exc)

        finally:
            sender.cancel()
            hub.unsubscribe(queue)
