"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Build the assistant ONCE per process (or accept an injected one)
- Run the single dispatcher loop for the app's lifetime
- Register routes
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from assistant.dispatcher import VoiceAssistant
from assistant.serialization import event_to_payload
from config import AppConfig
from observability.logger import configure, log_error, log_event

from server.hub import EventHub
from server.routes import register_routes


async def pump_events(assistant: VoiceAssistant, hub: EventHub) -> None:
    """Drain the assistant's event stream into the websocket hub, forever."""
    try:
        async for event in assistant.events():
            hub.broadcast(event_to_payload(event))
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # pylint: disable=broad-exception-caught
        log_error("EVENT_PUMP_FAILED", exc)


def create_app(
    *,
    config: AppConfig | None = None,
    assistant: VoiceAssistant | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with a fake-wired assistant
    - Environment-specific setup
    - ASGI server compatibility

    Raises:
        AssistantUnavailable when no assistant is injected and the
        environment lacks a required capability.
    """
    config = config or AppConfig.load_from_env()
    configure(json_output=config.enable_json_logs, level=config.log_level)

    if assistant is None:
        # Deferred: pulls in the audio device and provider stacks
        from assistant.bootstrap import build_assistant  # pylint: disable=import-outside-toplevel
        assistant = build_assistant(config)

    hub = EventHub()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        pump = asyncio.create_task(pump_events(assistant, hub))
        # Give the pump one turn so it subscribes before anything is emitted
        await asyncio.sleep(0)
        assistant.start()
        log_event({"event_type": "SERVER_STARTED", "state": assistant.state.value})
        try:
            yield
        finally:
            pump.cancel()
            await asyncio.gather(pump, return_exceptions=True)
            await assistant.shutdown()
            log_event({"event_type": "SERVER_STOPPED"})

    app = FastAPI(title="Voice Assistant Control API", lifespan=lifespan)

    app.state.config = config
    app.state.assistant = assistant
    app.state.hub = hub

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app
