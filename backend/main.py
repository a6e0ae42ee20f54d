"""
Command-line entry point.

    voice-assistant run     # console: events printed with +<delta>ms, keys on stdin
    voice-assistant serve   # FastAPI control server under uvicorn

Console keys (one per line):
    m           toggle mute
    s <text>    speak text
    q           quit
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from dotenv import load_dotenv

from assistant.bootstrap import build_assistant
from assistant.dispatcher import VoiceAssistant
from assistant.errors import AssistantUnavailable, SynthesisError
from assistant.events import Event
from assistant.serialization import event_to_payload
from config import AppConfig
from constants import UNMUTE_ACKNOWLEDGEMENT
from observability.logger import configure, log_error


def format_event(event: Event, prev_ts_ms: int | None) -> str:
    """One console line: ``+<delta>ms <type> <fields>``."""
    delta = 0 if prev_ts_ms is None else event.ts_ms - prev_ts_ms
    payload = event_to_payload(event)
    kind = payload.pop("type")
    payload.pop("ts_ms")
    fields = " ".join(f"{key}={value!r}" for key, value in payload.items())
    return f"+{delta}ms {kind} {fields}".rstrip()


async def _print_events(assistant: VoiceAssistant) -> None:
    prev_ts_ms: int | None = None
    async for event in assistant.events():
        print(format_event(event, prev_ts_ms), flush=True)
        prev_ts_ms = event.ts_ms


async def _speak(assistant: VoiceAssistant, text: str) -> None:
    try:
        await assistant.speak(text)
    except SynthesisError as exc:
        log_error("CONSOLE_SPEAK_FAILED", exc)


async def _read_commands(assistant: VoiceAssistant) -> None:
    background: set[asyncio.Task[None]] = set()

    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return

        cmd, _, arg = line.strip().partition(" ")

        if cmd == "q":
            return

        if cmd == "m":
            assistant.toggle_mute()
            if not assistant.is_muted:
                text = UNMUTE_ACKNOWLEDGEMENT
            else:
                continue
        elif cmd == "s" and arg.strip():
            text = arg.strip()
        else:
            continue

        task = asyncio.create_task(_speak(assistant, text))
        background.add(task)
        task.add_done_callback(background.discard)


async def run_console(assistant: VoiceAssistant) -> None:
    printer = asyncio.create_task(_print_events(assistant))
    await asyncio.sleep(0)
    assistant.start()

    if assistant.is_muted:
        print("Muted. Type 'm' + Enter to start listening.", flush=True)

    try:
        await _read_commands(assistant)
    finally:
        printer.cancel()
        await asyncio.gather(printer, return_exceptions=True)
        await assistant.shutdown()


def _cmd_run(_: argparse.Namespace) -> int:
    config = AppConfig.load_from_env()
    configure(json_output=config.enable_json_logs, level=config.log_level)

    try:
        assistant = build_assistant(config)
    except AssistantUnavailable as exc:
        print(str(exc), file=sys.stderr)
        return 2

    try:
        asyncio.run(run_console(assistant))
    except KeyboardInterrupt:
        pass
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn  # pylint: disable=import-outside-toplevel

    uvicorn.run(
        "server.asgi:app",
        host=args.host,
        port=args.port,
        log_level="info",
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="voice-assistant")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="run the assistant in this terminal")
    run.set_defaults(handler=_cmd_run)

    serve = sub.add_parser("serve", help="run the HTTP/WebSocket control server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(handler=_cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
