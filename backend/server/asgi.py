"""
ASGI entry point for the control server.

    uvicorn server.asgi:app

.env is loaded before the app (and with it the assistant) is built.
"""

from dotenv import load_dotenv

load_dotenv()

# pylint: disable=wrong-import-position
from assistant.errors import AssistantUnavailable
from observability.logger import log_error
from server.app import create_app

try:
    app = create_app()
except AssistantUnavailable as exc:
    log_error("ASSISTANT_UNAVAILABLE", exc, missing=exc.missing)
    raise
