"""Serverless entrypoint that routes function calls to their handlers.

Requests arrive as ``/.netlify/functions/<name>`` or ``/api/<name>``; the last
path segment selects the handler.
"""

from __future__ import annotations

import functools
import logging

from dotenv import load_dotenv

from koloni.config import Settings
from koloni.handlers import (
    handle_contact,
    handle_export,
    handle_generate,
    handle_stripe_webhook,
    handle_token_manager,
    json_response,
)

load_dotenv()
logging.basicConfig(level=Settings.from_env().log_level)

logger = logging.getLogger(__name__)

ROUTES = {
    "token-manager": handle_token_manager,
    "generate-emu": functools.partial(handle_generate, content_format="emu"),
    "generate-longcat": functools.partial(handle_generate, content_format="longcat"),
    "export-instagram": functools.partial(handle_export, platform="instagram"),
    "export-youtube": functools.partial(handle_export, platform="youtube"),
    "stripe-webhook": handle_stripe_webhook,
    "contact": handle_contact,
}


def function_name(path: str) -> str:
    return (path or "").split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]


def handler(request, context=None):
    """Serverless function handler."""
    name = function_name(request.get("path") or request.get("rawPath") or "")
    route = ROUTES.get(name)
    if route is None:
        logger.info("No function named %r", name)
        return json_response(404, {"error": f"Unknown function: {name}"})
    return route(request)
