"""Serverless function handlers.

Each handler takes a Netlify/Lambda style event (``httpMethod``, ``headers``,
``body``) and returns ``{"statusCode", "headers", "body"}`` with a JSON body.
Handlers share one process-wide :class:`Services` unless a test passes its own.
"""

from __future__ import annotations

import base64
import functools
import json
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from koloni.config import Settings
from koloni.dispatch import ExportDispatcher, GenerationDispatcher, parse_format
from koloni.errors import InternalError, KoloniError, MissingParameter
from koloni.ledger import TokenLedger
from koloni.models import GenerationRequest
from koloni.providers import TextProvider, get_provider
from koloni.webhooks import PaymentWebhookProcessor

logger = logging.getLogger(__name__)

JSON_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
}

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

GENERATION_OPTION_KEYS = ("tone", "length", "style", "duration")


@dataclass
class Services:
    settings: Settings
    ledger: TokenLedger
    exporter: ExportDispatcher = field(default_factory=ExportDispatcher)
    provider: TextProvider | None = None
    _provider_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> Services:
        return cls(settings=settings, ledger=TokenLedger(default_tokens=settings.default_tokens))

    def get_provider(self) -> TextProvider:
        with self._provider_lock:
            if self.provider is None:
                name = self.settings.provider
                model = self.settings.gemini_model if name == "gemini" else self.settings.openai_model
                self.provider = get_provider(name, model=model, timeout=self.settings.backend_timeout_s)
            return self.provider

    def generation(self) -> GenerationDispatcher:
        return GenerationDispatcher(self.ledger, self.get_provider)

    def webhooks(self) -> PaymentWebhookProcessor:
        return PaymentWebhookProcessor(self.ledger, self.settings.stripe_webhook_secret)


_services: Services | None = None
_services_lock = threading.Lock()


def get_services() -> Services:
    """The process-wide services, built from the environment on first use."""
    global _services
    with _services_lock:
        if _services is None:
            _services = Services.from_settings(Settings.from_env())
        return _services


def reset_services(services: Services | None = None) -> None:
    global _services
    with _services_lock:
        _services = services


def json_response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": dict(JSON_HEADERS),
        "body": json.dumps(body),
    }


def error_response(exc: KoloniError) -> dict[str, Any]:
    return json_response(exc.status_code, exc.to_dict())


def parse_body(event: dict[str, Any]) -> dict[str, Any]:
    raw = raw_body(event)
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        raise KoloniError("Invalid JSON body") from None
    if not isinstance(data, dict):
        raise KoloniError("Request body must be a JSON object")
    return data


def raw_body(event: dict[str, Any]) -> str:
    raw = event.get("body") or ""
    if event.get("isBase64Encoded") and raw:
        try:
            return base64.b64decode(raw, validate=True).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            raise KoloniError("Invalid request body encoding") from None
    return raw


def header(event: dict[str, Any], name: str) -> str | None:
    wanted = name.lower()
    for key, value in (event.get("headers") or {}).items():
        if key.lower() == wanted:
            return value
    return None


def http_method(event: dict[str, Any]) -> str:
    return str(event.get("httpMethod") or event.get("method") or "").upper()


def post_endpoint(failure_message: str) -> Callable:
    """Reject non-POST requests and render errors as JSON envelopes."""

    def decorator(fn: Callable[..., dict[str, Any]]) -> Callable[..., dict[str, Any]]:
        @functools.wraps(fn)
        def wrapper(event: dict[str, Any], *args: Any, **kwargs: Any) -> dict[str, Any]:
            if http_method(event) != "POST":
                return json_response(405, {"error": "Method not allowed"})
            try:
                return fn(event, *args, **kwargs)
            except KoloniError as exc:
                return error_response(exc)
            except Exception as exc:
                logger.exception("Error in %s", fn.__name__)
                return error_response(InternalError(failure_message, details=str(exc)))

        return wrapper

    return decorator


@post_endpoint("Failed to manage tokens")
def handle_token_manager(event: dict[str, Any], services: Services | None = None) -> dict[str, Any]:
    services = services or get_services()
    body = parse_body(event)
    action = body.get("action")
    user_id = body.get("userId")
    if not action or not user_id:
        raise MissingParameter("Missing required parameters: action, userId")

    amount = body.get("cost", body.get("amount"))
    return json_response(200, services.ledger.apply(action, user_id, amount))


@post_endpoint("Failed to generate content")
def handle_generate(
    event: dict[str, Any],
    content_format: str | None = None,
    services: Services | None = None,
) -> dict[str, Any]:
    services = services or get_services()
    body = parse_body(event)
    request = GenerationRequest(
        format=content_format or body.get("format", ""),
        prompt=body.get("prompt") or "",
        user_id=body.get("userId") or "",
        options={key: body[key] for key in GENERATION_OPTION_KEYS if body.get(key)},
    )
    parse_format(request.format)
    result = services.generation().generate(request)
    return json_response(200, result.to_dict())


@post_endpoint("Failed to export content")
def handle_export(
    event: dict[str, Any],
    platform: str | None = None,
    services: Services | None = None,
) -> dict[str, Any]:
    services = services or get_services()
    body = parse_body(event)
    content = body.get("content")
    if not content or not body.get("userId"):
        raise MissingParameter("Missing required parameters: content, userId")

    exported = services.exporter.export(platform or body.get("platform"), content, body.get("format"))
    return json_response(200, exported)


@post_endpoint("Webhook processing failed")
def handle_stripe_webhook(event: dict[str, Any], services: Services | None = None) -> dict[str, Any]:
    services = services or get_services()
    result = services.webhooks().process(raw_body(event), header(event, "Stripe-Signature"))
    return json_response(200, result)


@post_endpoint("Failed to process your request")
def handle_contact(event: dict[str, Any]) -> dict[str, Any]:
    body = parse_body(event)
    name = body.get("name")
    email = body.get("email")
    message = body.get("message")
    if not name or not email or not message:
        raise MissingParameter("Missing required fields")
    if not isinstance(email, str) or not EMAIL_RE.match(email):
        raise KoloniError("Invalid email address")

    logger.info("Contact form submission name=%s email=%s (%d chars)", name, email, len(str(message)))
    return json_response(200, {
        "success": True,
        "message": "Thank you for your message. We will get back to you soon!",
    })
