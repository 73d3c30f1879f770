"""Stripe webhook processing: verified checkout sessions credit tokens."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

import stripe

from koloni.errors import MissingParameter, SignatureVerificationFailed
from koloni.ledger import TokenLedger

logger = logging.getLogger(__name__)

# Seconds a signed timestamp stays valid; matches the stripe library default.
DEFAULT_TOLERANCE = 300


def verify_event(
    payload: str | bytes,
    sig_header: str | None,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE,
) -> dict[str, Any]:
    """Check the ``Stripe-Signature`` header and decode the event payload."""
    if not secret:
        raise SignatureVerificationFailed("Webhook Error: signing secret is not configured")
    if not sig_header:
        raise SignatureVerificationFailed("Webhook Error: missing Stripe-Signature header")

    try:
        stripe.WebhookSignature.verify_header(payload, sig_header, secret, tolerance)
    except stripe.SignatureVerificationError as exc:
        logger.warning("Webhook signature verification failed: %s", exc)
        raise SignatureVerificationFailed(f"Webhook Error: {exc}") from exc

    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")
    try:
        event = json.loads(payload)
    except ValueError as exc:
        raise SignatureVerificationFailed(f"Webhook Error: invalid payload ({exc})") from exc
    if not isinstance(event, dict) or "type" not in event:
        raise SignatureVerificationFailed("Webhook Error: payload is not a Stripe event")
    return event


def _parse_token_amount(raw: Any) -> int:
    """Leading-integer parse of the metadata value; anything unparseable is 0."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    text = str(raw or "").strip()
    digits = ""
    for i, ch in enumerate(text):
        if ch.isdigit() or (i == 0 and ch in "+-"):
            digits += ch
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return 0


class PaymentWebhookProcessor:
    """Applies verified Stripe events to the token ledger."""

    def __init__(
        self,
        ledger: TokenLedger,
        secret: str,
        tolerance: int = DEFAULT_TOLERANCE,
    ) -> None:
        self.ledger = ledger
        self.secret = secret
        self.tolerance = tolerance
        self._handlers: dict[str, Callable[[dict[str, Any]], None]] = {
            "checkout.session.completed": self._on_checkout_completed,
            "payment_intent.succeeded": self._on_payment_succeeded,
            "payment_intent.payment_failed": self._on_payment_failed,
            "customer.subscription.created": self._on_subscription_event,
            "customer.subscription.updated": self._on_subscription_event,
            "customer.subscription.deleted": self._on_subscription_deleted,
        }

    def process(self, payload: str | bytes, sig_header: str | None) -> dict[str, Any]:
        event = verify_event(payload, sig_header, self.secret, self.tolerance)
        return self.handle_event(event)

    def handle_event(self, event: dict[str, Any]) -> dict[str, Any]:
        event_type = event.get("type", "")
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("Unhandled event type: %s", event_type)
        else:
            handler((event.get("data") or {}).get("object") or {})
        return {"received": True}

    def _on_checkout_completed(self, session: dict[str, Any]) -> None:
        metadata = session.get("metadata") or {}
        user_id = metadata.get("userId")
        token_amount = _parse_token_amount(metadata.get("tokenAmount"))

        if not user_id or not token_amount:
            logger.error("Missing userId or tokenAmount in session metadata session=%s", session.get("id"))
            raise MissingParameter("Missing metadata")

        self.ledger.add(user_id, token_amount)
        logger.info("Successfully added %d tokens to user %s", token_amount, user_id)

    def _on_payment_succeeded(self, payment_intent: dict[str, Any]) -> None:
        logger.info("PaymentIntent succeeded: %s", payment_intent.get("id"))

    def _on_payment_failed(self, payment_intent: dict[str, Any]) -> None:
        logger.error("Payment failed: %s", payment_intent.get("id"))

    def _on_subscription_event(self, subscription: dict[str, Any]) -> None:
        logger.info("Subscription event: %s", subscription.get("id"))

    def _on_subscription_deleted(self, subscription: dict[str, Any]) -> None:
        logger.info("Subscription canceled: %s", subscription.get("id"))
