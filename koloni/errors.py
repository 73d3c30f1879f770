"""Error taxonomy for the ledger, dispatchers and HTTP handlers."""

from __future__ import annotations

from typing import Any


class KoloniError(Exception):
    """Base class for errors surfaced to API callers.

    Each subclass carries the HTTP status it maps to. ``extra`` holds
    additional fields merged into the ``{"error": ...}`` response envelope.
    """

    status_code: int = 400

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        body.update(self.extra)
        return body


class MissingParameter(KoloniError):
    """A required request field was absent or blank."""


class InvalidAction(KoloniError):
    """The token-manager action is not one of check/deduct/add/balance."""


class InvalidAmount(KoloniError):
    """A deduct or add amount was zero, negative or not an integer."""


class UnknownFormat(KoloniError):
    """No generation backend is registered for the requested format."""


class UnknownPlatform(KoloniError):
    """No export formatter is registered for the requested platform."""


class InvalidContent(KoloniError):
    """Export content was neither text nor a structured object."""


class InsufficientBalance(KoloniError):
    status_code = 402

    def __init__(self, balance: int, required: int) -> None:
        super().__init__("Insufficient tokens", balance=balance, required=required)
        self.balance = balance
        self.required = required


class SignatureVerificationFailed(KoloniError):
    """The payment webhook signature could not be verified."""


class GenerationBackendError(KoloniError):
    status_code = 502

    def __init__(self, details: str, provider: str = "") -> None:
        super().__init__("Failed to generate content", details=details)
        self.details = details
        self.provider = provider


class InternalError(KoloniError):
    status_code = 500
