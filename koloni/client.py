"""HTTP client for the serverless functions, used by browser-less front ends."""

from __future__ import annotations

import logging
import random
import string
import time
from typing import Any

import httpx

from koloni.dispatch import parse_format, parse_platform

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8888/.netlify/functions"
_ID_ALPHABET = string.digits + string.ascii_lowercase


class ClientError(Exception):
    """A function call failed; ``status_code`` is ``None`` for transport errors."""

    def __init__(self, message: str, status_code: int | None = None, body: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body or {}


def new_user_id() -> str:
    """``user_<epoch ms>_<9 base36 chars>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"user_{int(time.time() * 1000)}_{suffix}"


class KoloniClient:
    """Routes generation, export and token calls to the matching function."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        user_id: str | None = None,
        timeout: float = 60.0,
        http: httpx.Client | None = None,
    ) -> None:
        self.user_id = user_id or new_user_id()
        self._http = http or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> KoloniClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _post(self, function: str, payload: dict[str, Any], failure: str) -> dict[str, Any]:
        try:
            resp = self._http.post(f"/{function}", json=payload)
        except httpx.HTTPError as exc:
            logger.error("Error calling %s: %s", function, exc)
            raise ClientError(f"{failure}: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.is_error:
            message = data.get("error") or failure
            logger.error("Error calling %s: %s (%d)", function, message, resp.status_code)
            raise ClientError(message, status_code=resp.status_code, body=data)
        return data

    def check_tokens(self, cost: int) -> dict[str, Any]:
        return self._post(
            "token-manager",
            {"action": "check", "userId": self.user_id, "cost": cost},
            "Failed to check token balance",
        )

    def get_balance(self) -> dict[str, Any]:
        return self._post(
            "token-manager",
            {"action": "balance", "userId": self.user_id},
            "Failed to get balance",
        )

    def generate(self, content_format: str, **params: Any) -> dict[str, Any]:
        target = parse_format(content_format)
        return self._post(
            f"generate-{target.value}",
            {**params, "userId": self.user_id},
            "Generation failed",
        )

    def export(self, platform: str, content: Any, content_format: str | None = None) -> dict[str, Any]:
        target = parse_platform(platform)
        return self._post(
            f"export-{target.value}",
            {"content": content, "format": content_format, "userId": self.user_id},
            "Export failed",
        )
