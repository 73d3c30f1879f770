"""Routes generation requests to a text backend and export requests to a formatter."""

from __future__ import annotations

import logging
from typing import Any, Callable

from koloni.errors import (
    GenerationBackendError,
    InsufficientBalance,
    InvalidContent,
    MissingParameter,
    UnknownFormat,
    UnknownPlatform,
)
from koloni.exporters import format_instagram, format_youtube
from koloni.ledger import TokenLedger
from koloni.models import (
    FORMAT_CONFIG,
    ContentFormat,
    ExportPlatform,
    GenerationRequest,
    GenerationResult,
)
from koloni.prompt_builder import build_messages, resolve_options
from koloni.providers import TextProvider

logger = logging.getLogger(__name__)


def parse_format(value: Any) -> ContentFormat:
    try:
        return ContentFormat(value)
    except ValueError:
        raise UnknownFormat(f"Unknown format: {value}") from None


def parse_platform(value: Any) -> ExportPlatform:
    try:
        return ExportPlatform(value)
    except ValueError:
        raise UnknownPlatform(f"Unknown platform: {value}") from None


def format_cost(content_format: ContentFormat) -> int:
    return FORMAT_CONFIG[content_format.value]["cost"]


class GenerationDispatcher:
    """Charges tokens for AI generation requests.

    The balance is checked before the backend call and deducted only after
    it succeeds. Nothing is held during the call, so two concurrent requests
    from one user can both pass the check; when the later deduction then
    fails, the content is still returned with ``charged=False`` and the
    failure is logged.
    """

    def __init__(
        self,
        ledger: TokenLedger,
        provider: TextProvider | Callable[[], TextProvider],
    ) -> None:
        self.ledger = ledger
        self._provider = provider

    @property
    def provider(self) -> TextProvider:
        """The backend; a factory is only called once a request has passed the balance check."""
        if not isinstance(self._provider, TextProvider):
            self._provider = self._provider()
        return self._provider

    def generate(self, request: GenerationRequest) -> GenerationResult:
        content_format = parse_format(request.format)
        if not request.prompt or not request.user_id:
            raise MissingParameter("Missing required parameters: prompt, userId")

        policy = FORMAT_CONFIG[content_format.value]
        cost = policy["cost"]
        options = resolve_options(content_format, request.options)

        check = self.ledger.check(request.user_id, cost)
        if not check["sufficient"]:
            logger.warning(
                "Insufficient tokens for %s user=%s balance=%d cost=%d",
                content_format.value, request.user_id, check["balance"], cost,
            )
            raise InsufficientBalance(balance=check["balance"], required=cost)

        system_prompt, user_prompt = build_messages(content_format, request.prompt, options)
        provider = self.provider

        try:
            content, elapsed = provider.timed_generate(
                system_prompt,
                user_prompt,
                temperature=policy["temperature"],
                max_tokens=policy["max_tokens"],
            )
        except Exception as exc:
            logger.error(
                "Generation failed format=%s provider=%s: %s",
                content_format.value, provider.provider_name, exc,
            )
            raise GenerationBackendError(str(exc), provider=provider.provider_name) from exc

        if not content or not content.strip():
            raise GenerationBackendError(
                "Backend returned empty content", provider=provider.provider_name
            )

        charged = True
        try:
            balance = self.ledger.deduct(request.user_id, cost)["balance"]
        except InsufficientBalance as exc:
            # Another request spent the tokens while this one was generating.
            charged = False
            balance = exc.balance
            logger.error(
                "Generated %s for user=%s but deduction of %d failed (balance=%d); "
                "content returned uncharged",
                content_format.value, request.user_id, cost, exc.balance,
            )
        except Exception:
            # Content is returned even when the ledger write itself fails.
            charged = False
            balance = None
            logger.exception(
                "Generated %s for user=%s but deduction of %d failed; content returned uncharged",
                content_format.value, request.user_id, cost,
            )

        logger.info(
            "Generated %s for user=%s in %.2fs (%d chars)",
            content_format.value, request.user_id, elapsed, len(content),
        )
        return GenerationResult(
            format=content_format,
            content=content,
            provider=provider.provider_name,
            tokens_used=cost if charged else 0,
            options=options,
            charged=charged,
            balance=balance,
            generation_time_s=round(elapsed, 2),
        )


class ExportDispatcher:
    """Formats content for a target platform. No token cost."""

    formatters: dict[ExportPlatform, Callable[..., Any]] = {
        ExportPlatform.INSTAGRAM: format_instagram,
        ExportPlatform.YOUTUBE: format_youtube,
    }

    def export(self, platform: Any, content: Any, content_format: str | None = None) -> dict[str, Any]:
        target = parse_platform(platform)
        if not content:
            raise MissingParameter("Missing required parameter: content")
        if not isinstance(content, (str, dict)):
            raise InvalidContent("Content must be text or an object")

        formatted = self.formatters[target](content, content_format)
        logger.info("Exported content to %s", target.value)
        return formatted.to_dict()
