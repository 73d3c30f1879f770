"""Turns a generation request into system and user messages."""

from __future__ import annotations

import logging
from typing import Any

from koloni.models import FORMAT_CONFIG, ContentFormat
from prompts.templates import SYSTEM_PROMPTS, TEMPLATES

logger = logging.getLogger(__name__)


def resolve_options(content_format: ContentFormat, options: dict[str, Any] | None = None) -> dict[str, Any]:
    """Fill in the format's default options; blank values fall back to defaults.

    Keys the format does not know are dropped.
    """
    options = options or {}
    defaults: dict[str, Any] = FORMAT_CONFIG[content_format.value]["options"]
    return {key: options.get(key) or default for key, default in defaults.items()}


def build_messages(
    content_format: ContentFormat,
    prompt: str,
    options: dict[str, Any] | None = None,
) -> tuple[str, str]:
    """Return ``(system_prompt, user_prompt)`` for a format."""
    resolved = resolve_options(content_format, options)
    user_prompt = TEMPLATES[content_format.value].safe_substitute(prompt=prompt, **resolved)
    logger.debug("Built %s prompt: %s", content_format.value, user_prompt)
    return SYSTEM_PROMPTS[content_format.value], user_prompt
