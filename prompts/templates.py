"""Prompt templates for Emu and LongCat content generation."""

from __future__ import annotations

from string import Template

# --- System prompts ---

EMU_SYSTEM_PROMPT = (
    "You are a creative AI assistant specializing in generating engaging Emu format content. "
    "Emu content is concise, impactful, and optimized for quick consumption."
)

LONGCAT_SYSTEM_PROMPT = (
    "You are a creative AI assistant specializing in generating engaging LongCat format content. "
    "LongCat content is vertical, scrollable, and highly visual."
)

# --- User message templates ---

EMU_REQUEST = Template(
    "Create an Emu content piece with the following parameters:\n"
    "Prompt: $prompt\n"
    "Tone: $tone\n"
    "Length: $length"
)

LONGCAT_REQUEST = Template(
    "Create a LongCat content piece with the following parameters:\n"
    "Prompt: $prompt\n"
    "Style: $style\n"
    "Duration: $duration"
)


SYSTEM_PROMPTS: dict[str, str] = {
    "emu": EMU_SYSTEM_PROMPT,
    "longcat": LONGCAT_SYSTEM_PROMPT,
}

TEMPLATES: dict[str, Template] = {
    "emu": EMU_REQUEST,
    "longcat": LONGCAT_REQUEST,
}
