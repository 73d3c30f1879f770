"""Platform formatters: turn raw generated text into Instagram or YouTube copy."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from koloni.models import utc_now_iso

logger = logging.getLogger(__name__)

HASHTAG_RE = re.compile(r"#\w+")
ELLIPSIS = "..."

# Platform character and item limits
PLATFORM_LIMITS: dict[str, dict[str, int]] = {
    "instagram": {"caption": 2200, "hashtags": 30},
    "youtube": {"title": 100, "description": 5000, "tags": 30},
}

INSTAGRAM_SPACER = "\n.\n.\n.\n"
UNTITLED_VIDEO = "Untitled Video"

YOUTUBE_DIVIDER = "──────────────────────────"

YOUTUBE_DESCRIPTION_TEMPLATE = (
    "{description}\n"
    "\n"
    f"{YOUTUBE_DIVIDER}\n"
    "\n"
    "📌 CHAPTERS\n"
    "0:00 Introduction\n"
    "\n"
    f"{YOUTUBE_DIVIDER}\n"
    "\n"
    "🔗 LINKS\n"
    "🌐 Website: [Your Website]\n"
    "📱 Social: [Your Social Media]\n"
    "\n"
    f"{YOUTUBE_DIVIDER}\n"
    "\n"
    "#️⃣ TAGS\n"
    "{tags}"
)

INSTAGRAM_TIPS = [
    "Copy the content below and paste into Instagram",
    "Add your image or video in Instagram",
    "Post at optimal times for your audience",
    "Engage with comments within the first hour",
]

YOUTUBE_TIPS = [
    "Create an eye-catching thumbnail",
    "Upload during peak hours for your audience",
    "Add end screens and cards",
    "Respond to comments to boost engagement",
    "Include relevant keywords in title and description",
]


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to at most ``limit`` characters, ending in an ellipsis if cut."""
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


def extract_hashtags(text: str) -> list[str]:
    return HASHTAG_RE.findall(text)


@dataclass
class InstagramPost:
    caption: str
    hashtags: list[str] = field(default_factory=list)
    media_type: str = "post"

    @property
    def content(self) -> str:
        return self.caption + INSTAGRAM_SPACER + " ".join(self.hashtags)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "platform": "instagram",
            "content": self.content,
            "caption": self.caption,
            "hashtags": list(self.hashtags),
            "metadata": {
                "captionLength": len(self.caption),
                "hashtagCount": len(self.hashtags),
                "mediaType": self.media_type,
                "exportedAt": utc_now_iso(),
            },
            "tips": list(INSTAGRAM_TIPS),
        }


@dataclass
class YouTubeVideo:
    title: str
    description: str
    tags: list[str] = field(default_factory=list)
    format: str = "video"

    @property
    def structured_description(self) -> str:
        return YOUTUBE_DESCRIPTION_TEMPLATE.format(
            description=self.description,
            tags=", ".join(self.tags),
        )

    def to_dict(self) -> dict[str, Any]:
        description = self.structured_description
        return {
            "success": True,
            "platform": "youtube",
            "title": self.title,
            "description": description,
            "tags": list(self.tags),
            "metadata": {
                "titleLength": len(self.title),
                "descriptionLength": len(description),
                "tagCount": len(self.tags),
                "format": self.format,
                "exportedAt": utc_now_iso(),
            },
            "tips": list(YOUTUBE_TIPS),
        }


def _as_str_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def format_instagram(content: str | dict[str, Any], media_type: str | None = None) -> InstagramPost:
    """Split free text into caption and hashtags, then apply Instagram limits.

    Any line containing ``#`` is treated as a hashtag line: its ``#word``
    tokens are collected and the line is left out of the caption.
    """
    limits = PLATFORM_LIMITS["instagram"]

    if isinstance(content, str):
        caption_lines: list[str] = []
        hashtags: list[str] = []
        for line in content.split("\n"):
            if "#" in line:
                hashtags.extend(extract_hashtags(line))
            else:
                caption_lines.append(line)
        caption = "\n".join(caption_lines).strip()
    elif isinstance(content, dict):
        caption = str(content.get("text") or "")
        hashtags = _as_str_list(content.get("hashtags"))
    else:
        raise TypeError(f"Unsupported Instagram content type: {type(content).__name__}")

    post = InstagramPost(
        caption=truncate(caption, limits["caption"]),
        hashtags=hashtags[: limits["hashtags"]],
        media_type=media_type or "post",
    )
    logger.debug(
        "Formatted Instagram post: %d chars, %d hashtags", len(post.caption), len(post.hashtags)
    )
    return post


def format_youtube(content: str | dict[str, Any], video_format: str | None = None) -> YouTubeVideo:
    """First non-blank line is the title, the rest the description, hashtags become tags."""
    limits = PLATFORM_LIMITS["youtube"]

    if isinstance(content, str):
        lines = [line for line in content.split("\n") if line.strip()]
        title = lines[0] if lines else UNTITLED_VIDEO
        description = "\n".join(lines[1:])
        tags = [tag[1:] for tag in extract_hashtags(content)]
    elif isinstance(content, dict):
        title = str(content.get("title") or UNTITLED_VIDEO)
        description = str(content.get("description") or "")
        tags = _as_str_list(content.get("tags"))
    else:
        raise TypeError(f"Unsupported YouTube content type: {type(content).__name__}")

    video = YouTubeVideo(
        title=truncate(title, limits["title"]),
        description=truncate(description, limits["description"]),
        tags=tags[: limits["tags"]],
        format=video_format or "video",
    )
    logger.debug("Formatted YouTube video: title=%r, %d tags", video.title, len(video.tags))
    return video
