from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from koloni.dispatch import ExportDispatcher
from koloni.errors import InvalidContent, MissingParameter, UnknownPlatform
from koloni.exporters import format_instagram, format_youtube, truncate


def test_truncate_keeps_short_text():
    assert truncate("abc", 5) == "abc"


def test_truncate_cuts_to_exact_limit():
    cut = truncate("x" * 10, 5)
    assert cut == "xx..."
    assert len(cut) == 5


class TestInstagram:
    def test_splits_caption_and_hashtags(self):
        post = format_instagram("Great day!\n#sun #fun")

        assert post.caption == "Great day!"
        assert post.hashtags == ["#sun", "#fun"]
        assert post.content.endswith("#sun #fun")
        assert post.content == "Great day!\n.\n.\n.\n#sun #fun"

    def test_every_hashtag_line_contributes(self):
        post = format_instagram("Line one\n#a #b\nLine two\nmore #c")

        assert post.caption == "Line one\nLine two"
        assert post.hashtags == ["#a", "#b", "#c"]

    def test_text_without_hashtags(self):
        post = format_instagram("  Just words\n")
        assert post.caption == "Just words"
        assert post.hashtags == []
        assert post.content == "Just words\n.\n.\n.\n"

    def test_long_caption_truncated_to_2200(self):
        post = format_instagram("a" * 3000)

        assert len(post.caption) == 2200
        assert post.caption.endswith("...")
        assert post.caption[:2197] == "a" * 2197

    def test_hashtags_capped_at_30(self):
        tags = " ".join(f"#t{i}" for i in range(40))
        post = format_instagram(f"caption\n{tags}")

        assert len(post.hashtags) == 30
        assert post.hashtags[-1] == "#t29"

    def test_structured_input(self):
        post = format_instagram({"text": "Hello", "hashtags": ["#x"]}, "reel")

        assert post.caption == "Hello"
        assert post.hashtags == ["#x"]
        assert post.media_type == "reel"

    def test_reformatting_output_does_not_crash(self):
        once = format_instagram("Great day!\n#sun #fun").content
        twice = format_instagram(once)
        assert twice.hashtags == ["#sun", "#fun"]

    def test_to_dict_metadata(self):
        data = format_instagram("Great day!\n#sun #fun").to_dict()

        assert data["success"] is True
        assert data["platform"] == "instagram"
        assert data["metadata"]["captionLength"] == len("Great day!")
        assert data["metadata"]["hashtagCount"] == 2
        assert data["metadata"]["mediaType"] == "post"
        assert len(data["tips"]) == 4


class TestYouTube:
    def test_splits_title_description_tags(self):
        video = format_youtube("My Title\nLine1\nLine2\n#tag1")

        assert video.title == "My Title"
        assert "Line1\nLine2" in video.description
        assert video.tags == ["tag1"]

    def test_blank_lines_are_skipped(self):
        video = format_youtube("\n\n  \nTitle\n\nBody")
        assert video.title == "Title"
        assert video.description == "Body"

    def test_empty_content_gets_fallback_title(self):
        assert format_youtube("   \n ").title == "Untitled Video"

    def test_title_and_description_limits(self):
        video = format_youtube("T" * 150 + "\n" + "d" * 6000)

        assert len(video.title) == 100
        assert video.title.endswith("...")
        assert len(video.description) == 5000
        assert video.description.endswith("...")

    def test_tags_capped_at_30(self):
        tags = " ".join(f"#k{i}" for i in range(35))
        video = format_youtube(f"Title\n{tags}")
        assert len(video.tags) == 30

    def test_structured_description_template(self):
        video = format_youtube({"title": "T", "description": "About", "tags": ["a", "b"]})
        text = video.structured_description

        assert text.startswith("About\n")
        assert "0:00 Introduction" in text
        assert "[Your Website]" in text
        assert text.endswith("a, b")

    def test_to_dict(self):
        data = format_youtube("My Title\nLine1\n#tag1", "short").to_dict()

        assert data["platform"] == "youtube"
        assert data["title"] == "My Title"
        assert data["tags"] == ["tag1"]
        assert data["metadata"]["format"] == "short"
        assert data["metadata"]["descriptionLength"] == len(data["description"])
        assert len(data["tips"]) == 5

    def test_reformatting_output_does_not_crash(self):
        once = format_youtube("My Title\nLine1\n#tag1").to_dict()["description"]
        format_youtube(once)


class TestExportDispatcher:
    def test_routes_by_platform(self):
        dispatcher = ExportDispatcher()
        assert dispatcher.export("instagram", "hi\n#x")["platform"] == "instagram"
        assert dispatcher.export("youtube", "hi")["platform"] == "youtube"

    def test_unknown_platform(self):
        with pytest.raises(UnknownPlatform):
            ExportDispatcher().export("tiktok", "hi")

    def test_missing_content(self):
        with pytest.raises(MissingParameter):
            ExportDispatcher().export("instagram", "")

    def test_invalid_content_type(self):
        with pytest.raises(InvalidContent):
            ExportDispatcher().export("youtube", ["not", "text"])
