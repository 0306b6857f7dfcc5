"""
Shared pytest fixtures for engine and scoring tests.

Comment texts are chosen against the mock engine's keyword lists in
src/engine/engines.py (POSITIVE_WORDS, NEGATIVE_WORDS, IRONIC_PHRASES) so
that the expected sign of each score is obvious from the text alone.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import requests

from src.engine.records import AxisProfile, Comment, VideoContext

# ---------------------------------------------------------------------------
# Comment texts (sourced from the mock engine keyword lists)
# Positive: "amazing", "great", "love", "helpful", "thank"
# Negative: "terrible", "waste", "worst", "boring"
# Ironic:   "oh wonderful", "yeah right"
# ---------------------------------------------------------------------------

ENTHUSIASTIC_TEXT = "This is amazing! I love it! Great work, thank you!"
# positive hits: amazing, love, great, thank (4) → raw 1.6, clamped to 1.0

FRUSTRATED_TEXT = "Terrible video. Worst explanation ever, total waste of time!!"
# negative hits: terrible, worst, waste (3) → raw -1.2 × 1.2, clamped to -1.0

SARCASTIC_TEXT = "Oh wonderful, another ad break. Just what we needed."
# ironic phrase → score ≤ -0.5, isSarcasm true

PLAIN_TEXT = "Uploaded at 3pm, watched on the train."
# no hits → 0.0


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def build_comment(
    comment_id: str = "c1",
    text: str = PLAIN_TEXT,
    like_count: int = 0,
    parent_id: str | None = None,
    parent_text: str | None = None,
    author: str = "viewer",
) -> Comment:
    return Comment(
        comment_id=comment_id,
        text=text,
        author=author,
        like_count=like_count,
        parent_id=parent_id,
        parent_text=parent_text,
    )


@pytest.fixture
def make_comment():
    """Factory fixture: ``make_comment(comment_id, text, like_count=..., parent_id=...)``."""
    return build_comment


@pytest.fixture
def thread_comments():
    """Two top-level comments and one reply, with the reply listed first."""
    return [
        build_comment("r1", "Yeah, I love this too, great point", parent_id="p1",
                      parent_text="Great video, I love it!"),
        build_comment("p1", "Great video, I love it!", like_count=12),
        build_comment("p2", "Uploaded at 3pm, watched on the train.", like_count=3),
    ]


@pytest.fixture
def axis_profile():
    return AxisProfile(
        video_id="vid-1",
        main_axis="Practice matters more than theory",
        creator_position="Practice first; theory follows",
        target_of_criticism="People who only study theory",
        supported_values="Learning by doing",
        generated_at="2024-01-01T00:00:00+00:00",
    )


@pytest.fixture
def video_context():
    return VideoContext(
        title="Stop reading, start building",
        channel_name="BuildFirst",
        description="Why practice beats theory for new programmers.",
        summary="The creator argues that practice beats theory and mocks theory-only learners.",
        transcript="Today I want to talk about why you should stop reading books...",
    )


# ---------------------------------------------------------------------------
# HTTP response builders
# ---------------------------------------------------------------------------

def groq_reply(content: str, total_tokens: int = 321) -> dict:
    """Raw OpenAI-compatible chat-completions body wrapping ``content``."""
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"total_tokens": total_tokens},
    }


def gemini_reply(content: str, total_tokens: int = 123) -> dict:
    """Raw Gemini generateContent body wrapping ``content``."""
    return {
        "candidates": [{"content": {"parts": [{"text": content}]}}],
        "usageMetadata": {"totalTokenCount": total_tokens},
    }


def ok_response(body: dict) -> MagicMock:
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = body
    response.raise_for_status = MagicMock()
    return response


def http_error(status_code: int, body: dict | None = None) -> requests.HTTPError:
    """``requests.HTTPError`` carrying a real ``Response`` with ``status_code``."""
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body or {}).encode("utf-8")
    response.encoding = "utf-8"
    return requests.HTTPError(f"{status_code} Client Error", response=response)
