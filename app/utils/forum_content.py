# app/utils/forum_content.py
import math
import re

from app.config import READING_WPM

TAG_RE = re.compile(r"<[^>]*>")
WS_RE = re.compile(r"\s+")


def plain_text(content: str) -> str:
    """Post bodies are HTML; strip tags and squash whitespace."""
    return WS_RE.sub(" ", TAG_RE.sub(" ", content or "")).strip()


def calculate_reading_time(content: str, wpm: int = READING_WPM) -> int:
    """Whole minutes, rounded up; 0 for an empty body."""
    text = plain_text(content)
    if not text:
        return 0
    return math.ceil(len(text.split(" ")) / wpm)
