# app/moderation/profanity.py
from __future__ import annotations

import re

from app.errors import ValidationFailed

BAD_WORDS = {
    # keep lowercase; single tokens only here
    "ass",
    "fuck",
    "shit",
    "bitch",
}

_patterns = [
    re.compile(rf"(?i)(?:^|(?<=\W))({re.escape(w)})(?=$|\W)", re.UNICODE)
    for w in BAD_WORDS
]


def contains_profanity(text: str) -> str | None:
    t = text or ""
    for pat in _patterns:
        m = pat.search(t)
        if m:
            return m.group(1)
    return None


def ensure_clean(text: str, field: str = "Content") -> None:
    hit = contains_profanity(text)
    if hit:
        raise ValidationFailed(f"{field} contains inappropriate language.")


def require_text(text: str | None, field: str, max_chars: int | None = None) -> str:
    """Trimmed, non-empty, profanity-free ``text`` or ValidationFailed."""
    value = (text or "").strip()
    if not value:
        raise ValidationFailed(f"{field} cannot be empty.")
    if max_chars is not None and len(value) > max_chars:
        raise ValidationFailed(f"{field} is longer than {max_chars} characters.")
    ensure_clean(value, field)
    return value
