from __future__ import annotations

import re
from typing import Any, Mapping, Sequence

from .records import ContentType, HookType

DEFAULT_LONG_FORM_MIN_CHARS = 200

_CONTRARIAN_TERMS = ("unpopular opinion", "hot take", "wrong")
_FOMO_TERMS = ("sleeping on", "closing", "behind")

# "<N> years ago" is a narrative marker, not a statistic.
_NUMBERS_RE = re.compile(r"\d+%|\d+k|\d+ (?:days|weeks|hours|years)(?! ago)")
_STORY_RE = re.compile(r"in \d{4}|years ago|last week|first time")


def detect_hook_type(text: str) -> HookType:
    """
    Classify the rhetorical hook of a post from its lowercased text.

    Rules are ordered; the first match wins.
    """
    t = (text or "").lower()

    if any(term in t for term in _CONTRARIAN_TERMS):
        return "Contrarian"
    if _NUMBERS_RE.search(t):
        return "Data/Numbers"
    if any(term in t for term in _FOMO_TERMS):
        return "FOMO"
    if "?" in t:
        return "Question"
    if _STORY_RE.search(t):
        return "Story"
    return "Bold Statement"


def detect_content_type(
    text: str,
    *,
    long_form_min_chars: int = DEFAULT_LONG_FORM_MIN_CHARS,
    referenced: Sequence[Mapping[str, Any]] | None = None,
) -> ContentType:
    """
    Classify a post's format.

    Threads are only detectable when reply references are supplied (API data);
    spreadsheet exports do not expose reply-chain linkage.
    """
    if referenced and any(
        isinstance(ref, Mapping) and ref.get("type") == "replied_to" for ref in referenced
    ):
        return "Thread"

    body = text or ""
    if not body.strip():
        return "Unknown"
    if len(body) > long_form_min_chars:
        return "Long-form"
    return "Single Post"
