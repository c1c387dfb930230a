"""Content sanitization and spam heuristics for bot posts."""

from __future__ import annotations

import re

_SCRIPT_RE = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_JS_SCHEME_RE = re.compile(r"javascript:", re.IGNORECASE)
_INLINE_HANDLER_RE = re.compile(r"on\w+\s*=", re.IGNORECASE)
_DATA_HTML_RE = re.compile(r"data:\s*text/html", re.IGNORECASE)

_UPPER_RE = re.compile(r"[A-Z]")
_LETTER_RE = re.compile(r"[a-zA-Z]")
_REPEAT_RE = re.compile(r"(.)\1{6,}", re.IGNORECASE)
_LINK_RE = re.compile(r"https?://", re.IGNORECASE)

MAX_LINKS = 3
CAPS_MIN_LENGTH = 20
CAPS_RATIO = 0.7
SIMILARITY_MIN_LENGTH = 20
SIMILARITY_THRESHOLD = 0.9

SPAM_PHRASES = (
    "buy now",
    "free money",
    "click here",
    "earn fast",
    "guaranteed profit",
    "double your",
    "send me crypto",
    "dm me for",
)


def sanitize_content(raw: str) -> str:
    """Strip script blocks, HTML tags, `javascript:` URLs and inline handlers."""
    text = _SCRIPT_RE.sub("", raw)
    text = _TAG_RE.sub("", text)
    text = _JS_SCHEME_RE.sub("", text)
    text = _INLINE_HANDLER_RE.sub("", text)
    text = _DATA_HTML_RE.sub("", text)
    return text.strip()


def jaccard_similarity(a: str, b: str) -> float:
    """Word-set Jaccard similarity, case-insensitive."""
    words_a = set(a.lower().split())
    words_b = set(b.lower().split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def detect_spam(content: str, recent_posts: list[str]) -> str | None:
    """
    Run the spam heuristics against a candidate post.

    Args:
        content: Sanitized post text.
        recent_posts: The author's most recent post contents, newest first.

    Returns:
        A human-readable rejection reason, or None when the post is acceptable.
    """
    if len(content) > CAPS_MIN_LENGTH:
        letters = len(_LETTER_RE.findall(content))
        upper = len(_UPPER_RE.findall(content))
        if letters and upper / letters > CAPS_RATIO:
            return "Excessive uppercase."

    if _REPEAT_RE.search(content):
        return "Excessive repeated characters."

    if len(_LINK_RE.findall(content)) > MAX_LINKS:
        return f"Too many links (max {MAX_LINKS})."

    lower = content.lower()
    for phrase in SPAM_PHRASES:
        if phrase in lower:
            return f'Spam pattern: "{phrase}"'

    stripped = content.strip()
    if any(recent == stripped for recent in recent_posts):
        return "Duplicate post."

    if len(content) > SIMILARITY_MIN_LENGTH:
        for recent in recent_posts:
            if len(recent) > SIMILARITY_MIN_LENGTH and jaccard_similarity(content, recent) > SIMILARITY_THRESHOLD:
                return "Too similar to a recent post."

    return None
