from __future__ import annotations

import re

# Tags kept in community content; everything else is stripped
ALLOWED_TAGS = ("b", "i", "em", "strong", "p", "br", "ul", "ol", "li")

_SCRIPT_BLOCKS = re.compile(r"<\s*(script|style|iframe|object|embed)\b[^>]*>.*?<\s*/\s*\1\s*>", re.I | re.S)
_TAG = re.compile(r"<\s*(/?)\s*([a-zA-Z0-9]+)[^>]*>")
_JS_URL = re.compile(r"javascript\s*:", re.I)


def _strip_tags(text: str, allowed: tuple[str, ...]) -> str:
    def repl(match: re.Match) -> str:
        closing, tag = match.group(1), match.group(2).lower()
        if tag in allowed:
            # Drop all attributes from allowed tags
            return f"<{closing}{tag}>"
        return ""

    return _TAG.sub(repl, text)


def sanitize_content(text: str) -> str:
    """Strip scripts, unknown tags and attributes; keep basic formatting tags."""
    cleaned = _SCRIPT_BLOCKS.sub("", text or "")
    cleaned = _strip_tags(cleaned, ALLOWED_TAGS)
    cleaned = _JS_URL.sub("", cleaned)
    return cleaned.strip()


def sanitize_ai_message(text: str) -> str:
    """Plain text only for chat messages."""
    cleaned = _SCRIPT_BLOCKS.sub("", text or "")
    cleaned = _strip_tags(cleaned, ())
    cleaned = _JS_URL.sub("", cleaned)
    # Minor whitespace cleanup
    cleaned = re.sub(r"[ \t]{2,}", " ", cleaned)
    return cleaned.strip()
