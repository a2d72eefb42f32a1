from __future__ import annotations

import re

# Applied in this order; headers and bullets only at line starts.
_MARKDOWN_RULES = (
    (re.compile(r"\*\*([^*]+)\*\*"), r"\1"),
    (re.compile(r"\*([^*]+)\*"), r"\1"),
    (re.compile(r"__([^_]+)__"), r"\1"),
    (re.compile(r"~~([^~]+)~~"), r"\1"),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"^#{1,6}\s+", re.MULTILINE), ""),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"^\s*[-*+]\s+", re.MULTILINE), ""),
)


def _strip_once(text: str) -> str:
    for pattern, replacement in _MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


def strip_markdown(text: str) -> str:
    """Remove inline markdown decorations from provider free text.

    Passes repeat until nothing changes (each pass only ever shortens the
    text), so nested decorations such as ``- # Title`` are fully removed and
    a second call is a no-op.
    """

    if not text:
        return text
    cleaned = _strip_once(text)
    while cleaned != text:
        text, cleaned = cleaned, _strip_once(cleaned)
    return cleaned
