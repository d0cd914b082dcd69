"""Turn assistant output into short, speakable feedback.

Feedback must never read out JSON blobs, code or markup, and must stay
short enough to not block the next command.
"""

from __future__ import annotations

import json
import re
from typing import Any

_CODE_FENCE_RE = re.compile(r"```")
_MARKUP_RE = re.compile(r"</?\w+[^>]*>")
_MARKDOWN_RE = re.compile(r"[*#`]+")
_WS_RE = re.compile(r"\s+")


def _looks_like_json(text: str) -> bool:
    t = text.strip()
    if t.startswith("{") or t.startswith("["):
        # Broken JSON is not speakable either.
        return True
    if '"' in t and ":" in t and ("{" in t or "[" in t):
        start = min(i for i in (t.find("{"), t.find("[")) if i >= 0)
        try:
            json.JSONDecoder().raw_decode(t[start:])
        except ValueError:
            return False
        return True
    return False


def _split_sentences(text: str) -> list[str]:
    parts = re.split(r"(?<=[.!?])\s+", text.strip())
    return [p.strip() for p in parts if p.strip()]


def to_speakable(
    text: str,
    *,
    max_chars: int = 200,
    max_sentences: int = 2,
) -> tuple[str | None, dict[str, Any]]:
    """Return (speakable_text_or_None, debug_info)."""
    debug: dict[str, Any] = {
        "input_chars": len(text or ""),
        "skipped": False,
        "skip_reason": None,
        "truncated": False,
        "output_chars": 0,
    }

    raw = (text or "").strip()
    if not raw:
        debug.update({"skipped": True, "skip_reason": "empty"})
        return None, debug
    if _CODE_FENCE_RE.search(raw):
        debug.update({"skipped": True, "skip_reason": "contained_code_fence"})
        return None, debug
    if _looks_like_json(raw):
        debug.update({"skipped": True, "skip_reason": "contained_json"})
        return None, debug

    raw = _MARKUP_RE.sub("", raw)
    raw = _MARKDOWN_RE.sub("", raw)
    raw = _WS_RE.sub(" ", raw).strip()

    sentences = _split_sentences(raw)
    speak = " ".join(sentences[: max(1, max_sentences)]) if sentences else raw
    if len(sentences) > max_sentences:
        debug["truncated"] = True

    if len(speak) > max_chars:
        speak = speak[: max(0, max_chars - 1)].rstrip() + "…"
        debug["truncated"] = True

    speak = speak.strip()
    if not speak:
        debug.update({"skipped": True, "skip_reason": "empty_after_filter"})
        return None, debug

    debug["output_chars"] = len(speak)
    return speak, debug
