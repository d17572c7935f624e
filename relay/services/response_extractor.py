from __future__ import annotations

import re
from typing import Any

_THINKING_RE = re.compile(r"<thinking>.*?</thinking>", flags=re.DOTALL)


def _clean(text: str) -> str:
    text = _THINKING_RE.sub("", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def extract_response_text(result: Any) -> str:
    """Extract a user-facing text from a Strands agent result.

    Returns an empty string when the model produced no text.
    """

    message = getattr(result, "message", None)
    if not message:
        return _clean(str(result)) if result is not None else ""

    # Strands result.message may be dict-like or a model with `.content`.
    if isinstance(message, dict):
        content: object = message.get("content", [])
    else:
        content = getattr(message, "content", [])

    # Some models return plain string content.
    if isinstance(content, str):
        return _clean(content)

    text_parts: list[str] = []
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict) and "text" in block:
                text = _clean(str(block["text"]))
                if text:
                    text_parts.append(text)

    # Prefer the last block to avoid duplicate intermediate drafts.
    return text_parts[-1] if text_parts else ""
