"""
Content parsing and embedding-text extraction.

Memories arrive as raw strings that are usually, but not always, JSON.
The embedded text is derived from them exactly once, at write time.
"""

import json
from typing import Any, Optional

# Checked in order; the first string-valued field wins
TEXT_FIELDS = ("text", "fact", "observation", "content")


def _reject_constant(name: str):
    # NaN/Infinity parse in Python but are rejected by jsonb
    raise ValueError(f"Unsupported JSON constant: {name}")


def parse_content(raw_content: str) -> tuple[Any, bool]:
    """
    Parse raw memory content.

    Returns:
        (content, is_json). Input that is not valid JSON degrades to an
        empty object with is_json=False.
    """
    try:
        return json.loads(raw_content, parse_constant=_reject_constant), True
    except (TypeError, ValueError, RecursionError):
        return {}, False


def extract_text(content: Any, raw_content: str, title: Optional[str] = None) -> str:
    """
    Derive the text to embed for a memory.

    Uses the first string-valued field of TEXT_FIELDS when `content` is a
    JSON object, otherwise the raw string. A non-blank title is prepended.
    """
    text = raw_content
    if isinstance(content, dict):
        for key in TEXT_FIELDS:
            value = content.get(key)
            if isinstance(value, str):
                text = value
                break

    if title and title.strip():
        text = f"{title} {text}"

    return text


def prepare_content(raw_content: str, title: Optional[str] = None) -> tuple[Any, str]:
    """Parse raw content and derive its embedding text in one step."""
    content, _ = parse_content(raw_content)
    return content, extract_text(content, raw_content, title)
