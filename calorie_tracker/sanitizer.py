# -*- coding: utf-8 -*-
"""Free-text input sanitization (distinct from schema validation)."""

from __future__ import annotations

import re
from typing import Any, Dict

MAX_INPUT_LENGTH = 500

_ANGLE_BRACKETS_RE = re.compile(r"[<>]")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_input(value: Any) -> str:
    """Trim, drop angle brackets and control characters, cap at 500 chars.

    Total: anything that is not a ``str`` becomes ``''``.
    """
    if not isinstance(value, str):
        return ""
    cleaned = value.strip()
    cleaned = _ANGLE_BRACKETS_RE.sub("", cleaned)
    cleaned = _CONTROL_CHARS_RE.sub("", cleaned)
    # Re-strip after removal and after truncation so the result is a fixed point.
    return cleaned.strip()[:MAX_INPUT_LENGTH].rstrip()


def sanitize_object(obj: Any) -> Dict[str, Any]:
    if not isinstance(obj, dict):
        return {}
    return {k: sanitize_input(v) if isinstance(v, str) else v for k, v in obj.items()}


def normalize_whitespace(text: Any) -> str:
    if not isinstance(text, str):
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    return text.strip()
