"""
Log-safe rendering of client-supplied data.
"""

from __future__ import annotations

import re

from relay_gateway.components.core.constants import WSConstants

# Control characters plus Unicode direction overrides, zero-width marks and BOM
_CONTROL_CHAR_PATTERN = re.compile(
    r"[\x00-\x1f\x7f-\x9f"
    r"\u200b-\u200f"
    r"\u202a-\u202e"
    r"\u2066-\u2069"
    r"\ufeff]"
)


def sanitize_log_data(data: str | bytes, max_length: int = WSConstants.LOG_PREVIEW_LENGTH) -> str:
    """
    Make a raw client payload safe to embed in a structured log line.

    Truncates first so that escaping cannot change where the cut falls,
    then strips control characters and escapes quotes and backslashes.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")

    was_truncated = len(data) > max_length
    truncated = data[:max_length]

    sanitized = _CONTROL_CHAR_PATTERN.sub("", truncated)
    sanitized = sanitized.replace("\\", "\\\\").replace('"', '\\"')

    if was_truncated:
        return sanitized + "..."
    return sanitized
