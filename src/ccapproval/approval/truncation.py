from __future__ import annotations

import json
from typing import Any

TRUNCATION_MARKER = "…"


def cap_text(text: str, *, max_chars: int) -> tuple[str, bool]:
    if len(text) <= max_chars:
        return text, False
    return text[:max_chars], True


def render_parameters(parameters: Any, *, max_chars: int) -> str:
    """Pretty-print tool parameters, cutting the output at ``max_chars``.

    Non-JSON values fall back to ``str()``. A truncated rendering ends with an explicit
    marker so readers know the payload was cut.
    """
    try:
        text = json.dumps(parameters, indent=2, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        text = str(parameters)

    capped, truncated = cap_text(text, max_chars=max_chars)
    if truncated:
        return f"{capped}\n{TRUNCATION_MARKER} (truncated)"
    return capped
