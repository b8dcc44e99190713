"""Render snapshots for debug logs without leaking what stores persist.

A snapshot is whatever a store's ``serialize_state`` returns, usually plain
JSON-shaped data. Fields whose name looks like a credential are masked and
long strings are clipped; anything that is not JSON-shaped is shown by type
name only.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

MASK = "<redacted>"

# Matched against field names with case and ``_``/``-`` separators removed.
_SENSITIVE_FIELD = re.compile(r"(password|passwd|secret|token|apikey|authorization|cookie)$")
_SEPARATORS = re.compile(r"[_\-]")

_MAX_DEPTH = 20


def is_sensitive_field(name: object) -> bool:
    """Whether a snapshot field called *name* should never be logged."""
    return _SENSITIVE_FIELD.search(_SEPARATORS.sub("", str(name).lower())) is not None


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}…<truncated {len(text) - limit} chars>"


def redact_snapshot(snapshot: Any, *, max_string: int = 256) -> Any:
    """Return a log-safe copy of *snapshot*."""

    def walk(node: Any, depth: int) -> Any:
        if depth > _MAX_DEPTH:
            return "<max-depth>"
        if isinstance(node, str):
            return _clip(node, max_string)
        if node is None or isinstance(node, (bool, int, float)):
            return node
        if isinstance(node, Mapping):
            return {
                str(name): MASK if is_sensitive_field(name) else walk(child, depth + 1)
                for name, child in node.items()
            }
        if isinstance(node, (list, tuple)):
            return [walk(child, depth + 1) for child in node]
        return f"<{type(node).__name__}>"

    return walk(snapshot, 0)
