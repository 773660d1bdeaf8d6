"""Helpers for list-valued settings that may arrive as delimited strings."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any, List

LIST_DELIMITERS = re.compile(r"[;,\s]+")


def split_setting(value: Any) -> List[str]:
    """Turn ``"a, b;c"`` or ``["a,b", "c"]`` into ``["a", "b", "c"]``.

    Blank tokens and repeats are dropped; first-seen order is kept. ``None``
    and empty values give an empty list.
    """
    if value is None or value == "":
        return []
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        raw_tokens: List[str] = []
        for item in value:
            raw_tokens.extend(split_setting(item))
    else:
        raw_tokens = LIST_DELIMITERS.split(str(value))

    tokens: List[str] = []
    for token in raw_tokens:
        token = token.strip()
        if token and token not in tokens:
            tokens.append(token)
    return tokens
