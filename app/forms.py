"""Decode bracketed form field names into nested mappings.

``User[Name]=x`` becomes ``{"User": {"Name": "x"}}`` and
``UserID[3]=1`` becomes ``{"UserID": {"3": "1"}}``.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Tuple

_KEY_RE = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_PART_RE = re.compile(r"\[([^\[\]]*)\]")


def split_key(key: str) -> list[str]:
    match = _KEY_RE.match(key or "")
    if not match:
        return [key]
    return [match.group(1)] + _PART_RE.findall(match.group(2))


def decode_pairs(pairs: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for key, value in pairs:
        parts = split_key(key)
        target = data
        for part in parts[:-1]:
            nxt = target.get(part)
            if not isinstance(nxt, dict):
                nxt = {}
                target[part] = nxt
            target = nxt
        last = parts[-1]
        if last == "" and len(parts) > 1:
            # "Name[]" appends
            last = str(len(target))
        target[last] = value
    return data
