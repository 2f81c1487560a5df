"""Codec for the versioned per-module settings blob.

A blob is the JSON text of ``{"version": 1, "values": {field: value}}``.
Field values are JSON scalars or lists/objects of them. Blobs written before
the envelope existed are flat ``{field: value}`` objects and still decode.
"""

from __future__ import annotations

import json
import math
from typing import Any, Dict, Mapping


BLOB_VERSION = 1

_SCALARS = (str, int, bool, type(None))


class SettingsBlobError(ValueError):
    """Raised for a settings blob or value that cannot be stored or read."""


def _check_value(field: str, value: Any) -> None:
    if isinstance(value, _SCALARS):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise SettingsBlobError(f"setting {field} holds a non-finite number")
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _check_value(field, item)
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise SettingsBlobError(f"setting {field} has a non-text key: {key!r}")
            _check_value(field, item)
        return
    raise SettingsBlobError(f"setting {field} cannot store {type(value).__name__}")


def encode_blob(values: Mapping[str, Any]) -> str:
    """Wrap field values in the current envelope and serialize them.

    Output is compact with sorted keys, so writing unchanged values produces
    the same text.
    """
    fields: Dict[str, Any] = {}
    for field, value in values.items():
        if not isinstance(field, str) or not field:
            raise SettingsBlobError(f"setting name must be non-empty text: {field!r}")
        _check_value(field, value)
        fields[field] = value
    envelope = {"version": BLOB_VERSION, "values": fields}
    return json.dumps(envelope, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def decode_blob(text: str | bytes | None) -> Dict[str, Any] | None:
    """Return the field values of a stored blob, or None when nothing is stored."""
    if text is None:
        return None
    if isinstance(text, bytes):
        text = text.decode("utf-8")
    if not text.strip():
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SettingsBlobError(f"settings blob is not valid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise SettingsBlobError("settings blob must decode to an object")
    if "version" not in data or "values" not in data:
        return data
    version = data.get("version")
    if version != BLOB_VERSION:
        raise SettingsBlobError(f"unsupported settings blob version: {version}")
    values = data.get("values")
    if not isinstance(values, dict):
        raise SettingsBlobError("settings blob values must be an object")
    return values
