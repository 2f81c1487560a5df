"""Naming helpers shared by modules, renderers and templates."""

from __future__ import annotations

import re

_UPPER_RE = re.compile(r"([A-Z])")
_TABLE_PREFIX_RE = re.compile(r"^.*?\.")
_DOM_ID_RE = re.compile(r"[^A-Za-z0-9_]+")


def ucfirst(text: str | None) -> str:
    if not text:
        return ""
    return text[:1].upper() + text[1:]


def ucwords(text: str | None) -> str:
    if not text:
        return ""
    return " ".join(ucfirst(word) for word in text.split(" "))


def split_camel(text: str) -> str:
    return _UPPER_RE.sub(r" \1", text or "").strip()


def title_from_type(module_type: str) -> str:
    """'ResourceKey' -> 'Resource Key', 'site_config' -> 'Site Config'."""
    return ucwords(split_camel((module_type or "").replace("_", " ")))


def strip_table_prefix(column: str) -> str:
    return _TABLE_PREFIX_RE.sub("", column or "")


def handler_name(action: str, sub_action: str | None = None, method: str | None = None) -> str:
    parts = [method or "", action or "", sub_action or ""]
    return "prepare" + "".join(ucfirst(part.lower()) for part in parts)


def dom_id(field_name: str) -> str:
    return _DOM_ID_RE.sub("_", field_name or "").strip("_")
