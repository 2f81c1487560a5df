"""Column schema adapter: raw column metadata -> ColumnDescriptor."""

from __future__ import annotations

import dataclasses
import re
from enum import Enum
from typing import Any, Dict, Mapping

from adminkit.naming import ucwords


class KeyRole(str, Enum):
    NONE = ""
    PRIMARY = "Primary"
    UNIQUE = "Unique"


class ColumnKind(str, Enum):
    HIDDEN = "hidden"
    ENUM = "enum"
    RICH_TEXT = "rich_text"
    RADIO = "radio"
    TEXT_INPUT = "text_input"
    DATE = "date"
    SEARCH_DATE = "search_date"
    PASSWORD = "password"
    CHECKBOX = "checkbox"
    UNKNOWN = "unknown"


_FAMILY_KINDS: Dict[str, ColumnKind] = {
    "hidden": ColumnKind.HIDDEN,
    "enum": ColumnKind.ENUM,
    "text": ColumnKind.RICH_TEXT,
    "mediumtext": ColumnKind.RICH_TEXT,
    "longtext": ColumnKind.RICH_TEXT,
    "textarea": ColumnKind.RICH_TEXT,
    "radio": ColumnKind.RADIO,
    "float": ColumnKind.TEXT_INPUT,
    "int": ColumnKind.TEXT_INPUT,
    "varchar": ColumnKind.TEXT_INPUT,
    "char": ColumnKind.TEXT_INPUT,
    "timestamp": ColumnKind.DATE,
    "date": ColumnKind.DATE,
    "searchdate": ColumnKind.SEARCH_DATE,
    "password": ColumnKind.PASSWORD,
    "tinyint": ColumnKind.CHECKBOX,
}

_KEY_ROLES = {
    "primary": KeyRole.PRIMARY,
    "pri": KeyRole.PRIMARY,
    "unique": KeyRole.UNIQUE,
    "uni": KeyRole.UNIQUE,
}

_FAMILY_RE = re.compile(r"[ (].*$", re.S)
_ENUM_RE = re.compile(r"^enum\((.*)\)", re.I | re.S)


def type_family(raw_type: str | None) -> str:
    return _FAMILY_RE.sub("", (raw_type or "").strip()).lower()


def column_kind(raw_type: str | None) -> ColumnKind:
    return _FAMILY_KINDS.get(type_family(raw_type), ColumnKind.UNKNOWN)


def key_role(value: Any) -> KeyRole:
    if isinstance(value, KeyRole):
        return value
    if not isinstance(value, str) or not value.strip():
        return KeyRole.NONE
    text = value.strip().lower()
    if text in _KEY_ROLES:
        return _KEY_ROLES[text]
    # "Primary Key", "unique index" and similar
    if "primary" in text:
        return KeyRole.PRIMARY
    if "uni" in text:
        return KeyRole.UNIQUE
    return KeyRole.NONE


def parse_enum_options(raw_type: str) -> list[tuple[str, str]]:
    """Return (value, label) pairs for an ``enum('a','b')`` declaration.

    Doubled single quotes inside a value are read as a literal quote.
    """
    match = _ENUM_RE.match((raw_type or "").strip())
    if not match:
        return []
    inner = match.group(1).replace("'", '"').replace('""', "'").replace('"', "")
    values = [item for item in inner.split(",")]
    return [(value, ucwords(value)) for value in values]


@dataclasses.dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    raw_type: str
    key_role: KeyRole = KeyRole.NONE
    default: Any = None
    extra: Mapping[str, Any] = dataclasses.field(default_factory=dict)
    family: str = ""
    kind: ColumnKind = ColumnKind.UNKNOWN
    options: tuple = ()

    @property
    def is_primary(self) -> bool:
        return self.key_role is KeyRole.PRIMARY

    @property
    def is_boolean(self) -> bool:
        return (self.raw_type or "").strip().lower() == "tinyint(1)"

    @property
    def radio_values(self) -> list:
        return [value for key, value in self.extra.items() if str(key).startswith("Value")]

    def with_type(self, raw_type: str) -> "ColumnDescriptor":
        return make_descriptor(self.name, raw_type, self.key_role, self.default, self.extra)

    def as_dict(self) -> dict:
        data = {"Type": self.raw_type, "Default": self.default}
        if self.key_role is not KeyRole.NONE:
            data["Key"] = self.key_role.value
        data.update(self.extra)
        return data


def make_descriptor(
    name: str,
    raw_type: str,
    role: KeyRole = KeyRole.NONE,
    default: Any = None,
    extra: Mapping[str, Any] | None = None,
) -> ColumnDescriptor:
    raw_type = raw_type or ""
    kind = column_kind(raw_type)
    options = tuple(parse_enum_options(raw_type)) if kind is ColumnKind.ENUM else ()
    return ColumnDescriptor(
        name=name,
        raw_type=raw_type,
        key_role=role,
        default=default,
        extra=dict(extra or {}),
        family=type_family(raw_type),
        kind=kind,
        options=options,
    )


def describe_column(name: str, meta: Mapping[str, Any] | str | ColumnDescriptor) -> ColumnDescriptor:
    if isinstance(meta, ColumnDescriptor):
        return meta
    if isinstance(meta, str):
        return make_descriptor(name, meta)
    raw_type = meta.get("Type") or meta.get("type") or ""
    role = key_role(meta.get("Key", meta.get("key")))
    default = meta.get("Default", meta.get("default"))
    extra = {k: v for k, v in meta.items() if k not in ("Type", "type", "Key", "key", "Default", "default")}
    return make_descriptor(name, raw_type, role, default, extra)


def describe_columns(columns: Mapping[str, Any]) -> dict[str, ColumnDescriptor]:
    """Normalize a name -> metadata mapping, keeping declaration order."""
    return {name: describe_column(name, meta) for name, meta in columns.items()}
