"""In-memory stores: records, settings, sessions and address lookups."""

from __future__ import annotations

import copy
import operator
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping

from entity_catalog import EntityCatalog, Record


_OPERATORS = {"<": operator.lt, "=": operator.eq, ">": operator.gt}


def normalize_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _compare(op: str, left: Any, right: Any) -> bool:
    fn = _OPERATORS.get(op)
    if fn is None:
        raise ValueError(f"unsupported search operator: {op}")
    try:
        return fn(float(left), float(right))
    except (TypeError, ValueError):
        return fn(normalize_value(left), normalize_value(right))


def matches(data: Mapping[str, Any], criteria: Mapping[str, Any] | None) -> bool:
    for column, expected in (criteria or {}).items():
        actual = data.get(column)
        if isinstance(expected, tuple) and len(expected) == 2:
            if actual in (None, "") or not _compare(expected[0], actual, expected[1]):
                return False
        elif isinstance(expected, (list, set)):
            if normalize_value(actual) not in {normalize_value(v) for v in expected}:
                return False
        elif normalize_value(actual) != normalize_value(expected):
            return False
    return True


def sort_key(column: str | None):
    def key(data: Mapping[str, Any]):
        value = data.get(column) if column else None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return (0, value, "")
        return (1, 0, normalize_value(value).lower())

    return key


class MemoryRecordStore:
    def __init__(self, catalog: EntityCatalog) -> None:
        self._catalog = catalog
        self._rows: Dict[str, Dict[int, dict]] = {}
        self._next_id: Dict[str, int] = {}

    def _schema(self, entity_type: str):
        schema = self._catalog.get(entity_type)
        if schema is None:
            raise KeyError(f"unknown entity type: {entity_type}")
        return schema

    def _bucket(self, entity_type: str) -> Dict[int, dict]:
        return self._rows.setdefault(self._schema(entity_type).type, {})

    def blank(self, entity_type: str) -> Record:
        return Record(self._schema(entity_type))

    def load(self, entity_type: str, record_id: Any) -> Record | None:
        try:
            key = int(record_id)
        except (TypeError, ValueError):
            return None
        row = self._bucket(entity_type).get(key)
        if row is None:
            return None
        return Record(self._schema(entity_type), row)

    def search(self, entity_type: str, criteria: Mapping[str, Any] | None = None, sort_column: str | None = None) -> List[Record]:
        schema = self._schema(entity_type)
        rows = [row for row in self._bucket(entity_type).values() if matches(row, criteria)]
        rows.sort(key=sort_key(sort_column or schema.id_column))
        return [Record(schema, row) for row in rows]

    def save(self, record: Record) -> bool:
        schema = record.schema
        bucket = self._bucket(schema.type)
        if record.id <= 0:
            next_id = self._next_id.get(schema.type, max(bucket, default=0) + 1)
            record.id = next_id
            self._next_id[schema.type] = next_id + 1
        bucket[record.id] = record.get_all()
        return True

    def delete(self, record: Record) -> bool:
        bucket = self._bucket(record.type)
        if record.id not in bucket:
            return False
        del bucket[record.id]
        return True

    def seed(self, entity_type: str, rows: Iterable[Mapping[str, Any]]) -> List[Record]:
        saved = []
        for row in rows:
            record = self.blank(entity_type)
            record.set_all(row)
            self.save(record)
            saved.append(record)
        return saved


class MemorySettingsStore:
    def __init__(self) -> None:
        self._blobs: Dict[str, str] = {}

    def read_settings(self, module_type: str) -> str | None:
        return self._blobs.get(module_type)

    def write_settings(self, module_type: str, blob: str) -> None:
        self._blobs[module_type] = blob

    def insert_settings(self, module_type: str, blob: str) -> None:
        self._blobs.setdefault(module_type, blob)


class SessionHandle:
    """Session store view bound to one browser session."""

    def __init__(self, data: Dict[str, Any]) -> None:
        self._data = data

    def get(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def clear(self, key: str) -> None:
        self._data.pop(key, None)


class MemorySessionStore:
    def __init__(self, ttl_seconds: float = 0, clock: Callable[[], float] = time.monotonic) -> None:
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._touched: Dict[str, float] = {}
        self._ttl = ttl_seconds
        self._clock = clock

    def for_session(self, session_id: str) -> SessionHandle:
        self._touched[session_id] = self._clock()
        return SessionHandle(self._sessions.setdefault(session_id, {}))

    def prune(self) -> int:
        """Forget sessions not opened for longer than the ttl; a ttl of 0 keeps them all."""
        if self._ttl <= 0:
            return 0
        cutoff = self._clock() - self._ttl
        expired = [sid for sid, touched in self._touched.items() if touched < cutoff]
        for sid in expired:
            self._touched.pop(sid, None)
            self._sessions.pop(sid, None)
        return len(expired)


class MemoryGeoLookup:
    def __init__(self, entries: Iterable[tuple[str, str, str]] | None = None) -> None:
        self._entries: List[tuple[str, str, str]] = []
        for state, city, zip_code in entries or ():
            self.add(state, city, zip_code)

    def add(self, state: str, city: str, zip_code: str) -> None:
        self._entries.append((state.upper(), city, zip_code))

    def cities_by_state(self, state: str) -> List[str]:
        state = (state or "").upper()
        return sorted({city for st, city, _ in self._entries if st == state})

    def zips_by_city(self, city: str, state: str) -> List[str]:
        state = (state or "").upper()
        return sorted({z for st, c, z in self._entries if st == state and c.lower() == (city or "").lower()})
