"""Entity type catalog and the Record value handed out by record stores."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Protocol, Tuple

from column_schema import ColumnDescriptor, describe_columns


@dataclass
class EntitySchema:
    type: str
    columns: Dict[str, ColumnDescriptor]
    id_column: str
    # one column, or several joined with a space (FirstName LastName)
    name_column: str | Tuple[str, ...] | None = None
    table: str | None = None

    @property
    def name_columns(self) -> Tuple[str, ...]:
        if not self.name_column:
            return ()
        if isinstance(self.name_column, str):
            return (self.name_column,)
        return tuple(self.name_column)

    @property
    def sort_column(self) -> str:
        columns = self.name_columns
        return columns[0] if columns else self.id_column

    def has_column(self, name: str) -> bool:
        return name in self.columns

    def column(self, name: str) -> ColumnDescriptor | None:
        return self.columns.get(name)

    def blank_data(self) -> dict:
        data = {}
        for name, column in self.columns.items():
            data[name] = 0 if name == self.id_column else column.default
        return data


class Record:
    """Column-keyed record of one entity type; id 0 means not stored yet."""

    def __init__(self, schema: EntitySchema, data: Mapping[str, Any] | None = None) -> None:
        self._schema = schema
        self._data = schema.blank_data()
        if data:
            for key, value in data.items():
                if key in schema.columns:
                    self._data[key] = copy.deepcopy(value)

    @property
    def schema(self) -> EntitySchema:
        return self._schema

    @property
    def type(self) -> str:
        return self._schema.type

    @property
    def id(self) -> int:
        value = self._data.get(self._schema.id_column)
        try:
            return int(value or 0)
        except (TypeError, ValueError):
            return 0

    @id.setter
    def id(self, value: int) -> None:
        self._data[self._schema.id_column] = int(value)

    @property
    def name(self) -> str | None:
        columns = self._schema.name_columns
        if not columns:
            return None
        parts = [str(self._data[c]) for c in columns if self._data.get(c) not in (None, "")]
        return " ".join(parts) if parts else None

    def get(self, column: str, default: Any = None) -> Any:
        return self._data.get(column, default)

    def set(self, column: str, value: Any) -> bool:
        if column not in self._schema.columns or column == self._schema.id_column:
            return False
        self._data[column] = value
        return True

    def set_all(self, data: Mapping[str, Any] | None) -> None:
        for key, value in (data or {}).items():
            self.set(key, value)

    def get_all(self) -> dict:
        return copy.deepcopy(self._data)

    def __contains__(self, column: str) -> bool:
        return column in self._data

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"Record({self.type!r}, id={self.id})"


class RecordStore(Protocol):
    def blank(self, entity_type: str) -> Record: ...

    def load(self, entity_type: str, record_id: Any) -> Record | None: ...

    def search(self, entity_type: str, criteria: Mapping[str, Any] | None = None, sort_column: str | None = None) -> list[Record]: ...

    def save(self, record: Record) -> bool: ...

    def delete(self, record: Record) -> bool: ...


@dataclass
class EntityCatalog:
    _schemas: Dict[str, EntitySchema] = field(default_factory=dict)

    def register(
        self,
        entity_type: str,
        columns: Mapping[str, Any],
        name_column: str | Tuple[str, ...] | None = None,
        table: str | None = None,
    ) -> EntitySchema:
        described = describe_columns(columns)
        id_column = next((n for n, c in described.items() if c.is_primary), None)
        if id_column is None:
            id_column = f"{entity_type}ID"
            if id_column not in described:
                raise ValueError(f"Entity {entity_type} declares no primary key column")
        if name_column is None and "Name" in described:
            name_column = "Name"
        schema = EntitySchema(
            type=entity_type,
            columns=described,
            id_column=id_column,
            name_column=name_column,
            table=table or entity_type,
        )
        self._schemas[entity_type.lower()] = schema
        return schema

    def get(self, entity_type: str | None) -> EntitySchema | None:
        if not entity_type:
            return None
        return self._schemas.get(entity_type.lower())

    def has(self, entity_type: str | None) -> bool:
        return self.get(entity_type) is not None

    def types(self) -> list[str]:
        return [schema.type for schema in self._schemas.values()]

    def records(self, entity_type: str, rows: Iterable[Mapping[str, Any]]) -> list[Record]:
        schema = self.get(entity_type)
        if schema is None:
            raise KeyError(f"unknown entity type: {entity_type}")
        return [Record(schema, row) for row in rows]
