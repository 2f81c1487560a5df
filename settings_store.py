"""Per-module settings cache with lazy defaults and dirty tracking."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Mapping, Protocol

from adminkit.blob_codec import decode_blob, encode_blob


logger = logging.getLogger("adminkit.settings")


class SettingsPersistence(Protocol):
    def read_settings(self, module_type: str) -> str | None: ...

    def write_settings(self, module_type: str, blob: str) -> None: ...

    def insert_settings(self, module_type: str, blob: str) -> None: ...


def pack_settings(values: Mapping[str, Any]) -> str:
    return encode_blob(values)


def unpack_settings(blob: str | bytes | None) -> Dict[str, Any]:
    data = decode_blob(blob) or {}
    return {str(k).lower(): v for k, v in data.items()}


class SettingsStore:
    def __init__(
        self,
        module_type: str,
        fields: Mapping[str, Mapping[str, Any]] | None,
        persistence: SettingsPersistence | None,
        defaults: Mapping[str, Any] | None = None,
    ) -> None:
        self._module_type = module_type
        self._fields = {str(name).lower(): dict(meta or {}) for name, meta in (fields or {}).items()}
        self._persistence = persistence
        self._values: Dict[str, Any] | None = None
        self._dirty = False
        if self._fields and persistence is not None:
            self._load(defaults)

    def _load(self, overrides: Mapping[str, Any] | None) -> None:
        blob = self._persistence.read_settings(self._module_type)
        if blob is None:
            values = self.default_values(overrides)
            self._persistence.insert_settings(self._module_type, pack_settings(values))
            logger.info("settings_defaults_inserted type=%s fields=%s", self._module_type, len(values))
            self._values = values
            return
        self._values = unpack_settings(blob)

    def default_values(self, overrides: Mapping[str, Any] | None = None) -> Dict[str, Any]:
        values = {name: copy.deepcopy(meta.get("default")) for name, meta in self._fields.items()}
        for name, value in (overrides or {}).items():
            key = str(name).lower()
            if key in self._fields:
                values[key] = copy.deepcopy(value)
        return values

    @property
    def fields(self) -> Dict[str, dict]:
        return copy.deepcopy(self._fields)

    @property
    def dirty(self) -> bool:
        return self._dirty

    def get(self, name: str | None = None) -> Any:
        if self._values is None:
            return None
        if name is None:
            return copy.deepcopy(self._values)
        return copy.deepcopy(self._values.get(name.lower()))

    def set(self, name: str, value: Any) -> bool:
        key = (name or "").lower()
        if key not in self._fields:
            return False
        if self._values is None:
            self._values = {}
        self._values[key] = value
        self._dirty = True
        return True

    def flush(self) -> bool:
        if not self._dirty:
            return True
        if self._persistence is None:
            logger.warning("settings_flush_skipped type=%s reason=no_persistence", self._module_type)
            return False
        try:
            self._persistence.write_settings(self._module_type, pack_settings(self._values or {}))
        except Exception as exc:
            logger.warning("settings_flush_failed type=%s error=%s", self._module_type, exc)
            return False
        self._dirty = False
        return True
