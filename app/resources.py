"""Role based resource authorizer backed by Role / RoleKey / ResourceLock records."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from entity_catalog import RecordStore


logger = logging.getLogger("adminkit.permissions")

ADMIN_ROLE = "admin"


def _as_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class ResourceAuthorizer:
    """Answers has_resource(type, component) for one actor.

    A component is guarded by ResourceLock rows (Resource, Component, KeyID,
    MinKey). The actor passes a lock when one of its roles holds a RoleKey for
    the lock's key with Level >= MinKey. Unlocked components are denied.
    """

    def __init__(self, records: RecordStore, roles: Iterable[str] | None = None) -> None:
        self._records = records
        self._roles = [str(r) for r in (roles or []) if r]
        self._levels: Dict[int, int] | None = None

    @property
    def roles(self) -> List[str]:
        return list(self._roles)

    def is_admin(self) -> bool:
        return any(role.lower() == ADMIN_ROLE for role in self._roles)

    def key_levels(self) -> Dict[int, int]:
        if self._levels is not None:
            return self._levels
        levels: Dict[int, int] = {}
        if self._roles:
            roles = self._records.search("Role", {"Name": self._roles})
            role_ids = [role.id for role in roles]
            if role_ids:
                for role_key in self._records.search("RoleKey", {"RoleID": role_ids}):
                    key_id = _as_int(role_key.get("KeyID"))
                    level = _as_int(role_key.get("Level"))
                    levels[key_id] = max(level, levels.get(key_id, level))
        self._levels = levels
        return levels

    def has_resource(self, entity_type: str, component: str) -> bool:
        if self.is_admin():
            return True
        locks = self._records.search("ResourceLock", {"Resource": entity_type, "Component": component})
        if not locks:
            logger.debug("resource_unlocked type=%s component=%s", entity_type, component)
            return False
        levels = self.key_levels()
        for lock in locks:
            held = levels.get(_as_int(lock.get("KeyID")))
            if held is not None and held >= _as_int(lock.get("MinKey")):
                return True
        return False
