"""Memoized per-component permission decisions for one module instance."""

from __future__ import annotations

import logging
from typing import Dict, Protocol


logger = logging.getLogger("adminkit.permissions")

COMPONENT_ALIASES: Dict[str, str] = {
    "list": "search",
    "editcolumn": "edit",
}


class AuthorizationProvider(Protocol):
    def has_resource(self, entity_type: str, component: str) -> bool: ...


def governing_component(name: str) -> str:
    key = (name or "").lower()
    return COMPONENT_ALIASES.get(key, key)


class PermissionGate:
    def __init__(self, entity_type: str, provider: AuthorizationProvider) -> None:
        self._entity_type = entity_type
        self._provider = provider
        self._cache: Dict[str, bool] = {}

    @property
    def entity_type(self) -> str:
        return self._entity_type

    def allow(self, component: str) -> bool:
        key = (component or "").lower()
        if key in self._cache:
            return self._cache[key]
        governing = governing_component(key)
        allowed = bool(self._provider.has_resource(self._entity_type, governing))
        logger.debug(
            "permission_check type=%s component=%s governing=%s allowed=%s",
            self._entity_type,
            key,
            governing,
            allowed,
        )
        self._cache[key] = allowed
        return allowed

    def cached(self) -> Dict[str, bool]:
        return dict(self._cache)
