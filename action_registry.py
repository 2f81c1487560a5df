"""Explicit (action, sub-action, method) -> prepare handler registry."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List

from admin_errors import ConfigurationFatal
from adminkit.naming import handler_name


logger = logging.getLogger("adminkit.module")

PREPARE_KEYS_ATTR = "_prepare_keys"


def prepares(action: str, sub_action: str = "", method: str | None = None) -> Callable:
    """Register a module method as the handler for a prepare candidate."""

    key = handler_name(action, sub_action, method)

    def decorator(fn: Callable) -> Callable:
        keys = list(getattr(fn, PREPARE_KEYS_ATTR, ()))
        keys.append(key)
        setattr(fn, PREPARE_KEYS_ATTR, tuple(keys))
        return fn

    return decorator


def candidate_handlers(action: str, sub_action: str | None, method: str | None) -> List[str]:
    names = [
        handler_name(action, sub_action),
        handler_name(action),
        handler_name(action, sub_action, method),
        handler_name(action, None, method),
    ]
    seen: set[str] = set()
    ordered = []
    for name in names:
        if name in seen:
            continue
        seen.add(name)
        ordered.append(name)
    return ordered


class HandlerRegistry:
    """Maps candidate names to attribute names on a module class."""

    def __init__(self, entries: Dict[str, str] | None = None) -> None:
        self._entries: Dict[str, str] = dict(entries or {})

    @classmethod
    def collect(cls, mro: Iterable[type]) -> "HandlerRegistry":
        entries: Dict[str, str] = {}
        # base classes first so subclass declarations win
        for klass in reversed(list(mro)):
            for attr, value in vars(klass).items():
                fn = getattr(value, "__func__", value)
                for key in getattr(fn, PREPARE_KEYS_ATTR, ()):
                    entries[key] = attr
        return cls(entries)

    def has(self, name: str) -> bool:
        return name in self._entries

    def attribute(self, name: str) -> str | None:
        return self._entries.get(name)

    def names(self) -> List[str]:
        return sorted(self._entries)

    def resolve(self, owner: Any, name: str) -> Callable | None:
        attr = self._entries.get(name)
        if attr is None:
            return None
        return getattr(owner, attr, None)


def run_prepare(owner: Any, registry: HandlerRegistry, candidates: Iterable[str]) -> dict:
    """Run every registered candidate in order, halting on the first failure.

    Returns ``{"ran": [...], "failure": str | None}``; ConfigurationFatal is
    never absorbed.
    """
    ran: List[str] = []
    for name in candidates:
        handler = registry.resolve(owner, name)
        if handler is None:
            continue
        try:
            handler()
        except ConfigurationFatal:
            raise
        except Exception as exc:
            message = f"Method ({name}) failed: {exc}"
            logger.warning("prepare_failed handler=%s error=%s", name, exc)
            return {"ran": ran, "failure": message}
        ran.append(name)
    return {"ran": ran, "failure": None}
