"""In-memory catalog of admin module classes keyed by module type."""

from __future__ import annotations

from typing import Any, Dict, List, Type

from admin_errors import ConfigurationFatal
from admin_module import AdminModule, AdminServices, RequestContext


Issue = Dict[str, Any]


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


class ModuleCatalog:
    def __init__(self) -> None:
        self._modules: Dict[str, Type[AdminModule]] = {}

    def get(self, module_type: str | None) -> Type[AdminModule] | None:
        if not module_type:
            return None
        return self._modules.get(module_type.lower())

    def register(self, cls: Any) -> dict:
        errors: List[Issue] = []
        warnings: List[Issue] = []

        if not isinstance(cls, type) or not issubclass(cls, AdminModule):
            errors.append(_issue("MODULE_INVALID", "module must be an AdminModule subclass", "module"))
            return {"ok": False, "errors": errors, "warnings": warnings, "module": None}

        key = cls.type.lower()
        if key in self._modules:
            errors.append(_issue("MODULE_ALREADY_REGISTERED", "module already registered", "type", {"type": cls.type}))
            return {"ok": False, "errors": errors, "warnings": warnings, "module": None}

        self._modules[key] = cls
        return {"ok": True, "errors": errors, "warnings": warnings, "module": cls.type}

    def factory(self, module_type: str, context: RequestContext, services: AdminServices) -> AdminModule:
        cls = self.get(module_type)
        if cls is None:
            raise ConfigurationFatal(f'The driver for module type "{module_type}" does not exist!')
        return cls(context, services)

    def groups(self) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = {}
        for key in sorted(self._modules):
            cls = self._modules[key]
            if cls.visible_in_menu:
                grouped.setdefault(cls.group, []).append(cls.type)
        return grouped
