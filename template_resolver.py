"""First-readable template lookup across ordered directories."""

from __future__ import annotations

import os
from typing import Iterable, List

from admin_errors import ConfigurationFatal


WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def action_template(action: str) -> str:
    if action == "list":
        return "search.html"
    return f"{action.lower()}.html"


def method_template(action: str, method: str) -> str:
    prefix = "process" if (method or "").upper() in WRITE_METHODS or action == "list" else "display"
    return prefix + action_template(action)


class TemplateResolver:
    def __init__(self, directories: Iterable[str]) -> None:
        self.directories: List[str] = [d for d in directories if d]

    def candidates(self, module_type: str, action: str, method: str) -> List[str]:
        module_dir = (module_type or "").lower()
        by_action = action_template(action)
        by_method = method_template(action, method)
        return [
            f"{module_dir}/{by_action}",
            f"{module_dir}/{by_method}",
            by_action,
            by_method,
        ]

    def resolve(self, module_type: str, action: str, method: str, allowed: bool = True) -> str | None:
        """Return the first readable candidate as a path relative to its root.

        None means the action is not permitted; an exhausted search raises
        ConfigurationFatal.
        """
        if not allowed:
            return None
        names = self.candidates(module_type, action, method)
        for directory in self.directories:
            for name in names:
                path = os.path.join(directory, *name.split("/"))
                if os.path.isfile(path) and os.access(path, os.R_OK):
                    return name
        raise ConfigurationFatal(f'The action "{action}" does *not* exist in {module_type}!!!')
