"""jinja2 page rendering over the template resolver's directories."""

from __future__ import annotations

import os
from typing import Any, Iterable, List

from jinja2 import FileSystemLoader, TemplateSyntaxError, select_autoescape
from jinja2.sandbox import SandboxedEnvironment
from markupsafe import Markup


ERROR_PAGE = "error.html"


def _env(directories: List[str]) -> SandboxedEnvironment:
    env = SandboxedEnvironment(
        loader=FileSystemLoader(directories),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.globals["Markup"] = Markup
    return env


class PageRenderer:
    def __init__(self, directories: Iterable[str]) -> None:
        self.directories = [d for d in directories if d]
        self.env = _env(self.directories)

    def render(self, name: str, context: dict[str, Any]) -> str:
        return self.env.get_template(name).render(context)

    def render_error(self, message: str, status: int, context: dict[str, Any] | None = None) -> str:
        data = dict(context or {})
        data.update({"message": message, "status": status})
        return self.render(ERROR_PAGE, data)


def validate_templates(directories: Iterable[str]) -> list[dict]:
    """Parse every .html file under the directories; return syntax errors."""
    errors: list[dict] = []
    dirs = [d for d in directories if d]
    env = _env(dirs)
    for root in dirs:
        for current, _, files in os.walk(root):
            for filename in sorted(files):
                if not filename.endswith(".html"):
                    continue
                path = os.path.join(current, filename)
                with open(path, encoding="utf-8") as handle:
                    text = handle.read()
                try:
                    env.parse(text)
                except TemplateSyntaxError as exc:
                    errors.append(
                        {
                            "message": f"{os.path.relpath(path, root)}: {exc.message}",
                            "line": exc.lineno or 1,
                            "col": getattr(exc, "offset", None) or 1,
                        }
                    )
    return errors
