"""Batch edit-column workflow: multi-request delete / set-column over a selection.

Selection, intent and target column survive between requests in the session
store under ``edit_data.<type>``. Stages:

    awaiting_selection -> awaiting_delete_confirmation -> applying -> done

with ``abandoned`` reachable whenever the user says No (or may not edit).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping, Protocol

from markupsafe import Markup

from admin_errors import AdminError, ValidationFailure
from adminkit.naming import strip_table_prefix

if TYPE_CHECKING:  # pragma: no cover
    from admin_module import AdminModule


logger = logging.getLogger("adminkit.edit_column")

AWAITING_SELECTION = "awaiting_selection"
AWAITING_DELETE_CONFIRMATION = "awaiting_delete_confirmation"
APPLYING = "applying"
DONE = "done"
ABANDONED = "abandoned"

DELETE_WARNING = Markup("Once deleted these items can <b>not</b> restored!  Continue anyway?\n")


class SessionStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def clear(self, key: str) -> None: ...


@dataclass
class EditColumnResult:
    state: str
    content: Markup
    message: str | None = None
    success: bool | None = None
    error: AdminError | None = None


def session_key(module_type: str) -> str:
    return f"edit_data.{module_type}"


def blank_state() -> Dict[str, Any]:
    return {"ids": {}, "all": False, "delete": False, "column": None, "stage": AWAITING_SELECTION}


def _truthy(value: Any) -> bool:
    return value not in (None, "", "0", 0, False)


class EditColumnWorkflow:
    def __init__(self, module: "AdminModule", session: SessionStore) -> None:
        self.module = module
        self.session = session
        self.key = session_key(module.type)

    # session

    def load_state(self) -> Dict[str, Any]:
        state = blank_state()
        stored = self.session.get(self.key)
        if isinstance(stored, Mapping):
            state.update(stored)
            state["ids"] = dict(stored.get("ids") or {})
        return state

    def save_state(self, state: Dict[str, Any]) -> None:
        self.session.set(self.key, state)

    def clear_state(self) -> None:
        self.session.clear(self.key)

    def is_selection(self, post: Mapping[str, Any]) -> bool:
        """True for a grid submission; dialog answers (Check, Update) carry none of these keys."""
        return isinstance(post.get(self.module.id_column), Mapping) or any(key in post for key in ("All", "Delete", "Column"))

    def merge_post(self, state: Dict[str, Any], post: Mapping[str, Any]) -> Dict[str, Any]:
        if not self.is_selection(post):
            return state
        # a grid submission replaces whatever an abandoned earlier request left behind
        state = blank_state()
        checked = post.get(self.module.id_column)
        if isinstance(checked, Mapping):
            state["ids"] = {str(record_id): True for record_id, flag in checked.items() if _truthy(flag)}
        state["all"] = _truthy(post.get("All"))
        state["delete"] = _truthy(post.get("Delete"))
        column = post.get("Column")
        state["column"] = strip_table_prefix(str(column)) if column else None
        return state

    # markup

    def navigation(self, display_mode: str | None) -> Markup:
        command = "window.close();" if (display_mode or "").lower() == "popup" else "history.go(-2);"
        return Markup('<script type="text/javascript" language="javascript">{}</script>').format(command)

    def dialog(self, state: Mapping[str, Any], text: Any, button: str) -> Markup:
        verb = "Delete" if state.get("delete") else "Edit Column"
        return Markup(
            '<h2>{title} :: {verb}</h2>\n'
            '<form name="EditColumn" action="{action}" method="post">\n'
            "{text}"
            '<input type="submit" name="{button}" value="Yes">&nbsp;&nbsp;&nbsp;&nbsp;'
            '<input type="submit" name="No" value="No">'
            "</form>\n"
        ).format(
            title=self.module.get_title(),
            verb=verb,
            action=self.module.generate_uri("editcolumn"),
            text=text,
            button=button,
        )

    def finish(self, text: Any) -> Markup:
        item = self.module.item
        url = self.module.generate_uri(str(item.id), "view") if item.id > 0 else self.module.generate_uri("list")
        self.clear_state()
        return Markup('<center><h1>{}</h1> Click <a href="{}">here</a> to continue.</center>').format(text, url)

    # workflow

    def run(self, post: Mapping[str, Any] | None, display_mode: str | None = None) -> EditColumnResult:
        post = post or {}
        if not self.module.allow("edit") or "No" in post:
            self.clear_state()
            logger.info("edit_column_abandoned type=%s", self.module.type)
            return EditColumnResult(state=ABANDONED, content=self.navigation(display_mode))

        state = self.merge_post(self.load_state(), post)

        if not state["ids"] and not state["all"]:
            use = "delete" if state["delete"] else "edit"
            message = f"No IDs were checked, {use} has failed.  Please check some items and try again!"
            state["stage"] = AWAITING_SELECTION
            self.save_state(state)
            return EditColumnResult(
                state=AWAITING_SELECTION,
                content=Markup("<center><h1>{}</h1></center>").format(message),
                message=message,
                success=False,
                error=ValidationFailure(message, path=self.module.id_column),
            )

        if state["delete"]:
            return self._run_delete(state, post)
        return self._run_edit(state, post)

    def _run_delete(self, state: Dict[str, Any], post: Mapping[str, Any]) -> EditColumnResult:
        confirmed = "Check" in post and state.get("stage") == AWAITING_DELETE_CONFIRMATION
        if not confirmed:
            state["stage"] = AWAITING_DELETE_CONFIRMATION
            self.save_state(state)
            return EditColumnResult(
                state=AWAITING_DELETE_CONFIRMATION,
                content=self.dialog(state, DELETE_WARNING, "Check"),
            )

        state["stage"] = APPLYING
        self.save_state(state)
        try:
            targets = self.targets(state)
            failed = 0
            for record in targets:
                if not self.module.records.delete(record):
                    failed += 1
        finally:
            self.clear_state()
        success = failed == 0
        if success:
            logger.info("edit_column_deleted type=%s count=%s", self.module.type, len(targets))
        else:
            logger.warning("edit_column_delete_partial type=%s failed=%s total=%s", self.module.type, failed, len(targets))
        message = "Deletion complete!" if success else "Deletion failed!"
        return EditColumnResult(state=DONE, content=self.finish(message), message=message, success=success)

    def _run_edit(self, state: Dict[str, Any], post: Mapping[str, Any]) -> EditColumnResult:
        column_name = state.get("column")
        column = self.module.schema.column(column_name) if column_name else None
        if column is None or column_name in self.module.get_static_columns():
            if column is None:
                message = f'The column "{column_name or ""}" does not exist!'
            else:
                message = f'The column "{column_name}" can not be edited!'
            return EditColumnResult(
                state=DONE,
                content=self.finish(message),
                message=message,
                success=False,
                error=ValidationFailure(message, path="Column"),
            )

        if "Update" not in post:
            state["stage"] = AWAITING_SELECTION
            self.save_state(state)
            fields = self.module.renderer.render_fields({column_name: column})
            return EditColumnResult(state=AWAITING_SELECTION, content=self.dialog(state, fields, "Update"))

        state["stage"] = APPLYING
        self.save_state(state)
        data = post.get(self.module.type)
        data = data if isinstance(data, Mapping) else {}
        if column.is_boolean:
            value: Any = _truthy(data.get(column_name))
        else:
            value = data.get(column_name)

        try:
            targets = self.targets(state)
            failed = 0
            for record in targets:
                record.set(column_name, value)
                if not self.module.records.save(record):
                    failed += 1
        finally:
            self.clear_state()
        total = len(targets)
        if failed:
            logger.warning("edit_column_update_partial type=%s column=%s failed=%s total=%s", self.module.type, column_name, failed, total)
            message = f"Update failed for {failed} of {total} items."
        else:
            logger.info("edit_column_updated type=%s column=%s count=%s", self.module.type, column_name, total)
            message = "Update complete!"
        return EditColumnResult(state=DONE, content=self.finish(message), message=message, success=failed == 0)

    def targets(self, state: Mapping[str, Any]) -> list:
        records = self.module.records
        if state.get("all"):
            return records.search(self.module.schema.type, None, self.module.id_column)
        ids = [int(record_id) for record_id in state.get("ids", {}) if str(record_id).lstrip("-").isdigit()]
        if not ids:
            return []
        return records.search(self.module.schema.type, {self.module.id_column: ids}, self.module.id_column)
