"""AdminModule: per-entity admin controller (actions, permissions, settings, forms)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from markupsafe import Markup

from action_registry import HandlerRegistry, candidate_handlers, prepares, run_prepare
from admin_errors import (
    ConfigurationFatal,
    MultipleDeleteForbidden,
    NotFound,
    PermissionDenied,
    ValidationFailure,
)
from column_schema import ColumnDescriptor, ColumnKind
from edit_column import EditColumnWorkflow, SessionStore, session_key
from entity_catalog import EntityCatalog, EntitySchema, Record, RecordStore
from form_fields import FormFieldRenderer
from permission_gate import AuthorizationProvider, PermissionGate
from settings_store import SettingsPersistence, SettingsStore
from template_resolver import TemplateResolver
from widgets import WidgetFactory
from adminkit.naming import strip_table_prefix, title_from_type


logger = logging.getLogger("adminkit.module")

SEARCH_OPERATORS = ("<", "=", ">")
DATE_KINDS = (ColumnKind.DATE, ColumnKind.SEARCH_DATE)
TEXT_FAMILIES = ("text", "mediumtext", "longtext", "textarea")


@dataclass
class RequestContext:
    method: str = "GET"
    action: str | None = None
    sub_action: str | None = None
    post: Dict[str, Any] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    id: Any = None
    base_uri: str = "/admin"
    display_mode: str | None = None
    user_id: Any = None

    @property
    def has_id(self) -> bool:
        return self.id not in (None, "")


@dataclass
class AdminServices:
    catalog: EntityCatalog
    records: RecordStore
    authorizer: AuthorizationProvider
    settings: SettingsPersistence | None = None
    session: SessionStore | None = None
    templates: TemplateResolver | None = None
    widgets: WidgetFactory | None = None


def _empty(value: Any) -> bool:
    return value in (None, "", "0", 0, False) or (isinstance(value, (list, dict)) and not value)


class AdminModule:
    type: str = "Module"
    # record type when it differs from the module type
    entity_type: str | None = None
    components: Dict[str, str] = {
        "search": "This is the ability to search and display data.",
        "edit": "The ability to edit existing data.",
        "create": "The ability to create new data.",
        "delete": "The ability to delete existing data.",
    }
    ignore: Dict[str, tuple] = {"edit": (), "create": (), "search": (), "view": (), "boolean": ()}
    column_order: tuple = ()
    static_columns: tuple = ("Name",)
    edit_columns: tuple = ()
    allowed_actions: tuple = ("search", "create", "editcolumn", "edit", "list", "view")
    default_action: str = "list"
    menu_items: Dict[str, str] = {"list": "List", "search": "Search", "create": "Create"}
    sub_menu_items: Dict[str, str] = {"view": "View", "edit": "Edit"}
    quick_search: Dict[str, str] = {}
    group: str = "Admin"
    visible_in_menu: bool = True
    settings_fields: Dict[str, dict] = {}
    popup_sizes: Dict[str, tuple] = {"default": (500, 650)}

    _handlers: HandlerRegistry

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "type" not in cls.__dict__:
            name = cls.__name__
            cls.type = name[: -len("Module")] if name.endswith("Module") and name != "Module" else name
        cls._handlers = HandlerRegistry.collect(cls.__mro__)

    def __init__(self, context: RequestContext, services: AdminServices) -> None:
        self.context = context
        self.services = services
        self.records = services.records
        self.components = dict(self.__class__.components)
        self.menu_items = dict(self.__class__.menu_items)
        self.allowed_actions: List[str] = list(self.__class__.allowed_actions)
        self.template_data: Dict[str, Any] = {}
        self._closed = False

        schema = services.catalog.get(self.entity_type or self.type)
        if schema is None:
            raise ConfigurationFatal(f'The entity type "{self.entity_type or self.type}" is not registered!')
        self.schema: EntitySchema = schema

        if self.settings_fields:
            self.menu_items["settings"] = "Settings"
            self.allowed_actions.append("settings")
            self.components["configure"] = "The ability to alter the module's configuration."
        self.settings = SettingsStore(self.type, self.settings_fields, services.settings, self.default_settings())

        self.item: Record = self._load_item(context.id)
        if self.item.id > 0:
            self.menu_items["item"] = "Item"
            self.allowed_actions.append("item")

        self.gate = PermissionGate(self.type, services.authorizer)
        self.renderer = FormFieldRenderer(
            self.type,
            services.catalog,
            services.records,
            services.widgets,
            is_search=self.is_search(),
        )
        action = (context.action or "").lower()
        self.current_action = action if action in self.allowed_actions else self.default_action
        logger.debug(
            "module_open type=%s action=%s current=%s method=%s id=%s",
            self.type,
            context.action,
            self.current_action,
            context.method,
            self.item.id,
        )

    def _load_item(self, record_id: Any) -> Record:
        if record_id in (None, ""):
            return self.records.blank(self.schema.type)
        record = self.records.load(self.schema.type, record_id)
        return record if record is not None else self.records.blank(self.schema.type)

    # lifetime

    def close(self) -> bool:
        if self._closed:
            return True
        self._closed = True
        return self.settings.flush()

    def __enter__(self) -> "AdminModule":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # descriptor accessors

    @property
    def id_column(self) -> str:
        return strip_table_prefix(self.schema.id_column)

    def is_search(self) -> bool:
        return (self.context.action or "") in ("search", "list")

    def get_type(self) -> str:
        return self.type

    def get_components(self) -> Dict[str, str]:
        return dict(self.components)

    def get_settings_fields(self) -> Dict[str, dict]:
        return dict(self.settings_fields)

    def get_group(self) -> str:
        return self.group

    def get_menu_items(self) -> Dict[str, str]:
        return dict(self.menu_items)

    def get_sub_menu_items(self) -> Dict[str, str]:
        return dict(self.sub_menu_items)

    def get_quick_search(self) -> Dict[str, str]:
        return dict(self.quick_search)

    def get_popup_size(self, name: str) -> tuple:
        return self.popup_sizes.get(name, self.popup_sizes["default"])

    def get_static_columns(self) -> tuple:
        return tuple(self.static_columns or ())

    def get_current_item_title(self) -> str | None:
        return self.item.name

    def get_title(self) -> str:
        return title_from_type(self.type)

    def generate_uri(self, *params: str) -> str:
        parts = [self.type.lower()] + [str(p) for p in params if p not in (None, "")]
        return self.context.base_uri.rstrip("/") + "/" + "/".join(parts)

    def allow(self, component: str) -> bool:
        return self.gate.allow(component)

    def permitted_menu_items(self) -> Dict[str, str]:
        return {action: label for action, label in self.menu_items.items() if self.allow(action)}

    # settings

    def default_settings(self) -> Dict[str, Any]:
        return {}

    def get_setting(self, name: str | None = None) -> Any:
        return self.settings.get(name)

    def set_setting(self, name: str, value: Any) -> bool:
        return self.settings.set(name, value)

    def save_settings(self) -> bool:
        return self.settings.flush()

    # columns

    def get_columns(self, context: str | None = None) -> List[str]:
        columns = [name for name in self.schema.columns if name != self.schema.id_column]
        key = (context or "").lower()
        if not key or key not in self.ignore:
            return columns
        ignored = set(self.ignore[key])
        remaining = [name for name in columns if name not in ignored]
        ordered = [name for name in self.column_order if name in remaining]
        return ordered + [name for name in remaining if name not in ordered]

    def column_descriptors(self, names: List[str]) -> Dict[str, ColumnDescriptor]:
        return {name: self.schema.columns[name] for name in names if name in self.schema.columns}

    def column_title(self, column: str) -> str:
        return self.renderer.column_title(column)

    def column_value(self, record: Record, column: str) -> Any:
        return self.renderer.column_value(record, column)

    def serialize(self, record: Record) -> dict:
        data = record.get_all()
        for name, column in self.schema.columns.items():
            if column.kind is ColumnKind.PASSWORD:
                data.pop(name, None)
        return data

    # form data

    def posted_data(self) -> Dict[str, Any]:
        data = self.context.post.get(self.type)
        return dict(data) if isinstance(data, Mapping) else {}

    def create_data(self) -> Dict[str, Any]:
        data = {key: value for key, value in self.posted_data().items() if not _empty(value)}
        for name, column in self.schema.columns.items():
            if column.is_boolean:
                data[name] = name in data
        return data

    def edit_data(self) -> Dict[str, Any]:
        data = self.context.post.get(self.type)
        data = dict(data) if isinstance(data, Mapping) else dict(self.context.post)
        ignored = set(self.ignore.get("boolean", ()))
        for name, column in self.schema.columns.items():
            if name not in ignored and column.is_boolean:
                data[name] = name in data
        return data

    # search

    def search_criteria(self) -> Dict[str, Any] | None:
        for source in (self.context.post, self.context.query):
            data = source.get(self.type)
            if isinstance(data, Mapping):
                return dict(data)
        return None

    def search_operator(self, column: str) -> str | None:
        key = f"{column}Operator"
        for source in (self.context.post, self.context.query):
            if key in source:
                op = str(source.get(key) or "").strip()
                return op if op in SEARCH_OPERATORS else None
        return None

    def search_terms(self, criteria: Mapping[str, Any] | None) -> Dict[str, Any] | None:
        if criteria is None:
            return None
        terms: Dict[str, Any] = {}
        for name, value in criteria.items():
            if _empty(value):
                continue
            column = self.schema.column(name)
            if column is not None and column.kind in DATE_KINDS:
                op = self.search_operator(name)
                if op is not None:
                    terms[name] = (op, value)
                    continue
            terms[name] = value
        return terms

    def search_sort_column(self) -> str:
        return self.schema.id_column

    def search_data(self, terms: Mapping[str, Any] | None) -> List[Record]:
        return self.records.search(self.schema.type, terms, self.search_sort_column())

    def run_search(self) -> List[Record]:
        return self.search_data(self.search_terms(self.search_criteria()))

    def search_grid_header(self, column: str) -> Markup:
        if column in self.get_static_columns() or not self.allow("edit"):
            return Markup('<span class="sort-header" data-column="{}">{}</span>').format(column, column)
        html = Markup('<span class="sort-header" data-column="{}">{}</span>').format(column, self.column_title(column))
        if column in self.edit_columns:
            popup = "showPopup(); " if (self.context.display_mode or "").lower() == "popup" else ""
            html += Markup(
                '<span class="sort-grid-edit" onclick="{}document.getElementById(\'EditColumnName\').value=\'{}\'; '
                'document.getElementById(\'EditColumn\').submit();">[Edit]</span>'
            ).format(popup, column)
        return html

    def search_grid_row_control(self, record_id: Any) -> Markup:
        url = self.generate_uri(str(record_id))
        name = f"{self.id_column}[{record_id}]"
        return Markup(
            '<input type="checkbox" class="sort-grid-checkbox" name="{}" id="{}" value="1"> [<a href="{}">View</a>]'
        ).format(name, name, url)

    # form rendering

    def render_form_field(self, name: str, value: Any = None, column: Any = None) -> Markup:
        if column is None:
            column = self.schema.column(name)
        return self.renderer.render_field(name, value, column)

    def render_form_fields(self, columns: Mapping[str, Any], values: Mapping[str, Any] | None = None) -> Markup:
        return self.renderer.render_fields(columns, values)

    # API phase

    def _require(self, component: str, verb: str) -> None:
        if not self.allow(component):
            raise PermissionDenied(f"Action ({verb}) not allowed", status=405)

    def _require_item(self) -> Record:
        if self.item.id == 0:
            raise NotFound(f"{self.type} not found")
        return self.item

    def api_data(self) -> Dict[str, Any]:
        data = self.context.post.get(self.type)
        return dict(data) if isinstance(data, Mapping) else dict(self.context.post)

    def process_api(self) -> Any:
        method = (self.context.method or "GET").upper()
        has_id = self.context.has_id

        if method == "GET":
            self._require("search", "display")
            if not has_id:
                return [self.serialize(record) for record in self.run_search()]
            return self.serialize(self._require_item())

        if method == "PUT":
            self._require("edit", "update")
            if not has_id:
                return "list"
            item = self._require_item()
            item.set_all(self.api_data())
            if not self.records.save(item):
                raise ValidationFailure(f"This {self.type} update has failed.")
            logger.info("api_updated type=%s id=%s", self.type, item.id)
            return "view"

        if method == "POST":
            self._require("create", "create")
            if has_id:
                return "view"
            record = self.records.blank(self.schema.type)
            record.set_all(self.api_data())
            if not self.records.save(record):
                raise ValidationFailure(f"This {self.type} could not be created.")
            self.item = record
            logger.info("api_created type=%s id=%s", self.type, record.id)
            return self.serialize(record)

        if method == "DELETE":
            if not has_id:
                raise MultipleDeleteForbidden()
            self._require("delete", "delete")
            item = self._require_item()
            if not self.records.delete(item):
                raise ValidationFailure(f"This {self.type} could not be deleted.")
            logger.info("api_deleted type=%s id=%s", self.type, item.id)
            return "list"

        raise PermissionDenied(f"Method ({method}) not allowed", status=405)

    # template phase

    def prepare_template(self) -> Dict[str, Any]:
        candidates = candidate_handlers(self.current_action, self.context.sub_action, self.context.method)
        result = run_prepare(self, self._handlers, candidates)
        if result["failure"]:
            self.template_data["failure"] = result["failure"]
        self.template_data["module"] = self
        self.template_data["method"] = self.current_action
        self.template_data["currentItem"] = self.item
        return self.template_data

    def get_template(self) -> str | None:
        if self.services.templates is None:
            raise ConfigurationFatal("No template directories are configured!")
        return self.services.templates.resolve(
            self.type,
            self.current_action,
            self.context.method,
            allowed=self.allow(self.current_action),
        )

    @prepares("list")
    def prepare_list(self) -> None:
        self.prepare_post_search()

    @prepares("create", method="get")
    def prepare_get_create(self) -> None:
        columns = {}
        for name, column in self.schema.columns.items():
            if name == self.schema.id_column or column.is_primary or name in self.ignore.get("create", ()):
                continue
            columns[strip_table_prefix(name)] = column
        self.template_data["createColumns"] = columns

    @prepares("edit", method="get")
    def prepare_get_edit(self) -> None:
        if not self.allow("edit") or "No" in self.context.post:
            self.template_data["close"] = True
            return
        self.template_data["idColumn"] = self.id_column
        self.template_data["noID"] = self.item.id == 0
        self.template_data["editColumns"] = self.column_descriptors(self.get_columns("edit"))

    @prepares("search", method="get")
    def prepare_get_search(self) -> None:
        columns = {}
        for name, column in self.column_descriptors(self.get_columns("search")).items():
            if column.kind is ColumnKind.PASSWORD:
                continue
            if column.family in TEXT_FAMILIES:
                column = column.with_type("varchar")
            elif column.family == "date":
                column = column.with_type("searchdate")
            columns[name] = column
        self.template_data["searchColumns"] = columns

    @prepares("view", method="get")
    def prepare_get_view(self) -> None:
        self.template_data["viewColumns"] = self.column_descriptors(self.get_columns("view"))

    @prepares("item")
    def prepare_item(self) -> None:
        self.prepare_get_view()

    @prepares("create", method="post")
    def prepare_post_create(self) -> None:
        self._require("create", "create")
        self.item.set_all(self.create_data())
        if not self.records.save(self.item):
            self.template_data["failure"] = f"This {self.type} could not be created."
            return
        self.template_data["success"] = f"This {self.type} has been created."
        self.menu_items.setdefault("item", "Item")
        if "item" not in self.allowed_actions:
            self.allowed_actions.append("item")
        self.current_action = "view"
        self.prepare_get_view()

    @prepares("edit", method="post")
    def prepare_post_edit(self) -> None:
        self._require("edit", "update")
        self._require_item()
        self.item.set_all(self.edit_data())
        if self.records.save(self.item):
            self.template_data["success"] = f"This {self.type} update has been successful."
        else:
            self.template_data["failure"] = f"This {self.type} update has failed."
        if self.services.session is not None:
            self.services.session.clear(session_key(self.type))
        self.current_action = "view"
        self.prepare_get_view()

    @prepares("search", method="post")
    def prepare_post_search(self) -> None:
        data = self.run_search()
        if self.context.sub_action == "quick" and len(data) == 1:
            self.template_data["redirect"] = self.generate_uri(str(data[0].id))
        self.template_data["data"] = data
        self.template_data["idColumn"] = self.id_column
        self.template_data["dataColumns"] = [strip_table_prefix(name) for name in self.get_columns("search")]

    @prepares("settings", method="get")
    def prepare_get_settings(self) -> None:
        self.template_data["settingsFields"] = {
            name: {"Type": meta.get("type", "varchar(255)"), "Default": meta.get("default")}
            for name, meta in self.settings_fields.items()
        }
        self.template_data["settingsValues"] = {name: self.get_setting(name) for name in self.settings_fields}

    @prepares("settings", method="post")
    def prepare_post_settings(self) -> None:
        data = self.context.post.get(self.type)
        if not isinstance(data, Mapping) or not data:
            raise ValidationFailure("Nothing to save!")
        for name, value in data.items():
            self.set_setting(name, value)
        if self.save_settings():
            self.template_data["success"] = "The settings have been saved."
        else:
            self.template_data["failure"] = "The settings could not be saved."
        self.prepare_get_settings()

    @prepares("editcolumn")
    def prepare_edit_column(self) -> None:
        if self.services.session is None:
            raise ConfigurationFatal("The edit column workflow needs a session store!")
        result = EditColumnWorkflow(self, self.services.session).run(self.context.post, self.context.display_mode)
        self.template_data["editColumn"] = result
        self.template_data["content"] = result.content
        if result.message:
            self.template_data["success" if result.success else "failure"] = result.message


AdminModule._handlers = HandlerRegistry.collect(AdminModule.__mro__)
