"""Polymorphic form field renderer driven by column kinds."""

from __future__ import annotations

import re
from typing import Any, Mapping

from markupsafe import Markup

from column_schema import ColumnDescriptor, ColumnKind, describe_column
from entity_catalog import EntityCatalog, Record, RecordStore
from widgets import Calendar, Checkbox, Editor, Hidden, Input, Select, WidgetFactory, script_tag
from adminkit.naming import split_camel


ADDRESS_FIELDS = ("State", "City", "Zip")
SEARCH_OPERATORS = ("<", "=", ">")

_FOREIGN_KEY_RE = re.compile(r"^(.+?)id$", re.I)
_TITLE_ID_RE = re.compile(r"^(.+?)ID$")

_ROW = Markup('<div class="field"><span class="label">{}</span><span class="data">{}</span></div>')


def field_row(label: Any, data: Any) -> Markup:
    return _ROW.format(label, data)


def js_str(value: Any) -> str:
    text = "" if value is None else str(value)
    text = text.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n").replace("</", "<\\/")
    return f"'{text}'"


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == 0 or value == "0" or value is False


class FormFieldRenderer:
    def __init__(
        self,
        module_type: str,
        catalog: EntityCatalog,
        records: RecordStore,
        widgets: WidgetFactory | None = None,
        is_search: bool = False,
    ) -> None:
        self.module_type = module_type
        self.catalog = catalog
        self.records = records
        self.widgets = widgets or WidgetFactory()
        self.is_search = is_search
        self._address_done = False

    def reset(self) -> None:
        self._address_done = False

    def field_name(self, name: str) -> str:
        return f"{self.module_type}[{name}]"

    def empty_label(self, label: str) -> str:
        return "None" if self.is_search else label

    def render_fields(self, columns: Mapping[str, Any], values: Mapping[str, Any] | None = None) -> Markup:
        values = values or {}
        html = Markup("")
        for name, column in columns.items():
            html += self.render_field(name, values.get(name), column)
        return html

    def render_field(self, name: str, value: Any = None, column: Any = None) -> Markup:
        descriptor = self._descriptor(name, column)
        if value is None and descriptor.default is not None and not self.is_search:
            value = descriptor.default

        if name in ADDRESS_FIELDS:
            return self._render_address(name, value)

        html = self._render_foreign_key(name, value)
        if html is not None:
            return html

        if name == "FileName":
            widget = self.widgets.create("Input", self.field_name(name), type="file")
            return field_row("File Name", widget)

        return self._render_kind(name, value, descriptor)

    def _descriptor(self, name: str, column: Any) -> ColumnDescriptor:
        if column is None:
            return describe_column(name, {})
        return describe_column(name, column)

    # address triple

    def _render_address(self, name: str, value: Any) -> Markup:
        if self._address_done:
            if _is_empty(value):
                return Markup("")
            return script_tag(f"set{name}({js_str(value)});\n")

        states = self.widgets.create("States", self.field_name("State"))
        cities = self.widgets.create("Select", self.field_name("City"))
        zips = self.widgets.create("Select", self.field_name("Zip"))
        states_id = states.get_id()
        cities_id = cities.get_id()
        zips_id = zips.get_id()

        get_cities = states.add_ajax_function("getCitiesByState")
        get_zips = states.add_ajax_function("getZipsByCity")

        state_script = (
            f"var stateSelect = document.getElementById('{states_id}');\n"
            "var stateName = '';\n"
            "var cityName = '';\n"
            "function setState(state)\n"
            "{\n"
            "  stateName = state;\n"
            "  stateSelect.value = state;\n"
            f"  {get_cities}(state, '{cities_id}', cityName);\n"
            "}\n"
        )
        if name == "State":
            state_script += f"setState({js_str(value)});\n"
        states.write_javascript(state_script)

        city_script = (
            f"var citySelect = document.getElementById('{cities_id}');\n"
            "var zipNum = '';\n"
            "function setCity(city)\n"
            "{\n"
            "  cityName = city;\n"
            "  for (var i = 0; i < citySelect.options.length; i++)\n"
            "  {\n"
            "    if (citySelect.options[i].value == city) { citySelect.options[i].selected = true; break; }\n"
            "  }\n"
            "  if (citySelect.options.length <= 1)\n"
            "  {\n"
            f"    {get_cities}(stateName, '{cities_id}', city);\n"
            "  }\n"
            f"  {get_zips}(cityName, stateName, '{zips_id}', zipNum);\n"
            "}\n"
        )
        if name == "City":
            city_script += f"setCity({js_str(value)});\n"
        cities.write_javascript(city_script)

        zip_script = (
            f"var zipSelect = document.getElementById('{zips_id}');\n"
            "function setZip(zip)\n"
            "{\n"
            "  zipNum = zip;\n"
            "  for (var i = 0; i < zipSelect.options.length; i++)\n"
            "  {\n"
            "    if (zipSelect.options[i].value == zip) { zipSelect.options[i].selected = true; return; }\n"
            "  }\n"
            "  zipSelect.options[zipSelect.options.length] = new Option(zip, zip, true, true);\n"
            f"  {get_zips}(cityName, stateName, '{zips_id}', zipNum);\n"
            "}\n"
        )
        if name == "Zip":
            zip_script += f"setZip({js_str(value)});\n"
        zips.write_javascript(zip_script)

        states.add_event("change", f"{get_cities}(this.options[this.selectedIndex].value, '{cities_id}', cityName)")
        cities.add_option("Select a city", "0")
        cities.add_event(
            "change",
            f"{get_zips}(this.options[this.selectedIndex].value, "
            f"stateSelect.options[stateSelect.selectedIndex].value, '{zips_id}', zipNum)",
        )
        zips.add_option("Select a zip", "0")

        self._address_done = True
        return field_row("State", states) + field_row("City", cities) + field_row("Zip", zips)

    # foreign keys

    def _render_foreign_key(self, name: str, value: Any) -> Markup | None:
        if name == "UserID" and self.catalog.has("User"):
            users = self.records.search("User", {"Visible": True, "Active": True})
            select = self._record_select(name, users, self.empty_label("Select a user"), value)
            return field_row("User", select)

        if name == "KeyID" and self.catalog.has("ResourceKey"):
            keys = self.records.search("ResourceKey", None, "Name")
            select = self._record_select(name, keys, self.empty_label("Select a resource name"), value)
            return field_row("Required resource", select)

        match = _FOREIGN_KEY_RE.match(name)
        if not match:
            return None
        schema = self.catalog.get(match.group(1))
        if schema is None or not schema.name_columns:
            return None
        entity = match.group(1)
        items = self.records.search(schema.type, None, schema.sort_column)
        select = self._record_select(name, items, self.empty_label(f"Select {entity}"), value)
        return field_row(entity, select)

    def _record_select(self, name: str, items: list[Record], empty_label: str, value: Any) -> Select:
        select = self.widgets.create("Select", self.field_name(name))
        select.add_option(empty_label, "")
        for item in items:
            select.add_option(item.name, item.id)
        if not _is_empty(value):
            select.set_selected(value)
        return select

    # generic kinds

    def _render_kind(self, name: str, value: Any, column: ColumnDescriptor) -> Markup:
        field = self.field_name(name)
        label = name
        kind = column.kind

        if kind is ColumnKind.HIDDEN:
            return Markup(Hidden(field, value, id=f"{self.module_type}{name}"))

        if kind is ColumnKind.ENUM:
            select = self.widgets.create("Select", field)
            select.add_option(self.empty_label(f"Select {label}"), "")
            select.add_array(column.options)
            if not _is_empty(value):
                select.set_selected(value)
            return field_row(label, select)

        if kind is ColumnKind.RICH_TEXT:
            editor: Editor = self.widgets.create("Editor", field)
            editor.set_tool_bar("Basic")
            editor.set_text(value)
            return field_row(label, editor)

        if kind is ColumnKind.RADIO:
            buttons = Markup("")
            for option in column.radio_values:
                checked = value is not None and str(option) == str(value)
                buttons += Markup("{}:  {}<br />").format(
                    option, Input(field, type="radio", value=option, checked=checked)
                )
            return field_row(label, buttons)

        if kind is ColumnKind.TEXT_INPUT:
            return field_row(label, Input(field, value="" if value is None else value))

        if kind in (ColumnKind.DATE, ColumnKind.SEARCH_DATE):
            data = Markup("")
            if kind is ColumnKind.SEARCH_DATE:
                operator = Select(f"{name}Operator")
                for op in SEARCH_OPERATORS:
                    operator.add_option(op, op)
                operator.set_selected("=")
                data += Markup(operator) + Markup("\n")
            calendar: Calendar = self.widgets.create("Calendar", field)
            calendar.button("Change")
            if not _is_empty(value):
                calendar.set_start_date(value)
            return field_row(label, data + Markup(calendar))

        if kind is ColumnKind.PASSWORD:
            text = "" if value is None else value
            first = field_row(label, Input(field, type="password", value=text))
            second = field_row(
                f"{label}(double check)",
                Input(self.field_name(f"{name}2"), type="password", value=text),
            )
            return first + Markup("\n") + second

        if kind is ColumnKind.CHECKBOX:
            checked = not _is_empty(value)
            return field_row(label, Checkbox(field, checked=checked))

        return field_row("Not valid", f"{name} :: {column.family}")

    # column helpers

    def column_title(self, column: str) -> str:
        match = _TITLE_ID_RE.match(column or "")
        if match:
            schema = self.catalog.get(match.group(1))
            return schema.type if schema is not None else column
        return split_camel(column)

    def column_value(self, record: Record, column: str) -> Any:
        value = record.get(column)
        match = _FOREIGN_KEY_RE.match(column or "")
        if not match:
            return value
        schema = self.catalog.get(match.group(1))
        if schema is None or not schema.name_columns:
            return value
        if _is_empty(value):
            return "None"
        referenced = self.records.load(schema.type, value)
        if referenced is None or referenced.id == 0:
            return "None"
        return referenced.name
