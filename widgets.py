"""HTML widgets used by the form field renderer.

Widgets only carry the renderer's decisions (names, ids, options, selected
values, client-side hooks); layout is left to the page templates.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Tuple

from markupsafe import Markup, escape

from adminkit.naming import dom_id


US_STATES: Tuple[Tuple[str, str], ...] = (
    ("AL", "Alabama"), ("AK", "Alaska"), ("AZ", "Arizona"), ("AR", "Arkansas"),
    ("CA", "California"), ("CO", "Colorado"), ("CT", "Connecticut"), ("DE", "Delaware"),
    ("DC", "District Of Columbia"), ("FL", "Florida"), ("GA", "Georgia"), ("HI", "Hawaii"),
    ("ID", "Idaho"), ("IL", "Illinois"), ("IN", "Indiana"), ("IA", "Iowa"),
    ("KS", "Kansas"), ("KY", "Kentucky"), ("LA", "Louisiana"), ("ME", "Maine"),
    ("MD", "Maryland"), ("MA", "Massachusetts"), ("MI", "Michigan"), ("MN", "Minnesota"),
    ("MS", "Mississippi"), ("MO", "Missouri"), ("MT", "Montana"), ("NE", "Nebraska"),
    ("NV", "Nevada"), ("NH", "New Hampshire"), ("NJ", "New Jersey"), ("NM", "New Mexico"),
    ("NY", "New York"), ("NC", "North Carolina"), ("ND", "North Dakota"), ("OH", "Ohio"),
    ("OK", "Oklahoma"), ("OR", "Oregon"), ("PA", "Pennsylvania"), ("RI", "Rhode Island"),
    ("SC", "South Carolina"), ("SD", "South Dakota"), ("TN", "Tennessee"), ("TX", "Texas"),
    ("UT", "Utah"), ("VT", "Vermont"), ("VA", "Virginia"), ("WA", "Washington"),
    ("WV", "West Virginia"), ("WI", "Wisconsin"), ("WY", "Wyoming"),
)

# out-of-band lookups callable from the browser, with their query parameters
AJAX_FUNCTIONS: Dict[str, Tuple[str, ...]] = {
    "getCitiesByState": ("state",),
    "getZipsByCity": ("city", "state"),
}

FILL_SELECT_JS = (
    "function fillSelect(targetId, options, selected)\n"
    "{\n"
    "  var target = document.getElementById(targetId);\n"
    "  if (!target) { return; }\n"
    "  while (target.options.length > 1) { target.remove(1); }\n"
    "  for (var i = 0; i < options.length; i++)\n"
    "  {\n"
    "    var value = options[i];\n"
    "    target.options[target.options.length] = new Option(value, value, false, value == selected);\n"
    "  }\n"
    "}\n"
)


def _attrs(attrs: Mapping[str, Any]) -> str:
    parts = []
    for key, value in attrs.items():
        if value is None or value is False:
            continue
        if value is True:
            parts.append(f" {key}")
            continue
        parts.append(f' {key}="{escape(value)}"')
    return "".join(parts)


def script_tag(source: str) -> Markup:
    return Markup('<script type="text/javascript">\n') + Markup(source) + Markup("</script>\n")


def ajax_function_name(function: str) -> str:
    return "ajax" + function[:1].upper() + function[1:]


def ajax_function_source(function: str, ajax_base: str) -> str:
    params = AJAX_FUNCTIONS.get(function)
    if params is None:
        raise KeyError(f"unknown ajax function: {function}")
    args = ", ".join(params + ("targetId", "selected"))
    query = ", ".join(f"{p}: {p}" for p in params)
    return (
        f"function {ajax_function_name(function)}({args})\n"
        "{\n"
        f"  var params = new URLSearchParams({{{query}}});\n"
        f"  fetch('{ajax_base}/{function}?' + params.toString())\n"
        "    .then(function (response) { return response.json(); })\n"
        "    .then(function (data) { fillSelect(targetId, data.options || [], selected); });\n"
        "}\n"
    )


class Widget:
    tag = "input"

    def __init__(self, name: str, **attrs: Any) -> None:
        self.name = name
        self.attrs: Dict[str, Any] = dict(attrs)
        self.events: Dict[str, List[str]] = {}
        self.scripts: List[str] = []

    def get_id(self) -> str:
        return self.attrs.get("id") or dom_id(self.name)

    def set_param(self, key: str, value: Any) -> "Widget":
        self.attrs[key] = value
        return self

    def add_event(self, event: str, handler: str) -> None:
        self.events.setdefault(event, []).append(handler)

    def write_javascript(self, source: str) -> None:
        self.scripts.append(source)

    def base_attrs(self) -> Dict[str, Any]:
        attrs = {"name": self.name, "id": self.get_id()}
        attrs.update(self.attrs)
        for event, handlers in self.events.items():
            attrs[f"on{event}"] = "; ".join(handlers)
        return attrs

    def render_element(self) -> Markup:
        return Markup(f"<{self.tag}{_attrs(self.base_attrs())}>")

    def render(self) -> Markup:
        html = self.render_element()
        if self.scripts:
            html += script_tag("".join(self.scripts))
        return html

    def __html__(self) -> Markup:
        return self.render()

    def __str__(self) -> str:
        return str(self.render())


class Hidden(Widget):
    def __init__(self, name: str, value: Any = None, **attrs: Any) -> None:
        super().__init__(name, type="hidden", value="" if value is None else value, **attrs)


class Input(Widget):
    def __init__(self, name: str, type: str = "text", value: Any = None, **attrs: Any) -> None:
        super().__init__(name, type=type, **attrs)
        if value is not None:
            self.attrs["value"] = value


class Checkbox(Input):
    def __init__(self, name: str, checked: bool = False, **attrs: Any) -> None:
        super().__init__(name, type="checkbox", value="1", checked=bool(checked), **attrs)


class Editor(Widget):
    tag = "textarea"

    def __init__(self, name: str, toolbar: str = "Basic", **attrs: Any) -> None:
        super().__init__(name, **attrs)
        self.toolbar = toolbar
        self.text = ""

    def set_tool_bar(self, toolbar: str) -> None:
        self.toolbar = toolbar

    def set_text(self, text: Any) -> None:
        self.text = "" if text is None else str(text)

    def render_element(self) -> Markup:
        attrs = self.base_attrs()
        attrs["data-toolbar"] = self.toolbar
        return Markup(f"<textarea{_attrs(attrs)}>") + escape(self.text) + Markup("</textarea>")


class Calendar(Widget):
    def __init__(self, name: str, **attrs: Any) -> None:
        super().__init__(name, type="date", **attrs)
        self.button_label: str | None = None

    def button(self, label: str) -> None:
        self.button_label = label

    def set_start_date(self, value: Any) -> None:
        text = "" if value is None else str(value)
        # timestamps carry a time part the date input cannot show
        self.attrs["value"] = text[:10]

    def render_element(self) -> Markup:
        html = super().render_element()
        if self.button_label:
            html += Markup(
                f' <button type="button" onclick="document.getElementById(\'{escape(self.get_id())}\').showPicker()">'
            ) + escape(self.button_label) + Markup("</button>")
        return html


class Select(Widget):
    tag = "select"

    def __init__(self, name: str, ajax_base: str = "/ajax", **attrs: Any) -> None:
        super().__init__(name, **attrs)
        self.options: List[Tuple[str, str]] = []
        self.selected: str | None = None
        self.ajax_base = ajax_base
        self._ajax: List[str] = []

    def add_option(self, label: Any, value: Any) -> None:
        self.options.append((str(label), "" if value is None else str(value)))

    def add_array(self, options: Mapping[Any, Any] | Iterable[Tuple[Any, Any]]) -> None:
        """Add (value, label) pairs or a value -> label mapping."""
        items = options.items() if isinstance(options, Mapping) else options
        for value, label in items:
            self.add_option(label, value)

    def set_selected(self, value: Any) -> None:
        self.selected = None if value is None else str(value)

    def add_ajax_function(self, function: str) -> str:
        if function not in self._ajax:
            if not self._ajax:
                self.write_javascript(FILL_SELECT_JS)
            self._ajax.append(function)
            self.write_javascript(ajax_function_source(function, self.ajax_base))
        return ajax_function_name(function)

    def option_values(self) -> List[str]:
        return [value for _, value in self.options]

    def render_element(self) -> Markup:
        html = Markup(f"<select{_attrs(self.base_attrs())}>")
        for label, value in self.options:
            selected = self.selected is not None and value == self.selected
            html += Markup(f"<option{_attrs({'value': value, 'selected': selected})}>") + escape(label) + Markup("</option>")
        return html + Markup("</select>")


class StateSelect(Select):
    def __init__(self, name: str, ajax_base: str = "/ajax", **attrs: Any) -> None:
        super().__init__(name, ajax_base=ajax_base, **attrs)
        self.add_option("Select a state", "")
        for code, label in US_STATES:
            self.add_option(label, code)


class WidgetFactory:
    kinds = {
        "Select": Select,
        "States": StateSelect,
        "Input": Input,
        "Checkbox": Checkbox,
        "Editor": Editor,
        "Calendar": Calendar,
        "Hidden": Hidden,
    }

    def __init__(self, ajax_base: str = "/ajax") -> None:
        self.ajax_base = ajax_base.rstrip("/")

    def create(self, kind: str, name: str, **attrs: Any) -> Widget:
        cls = self.kinds.get(kind)
        if cls is None:
            raise KeyError(f"unknown widget kind: {kind}")
        if issubclass(cls, Select):
            return cls(name, ajax_base=self.ajax_base, **attrs)
        return cls(name, **attrs)
