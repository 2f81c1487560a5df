import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from markupsafe import Markup

from widgets import Checkbox, Hidden, Select, StateSelect, WidgetFactory, ajax_function_name, ajax_function_source


class TestWidgets(unittest.TestCase):
    def test_select_render_escapes_labels(self) -> None:
        select = Select("Ticket[Status]")
        select.add_option("Pick <one>", "")
        select.add_array({"open": "Open", "closed": "Closed"})
        select.set_selected("closed")
        self.assertEqual(
            str(select),
            '<select name="Ticket[Status]" id="Ticket_Status">'
            '<option value="">Pick &lt;one&gt;</option>'
            '<option value="open">Open</option>'
            '<option value="closed" selected>Closed</option>'
            "</select>",
        )
        self.assertEqual(select.option_values(), ["", "open", "closed"])

    def test_events_and_scripts(self) -> None:
        select = Select("State")
        select.add_event("change", "a()")
        select.add_event("change", "b()")
        name = select.add_ajax_function("getCitiesByState")
        select.add_ajax_function("getCitiesByState")
        self.assertEqual(name, "ajaxGetCitiesByState")
        html = str(select)
        self.assertIn('onchange="a(); b()"', html)
        self.assertEqual(html.count("function fillSelect"), 1)
        self.assertEqual(html.count("function ajaxGetCitiesByState"), 1)

    def test_ajax_source(self) -> None:
        self.assertEqual(ajax_function_name("getZipsByCity"), "ajaxGetZipsByCity")
        source = ajax_function_source("getZipsByCity", "/lookup")
        self.assertIn("function ajaxGetZipsByCity(city, state, targetId, selected)", source)
        self.assertIn("fetch('/lookup/getZipsByCity?'", source)
        with self.assertRaises(KeyError):
            ajax_function_source("dropTables", "/ajax")

    def test_state_select(self) -> None:
        states = StateSelect("User[State]")
        self.assertEqual(states.options[0], ("Select a state", ""))
        self.assertIn("TX", states.option_values())
        self.assertEqual(len(states.options), 52)

    def test_factory(self) -> None:
        factory = WidgetFactory(ajax_base="/lookup/")
        self.assertEqual(factory.create("Select", "x").ajax_base, "/lookup")
        self.assertEqual(str(factory.create("Checkbox", "Flag", checked=True)), '<input name="Flag" id="Flag" type="checkbox" checked value="1">')
        calendar = factory.create("Calendar", "Due")
        calendar.set_start_date("2024-05-01 09:30:00")
        self.assertIn('value="2024-05-01"', str(calendar))
        self.assertIsInstance(Markup(factory.create("Hidden", "Token", value="x")), Markup)
        with self.assertRaises(KeyError):
            factory.create("Slider", "x")

    def test_widgets_stay_markup_when_embedded(self) -> None:
        hidden = Hidden("Token", value="<x>")
        html = Markup("<td>{}</td>").format(hidden)
        self.assertEqual(str(html), '<td><input name="Token" id="Token" type="hidden" value="&lt;x&gt;"></td>')
        joined = Markup("") + Checkbox("Flag")
        self.assertTrue(str(joined).startswith("<input "))


if __name__ == "__main__":
    unittest.main()
