import os
import sys
import tempfile
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from admin_errors import ConfigurationFatal
from template_resolver import TemplateResolver, action_template, method_template


def _touch(root, name):
    path = os.path.join(root, *name.split("/"))
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write("x")


class TestTemplateResolver(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.custom = os.path.join(self._tmp.name, "custom")
        self.bundled = os.path.join(self._tmp.name, "bundled")
        os.makedirs(self.custom)
        os.makedirs(self.bundled)
        self.resolver = TemplateResolver([self.custom, self.bundled])

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_template_names(self) -> None:
        self.assertEqual(action_template("list"), "search.html")
        self.assertEqual(action_template("View"), "view.html")
        self.assertEqual(method_template("edit", "post"), "processedit.html")
        self.assertEqual(method_template("edit", "GET"), "displayedit.html")
        self.assertEqual(method_template("list", "GET"), "processsearch.html")

    def test_candidates(self) -> None:
        self.assertEqual(
            self.resolver.candidates("Ticket", "edit", "POST"),
            ["ticket/edit.html", "ticket/processedit.html", "edit.html", "processedit.html"],
        )

    def test_denied_returns_none(self) -> None:
        _touch(self.bundled, "view.html")
        self.assertIsNone(self.resolver.resolve("Ticket", "view", "GET", allowed=False))

    def test_directory_order_wins_over_candidate_order(self) -> None:
        _touch(self.bundled, "ticket/view.html")
        _touch(self.custom, "view.html")
        self.assertEqual(self.resolver.resolve("Ticket", "view", "GET"), "view.html")

    def test_type_specific_first_within_directory(self) -> None:
        _touch(self.bundled, "view.html")
        _touch(self.bundled, "ticket/displayview.html")
        self.assertEqual(self.resolver.resolve("Ticket", "view", "GET"), "ticket/displayview.html")

    def test_exhausted_search_is_fatal(self) -> None:
        with self.assertRaises(ConfigurationFatal) as ctx:
            self.resolver.resolve("Ticket", "report", "GET")
        self.assertEqual(ctx.exception.message, 'The action "report" does *not* exist in Ticket!!!')

    def test_bundled_templates_cover_builtin_actions(self) -> None:
        resolver = TemplateResolver([os.path.join(ROOT, "templates")])
        for action in ("list", "search", "view", "create", "edit", "settings", "editcolumn", "item"):
            self.assertIsNotNone(resolver.resolve("Ticket", action, "GET"))


if __name__ == "__main__":
    unittest.main()
