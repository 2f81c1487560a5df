import os
import sys
import tempfile
import unittest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from app.template_render import PageRenderer, validate_templates


BUNDLED = os.path.join(ROOT, "templates")


class TestTemplateRender(unittest.TestCase):
    def test_bundled_templates_parse(self) -> None:
        self.assertEqual(validate_templates([BUNDLED]), [])

    def test_syntax_errors_are_reported(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with open(os.path.join(tmp, "broken.html"), "w", encoding="utf-8") as handle:
                handle.write("{% if %}\n")
            errors = validate_templates([tmp])
        self.assertEqual(len(errors), 1)
        self.assertTrue(errors[0]["message"].startswith("broken.html"))

    def test_error_page_escapes_message(self) -> None:
        html = PageRenderer([BUNDLED]).render_error("<b>gone</b>", 404, {"base_uri": "/admin"})
        self.assertIn("Error 404", html)
        self.assertIn("&lt;b&gt;gone&lt;/b&gt;", html)

    def test_overrides_come_first(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with open(os.path.join(tmp, "error.html"), "w", encoding="utf-8") as handle:
                handle.write("custom {{ status }}")
            html = PageRenderer([tmp, BUNDLED]).render_error("x", 500)
        self.assertEqual(html, "custom 500")


if __name__ == "__main__":
    unittest.main()
