import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from column_schema import (
    ColumnKind,
    KeyRole,
    column_kind,
    describe_column,
    describe_columns,
    key_role,
    parse_enum_options,
    type_family,
)


class TestColumnSchema(unittest.TestCase):
    def test_family_is_leading_token(self) -> None:
        self.assertEqual(type_family("varchar(255)"), "varchar")
        self.assertEqual(type_family("int(10) unsigned"), "int")
        self.assertEqual(type_family("TEXT"), "text")
        self.assertEqual(type_family(None), "")

    def test_kinds(self) -> None:
        self.assertIs(column_kind("enum('a','b')"), ColumnKind.ENUM)
        self.assertIs(column_kind("mediumtext"), ColumnKind.RICH_TEXT)
        self.assertIs(column_kind("timestamp"), ColumnKind.DATE)
        self.assertIs(column_kind("searchdate"), ColumnKind.SEARCH_DATE)
        self.assertIs(column_kind("tinyint(1)"), ColumnKind.CHECKBOX)
        self.assertIs(column_kind("char(2)"), ColumnKind.TEXT_INPUT)
        self.assertIs(column_kind("blob"), ColumnKind.UNKNOWN)

    def test_key_roles_accept_short_names(self) -> None:
        self.assertIs(key_role("PRI"), KeyRole.PRIMARY)
        self.assertIs(key_role("Primary"), KeyRole.PRIMARY)
        self.assertIs(key_role("UNI"), KeyRole.UNIQUE)
        self.assertIs(key_role(None), KeyRole.NONE)

    def test_enum_options_are_labelled(self) -> None:
        self.assertEqual(
            parse_enum_options("enum('internal','contact','system')"),
            [("internal", "Internal"), ("contact", "Contact"), ("system", "System")],
        )

    def test_describe_column(self) -> None:
        column = describe_column("Active", {"Type": "tinyint(1)", "Default": 1})
        self.assertTrue(column.is_boolean)
        self.assertEqual(column.default, 1)
        self.assertFalse(describe_column("Count", "tinyint(4)").is_boolean)

        radio = describe_column("Answer", {"Type": "radio", "Value1": "Yes", "Value2": "No"})
        self.assertIs(radio.kind, ColumnKind.RADIO)
        self.assertEqual(radio.radio_values, ["Yes", "No"])

        primary = describe_column("TicketID", {"Type": "int(10)", "Key": "PRI"})
        self.assertTrue(primary.is_primary)

    def test_with_type_recomputes_kind(self) -> None:
        column = describe_column("Notes", "text")
        self.assertIs(column.with_type("varchar").kind, ColumnKind.TEXT_INPUT)
        self.assertIs(column.kind, ColumnKind.RICH_TEXT)

    def test_describe_columns_keeps_order(self) -> None:
        columns = describe_columns({"B": "int", "A": "varchar(5)", "C": "date"})
        self.assertEqual(list(columns), ["B", "A", "C"])


if __name__ == "__main__":
    unittest.main()
