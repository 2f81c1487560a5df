import os
import sys
import unittest


HERE = os.path.dirname(os.path.abspath(__file__))
if HERE not in sys.path:
    sys.path.insert(0, HERE)

from fakes import build_services, open_module

from admin_errors import PermissionDenied
from app.admin_modules import ProfileModule, ResourceLockModule, UserModule


class TestBuiltinModules(unittest.TestCase):
    def setUp(self) -> None:
        self.services = build_services()
        self.services.records.seed(
            "User",
            [
                {"FirstName": "Grace", "LastName": "Hopper", "Email": "grace@example.com", "Password": "pw"},
                {"FirstName": "Ada", "LastName": "Lovelace", "Email": "ada@example.com"},
            ],
        )

    def test_user_search_sorts_by_last_name_and_hides_password(self) -> None:
        module = open_module(self.services, cls=UserModule, action="list", method="GET")
        data = module.prepare_template()
        self.assertEqual([record.get("LastName") for record in data["data"]], ["Hopper", "Lovelace"])
        self.assertNotIn("Password", data["dataColumns"])
        self.assertNotIn("City", data["dataColumns"])
        self.assertEqual(data["dataColumns"][:3], ["FirstName", "LastName", "Email"])
        rows = [module.serialize(record) for record in data["data"]]
        self.assertNotIn("Password", rows[0])

    def test_user_title_joins_name_columns(self) -> None:
        module = open_module(self.services, cls=UserModule, action="view", id="2")
        self.assertEqual(module.get_current_item_title(), "Ada Lovelace")

    def test_profile_follows_current_user(self) -> None:
        module = open_module(self.services, cls=ProfileModule, action="view", id="1", user_id=2)
        self.assertEqual(module.type, "Profile")
        self.assertEqual(module.schema.type, "User")
        self.assertEqual(module.item.get("Email"), "ada@example.com")
        self.assertEqual(module.current_action, "view")
        self.assertEqual(open_module(self.services, cls=ProfileModule, action="list", user_id=2).current_action, "view")
        self.assertNotIn("Type", module.get_columns("view"))
        self.assertNotIn("UserID", module.get_columns("edit"))

    def test_profile_edit_keeps_flags(self) -> None:
        module = open_module(
            self.services,
            cls=ProfileModule,
            action="edit",
            method="POST",
            user_id=2,
            post={"Profile": {"Position": "Analyst"}},
        )
        data = module.prepare_template()
        self.assertEqual(data["success"], "This Profile update has been successful.")
        stored = self.services.records.load("User", 2)
        self.assertEqual(stored.get("Position"), "Analyst")
        self.assertEqual(stored.get("Active"), 1)

    def test_profile_api_only_returns_own_record(self) -> None:
        self.services.records.seed("User", [{"FirstName": "Carl", "LastName": "Gauss", "Email": "carl@example.com"}])
        module = open_module(self.services, cls=ProfileModule, method="GET", user_id=2)
        rows = module.process_api()
        self.assertEqual([row["Email"] for row in rows], ["ada@example.com"])

        other = open_module(self.services, cls=ProfileModule, method="GET", id="1", user_id=2)
        self.assertEqual(other.process_api()["Email"], "ada@example.com")

        anonymous = open_module(self.services, cls=ProfileModule, method="GET")
        self.assertEqual(anonymous.process_api(), [])

    def test_profile_api_refuses_create_and_delete(self) -> None:
        for method in ("POST", "DELETE"):
            module = open_module(self.services, cls=ProfileModule, method=method, id="2", user_id=2)
            with self.assertRaises(PermissionDenied) as caught:
                module.process_api()
            self.assertEqual(caught.exception.status, 405)
        self.assertEqual(len(self.services.records.search("User")), 2)

    def test_profile_permissions_use_profile_type(self) -> None:
        module = open_module(self.services, cls=ProfileModule, user_id=2)
        module.allow("edit")
        self.assertEqual(self.services.authorizer.calls, [("Profile", "edit")])

    def test_resource_lock_names(self) -> None:
        self.services.records.seed("ResourceLock", [{"Resource": "Ticket", "Component": "edit", "KeyID": 1}])
        module = open_module(self.services, cls=ResourceLockModule, action="view", id="1")
        self.assertEqual(module.get_current_item_title(), "Ticket edit")
        self.assertEqual(module.get_columns("view")[:2], ["Resource", "Component"])


if __name__ == "__main__":
    unittest.main()
