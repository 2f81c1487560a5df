"""Built-in entities and admin modules: users, the current user's profile, roles and resources."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from admin_errors import PermissionDenied
from admin_module import AdminModule
from entity_catalog import EntityCatalog, Record
from module_catalog import ModuleCatalog


USER_COLUMNS: Dict[str, dict] = {
    "UserID": {"Type": "int(10) unsigned", "Key": "Primary", "Default": None, "Extra": "auto_increment"},
    "Type": {"Type": "enum('internal','contact','system')", "Default": "internal"},
    "Email": {"Type": "varchar(255)", "Key": "UNI", "Default": None},
    "FirstName": {"Type": "varchar(50)", "Default": None},
    "LastName": {"Type": "varchar(50)", "Default": None},
    "Position": {"Type": "varchar(100)", "Default": None},
    "Notes": {"Type": "mediumtext", "Default": ""},
    "StreetAddress": {"Type": "varchar(255)", "Default": None},
    "ShippingAddress": {"Type": "varchar(255)", "Default": None},
    "City": {"Type": "varchar(50)", "Default": None},
    "State": {"Type": "varchar(2)", "Default": None},
    "Zip": {"Type": "varchar(9)", "Default": "000000000"},
    "Country": {"Type": "varchar(50)", "Default": None},
    "WorkPhone": {"Type": "varchar(25)", "Default": None},
    "HomePhone": {"Type": "varchar(25)", "Default": None},
    "CellPhone": {"Type": "varchar(25)", "Default": None},
    "Active": {"Type": "tinyint(1)", "Default": 1},
    "Visible": {"Type": "tinyint(1)", "Default": 1},
    "Password": {"Type": "password", "Default": ""},
}

ROLE_COLUMNS: Dict[str, dict] = {
    "RoleID": {"Type": "int(10) unsigned", "Key": "Primary", "Extra": "auto_increment"},
    "Name": {"Type": "varchar(25)", "Key": "UNI"},
    "Description": {"Type": "text", "Default": ""},
}

RESOURCE_KEY_COLUMNS: Dict[str, dict] = {
    "KeyID": {"Type": "int(10) unsigned", "Key": "Primary", "Extra": "auto_increment"},
    "Name": {"Type": "varchar(255)", "Key": "UNI"},
}

ROLE_KEY_COLUMNS: Dict[str, dict] = {
    "RoleKeyID": {"Type": "int(10) unsigned", "Key": "Primary", "Extra": "auto_increment"},
    "RoleID": {"Type": "int(10) unsigned", "Default": 0},
    "KeyID": {"Type": "int(10) unsigned", "Default": 0},
    "Level": {"Type": "int(10) unsigned", "Default": 0},
}

RESOURCE_LOCK_COLUMNS: Dict[str, dict] = {
    "LockID": {"Type": "int(10) unsigned", "Key": "Primary", "Extra": "auto_increment"},
    "KeyID": {"Type": "int(10) unsigned", "Default": 0},
    "MinKey": {"Type": "int(10) unsigned", "Default": 1000},
    "Resource": {"Type": "varchar(255)", "Default": None},
    "Component": {"Type": "varchar(255)", "Default": None},
}


def register_entities(catalog: EntityCatalog) -> EntityCatalog:
    catalog.register("User", USER_COLUMNS, name_column=("FirstName", "LastName"))
    catalog.register("Role", ROLE_COLUMNS)
    catalog.register("ResourceKey", RESOURCE_KEY_COLUMNS)
    catalog.register("RoleKey", ROLE_KEY_COLUMNS, name_column=())
    catalog.register("ResourceLock", RESOURCE_LOCK_COLUMNS, name_column=("Resource", "Component"))
    return catalog


class UserModule(AdminModule):
    ignore = {
        "edit": ("Password",),
        "create": (),
        "search": (
            "Password",
            "ShippingAddress",
            "Country",
            "Notes",
            "StreetAddress",
            "City",
            "State",
            "Zip",
            "HomePhone",
            "CellPhone",
            "Active",
            "Visible",
        ),
        "view": ("Password",),
        "boolean": (),
    }
    column_order = ("FirstName", "LastName", "Email")
    static_columns = ("FirstName", "LastName", "Email")
    edit_columns = ("Type", "Position", "Country", "Active", "Visible")
    quick_search = {"Email": "Email", "LastName": "Last name"}

    def search_sort_column(self) -> str:
        return "LastName"


class ProfileModule(AdminModule):
    """The logged in user's own record."""

    entity_type = "User"
    components = {
        "search": "This is the ability to search and display data.",
        "edit": "The ability to edit existing data.",
    }
    ignore = {
        "edit": ("UserID", "Password", "Type", "Position", "Notes", "Active", "Visible"),
        "create": (),
        "search": ("Password", "ShippingAddress", "StreetAddress", "Notes"),
        "view": ("Password", "Type", "Notes", "Active", "Visible"),
        "boolean": ("Active", "Visible"),
    }
    allowed_actions = ("view", "edit")
    default_action = "view"
    menu_items = {"view": "View", "edit": "Edit"}
    sub_menu_items = {}
    visible_in_menu = False

    def _load_item(self, record_id: Any) -> Record:
        return super()._load_item(self.context.user_id)

    def search_data(self, terms: Mapping[str, Any] | None) -> List[Record]:
        if self.item.id <= 0:
            return []
        scoped = dict(terms or {})
        scoped[self.schema.id_column] = [self.item.id]
        return super().search_data(scoped)

    def process_api(self) -> Any:
        method = (self.context.method or "GET").upper()
        if method not in ("GET", "PUT"):
            raise PermissionDenied(f"Method ({method}) not allowed", status=405)
        return super().process_api()


class RoleModule(AdminModule):
    column_order = ("Name", "Description")


class ResourceKeyModule(AdminModule):
    pass


class RoleKeyModule(AdminModule):
    static_columns = ()
    edit_columns = ("Level",)


class ResourceLockModule(AdminModule):
    column_order = ("Resource", "Component", "KeyID", "MinKey")
    static_columns = ("Resource", "Component")
    edit_columns = ("KeyID", "MinKey")


BUILTIN_MODULES = (UserModule, ProfileModule, RoleModule, ResourceKeyModule, RoleKeyModule, ResourceLockModule)


def build_catalogs() -> tuple[EntityCatalog, ModuleCatalog]:
    entities = register_entities(EntityCatalog())
    modules = ModuleCatalog()
    for cls in BUILTIN_MODULES:
        result = modules.register(cls)
        if not result["ok"]:
            raise RuntimeError(f"builtin module {cls.__name__} failed to register: {result['errors']}")
    return entities, modules
