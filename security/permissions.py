"""
Module permissions per user.

Fixed roles read a static role x module matrix. The "custom" role is fully
data-driven: each module maps to one or more (module, section) pairs in the
user_module_access grant table and every flag is the OR across the matching
grants. No grant, unknown role or unknown module means no access.

Route guards (security.rbac) and the /access/permissions endpoint both call
permissions_for, so the server and the UI never disagree.
"""
from types import MappingProxyType
from typing import Iterable, NamedTuple

from flask import g, has_request_context

from models.user import UserModuleAccess

ACTIONS = ("view", "create", "edit", "delete")
CUSTOM_ROLE = "custom"


class ModulePermissions(NamedTuple):
    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False

    def allows(self, action: str) -> bool:
        return bool(getattr(self, f"can_{action}", False))

    def to_dict(self):
        return {
            "can_view": self.can_view,
            "can_create": self.can_create,
            "can_edit": self.can_edit,
            "can_delete": self.can_delete,
        }


NO_ACCESS = ModulePermissions()
FULL = ModulePermissions(True, True, True, True)
VIEW_ONLY = ModulePermissions(can_view=True)
VIEW_CREATE_EDIT = ModulePermissions(True, True, True, False)
VIEW_CREATE = ModulePermissions(True, True, False, False)

MODULES = (
    "booking", "leaves", "chalan", "customers", "projects", "rooms", "editors",
    "reports", "conflict-report", "booking-report", "editor-report", "chalan-report",
    "users", "user-rights",
)

_REPORTS = ("reports", "conflict-report", "booking-report", "editor-report", "chalan-report")


def _matrix(default, **overrides):
    table = {module: default for module in MODULES}
    for key, value in overrides.items():
        table[key.replace("_", "-")] = value
    return MappingProxyType(table)


ROLE_PERMISSIONS = MappingProxyType({
    "admin": _matrix(FULL, **{m.replace("-", "_"): VIEW_ONLY for m in _REPORTS}),
    "gst": _matrix(
        NO_ACCESS,
        booking=VIEW_CREATE_EDIT, leaves=VIEW_CREATE_EDIT,
        customers=VIEW_CREATE_EDIT, projects=VIEW_CREATE_EDIT,
        rooms=VIEW_ONLY, editors=VIEW_ONLY,
        reports=VIEW_ONLY, conflict_report=VIEW_ONLY, booking_report=VIEW_ONLY, editor_report=VIEW_ONLY,
    ),
    "non_gst": _matrix(
        NO_ACCESS,
        booking=VIEW_CREATE, leaves=VIEW_CREATE,
        customers=VIEW_ONLY, projects=VIEW_ONLY, rooms=VIEW_ONLY, editors=VIEW_ONLY,
        reports=VIEW_ONLY, conflict_report=VIEW_ONLY, booking_report=VIEW_ONLY, editor_report=VIEW_ONLY,
    ),
    "account": _matrix(
        NO_ACCESS,
        booking=VIEW_CREATE_EDIT, chalan=VIEW_CREATE_EDIT,
        customers=VIEW_ONLY, projects=VIEW_ONLY, rooms=VIEW_ONLY, editors=VIEW_ONLY,
        chalan_report=VIEW_ONLY,
    ),
    CUSTOM_ROLE: _matrix(NO_ACCESS),
})

# module -> (grant module, grant section) pairs consulted for the custom role
MODULE_SECTIONS = MappingProxyType({
    "booking": (("Operations", "Booking"),),
    "leaves": (("Operations", "Leaves Entry"),),
    "chalan": (("Operations", "Chalan Entry"), ("Operations", "Chalan Revise")),
    "customers": (("Masters", "Customer Master"),),
    "projects": (("Masters", "Project Master"),),
    "rooms": (("Masters", "Room Master"),),
    "editors": (("Masters", "Editor Master"),),
    "reports": (
        ("Reports", "Conflict Report"),
        ("Reports", "Booking Report"),
        ("Reports", "Editor Report"),
        ("Reports", "Chalan Report"),
    ),
    "conflict-report": (("Reports", "Conflict Report"),),
    "booking-report": (("Reports", "Booking Report"),),
    "editor-report": (("Reports", "Editor Report"),),
    "chalan-report": (("Reports", "Chalan Report"),),
    "users": (("Utility", "User Management"),),
    "user-rights": (("Utility", "User Rights"),),
})


def permissions_for_role(role: str, module: str) -> ModulePermissions:
    return ROLE_PERMISSIONS.get(role, {}).get(module, NO_ACCESS)


def merge_grants(module: str, grants: Iterable) -> ModulePermissions:
    """OR together every grant matching one of *module*'s sections."""
    sections = set(MODULE_SECTIONS.get(module, ()))
    flags = dict.fromkeys(ACTIONS, False)
    for grant in grants:
        if (grant.module, grant.section) not in sections:
            continue
        for action in ACTIONS:
            if getattr(grant, f"can_{action}", False):
                flags[action] = True
    return ModulePermissions(**{f"can_{action}": value for action, value in flags.items()})


def evaluate(role: str, module: str, grants: Iterable = ()) -> ModulePermissions:
    """Pure evaluation from a role and, for the custom role, its grant rows."""
    if role == CUSTOM_ROLE:
        return merge_grants(module, grants)
    return permissions_for_role(role, module)


def _grants_for(user):
    # Cached on the request context only; every request reads fresh grants.
    if has_request_context():
        cache = g.setdefault("_access_grants", {})
        if user.id not in cache:
            cache[user.id] = UserModuleAccess.query.filter_by(user_id=user.id).all()
        return cache[user.id]
    return UserModuleAccess.query.filter_by(user_id=user.id).all()


def permissions_for(user, module: str) -> ModulePermissions:
    if user is None or not getattr(user, "is_active", False):
        return NO_ACCESS
    grants = _grants_for(user) if user.role == CUSTOM_ROLE else ()
    return evaluate(user.role, module, grants)


def all_permissions_for(user):
    return {module: permissions_for(user, module) for module in MODULES}
