# Overview: Role constants and the operation -> allowed-roles table.
# Each operation is defined as: (code, description, allowed roles)
#
# Roles are a closed set carried on the caller's session. They are NOT
# hierarchical: every operation enumerates exactly which roles may run it.


class Role:
    """Closed set of roles carried in a session."""
    USER = "USER"
    LIBRARY_ADMIN = "LIBRARY_ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


ALL_ROLES = frozenset({Role.USER, Role.LIBRARY_ADMIN, Role.SUPER_ADMIN})
STAFF_ROLES = frozenset({Role.LIBRARY_ADMIN, Role.SUPER_ADMIN})
SUPER_ADMIN_ONLY = frozenset({Role.SUPER_ADMIN})


OPERATION_DEFINITIONS = [
    # -- CATALOG --
    ("VIEW_BOOKS", "List, search and view books", ALL_ROLES),
    ("MANAGE_BOOKS", "Create and edit catalog records", STAFF_ROLES),
    ("DELETE_BOOK", "Hard-delete a catalog record", SUPER_ADMIN_ONLY),

    # -- CIRCULATION --
    ("ISSUE_BOOK", "Lend a book to a user", STAFF_ROLES),
    ("RETURN_BOOK", "Close an open issue", STAFF_ROLES),
    ("VIEW_ISSUED", "List open issues with borrowers", STAFF_ROLES),

    # -- PRINT SHOP --
    ("SUBMIT_PRINT_JOB", "Upload, preview and confirm own print jobs", ALL_ROLES),
    ("PAY_PRINT_JOB", "Initiate and verify payments for own print jobs", ALL_ROLES),
    ("VIEW_PAYMENT", "Read payment status (own payments, or any with VIEW_ANY_PAYMENT)", ALL_ROLES),
    ("VIEW_ANY_PAYMENT", "Read payment status for any user", STAFF_ROLES),

    # -- ADMIN --
    ("VIEW_DASHBOARD", "View aggregate counts", STAFF_ROLES),
    ("VIEW_ALL_PRINT_JOBS", "List every user's print jobs", STAFF_ROLES),
    ("VIEW_TRANSACTIONS", "List every payment attempt", STAFF_ROLES),
    ("MANAGE_USERS", "List, create, edit and delete user accounts", SUPER_ADMIN_ONLY),
    ("VIEW_SECURITY_EVENTS", "Read the security audit trail", SUPER_ADMIN_ONLY),
]

OPERATION_ROLES: dict[str, frozenset[str]] = {
    code: roles for code, _description, roles in OPERATION_DEFINITIONS
}


def validate_role(role: str | None) -> bool:
    """Check if a role value is one of the known roles."""
    return role in ALL_ROLES


def allowed_roles(operation_code: str) -> frozenset[str]:
    """Get the allowed-role set for an operation; unknown codes allow nobody."""
    return OPERATION_ROLES.get(operation_code, frozenset())


def is_allowed(operation_code: str, role: str | None) -> bool:
    return role in allowed_roles(operation_code)
