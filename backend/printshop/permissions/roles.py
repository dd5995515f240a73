# Overview: Default role definitions and their permission sets.

from .definitions import PERMISSION_DEFINITIONS


# (name, description) for roles created in every new company
DEFAULT_ROLES = [
    ("super_admin", "Full system access"),
    ("company_admin", "Company-wide administration"),
    ("branch_manager", "Branch operations, approvals and payment verification"),
    ("cashier", "Invoicing and payment collection"),
    ("production_staff", "Production floor stage updates"),
]


_ALL_PERMISSIONS = [perm[0] for perm in PERMISSION_DEFINITIONS]


DEFAULT_ROLE_PERMISSIONS = {
    "super_admin": list(_ALL_PERMISSIONS),
    "company_admin": [code for code in _ALL_PERMISSIONS if code != "SYSTEM_ADMIN"],
    "branch_manager": [
        "VIEW_COMPANIES",
        "VIEW_BRANCHES",
        "VIEW_USERS",
        "VIEW_PRODUCTS",
        "VIEW_PRICING",
        "VIEW_CUSTOMERS",
        "MANAGE_CUSTOMERS",
        "VIEW_INVOICES",
        "CREATE_INVOICE",
        "EDIT_INVOICE",
        "DELETE_INVOICE",
        "VIEW_PAYMENTS",
        "PROCESS_PAYMENTS",
        "VERIFY_PAYMENTS",
        "VIEW_PRODUCTION",
        "MANAGE_PRODUCTION",
        "UPDATE_PRODUCTION_STATUS",
        "VIEW_AUDIT_LOG",
    ],
    "cashier": [
        "VIEW_PRODUCTS",
        "VIEW_PRICING",
        "VIEW_CUSTOMERS",
        "MANAGE_CUSTOMERS",
        "VIEW_INVOICES",
        "CREATE_INVOICE",
        "EDIT_INVOICE",
        "VIEW_PAYMENTS",
        "PROCESS_PAYMENTS",
        "VIEW_PRODUCTION",
    ],
    "production_staff": [
        "VIEW_PRODUCTS",
        "VIEW_INVOICES",
        "VIEW_PRODUCTION",
        "UPDATE_PRODUCTION_STATUS",
    ],
}
