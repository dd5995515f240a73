# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- COMPANIES / BRANCHES --

COMPANY_PERMISSIONS = [
    (
        "VIEW_COMPANIES",
        "View Company",
        "View company profile and settings",
        PermissionCategory.COMPANIES,
    ),
    (
        "MANAGE_COMPANIES",
        "Manage Company",
        "Edit company profile, tax rate and currency",
        PermissionCategory.COMPANIES,
    ),
]

BRANCH_PERMISSIONS = [
    (
        "VIEW_BRANCHES",
        "View Branches",
        "View branch list and details",
        PermissionCategory.BRANCHES,
    ),
    (
        "MANAGE_BRANCHES",
        "Manage Branches",
        "Create, edit and deactivate branches",
        PermissionCategory.BRANCHES,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "VIEW_USERS",
        "View Users",
        "View staff accounts and their roles",
        PermissionCategory.USERS,
    ),
    (
        "CREATE_USER",
        "Create User",
        "Create staff accounts",
        PermissionCategory.USERS,
    ),
    (
        "EDIT_USER",
        "Edit User",
        "Edit and deactivate staff accounts",
        PermissionCategory.USERS,
    ),
    (
        "ASSIGN_ROLES",
        "Assign Roles",
        "Assign roles to staff accounts",
        PermissionCategory.USERS,
    ),
]


# -- PRODUCTS / PRICING --

PRODUCT_PERMISSIONS = [
    (
        "VIEW_PRODUCTS",
        "View Products",
        "View the product catalog and product pricing",
        PermissionCategory.PRODUCTS,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, edit and deactivate products",
        PermissionCategory.PRODUCTS,
    ),
]

PRICING_PERMISSIONS = [
    (
        "VIEW_PRICING",
        "View Pricing",
        "View weight pricing tiers and delivery quotes",
        PermissionCategory.PRICING,
    ),
    (
        "MANAGE_PRICING",
        "Manage Pricing",
        "Create, edit, reorder and toggle weight pricing tiers",
        PermissionCategory.PRICING,
    ),
]


# -- CUSTOMERS --

CUSTOMER_PERMISSIONS = [
    (
        "VIEW_CUSTOMERS",
        "View Customers",
        "View customer records",
        PermissionCategory.CUSTOMERS,
    ),
    (
        "MANAGE_CUSTOMERS",
        "Manage Customers",
        "Create, edit and deactivate customers",
        PermissionCategory.CUSTOMERS,
    ),
]


# -- INVOICES --

INVOICE_PERMISSIONS = [
    (
        "VIEW_INVOICES",
        "View Invoices",
        "View invoices and invoice totals",
        PermissionCategory.INVOICES,
    ),
    (
        "CREATE_INVOICE",
        "Create Invoice",
        "Create and duplicate invoices",
        PermissionCategory.INVOICES,
    ),
    (
        "EDIT_INVOICE",
        "Edit Invoice",
        "Edit invoice items, discount and status",
        PermissionCategory.INVOICES,
    ),
    (
        "DELETE_INVOICE",
        "Delete Invoice",
        "Delete draft invoices without payments",
        PermissionCategory.INVOICES,
    ),
]


# -- PAYMENTS --

PAYMENT_PERMISSIONS = [
    (
        "VIEW_PAYMENTS",
        "View Payments",
        "View payments and verification claims",
        PermissionCategory.PAYMENTS,
    ),
    (
        "PROCESS_PAYMENTS",
        "Process Payments",
        "Record payments and submit bank payment claims",
        PermissionCategory.PAYMENTS,
    ),
    (
        "VERIFY_PAYMENTS",
        "Verify Payments",
        "Verify or reject payments and bank payment claims",
        PermissionCategory.PAYMENTS,
    ),
]


# -- PRODUCTION --

PRODUCTION_PERMISSIONS = [
    (
        "VIEW_PRODUCTION",
        "View Production",
        "View print jobs and stage timelines",
        PermissionCategory.PRODUCTION,
    ),
    (
        "MANAGE_PRODUCTION",
        "Manage Production",
        "Create print jobs, start production, approve or reject stages",
        PermissionCategory.PRODUCTION,
    ),
    (
        "UPDATE_PRODUCTION_STATUS",
        "Update Production Status",
        "Start, complete, hold, resume and skip production stages",
        PermissionCategory.PRODUCTION,
    ),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "VIEW_AUDIT_LOG",
        "View Audit Log",
        "View the business activity log and security events",
        PermissionCategory.SYSTEM,
    ),
    (
        "MANAGE_PERMISSIONS",
        "Manage Permissions",
        "Grant and revoke role permissions",
        PermissionCategory.SYSTEM,
    ),
    (
        "SYSTEM_ADMIN",
        "System Administration",
        "Full administrative access to the company",
        PermissionCategory.SYSTEM,
    ),
]


PERMISSION_DEFINITIONS = (
    COMPANY_PERMISSIONS
    + BRANCH_PERMISSIONS
    + USER_PERMISSIONS
    + PRODUCT_PERMISSIONS
    + PRICING_PERMISSIONS
    + CUSTOMER_PERMISSIONS
    + INVOICE_PERMISSIONS
    + PAYMENT_PERMISSIONS
    + PRODUCTION_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
