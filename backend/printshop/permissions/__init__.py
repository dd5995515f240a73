# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    COMPANY_PERMISSIONS,
    BRANCH_PERMISSIONS,
    USER_PERMISSIONS,
    PRODUCT_PERMISSIONS,
    PRICING_PERMISSIONS,
    CUSTOMER_PERMISSIONS,
    INVOICE_PERMISSIONS,
    PAYMENT_PERMISSIONS,
    PRODUCTION_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import DEFAULT_ROLES, DEFAULT_ROLE_PERMISSIONS
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    get_permissions_grouped,
    get_permission_definition,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "COMPANY_PERMISSIONS",
    "BRANCH_PERMISSIONS",
    "USER_PERMISSIONS",
    "PRODUCT_PERMISSIONS",
    "PRICING_PERMISSIONS",
    "CUSTOMER_PERMISSIONS",
    "INVOICE_PERMISSIONS",
    "PAYMENT_PERMISSIONS",
    "PRODUCTION_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "DEFAULT_ROLES",
    "DEFAULT_ROLE_PERMISSIONS",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permissions_grouped",
    "get_permission_definition",
    "validate_permission_code",
]
