# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    COMPANIES = "COMPANIES"
    BRANCHES = "BRANCHES"
    USERS = "USERS"
    PRODUCTS = "PRODUCTS"
    PRICING = "PRICING"
    CUSTOMERS = "CUSTOMERS"
    INVOICES = "INVOICES"
    PAYMENTS = "PAYMENTS"
    PRODUCTION = "PRODUCTION"
    SYSTEM = "SYSTEM"
