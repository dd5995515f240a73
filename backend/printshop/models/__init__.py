from .tenancy import Company, Branch, DocumentSequence
from .auth import User, Role, UserRole, Permission, RolePermission, SessionToken
from .security import SecurityEvent, ActivityLog
from .catalog import Product, ProductCategory, WeightPricingTier
from .customers import Customer
from .invoices import Invoice, InvoiceItem
from .payments import Payment, PaymentVerification
from .production import PrintJob, ProductionStage

__all__ = [
    'Company', 'Branch', 'DocumentSequence',
    'User', 'Role', 'UserRole', 'Permission', 'RolePermission', 'SessionToken',
    'SecurityEvent', 'ActivityLog',
    'Product', 'ProductCategory', 'WeightPricingTier',
    'Customer',
    'Invoice', 'InvoiceItem',
    'Payment', 'PaymentVerification',
    'PrintJob', 'ProductionStage',
]
