from .tenancy import Company
from .auth import User, SessionToken
from .customers import Customer
from .inventory import Product, Inventory
from .sales import Sale, SaleItem
from .purchases import Purchase, PurchaseItem
from .documents import SalesReturn, SalesReturnItem, DocumentSequence

__all__ = [
    'Company',
    'User', 'SessionToken',
    'Customer',
    'Product', 'Inventory',
    'Sale', 'SaleItem',
    'Purchase', 'PurchaseItem',
    'SalesReturn', 'SalesReturnItem', 'DocumentSequence',
]
