from .inventory import InventoryItem, Category
from .customers import Customer
from .invoices import Invoice, InvoiceLine
from .settings import BusinessProfile
from .auth import AdminAccount, SessionToken
from .ledger import ChangeEvent
from .documents import DocumentSequence

__all__ = [
    'InventoryItem', 'Category',
    'Customer',
    'Invoice', 'InvoiceLine',
    'BusinessProfile',
    'AdminAccount', 'SessionToken',
    'ChangeEvent',
    'DocumentSequence',
]
