from .inventory import Product, StockMovement
from .parties import Vendor, Customer
from .invoices import Purchase, PurchaseItem, Sale, SaleItem
from .payments import PaymentHistory, LedgerTransaction
from .settings import SystemSettings

__all__ = [
    'Product', 'StockMovement',
    'Vendor', 'Customer',
    'Purchase', 'PurchaseItem', 'Sale', 'SaleItem',
    'PaymentHistory', 'LedgerTransaction',
    'SystemSettings',
]
