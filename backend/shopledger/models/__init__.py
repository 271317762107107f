from .auth import User
from .settings import Setting
from .inventory import Warehouse, Product, StockAdjustment
from .customers import Customer, CustomerTransaction
from .suppliers import Supplier, SupplierTransaction
from .sales import Sale, SaleItem
from .purchases import Purchase, PurchaseItem
from .ledger import GeneralLedgerEntry
from .maintenance import MaintenanceJob

__all__ = [
    'User', 'Setting',
    'Warehouse', 'Product', 'StockAdjustment',
    'Customer', 'CustomerTransaction',
    'Supplier', 'SupplierTransaction',
    'Sale', 'SaleItem',
    'Purchase', 'PurchaseItem',
    'GeneralLedgerEntry',
    'MaintenanceJob',
]
