from .catalog import Category, Product
from .inventory import InventoryMovement
from .transactions import Transaction, TransactionLine, DocumentSequence
from .settings import ShopSettings

__all__ = [
    'Category', 'Product',
    'InventoryMovement',
    'Transaction', 'TransactionLine', 'DocumentSequence',
    'ShopSettings',
]
