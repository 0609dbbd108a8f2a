from .inventory import Product, StockMovement, LowStockAlert, MOVEMENT_TYPES
from .sales import Sale, SaleItem, SALE_STATUSES, PAYMENT_METHODS

__all__ = [
    'Product', 'StockMovement', 'LowStockAlert', 'MOVEMENT_TYPES',
    'Sale', 'SaleItem', 'SALE_STATUSES', 'PAYMENT_METHODS',
]
