from .inventory import Product, StockMovement
from .customers import Customer
from .sales import Sale, SaleLine, PaymentRecord

__all__ = [
    'Product', 'StockMovement',
    'Customer',
    'Sale', 'SaleLine', 'PaymentRecord',
]
