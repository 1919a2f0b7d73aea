from .tenancy import Company
from .auth import User, SessionToken
from .inventory import (
    Warehouse,
    Product,
    ProductWarehouseInventory,
    StockTransfer,
    StockTransferImmutableError,
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_COMPLETED,
    TRANSFER_STATUS_FAILED,
    generate_reference_code,
)

__all__ = [
    'Company',
    'User', 'SessionToken',
    'Warehouse', 'Product', 'ProductWarehouseInventory',
    'StockTransfer', 'StockTransferImmutableError',
    'TRANSFER_STATUS_PENDING', 'TRANSFER_STATUS_COMPLETED', 'TRANSFER_STATUS_FAILED',
    'generate_reference_code',
]
