from .inventory import InventoryItem
from .transactions import TransactionRecord, STOCK_IN, STOCK_OUT, TRANSACTION_TYPES
from .documents import DocumentSequence
from .auth import User, SessionToken, ROLE_ADMIN, ROLE_STAFF, ROLES
from .security import SecurityEvent

__all__ = [
    'InventoryItem',
    'TransactionRecord', 'STOCK_IN', 'STOCK_OUT', 'TRANSACTION_TYPES',
    'DocumentSequence',
    'User', 'SessionToken', 'ROLE_ADMIN', 'ROLE_STAFF', 'ROLES',
    'SecurityEvent',
]
