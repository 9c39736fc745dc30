from .catalog import InventoryItem, HappyHourRule
from .tabs import Tab, TabItem
from .sales import Sale
from .auth import User

__all__ = [
    'InventoryItem', 'HappyHourRule',
    'Tab', 'TabItem',
    'Sale',
    'User',
]
