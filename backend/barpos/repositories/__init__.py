from .base import (
    CatalogItem,
    HappyHour,
    Repositories,
    SaleRecord,
    TabRecord,
    TabRow,
    UserRecord,
)

__all__ = [
    'CatalogItem', 'HappyHour', 'Repositories', 'SaleRecord',
    'TabRecord', 'TabRow', 'UserRecord',
]
