from .base import (
    AuditLog,
    Brand,
    Category,
    Company,
    Item,
    Location,
    Role,
    StockBalance,
    StockMovement,
    TransactionHeader,
    TransactionLine,
    Uom,
    User,
    Warehouse,
)

__all__ = [
    "AuditLog",
    "Brand",
    "Category",
    "Company",
    "Item",
    "Location",
    "Role",
    "StockBalance",
    "StockMovement",
    "TransactionHeader",
    "TransactionLine",
    "Uom",
    "User",
    "Warehouse",
]
