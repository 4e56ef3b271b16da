# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    OrderStatus, SessionStatus, SessionOrigin, PaymentMethod, SplitStatus, SplitType,
    OCCUPYING_STATUSES,

    # Identity
    Role, User,

    # Floor
    DiningTable,

    # Menu
    Category, Department, MenuItem, Selection, SelectionOption,

    # Sessions / orders / payments
    DiningSession, Order, OrderItem, BillSplit, Payment, PaymentItem,

    # Audit
    AuditLog,
)

__all__ = [
    # Enums
    "OrderStatus", "SessionStatus", "SessionOrigin", "PaymentMethod", "SplitStatus", "SplitType",
    "OCCUPYING_STATUSES",

    # Identity
    "Role", "User",

    # Floor
    "DiningTable",

    # Menu
    "Category", "Department", "MenuItem", "Selection", "SelectionOption",

    # Sessions / orders / payments
    "DiningSession", "Order", "OrderItem", "BillSplit", "Payment", "PaymentItem",

    # Audit
    "AuditLog",
]
