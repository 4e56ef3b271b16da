from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import func
from sqlalchemy.orm import Session
from tableside.models.core import Order, OrderItem, OrderStatus, SplitStatus

CENT = Decimal("0.01")
SPLIT_TOLERANCE = Decimal("0.01")


def money(x) -> Decimal:
    # use string to avoid float binary artifacts
    if isinstance(x, float):
        x = str(x)
    return Decimal(x or 0).quantize(CENT, rounding=ROUND_HALF_UP)


def as_float(val) -> float | None:
    if val is None:
        return None
    return float(val)


def order_items_total(db: Session, order_id: str) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(OrderItem.price * OrderItem.quantity), 0))
        .filter(OrderItem.order_id == order_id)
        .scalar()
    )
    return money(total)


def recompute_order_total(db: Session, order: Order) -> Decimal:
    """Set order.total_amount from its surviving items; caller commits."""
    db.flush()
    order.total_amount = order_items_total(db, order.id)
    return order.total_amount


def extra_charges_amount(charges: list[dict] | None, base) -> Decimal:
    total = Decimal("0")
    for c in charges or []:
        amount = Decimal(str(c.get("amount") or 0))
        if c.get("isPercentage") or c.get("is_percentage"):
            total += Decimal(str(base or 0)) * amount / 100
        else:
            total += amount
    return money(total)


def session_total(db: Session, session_id: str) -> Decimal:
    """Raw sum of non-cancelled order totals; not rounded."""
    total = (
        db.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.session_id == session_id, Order.status != OrderStatus.CANCELLED)
        .scalar()
    )
    return Decimal(str(total))


def splits_match_total(amounts, total) -> bool:
    summed = sum((Decimal(str(a)) for a in amounts), Decimal("0"))
    return abs(summed - Decimal(str(total))) <= SPLIT_TOLERANCE


def split_status(paid, total) -> SplitStatus:
    paid, total = Decimal(str(paid)), Decimal(str(total))
    if paid >= total:
        return SplitStatus.PAID
    if paid > 0:
        return SplitStatus.PARTIAL_PAID
    return SplitStatus.PENDING
