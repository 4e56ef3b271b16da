"""
Payment snapshots.

A payment copies everything a receipt needs (restaurant, table, customer,
line items) at the moment it is taken, so later edits to the menu, the
orders or the restaurant profile never rewrite history.
"""
import json
from decimal import Decimal, ROUND_HALF_UP
from fastapi import HTTPException
from sqlalchemy.orm import Session

from tableside.models.common import utcnow
from tableside.models.core import (
    User, DiningTable, DiningSession, Order, OrderItem, OrderStatus, MenuItem, Category,
    Payment, PaymentItem, PaymentMethod,
)
from tableside.services.billing import money, extra_charges_amount
from tableside.services import numbering

QTY = Decimal("0.01")


def billable_lines(db: Session, session_id: str) -> list[tuple[OrderItem, MenuItem | None]]:
    rows = (
        db.query(OrderItem, MenuItem)
        .join(Order, Order.id == OrderItem.order_id)
        .outerjoin(MenuItem, MenuItem.id == OrderItem.menu_item_id)
        .filter(Order.session_id == session_id, Order.status != OrderStatus.CANCELLED)
        .order_by(Order.ordered_at.asc(), OrderItem.created_at.asc(), OrderItem.id.asc())
        .all()
    )
    return [(it, m) for it, m in rows]


def _snapshot_header(db: Session, owner_id: str, s: DiningSession, number: str) -> Payment:
    owner = db.get(User, owner_id)
    table = db.get(DiningTable, s.table_id) if s.table_id else None
    return Payment(
        user_id=owner_id,
        session_id=s.id,
        payment_number=number,
        customer_name=s.customer_name,
        customer_phone=s.customer_phone,
        customer_email=s.customer_email,
        party_size=s.party_size,
        table_number=table.number if table else None,
        table_name=table.name if table else None,
        check_in_time=s.check_in_time,
        check_out_time=utcnow(),
        restaurant_name=owner.restaurant_name if owner else None,
        restaurant_address=owner.restaurant_address if owner else None,
        restaurant_phone=owner.restaurant_phone if owner else None,
    )


def record_session_payment(db: Session, owner_id: str, s: DiningSession, *, method: str,
                           subtotal: Decimal, discount: Decimal, charges: list[dict],
                           final: Decimal, received: Decimal | None, change: Decimal | None,
                           notes: str | None) -> Payment:
    """Snapshot every billable line of the session onto a new payment and commit."""
    categories: dict[str, str] = {}

    def build(number: str) -> Payment:
        p = _snapshot_header(db, owner_id, s, number)
        p.payment_method = PaymentMethod(method)
        p.subtotal_amount = subtotal
        p.discount_amount = discount
        p.extra_charges_amount = extra_charges_amount(charges, subtotal)
        p.extra_charges = json.dumps(charges) if charges else None
        p.final_amount = final
        p.received_amount = received
        p.change_amount = change
        p.notes = notes
        db.add(p)
        db.flush()
        for it, m in billable_lines(db, s.id):
            if m is not None and m.category_id not in categories:
                c = db.get(Category, m.category_id)
                categories[m.category_id] = c.name if c else None
            db.add(PaymentItem(
                payment_id=p.id,
                menu_item_name=m.name if m else "Unknown item",
                menu_item_description=m.description if m else None,
                menu_item_price=m.price if m else it.price,
                category_name=categories.get(m.category_id) if m else None,
                quantity=Decimal(it.quantity),
                unit_price=it.price,
                total_price=money(Decimal(it.price) * it.quantity),
                notes=it.notes,
                selections=it.selections,
            ))
        return p

    return numbering.allocate(db, "PAY", owner_id, build)


def record_split_payment(db: Session, owner_id: str, s: DiningSession, split, *, amount: Decimal,
                         method: str, notes: str | None, apply_to_split) -> Payment:
    """
    Snapshot a portion of the session bill.

    Every billable line is pro-rated by amount / split total, so quantities
    may be fractional. `apply_to_split` re-applies the split's new balance
    whenever the unit of work is rebuilt.
    """
    split_total = Decimal(split.total_amount)
    if split_total <= 0:
        raise HTTPException(400, detail="Bill split has no amount to pay")
    ratio = amount / split_total
    split_id = split.id

    def build(number: str) -> Payment:
        apply_to_split()
        p = _snapshot_header(db, owner_id, s, number)
        p.bill_split_id = split_id
        p.payment_method = PaymentMethod(method)
        p.subtotal_amount = amount
        p.discount_amount = Decimal("0")
        p.extra_charges_amount = Decimal("0")
        p.final_amount = amount
        p.received_amount = amount if method == PaymentMethod.CASH.value else None
        p.change_amount = Decimal("0")
        p.notes = notes or f"Split bill payment - {split_id}"
        db.add(p)
        db.flush()
        for it, m in billable_lines(db, s.id):
            db.add(PaymentItem(
                payment_id=p.id,
                menu_item_name=m.name if m else "Unknown item",
                menu_item_description=m.description if m else None,
                menu_item_price=m.price if m else it.price,
                category_name="Split Bill Item",
                quantity=(Decimal(it.quantity) * ratio).quantize(QTY, rounding=ROUND_HALF_UP),
                unit_price=it.price,
                total_price=money(Decimal(it.price) * it.quantity * ratio),
                notes=it.notes,
                selections=it.selections,
            ))
        return p

    return numbering.allocate(db, "PAY", owner_id, build)
