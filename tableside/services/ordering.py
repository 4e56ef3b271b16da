from dataclasses import dataclass
from decimal import Decimal
from fastapi import HTTPException
from sqlalchemy.orm import Session

from tableside.models.common import utcnow
from tableside.models.core import (
    MenuItem, Order, OrderItem, OrderStatus, DiningSession, SessionStatus,
)
from tableside.services import numbering
from tableside.services.billing import money
from tableside.services.pricing import (
    parse_selections, dump_selections, line_unit_price, check_declared_price,
)

# a first order moves the party on from these
PRE_ORDER_STATUSES = (SessionStatus.WAITING, SessionStatus.SEATED, SessionStatus.ORDERING)


@dataclass
class PricedLine:
    menu_item_id: str
    quantity: int
    price: Decimal
    notes: str | None
    selections: str | None


def menu_item_for(db: Session, owner_id: str, menu_item_id: str, *, require_available: bool = False) -> MenuItem:
    m = db.get(MenuItem, menu_item_id)
    if not m or m.user_id != owner_id:
        raise HTTPException(400, detail=f"Menu item {menu_item_id} not found")
    if require_available and (not m.is_active or not m.is_available):
        raise HTTPException(400, detail=f"{m.name} is not available")
    return m


def price_line(db: Session, owner_id: str, line, *, trust_client: bool = True,
               require_available: bool = False) -> PricedLine:
    """Validate one requested line and fix its stored unit price."""
    m = menu_item_for(db, owner_id, line.menu_item_id, require_available=require_available)
    selections = parse_selections(line.selections)
    computed = line_unit_price(db, m, selections)
    declared = getattr(line, "price", None)
    return PricedLine(
        menu_item_id=m.id,
        quantity=line.quantity,
        price=check_declared_price(declared, computed, trust_client=trust_client),
        notes=line.notes,
        selections=dump_selections(selections),
    )


def lines_total(lines: list[PricedLine]) -> Decimal:
    return money(sum((l.price * l.quantity for l in lines), Decimal("0")))


def advance_session_on_order(session: DiningSession | None):
    if session is not None and session.status in PRE_ORDER_STATUSES:
        session.status = SessionStatus.ORDERED


def create_order(db: Session, owner_id: str, lines: list[PricedLine], *,
                 session: DiningSession | None = None, table_id: str | None = None,
                 **fields) -> Order:
    """Persist an order and its lines in one commit under a fresh number."""
    if not lines:
        raise HTTPException(400, detail="Order must contain at least one item")
    session_id = session.id if session else None
    if session is not None and table_id is None:
        table_id = session.table_id

    def build(number: str) -> Order:
        o = Order(
            user_id=owner_id,
            order_number=number,
            status=OrderStatus.PENDING,
            total_amount=lines_total(lines),
            session_id=session_id,
            table_id=table_id,
            ordered_at=utcnow(),
            **fields,
        )
        db.add(o)
        db.flush()
        for l in lines:
            db.add(OrderItem(
                order_id=o.id,
                menu_item_id=l.menu_item_id,
                quantity=l.quantity,
                price=l.price,
                notes=l.notes,
                selections=l.selections,
            ))
        advance_session_on_order(session)
        return o

    return numbering.allocate(db, "ORD", owner_id, build)
