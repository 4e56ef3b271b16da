from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from decimal import Decimal

from tableside.db import get_db
from tableside.deps import Actor, require_actor
from tableside.models.core import (
    Order, OrderItem, OrderStatus, DiningTable, DiningSession,
)
from tableside.schemas.orders import (
    OrderIn, OrderUpdate, OrderStatusIn, OrderModify, CancelIn, OrderItemIn, OrderItemUpdate,
)
from tableside.services import order_flow
from tableside.services.billing import recompute_order_total
from tableside.services.lookup import owned
from tableside.services.ordering import price_line, create_order, menu_item_for
from tableside.services.pricing import parse_selections, dump_selections, line_unit_price, check_declared_price
from tableside.services.rows import row_from_order, row_from_order_item
from tableside.util.audit import audit
from tableside.logging_config import get_logger

router = APIRouter(prefix="/orders", tags=["orders"])
log = get_logger(__name__)


def _locked_order(db: Session, actor: Actor, order_id: str) -> Order:
    return owned(db, Order, order_id, actor.owner_id, lock=True)


def _order_item(db: Session, order: Order, item_id: str) -> OrderItem:
    it = db.get(OrderItem, item_id)
    if not it or it.order_id != order.id:
        raise HTTPException(404, detail="Order item not found")
    return it


def transition(db: Session, actor: Actor, order: Order, action: str, user_id: str | None = None) -> dict:
    """Apply one kitchen-flow action and commit; shared by the dashboard."""
    try:
        previous = order_flow.apply_action(order, action, actor.user_id, user_id)
    except HTTPException:
        log.warning(
            "order transition rejected",
            extra={"order_id": order.id, "action": action, "status": order.status.value},
        )
        raise
    audit(db, actor.user_id, "order", order.id, action,
          before={"status": previous.value}, after={"status": order.status.value})
    db.commit()
    log.info(
        "order transitioned",
        extra={"order_id": order.id, "action": action, "from": previous.value, "to": order.status.value},
    )
    return row_from_order(db, order)


# ---------- orders ----------

@router.get("")
def list_orders(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    table_id: Optional[str] = Query(default=None, alias="tableId"),
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
):
    q = db.query(Order).filter(Order.user_id == actor.owner_id)
    if session_id:
        q = q.filter(Order.session_id == session_id)
    if table_id:
        q = q.filter(Order.table_id == table_id)
    if status:
        try:
            q = q.filter(Order.status == OrderStatus(status))
        except ValueError:
            raise HTTPException(400, detail="invalid status")
    rows = q.order_by(Order.created_at.desc(), Order.order_number.desc()).all()
    return [row_from_order(db, o) for o in rows]


@router.post("", status_code=201)
def place_order(body: OrderIn, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    if not body.items:
        raise HTTPException(400, detail="Order must contain at least one item")
    if body.total_amount is not None and body.total_amount <= 0:
        raise HTTPException(400, detail="Total amount must be greater than 0")

    session = None
    if body.session_id:
        session = owned(db, DiningSession, body.session_id, actor.owner_id)
        if not session.is_active:
            raise HTTPException(400, detail="Session is not active")
    table_id = None
    if body.table_id:
        table_id = owned(db, DiningTable, body.table_id, actor.owner_id).id

    lines = [price_line(db, actor.owner_id, l) for l in body.items]
    o = create_order(
        db, actor.owner_id, lines,
        session=session,
        table_id=table_id,
        customer_name=body.customer_name or (session.customer_name if session else None),
        customer_phone=body.customer_phone or (session.customer_phone if session else None),
        customer_email=body.customer_email or (session.customer_email if session else None),
        notes=body.notes,
    )
    log.info(
        "order created",
        extra={"owner_id": actor.owner_id, "order_id": o.id, "order_number": o.order_number,
               "total": str(o.total_amount)},
    )
    return row_from_order(db, o)


@router.get("/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return row_from_order(db, owned(db, Order, order_id, actor.owner_id))


@router.put("/{order_id}")
def update_order(order_id: str, body: OrderUpdate, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    o = owned(db, Order, order_id, actor.owner_id)
    data = body.model_dump(exclude_unset=True)
    if data.get("table_id") is not None:
        owned(db, DiningTable, data["table_id"], actor.owner_id)
    for k, v in data.items():
        setattr(o, k, v)
    db.commit()
    return row_from_order(db, o)


@router.put("/{order_id}/status")
def set_order_status(order_id: str, body: OrderStatusIn, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    o = _locked_order(db, actor, order_id)
    return transition(db, actor, o, order_flow.action_for_status(body.status))


@router.patch("/{order_id}")
def modify_order(order_id: str, body: OrderModify, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    o = _locked_order(db, actor, order_id)
    order_flow.ensure_modifiable(o)

    existing = {
        it.id: it for it in db.query(OrderItem).filter(OrderItem.order_id == o.id).all()
    }
    to_delete: list[OrderItem] = []
    to_update: list[tuple[OrderItem, dict]] = []
    to_insert: list[OrderItem] = []

    # validate everything before touching a row
    for line in body.items:
        if line.id is not None and line.id not in existing:
            raise HTTPException(400, detail=f"Item {line.id} is not part of this order")
        if line.quantity <= 0:
            if line.id is not None:
                to_delete.append(existing[line.id])
            continue

        m = menu_item_for(db, actor.owner_id, line.menu_item_id)
        selections = parse_selections(line.selections)
        stored = dump_selections(selections)
        if line.id is not None:
            it = existing[line.id]
            if it.menu_item_id == m.id and parse_selections(it.selections) == selections:
                price = Decimal(it.price)  # unchanged line keeps its snapshot
            else:
                price = line_unit_price(db, m, selections)
            to_update.append((it, {
                "menu_item_id": m.id, "quantity": line.quantity, "price": price,
                "notes": line.notes, "selections": stored,
            }))
        else:
            to_insert.append(OrderItem(
                order_id=o.id, menu_item_id=m.id, quantity=line.quantity,
                price=line_unit_price(db, m, selections), notes=line.notes, selections=stored,
            ))

    for it in to_delete:
        db.delete(it)
    for it, values in to_update:
        for k, v in values.items():
            setattr(it, k, v)
    for it in to_insert:
        db.add(it)
    if "notes" in body.model_fields_set:
        o.notes = body.notes
    recompute_order_total(db, o)
    db.commit()
    log.info(
        "order modified",
        extra={"order_id": o.id, "deleted": len(to_delete), "updated": len(to_update),
               "inserted": len(to_insert), "total": str(o.total_amount)},
    )
    return row_from_order(db, o)


@router.post("/{order_id}/cancel")
def cancel_order(order_id: str, body: CancelIn, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    o = _locked_order(db, actor, order_id)
    previous = order_flow.cancel(o, body.reason)
    if body.notes is not None:
        o.notes = body.notes
    audit(db, actor.user_id, "order", o.id, "cancel",
          before={"status": previous.value}, after={"status": o.status.value}, reason=o.cancellation_reason)
    db.commit()
    log.info("order cancelled", extra={"order_id": o.id, "from": previous.value})
    return row_from_order(db, o)


@router.delete("/{order_id}")
def delete_order(order_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    o = _locked_order(db, actor, order_id)
    if o.status not in order_flow.DELETABLE:
        raise HTTPException(400, detail=f"Cannot delete an order in status {o.status.value}")
    db.query(OrderItem).filter(OrderItem.order_id == o.id).delete(synchronize_session=False)
    db.delete(o)
    db.commit()
    log.info("order deleted", extra={"order_id": order_id})
    return {"ok": True}


# ---------- order items ----------

@router.get("/{order_id}/items")
def list_order_items(order_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return row_from_order(db, owned(db, Order, order_id, actor.owner_id))["items"]


@router.post("/{order_id}/items", status_code=201)
def add_order_item(order_id: str, body: OrderItemIn, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    o = _locked_order(db, actor, order_id)
    order_flow.ensure_modifiable(o)
    line = price_line(db, actor.owner_id, body)
    it = OrderItem(
        order_id=o.id, menu_item_id=line.menu_item_id, quantity=line.quantity,
        price=line.price, notes=line.notes, selections=line.selections,
    )
    db.add(it)
    recompute_order_total(db, o)
    db.commit()
    return {"item": row_from_order_item(db, it), "order": row_from_order(db, o)}


@router.get("/{order_id}/items/{item_id}")
def get_order_item(order_id: str, item_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    o = owned(db, Order, order_id, actor.owner_id)
    return row_from_order_item(db, _order_item(db, o, item_id))


@router.put("/{order_id}/items/{item_id}")
def update_order_item(order_id: str, item_id: str, body: OrderItemUpdate,
                      db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    o = _locked_order(db, actor, order_id)
    order_flow.ensure_modifiable(o)
    it = _order_item(db, o, item_id)
    data = body.model_dump(exclude_unset=True)

    if "quantity" in data:
        if data["quantity"] is None:
            raise HTTPException(400, detail="quantity cannot be null")
        it.quantity = data["quantity"]
    if "notes" in data:
        it.notes = data["notes"]
    if "selections" in data or data.get("price") is not None:
        selections = parse_selections(data["selections"]) if "selections" in data else parse_selections(it.selections)
        computed = line_unit_price(db, menu_item_for(db, actor.owner_id, it.menu_item_id), selections)
        it.selections = dump_selections(selections)
        it.price = check_declared_price(data.get("price"), computed)

    recompute_order_total(db, o)
    db.commit()
    return {"item": row_from_order_item(db, it), "order": row_from_order(db, o)}


@router.delete("/{order_id}/items/{item_id}")
def delete_order_item(order_id: str, item_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    o = _locked_order(db, actor, order_id)
    order_flow.ensure_modifiable(o)
    it = _order_item(db, o, item_id)
    db.delete(it)
    recompute_order_total(db, o)
    db.commit()
    return {"ok": True, "order": row_from_order(db, o)}
