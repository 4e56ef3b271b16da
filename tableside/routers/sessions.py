from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from decimal import Decimal

from tableside.db import get_db
from tableside.deps import Actor, require_actor
from tableside.models.common import utcnow
from tableside.models.core import (
    DiningSession, DiningTable, Order, OrderItem, OrderStatus, MenuItem, Payment,
    SessionOrigin, SessionStatus, BillSplit,
)
from tableside.routers.tables import ensure_table_free
from tableside.schemas.sessions import SessionIn, SessionUpdate, SeatIn
from tableside.schemas.payments import PaymentIn, PaymentUpdate
from tableside.services.billing import money, as_float, session_total, extra_charges_amount
from tableside.services.lookup import owned
from tableside.services.rows import row_from_session, row_from_order, row_from_payment, row_from_table, category_names
from tableside.services.settlement import record_session_payment
from tableside.routers.payments import apply_correction
from tableside.logging_config import get_logger

router = APIRouter(prefix="/sessions", tags=["sessions"])
log = get_logger(__name__)


def _parse_status(value: str) -> SessionStatus:
    try:
        return SessionStatus(value)
    except ValueError:
        raise HTTPException(400, detail=f"invalid status: {value}")


def _complete(s: DiningSession):
    s.status = SessionStatus.COMPLETED
    s.check_out_time = utcnow()
    s.is_active = False


def _detail(db: Session, s: DiningSession) -> dict:
    row = row_from_session(s)
    table = db.get(DiningTable, s.table_id) if s.table_id else None
    row["table"] = row_from_table(table) if table else None
    orders = db.query(Order).filter(Order.session_id == s.id).order_by(Order.created_at.asc()).all()
    row["orders"] = [row_from_order(db, o) for o in orders]
    row["total_amount"] = as_float(money(session_total(db, s.id)))
    return row


def _latest_payment(db: Session, s: DiningSession) -> Payment | None:
    return (
        db.query(Payment)
        .filter(Payment.session_id == s.id)
        .order_by(Payment.created_at.desc(), Payment.payment_number.desc())
        .first()
    )


@router.get("")
def list_sessions(
    status: Optional[str] = None,
    origin: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
):
    q = db.query(DiningSession).filter(DiningSession.user_id == actor.owner_id)
    if status:
        q = q.filter(DiningSession.status == _parse_status(status))
    if origin:
        try:
            q = q.filter(DiningSession.origin == SessionOrigin(origin))
        except ValueError:
            raise HTTPException(400, detail=f"invalid origin: {origin}")
    rows = q.order_by(DiningSession.check_in_time.desc()).all()
    return [row_from_session(s) for s in rows]


@router.post("", status_code=201)
def create_session(body: SessionIn, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    now = utcnow()
    s = DiningSession(
        user_id=actor.owner_id,
        origin=SessionOrigin.STAFF,
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
        customer_email=body.customer_email,
        party_size=body.party_size,
        notes=body.notes,
        status=SessionStatus.WAITING,
        check_in_time=now,
    )
    if body.table_id:
        t = owned(db, DiningTable, body.table_id, actor.owner_id)
        if not t.is_active:
            raise HTTPException(400, detail="Table is inactive")
        ensure_table_free(db, t.id)
        s.table_id = t.id
        s.status = SessionStatus.SEATED
        s.seated_time = now
    db.add(s)
    db.commit()
    log.info("session opened", extra={"owner_id": actor.owner_id, "session_id": s.id, "table_id": s.table_id})
    return row_from_session(s)


@router.get("/{session_id}")
def get_session(session_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return _detail(db, owned(db, DiningSession, session_id, actor.owner_id))


@router.put("/{session_id}")
def update_session(session_id: str, body: SessionUpdate, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    s = owned(db, DiningSession, session_id, actor.owner_id)
    data = body.model_dump(exclude_unset=True)

    if "party_size" in data and data["party_size"] is None:
        raise HTTPException(400, detail="party_size cannot be null")
    status = data.pop("status", None)
    for k, v in data.items():
        setattr(s, k, v)
    if status is not None:
        new_status = _parse_status(status)
        # no ordering is enforced between session states
        if new_status == SessionStatus.COMPLETED:
            _complete(s)
        else:
            s.status = new_status
            if new_status == SessionStatus.SEATED and s.seated_time is None:
                s.seated_time = utcnow()
    db.commit()
    return row_from_session(s)


@router.put("/{session_id}/seat")
def seat_session(session_id: str, body: SeatIn, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    s = owned(db, DiningSession, session_id, actor.owner_id)
    if not s.is_active:
        raise HTTPException(400, detail="Session is not active")
    t = owned(db, DiningTable, body.table_id, actor.owner_id)
    if not t.is_active:
        raise HTTPException(400, detail="Table is inactive")
    ensure_table_free(db, t.id, exclude_session_id=s.id)

    s.table_id = t.id
    s.seated_time = utcnow()
    if s.status == SessionStatus.WAITING:
        s.status = SessionStatus.SEATED
    db.commit()
    log.info("session seated", extra={"session_id": s.id, "table_id": t.id})
    return row_from_session(s)


@router.delete("/{session_id}")
def delete_session(session_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    s = owned(db, DiningSession, session_id, actor.owner_id)
    if db.query(Order.id).filter(Order.session_id == s.id).first():
        raise HTTPException(400, detail="Cannot delete a session that has orders")
    if db.query(Payment.id).filter(Payment.session_id == s.id).first():
        raise HTTPException(400, detail="Cannot delete a session that has payments")
    db.query(BillSplit).filter(BillSplit.session_id == s.id).delete(synchronize_session=False)
    db.delete(s)
    db.commit()
    return {"ok": True}


# ---------- checkout ----------

@router.get("/{session_id}/checkout")
def checkout_summary(session_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    s = owned(db, DiningSession, session_id, actor.owner_id)
    orders = (
        db.query(Order)
        .filter(Order.session_id == s.id, Order.status != OrderStatus.CANCELLED)
        .order_by(Order.created_at.asc())
        .all()
    )
    cat_names = category_names(db, actor.owner_id)

    groups: dict[str, dict] = {}
    subtotal = Decimal("0")
    item_count = 0
    for o in orders:
        rows = (
            db.query(OrderItem, MenuItem)
            .outerjoin(MenuItem, MenuItem.id == OrderItem.menu_item_id)
            .filter(OrderItem.order_id == o.id)
            .all()
        )
        for it, m in rows:
            cat = cat_names.get(m.category_id, "Other") if m else "Other"
            line_total = Decimal(it.price) * it.quantity
            g = groups.setdefault(cat, {"category": cat, "items": [], "subtotal": Decimal("0")})
            g["items"].append({
                "order_id": o.id,
                "order_number": o.order_number,
                "order_item_id": it.id,
                "menu_item_name": m.name if m else None,
                "quantity": it.quantity,
                "price": as_float(it.price),
                "total": as_float(money(line_total)),
                "notes": it.notes,
            })
            g["subtotal"] += line_total
            subtotal += line_total
            item_count += it.quantity

    payments = (
        db.query(Payment)
        .filter(Payment.session_id == s.id)
        .order_by(Payment.created_at.asc())
        .all()
    )
    paid_total = sum((Decimal(p.final_amount) for p in payments), Decimal("0"))
    for g in groups.values():
        g["subtotal"] = as_float(money(g["subtotal"]))

    return {
        "session": row_from_session(s),
        "categories": list(groups.values()),
        "orders": [row_from_order(db, o, with_items=False) for o in orders],
        "subtotal": as_float(money(subtotal)),
        "item_count": item_count,
        "payments": [row_from_payment(db, p, with_items=False) for p in payments],
        "paid_total": as_float(money(paid_total)),
        "balance": as_float(money(subtotal - paid_total)),
    }


@router.put("/{session_id}/checkout")
def finalize_checkout(session_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    s = owned(db, DiningSession, session_id, actor.owner_id, lock=True)
    if s.status == SessionStatus.COMPLETED:
        raise HTTPException(400, detail="Session already checked out")
    _complete(s)
    db.commit()
    log.info("session checked out", extra={"owner_id": actor.owner_id, "session_id": s.id})
    return row_from_session(s)


# ---------- payment ----------

def _payment_response(db: Session, p: Payment) -> dict:
    row = row_from_payment(db, p)
    return {"success": True, "id": p.id, "paymentId": p.id, "payment_id": p.id, "data": row}


def _create_payment(db: Session, actor: Actor, s: DiningSession, body: PaymentIn) -> Payment:
    subtotal = money(body.total_amount) if body.total_amount is not None else money(session_total(db, s.id))
    discount = money(body.discount_amount)
    charges = [c.model_dump(by_alias=True) for c in body.extra_charges]
    extra = extra_charges_amount(charges, subtotal)
    final = money(subtotal + extra - discount)
    if final < 0:
        raise HTTPException(400, detail="Discount exceeds the bill")
    if body.final_amount is not None and abs(money(body.final_amount) - final) > Decimal("0.01"):
        raise HTTPException(400, detail=f"finalAmount {money(body.final_amount)} does not match computed {final}")

    received = money(body.received_amount) if body.received_amount is not None else None
    change = money(body.change_amount) if body.change_amount is not None else None
    if body.payment_method == "CASH" and received is not None:
        if received < final:
            raise HTTPException(400, detail="Received amount is less than the final amount")
        if change is None:
            change = money(received - final)

    p = record_session_payment(
        db, actor.owner_id, s,
        method=body.payment_method, subtotal=subtotal, discount=discount, charges=charges,
        final=final, received=received, change=change, notes=body.notes,
    )
    log.info(
        "payment recorded",
        extra={"owner_id": actor.owner_id, "session_id": s.id, "payment_id": p.id,
               "payment_number": p.payment_number, "final": str(final)},
    )
    return p


@router.post("/{session_id}/payment", status_code=201)
def create_session_payment(session_id: str, body: PaymentIn, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    s = owned(db, DiningSession, session_id, actor.owner_id)
    # the session stays open: guests may keep ordering after a partial bill
    return _payment_response(db, _create_payment(db, actor, s, body))


@router.get("/{session_id}/payment")
def get_session_payment(session_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    s = owned(db, DiningSession, session_id, actor.owner_id)
    p = _latest_payment(db, s)
    if not p:
        raise HTTPException(404, detail="No payment found for this session")
    return _payment_response(db, p)


@router.put("/{session_id}/payment")
def upsert_session_payment(session_id: str, body: PaymentUpdate, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    s = owned(db, DiningSession, session_id, actor.owner_id)
    p = _latest_payment(db, s)
    if p is None:
        data = body.model_dump(exclude_unset=True, exclude_none=True)
        data.pop("subtotal_amount", None)
        if body.subtotal_amount is not None and body.total_amount is None:
            data["total_amount"] = body.subtotal_amount
        created = _create_payment(db, actor, s, PaymentIn(**data))
        return _payment_response(db, created)
    apply_correction(db, actor, p, body)
    return _payment_response(db, p)
