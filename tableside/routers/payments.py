from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime, time, timezone
from decimal import Decimal
import json

from tableside.db import get_db
from tableside.deps import Actor, require_actor
from tableside.models.core import Payment, PaymentMethod
from tableside.schemas.payments import PaymentUpdate
from tableside.services.billing import money, as_float, extra_charges_amount
from tableside.services.lookup import owned
from tableside.services.rows import row_from_payment
from tableside.util.audit import audit
from tableside.logging_config import get_logger

router = APIRouter(prefix="/payments", tags=["payments"])
log = get_logger(__name__)

# fields a cashier may correct after the fact; line items are never re-snapshotted
_AMOUNT_FIELDS = ("subtotal_amount", "discount_amount", "extra_charges_amount", "final_amount",
                  "received_amount", "change_amount")


def _snapshot(p: Payment) -> dict:
    out = {k: str(getattr(p, k)) if getattr(p, k) is not None else None for k in _AMOUNT_FIELDS}
    out["payment_method"] = p.payment_method.value
    out["notes"] = p.notes
    return out


def apply_correction(db: Session, actor: Actor, p: Payment, body: PaymentUpdate):
    """Edit the settlement fields of an existing payment and commit."""
    data = body.model_dump(exclude_unset=True)
    before = _snapshot(p)

    if "payment_method" in data:
        if data["payment_method"] is None:
            raise HTTPException(400, detail="paymentMethod cannot be null")
        p.payment_method = PaymentMethod(data["payment_method"])
    if "notes" in data:
        p.notes = data["notes"]

    subtotal = data.get("subtotal_amount", data.get("total_amount"))
    if subtotal is not None:
        p.subtotal_amount = money(subtotal)
    if data.get("discount_amount") is not None:
        p.discount_amount = money(data["discount_amount"])
    if "extra_charges" in data:
        charges = [c.model_dump(by_alias=True) for c in body.extra_charges or []]
        p.extra_charges = json.dumps(charges) if charges else None
    amounts_changed = subtotal is not None or "discount_amount" in data or "extra_charges" in data
    if amounts_changed:
        charges = json.loads(p.extra_charges) if p.extra_charges else []
        p.extra_charges_amount = extra_charges_amount(charges, p.subtotal_amount)

    if data.get("final_amount") is not None:
        p.final_amount = money(data["final_amount"])
    elif amounts_changed:
        p.final_amount = money(Decimal(p.subtotal_amount) + Decimal(p.extra_charges_amount) - Decimal(p.discount_amount))
    if p.final_amount < 0:
        raise HTTPException(400, detail="Discount exceeds the bill")

    if "received_amount" in data:
        p.received_amount = money(data["received_amount"]) if data["received_amount"] is not None else None
    if "change_amount" in data:
        p.change_amount = money(data["change_amount"]) if data["change_amount"] is not None else None
    elif p.payment_method == PaymentMethod.CASH and p.received_amount is not None:
        p.change_amount = money(Decimal(p.received_amount) - Decimal(p.final_amount))
    if p.change_amount is not None and p.change_amount < 0:
        raise HTTPException(400, detail="Received amount is less than the final amount")

    audit(db, actor.user_id, "payment", p.id, "correct", before=before, after=_snapshot(p))
    db.commit()
    log.info("payment corrected", extra={"payment_id": p.id, "fields": sorted(data)})


@router.get("")
def list_payments(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    method: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
):
    q = db.query(Payment).filter(Payment.user_id == actor.owner_id)
    if session_id:
        q = q.filter(Payment.session_id == session_id)
    if method:
        try:
            q = q.filter(Payment.payment_method == PaymentMethod(method))
        except ValueError:
            raise HTTPException(400, detail=f"invalid payment method: {method}")
    rows = q.order_by(Payment.created_at.desc(), Payment.payment_number.desc()).all()
    return [row_from_payment(db, p, with_items=False) for p in rows]


@router.get("/stats")
def payment_stats(
    today_only: bool = Query(default=False, alias="today"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
):
    q = db.query(Payment.payment_method, func.count(Payment.id), func.coalesce(func.sum(Payment.final_amount), 0)) \
        .filter(Payment.user_id == actor.owner_id)
    if today_only:
        start = datetime.combine(datetime.now(timezone.utc).date(), time.min, tzinfo=timezone.utc)
        q = q.filter(Payment.created_at >= start)

    by_method = {m.value: {"count": 0, "revenue": 0.0} for m in PaymentMethod}
    count = 0
    revenue = Decimal("0")
    for method, n, total in q.group_by(Payment.payment_method).all():
        total = money(total)
        by_method[method.value] = {"count": n, "revenue": as_float(total)}
        count += n
        revenue += total

    return {
        "total_revenue": as_float(money(revenue)),
        "payment_count": count,
        "average_payment": as_float(money(revenue / count)) if count else 0.0,
        "by_method": by_method,
    }


@router.get("/{payment_id}")
def get_payment(payment_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    p = owned(db, Payment, payment_id, actor.owner_id)
    # receipt view: option ids resolved against the current menu
    return row_from_payment(db, p, resolve=True)


@router.put("/{payment_id}")
def update_payment(payment_id: str, body: PaymentUpdate, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    p = owned(db, Payment, payment_id, actor.owner_id, lock=True)
    apply_correction(db, actor, p, body)
    return row_from_payment(db, p, resolve=True)
