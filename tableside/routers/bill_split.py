from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from decimal import Decimal

from tableside.db import get_db
from tableside.deps import Actor, require_actor
from tableside.models.core import (
    BillSplit, DiningSession, Order, OrderStatus, Payment, SplitStatus, SplitType,
)
from tableside.schemas.payments import BillSplitIn, SplitPaymentIn
from tableside.services.billing import money, as_float, session_total, splits_match_total, split_status
from tableside.services.lookup import owned, owned_split
from tableside.services.rows import row_from_split, row_from_order, row_from_payment
from tableside.services.settlement import record_split_payment
from tableside.logging_config import get_logger

router = APIRouter(prefix="/bill-splits", tags=["bill-splits"])
log = get_logger(__name__)


@router.post("", status_code=201)
def create_splits(body: BillSplitIn, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    session_id = body.qr_session_id or body.session_id
    if not session_id:
        raise HTTPException(400, detail="qrSessionId or sessionId is required")
    s = owned(db, DiningSession, session_id, actor.owner_id)
    if body.order_id:
        o = owned(db, Order, body.order_id, actor.owner_id)
        if o.session_id != s.id:
            raise HTTPException(400, detail="Order does not belong to this session")

    amounts = [money(p.amount) for p in body.splits]
    if any(a <= 0 for a in amounts):
        raise HTTPException(400, detail="Every split amount must be greater than 0")
    total = session_total(db, s.id)
    if total <= 0:
        raise HTTPException(400, detail="Session has nothing to split")
    if not splits_match_total(amounts, total):
        log.warning("split total mismatch", extra={"session_id": s.id, "total": str(total), "sum": str(sum(amounts))})
        raise HTTPException(
            400, detail=f"Split amounts ({money(sum(amounts))}) must equal the session total ({money(total)})"
        )

    rows = []
    for portion, amount in zip(body.splits, amounts):
        split = BillSplit(
            session_id=s.id,
            order_id=body.order_id,
            split_type=SplitType(body.split_type),
            label=portion.label,
            total_amount=money(amount),
            paid_amount=Decimal("0"),
            status=SplitStatus.PENDING,
        )
        db.add(split)
        rows.append(split)
    db.commit()
    log.info("bill split created", extra={"session_id": s.id, "portions": len(rows), "total": str(total)})
    return {"success": True, "session_id": s.id, "splits": [row_from_split(r) for r in rows]}


@router.get("")
def list_splits(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    qr_session_id: Optional[str] = Query(default=None, alias="qrSessionId"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
):
    s = owned(db, DiningSession, session_id or qr_session_id, actor.owner_id)
    splits = (
        db.query(BillSplit)
        .filter(BillSplit.session_id == s.id)
        .order_by(BillSplit.created_at.asc(), BillSplit.id.asc())
        .all()
    )
    orders = (
        db.query(Order)
        .filter(Order.session_id == s.id, Order.status != OrderStatus.CANCELLED)
        .order_by(Order.created_at.asc())
        .all()
    )
    return {
        "session_id": s.id,
        "session_total": as_float(money(session_total(db, s.id))),
        "splits": [row_from_split(x) for x in splits],
        "orders": [row_from_order(db, o) for o in orders],
    }


@router.post("/{split_id}/payment")
def pay_split(split_id: str, body: SplitPaymentIn, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    amount = money(body.payment_amount)
    if amount <= 0:
        raise HTTPException(400, detail="Payment amount must be greater than 0")

    split = owned_split(db, split_id, actor.owner_id, lock=True)
    s = db.get(DiningSession, split.session_id)

    def apply_to_split():
        # re-read under lock on every attempt; a rolled back attempt loses the lock
        locked = owned_split(db, split_id, actor.owner_id, lock=True)
        remaining = Decimal(locked.total_amount) - Decimal(locked.paid_amount)
        if amount > remaining:
            log.warning("split overpay rejected", extra={"split_id": split_id, "amount": str(amount), "remaining": str(remaining)})
            raise HTTPException(400, detail=f"Payment amount ({amount}) exceeds remaining amount ({money(remaining)})")
        locked.paid_amount = money(Decimal(locked.paid_amount) + amount)
        locked.status = split_status(locked.paid_amount, locked.total_amount)

    p = record_split_payment(
        db, actor.owner_id, s, split,
        amount=amount, method=body.payment_method, notes=body.notes, apply_to_split=apply_to_split,
    )
    split = db.get(BillSplit, split_id)
    log.info("split paid", extra={"split_id": split_id, "payment_id": p.id, "amount": str(amount), "status": split.status.value})
    return {
        "success": True,
        "bill_split": row_from_split(split),
        "payment": row_from_payment(db, p),
        "remaining_amount": as_float(Decimal(split.total_amount) - Decimal(split.paid_amount)),
    }


@router.get("/{split_id}/payment")
def split_payments(split_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    split = owned_split(db, split_id, actor.owner_id)
    payments = (
        db.query(Payment)
        .filter(Payment.bill_split_id == split.id)
        .order_by(Payment.created_at.desc())
        .all()
    )
    return {
        "bill_split": row_from_split(split),
        "payments": [row_from_payment(db, p) for p in payments],
        "remaining_amount": as_float(Decimal(split.total_amount) - Decimal(split.paid_amount)),
    }
