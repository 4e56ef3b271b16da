from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tableside.db import get_db
from tableside.deps import Actor, require_admin
from tableside.models.common import utcnow
from tableside.models.core import (
    DiningTable, DiningSession, SessionOrigin, SessionStatus, User, Order, OrderStatus,
)
from tableside.schemas.tables import QRSessionIn, QROrderIn
from tableside.services import qr
from tableside.services.lookup import owned
from tableside.services.menu_tree import menu_tree
from tableside.services.ordering import price_line, create_order
from tableside.services.rows import row_from_session, row_from_order
from tableside.logging_config import get_logger

router = APIRouter(tags=["qr"])
log = get_logger(__name__)


def _session_by_token(db: Session, token: str | None) -> DiningSession:
    if not token:
        raise HTTPException(400, detail="Session token is required")
    s = (
        db.query(DiningSession)
        .filter(DiningSession.session_token == token, DiningSession.origin == SessionOrigin.QR)
        .first()
    )
    if not s or not s.is_active or s.status == SessionStatus.COMPLETED:
        raise HTTPException(404, detail="Invalid or expired session")
    return s


def _summary(db: Session, s: DiningSession) -> dict:
    table = db.get(DiningTable, s.table_id) if s.table_id else None
    owner = db.get(User, s.user_id)
    return {
        "session_token": s.session_token,
        "session_id": s.id,
        "table_number": table.number if table else None,
        "table_name": table.name if table else None,
        "restaurant_name": owner.restaurant_name if owner else None,
        "customer_name": s.customer_name,
        "guest_count": s.party_size,
        "status": s.status.value,
        "started_at": s.check_in_time.isoformat() if s.check_in_time else None,
        "is_active": s.is_active,
    }


# ------------------------------------------------------------------
# public, token-based
# ------------------------------------------------------------------
@router.post("/qr/session", status_code=201)
def start_qr_session(body: QRSessionIn, db: Session = Depends(get_db)):
    t = db.get(DiningTable, body.table_id)
    if not t or not t.is_active:
        raise HTTPException(404, detail="Table not found or inactive")
    if not t.qr_code_active:
        raise HTTPException(403, detail="QR code ordering is currently disabled for this table")

    now = utcnow()
    s = DiningSession(
        user_id=t.user_id,
        origin=SessionOrigin.QR,
        table_id=t.id,
        session_token=qr.new_session_token(),
        customer_name=body.customer_name,
        party_size=body.guest_count,
        status=SessionStatus.SEATED,
        check_in_time=now,
        seated_time=now,
    )
    db.add(s)
    db.commit()
    log.info("qr session started", extra={"owner_id": t.user_id, "session_id": s.id, "table_id": t.id})
    return _summary(db, s)


@router.get("/qr/session")
def get_qr_session(token: str | None = None, db: Session = Depends(get_db)):
    return _summary(db, _session_by_token(db, token))


@router.get("/qr/menu")
def get_qr_menu(token: str | None = None, db: Session = Depends(get_db)):
    s = _session_by_token(db, token)
    return {"session": _summary(db, s), "categories": menu_tree(db, s.user_id, public=True)}


@router.post("/qr/orders", status_code=201)
def place_qr_order(body: QROrderIn, db: Session = Depends(get_db)):
    s = _session_by_token(db, body.session_token)
    if not body.items:
        raise HTTPException(400, detail="Order must contain at least one item")
    # customers never set prices
    lines = [price_line(db, s.user_id, l, trust_client=False, require_available=True) for l in body.items]
    o = create_order(
        db, s.user_id, lines,
        session=s,
        customer_name=body.customer_name or s.customer_name,
        notes=body.notes,
    )
    log.info("qr order placed", extra={"owner_id": s.user_id, "order_id": o.id, "order_number": o.order_number})
    return row_from_order(db, o)


@router.get("/qr/orders")
def list_qr_orders(token: str | None = None, db: Session = Depends(get_db)):
    s = _session_by_token(db, token)
    rows = (
        db.query(Order)
        .filter(Order.session_id == s.id, Order.status != OrderStatus.CANCELLED)
        .order_by(Order.created_at.asc())
        .all()
    )
    return [row_from_order(db, o) for o in rows]


# ------------------------------------------------------------------
# admin
# ------------------------------------------------------------------
@router.get("/admin/qr-sessions")
def list_qr_sessions(db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    rows = (
        db.query(DiningSession)
        .filter(
            DiningSession.user_id == actor.owner_id,
            DiningSession.origin == SessionOrigin.QR,
            DiningSession.is_active.is_(True),
        )
        .order_by(DiningSession.check_in_time.desc())
        .all()
    )
    tables = {t.id: t for t in db.query(DiningTable).filter(DiningTable.user_id == actor.owner_id).all()}
    out = []
    for s in rows:
        row = row_from_session(s)
        t = tables.get(s.table_id)
        row["table_number"] = t.number if t else None
        row["order_count"] = db.query(Order).filter(Order.session_id == s.id).count()
        out.append(row)
    return out


@router.post("/admin/qr-sessions/{session_id}/end")
def end_qr_session(session_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    s = owned(db, DiningSession, session_id, actor.owner_id)
    if s.origin != SessionOrigin.QR:
        raise HTTPException(400, detail="Not a QR session")
    if not s.is_active:
        raise HTTPException(400, detail="Session already ended")
    s.is_active = False
    s.status = SessionStatus.COMPLETED
    s.check_out_time = utcnow()
    db.commit()
    log.info("qr session ended", extra={"owner_id": actor.owner_id, "session_id": s.id})
    return row_from_session(s)
