from sqlalchemy.exc import IntegrityError
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List

from tableside.db import get_db
from tableside.deps import Actor, require_actor, require_admin
from tableside.models.common import utcnow
from tableside.models.core import (
    BillSplit, DiningTable, DiningSession, Order, Payment, SessionOrigin, SessionStatus, OCCUPYING_STATUSES,
)
from tableside.schemas.tables import TableIn, TableUpdate, TablePosition, TableReorder, TableMove, TableMerge
from tableside.services import qr
from tableside.services.lookup import owned
from tableside.services.ordering import advance_session_on_order
from tableside.services.rows import row_from_table, row_from_session
from tableside.logging_config import get_logger

router = APIRouter(tags=["tables"])
log = get_logger(__name__)


def active_sessions_at(db: Session, table_id: str) -> list[DiningSession]:
    """Every open session holding the table, whichever flow opened it."""
    return (
        db.query(DiningSession)
        .filter(
            DiningSession.table_id == table_id,
            DiningSession.is_active.is_(True),
            DiningSession.status.in_(OCCUPYING_STATUSES),
        )
        .order_by(DiningSession.check_in_time.asc())
        .all()
    )


def ensure_table_free(db: Session, table_id: str, exclude_session_id: str | None = None):
    for s in active_sessions_at(db, table_id):
        if s.id != exclude_session_id:
            raise HTTPException(400, detail=f"Table is occupied by an active {s.origin.value} session")


def _number_taken(db: Session, owner_id: str, number: str, exclude_id: str | None = None) -> bool:
    q = db.query(DiningTable).filter(DiningTable.user_id == owner_id, DiningTable.number == number)
    if exclude_id:
        q = q.filter(DiningTable.id != exclude_id)
    return q.first() is not None


# ------------------------------------------------------------------
# tables
# ------------------------------------------------------------------
@router.get("/tables")
def list_tables(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
):
    q = db.query(DiningTable).filter(DiningTable.user_id == actor.owner_id)
    if not include_inactive:
        q = q.filter(DiningTable.is_active.is_(True))
    rows: List[DiningTable] = q.order_by(DiningTable.sort_order.asc(), DiningTable.number.asc()).all()

    out = []
    for t in rows:
        row = row_from_table(t)
        sessions = active_sessions_at(db, t.id)
        row["occupied"] = bool(sessions)
        row["active_sessions"] = [row_from_session(s) for s in sessions]
        out.append(row)
    return out


@router.post("/tables", status_code=201)
def create_table(body: TableIn, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    number = body.number.strip()
    if not number:
        raise HTTPException(400, detail="Table number is required")
    if _number_taken(db, actor.owner_id, number):
        raise HTTPException(400, detail="Table with this number already exists")

    max_sort = (
        db.query(func.max(DiningTable.sort_order))
        .filter(DiningTable.user_id == actor.owner_id)
        .scalar()
    )
    payload = body.model_dump()
    payload["number"] = number
    try:
        t = DiningTable(user_id=actor.owner_id, sort_order=(max_sort or 0) + 1, **payload)
        db.add(t)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(400, detail="Table with this number already exists")
    log.info("table created", extra={"owner_id": actor.owner_id, "table_id": t.id})
    return row_from_table(t)


# registered before /tables/{table_id} so "reorder" is not taken for an id
@router.put("/tables/reorder")
def reorder_tables(body: TableReorder, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    for entry in body.tables:
        t = owned(db, DiningTable, entry.id, actor.owner_id)
        t.sort_order = entry.sort_order
    db.commit()
    return {"ok": True, "updated": len(body.tables)}


@router.get("/tables/{table_id}")
def get_table(table_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    t = owned(db, DiningTable, table_id, actor.owner_id)
    row = row_from_table(t)
    sessions = active_sessions_at(db, t.id)
    row["occupied"] = bool(sessions)
    row["active_sessions"] = [row_from_session(s) for s in sessions]
    return row


@router.put("/tables/{table_id}")
def update_table(table_id: str, body: TableUpdate, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    t = owned(db, DiningTable, table_id, actor.owner_id)
    data = body.model_dump(exclude_unset=True)

    for key in ("number", "capacity", "is_active", "qr_code_active"):
        if key in data and data[key] is None:
            raise HTTPException(400, detail=f"{key} cannot be null")
    if "number" in data:
        data["number"] = data["number"].strip()
        if _number_taken(db, actor.owner_id, data["number"], exclude_id=t.id):
            raise HTTPException(400, detail="Table with this number already exists")

    for k, v in data.items():
        setattr(t, k, v)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(400, detail="Table with this number already exists")
    return row_from_table(t)


@router.put("/tables/{table_id}/position")
def move_table_on_grid(table_id: str, body: TablePosition, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    t = owned(db, DiningTable, table_id, actor.owner_id)
    t.grid_x = body.grid_x
    t.grid_y = body.grid_y
    if body.grid_width is not None:
        t.grid_width = body.grid_width
    if body.grid_height is not None:
        t.grid_height = body.grid_height
    db.commit()
    return row_from_table(t)


@router.delete("/tables/{table_id}")
def delete_table(table_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    t = owned(db, DiningTable, table_id, actor.owner_id)

    if db.query(Order.id).filter(Order.table_id == t.id).first():
        raise HTTPException(400, detail="Cannot delete a table that has orders")
    open_session = (
        db.query(DiningSession.id)
        .filter(DiningSession.table_id == t.id, DiningSession.is_active.is_(True))
        .first()
    )
    if open_session:
        raise HTTPException(400, detail="Cannot delete a table with an active session")

    # closed sessions keep their history without the table link
    db.query(DiningSession).filter(DiningSession.table_id == t.id).update({DiningSession.table_id: None})
    db.delete(t)
    db.commit()
    log.info("table deleted", extra={"owner_id": actor.owner_id, "table_id": table_id})
    return {"ok": True}


# ------------------------------------------------------------------
# QR codes
# ------------------------------------------------------------------
@router.get("/tables/{table_id}/qr")
def table_qr(table_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    t = owned(db, DiningTable, table_id, actor.owner_id)
    url = qr.table_join_url(t.id)
    t.qr_code = qr.qr_data_url(url)
    db.commit()
    return {"table_id": t.id, "url": url, "qr_code": t.qr_code, "qr_code_active": t.qr_code_active}


@router.post("/tables/{table_id}/qr-session", status_code=201)
def open_qr_session(table_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    t = owned(db, DiningTable, table_id, actor.owner_id)
    if not t.is_active:
        raise HTTPException(400, detail="Table is inactive")
    if not t.qr_code_active:
        raise HTTPException(400, detail="QR ordering is disabled for this table")

    now = utcnow()
    s = DiningSession(
        user_id=actor.owner_id,
        origin=SessionOrigin.QR,
        table_id=t.id,
        session_token=qr.new_session_token(),
        party_size=1,
        status=SessionStatus.SEATED,
        check_in_time=now,
        seated_time=now,
    )
    db.add(s)
    db.commit()
    url = qr.session_url(s.session_token)
    log.info("qr session opened by staff", extra={"owner_id": actor.owner_id, "session_id": s.id})
    return {"session": row_from_session(s), "url": url, "qr_code": qr.qr_data_url(url)}


@router.post("/admin/tables/move")
def move_session(body: TableMove, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    s = owned(db, DiningSession, body.session_id, actor.owner_id)
    if not s.is_active:
        raise HTTPException(400, detail="Session is not active")
    target = owned(db, DiningTable, body.target_table_id, actor.owner_id)
    if not target.is_active:
        raise HTTPException(400, detail="Target table is inactive")
    if target.id == s.table_id:
        raise HTTPException(400, detail="Session is already at this table")
    ensure_table_free(db, target.id, exclude_session_id=s.id)

    source_table_id = s.table_id
    s.table_id = target.id
    moved = (
        db.query(Order)
        .filter(Order.session_id == s.id)
        .update({Order.table_id: target.id}, synchronize_session=False)
    )
    db.commit()
    log.info(
        "session moved",
        extra={"owner_id": actor.owner_id, "session_id": s.id, "from": source_table_id, "to": target.id},
    )
    return {"session": row_from_session(s), "orders_moved": moved}


@router.post("/admin/tables/merge")
def merge_tables(body: TableMerge, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    """Fold the source table's party into the target table's session."""
    if body.source_table_id == body.target_table_id:
        raise HTTPException(400, detail="Source and target tables must differ")
    source_table = owned(db, DiningTable, body.source_table_id, actor.owner_id)
    target_table = owned(db, DiningTable, body.target_table_id, actor.owner_id)
    source_sessions = active_sessions_at(db, source_table.id)
    target_sessions = active_sessions_at(db, target_table.id)
    if not source_sessions or not target_sessions:
        raise HTTPException(404, detail="Active sessions not found for one or both tables")
    source, target = source_sessions[0], target_sessions[0]

    # money already taken against the source stays with it
    settled = (
        db.query(Payment.id).filter(Payment.session_id == source.id).first()
        or db.query(BillSplit.id).filter(BillSplit.session_id == source.id).first()
    )
    if settled:
        raise HTTPException(400, detail="Source session has payments or bill splits")

    moved = (
        db.query(Order)
        .filter(Order.session_id == source.id)
        .update({Order.session_id: target.id, Order.table_id: target_table.id}, synchronize_session=False)
    )
    if moved:
        advance_session_on_order(target)
    source.status = SessionStatus.COMPLETED
    source.is_active = False
    source.check_out_time = utcnow()
    source.merged_into_id = target.id
    db.commit()
    log.info(
        "tables merged",
        extra={"owner_id": actor.owner_id, "source_session": source.id, "target_session": target.id, "orders": moved},
    )
    return {"success": True, "session": row_from_session(target), "merged_session_id": source.id, "orders_moved": moved}
