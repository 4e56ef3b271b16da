from typing import TypeVar
from fastapi import HTTPException
from sqlalchemy.orm import Session
from tableside.models.core import (
    DiningTable, Category, Department, MenuItem, Selection, DiningSession, Order, Payment, BillSplit,
)

M = TypeVar("M")

_LABELS = {
    DiningTable: "Table",
    Category: "Category",
    Department: "Department",
    MenuItem: "Menu item",
    DiningSession: "Session",
    Order: "Order",
    Payment: "Payment",
}


def owned(db: Session, model: type[M], obj_id: str | None, owner_id: str, *, lock: bool = False) -> M:
    """Fetch a row by id, 404 unless it belongs to owner_id."""
    label = _LABELS.get(model, model.__name__)
    if not obj_id:
        raise HTTPException(404, detail=f"{label} not found")
    q = db.query(model).filter(model.id == obj_id, model.user_id == owner_id)
    if lock:
        q = q.with_for_update()
    row = q.first()
    if not row:
        raise HTTPException(404, detail=f"{label} not found")
    return row


def owned_selection(db: Session, item: MenuItem, selection_id: str) -> Selection:
    sel = db.get(Selection, selection_id)
    if not sel or sel.menu_item_id != item.id:
        raise HTTPException(404, detail="Selection not found")
    return sel


def owned_split(db: Session, split_id: str, owner_id: str, *, lock: bool = False) -> BillSplit:
    q = (
        db.query(BillSplit)
        .join(DiningSession, DiningSession.id == BillSplit.session_id)
        .filter(BillSplit.id == split_id, DiningSession.user_id == owner_id)
    )
    if lock:
        q = q.with_for_update(of=BillSplit)
    split = q.first()
    if not split:
        raise HTTPException(404, detail="Bill split not found")
    return split
