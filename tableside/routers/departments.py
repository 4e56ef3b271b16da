from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tableside.db import get_db
from tableside.deps import Actor, require_admin
from tableside.models.core import Department, MenuItem
from tableside.schemas.menu import DepartmentIn, DepartmentUpdate
from tableside.services.lookup import owned
from tableside.logging_config import get_logger

router = APIRouter(prefix="/admin/departments", tags=["departments"])
log = get_logger(__name__)

DEFAULT_DEPARTMENTS = [
    ("Kitchen", "Main kitchen for food preparation"),
    ("Cafe", "Coffee and cafe beverages"),
    ("WaterStation", "Water and simple drinks"),
]


def _menu_item_count(db: Session, department_id: str) -> int:
    return db.query(func.count(MenuItem.id)).filter(MenuItem.department_id == department_id).scalar() or 0


def _row_from_department(db: Session, d: Department) -> dict:
    return {
        "id": d.id,
        "name": d.name,
        "description": d.description,
        "menu_item_count": _menu_item_count(db, d.id),
        "created_at": d.created_at.isoformat() if d.created_at else None,
    }


def _name_taken(db: Session, owner_id: str, name: str, exclude_id: str | None = None) -> bool:
    q = db.query(Department).filter(Department.user_id == owner_id, Department.name == name)
    if exclude_id:
        q = q.filter(Department.id != exclude_id)
    return q.first() is not None


@router.get("")
def list_departments(db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    rows = db.query(Department).filter(Department.user_id == actor.owner_id).order_by(Department.name.asc()).all()
    return [_row_from_department(db, d) for d in rows]


@router.post("", status_code=201)
def create_department(body: DepartmentIn, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    name = body.name.strip()
    if not name:
        raise HTTPException(400, detail="Department name is required")
    if _name_taken(db, actor.owner_id, name):
        raise HTTPException(400, detail="Department with this name already exists")
    try:
        d = Department(user_id=actor.owner_id, name=name, description=body.description)
        db.add(d)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(400, detail="Department with this name already exists")
    return _row_from_department(db, d)


@router.post("/seed")
def seed_departments(db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    created = []
    for name, desc in DEFAULT_DEPARTMENTS:
        if _name_taken(db, actor.owner_id, name):
            continue
        db.add(Department(user_id=actor.owner_id, name=name, description=desc))
        created.append(name)
    db.commit()
    rows = db.query(Department).filter(Department.user_id == actor.owner_id).order_by(Department.name.asc()).all()
    return {"created": created, "departments": [_row_from_department(db, d) for d in rows]}


@router.get("/{department_id}")
def get_department(department_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    d = owned(db, Department, department_id, actor.owner_id)
    row = _row_from_department(db, d)
    items = db.query(MenuItem).filter(MenuItem.department_id == d.id).order_by(MenuItem.name.asc()).all()
    row["menu_items"] = [{"id": m.id, "name": m.name} for m in items]
    return row


@router.put("/{department_id}")
def update_department(department_id: str, body: DepartmentUpdate, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    d = owned(db, Department, department_id, actor.owner_id)
    data = body.model_dump(exclude_unset=True)
    if "name" in data:
        if data["name"] is None or not data["name"].strip():
            raise HTTPException(400, detail="Department name is required")
        data["name"] = data["name"].strip()
        if _name_taken(db, actor.owner_id, data["name"], exclude_id=d.id):
            raise HTTPException(400, detail="Department with this name already exists")
    for k, v in data.items():
        setattr(d, k, v)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(400, detail="Department with this name already exists")
    return _row_from_department(db, d)


@router.delete("/{department_id}")
def delete_department(department_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    d = owned(db, Department, department_id, actor.owner_id)
    count = _menu_item_count(db, d.id)
    if count > 0:
        raise HTTPException(400, detail=f"Cannot delete department with {count} menu item(s)")
    db.delete(d)
    db.commit()
    log.info("department deleted", extra={"owner_id": actor.owner_id, "department_id": department_id})
    return {"ok": True}
