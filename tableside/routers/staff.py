from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tableside.db import get_db
from tableside.deps import Actor, require_admin
from tableside.models.core import User, Role
from tableside.schemas.common import StaffIn, StaffUpdate
from tableside.util.security import hash_pw
from tableside.logging_config import get_logger

router = APIRouter(prefix="/admin", tags=["staff"])
log = get_logger(__name__)

DEFAULT_ROLES = [
    ("Admin", "Full access to restaurant management"),
    ("Waiter", "Takes orders and serves tables"),
    ("Kitchen", "Prepares food orders"),
    ("Cafe", "Prepares drinks and cafe items"),
    ("WaterStation", "Handles water and simple beverages"),
    ("Cashier", "Settles bills and payments"),
]


def _row_from_role(r: Role) -> dict:
    return {"id": r.id, "name": r.name, "description": r.description}


def _row_from_staff(u: User, roles: dict[str, Role]) -> dict:
    role = roles.get(u.role_id) if u.role_id else None
    return {
        "id": u.id,
        "email": u.email,
        "name": u.owner_name,
        "is_active": u.is_active,
        "role_id": u.role_id,
        "role": _row_from_role(role) if role else None,
        "created_at": u.created_at,
    }


def _roles(db: Session) -> dict[str, Role]:
    return {r.id: r for r in db.query(Role).all()}


def _get_staff(db: Session, actor: Actor, staff_id: str) -> User:
    u = db.get(User, staff_id)
    if not u or not u.is_staff or u.restaurant_owner_id != actor.owner_id:
        raise HTTPException(404, detail="Staff member not found")
    return u


@router.get("/roles")
def list_roles(db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    return [_row_from_role(r) for r in db.query(Role).order_by(Role.name.asc()).all()]


@router.post("/seed-roles")
def seed_roles(db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    existing = {r.name for r in db.query(Role).all()}
    created = []
    for name, desc in DEFAULT_ROLES:
        if name in existing:
            continue
        db.add(Role(name=name, description=desc))
        created.append(name)
    db.commit()
    return {"created": created, "roles": [_row_from_role(r) for r in db.query(Role).order_by(Role.name.asc()).all()]}


@router.get("/staff")
def list_staff(db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    rows = (
        db.query(User)
        .filter(User.is_staff.is_(True), User.restaurant_owner_id == actor.owner_id)
        .order_by(User.created_at.desc())
        .all()
    )
    roles = _roles(db)
    return [_row_from_staff(u, roles) for u in rows]


@router.post("/staff", status_code=201)
def create_staff(body: StaffIn, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    email = body.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(400, detail="User with this email already exists")
    if not db.get(Role, body.role_id):
        raise HTTPException(400, detail="Invalid role")

    u = User(
        email=email,
        pass_hash=hash_pw(body.password),
        owner_name=body.name,
        is_staff=True,
        restaurant_owner_id=actor.owner_id,
        role_id=body.role_id,
    )
    db.add(u)
    db.commit()
    log.info("staff created", extra={"owner_id": actor.owner_id, "staff_id": u.id})
    return _row_from_staff(u, _roles(db))


@router.put("/staff/{staff_id}")
def update_staff(staff_id: str, body: StaffUpdate, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    u = _get_staff(db, actor, staff_id)
    data = body.model_dump(exclude_unset=True)

    if data.get("role_id") is not None and not db.get(Role, data["role_id"]):
        raise HTTPException(400, detail="Invalid role")
    if "name" in data:
        if data["name"] is None:
            raise HTTPException(400, detail="name cannot be cleared")
        u.owner_name = data.pop("name")
    if "password" in data:
        pw = data.pop("password")
        if pw:
            u.pass_hash = hash_pw(pw)
    if "is_active" in data and data["is_active"] is None:
        data.pop("is_active")
    for k, v in data.items():
        setattr(u, k, v)
    db.commit()
    return _row_from_staff(u, _roles(db))


@router.delete("/staff/{staff_id}")
def delete_staff(staff_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    u = _get_staff(db, actor, staff_id)
    if u.id == actor.user_id:
        raise HTTPException(400, detail="Cannot delete your own account")
    # staff may be referenced by orders they served; keep the row, revoke access
    u.is_active = False
    db.commit()
    log.info("staff deactivated", extra={"owner_id": actor.owner_id, "staff_id": u.id})
    return {"ok": True}
