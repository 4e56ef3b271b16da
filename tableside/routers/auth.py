from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from tableside.schemas.common import Token, SignupIn
from tableside.util.security import create_token, hash_pw, verify_pw
from tableside.models.core import User, Role
from tableside.db import get_db
from tableside.deps import Actor, require_actor
from tableside.logging_config import get_logger

router = APIRouter(prefix="/auth", tags=["auth"])
log = get_logger(__name__)


def _row_from_user(u: User, role: Role | None = None) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.owner_name,
        "is_staff": u.is_staff,
        "is_active": u.is_active,
        "restaurant_owner_id": u.restaurant_owner_id,
        "role_id": u.role_id,
        "role": role.name if role else None,
        "restaurant_name": u.restaurant_name,
    }


@router.post("/signup", status_code=201)
def signup(body: SignupIn, db: Session = Depends(get_db)):
    email = body.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(400, detail="User with this email already exists")

    u = User(
        email=email,
        pass_hash=hash_pw(body.password),
        owner_name=body.owner_name,
        restaurant_name=body.restaurant_name,
        restaurant_address=body.restaurant_address,
        restaurant_phone=body.restaurant_phone,
    )
    db.add(u)
    db.commit()
    log.info("owner signed up", extra={"user_id": u.id})
    return _row_from_user(u)


@router.post("/login", response_model=Token)
def login(email: str, password: str, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not user.is_active or not verify_pw(user.pass_hash, password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return Token(access_token=create_token(user.id))


@router.get("/me")
def me(actor: Actor = Depends(require_actor), db: Session = Depends(get_db)):
    u = db.get(User, actor.user_id)
    role = db.get(Role, u.role_id) if u.role_id else None
    out = _row_from_user(u, role)
    out["owner_id"] = actor.owner_id
    out["is_admin"] = actor.is_admin
    return out
