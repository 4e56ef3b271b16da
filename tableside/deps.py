from dataclasses import dataclass
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from sqlalchemy.orm import Session
from tableside.db import get_db
from tableside.models.core import User, Role
from tableside.util.security import decode_token

auth_scheme = HTTPBearer(auto_error=False)

ADMIN_ROLE = "Admin"


@dataclass(frozen=True)
class Actor:
    user_id: str
    owner_id: str  # the restaurant owner whose data this caller acts on
    is_staff: bool
    role: str | None
    is_admin: bool


def require_auth(creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme)) -> str:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    try:
        return decode_token(creds.credentials)
    except (jwt.PyJWTError, KeyError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def require_actor(sub: str = Depends(require_auth), db: Session = Depends(get_db)) -> Actor:
    user = db.get(User, sub)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    role = db.get(Role, user.role_id) if user.role_id else None
    role_name = role.name if role else None
    if user.is_staff:
        if not user.restaurant_owner_id:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
        owner_id = user.restaurant_owner_id
    else:
        owner_id = user.id
    return Actor(
        user_id=user.id,
        owner_id=owner_id,
        is_staff=user.is_staff,
        role=role_name,
        is_admin=(not user.is_staff) or role_name == ADMIN_ROLE,
    )


def require_admin(actor: Actor = Depends(require_actor)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return actor
