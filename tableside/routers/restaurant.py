from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tableside.db import get_db
from tableside.deps import Actor, require_actor, require_admin
from tableside.models.core import User
from tableside.schemas.common import RestaurantIn, RestaurantUpdate
from tableside.logging_config import get_logger

router = APIRouter(prefix="/restaurant", tags=["restaurant"])
log = get_logger(__name__)


def _row_from_owner(u: User) -> dict:
    return {
        "id": u.id,
        "owner_name": u.owner_name,
        "email": u.email,
        "restaurant_name": u.restaurant_name,
        "restaurant_address": u.restaurant_address,
        "restaurant_phone": u.restaurant_phone,
        "is_active": u.is_active,
    }


def _owner(db: Session, actor: Actor) -> User:
    owner = db.get(User, actor.owner_id)
    if not owner:
        raise HTTPException(404, detail="Restaurant not found")
    return owner


@router.get("")
def get_restaurant(db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return _row_from_owner(_owner(db, actor))


@router.post("", status_code=201)
def configure_restaurant(body: RestaurantIn, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    owner = _owner(db, actor)
    if owner.restaurant_name:
        raise HTTPException(409, detail="Restaurant already configured")
    owner.restaurant_name = body.restaurant_name.strip()
    owner.restaurant_address = body.restaurant_address
    owner.restaurant_phone = body.restaurant_phone
    db.commit()
    log.info("restaurant configured", extra={"owner_id": owner.id})
    return _row_from_owner(owner)


@router.put("")
def update_restaurant(body: RestaurantUpdate, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    owner = _owner(db, actor)
    data = body.model_dump(exclude_unset=True)
    if "restaurant_name" in data and data["restaurant_name"] is None:
        raise HTTPException(400, detail="restaurant name cannot be cleared")
    for k, v in data.items():
        setattr(owner, k, v)
    db.commit()
    return _row_from_owner(owner)
