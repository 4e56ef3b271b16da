from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime, time, timezone

from tableside.db import get_db
from tableside.deps import Actor, require_actor
from tableside.models.core import Order, OrderItem, OrderStatus, MenuItem, Department, User
from tableside.schemas.orders import DashboardAction
from tableside.services.lookup import owned
from tableside.services.rows import row_from_order
from tableside.routers.orders import transition

router = APIRouter(prefix="/admin/orders", tags=["dashboard"])

OPEN_STATUSES = (OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.READY)


@router.get("/dashboard")
def dashboard(
    department: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
):
    """
    Kitchen/floor board.

    Query params:
      - department: department id; keeps orders with at least one line routed there
      - status:     one order status, or "all"; defaults to everything but CANCELLED
    """
    q = db.query(Order).filter(Order.user_id == actor.owner_id)
    if status and status != "all":
        try:
            q = q.filter(Order.status == OrderStatus(status))
        except ValueError:
            raise HTTPException(400, detail="invalid status")
    elif not status:
        q = q.filter(Order.status != OrderStatus.CANCELLED)
    if department:
        routed = (
            db.query(OrderItem.order_id)
            .join(MenuItem, MenuItem.id == OrderItem.menu_item_id)
            .filter(MenuItem.department_id == department)
        )
        q = q.filter(Order.id.in_(routed))
    orders = q.order_by(Order.ordered_at.asc()).all()

    today = datetime.combine(datetime.now(timezone.utc).date(), time.min, tzinfo=timezone.utc)
    by_status = {s.value: 0 for s in OrderStatus}
    for st, n in (
        db.query(Order.status, func.count(Order.id))
        .filter(Order.user_id == actor.owner_id, Order.created_at >= today)
        .group_by(Order.status)
        .all()
    ):
        by_status[st.value] = n

    departments = db.query(Department).filter(Department.user_id == actor.owner_id).order_by(Department.name.asc()).all()
    by_department = {d.name: 0 for d in departments}
    for name, qty in (
        db.query(Department.name, func.sum(OrderItem.quantity))
        .join(MenuItem, MenuItem.department_id == Department.id)
        .join(OrderItem, OrderItem.menu_item_id == MenuItem.id)
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.user_id == actor.owner_id, Order.status.in_(OPEN_STATUSES))
        .group_by(Department.name)
        .all()
    ):
        by_department[name] = int(qty or 0)

    return {
        "orders": [row_from_order(db, o) for o in orders],
        "statistics": {
            "by_status": by_status,
            "by_department": by_department,
            "total_today": sum(by_status.values()),
        },
        "departments": [{"id": d.id, "name": d.name} for d in departments],
    }


def _check_staff(db: Session, actor: Actor, user_id: str | None):
    if user_id is None:
        return
    u = db.get(User, user_id)
    if not u or (u.id != actor.owner_id and u.restaurant_owner_id != actor.owner_id):
        raise HTTPException(400, detail="userId is not a member of this restaurant")


@router.patch("/dashboard")
def dashboard_action(body: DashboardAction, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    o = owned(db, Order, body.order_id, actor.owner_id, lock=True)
    _check_staff(db, actor, body.user_id)
    return transition(db, actor, o, body.action, body.user_id)
