from dataclasses import dataclass
from fastapi import HTTPException
from tableside.models.common import utcnow
from tableside.models.core import Order, OrderStatus


@dataclass(frozen=True)
class Transition:
    source: OrderStatus
    target: OrderStatus


TRANSITIONS: dict[str, Transition] = {
    "confirm": Transition(OrderStatus.PENDING, OrderStatus.CONFIRMED),
    "start_preparing": Transition(OrderStatus.CONFIRMED, OrderStatus.PREPARING),
    "mark_ready": Transition(OrderStatus.PREPARING, OrderStatus.READY),
    "mark_delivered": Transition(OrderStatus.READY, OrderStatus.DELIVERED),
}

# target status -> action, for clients that PUT a status instead of an action
ACTION_FOR_STATUS = {t.target: action for action, t in TRANSITIONS.items()}

MODIFIABLE = (OrderStatus.PENDING, OrderStatus.CONFIRMED)
DELETABLE = (OrderStatus.PENDING, OrderStatus.CANCELLED)
NOT_CANCELLABLE = (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


def apply_action(order: Order, action: str, actor_id: str, user_id: str | None = None) -> OrderStatus:
    """Advance one step of the kitchen flow; raises 400 without touching the order."""
    t = TRANSITIONS.get(action)
    if t is None:
        raise HTTPException(400, detail=f"Unknown action: {action}")
    if order.status != t.source:
        raise HTTPException(
            400, detail=f"Cannot {action} an order in status {order.status.value}"
        )

    staff_id = user_id or actor_id
    now = utcnow()
    if action == "confirm":
        order.waiter_id = staff_id
    elif action == "start_preparing":
        order.preparing_at = now
        order.cook_id = staff_id
    elif action == "mark_ready":
        order.ready_at = now
    elif action == "mark_delivered":
        order.served_at = now
        order.served_by = staff_id

    previous = order.status
    order.status = t.target
    return previous


def action_for_status(status: str) -> str:
    try:
        wanted = OrderStatus(status)
    except ValueError:
        raise HTTPException(400, detail=f"invalid status: {status}")
    action = ACTION_FOR_STATUS.get(wanted)
    if action is None:
        raise HTTPException(400, detail=f"status {status} cannot be set directly")
    return action


def cancel(order: Order, reason: str | None) -> OrderStatus:
    if not reason or not reason.strip():
        raise HTTPException(400, detail="Cancellation reason is required")
    if order.status in NOT_CANCELLABLE:
        raise HTTPException(400, detail=f"Cannot cancel an order in status {order.status.value}")
    previous = order.status
    order.status = OrderStatus.CANCELLED
    order.cancellation_reason = reason.strip()
    return previous


def ensure_modifiable(order: Order):
    if order.status not in MODIFIABLE:
        raise HTTPException(400, detail=f"Order in status {order.status.value} can no longer be modified")
