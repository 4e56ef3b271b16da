"""
JSON shaping shared by the routers.

Decimals go out as plain numbers, enums as their string value and
timestamps as ISO8601.
"""
import json
from datetime import datetime
from sqlalchemy.orm import Session
from tableside.models.core import (
    DiningTable, DiningSession, Order, OrderItem, MenuItem, Category, Payment, PaymentItem, BillSplit,
)
from tableside.services.billing import as_float
from tableside.services.pricing import parse_selections
from tableside.services.receipts import resolve_selections


def ts(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat()


def enum_value(v):
    return getattr(v, "value", v)


def row_from_table(t: DiningTable) -> dict:
    return {
        "id": t.id,
        "number": t.number,
        "name": t.name,
        "capacity": t.capacity,
        "is_active": t.is_active,
        "qr_code_active": t.qr_code_active,
        "sort_order": t.sort_order,
        "grid_x": t.grid_x,
        "grid_y": t.grid_y,
        "grid_width": t.grid_width,
        "grid_height": t.grid_height,
    }


def row_from_session(s: DiningSession) -> dict:
    return {
        "id": s.id,
        "origin": enum_value(s.origin),
        "status": enum_value(s.status),
        "table_id": s.table_id,
        "session_token": s.session_token,
        "customer_name": s.customer_name,
        "customer_phone": s.customer_phone,
        "customer_email": s.customer_email,
        "party_size": s.party_size,
        "notes": s.notes,
        "is_active": s.is_active,
        "check_in_time": ts(s.check_in_time),
        "seated_time": ts(s.seated_time),
        "check_out_time": ts(s.check_out_time),
        "merged_into_id": s.merged_into_id,
    }


def row_from_order_item(db: Session, it: OrderItem, menu: dict[str, MenuItem] | None = None) -> dict:
    m = (menu or {}).get(it.menu_item_id) or db.get(MenuItem, it.menu_item_id)
    return {
        "id": it.id,
        "menu_item_id": it.menu_item_id,
        "menu_item_name": m.name if m else None,
        "department_id": m.department_id if m else None,
        "quantity": it.quantity,
        "price": as_float(it.price),
        "line_total": as_float(it.price * it.quantity),
        "notes": it.notes,
        "selections": parse_selections(it.selections) if it.selections else {},
    }


def row_from_order(db: Session, o: Order, with_items: bool = True) -> dict:
    out = {
        "id": o.id,
        "order_number": o.order_number,
        "status": enum_value(o.status),
        "total_amount": as_float(o.total_amount),
        "customer_name": o.customer_name,
        "customer_phone": o.customer_phone,
        "customer_email": o.customer_email,
        "notes": o.notes,
        "table_id": o.table_id,
        "session_id": o.session_id,
        "waiter_id": o.waiter_id,
        "cook_id": o.cook_id,
        "served_by": o.served_by,
        "cancellation_reason": o.cancellation_reason,
        "ordered_at": ts(o.ordered_at),
        "preparing_at": ts(o.preparing_at),
        "ready_at": ts(o.ready_at),
        "served_at": ts(o.served_at),
        "created_at": ts(o.created_at),
    }
    if with_items:
        items = (
            db.query(OrderItem)
            .filter(OrderItem.order_id == o.id)
            .order_by(OrderItem.created_at.asc(), OrderItem.id.asc())
            .all()
        )
        out["items"] = [row_from_order_item(db, it) for it in items]
    return out


def row_from_payment_item(db: Session, pi: PaymentItem, resolve: bool = False) -> dict:
    return {
        "id": pi.id,
        "menu_item_name": pi.menu_item_name,
        "menu_item_description": pi.menu_item_description,
        "menu_item_price": as_float(pi.menu_item_price),
        "category_name": pi.category_name,
        "quantity": as_float(pi.quantity),
        "unit_price": as_float(pi.unit_price),
        "total_price": as_float(pi.total_price),
        "notes": pi.notes,
        "selections": resolve_selections(db, pi.selections) if resolve else (parse_selections(pi.selections) if pi.selections else {}),
    }


def row_from_payment(db: Session, p: Payment, with_items: bool = True, resolve: bool = False) -> dict:
    out = {
        "id": p.id,
        "payment_number": p.payment_number,
        "session_id": p.session_id,
        "bill_split_id": p.bill_split_id,
        "customer_name": p.customer_name,
        "customer_phone": p.customer_phone,
        "customer_email": p.customer_email,
        "party_size": p.party_size,
        "table_number": p.table_number,
        "table_name": p.table_name,
        "check_in_time": ts(p.check_in_time),
        "check_out_time": ts(p.check_out_time),
        "restaurant_name": p.restaurant_name,
        "restaurant_address": p.restaurant_address,
        "restaurant_phone": p.restaurant_phone,
        "payment_method": enum_value(p.payment_method),
        "subtotal_amount": as_float(p.subtotal_amount),
        "discount_amount": as_float(p.discount_amount),
        "extra_charges_amount": as_float(p.extra_charges_amount),
        "final_amount": as_float(p.final_amount),
        "received_amount": as_float(p.received_amount),
        "change_amount": as_float(p.change_amount),
        "notes": p.notes,
        "extra_charges": json.loads(p.extra_charges) if p.extra_charges else [],
        "created_at": ts(p.created_at),
        "updated_at": ts(p.updated_at),
    }
    if with_items:
        items = (
            db.query(PaymentItem)
            .filter(PaymentItem.payment_id == p.id)
            .order_by(PaymentItem.created_at.asc(), PaymentItem.id.asc())
            .all()
        )
        out["items"] = [row_from_payment_item(db, pi, resolve=resolve) for pi in items]
    return out


def row_from_split(s: BillSplit) -> dict:
    return {
        "id": s.id,
        "session_id": s.session_id,
        "order_id": s.order_id,
        "split_type": enum_value(s.split_type),
        "label": s.label,
        "total_amount": as_float(s.total_amount),
        "paid_amount": as_float(s.paid_amount),
        "remaining_amount": as_float(s.total_amount - s.paid_amount),
        "status": enum_value(s.status),
        "created_at": ts(s.created_at),
    }


def category_names(db: Session, owner_id: str) -> dict[str, str]:
    return {c.id: c.name for c in db.query(Category).filter(Category.user_id == owner_id).all()}
