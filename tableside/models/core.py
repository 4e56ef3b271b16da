from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Integer, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum as PyEnum
from datetime import datetime
from decimal import Decimal
from tableside.db import Base
from tableside.models.common import IdMixin, TSMMixin, utcnow

# ── Enums ───────────────────────────────────────────────────────────────────
class OrderStatus(PyEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

class SessionStatus(PyEnum):
    WAITING = "WAITING"  # staff session not yet at a table
    SEATED = "SEATED"
    ORDERING = "ORDERING"
    ORDERED = "ORDERED"
    SERVING = "SERVING"
    DINING = "DINING"
    BILLING = "BILLING"
    COMPLETED = "COMPLETED"

class SessionOrigin(PyEnum):
    STAFF = "STAFF"
    QR = "QR"

class PaymentMethod(PyEnum):
    CASH = "CASH"
    QR = "QR"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"

class SplitStatus(PyEnum):
    PENDING = "PENDING"
    PARTIAL_PAID = "PARTIAL_PAID"
    PAID = "PAID"

class SplitType(PyEnum):
    BY_ITEM = "by_item"
    BY_PERSON = "by_person"
    EQUAL_SPLIT = "equal_split"

# statuses in which a session holds its table
OCCUPYING_STATUSES = (
    SessionStatus.SEATED, SessionStatus.ORDERING, SessionStatus.ORDERED,
    SessionStatus.SERVING, SessionStatus.DINING, SessionStatus.BILLING,
)

# ── Identity ────────────────────────────────────────────────────────────────
class Role(Base, IdMixin, TSMMixin):
    __tablename__ = "role"
    name: Mapped[str] = mapped_column(String(50), unique=True)
    description: Mapped[str | None] = mapped_column(Text)

class User(Base, IdMixin, TSMMixin):
    __tablename__ = "user"
    email: Mapped[str] = mapped_column(String(160), unique=True)
    pass_hash: Mapped[str] = mapped_column(String(200))
    owner_name: Mapped[str | None] = mapped_column(String(160))
    # restaurant profile lives on the owner row
    restaurant_name: Mapped[str | None] = mapped_column(String(200))
    restaurant_address: Mapped[str | None] = mapped_column(Text)
    restaurant_phone: Mapped[str | None] = mapped_column(String(30))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_staff: Mapped[bool] = mapped_column(Boolean, default=False)
    restaurant_owner_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))
    role_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("role.id"))

# ── Floor ───────────────────────────────────────────────────────────────────
class DiningTable(Base, IdMixin, TSMMixin):
    __tablename__ = "dining_table"
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))
    number: Mapped[str] = mapped_column(String(30))
    name: Mapped[str | None] = mapped_column(String(120))
    capacity: Mapped[int] = mapped_column(Integer, default=4)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    qr_code_active: Mapped[bool] = mapped_column(Boolean, default=True)
    qr_code: Mapped[str | None] = mapped_column(Text)  # data: URL of the static code
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    grid_x: Mapped[int] = mapped_column(Integer, default=0)
    grid_y: Mapped[int] = mapped_column(Integer, default=0)
    grid_width: Mapped[int] = mapped_column(Integer, default=2)
    grid_height: Mapped[int] = mapped_column(Integer, default=2)
    __table_args__ = (UniqueConstraint("user_id", "number", name="uq_table_owner_number"),)

# ── Menu ────────────────────────────────────────────────────────────────────
class Category(Base, IdMixin, TSMMixin):
    __tablename__ = "category"
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_category_owner_name"),)

class Department(Base, IdMixin, TSMMixin):
    __tablename__ = "department"
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(Text)
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_department_owner_name"),)

class MenuItem(Base, IdMixin, TSMMixin):
    __tablename__ = "menu_item"
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))
    category_id: Mapped[str] = mapped_column(String(36), ForeignKey("category.id"))
    department_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("department.id"))
    name: Mapped[str] = mapped_column(String(160))
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    image: Mapped[str | None] = mapped_column(String(400))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

class Selection(Base, IdMixin, TSMMixin):
    __tablename__ = "selection"
    menu_item_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_item.id"))
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(Text)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)
    allow_multiple: Mapped[bool] = mapped_column(Boolean, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

class SelectionOption(Base, IdMixin, TSMMixin):
    __tablename__ = "selection_option"
    selection_id: Mapped[str] = mapped_column(String(36), ForeignKey("selection.id"))
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(Text)
    price_add: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

# ── Sessions ────────────────────────────────────────────────────────────────
class DiningSession(Base, IdMixin, TSMMixin):
    """A party at a table, opened either by staff or by a customer scanning a QR code."""
    __tablename__ = "dining_session"
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))
    origin: Mapped[SessionOrigin] = mapped_column(Enum(SessionOrigin), default=SessionOrigin.STAFF)
    table_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("dining_table.id"))
    session_token: Mapped[str | None] = mapped_column(String(64), unique=True)
    customer_name: Mapped[str | None] = mapped_column(String(160))
    customer_phone: Mapped[str | None] = mapped_column(String(30))
    customer_email: Mapped[str | None] = mapped_column(String(160))
    party_size: Mapped[int] = mapped_column(Integer, default=1)
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[SessionStatus] = mapped_column(Enum(SessionStatus), default=SessionStatus.WAITING)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    check_in_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    seated_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    merged_into_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("dining_session.id"))

# ── Orders ──────────────────────────────────────────────────────────────────
class Order(Base, IdMixin, TSMMixin):
    __tablename__ = "order"
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))
    order_number: Mapped[str] = mapped_column(String(40))
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.PENDING)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    customer_name: Mapped[str | None] = mapped_column(String(160))
    customer_phone: Mapped[str | None] = mapped_column(String(30))
    customer_email: Mapped[str | None] = mapped_column(String(160))
    notes: Mapped[str | None] = mapped_column(Text)
    table_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("dining_table.id"))
    session_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("dining_session.id"))
    waiter_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))
    cook_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))
    served_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    ordered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    preparing_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    ready_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    served_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    __table_args__ = (UniqueConstraint("user_id", "order_number", name="uq_order_owner_number"),)

class OrderItem(Base, IdMixin, TSMMixin):
    __tablename__ = "order_item"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"))
    menu_item_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_item.id"))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))  # unit price at order time
    notes: Mapped[str | None] = mapped_column(Text)
    selections: Mapped[str | None] = mapped_column(Text)  # JSON {selectionId: [optionId, ...]}

# ── Payments ────────────────────────────────────────────────────────────────
class BillSplit(Base, IdMixin, TSMMixin):
    __tablename__ = "bill_split"
    session_id: Mapped[str] = mapped_column(String(36), ForeignKey("dining_session.id"))
    order_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("order.id"))
    split_type: Mapped[SplitType] = mapped_column(Enum(SplitType, values_callable=lambda e: [m.value for m in e]))
    label: Mapped[str | None] = mapped_column(String(160))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    status: Mapped[SplitStatus] = mapped_column(Enum(SplitStatus), default=SplitStatus.PENDING)

class Payment(Base, IdMixin, TSMMixin):
    __tablename__ = "payment"
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))
    session_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("dining_session.id"))
    bill_split_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("bill_split.id"))
    payment_number: Mapped[str] = mapped_column(String(40))
    # snapshot: customer & table
    customer_name: Mapped[str | None] = mapped_column(String(160))
    customer_phone: Mapped[str | None] = mapped_column(String(30))
    customer_email: Mapped[str | None] = mapped_column(String(160))
    party_size: Mapped[int | None] = mapped_column(Integer)
    table_number: Mapped[str | None] = mapped_column(String(30))
    table_name: Mapped[str | None] = mapped_column(String(120))
    check_in_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # snapshot: restaurant
    restaurant_name: Mapped[str | None] = mapped_column(String(200))
    restaurant_address: Mapped[str | None] = mapped_column(Text)
    restaurant_phone: Mapped[str | None] = mapped_column(String(30))
    # settlement
    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), default=PaymentMethod.CASH)
    subtotal_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    extra_charges_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    final_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    received_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    change_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    notes: Mapped[str | None] = mapped_column(Text)
    extra_charges: Mapped[str | None] = mapped_column(Text)  # JSON list
    __table_args__ = (UniqueConstraint("user_id", "payment_number", name="uq_payment_owner_number"),)

class PaymentItem(Base, IdMixin, TSMMixin):
    __tablename__ = "payment_item"
    payment_id: Mapped[str] = mapped_column(String(36), ForeignKey("payment.id"))
    menu_item_name: Mapped[str] = mapped_column(String(160))
    menu_item_description: Mapped[str | None] = mapped_column(Text)
    menu_item_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    category_name: Mapped[str | None] = mapped_column(String(120))
    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 2))  # fractional for split portions
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    notes: Mapped[str | None] = mapped_column(Text)
    selections: Mapped[str | None] = mapped_column(Text)

# ── Audit ───────────────────────────────────────────────────────────────────
class AuditLog(Base, IdMixin, TSMMixin):
    __tablename__ = "audit_log"
    actor_user_id: Mapped[str] = mapped_column(String(36))
    entity: Mapped[str] = mapped_column(String(60))
    entity_id: Mapped[str] = mapped_column(String(36))
    action: Mapped[str] = mapped_column(String(60))
    reason: Mapped[str | None] = mapped_column(Text)
    before: Mapped[str | None] = mapped_column(Text)
    after: Mapped[str | None] = mapped_column(Text)
