from pydantic import Field
from typing import Optional, List
from tableside.schemas.common import ApiModel


class OrderLineIn(ApiModel):
    menu_item_id: str
    quantity: int = Field(ge=1)
    price: Optional[float] = None  # unit price incl. modifiers, as shown to the customer
    notes: Optional[str] = None
    selections: Optional[dict | str] = None

class OrderIn(ApiModel):
    items: List[OrderLineIn]
    total_amount: Optional[float] = None
    session_id: Optional[str] = None
    table_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    notes: Optional[str] = None

class OrderUpdate(ApiModel):
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    notes: Optional[str] = None
    table_id: Optional[str] = None

class OrderStatusIn(ApiModel):
    status: str

class ModifyLine(ApiModel):
    id: Optional[str] = None
    menu_item_id: str
    quantity: int  # <= 0 removes the line
    notes: Optional[str] = None
    selections: Optional[dict | str] = None

class OrderModify(ApiModel):
    items: List[ModifyLine]
    notes: Optional[str] = None

class CancelIn(ApiModel):
    reason: str = Field(min_length=1)
    notes: Optional[str] = None

class OrderItemIn(ApiModel):
    menu_item_id: str
    quantity: int = Field(ge=1)
    price: Optional[float] = None
    notes: Optional[str] = None
    selections: Optional[dict | str] = None

class OrderItemUpdate(ApiModel):
    quantity: Optional[int] = Field(default=None, ge=1)
    price: Optional[float] = None
    notes: Optional[str] = None
    selections: Optional[dict | str] = None

class DashboardAction(ApiModel):
    order_id: str
    action: str
    user_id: Optional[str] = None
