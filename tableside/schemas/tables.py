from pydantic import Field
from typing import Optional, List
from tableside.schemas.common import ApiModel


class TableIn(ApiModel):
    number: str = Field(min_length=1, max_length=30)
    name: Optional[str] = None
    capacity: int = Field(default=4, ge=1)
    is_active: bool = True
    qr_code_active: bool = True
    grid_x: int = 0
    grid_y: int = 0
    grid_width: int = Field(default=2, ge=1)
    grid_height: int = Field(default=2, ge=1)

class TableUpdate(ApiModel):
    number: Optional[str] = Field(default=None, min_length=1, max_length=30)
    name: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=1)
    is_active: Optional[bool] = None
    qr_code_active: Optional[bool] = None

class TablePosition(ApiModel):
    grid_x: int = Field(ge=0)
    grid_y: int = Field(ge=0)
    grid_width: Optional[int] = Field(default=None, ge=1)
    grid_height: Optional[int] = Field(default=None, ge=1)

class TableOrder(ApiModel):
    id: str
    sort_order: int

class TableReorder(ApiModel):
    tables: List[TableOrder]

class TableMerge(ApiModel):
    source_table_id: str
    target_table_id: str

class TableMove(ApiModel):
    session_id: str
    target_table_id: str


# ---------- QR self-service ----------

class QRSessionIn(ApiModel):
    table_id: str
    customer_name: Optional[str] = None
    guest_count: int = Field(default=1, ge=1)

class QROrderLine(ApiModel):
    menu_item_id: str
    quantity: int = Field(ge=1)
    price: Optional[float] = None
    notes: Optional[str] = None
    selections: Optional[dict] = None

class QROrderIn(ApiModel):
    session_token: str
    items: List[QROrderLine]
    notes: Optional[str] = None
    customer_name: Optional[str] = None
