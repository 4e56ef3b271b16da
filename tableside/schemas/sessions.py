from pydantic import Field
from typing import Optional
from tableside.schemas.common import ApiModel


class SessionIn(ApiModel):
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    party_size: int = Field(default=1, ge=1)
    notes: Optional[str] = None
    table_id: Optional[str] = None

class SessionUpdate(ApiModel):
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    party_size: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = None
    status: Optional[str] = None

class SeatIn(ApiModel):
    table_id: str
