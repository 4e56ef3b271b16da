from pydantic import Field
from typing import Optional, List, Literal
from tableside.schemas.common import ApiModel

PaymentMethodLiteral = Literal["CASH", "QR", "CREDIT_CARD", "DEBIT_CARD"]
SplitTypeLiteral = Literal["by_item", "by_person", "equal_split"]


class ExtraCharge(ApiModel):
    description: str = ""
    amount: float = Field(ge=0)
    is_percentage: bool = False

class PaymentIn(ApiModel):
    payment_method: PaymentMethodLiteral = "CASH"
    total_amount: Optional[float] = Field(default=None, ge=0)
    extra_charges: List[ExtraCharge] = Field(default_factory=list)
    discount_amount: float = Field(default=0, ge=0)
    final_amount: Optional[float] = Field(default=None, ge=0)
    received_amount: Optional[float] = Field(default=None, ge=0)
    change_amount: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None

class PaymentUpdate(ApiModel):
    payment_method: Optional[PaymentMethodLiteral] = None
    subtotal_amount: Optional[float] = Field(default=None, ge=0)
    total_amount: Optional[float] = Field(default=None, ge=0)
    discount_amount: Optional[float] = Field(default=None, ge=0)
    extra_charges: Optional[List[ExtraCharge]] = None
    final_amount: Optional[float] = Field(default=None, ge=0)
    received_amount: Optional[float] = Field(default=None, ge=0)
    change_amount: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class SplitPortion(ApiModel):
    amount: float
    label: Optional[str] = None

class BillSplitIn(ApiModel):
    qr_session_id: Optional[str] = None
    session_id: Optional[str] = None
    order_id: Optional[str] = None
    split_type: SplitTypeLiteral
    splits: List[SplitPortion] = Field(min_length=1)

class SplitPaymentIn(ApiModel):
    payment_amount: float
    payment_method: PaymentMethodLiteral = "CASH"
    notes: Optional[str] = None
