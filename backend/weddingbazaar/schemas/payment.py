from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..models.payment import PaymentType


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    amount: int
    currency: str
    payment_method: str
    payment_type: PaymentType
    external_ref: str
    refund_of_id: Optional[int] = None
    paid_at: datetime

    model_config = {"from_attributes": True}


class ReceiptResponse(BaseModel):
    id: int
    receipt_number: str
    payment_id: int
    booking_id: int
    payment_type: PaymentType
    amount: int
    currency: str
    payment_method: str
    total_paid: int
    remaining_balance: Optional[int] = None
    issued_at: datetime

    model_config = {"from_attributes": True}
