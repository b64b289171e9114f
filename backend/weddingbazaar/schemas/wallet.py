from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..models.wallet import WalletTransactionType


class WalletTransactionResponse(BaseModel):
    id: int
    transaction_id: str
    booking_id: int
    transaction_type: WalletTransactionType
    amount: int
    currency: str
    status: str
    description: Optional[str] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    details: Dict[str, Any] = {}
    occurred_at: datetime

    model_config = {"from_attributes": True}


class WalletResponse(BaseModel):
    vendor_id: str
    currency: str
    total_earnings: int
    available_balance: int
    pending_balance: int
    withdrawn_amount: int
    transactions: List[WalletTransactionResponse] = []

    model_config = {"from_attributes": True}
