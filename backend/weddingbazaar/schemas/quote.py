from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.quote import QuoteStatus


class LineItemIn(BaseModel):
    name: str = Field(min_length=1)
    # Major units (pesos); converted to centavos on the way in
    unit_price: Decimal = Field(alias="unitPrice")
    quantity: int = Field(default=1)
    description: Optional[str] = None

    model_config = {"populate_by_name": True}


class QuoteCreate(BaseModel):
    line_items: List[LineItemIn] = Field(alias="lineItems")
    vendor_ref: str = Field(alias="vendorId")
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}


class AcceptQuote(BaseModel):
    client_id: str = Field(alias="clientId")
    message: Optional[str] = None

    model_config = {"populate_by_name": True}


class RejectQuote(BaseModel):
    client_id: str = Field(alias="clientId")
    reason: Optional[str] = None

    model_config = {"populate_by_name": True}


class LineItemOut(BaseModel):
    name: str
    unit_price: int
    quantity: int
    description: Optional[str] = None


class QuoteResponse(BaseModel):
    id: int
    booking_id: int
    version: int
    vendor_id: str
    line_items: List[LineItemOut]
    total_amount: int
    currency: str
    status: QuoteStatus
    notes: Optional[str] = None
    superseded_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
