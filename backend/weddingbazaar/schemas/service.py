from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ServiceCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    # Major units; stored as centavos
    base_price: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = None


class ServiceResponse(BaseModel):
    id: int
    vendor_id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    base_price: Optional[int] = None
    currency: str
    deleted_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}
