from typing import Optional

from pydantic import BaseModel


class VendorLink(BaseModel):
    legacy_code: Optional[str] = None
    profile_id: Optional[str] = None


class VendorResponse(BaseModel):
    id: str
    business_name: str
    legacy_code: Optional[str] = None
    profile_id: Optional[str] = None
    display_reference: str
