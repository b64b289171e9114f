import uuid

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from .base import BaseModel


def new_vendor_id() -> str:
    return uuid.uuid4().hex


class Vendor(BaseModel):
    """One vendor with two optional linked identity records.

    ``legacy_code`` is the short ``<type>-<year>-<seq>`` code issued by the
    first-generation registration flow; ``profile_id`` is the identifier of
    the vendor profile row created by the current flow. Either may be
    missing for vendors that only ever existed in one system. ``id`` is the
    canonical identity every other table references.
    """

    __tablename__ = "vendors"

    id = Column(String(32), primary_key=True, default=new_vendor_id)
    legacy_code = Column(String(32), unique=True, nullable=True, index=True)
    profile_id = Column(String(64), unique=True, nullable=True, index=True)
    user_id = Column(String(64), nullable=True, index=True)
    business_name = Column(String, nullable=False)

    services = relationship("Service", back_populates="vendor")
    subscriptions = relationship(
        "Subscription", back_populates="vendor", order_by="Subscription.id"
    )
