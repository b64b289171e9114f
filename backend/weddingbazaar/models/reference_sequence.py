from sqlalchemy import Column, Integer, String

from ..database import Base


class ReferenceSequence(Base):
    """Monotonic counter per series key (``WB-2025``, ``RCP-1735689600``)."""

    __tablename__ = "reference_sequences"

    series_key = Column(String(64), primary_key=True)
    current_seq = Column(Integer, nullable=False, default=0)
