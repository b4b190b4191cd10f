"""Table booking model."""
from sqlalchemy import Column, DateTime, Integer, String, Text, func
from .base import Base


class Reservation(Base):
    """A booked table. Rows are never deleted; terminal states end the lifecycle."""
    __tablename__ = "reservation"

    id = Column(String(36), primary_key=True)
    customer_id = Column(String(128), nullable=False, index=True)
    restaurant_id = Column(String(64), nullable=False, index=True)
    table_id = Column(String(64), nullable=True)
    date = Column(String(10), nullable=False)  # YYYY-MM-DD
    time = Column(String(5), nullable=False)  # HH:MM
    party_size = Column(Integer, nullable=False)
    special_requests = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default="pending")
    previous_status = Column(String(32), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
