from sqlalchemy import Column, DateTime, JSON, Numeric, String, Text, func
from .base import Base


class Order(Base):
    __tablename__ = "order"

    id = Column(String(36), primary_key=True)
    customer_id = Column(String(128), nullable=False, index=True)
    restaurant_id = Column(String(64), nullable=False, index=True)
    reservation_id = Column(String(36), nullable=True, index=True)
    items = Column(JSON, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(32), nullable=False)
    payment_method = Column(String(16), nullable=False)
    payment_status = Column(String(16), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
    paid_at = Column(DateTime, nullable=True)
