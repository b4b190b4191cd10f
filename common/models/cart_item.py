from sqlalchemy import Column, DateTime, Integer, Numeric, String, UniqueConstraint, func
from .base import Base


class CartItem(Base):
    __tablename__ = "cart_item"
    __table_args__ = (UniqueConstraint("customer_id", "item_id", name="uq_cart_customer_item"),)

    id = Column(String(36), primary_key=True)
    customer_id = Column(String(128), nullable=False, index=True)
    restaurant_id = Column(String(64), nullable=False)
    item_id = Column(String(64), nullable=False)
    name = Column(String(255), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    added_at = Column(DateTime, nullable=False, server_default=func.now())
