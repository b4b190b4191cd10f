"""Gateway payment attempts and the signals received for them."""
from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, func
from .base import Base


class PaymentSession(Base):
    """One attempt to pay an order through the hosted gateway, keyed by the gateway's payment id."""
    __tablename__ = "payment_session"

    payment_id = Column(String(128), primary_key=True)
    order_id = Column(String(36), nullable=False, index=True)
    customer_id = Column(String(128), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    purpose = Column(String(255), nullable=True)
    gateway_url = Column(String(1024), nullable=False)
    status = Column(String(16), nullable=False, default="created")
    transaction_id = Column(String(128), nullable=True)
    conflict_status = Column(String(16), nullable=True)
    needs_review = Column(Boolean, nullable=False, default=False)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())


class PaymentSignal(Base):
    """Audit row for every webhook delivery, status poll or expiry applied to a session."""
    __tablename__ = "payment_signal"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_id = Column(String(128), nullable=False, index=True)
    source = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False)
    transaction_id = Column(String(128), nullable=True)
    applied = Column(Boolean, nullable=False, default=False)
    received_at = Column(DateTime, nullable=False, server_default=func.now())
