# backend/models/pos.py
import enum
from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base

class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"

# A counter sale; written once, already in its final state
class POSTransaction(Base):
    __tablename__ = "pos_transactions"

    id = Column(Integer, primary_key=True, index=True)
    transaction_number = Column(String, unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False) # Cashier
    payment_method = Column(String, nullable=False)
    total_amount = Column(Float, nullable=False)
    paid_amount = Column(Float, nullable=False)
    change_amount = Column(Float, nullable=False, default=0)
    status = Column(String, nullable=False, default="completed")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    customer = relationship("Customer")
    cashier = relationship("User")
    items = relationship("POSTransactionItem", back_populates="transaction", cascade="all, delete-orphan")

class POSTransactionItem(Base):
    __tablename__ = "pos_transaction_items"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_pos_items_quantity_positive"),)

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(Integer, ForeignKey("pos_transactions.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)

    transaction = relationship("POSTransaction", back_populates="items")
    item = relationship("Item")
