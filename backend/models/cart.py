# backend/models/cart.py
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Float, UniqueConstraint, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base

# Represents a single staged line (item + quantity) in a customer's cart
class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), index=True, nullable=False)
    item_id = Column(Integer, ForeignKey("items.id"), index=True, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    price_snapshot = Column(Float, nullable=False) # Item price at the moment of addition
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    item = relationship("Item")

    __table_args__ = (
        # One line per item in a customer's cart
        UniqueConstraint("customer_id", "item_id", name="uq_cartitem_customer_item"),
        CheckConstraint("quantity >= 1", name="ck_cart_items_quantity_positive"),
    )
