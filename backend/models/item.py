# backend/models/item.py
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, CheckConstraint, func
from database import Base

# Model Item
# A single textile article held in stock. Catalog fields are maintained by the
# dashboard; `quantity` is the authoritative on-hand counter and only the stock
# ledger (services/ledger.py) writes it.
class Item(Base):
    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_items_quantity_non_negative"),
        CheckConstraint("price >= 0", name="ck_items_price_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)
    category = Column(String, nullable=True)
    location = Column(String, nullable=True)
    unit = Column(String, nullable=False, default="pcs")

    # Stock counter and its thresholds
    quantity = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)
    max_stock = Column(Integer, nullable=True)

    # List price is used at the counter, online price in the storefront
    price = Column(Float, nullable=False, default=0)
    online_price = Column(Float, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_available_online = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def sale_price(self) -> float:
        return self.online_price if self.online_price is not None else self.price

    @property
    def purchasable_online(self) -> bool:
        return bool(self.is_active and self.is_available_online)
