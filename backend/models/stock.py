# backend/models/stock.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, func
from sqlalchemy.orm import relationship
from database import Base

# Append-only audit entry for one change of an item's on-hand quantity.
# Rows are inserted in the same transaction as the ledger write they describe
# and are never updated or deleted.
class StockLog(Base):
    __tablename__ = "stock_logs"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)

    # Movement direction: in, out or adjustment
    type = Column(String, nullable=False, index=True)
    # Origin of the movement: sale, pos, cancel, manual, delivery
    transaction_type = Column(String, nullable=False, default="manual")

    # Units moved: a positive amount for in/out, the signed difference for adjustment
    quantity = Column(Integer, nullable=False)
    previous_stock = Column(Integer, nullable=False)
    current_stock = Column(Integer, nullable=False)

    notes = Column(Text, nullable=True)
    reference_no = Column(String, nullable=True, index=True) # Order or transaction number

    # Acting principal: staff id when known, plus a printable label for customers
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_by = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    item = relationship("Item")
    user = relationship("User")

    @property
    def delta(self) -> int:
        if self.type == "out":
            return -self.quantity
        return self.quantity
