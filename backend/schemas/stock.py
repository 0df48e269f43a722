# backend/schemas/stock.py
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import List, Optional, Literal

# Define allowed types for stock movements
StockMovementType = Literal["in", "out", "adjustment"]

# Schema for a manual stock movement; for adjustment `quantity` is the counted amount
class StockAdjustCreate(BaseModel):
    item_id: int
    type: StockMovementType
    quantity: int = Field(ge=0)
    notes: Optional[str] = None
    reference_no: Optional[str] = None

# Schema for returning stock log details
class StockLogResponse(BaseModel):
    id: int
    item_id: int
    item_name: str
    item_code: str
    type: str
    transaction_type: str
    quantity: int
    previous_stock: int
    current_stock: int
    notes: Optional[str] = None
    reference_no: Optional[str] = None
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

# Paginated response for stock log history
class StockLogPage(BaseModel):
    items: List[StockLogResponse]
    total: int
    page: int
    limit: int

# Schema for a single item within a bulk delivery
class DeliveryItem(BaseModel):
    item_id: int
    quantity: int = Field(ge=1)

# Schema for registering a bulk stock delivery
class DeliveryCreate(BaseModel):
    items: List[DeliveryItem]
    reason: Optional[str] = "Goods delivery"
    reference_no: Optional[str] = None
