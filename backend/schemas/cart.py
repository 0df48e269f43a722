from pydantic import BaseModel, Field
from typing import List, Optional

# Request schema for adding an item to the cart
class CartAddItem(BaseModel):
    item_id: int
    quantity: int = Field(default=1, ge=1)

# Request schema for updating cart item quantity (0 removes the line)
class CartUpdateItem(BaseModel):
    quantity: int = Field(ge=0)

# Response schema for a single cart line item
class CartItemOut(BaseModel):
    id: int
    item_id: int
    code: str
    name: str
    category: Optional[str] = None
    unit: str
    quantity: int
    price: float
    live_price: float
    line_total: float
    stock_quantity: int
    low_stock: bool
    available: bool

    class Config:
        from_attributes = True

class CartTotals(BaseModel):
    subtotal: float
    total_items: int
    shipping: float
    tax: float
    total: float

    class Config:
        from_attributes = True

# Response schema for the entire cart summary
class CartOut(BaseModel):
    items: List[CartItemOut]
    totals: CartTotals
