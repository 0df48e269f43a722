from pydantic import BaseModel, Field, model_validator
from typing import List, Literal, Optional
from datetime import datetime

CheckoutSourceName = Literal["cart", "selected", "direct"]
PaymentMethodName = Literal["cash", "card", "bank_transfer"]


# Input schema for checkout; the source decides which of the line fields apply
class CheckoutPayload(BaseModel):
    shipping_name: Optional[str] = None
    shipping_phone: Optional[str] = None
    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    shipping_notes: Optional[str] = None
    payment_method: PaymentMethodName = "bank_transfer"
    special_instructions: Optional[str] = None

    source: CheckoutSourceName = "cart"
    cart_item_ids: Optional[List[int]] = None
    item_id: Optional[int] = None
    quantity: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _check_source_fields(self):
        if self.source == "selected" and not self.cart_item_ids:
            raise ValueError("cart_item_ids is required when source is 'selected'")
        if self.source == "direct" and (self.item_id is None or self.quantity is None):
            raise ValueError("item_id and quantity are required when source is 'direct'")
        return self


class CheckoutResponse(BaseModel):
    order_id: int
    order_number: str
    total_amount: float
    payment_method: str
    status: str


# Output schema for an individual order line item
class OrderItemOut(BaseModel):
    item_id: int
    item_name: str
    item_code: str
    quantity: int
    unit_price: float
    line_total: float


# Output schema representing the full order details
class OrderResponse(BaseModel):
    id: int
    order_number: str
    customer_id: int
    status: str
    payment_status: str
    payment_method: str
    subtotal: float
    shipping_cost: float
    tax_amount: float
    total_amount: float
    shipping_name: str
    shipping_phone: str
    shipping_address: str
    shipping_city: str
    shipping_postal_code: str
    shipping_notes: Optional[str] = None
    special_instructions: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemOut]

    class Config:
        from_attributes = True

# Schema for paginated order lists
class OrdersPage(BaseModel):
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int

# Schema for updating order status
class OrderStatusPatch(BaseModel):
    status: Literal["pending", "processing", "shipped", "delivered", "cancelled"]

class PaymentStatusPatch(BaseModel):
    payment_status: Literal["pending", "paid", "failed"]
