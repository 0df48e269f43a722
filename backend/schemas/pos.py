from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime


# A single basket line entered at the counter
class POSLineIn(BaseModel):
    item_id: int
    quantity: int = Field(ge=1)
    price: Optional[float] = Field(default=None, ge=0)


class POSTransactionCreate(BaseModel):
    customer_id: Optional[int] = None
    payment_method: Literal["cash", "card", "bank_transfer"]
    paid_amount: Optional[float] = Field(default=None, ge=0)
    items: List[POSLineIn]


class ReceiptItem(BaseModel):
    item_id: int
    code: str
    name: str
    quantity: int
    price: float
    total: float


class Receipt(BaseModel):
    transaction_number: str
    date: datetime
    items: List[ReceiptItem]
    total: float
    paid_amount: float
    change: float
    payment_method: str


class POSTransactionResult(BaseModel):
    transaction_id: int
    transaction_number: str
    total: float
    paid_amount: float
    change: float
    receipt: Receipt


# Header row in the transaction list
class POSTransactionOut(BaseModel):
    id: int
    transaction_number: str
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    user_id: int
    cashier_name: Optional[str] = None
    payment_method: str
    total_amount: float
    paid_amount: float
    change_amount: float
    status: str
    created_at: Optional[datetime] = None


class POSTransactionLineOut(BaseModel):
    item_id: int
    item_name: str
    item_code: str
    quantity: int
    unit_price: float
    total_price: float


class POSTransactionDetail(POSTransactionOut):
    items: List[POSTransactionLineOut]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class POSTransactionPage(BaseModel):
    items: List[POSTransactionOut]
    pagination: Pagination
