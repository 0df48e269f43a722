# backend/routes/orders.py
from typing import List, Optional
from fastapi import APIRouter, Depends, Request, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from utils.tokenJWT import get_current_customer, role_required
from utils.audit import write_log, write_failure_log, client_ip
from utils.errors import InventoryError
from models.customers import Customer
from models.users import User
from models.order import Order
from services import orders as order_service
from services.orders import CheckoutSource, ShippingDetails
from schemas.order import (
    CheckoutPayload, CheckoutResponse, OrderResponse, OrdersPage, OrderItemOut,
    OrderStatusPatch, PaymentStatusPatch,
)

router = APIRouter(prefix="/orders", tags=["Orders"])
logger = logging.getLogger(__name__)

STAFF_ROLES = ("admin", "manager", "cashier")

# Map Order model to OrderResponse schema
def _order_to_out(order: Order) -> OrderResponse:
    items: List[OrderItemOut] = []
    for it in order.items:
        items.append(OrderItemOut(
            item_id=it.item_id,
            item_name=it.item.name if it.item else "Deleted item",
            item_code=it.item.code if it.item else "-",
            quantity=it.quantity,
            unit_price=it.unit_price,
            line_total=it.line_total,
        ))
    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        customer_id=order.customer_id,
        status=order.status,
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        subtotal=order.subtotal,
        shipping_cost=order.shipping_cost,
        tax_amount=order.tax_amount,
        total_amount=order.total_amount,
        shipping_name=order.shipping_name,
        shipping_phone=order.shipping_phone,
        shipping_address=order.shipping_address,
        shipping_city=order.shipping_city,
        shipping_postal_code=order.shipping_postal_code,
        shipping_notes=order.shipping_notes,
        special_instructions=order.special_instructions,
        created_at=order.created_at,
        items=items,
    )

# Create an order from the cart, selected cart lines or a single item
@router.post("/checkout", response_model=CheckoutResponse)
def checkout(
    payload: CheckoutPayload,
    request: Request,
    db: Session = Depends(get_db),
    current_customer: Customer = Depends(get_current_customer),
):
    shipping = ShippingDetails(
        name=payload.shipping_name,
        phone=payload.shipping_phone,
        address=payload.shipping_address,
        city=payload.shipping_city,
        postal_code=payload.shipping_postal_code,
        notes=payload.shipping_notes,
    )
    actor = f"customer:{current_customer.id}"
    try:
        result = order_service.place_order(
            db,
            current_customer.id,
            shipping,
            payload.payment_method,
            CheckoutSource(payload.source),
            cart_item_ids=payload.cart_item_ids,
            item_id=payload.item_id,
            quantity=payload.quantity,
            special_instructions=payload.special_instructions,
        )
    except InventoryError as exc:
        # The sequence is already rolled back; the failure is logged on its own
        write_failure_log(db, actor=actor, action="CHECKOUT", resource="orders",
                          ip=client_ip(request), meta={"source": payload.source, "error": exc.code})
        raise

    write_log(db, actor=actor, action="CHECKOUT", resource="orders",
              status="SUCCESS", ip=client_ip(request),
              meta={"order_id": result.order_id, "order_number": result.order_number, "total": result.total})

    return CheckoutResponse(
        order_id=result.order_id,
        order_number=result.order_number,
        total_amount=result.total,
        payment_method=result.payment_method,
        status=result.status,
    )


# List the customer's own orders
@router.get("", response_model=OrdersPage)
def list_my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_customer: Customer = Depends(get_current_customer),
):
    rows, total = order_service.list_orders(db, customer_id=current_customer.id, page=page, page_size=page_size)
    return {"items": [_order_to_out(o) for o in rows], "total": total, "page": page, "page_size": page_size}


# List all orders for the dashboard
@router.get("/admin", response_model=OrdersPage)
def list_all_orders(
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(*STAFF_ROLES)),
):
    rows, total = order_service.list_orders(db, status=status, page=page, page_size=page_size)
    return {"items": [_order_to_out(o) for o in rows], "total": total, "page": page, "page_size": page_size}


# Get details of one of the customer's orders
@router.get("/{order_id}", response_model=OrderResponse)
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    current_customer: Customer = Depends(get_current_customer),
):
    return _order_to_out(order_service.get_order(db, order_id, customer_id=current_customer.id))


# Move an order through its fulfillment states (staff only)
@router.patch("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: int,
    payload: OrderStatusPatch,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(*STAFF_ROLES)),
):
    order = order_service.change_status(db, order_id, payload.status, staff_id=current_user.id)
    write_log(db, actor=f"staff:{current_user.id}", action="ORDER_STATUS_CHANGE", resource="orders",
              status="SUCCESS", ip=client_ip(request), meta={"order_id": order_id, "new": payload.status})
    return _order_to_out(order_service.get_order(db, order.id))


# Record the payment outcome (staff only)
@router.patch("/{order_id}/payment-status", response_model=OrderResponse)
def update_payment_status(
    order_id: int,
    payload: PaymentStatusPatch,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(*STAFF_ROLES)),
):
    order = order_service.change_payment_status(db, order_id, payload.payment_status)
    write_log(db, actor=f"staff:{current_user.id}", action="ORDER_PAYMENT_STATUS_CHANGE", resource="orders",
              status="SUCCESS", ip=client_ip(request),
              meta={"order_id": order_id, "new": payload.payment_status})
    return _order_to_out(order_service.get_order(db, order.id))
