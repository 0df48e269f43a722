# backend/routes/cart.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from utils.tokenJWT import get_current_customer
from utils.audit import write_log, client_ip
from models.customers import Customer
from services import cart as cart_service
from schemas.cart import CartAddItem, CartUpdateItem, CartOut, CartItemOut, CartTotals

router = APIRouter(prefix="/cart", tags=["Cart"])

def _actor(customer: Customer) -> str:
    return f"customer:{customer.id}"

def _cart_to_out(db: Session, customer_id: int) -> CartOut:
    snap = cart_service.snapshot(db, customer_id)
    return CartOut(
        items=[CartItemOut.model_validate(line) for line in snap.lines],
        totals=CartTotals.model_validate(snap.totals),
    )

@router.get("", response_model=CartOut)
def get_cart(
    db: Session = Depends(get_db),
    current_customer: Customer = Depends(get_current_customer),
):
    return _cart_to_out(db, current_customer.id)

@router.post("/add", response_model=CartOut)
def add_to_cart(
    payload: CartAddItem,
    request: Request,
    db: Session = Depends(get_db),
    current_customer: Customer = Depends(get_current_customer),
):
    entry = cart_service.add_item(db, current_customer.id, payload.item_id, payload.quantity)
    out = _cart_to_out(db, current_customer.id)

    write_log(
        db,
        actor=_actor(current_customer),
        action="CART_ADD",
        resource="cart",
        status="SUCCESS",
        ip=client_ip(request),
        meta={"item_id": payload.item_id, "quantity": payload.quantity, "line_quantity": entry.quantity,
              "total": out.totals.total},
    )
    return out

@router.put("/items/{cart_item_id}", response_model=CartOut)
def update_cart_item(
    cart_item_id: int,
    payload: CartUpdateItem,
    request: Request,
    db: Session = Depends(get_db),
    current_customer: Customer = Depends(get_current_customer),
):
    cart_service.update_quantity(db, current_customer.id, cart_item_id, payload.quantity)
    out = _cart_to_out(db, current_customer.id)

    write_log(
        db,
        actor=_actor(current_customer),
        action="CART_UPDATE",
        resource="cart",
        status="SUCCESS",
        ip=client_ip(request),
        meta={"cart_item_id": cart_item_id, "quantity": payload.quantity, "total": out.totals.total},
    )
    return out

@router.delete("/items/{cart_item_id}", response_model=CartOut)
def delete_cart_item(
    cart_item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_customer: Customer = Depends(get_current_customer),
):
    cart_service.remove_item(db, current_customer.id, cart_item_id)
    out = _cart_to_out(db, current_customer.id)

    write_log(
        db,
        actor=_actor(current_customer),
        action="CART_DELETE",
        resource="cart",
        status="SUCCESS",
        ip=client_ip(request),
        meta={"cart_item_id": cart_item_id, "cart_items": len(out.items)},
    )
    return out

@router.delete("", response_model=CartOut)
def clear_cart(
    request: Request,
    db: Session = Depends(get_db),
    current_customer: Customer = Depends(get_current_customer),
):
    removed = cart_service.clear(db, current_customer.id)
    write_log(
        db,
        actor=_actor(current_customer),
        action="CART_CLEAR",
        resource="cart",
        status="SUCCESS",
        ip=client_ip(request),
        meta={"removed": removed},
    )
    return _cart_to_out(db, current_customer.id)
