# backend/services/cart.py
"""
Cart store: per-customer staging of items before checkout.

Quantities are checked against stock when staged, but the cart is never
trusted at checkout; the fulfillment engine re-validates every line against
the ledger.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from database import transaction
from models.cart import CartItem
from models.item import Item
from services import ledger
from services.pricing import Totals, calculate_totals, line_total
from utils.errors import (
    InsufficientStock, ItemInactive, NotFoundError, TransactionFailure, ValidationError,
)

logger = logging.getLogger(__name__)

# Attempts of an add; a second one covers a concurrent first insert of the same line
ADD_ATTEMPTS = 2


@dataclass(frozen=True)
class CartLine:
    id: int
    item_id: int
    code: str
    name: str
    category: Optional[str]
    unit: str
    quantity: int
    price: float
    live_price: float
    line_total: float
    stock_quantity: int
    low_stock: bool
    available: bool


@dataclass(frozen=True)
class CartSnapshot:
    lines: List[CartLine]
    totals: Totals


def _get_item(db: Session, item_id: int) -> Item:
    item = db.query(Item).filter(Item.id == item_id).first()
    if not item:
        raise NotFoundError("Item not found", item_id=item_id)
    return item


def _owned_entry(db: Session, customer_id: int, entry_id: int) -> CartItem:
    # Entries of other customers are reported exactly like missing ones
    entry = db.query(CartItem).filter(CartItem.id == entry_id, CartItem.customer_id == customer_id).first()
    if not entry:
        raise NotFoundError("Cart item not found", cart_item_id=entry_id)
    return entry


def _check_quantity(quantity, minimum: int = 1) -> None:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < minimum:
        raise ValidationError(f"Quantity must be an integer of at least {minimum}", quantity=quantity)


def _merge_into_line(db: Session, customer_id: int, item: Item, quantity: int) -> bool:
    """Add to an existing line in one guarded write; False when the line is missing or stock is short."""
    on_hand = select(Item.quantity).where(Item.id == item.id).scalar_subquery()
    stmt = (
        update(CartItem)
        .where(
            CartItem.customer_id == customer_id,
            CartItem.item_id == item.id,
            CartItem.quantity + quantity <= on_hand,
        )
        .values(quantity=CartItem.quantity + quantity, price_snapshot=item.sale_price)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def _find_line(db: Session, customer_id: int, item_id: int) -> Optional[CartItem]:
    return (
        db.query(CartItem)
        .populate_existing()
        .filter(CartItem.customer_id == customer_id, CartItem.item_id == item_id)
        .first()
    )


def _add_once(db: Session, customer_id: int, item_id: int, quantity: int) -> CartItem:
    with transaction(db):
        item = _get_item(db, item_id)
        if not item.purchasable_online:
            raise ItemInactive(item.id, item.name)

        # Merged quantity is validated as a whole, not just the added part
        if _merge_into_line(db, customer_id, item, quantity):
            return _find_line(db, customer_id, item.id)

        entry = _find_line(db, customer_id, item.id)
        if entry is not None:
            raise InsufficientStock(
                item.id, entry.quantity + quantity, ledger.current_quantity(db, item.id), item.name
            )
        if quantity > item.quantity:
            raise InsufficientStock(item.id, quantity, item.quantity, item.name)

        entry = CartItem(
            customer_id=customer_id,
            item_id=item.id,
            quantity=quantity,
            price_snapshot=item.sale_price,
        )
        db.add(entry)
        db.flush()
    return entry


def add_item(db: Session, customer_id: int, item_id: int, quantity: int) -> CartItem:
    _check_quantity(quantity)
    for attempt in range(1, ADD_ATTEMPTS + 1):
        try:
            return _add_once(db, customer_id, item_id, quantity)
        except TransactionFailure as exc:
            if attempt == ADD_ATTEMPTS or not isinstance(exc.__cause__, IntegrityError):
                raise
            logger.info("Cart line for item %s of customer %s created concurrently, merging", item_id, customer_id)


def update_quantity(db: Session, customer_id: int, entry_id: int, quantity: int) -> Optional[CartItem]:
    """Set a line's quantity; zero removes the line and returns None."""
    _check_quantity(quantity, minimum=0)
    with transaction(db):
        entry = _owned_entry(db, customer_id, entry_id)
        if quantity == 0:
            db.delete(entry)
            return None

        item = _get_item(db, entry.item_id)
        if quantity > item.quantity:
            raise InsufficientStock(item.id, quantity, item.quantity, item.name)
        entry.quantity = quantity
    return entry


def remove_item(db: Session, customer_id: int, entry_id: int) -> None:
    with transaction(db):
        db.delete(_owned_entry(db, customer_id, entry_id))


def clear(db: Session, customer_id: int) -> int:
    with transaction(db):
        removed = db.query(CartItem).filter(CartItem.customer_id == customer_id).delete(synchronize_session=False)
    return removed


def snapshot(db: Session, customer_id: int) -> CartSnapshot:
    """Read model of the cart joined with live item data. Display only."""
    entries = (
        db.query(CartItem)
        .options(joinedload(CartItem.item))
        .filter(CartItem.customer_id == customer_id)
        .order_by(CartItem.created_at.desc(), CartItem.id.desc())
        .all()
    )

    lines = []
    for entry in entries:
        item = entry.item
        available = bool(item and item.purchasable_online and item.quantity > 0)
        lines.append(CartLine(
            id=entry.id,
            item_id=entry.item_id,
            code=item.code if item else "",
            name=item.name if item else "",
            category=item.category if item else None,
            unit=item.unit if item else "pcs",
            quantity=entry.quantity,
            price=entry.price_snapshot,
            live_price=item.sale_price if item else entry.price_snapshot,
            line_total=line_total(entry.quantity, entry.price_snapshot),
            stock_quantity=item.quantity if item else 0,
            low_stock=bool(item and item.quantity <= item.min_stock),
            available=available,
        ))

    totals = calculate_totals((line.quantity, line.price) for line in lines if line.available)
    return CartSnapshot(lines=lines, totals=totals)
