# backend/services/ledger.py
"""
Stock ledger: the only code that writes Item.quantity.

Every write is a single conditional UPDATE evaluated by the database, never a
read followed by an unconditional write. On PostgreSQL the updated row stays
locked until the surrounding transaction ends; on SQLite the first UPDATE takes
the database write lock for the rest of the transaction. Callers touching
several items go through them in `lock_order` to keep lock acquisition
consistent across concurrent sequences.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from models.item import Item
from utils.errors import InsufficientStock, NotFoundError, TransactionFailure, ValidationError

logger = logging.getLogger(__name__)

# Compare-and-set retries for absolute adjustments
SET_QUANTITY_ATTEMPTS = 5


@dataclass(frozen=True)
class StockChange:
    item_id: int
    previous: int
    current: int

    @property
    def delta(self) -> int:
        return self.current - self.previous


def lock_order(item_ids: Iterable[int]) -> List[int]:
    return sorted(set(item_ids))


def _read_quantity(db: Session, item_id: int) -> int:
    quantity = db.execute(select(Item.quantity).where(Item.id == item_id)).scalar_one_or_none()
    if quantity is None:
        raise NotFoundError(f"Item {item_id} not found", item_id=item_id)
    return quantity


def current_quantity(db: Session, item_id: int) -> int:
    """Read-only check of the on-hand quantity; not a reservation."""
    return _read_quantity(db, item_id)


def _check_amount(quantity: int) -> None:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer", quantity=quantity)


def try_decrement(db: Session, item_id: int, quantity: int) -> StockChange:
    """Take `quantity` units off the item if, and only if, that many are on hand."""
    _check_amount(quantity)
    stmt = (
        update(Item)
        .where(Item.id == item_id, Item.quantity >= quantity)
        .values(quantity=Item.quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount != 1:
        row = db.execute(select(Item.name, Item.quantity).where(Item.id == item_id)).first()
        if row is None:
            raise NotFoundError(f"Item {item_id} not found", item_id=item_id)
        logger.warning("Decrement of item %s by %s refused, %s on hand", item_id, quantity, row.quantity)
        raise InsufficientStock(item_id, quantity, row.quantity, row.name)

    current = _read_quantity(db, item_id)
    return StockChange(item_id=item_id, previous=current + quantity, current=current)


def increment(db: Session, item_id: int, quantity: int) -> StockChange:
    _check_amount(quantity)
    stmt = (
        update(Item)
        .where(Item.id == item_id)
        .values(quantity=Item.quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount != 1:
        raise NotFoundError(f"Item {item_id} not found", item_id=item_id)

    current = _read_quantity(db, item_id)
    return StockChange(item_id=item_id, previous=current - quantity, current=current)


def set_quantity(db: Session, item_id: int, counted: int) -> StockChange:
    """Overwrite the counter with a physically counted value (stock take)."""
    if not isinstance(counted, int) or isinstance(counted, bool) or counted < 0:
        raise ValidationError("Counted quantity must be a non-negative integer", quantity=counted)

    for _ in range(SET_QUANTITY_ATTEMPTS):
        previous = _read_quantity(db, item_id)
        stmt = (
            update(Item)
            .where(Item.id == item_id, Item.quantity == previous)
            .values(quantity=counted)
            .execution_options(synchronize_session=False)
        )
        if db.execute(stmt).rowcount == 1:
            return StockChange(item_id=item_id, previous=previous, current=counted)
        logger.info("Item %s changed while adjusting, retrying", item_id)

    raise TransactionFailure(f"Item {item_id} kept changing during adjustment, try again")
