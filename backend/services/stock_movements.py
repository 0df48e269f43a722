# backend/services/stock_movements.py
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from database import transaction
from models.stock import StockLog
from services import ledger, stock_log
from utils.errors import EmptyOrder, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryLine:
    item_id: int
    quantity: int


def adjust_stock(
    db: Session,
    item_id: int,
    type: str,
    quantity: int,
    staff_id: int,
    notes: Optional[str] = None,
    reference_no: Optional[str] = None,
) -> StockLog:
    """
    Manual stock movement from the dashboard.

    `in` and `out` move `quantity` units; `adjustment` records a stock take
    where `quantity` is the counted on-hand amount.
    """
    with transaction(db):
        if type == "in":
            change = ledger.increment(db, item_id, quantity)
        elif type == "out":
            change = ledger.try_decrement(db, item_id, quantity)
        elif type == "adjustment":
            change = ledger.set_quantity(db, item_id, quantity)
        else:
            raise ValidationError("Invalid transaction type", type=type)

        entry = stock_log.append(
            db, change,
            type=type,
            transaction_type="manual",
            reference_no=reference_no,
            notes=notes,
            user_id=staff_id,
            created_by=f"staff_{staff_id}",
        )
    logger.info("Stock %s on item %s: %s -> %s", type, item_id, change.previous, change.current)
    return entry


def receive_delivery(
    db: Session,
    lines: Sequence[DeliveryLine],
    staff_id: int,
    reason: Optional[str] = None,
    reference_no: Optional[str] = None,
) -> List[StockLog]:
    """Book a supplier delivery: every line goes in, or none does."""
    quantities = {}
    for line in lines:
        if line.quantity <= 0:
            continue
        quantities[line.item_id] = quantities.get(line.item_id, 0) + line.quantity
    if not quantities:
        raise EmptyOrder("Delivery has no items")

    entries = []
    with transaction(db):
        for iid in ledger.lock_order(quantities):
            change = ledger.increment(db, iid, quantities[iid])
            entries.append(stock_log.append(
                db, change,
                type="in",
                transaction_type="delivery",
                reference_no=reference_no,
                notes=reason or "Goods delivery",
                user_id=staff_id,
                created_by=f"staff_{staff_id}",
            ))
    logger.info("Delivery booked by staff %s: %s lines", staff_id, len(entries))
    return entries
