# backend/services/stock_log.py
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from models.stock import StockLog
from services.ledger import StockChange

MOVEMENT_TYPES = ("in", "out", "adjustment")


def append(
    db: Session,
    change: StockChange,
    *,
    type: str,
    transaction_type: str,
    reference_no: Optional[str] = None,
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
    created_by: Optional[str] = None,
) -> StockLog:
    """
    Insert one audit entry for a ledger change.

    Must run inside the same transaction as the ledger write, so a failed
    insert rolls the stock change back with it.
    """
    if type not in MOVEMENT_TYPES:
        raise ValueError(f"Unknown stock movement type: {type}")

    quantity = abs(change.delta) if type in ("in", "out") else change.delta
    entry = StockLog(
        item_id=change.item_id,
        type=type,
        transaction_type=transaction_type,
        quantity=quantity,
        previous_stock=change.previous,
        current_stock=change.current,
        notes=notes,
        reference_no=reference_no,
        user_id=user_id,
        created_by=created_by,
    )
    db.add(entry)
    db.flush()
    return entry


def list_entries(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    item_id: Optional[int] = None,
    type: Optional[str] = None,
    reference_no: Optional[str] = None,
) -> Tuple[List[StockLog], int]:
    query = db.query(StockLog)
    if item_id is not None:
        query = query.filter(StockLog.item_id == item_id)
    if type:
        query = query.filter(StockLog.type == type)
    if reference_no:
        query = query.filter(StockLog.reference_no == reference_no)

    total = query.count()
    rows = (
        query.options(joinedload(StockLog.item), joinedload(StockLog.user))
        .order_by(StockLog.created_at.desc(), StockLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total
