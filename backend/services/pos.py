# backend/services/pos.py
"""
POS transaction engine for counter sales.

Same ledger discipline as web checkout, without a cart: the cashier submits
the lines, payment is settled on the spot and the transaction is written
directly in its final `completed` state, or not at all.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session, joinedload

from config import settings
from database import transaction
from models.customers import Customer
from models.item import Item
from models.pos import PaymentMethod, POSTransaction, POSTransactionItem
from services import ledger, stock_log
from services.numbering import next_unique_number
from services.pricing import as_number, calculate_totals, line_total, no_charge
from utils.errors import (
    EmptyOrder, InsufficientStock, ItemInactive, NotFoundError, ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class POSLine:
    item_id: int
    quantity: int
    unit_price: Optional[float] = None


@dataclass
class POSResult:
    transaction_id: int
    transaction_number: str
    total: float
    paid_amount: float
    change: float
    receipt: Dict[str, Any] = field(default_factory=dict)


def _merge_lines(lines: Sequence[POSLine]) -> Dict[int, POSLine]:
    merged: Dict[int, POSLine] = {}
    for line in lines:
        if not isinstance(line.quantity, int) or isinstance(line.quantity, bool) or line.quantity < 1:
            raise ValidationError("Quantity must be a positive integer", item_id=line.item_id)
        if line.unit_price is not None and as_number(line.unit_price) < 0:
            raise ValidationError("Unit price cannot be negative", item_id=line.item_id)

        seen = merged.get(line.item_id)
        if seen is None:
            merged[line.item_id] = line
            continue
        if seen.unit_price != line.unit_price:
            raise ValidationError("Conflicting prices for the same item", item_id=line.item_id)
        merged[line.item_id] = POSLine(line.item_id, seen.quantity + line.quantity, line.unit_price)
    return merged


def _load_items(db: Session, lines: Dict[int, POSLine]) -> Dict[int, Item]:
    items = {item.id: item for item in db.query(Item).filter(Item.id.in_(list(lines))).all()}
    for iid in lines:
        item = items.get(iid)
        if item is None:
            raise NotFoundError(f"Item with ID {iid} not found", item_id=iid)
        if not item.is_active:
            raise ItemInactive(item.id, item.name)
    return items


def _precheck(items: Dict[int, Item], lines: Dict[int, POSLine]) -> None:
    """Read-only availability check; the ledger re-checks atomically on commit."""
    for iid, line in lines.items():
        item = items[iid]
        if item.quantity < line.quantity:
            raise InsufficientStock(item.id, line.quantity, item.quantity, item.name)


def _settle(payment_method: PaymentMethod, total: float, paid_amount: Optional[float]) -> Tuple[float, float]:
    if payment_method != PaymentMethod.CASH:
        # Card and transfer payments are always taken for the exact total
        return total, 0.0
    if paid_amount is None:
        raise ValidationError("Paid amount is required for cash payments")
    paid = as_number(paid_amount)
    if paid < total:
        raise ValidationError("Insufficient payment amount", total=total, paid_amount=paid)
    return paid, round(paid - total, 2)


def create_transaction(
    db: Session,
    cashier_id: int,
    lines: Sequence[POSLine],
    payment_method: str,
    paid_amount: Optional[float] = None,
    customer_id: Optional[int] = None,
) -> POSResult:
    if not lines:
        raise EmptyOrder("Items required")
    try:
        method = PaymentMethod(payment_method)
    except ValueError:
        raise ValidationError("Invalid payment method")
    merged = _merge_lines(lines)
    if customer_id is not None and db.query(Customer.id).filter(Customer.id == customer_id).first() is None:
        raise NotFoundError("Customer not found", customer_id=customer_id)

    with transaction(db):
        items = _load_items(db, merged)
        prices = {
            iid: as_number(line.unit_price) if line.unit_price is not None else items[iid].price
            for iid, line in merged.items()
        }
        totals = calculate_totals(
            ((merged[iid].quantity, prices[iid]) for iid in merged),
            shipping_policy=no_charge,
            tax_policy=no_charge,
        )
        # Payment is settled before stock is looked at
        paid, change = _settle(method, totals.total, paid_amount)
        _precheck(items, merged)

        number = next_unique_number(db, POSTransaction.transaction_number, settings.POS_NUMBER_PREFIX)
        txn = POSTransaction(
            transaction_number=number,
            customer_id=customer_id,
            user_id=cashier_id,
            payment_method=method.value,
            total_amount=totals.total,
            paid_amount=paid,
            change_amount=change,
            status="completed",
            created_at=datetime.now(timezone.utc),
        )
        db.add(txn)
        db.flush()

        receipt_items = []
        for iid in ledger.lock_order(merged):
            quantity = merged[iid].quantity
            db.add(POSTransactionItem(
                transaction_id=txn.id,
                item_id=iid,
                quantity=quantity,
                unit_price=prices[iid],
                total_price=line_total(quantity, prices[iid]),
            ))
            stock_change = ledger.try_decrement(db, iid, quantity)
            stock_log.append(
                db, stock_change,
                type="out",
                transaction_type="pos",
                reference_no=number,
                notes=f"POS Sale - {number}",
                user_id=cashier_id,
                created_by=f"staff_{cashier_id}",
            )
            receipt_items.append({
                "item_id": iid,
                "code": items[iid].code,
                "name": items[iid].name,
                "quantity": quantity,
                "price": prices[iid],
                "total": line_total(quantity, prices[iid]),
            })

        result = POSResult(
            transaction_id=txn.id,
            transaction_number=number,
            total=totals.total,
            paid_amount=paid,
            change=change,
            receipt={
                "transaction_number": number,
                "date": txn.created_at,
                "items": receipt_items,
                "total": totals.total,
                "paid_amount": paid,
                "change": change,
                "payment_method": method.value,
            },
        )

    logger.info("POS transaction %s by cashier %s, total %.2f", number, cashier_id, result.total)
    return result


def get_transaction(db: Session, transaction_id: int) -> POSTransaction:
    txn = (
        db.query(POSTransaction)
        .options(joinedload(POSTransaction.items).joinedload(POSTransactionItem.item))
        .filter(POSTransaction.id == transaction_id)
        .first()
    )
    if not txn:
        raise NotFoundError("Transaction not found", transaction_id=transaction_id)
    return txn


def list_transactions(db: Session, page: int = 1, limit: int = 20) -> Tuple[List[POSTransaction], int]:
    query = db.query(POSTransaction)
    total = query.count()
    rows = (
        query.options(joinedload(POSTransaction.customer), joinedload(POSTransaction.cashier))
        .order_by(POSTransaction.created_at.desc(), POSTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total
