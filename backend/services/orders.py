# backend/services/orders.py
"""
Order fulfillment engine for web checkout, plus the order state machines.

Checkout accepts three sources (the whole cart, selected cart lines, or a
single "buy now" item) and turns each into the same list of OrderLine values
before the commit sequence runs. The sequence itself is one transaction:
stock decrements, the order with its lines, the stock log entries and the
cart cleanup either all persist or none do.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from config import settings
from database import transaction
from models.cart import CartItem
from models.item import Item
from models.order import (
    Order, OrderItem, OrderStatus, PaymentStatus,
    ORDER_STATUS_TRANSITIONS, PAYMENT_STATUS_TRANSITIONS,
)
from models.pos import PaymentMethod
from services import ledger, stock_log
from services.numbering import next_unique_number
from services.pricing import ShippingPolicy, TaxPolicy, calculate_totals, line_total
from utils.errors import (
    EmptyOrder, InvalidStatusTransition, ItemInactive, NotFoundError, ValidationError,
)

logger = logging.getLogger(__name__)


class CheckoutSource(str, enum.Enum):
    CART = "cart"
    SELECTED = "selected"
    DIRECT = "direct"


REQUIRED_SHIPPING_FIELDS = ("name", "phone", "address", "city", "postal_code")


@dataclass(frozen=True)
class ShippingDetails:
    name: Optional[str]
    phone: Optional[str]
    address: Optional[str]
    city: Optional[str]
    postal_code: Optional[str]
    notes: Optional[str] = None


@dataclass(frozen=True)
class OrderLine:
    item_id: int
    quantity: int
    unit_price: float


@dataclass(frozen=True)
class CheckoutResult:
    order_id: int
    order_number: str
    total: float
    status: str
    payment_method: str


def _validate_shipping(shipping: ShippingDetails) -> None:
    missing = [f for f in REQUIRED_SHIPPING_FIELDS if not (getattr(shipping, f) or "").strip()]
    if missing:
        raise ValidationError("All shipping address fields are required", missing=missing)


def _validate_payment_method(payment_method: str) -> str:
    try:
        return PaymentMethod(payment_method).value
    except ValueError:
        raise ValidationError(f"Invalid payment method: {payment_method}")


def _parse_source(source) -> CheckoutSource:
    try:
        return CheckoutSource(source)
    except ValueError:
        raise ValidationError(f"Unknown checkout source: {source}")


def _line_for(db: Session, item_id: int, quantity: int) -> OrderLine:
    item = db.query(Item).filter(Item.id == item_id).first()
    if not item:
        raise NotFoundError("Item not found", item_id=item_id)
    if not item.purchasable_online:
        raise ItemInactive(item.id, item.name)
    # Live price at commit time; the cart snapshot is display only
    return OrderLine(item_id=item.id, quantity=quantity, unit_price=item.sale_price)


def resolve_lines(
    db: Session,
    customer_id: int,
    source: CheckoutSource,
    *,
    cart_item_ids: Optional[Sequence[int]] = None,
    item_id: Optional[int] = None,
    quantity: Optional[int] = None,
) -> Tuple[List[OrderLine], Dict[int, int]]:
    """Return the order lines for a checkout source and the cart entries they consume, with the quantities read."""
    requested: Dict[int, int] = {}
    consumed: Dict[int, int] = {}

    if source == CheckoutSource.DIRECT:
        if item_id is None or quantity is None:
            raise ValidationError("item_id and quantity are required for direct purchase")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError("Quantity must be a positive integer", quantity=quantity)
        requested[item_id] = quantity
    else:
        query = db.query(CartItem).filter(CartItem.customer_id == customer_id)
        if source == CheckoutSource.SELECTED:
            wanted = set(cart_item_ids or [])
            if not wanted:
                raise EmptyOrder("No cart items selected")
            query = query.filter(CartItem.id.in_(wanted))
        entries = query.order_by(CartItem.id).all()

        if source == CheckoutSource.SELECTED:
            missing = wanted - {e.id for e in entries}
            if missing:
                raise NotFoundError("Cart item not found", cart_item_ids=sorted(missing))

        for entry in entries:
            requested[entry.item_id] = requested.get(entry.item_id, 0) + entry.quantity
            consumed[entry.id] = entry.quantity

    if not requested:
        raise EmptyOrder("Cart is empty")

    lines = [_line_for(db, iid, qty) for iid, qty in requested.items()]
    return lines, consumed


def _claim_cart_lines(db: Session, customer_id: int, consumed: Dict[int, int]) -> None:
    """
    Delete the staged lines the order was built from, matching the quantities
    that were read. A concurrent checkout of the same cart finds them gone and a
    concurrent quantity change finds them altered; both roll the order back.
    """
    removed = 0
    for entry_id, quantity in consumed.items():
        removed += db.query(CartItem).filter(
            CartItem.id == entry_id,
            CartItem.customer_id == customer_id,
            CartItem.quantity == quantity,
        ).delete(synchronize_session=False)
    if removed == len(consumed):
        return

    changed = db.query(CartItem.id).filter(
        CartItem.id.in_(list(consumed)), CartItem.customer_id == customer_id
    ).count()
    if changed:
        raise ValidationError("Cart changed during checkout, nothing was ordered", cart_item_ids=sorted(consumed))
    raise EmptyOrder("Cart was already checked out, nothing was ordered")


def place_order(
    db: Session,
    customer_id: int,
    shipping: ShippingDetails,
    payment_method: str = PaymentMethod.BANK_TRANSFER.value,
    source: CheckoutSource = CheckoutSource.CART,
    *,
    cart_item_ids: Optional[Sequence[int]] = None,
    item_id: Optional[int] = None,
    quantity: Optional[int] = None,
    special_instructions: Optional[str] = None,
    shipping_policy: Optional[ShippingPolicy] = None,
    tax_policy: Optional[TaxPolicy] = None,
) -> CheckoutResult:
    _validate_shipping(shipping)
    payment_method = _validate_payment_method(payment_method)
    source = _parse_source(source)

    with transaction(db):
        lines, consumed = resolve_lines(
            db, customer_id, source,
            cart_item_ids=cart_item_ids, item_id=item_id, quantity=quantity,
        )
        by_item = {line.item_id: line for line in lines}

        changes = {}
        for iid in ledger.lock_order(by_item):
            changes[iid] = ledger.try_decrement(db, iid, by_item[iid].quantity)

        totals = calculate_totals(
            ((line.quantity, line.unit_price) for line in lines),
            shipping_policy=shipping_policy,
            tax_policy=tax_policy,
        )
        order_number = next_unique_number(db, Order.order_number, settings.ORDER_NUMBER_PREFIX)

        order = Order(
            order_number=order_number,
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            subtotal=totals.subtotal,
            shipping_cost=totals.shipping,
            tax_amount=totals.tax,
            total_amount=totals.total,
            shipping_name=shipping.name.strip(),
            shipping_phone=shipping.phone.strip(),
            shipping_address=shipping.address.strip(),
            shipping_city=shipping.city.strip(),
            shipping_postal_code=shipping.postal_code.strip(),
            shipping_notes=shipping.notes,
            payment_method=payment_method,
            payment_status=PaymentStatus.PENDING.value,
            special_instructions=special_instructions,
        )
        order.items = [
            OrderItem(
                item_id=line.item_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line_total(line.quantity, line.unit_price),
            )
            for line in lines
        ]
        db.add(order)
        db.flush()

        for iid in ledger.lock_order(by_item):
            stock_log.append(
                db, changes[iid],
                type="out",
                transaction_type="sale",
                reference_no=order_number,
                notes=f"Online order #{order_number}",
                created_by=f"customer_{customer_id}",
            )

        if consumed:
            _claim_cart_lines(db, customer_id, consumed)

        result = CheckoutResult(
            order_id=order.id,
            order_number=order_number,
            total=totals.total,
            status=order.status,
            payment_method=payment_method,
        )

    logger.info("Order %s placed by customer %s, total %.2f", result.order_number, customer_id, result.total)
    return result


def get_order(db: Session, order_id: int, customer_id: Optional[int] = None) -> Order:
    """Fetch an order with its lines; with customer_id set, only that customer's orders match."""
    query = db.query(Order).options(joinedload(Order.items).joinedload(OrderItem.item)).filter(Order.id == order_id)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)
    order = query.first()
    if not order:
        raise NotFoundError("Order not found", order_id=order_id)
    return order


def list_orders(
    db: Session,
    *,
    customer_id: Optional[int] = None,
    status: Optional[str] = None,
    page: int = 1,
    page_size: int = 10,
) -> Tuple[List[Order], int]:
    query = db.query(Order)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)
    if status:
        query = query.filter(Order.status == status)
    total = query.count()
    rows = (
        query.options(joinedload(Order.items).joinedload(OrderItem.item))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total


def _parse(enum_cls, value: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Unknown status: {value}")


def _claim_transition(db: Session, order_id: int, column, current, new, transitions) -> None:
    if new not in transitions.get(current, set()):
        raise InvalidStatusTransition(f"Cannot change status from {current.value} to {new.value}")
    # Conditional write so two concurrent changes cannot both start from `current`
    stmt = (
        update(Order)
        .where(Order.id == order_id, column == current.value)
        .values({column.key: new.value})
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount != 1:
        raise InvalidStatusTransition(f"Order {order_id} changed concurrently, reload and retry")


def _restock(db: Session, order: Order, staff_id: Optional[int]) -> None:
    quantities: Dict[int, int] = {}
    for line in order.items:
        quantities[line.item_id] = quantities.get(line.item_id, 0) + line.quantity
    for iid in ledger.lock_order(quantities):
        change = ledger.increment(db, iid, quantities[iid])
        stock_log.append(
            db, change,
            type="in",
            transaction_type="cancel",
            reference_no=order.order_number,
            notes=f"Cancelled order #{order.order_number}",
            user_id=staff_id,
            created_by=f"staff_{staff_id}" if staff_id else None,
        )


def change_status(db: Session, order_id: int, new_status: str, staff_id: Optional[int] = None) -> Order:
    new = _parse(OrderStatus, new_status)
    with transaction(db):
        order = get_order(db, order_id)
        current = OrderStatus(order.status)
        _claim_transition(db, order_id, Order.status, current, new, ORDER_STATUS_TRANSITIONS)
        if new == OrderStatus.CANCELLED:
            _restock(db, order, staff_id)
    db.refresh(order)
    logger.info("Order %s status %s -> %s", order.order_number, current.value, new.value)
    return order


def change_payment_status(db: Session, order_id: int, new_status: str) -> Order:
    new = _parse(PaymentStatus, new_status)
    with transaction(db):
        order = get_order(db, order_id)
        current = PaymentStatus(order.payment_status)
        _claim_transition(db, order_id, Order.payment_status, current, new, PAYMENT_STATUS_TRANSITIONS)
    db.refresh(order)
    logger.info("Order %s payment %s -> %s", order.order_number, current.value, new.value)
    return order
