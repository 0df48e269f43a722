import pytest

from models.item import Item
from models.pos import POSTransaction, POSTransactionItem
from models.stock import StockLog
from services import pos
from services.pos import POSLine
from utils.errors import (
    EmptyOrder, InsufficientStock, ItemInactive, NotFoundError, ValidationError,
)


def _quantity(db, item):
    db.expire_all()
    return db.get(Item, item.id).quantity


def test_cash_sale_returns_change(db, make_item, cashier):
    item = make_item(quantity=10, price=7500.0)
    result = pos.create_transaction(db, cashier.id, [POSLine(item.id, 2)], "cash", paid_amount=20000)

    assert result.total == 15000
    assert result.paid_amount == 20000
    assert result.change == 5000
    assert result.transaction_number.startswith("POS-")
    assert _quantity(db, item) == 8

    receipt = result.receipt
    assert receipt["change"] == 5000
    assert receipt["payment_method"] == "cash"
    assert receipt["items"] == [{
        "item_id": item.id, "code": item.code, "name": item.name,
        "quantity": 2, "price": 7500.0, "total": 15000.0,
    }]

    txn = pos.get_transaction(db, result.transaction_id)
    assert txn.status == "completed"
    assert txn.user_id == cashier.id
    assert [(line.item_id, line.quantity) for line in txn.items] == [(item.id, 2)]

    entry = db.query(StockLog).filter(StockLog.reference_no == result.transaction_number).one()
    assert (entry.type, entry.transaction_type, entry.quantity) == ("out", "pos", 2)
    assert entry.notes == f"POS Sale - {result.transaction_number}"


def test_card_sale_ignores_tendered_amount(db, make_item, cashier):
    item = make_item(price=12000.0)
    result = pos.create_transaction(db, cashier.id, [POSLine(item.id, 1)], "card", paid_amount=50000)
    assert result.paid_amount == 12000
    assert result.change == 0


def test_transfer_sale_without_paid_amount(db, make_item, cashier):
    item = make_item(price=12000.0)
    result = pos.create_transaction(db, cashier.id, [POSLine(item.id, 1)], "bank_transfer")
    assert (result.paid_amount, result.change) == (12000, 0)


def test_cashier_price_overrides_list_price(db, make_item, cashier):
    item = make_item(price=100.0)
    result = pos.create_transaction(
        db, cashier.id, [POSLine(item.id, 3, unit_price=90.0)], "cash", paid_amount=270,
    )
    assert result.total == 270
    assert result.change == 0


def test_repeated_item_lines_are_merged(db, make_item, cashier):
    item = make_item(quantity=5, price=10.0)
    result = pos.create_transaction(db, cashier.id, [POSLine(item.id, 2), POSLine(item.id, 3)], "card")
    assert result.total == 50
    assert _quantity(db, item) == 0
    assert db.query(POSTransactionItem).count() == 1


def test_conflicting_prices_for_same_item(db, make_item, cashier):
    item = make_item()
    lines = [POSLine(item.id, 1, 10.0), POSLine(item.id, 1, 12.0)]
    with pytest.raises(ValidationError):
        pos.create_transaction(db, cashier.id, lines, "card")


def test_cash_short_of_total(db, make_item, cashier):
    item = make_item(price=7500.0)
    with pytest.raises(ValidationError) as exc:
        pos.create_transaction(db, cashier.id, [POSLine(item.id, 2)], "cash", paid_amount=10000)
    assert exc.value.message == "Insufficient payment amount"
    assert _quantity(db, item) == 10
    assert db.query(POSTransaction).count() == 0


def test_cash_requires_paid_amount(db, make_item, cashier):
    item = make_item()
    with pytest.raises(ValidationError):
        pos.create_transaction(db, cashier.id, [POSLine(item.id, 1)], "cash")


def test_invalid_payment_method(db, make_item, cashier):
    item = make_item()
    with pytest.raises(ValidationError):
        pos.create_transaction(db, cashier.id, [POSLine(item.id, 1)], "voucher")


def test_no_lines(db, cashier):
    with pytest.raises(EmptyOrder):
        pos.create_transaction(db, cashier.id, [], "cash", paid_amount=0)


def test_unknown_item_and_customer(db, make_item, cashier):
    with pytest.raises(NotFoundError):
        pos.create_transaction(db, cashier.id, [POSLine(999, 1)], "card")
    item = make_item()
    with pytest.raises(NotFoundError):
        pos.create_transaction(db, cashier.id, [POSLine(item.id, 1)], "card", customer_id=999)


def test_inactive_item(db, make_item, cashier):
    item = make_item(is_active=False)
    with pytest.raises(ItemInactive):
        pos.create_transaction(db, cashier.id, [POSLine(item.id, 1)], "card")


def test_item_hidden_online_still_sells_at_counter(db, make_item, cashier):
    item = make_item(is_available_online=False)
    pos.create_transaction(db, cashier.id, [POSLine(item.id, 1)], "card")
    assert _quantity(db, item) == 9


def test_short_line_rolls_back_whole_sale(db, make_item, cashier):
    a = make_item(quantity=10, price=10.0)
    b = make_item(quantity=1, price=10.0)
    with pytest.raises(InsufficientStock):
        pos.create_transaction(db, cashier.id, [POSLine(a.id, 2), POSLine(b.id, 2)], "card")

    assert _quantity(db, a) == 10
    assert _quantity(db, b) == 1
    assert db.query(POSTransaction).count() == 0
    assert db.query(POSTransactionItem).count() == 0
    assert db.query(StockLog).count() == 0


def test_list_transactions_newest_first(db, make_item, cashier, customer):
    item = make_item(quantity=10, price=5.0)
    first = pos.create_transaction(db, cashier.id, [POSLine(item.id, 1)], "card")
    second = pos.create_transaction(db, cashier.id, [POSLine(item.id, 1)], "card", customer_id=customer.id)

    rows, total = pos.list_transactions(db, page=1, limit=1)
    assert total == 2
    assert [row.id for row in rows] == [second.transaction_id]
    rows, _ = pos.list_transactions(db, page=2, limit=1)
    assert [row.id for row in rows] == [first.transaction_id]


def test_short_cash_is_reported_before_short_stock(db, make_item, cashier):
    item = make_item(quantity=1, price=100.0)
    with pytest.raises(ValidationError) as exc:
        pos.create_transaction(db, cashier.id, [POSLine(item.id, 5)], "cash", paid_amount=10)
    assert exc.value.message == "Insufficient payment amount"
    assert _quantity(db, item) == 1
