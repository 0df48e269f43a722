import pytest

from models.cart import CartItem
from models.item import Item
from models.order import Order, OrderItem
from models.stock import StockLog
from services import cart, orders
from services.orders import CheckoutSource, ShippingDetails
from services.pricing import flat_shipping, percent_tax
from utils.errors import (
    EmptyOrder, InsufficientStock, InvalidStatusTransition, ItemInactive, NotFoundError, ValidationError,
)


def _quantities(db, *items):
    db.expire_all()
    return [db.get(Item, item.id).quantity for item in items]


def test_cart_checkout_moves_stock_and_clears_cart(db, make_item, customer, shipping):
    a = make_item(quantity=10, price=100.0)
    b = make_item(quantity=4, price=50.0)
    cart.add_item(db, customer.id, a.id, 2)
    cart.add_item(db, customer.id, b.id, 1)

    result = orders.place_order(db, customer.id, shipping)

    assert result.total == 250
    assert result.status == "pending"
    assert result.order_number.startswith("ORD-")
    assert _quantities(db, a, b) == [8, 3]
    assert db.query(CartItem).count() == 0

    order = orders.get_order(db, result.order_id, customer.id)
    assert {(line.item_id, line.quantity, line.unit_price) for line in order.items} == {
        (a.id, 2, 100.0), (b.id, 1, 50.0),
    }
    assert order.payment_status == "pending"
    assert order.shipping_city == "Bandung"

    entries = db.query(StockLog).filter(StockLog.reference_no == result.order_number).all()
    assert len(entries) == 2
    for entry in entries:
        assert entry.type == "out"
        assert entry.transaction_type == "sale"
        assert entry.current_stock == entry.previous_stock - entry.quantity
        assert entry.created_by == f"customer_{customer.id}"


def test_checkout_uses_live_price_not_snapshot(db, make_item, customer, shipping):
    item = make_item(price=100.0)
    cart.add_item(db, customer.id, item.id, 1)
    db.get(Item, item.id).price = 80.0
    db.commit()

    result = orders.place_order(db, customer.id, shipping)
    assert result.total == 80.0


def test_selected_checkout_keeps_other_lines(db, make_item, customer, shipping):
    a, b = make_item(quantity=5), make_item(quantity=5)
    first = cart.add_item(db, customer.id, a.id, 2)
    cart.add_item(db, customer.id, b.id, 1)

    orders.place_order(db, customer.id, shipping, source=CheckoutSource.SELECTED, cart_item_ids=[first.id])

    remaining = db.query(CartItem).all()
    assert [e.item_id for e in remaining] == [b.id]
    assert _quantities(db, a, b) == [3, 5]


def test_selected_checkout_with_foreign_line(db, make_item, customer, other_customer, shipping):
    item = make_item()
    foreign = cart.add_item(db, other_customer.id, item.id, 1)
    with pytest.raises(NotFoundError):
        orders.place_order(db, customer.id, shipping, source="selected", cart_item_ids=[foreign.id])
    assert _quantities(db, item) == [10]


def test_selected_checkout_without_ids(db, customer, shipping):
    with pytest.raises(EmptyOrder):
        orders.place_order(db, customer.id, shipping, source="selected", cart_item_ids=[])


def test_direct_checkout_leaves_cart_alone(db, make_item, customer, shipping):
    staged, bought = make_item(), make_item(quantity=3, online_price=75.0)
    cart.add_item(db, customer.id, staged.id, 1)

    result = orders.place_order(db, customer.id, shipping, "cash", "direct", item_id=bought.id, quantity=3)

    assert result.total == 225.0
    assert result.payment_method == "cash"
    assert _quantities(db, bought) == [0]
    assert db.query(CartItem).count() == 1


def test_direct_checkout_requires_item_and_quantity(db, customer, shipping):
    with pytest.raises(ValidationError):
        orders.place_order(db, customer.id, shipping, source="direct", item_id=None, quantity=1)


def test_empty_cart_is_rejected(db, customer, shipping):
    with pytest.raises(EmptyOrder):
        orders.place_order(db, customer.id, shipping)
    assert db.query(Order).count() == 0


def test_missing_shipping_fields_are_listed(db, make_item, customer):
    item = make_item()
    cart.add_item(db, customer.id, item.id, 1)
    incomplete = ShippingDetails(name="Siti", phone=" ", address="Jl. Asia Afrika 1", city=None, postal_code="40111")

    with pytest.raises(ValidationError) as exc:
        orders.place_order(db, customer.id, incomplete)
    assert exc.value.extra["missing"] == ["phone", "city"]
    assert _quantities(db, item) == [10]


def test_unknown_payment_method(db, make_item, customer, shipping):
    item = make_item()
    cart.add_item(db, customer.id, item.id, 1)
    with pytest.raises(ValidationError):
        orders.place_order(db, customer.id, shipping, payment_method="crypto")


def test_one_short_line_cancels_whole_order(db, make_item, customer, shipping):
    plenty = make_item(quantity=10)
    scarce = make_item(quantity=3)
    cart.add_item(db, customer.id, plenty.id, 2)
    cart.add_item(db, customer.id, scarce.id, 3)

    # Someone else buys the scarce item after it was staged
    db.get(Item, scarce.id).quantity = 1
    db.commit()

    with pytest.raises(InsufficientStock) as exc:
        orders.place_order(db, customer.id, shipping)

    assert exc.value.item_id == scarce.id
    assert _quantities(db, plenty, scarce) == [10, 1]
    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0
    assert db.query(StockLog).count() == 0
    assert db.query(CartItem).count() == 2


def test_item_withdrawn_after_staging(db, make_item, customer, shipping):
    item = make_item()
    cart.add_item(db, customer.id, item.id, 1)
    db.get(Item, item.id).is_available_online = False
    db.commit()

    with pytest.raises(ItemInactive):
        orders.place_order(db, customer.id, shipping)
    assert db.query(CartItem).count() == 1


def test_second_checkout_of_same_cart_finds_it_empty(db, make_item, customer, shipping):
    item = make_item(quantity=10)
    cart.add_item(db, customer.id, item.id, 4)

    orders.place_order(db, customer.id, shipping)
    with pytest.raises(EmptyOrder):
        orders.place_order(db, customer.id, shipping)

    assert _quantities(db, item) == [6]
    assert db.query(Order).count() == 1


def test_shipping_and_tax_policies_flow_into_order(db, make_item, customer, shipping):
    item = make_item(price=100.0)
    cart.add_item(db, customer.id, item.id, 2)

    result = orders.place_order(
        db, customer.id, shipping,
        shipping_policy=flat_shipping(20), tax_policy=percent_tax(10),
    )
    order = orders.get_order(db, result.order_id)
    assert (order.subtotal, order.shipping_cost, order.tax_amount, order.total_amount) == (200, 20, 20, 240)


def test_orders_are_private_to_their_customer(db, make_item, customer, other_customer, shipping):
    item = make_item()
    cart.add_item(db, customer.id, item.id, 1)
    result = orders.place_order(db, customer.id, shipping)

    with pytest.raises(NotFoundError):
        orders.get_order(db, result.order_id, other_customer.id)
    rows, total = orders.list_orders(db, customer_id=other_customer.id)
    assert (rows, total) == ([], 0)
    rows, total = orders.list_orders(db, customer_id=customer.id)
    assert total == 1


def _place(db, make_item, customer, shipping, quantity=2):
    item = make_item(quantity=10)
    cart.add_item(db, customer.id, item.id, quantity)
    return item, orders.place_order(db, customer.id, shipping)


def test_status_moves_forward(db, make_item, customer, shipping, admin):
    _, result = _place(db, make_item, customer, shipping)
    for status in ("processing", "shipped", "delivered"):
        order = orders.change_status(db, result.order_id, status, admin.id)
        assert order.status == status

    with pytest.raises(InvalidStatusTransition):
        orders.change_status(db, result.order_id, "cancelled", admin.id)


def test_cancel_returns_stock_once(db, make_item, customer, shipping, admin):
    item, result = _place(db, make_item, customer, shipping, quantity=3)
    assert _quantities(db, item) == [7]

    orders.change_status(db, result.order_id, "cancelled", admin.id)
    assert _quantities(db, item) == [10]

    restock = db.query(StockLog).filter(StockLog.transaction_type == "cancel").one()
    assert (restock.type, restock.quantity, restock.previous_stock, restock.current_stock) == ("in", 3, 7, 10)
    assert restock.user_id == admin.id

    with pytest.raises(InvalidStatusTransition):
        orders.change_status(db, result.order_id, "cancelled", admin.id)
    assert _quantities(db, item) == [10]


def test_cannot_skip_ahead(db, make_item, customer, shipping):
    _, result = _place(db, make_item, customer, shipping)
    with pytest.raises(InvalidStatusTransition):
        orders.change_status(db, result.order_id, "delivered")


def test_unknown_status_value(db, make_item, customer, shipping):
    _, result = _place(db, make_item, customer, shipping)
    with pytest.raises(ValidationError):
        orders.change_status(db, result.order_id, "lost")


def test_payment_status_is_settled_once(db, make_item, customer, shipping):
    _, result = _place(db, make_item, customer, shipping)
    order = orders.change_payment_status(db, result.order_id, "paid")
    assert order.payment_status == "paid"
    with pytest.raises(InvalidStatusTransition):
        orders.change_payment_status(db, result.order_id, "failed")


def test_cart_edited_mid_checkout_cancels_order(db, session_factory, make_item, customer, shipping, monkeypatch):
    item = make_item(quantity=10)
    entry = cart.add_item(db, customer.id, item.id, 2)
    entry_id, customer_id = entry.id, customer.id
    real_resolve = orders.resolve_lines

    def resolve_then_edit(*args, **kwargs):
        resolved = real_resolve(*args, **kwargs)
        other = session_factory()
        try:
            cart.update_quantity(other, customer_id, entry_id, 5)
        finally:
            other.close()
        return resolved

    monkeypatch.setattr(orders, "resolve_lines", resolve_then_edit)

    with pytest.raises(ValidationError):
        orders.place_order(db, customer_id, shipping)

    assert _quantities(db, item) == [10]
    assert db.query(Order).count() == 0
    assert db.get(CartItem, entry_id).quantity == 5
