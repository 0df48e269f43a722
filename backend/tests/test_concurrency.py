"""
Race tests: several threads, each with its own session, hit the same stock
at the same moment. The database must serialize them so that stock never
goes negative and every successful sale is fully recorded.

Ids are read in the main thread; ORM objects of the fixture session must not
be touched from the workers.
"""
import threading

from models.cart import CartItem
from models.item import Item
from models.order import Order
from models.pos import POSTransaction
from models.stock import StockLog
from services import cart, orders, pos
from services.pos import POSLine
from utils.errors import InsufficientStock


def _run_together(session_factory, *jobs):
    barrier = threading.Barrier(len(jobs))
    outcomes = [None] * len(jobs)

    def worker(index, job):
        session = session_factory()
        try:
            barrier.wait()
            outcomes[index] = job(session)
        except Exception as exc:
            outcomes[index] = exc
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(i, job)) for i, job in enumerate(jobs)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


def _quantity(db, item_id):
    db.expire_all()
    return db.get(Item, item_id).quantity


def test_two_checkouts_for_last_units(db, session_factory, make_item, customer, other_customer, shipping):
    item_id = make_item(quantity=5).id

    def buy(customer_id):
        return lambda session: orders.place_order(
            session, customer_id, shipping, source="direct", item_id=item_id, quantity=3,
        )

    outcomes = _run_together(session_factory, buy(customer.id), buy(other_customer.id))

    winners = [o for o in outcomes if isinstance(o, orders.CheckoutResult)]
    losers = [o for o in outcomes if isinstance(o, InsufficientStock)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert _quantity(db, item_id) == 2
    assert db.query(Order).count() == 1
    assert db.query(StockLog).filter(StockLog.item_id == item_id).count() == 1


def test_counter_sale_and_web_order_share_stock(db, session_factory, make_item, customer, cashier, shipping):
    item_id = make_item(quantity=3, price=10.0).id
    customer_id, cashier_id = customer.id, cashier.id

    def web(session):
        return orders.place_order(session, customer_id, shipping, source="direct", item_id=item_id, quantity=2)

    def counter(session):
        return pos.create_transaction(session, cashier_id, [POSLine(item_id, 2)], "card")

    outcomes = _run_together(session_factory, web, counter)

    assert sum(isinstance(o, InsufficientStock) for o in outcomes) == 1
    assert _quantity(db, item_id) == 1
    assert db.query(Order).count() + db.query(POSTransaction).count() == 1

    entry = db.query(StockLog).filter(StockLog.item_id == item_id).one()
    assert (entry.previous_stock, entry.current_stock) == (3, 1)


def test_overlapping_sales_in_opposite_item_order(db, session_factory, make_item, cashier):
    a = make_item(quantity=10, price=10.0).id
    b = make_item(quantity=10, price=10.0).id
    cashier_id = cashier.id

    def sale(first, second):
        return lambda session: pos.create_transaction(
            session, cashier_id, [POSLine(first, 1), POSLine(second, 1)], "card",
        )

    outcomes = _run_together(session_factory, sale(a, b), sale(b, a), sale(a, b), sale(b, a))

    assert all(isinstance(o, pos.POSResult) for o in outcomes), outcomes
    assert _quantity(db, a) == 6
    assert _quantity(db, b) == 6
    assert db.query(StockLog).count() == 8


def test_many_buyers_never_oversell(db, session_factory, make_item, customer, shipping):
    item_id = make_item(quantity=4).id
    customer_id = customer.id

    def buy(session):
        return orders.place_order(session, customer_id, shipping, source="direct", item_id=item_id, quantity=1)

    outcomes = _run_together(session_factory, *[buy] * 6)

    sold = [o for o in outcomes if isinstance(o, orders.CheckoutResult)]
    refused = [o for o in outcomes if isinstance(o, InsufficientStock)]
    assert (len(sold), len(refused)) == (4, 2)
    assert _quantity(db, item_id) == 0
    entries = db.query(StockLog).filter(StockLog.item_id == item_id).order_by(StockLog.current_stock.desc()).all()
    assert [(e.previous_stock, e.current_stock) for e in entries] == [(4, 3), (3, 2), (2, 1), (1, 0)]


def test_simultaneous_adds_to_existing_line_all_count(db, session_factory, make_item, customer):
    item_id = make_item(quantity=50).id
    customer_id = customer.id
    cart.add_item(db, customer_id, item_id, 1)

    def add_one(session):
        return cart.add_item(session, customer_id, item_id, 1)

    for _ in range(5):
        outcomes = _run_together(session_factory, add_one, add_one)
        assert all(isinstance(o, CartItem) for o in outcomes), outcomes

    db.expire_all()
    line = db.query(CartItem).filter(CartItem.customer_id == customer_id).one()
    assert line.quantity == 11


def test_simultaneous_first_adds_share_one_line(db, session_factory, make_item, customer):
    item_id = make_item(quantity=10).id
    customer_id = customer.id

    def add_one(session):
        return cart.add_item(session, customer_id, item_id, 1)

    outcomes = _run_together(session_factory, add_one, add_one)

    assert all(isinstance(o, CartItem) for o in outcomes), outcomes
    lines = db.query(CartItem).filter(CartItem.customer_id == customer_id).all()
    assert [line.quantity for line in lines] == [2]


def test_simultaneous_adds_cannot_exceed_stock(db, session_factory, make_item, customer):
    item_id = make_item(quantity=3).id
    customer_id = customer.id
    cart.add_item(db, customer_id, item_id, 1)

    def add_two(session):
        return cart.add_item(session, customer_id, item_id, 2)

    outcomes = _run_together(session_factory, add_two, add_two)

    assert sum(isinstance(o, CartItem) for o in outcomes) == 1
    assert sum(isinstance(o, InsufficientStock) for o in outcomes) == 1
    db.expire_all()
    assert db.query(CartItem.quantity).filter(CartItem.customer_id == customer_id).scalar() == 3
