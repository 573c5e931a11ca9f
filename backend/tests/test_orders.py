"""
Order placement and the status workflow.

Covers atomic checkout, stock conservation across place/cancel, the
forward-only state machine, and per-user order isolation.
"""

import re

import pytest

from freshcorner.extensions import db
from freshcorner.models import Address, CartItem, Order, OrderItem, Product, StockMovement
from freshcorner.services import order_service, stock_service
from freshcorner.services.stock_service import InsufficientStock

from conftest import add_to_cart, make_product, place_order, reload


def _set_status(client, headers, order_id, status):
    return client.patch(f'/api/admin/orders/{order_id}/status', json={'status': status}, headers=headers)


class TestPlaceOrder:

    def test_places_order_and_moves_stock(self, client, customer, customer_headers, rice):
        add_to_cart(client, customer_headers, rice, 3)
        resp = place_order(client, customer_headers, notes='Ring the bell')

        assert resp.status_code == 201
        order = resp.json['order']
        assert re.fullmatch(r'ORD\d{8}[0-9A-F]{6}', order['order_number'])
        assert order['status'] == 'pending'
        assert order['payment_status'] == 'pending'
        assert order['subtotal_cents'] == 30000
        assert order['delivery_fee_cents'] == 0
        assert order['total_amount_cents'] == 30000
        assert order['notes'] == 'Ring the bell'
        assert [(i['product_name'], i['quantity'], i['unit_price_cents'], i['subtotal_cents'])
                for i in order['items']] == [('Rice', 3, 10000, 30000)]

        assert reload(Product, rice.id).stock_quantity == 7
        assert db.session.query(CartItem).count() == 0

        movement = db.session.query(StockMovement).one()
        assert movement.movement_type == 'order_placed'
        assert movement.order_id == order['id']
        assert (movement.quantity, movement.previous_stock, movement.new_stock) == (-3, 10, 7)

    def test_uses_snapshot_price_not_current_price(self, client, customer_headers, rice):
        add_to_cart(client, customer_headers, rice, 1)
        product = reload(Product, rice.id)
        product.price_cents = 99900
        db.session.commit()

        order = place_order(client, customer_headers).json['order']
        assert order['total_amount_cents'] == 10000

    def test_snapshots_both_product_names(self, client, customer_headers):
        lentils = make_product("Red Lentils", name_bn="মসুর ডাল")
        add_to_cart(client, customer_headers, lentils, 1)
        order_id = place_order(client, customer_headers).json['order']['id']

        product = reload(Product, lentils.id)
        product.name_en = "Masoor Dal"
        product.name_bn = "ডাল"
        db.session.commit()

        item = db.session.query(OrderItem).filter_by(order_id=order_id).one()
        assert (item.product_name, item.product_name_bn) == ("Red Lentils", "মসুর ডাল")

    def test_missing_delivery_info(self, client, customer_headers, rice):
        add_to_cart(client, customer_headers, rice, 1)
        resp = place_order(client, customer_headers, delivery_phone='')
        assert resp.status_code == 400
        assert db.session.query(Order).count() == 0

    def test_unknown_payment_method(self, client, customer_headers, rice):
        add_to_cart(client, customer_headers, rice, 1)
        assert place_order(client, customer_headers, payment_method='card').status_code == 400

    def test_bkash_is_recorded(self, client, customer_headers, rice):
        add_to_cart(client, customer_headers, rice, 1)
        order = place_order(client, customer_headers, payment_method='bkash').json['order']
        assert order['payment_method'] == 'bkash'

    def test_empty_cart(self, client, customer_headers):
        resp = place_order(client, customer_headers)
        assert resp.status_code == 400
        assert resp.json['message'] == 'Cart is empty'

    def test_failure_is_all_or_nothing(self, client, customer_headers, rice, oil):
        add_to_cart(client, customer_headers, rice, 2)
        add_to_cart(client, customer_headers, oil, 2)

        # Someone else buys the oil between add-to-cart and checkout
        product = reload(Product, oil.id)
        product.stock_quantity = 1
        db.session.commit()

        resp = place_order(client, customer_headers)
        assert resp.status_code == 400
        assert 'Oil' in resp.json['message']

        assert reload(Product, rice.id).stock_quantity == 10
        assert reload(Product, oil.id).stock_quantity == 1
        assert db.session.query(Order).count() == 0
        assert db.session.query(OrderItem).count() == 0
        assert db.session.query(StockMovement).count() == 0
        assert db.session.query(CartItem).count() == 2

    def test_delisted_product_blocks_checkout(self, client, customer_headers, rice):
        add_to_cart(client, customer_headers, rice, 1)
        product = reload(Product, rice.id)
        product.is_available = False
        db.session.commit()

        resp = place_order(client, customer_headers)
        assert resp.status_code == 400
        assert db.session.query(Order).count() == 0

    def test_snapshot_from_saved_address(self, client, customer, customer_headers, rice):
        address = Address(
            user_id=customer.id,
            recipient_name='Rahim',
            phone='01799999999',
            address_line1='House 7',
            area='Gulshan',
            district='Dhaka',
            is_default=True,
        )
        db.session.add(address)
        db.session.commit()
        add_to_cart(client, customer_headers, rice, 1)

        resp = client.post('/api/orders/place', json={
            'address_id': address.id,
            'delivery_name': 'Override Name',
        }, headers=customer_headers)

        assert resp.status_code == 201
        order = resp.json['order']
        assert order['delivery_name'] == 'Override Name'
        assert order['delivery_phone'] == '01799999999'
        assert order['delivery_address'] == 'House 7, Gulshan, Dhaka'

    def test_someone_elses_address(self, client, other_customer, customer_headers, rice):
        address = Address(
            user_id=other_customer.id, recipient_name='K', phone='01722222222', address_line1='X',
        )
        db.session.add(address)
        db.session.commit()
        add_to_cart(client, customer_headers, rice, 1)

        resp = client.post('/api/orders/place', json={'address_id': address.id}, headers=customer_headers)
        assert resp.status_code == 404


class TestGuardedStock:

    def test_decrement_never_goes_negative(self, app, oil):
        with pytest.raises(InsufficientStock):
            stock_service.apply_stock_change(product_id=oil.id, delta=-3, movement_type='order_placed')
        db.session.rollback()
        assert reload(Product, oil.id).stock_quantity == 2

    def test_place_order_fails_when_stock_drained_after_lock_check(self, app, customer, rice, monkeypatch):
        """A writer that drains stock between the check and the decrement loses cleanly."""
        from freshcorner.services import cart_service

        cart_service.add_item(customer.id, rice.id, 5)

        real_apply = stock_service.apply_stock_change

        def racing_apply(**kwargs):
            db.session.execute(
                Product.__table__.update().where(Product.id == rice.id).values(stock_quantity=1)
            )
            return real_apply(**kwargs)

        monkeypatch.setattr(stock_service, 'apply_stock_change', racing_apply)

        with pytest.raises(InsufficientStock):
            order_service.place_order(
                customer.id, delivery_name='A', delivery_phone='0171', delivery_address='B',
            )

        assert reload(Product, rice.id).stock_quantity == 10
        assert db.session.query(Order).count() == 0


class TestStatusWorkflow:

    @pytest.fixture
    def order_id(self, client, customer_headers, rice):
        add_to_cart(client, customer_headers, rice, 4)
        return place_order(client, customer_headers).json['order']['id']

    def test_forward_path_to_delivered(self, client, admin_headers, order_id):
        for status in ('confirmed', 'processing', 'ready_for_delivery', 'out_for_delivery', 'delivered'):
            resp = _set_status(client, admin_headers, order_id, status)
            assert resp.status_code == 200, status

        order = reload(Order, order_id)
        assert order.status == 'delivered'
        assert order.payment_status == 'paid'
        assert order.confirmed_at is not None
        assert order.delivered_at is not None

    def test_statuses_may_be_skipped_forward(self, client, admin_headers, order_id):
        assert _set_status(client, admin_headers, order_id, 'out_for_delivery').status_code == 200

    def test_cancel_restores_exact_stock(self, client, admin_headers, order_id, rice):
        assert reload(Product, rice.id).stock_quantity == 6
        resp = _set_status(client, admin_headers, order_id, 'cancelled')

        assert resp.status_code == 200
        assert reload(Product, rice.id).stock_quantity == 10
        order = reload(Order, order_id)
        assert order.cancelled_at is not None

        restore = db.session.query(StockMovement).filter_by(movement_type='order_cancelled').one()
        assert (restore.quantity, restore.previous_stock, restore.new_stock) == (4, 6, 10)

    def test_cancel_from_out_for_delivery(self, client, admin_headers, order_id, rice):
        _set_status(client, admin_headers, order_id, 'out_for_delivery')
        assert _set_status(client, admin_headers, order_id, 'cancelled').status_code == 200
        assert reload(Product, rice.id).stock_quantity == 10

    def test_terminal_states_are_final(self, client, admin_headers, order_id, rice):
        _set_status(client, admin_headers, order_id, 'cancelled')

        assert _set_status(client, admin_headers, order_id, 'confirmed').status_code == 400
        # A second cancel would double-restore stock
        assert _set_status(client, admin_headers, order_id, 'cancelled').status_code == 400
        assert reload(Product, rice.id).stock_quantity == 10

    def test_delivered_cannot_be_cancelled(self, client, admin_headers, order_id, rice):
        _set_status(client, admin_headers, order_id, 'delivered')
        assert _set_status(client, admin_headers, order_id, 'cancelled').status_code == 400
        assert reload(Product, rice.id).stock_quantity == 6

    def test_backwards_move_rejected(self, client, admin_headers, order_id):
        _set_status(client, admin_headers, order_id, 'processing')
        assert _set_status(client, admin_headers, order_id, 'confirmed').status_code == 400
        assert reload(Order, order_id).status == 'processing'

    def test_same_status_is_rejected(self, client, admin_headers, order_id):
        resp = _set_status(client, admin_headers, order_id, 'pending')
        assert resp.status_code == 400

    def test_unknown_status(self, client, admin_headers, order_id):
        assert _set_status(client, admin_headers, order_id, 'shipped').status_code == 400

    def test_unknown_order(self, client, admin_headers):
        assert _set_status(client, admin_headers, 9999, 'confirmed').status_code == 404

    def test_customer_cannot_change_status(self, client, customer_headers, order_id):
        assert _set_status(client, customer_headers, order_id, 'confirmed').status_code == 403


class TestOrderQueries:

    def test_my_orders_newest_first(self, client, customer_headers, rice):
        add_to_cart(client, customer_headers, rice, 1)
        first = place_order(client, customer_headers).json['order']['id']
        add_to_cart(client, customer_headers, rice, 1)
        second = place_order(client, customer_headers).json['order']['id']

        resp = client.get('/api/orders/my-orders', headers=customer_headers)
        assert resp.status_code == 200
        assert [o['id'] for o in resp.json['orders']] == [second, first]
        assert resp.json['orders'][0]['item_count'] == 1

    def test_orders_are_private(self, client, customer_headers, other_headers, rice):
        add_to_cart(client, customer_headers, rice, 1)
        order_id = place_order(client, customer_headers).json['order']['id']

        assert client.get(f'/api/orders/{order_id}', headers=other_headers).status_code == 404
        assert client.get('/api/orders/my-orders', headers=other_headers).json['orders'] == []
        assert client.get(f'/api/orders/{order_id}', headers=customer_headers).status_code == 200

    def test_admin_list_filters_by_status(self, client, admin_headers, customer_headers, rice):
        add_to_cart(client, customer_headers, rice, 1)
        order_id = place_order(client, customer_headers).json['order']['id']
        _set_status(client, admin_headers, order_id, 'confirmed')

        confirmed = client.get('/api/admin/orders?status=confirmed', headers=admin_headers).json
        pending = client.get('/api/admin/orders?status=pending', headers=admin_headers).json
        assert [o['id'] for o in confirmed['orders']] == [order_id]
        assert confirmed['orders'][0]['customer_phone'] == '01711111111'
        assert pending['orders'] == []


def test_end_to_end_checkout_and_cancel(client, customer_headers, admin_headers):
    """Two products, one order, cancel: stock returns to where it started."""
    a = make_product("Product A", price_cents=10000, stock=10)
    b = make_product("Product B", price_cents=5000, stock=2)

    add_to_cart(client, customer_headers, a, 3)
    add_to_cart(client, customer_headers, b, 2)
    order = place_order(client, customer_headers).json['order']

    assert order['total_amount_cents'] == 40000
    assert reload(Product, a.id).stock_quantity == 7
    assert reload(Product, b.id).stock_quantity == 0
    assert client.get('/api/cart', headers=customer_headers).json['cart']['items'] == []

    _set_status(client, admin_headers, order['id'], 'cancelled')
    assert reload(Product, a.id).stock_quantity == 10
    assert reload(Product, b.id).stock_quantity == 2

    for product in (a, b):
        net = sum(m.quantity for m in db.session.query(StockMovement).filter_by(product_id=product.id))
        assert net == 0
