"""
Cart behaviour: price snapshot, merging, stock checks, ownership.
"""

from freshcorner.extensions import db
from freshcorner.models import CartItem, Product

from conftest import add_to_cart, make_product, reload


class TestAddItem:

    def test_add_creates_cart_and_line(self, client, customer_headers, rice):
        resp = add_to_cart(client, customer_headers, rice, 2)
        assert resp.status_code == 201
        cart = resp.json['cart']
        assert cart['item_count'] == 2
        assert cart['subtotal_cents'] == 20000
        assert cart['items'][0]['name_en'] == 'Rice'

    def test_same_product_merges(self, client, customer_headers, rice):
        add_to_cart(client, customer_headers, rice, 2)
        resp = add_to_cart(client, customer_headers, rice, 3)
        assert resp.status_code == 201
        items = resp.json['cart']['items']
        assert len(items) == 1
        assert items[0]['quantity'] == 5

    def test_merged_quantity_checked_against_stock(self, client, customer_headers, oil):
        add_to_cart(client, customer_headers, oil, 2)
        resp = add_to_cart(client, customer_headers, oil, 1)
        assert resp.status_code == 400
        assert db.session.query(CartItem).one().quantity == 2

    def test_quantity_above_stock(self, client, customer_headers, oil):
        resp = add_to_cart(client, customer_headers, oil, 3)
        assert resp.status_code == 400
        assert db.session.query(CartItem).count() == 0

    def test_quantity_below_one(self, client, customer_headers, rice):
        assert add_to_cart(client, customer_headers, rice, 0).status_code == 400

    def test_unavailable_product(self, client, customer_headers):
        hidden = make_product("Gone", is_available=False)
        assert add_to_cart(client, customer_headers, hidden).status_code == 404

    def test_discount_price_snapshotted(self, client, customer_headers):
        product = make_product("Dal", price_cents=12000, discount_price_cents=10000)
        resp = add_to_cart(client, customer_headers, product, 1)
        assert resp.json['item']['price_cents'] == 10000

    def test_snapshot_survives_price_change(self, client, customer_headers, rice):
        add_to_cart(client, customer_headers, rice, 1)
        product = reload(Product, rice.id)
        product.price_cents = 15000
        db.session.commit()

        add_to_cart(client, customer_headers, rice, 1)
        cart = client.get('/api/cart', headers=customer_headers).json['cart']
        assert cart['items'][0]['price_cents'] == 10000
        assert cart['subtotal_cents'] == 20000

    def test_requires_auth(self, client, rice):
        assert client.post('/api/cart', json={'product_id': rice.id}).status_code == 401


class TestUpdateAndRemove:

    def test_update_quantity(self, client, customer_headers, rice):
        item_id = add_to_cart(client, customer_headers, rice, 1).json['item']['id']
        resp = client.put(f'/api/cart/{item_id}', json={'quantity': 4}, headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json['item']['quantity'] == 4

    def test_update_beyond_stock(self, client, customer_headers, oil):
        item_id = add_to_cart(client, customer_headers, oil, 1).json['item']['id']
        resp = client.put(f'/api/cart/{item_id}', json={'quantity': 3}, headers=customer_headers)
        assert resp.status_code == 400

    def test_update_invalid_quantity(self, client, customer_headers, rice):
        item_id = add_to_cart(client, customer_headers, rice, 1).json['item']['id']
        resp = client.put(f'/api/cart/{item_id}', json={'quantity': 0}, headers=customer_headers)
        assert resp.status_code == 400

    def test_cannot_touch_another_users_line(self, client, customer_headers, other_headers, rice):
        item_id = add_to_cart(client, customer_headers, rice, 1).json['item']['id']

        assert client.put(f'/api/cart/{item_id}', json={'quantity': 2}, headers=other_headers).status_code == 404
        assert client.delete(f'/api/cart/{item_id}', headers=other_headers).status_code == 404
        assert db.session.query(CartItem).one().quantity == 1

    def test_remove_line(self, client, customer_headers, rice, oil):
        item_id = add_to_cart(client, customer_headers, rice, 1).json['item']['id']
        add_to_cart(client, customer_headers, oil, 1)

        resp = client.delete(f'/api/cart/{item_id}', headers=customer_headers)
        assert resp.status_code == 200
        assert [i['name_en'] for i in resp.json['cart']['items']] == ['Oil']

    def test_clear_cart(self, client, customer_headers, rice, oil):
        add_to_cart(client, customer_headers, rice, 1)
        add_to_cart(client, customer_headers, oil, 1)

        assert client.delete('/api/cart', headers=customer_headers).status_code == 200
        cart = client.get('/api/cart', headers=customer_headers).json['cart']
        assert cart['items'] == []
        assert cart['subtotal_cents'] == 0

    def test_clear_without_cart_is_noop(self, client, customer_headers):
        assert client.delete('/api/cart', headers=customer_headers).status_code == 200
