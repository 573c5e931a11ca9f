"""
Warehouse inventory: adjustments through the stock ledger, expiry status,
alerts, and low stock.
"""

from datetime import date, timedelta

import pytest

from freshcorner.extensions import db
from freshcorner.models import ExpiryAlert, Product, StockMovement, WarehouseInventory
from freshcorner.services import warehouse_service
from freshcorner.time_utils import utctoday

from conftest import make_product, reload, stock_in_warehouse


def _adjust(client, headers, warehouse, product, quantity, mode, notes=None):
    return client.put(
        f'/api/warehouses/{warehouse.id}/stock/{product.id}',
        json={'quantity': quantity, 'type': mode, 'notes': notes},
        headers=headers,
    )


class TestExpiryStatus:

    @pytest.mark.parametrize("offset,expected", [
        (-1, "expired"),
        (0, "expired"),
        (1, "critical"),
        (3, "critical"),
        (4, "warning"),
        (7, "warning"),
        (8, "good"),
    ])
    def test_tiers(self, offset, expected):
        today = date(2025, 1, 15)
        assert warehouse_service.expiry_status(today + timedelta(days=offset), today) == expected

    def test_no_date_is_good(self):
        assert warehouse_service.expiry_status(None, date(2025, 1, 15)) == "good"


class TestWarehouses:

    def test_list_with_totals(self, client, admin_headers, warehouse, rice, oil):
        stock_in_warehouse(warehouse, rice, 10)
        stock_in_warehouse(warehouse, oil, 2)

        resp = client.get('/api/warehouses', headers=admin_headers)
        assert resp.status_code == 200
        [row] = resp.json['warehouses']
        assert row['product_count'] == 2
        assert row['total_stock'] == 12

    def test_create_warehouse(self, client, admin_headers):
        resp = client.post('/api/warehouses', json={'name': 'Mirpur Hub', 'manager_phone': '01755555555'},
                           headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json['warehouse']['name'] == 'Mirpur Hub'

    def test_add_inventory_item_feeds_product_counter(self, client, admin_headers, warehouse):
        product = make_product("Onion", stock=0)
        resp = client.post(f'/api/warehouses/{warehouse.id}/inventory', json={
            'product_id': product.id,
            'stock_quantity': 30,
            'expiry_date': '2030-01-01',
            'batch_number': 'B-1',
        }, headers=admin_headers)

        assert resp.status_code == 201
        assert reload(Product, product.id).stock_quantity == 30
        movement = db.session.query(StockMovement).one()
        assert movement.warehouse_id == warehouse.id
        assert (movement.warehouse_previous_stock, movement.warehouse_new_stock) == (0, 30)

    def test_duplicate_inventory_item(self, client, admin_headers, warehouse, rice):
        stock_in_warehouse(warehouse, rice, 1)
        resp = client.post(f'/api/warehouses/{warehouse.id}/inventory', json={'product_id': rice.id},
                           headers=admin_headers)
        assert resp.status_code == 400

    def test_inventory_has_expiry_fields(self, client, admin_headers, warehouse, rice):
        stock_in_warehouse(warehouse, rice, 5, expiry_date=utctoday() + timedelta(days=2))
        resp = client.get(f'/api/warehouses/{warehouse.id}/inventory', headers=admin_headers)
        [row] = resp.json['inventory']
        assert row['expiry_status'] == 'critical'
        assert row['days_until_expiry'] == 2
        assert row['name_en'] == 'Rice'

    def test_unknown_warehouse(self, client, admin_headers):
        assert client.get('/api/warehouses/999/inventory', headers=admin_headers).status_code == 404


class TestAdjustStock:

    def test_add(self, client, admin, admin_headers, warehouse, rice):
        stock_in_warehouse(warehouse, rice, 4)
        resp = _adjust(client, admin_headers, warehouse, rice, 6, 'add', 'Delivery from farm')

        assert resp.status_code == 200
        assert (resp.json['previous_stock'], resp.json['new_stock']) == (4, 10)
        assert reload(Product, rice.id).stock_quantity == 16

        movement = db.session.query(StockMovement).one()
        assert movement.movement_type == 'add'
        assert movement.created_by == admin.id
        assert movement.notes == 'Delivery from farm'
        assert (movement.previous_stock, movement.new_stock) == (10, 16)

    def test_remove_floors_at_zero(self, client, admin_headers, warehouse, rice):
        stock_in_warehouse(warehouse, rice, 3)
        resp = _adjust(client, admin_headers, warehouse, rice, 5, 'remove')

        assert resp.json['new_stock'] == 0
        assert reload(Product, rice.id).stock_quantity == 7

    def test_set(self, client, admin_headers, warehouse, rice):
        stock_in_warehouse(warehouse, rice, 3)
        _adjust(client, admin_headers, warehouse, rice, 8, 'set')
        db.session.expire_all()
        item = db.session.query(WarehouseInventory).one()
        assert item.stock_quantity == 8
        assert reload(Product, rice.id).stock_quantity == 15

    def test_product_counter_never_negative(self, client, admin_headers, warehouse, oil):
        stock_in_warehouse(warehouse, oil, 10)
        _adjust(client, admin_headers, warehouse, oil, 0, 'set')
        assert reload(Product, oil.id).stock_quantity == 0

    def test_bad_mode(self, client, admin_headers, warehouse, rice):
        stock_in_warehouse(warehouse, rice, 3)
        assert _adjust(client, admin_headers, warehouse, rice, 1, 'steal').status_code == 400

    def test_negative_quantity(self, client, admin_headers, warehouse, rice):
        stock_in_warehouse(warehouse, rice, 3)
        assert _adjust(client, admin_headers, warehouse, rice, -1, 'add').status_code == 400

    def test_unknown_pair(self, client, admin_headers, warehouse, rice):
        assert _adjust(client, admin_headers, warehouse, rice, 1, 'add').status_code == 404
        assert db.session.query(StockMovement).count() == 0


class TestAlerts:

    def test_sync_creates_tiers_and_resolve(self, client, admin, admin_headers, warehouse):
        today = utctoday()
        soon = stock_in_warehouse(warehouse, make_product("Milk"), 5, expiry_date=today + timedelta(days=2))
        stock_in_warehouse(warehouse, make_product("Yogurt"), 5, expiry_date=today + timedelta(days=6))
        stock_in_warehouse(warehouse, make_product("Cheese"), 5, expiry_date=today + timedelta(days=12))
        stock_in_warehouse(warehouse, make_product("Honey"), 5, expiry_date=today + timedelta(days=90))
        stock_in_warehouse(warehouse, make_product("Butter"), 0, expiry_date=today + timedelta(days=1))

        result = warehouse_service.sync_expiry_alerts(today)
        assert result == {"created": 3, "updated": 0, "closed": 0}

        resp = client.get('/api/warehouses/alerts/expiry', headers=admin_headers)
        assert resp.json['summary'] == {'total': 3, 'critical': 1, 'warning': 1, 'info': 1}
        assert resp.json['alerts'][0]['inventory_id'] == soon.id

        alert_id = resp.json['alerts'][0]['id']
        assert client.post(f'/api/warehouses/alerts/{alert_id}/resolve', headers=admin_headers).status_code == 200
        alert = reload(ExpiryAlert, alert_id)
        assert alert.is_resolved is True
        assert alert.resolved_by == admin.id

        assert client.get('/api/warehouses/alerts/expiry', headers=admin_headers).json['summary']['total'] == 2

    def test_sync_is_idempotent_and_closes_stale(self, warehouse):
        today = utctoday()
        item = stock_in_warehouse(warehouse, make_product("Milk"), 5, expiry_date=today + timedelta(days=5))

        warehouse_service.sync_expiry_alerts(today)
        assert warehouse_service.sync_expiry_alerts(today) == {"created": 0, "updated": 0, "closed": 0}

        item.expiry_date = today + timedelta(days=60)
        db.session.commit()
        assert warehouse_service.sync_expiry_alerts(today)["closed"] == 1

    def test_resolve_unknown_alert(self, client, admin_headers):
        assert client.post('/api/warehouses/alerts/999/resolve', headers=admin_headers).status_code == 404

    def test_low_stock(self, client, admin_headers, warehouse, rice, oil):
        stock_in_warehouse(warehouse, rice, 50)
        stock_in_warehouse(warehouse, oil, 3, min_stock_level=5)

        resp = client.get('/api/warehouses/alerts/low-stock', headers=admin_headers)
        assert resp.json['count'] == 1
        assert resp.json['items'][0]['product_id'] == oil.id
        assert resp.json['items'][0]['warehouse_name'] == 'Central'
