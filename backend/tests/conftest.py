"""
Pytest fixtures for Fresh Corner backend tests.

Provides an in-memory database, per-test table wipe, test client, factory
fixtures for catalog/users/warehouses, and auth headers carrying real tokens.
"""

import pytest

from freshcorner import create_app
from freshcorner.extensions import db
from freshcorner.models import Category, Product, User, Warehouse, WarehouseInventory
from freshcorner.services import token_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'JWT_SECRET': 'test-jwt-secret-of-at-least-32-bytes',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_user(phone: str, *, role: str = "customer", full_name: str | None = None, is_active: bool = True) -> User:
    user = User(
        phone=phone,
        phone_verified=True,
        is_verified=True,
        role=role,
        full_name=full_name,
        is_active=is_active,
    )
    db.session.add(user)
    db.session.commit()
    return user


def make_product(
    name_en: str,
    *,
    price_cents: int = 10000,
    stock: int = 10,
    category: Category | None = None,
    discount_price_cents: int | None = None,
    name_bn: str | None = None,
    description_en: str | None = None,
    is_available: bool = True,
) -> Product:
    product = Product(
        name_en=name_en,
        name_bn=name_bn or name_en,
        slug=f"{name_en.lower().replace(' ', '-')}-{db.session.query(Product).count() + 1}",
        description_en=description_en,
        price_cents=price_cents,
        discount_price_cents=discount_price_cents,
        stock_quantity=stock,
        category_id=category.id if category else None,
        is_available=is_available,
    )
    db.session.add(product)
    db.session.commit()
    return product


def make_category(name_en: str, *, parent: Category | None = None, display_order: int = 0) -> Category:
    category = Category(
        name_en=name_en,
        name_bn=name_en,
        slug=name_en.lower().replace(" ", "-"),
        parent_id=parent.id if parent else None,
        display_order=display_order,
    )
    db.session.add(category)
    db.session.commit()
    return category


def auth_headers(user: User) -> dict:
    """Helper to create Authorization headers with a real signed token."""
    return {'Authorization': f'Bearer {token_service.issue_token(user)}'}


@pytest.fixture
def customer(db_session):
    return make_user("01711111111", full_name="Rahim Uddin")


@pytest.fixture
def other_customer(db_session):
    return make_user("01722222222", full_name="Karim Mia")


@pytest.fixture
def admin(db_session):
    return make_user("01700000000", role="admin", full_name="Store Admin")


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def other_headers(other_customer):
    return auth_headers(other_customer)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def vegetables(db_session):
    return make_category("Vegetables", display_order=1)


@pytest.fixture
def rice(db_session, vegetables):
    """Product A: price 100.00, stock 10."""
    return make_product("Rice", price_cents=10000, stock=10, category=vegetables)


@pytest.fixture
def oil(db_session):
    """Product B: price 50.00, stock 2."""
    return make_product("Oil", price_cents=5000, stock=2)


@pytest.fixture
def warehouse(db_session):
    wh = Warehouse(name="Central", name_bn="কেন্দ্রীয়")
    db.session.add(wh)
    db.session.commit()
    return wh


def stock_in_warehouse(warehouse: Warehouse, product: Product, quantity: int, **kwargs) -> WarehouseInventory:
    item = WarehouseInventory(
        warehouse_id=warehouse.id,
        product_id=product.id,
        stock_quantity=quantity,
        **kwargs,
    )
    db.session.add(item)
    db.session.commit()
    return item


def add_to_cart(client, headers, product, quantity=1):
    return client.post('/api/cart', json={'product_id': product.id, 'quantity': quantity}, headers=headers)


def place_order(client, headers, **overrides):
    body = {
        'delivery_name': 'Rahim Uddin',
        'delivery_phone': '01711111111',
        'delivery_address': 'House 1, Road 2, Dhanmondi, Dhaka',
        'payment_method': 'cash_on_delivery',
    }
    body.update(overrides)
    return client.post('/api/orders/place', json=body, headers=headers)


def reload(model, pk):
    """Fetch a row bypassing anything cached in the identity map."""
    db.session.expire_all()
    return db.session.get(model, pk)
