# Overview: Per-user shopping cart; lines snapshot the product price on first insert.

from __future__ import annotations

from ..extensions import db
from ..models import Cart, CartItem, Product
from freshcorner.time_utils import utcnow
from ..validation import NotFoundError, ValidationError
from .concurrency import atomic
from .stock_service import InsufficientStock


class ProductUnavailable(NotFoundError):
    pass


class InvalidQuantity(ValidationError):
    pass


def _check_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        try:
            quantity = int(str(quantity).strip())
        except (TypeError, ValueError):
            raise InvalidQuantity("Quantity must be a whole number")
    if quantity < 1:
        raise InvalidQuantity("Quantity must be at least 1")
    return quantity


def _check_stock(product: Product, quantity: int) -> None:
    if quantity > product.stock_quantity:
        raise InsufficientStock(
            f"Insufficient stock for {product.name_en}",
            details={
                "product_id": product.id,
                "product_name": product.name_en,
                "available": product.stock_quantity,
                "requested_quantity": quantity,
            },
        )


def _find_cart(user_id: int) -> Cart | None:
    return db.session.query(Cart).filter_by(user_id=user_id).first()


def get_or_create_cart(user_id: int) -> Cart:
    cart = _find_cart(user_id)
    if cart is not None:
        return cart
    with atomic():
        cart = Cart(user_id=user_id)
        db.session.add(cart)
    return cart


def _owned_item(user_id: int, item_id: int) -> CartItem:
    item = (
        db.session.query(CartItem)
        .join(Cart, Cart.id == CartItem.cart_id)
        .filter(CartItem.id == item_id, Cart.user_id == user_id)
        .first()
    )
    if item is None:
        raise NotFoundError("Cart item not found")
    return item


def get_cart_summary(user_id: int) -> dict:
    """Cart lines with live product info; totals are computed on every read."""
    cart = get_or_create_cart(user_id)
    items = list(cart.items)
    return {
        "cart_id": cart.id,
        "items": [item.to_dict() for item in items],
        "item_count": sum(item.quantity for item in items),
        "subtotal_cents": sum(item.line_total_cents for item in items),
    }


def add_item(user_id: int, product_id: int, quantity=1) -> CartItem:
    """
    Add a product, merging into the existing line for the same product.

    The merged quantity is checked against stock. The price snapshot of an
    existing line is kept as-is.
    """
    quantity = _check_quantity(quantity)

    product = db.session.get(Product, product_id)
    if product is None or not product.is_available:
        raise ProductUnavailable("Product not found or unavailable")

    cart = get_or_create_cart(user_id)
    with atomic():
        item = db.session.query(CartItem).filter_by(cart_id=cart.id, product_id=product.id).first()
        if item is not None:
            _check_stock(product, item.quantity + quantity)
            item.quantity += quantity
        else:
            _check_stock(product, quantity)
            item = CartItem(
                cart_id=cart.id,
                product_id=product.id,
                quantity=quantity,
                price_cents=product.effective_price_cents,
            )
            db.session.add(item)
        cart.updated_at = utcnow()
    return item


def update_item(user_id: int, item_id: int, quantity) -> CartItem:
    quantity = _check_quantity(quantity)
    item = _owned_item(user_id, item_id)
    product = db.session.get(Product, item.product_id)
    if product is None or not product.is_available:
        raise ProductUnavailable("Product not found or unavailable")
    _check_stock(product, quantity)

    with atomic():
        item.quantity = quantity
    return item


def remove_item(user_id: int, item_id: int) -> None:
    item = _owned_item(user_id, item_id)
    with atomic():
        db.session.delete(item)


def clear_cart(user_id: int) -> int:
    """Delete every line of the user's cart. Returns the number of lines removed."""
    cart = _find_cart(user_id)
    if cart is None:
        return 0
    with atomic():
        removed = db.session.query(CartItem).filter_by(cart_id=cart.id).delete(synchronize_session=False)
    return removed
