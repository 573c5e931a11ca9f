# Overview: Order placement, status workflow, and order queries.

"""
Orders.

place_order turns the caller's cart into an order in a single transaction:
product rows are locked, every line is checked against stock, the order and
its item snapshot are written, stock is decremented through the ledger, and
the cart is emptied. Any failure leaves stock, cart and orders untouched.

Status moves strictly forward along STATUS_FLOW. Cancellation is allowed
from any non-terminal status and returns every item's quantity to stock in
the same transaction.
"""

from __future__ import annotations

import secrets

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Address, Cart, CartItem, Order, OrderItem, Product, User
from ..models.orders import (
    ORDER_STATUSES,
    PAYMENT_METHODS,
    PAYMENT_PAID,
    PAYMENT_PENDING,
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    STATUS_DELIVERED,
    STATUS_FLOW,
    STATUS_PENDING,
    TERMINAL_STATUSES,
)
from freshcorner.time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from . import stock_service
from .concurrency import atomic, lock_for_update
from .pagination import paginate
from .stock_service import InsufficientStock

DELIVERY_FEE_CENTS = 0


class MissingDeliveryInfo(ValidationError):
    pass


class EmptyCart(ValidationError):
    pass


class InvalidStatus(ValidationError):
    pass


class NoOpTransition(ConflictError):
    pass


class InvalidTransition(ConflictError):
    pass


def generate_order_number() -> str:
    """ORD + UTC date + 6 random hex digits, re-drawn on the rare collision."""
    day = utcnow().strftime("%Y%m%d")
    while True:
        candidate = f"ORD{day}{secrets.token_hex(3).upper()}"
        taken = db.session.query(Order.id).filter_by(order_number=candidate).first()
        if taken is None:
            return candidate


def _clean(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _resolve_delivery(user_id: int, *, name, phone, address, address_id) -> tuple[str, str, str]:
    name, phone, address = _clean(name), _clean(phone), _clean(address)

    if address_id is not None:
        saved = (
            db.session.query(Address)
            .filter_by(id=address_id, user_id=user_id, is_active=True)
            .first()
        )
        if saved is None:
            raise NotFoundError("Address not found")
        name = name or saved.recipient_name
        phone = phone or saved.phone
        address = address or saved.formatted()

    missing = [
        field for field, value in (
            ("delivery_name", name),
            ("delivery_phone", phone),
            ("delivery_address", address),
        ) if not value
    ]
    if missing:
        raise MissingDeliveryInfo(
            "Delivery name, phone and address are required",
            details={"missing": missing},
        )
    return name, phone, address


def place_order(
    user_id: int,
    *,
    delivery_name=None,
    delivery_phone=None,
    delivery_address=None,
    payment_method: str | None = None,
    notes: str | None = None,
    address_id: int | None = None,
) -> Order:
    name, phone, address = _resolve_delivery(
        user_id,
        name=delivery_name,
        phone=delivery_phone,
        address=delivery_address,
        address_id=address_id,
    )

    payment_method = payment_method or "cash_on_delivery"
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
        )

    with atomic():
        cart = db.session.query(Cart).filter_by(user_id=user_id).first()
        lines = (
            db.session.query(CartItem).filter_by(cart_id=cart.id).order_by(CartItem.id.asc()).all()
            if cart is not None else []
        )
        if not lines:
            raise EmptyCart("Cart is empty")

        # Lock in product id order so concurrent checkouts cannot deadlock
        product_ids = sorted({line.product_id for line in lines})
        products = {
            p.id: p for p in lock_for_update(
                db.session.query(Product).filter(Product.id.in_(product_ids)).order_by(Product.id.asc())
            ).all()
        }

        for line in lines:
            product = products.get(line.product_id)
            if product is None or not product.is_available or product.stock_quantity < line.quantity:
                product_name = product.name_en if product else f"#{line.product_id}"
                raise InsufficientStock(
                    f"Insufficient stock for {product_name}",
                    details={
                        "product_id": line.product_id,
                        "product_name": product_name,
                        "available": product.stock_quantity if product and product.is_available else 0,
                        "requested_quantity": line.quantity,
                    },
                )

        subtotal = sum(line.price_cents * line.quantity for line in lines)
        order = Order(
            user_id=user_id,
            order_number=generate_order_number(),
            status=STATUS_PENDING,
            payment_method=payment_method,
            payment_status=PAYMENT_PENDING,
            subtotal_cents=subtotal,
            delivery_fee_cents=DELIVERY_FEE_CENTS,
            total_amount_cents=subtotal + DELIVERY_FEE_CENTS,
            delivery_name=name,
            delivery_phone=phone,
            delivery_address=address,
            notes=_clean(notes),
        )
        db.session.add(order)
        db.session.flush()

        for line in lines:
            product = products[line.product_id]
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=product.id,
                product_name=product.name_en,
                product_name_bn=product.name_bn,
                quantity=line.quantity,
                unit_price_cents=line.price_cents,
                subtotal_cents=line.price_cents * line.quantity,
            ))
            stock_service.apply_stock_change(
                product_id=product.id,
                delta=-line.quantity,
                movement_type="order_placed",
                order_id=order.id,
                notes=f"Order {order.order_number}",
                created_by=user_id,
                product_name=product.name_en,
            )

        db.session.query(CartItem).filter_by(cart_id=cart.id).delete(synchronize_session=False)

    current_app.logger.info(
        "Order %s placed by user %s: %s items, total %s",
        order.order_number, user_id, len(lines), order.total_amount_cents,
    )
    return order


def _check_transition(current: str, target: str) -> None:
    if current == target:
        raise NoOpTransition(f"Order is already {current}")
    if current in TERMINAL_STATUSES:
        raise InvalidTransition(f"Cannot change status of a {current} order")
    if target == STATUS_CANCELLED:
        return
    if STATUS_FLOW.index(target) < STATUS_FLOW.index(current):
        raise InvalidTransition(f"Cannot move order from {current} back to {target}")


def transition_status(order_id: int, new_status, actor_user_id: int | None = None) -> Order:
    """
    Move an order to `new_status`.

    confirmed stamps confirmed_at; delivered stamps delivered_at and marks
    the payment paid; cancelled stamps cancelled_at and restores stock for
    every item with one ledger movement per item.
    """
    new_status = _clean(new_status)
    if new_status is None or new_status not in ORDER_STATUSES:
        raise InvalidStatus(f"status must be one of: {', '.join(ORDER_STATUSES)}")

    with atomic():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Order not found")

        previous = order.status
        _check_transition(previous, new_status)

        now = utcnow()
        order.status = new_status
        order.updated_at = now

        if new_status == STATUS_CONFIRMED:
            order.confirmed_at = now
        elif new_status == STATUS_DELIVERED:
            order.delivered_at = now
            order.payment_status = PAYMENT_PAID
        elif new_status == STATUS_CANCELLED:
            order.cancelled_at = now
            for item in order.items:
                stock_service.apply_stock_change(
                    product_id=item.product_id,
                    delta=item.quantity,
                    movement_type="order_cancelled",
                    order_id=order.id,
                    notes=f"Order {order.order_number} cancelled",
                    created_by=actor_user_id,
                )

    current_app.logger.info(
        "Order %s moved %s -> %s by user %s", order.order_number, previous, new_status, actor_user_id,
    )
    return order


def _order_payload(order: Order, *, with_items: bool = False) -> dict:
    data = order.to_dict()
    if with_items:
        data["items"] = [item.to_dict() for item in order.items]
    return data


def list_user_orders(user_id: int, *, page: int | None = None, per_page: int | None = None) -> dict:
    query = (
        db.session.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    orders, pagination = paginate(query, page, per_page)

    counts = _item_counts([o.id for o in orders])
    out = []
    for order in orders:
        data = _order_payload(order)
        data["item_count"] = counts.get(order.id, 0)
        out.append(data)
    return {"orders": out, "pagination": pagination}


def get_order_detail(user_id: int, order_id: int) -> dict:
    order = db.session.query(Order).filter_by(id=order_id, user_id=user_id).first()
    if order is None:
        raise NotFoundError("Order not found")
    return _order_payload(order, with_items=True)


def _item_counts(order_ids: list[int]) -> dict[int, int]:
    if not order_ids:
        return {}
    return dict(
        db.session.query(OrderItem.order_id, func.count(OrderItem.id))
        .filter(OrderItem.order_id.in_(order_ids))
        .group_by(OrderItem.order_id)
        .all()
    )


def list_all_orders(*, status: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    """Admin listing with customer name/phone and item count per order."""
    if status and status not in ORDER_STATUSES:
        raise InvalidStatus(f"status must be one of: {', '.join(ORDER_STATUSES)}")

    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    orders, pagination = paginate(query, page, per_page)

    counts = _item_counts([o.id for o in orders])
    users = {
        u.id: u for u in db.session.query(User).filter(User.id.in_({o.user_id for o in orders})).all()
    } if orders else {}

    out = []
    for order in orders:
        data = _order_payload(order)
        customer = users.get(order.user_id)
        data["customer_name"] = customer.full_name if customer else None
        data["customer_phone"] = customer.phone if customer else None
        data["item_count"] = counts.get(order.id, 0)
        out.append(data)
    return {"orders": out, "pagination": pagination}
