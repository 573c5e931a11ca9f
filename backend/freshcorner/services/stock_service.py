# Overview: Single stock counter per product plus its append-only movement ledger.

"""
Stock ledger.

Product.stock_quantity is the only sellable-stock counter. Every change goes
through apply_stock_change, which issues a guarded UPDATE so the counter can
never go negative even under concurrent writers, and appends one
StockMovement row describing the change. Callers own the transaction.
"""

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Product, StockMovement
from ..models.inventory import MOVEMENT_TYPES
from ..validation import ConflictError, NotFoundError, ValidationError


class InsufficientStock(ConflictError):
    pass


def apply_stock_change(
    *,
    product_id: int,
    delta: int,
    movement_type: str,
    order_id: int | None = None,
    warehouse_id: int | None = None,
    warehouse_previous_stock: int | None = None,
    warehouse_new_stock: int | None = None,
    notes: str | None = None,
    created_by: int | None = None,
    product_name: str | None = None,
) -> StockMovement:
    """
    Add `delta` (may be negative) to the product's stock counter.

    The decrement is guarded in SQL (stock_quantity >= -delta) and the
    rowcount is checked, so a racing writer that drained the stock first
    makes this call fail with InsufficientStock instead of overselling.
    Does not commit.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Unknown movement type: {movement_type}")

    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    name = product_name or product.name_en

    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(stock_quantity=Product.stock_quantity + delta)
        .execution_options(synchronize_session=False)
    )
    if delta < 0:
        stmt = stmt.where(Product.stock_quantity >= -delta)

    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise InsufficientStock(
            f"Insufficient stock for {name}",
            details={"product_id": product_id, "product_name": name, "requested_quantity": -delta},
        )

    db.session.refresh(product, attribute_names=["stock_quantity"])
    new_stock = product.stock_quantity

    movement = StockMovement(
        product_id=product_id,
        warehouse_id=warehouse_id,
        order_id=order_id,
        movement_type=movement_type,
        quantity=delta,
        previous_stock=new_stock - delta,
        new_stock=new_stock,
        warehouse_previous_stock=warehouse_previous_stock,
        warehouse_new_stock=warehouse_new_stock,
        notes=notes,
        created_by=created_by,
    )
    db.session.add(movement)
    return movement


def set_stock_level(
    *,
    product_id: int,
    quantity: int,
    movement_type: str = "set",
    notes: str | None = None,
    created_by: int | None = None,
) -> StockMovement | None:
    """Move the product counter to an absolute level. Returns None when already there."""
    if quantity < 0:
        raise ValidationError("stock_quantity must be >= 0")
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    db.session.refresh(product, attribute_names=["stock_quantity"])
    delta = quantity - product.stock_quantity
    if delta == 0:
        return None
    return apply_stock_change(
        product_id=product_id,
        delta=delta,
        movement_type=movement_type,
        notes=notes,
        created_by=created_by,
    )


def list_movements(*, product_id: int | None = None, order_id: int | None = None, limit: int = 200) -> list[StockMovement]:
    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if order_id is not None:
        query = query.filter(StockMovement.order_id == order_id)
    return query.order_by(StockMovement.id.desc()).limit(limit).all()
