# Overview: Admin dashboard aggregates; computed fresh on every call.

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..models import Order, OrderItem, Product, User
from ..models.auth import ROLE_CUSTOMER
from ..models.orders import ORDER_STATUSES, STATUS_CANCELLED
from freshcorner.time_utils import utcnow, to_utc_z


def _sum_if(condition, value):
    return func.coalesce(func.sum(case((condition, value), else_=0)), 0)


def _count_if(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def order_counts() -> dict:
    columns = [func.count(Order.id).label("total")]
    columns += [_count_if(Order.status == status).label(status) for status in ORDER_STATUSES]
    row = db.session.query(*columns).one()
    return {key: int(value or 0) for key, value in row._mapping.items()}


def revenue(now: datetime) -> dict:
    row = (
        db.session.query(
            func.coalesce(func.sum(Order.total_amount_cents), 0).label("total_revenue_cents"),
            _sum_if(Order.created_at >= now - timedelta(days=30), Order.total_amount_cents).label("monthly_revenue_cents"),
            _sum_if(Order.created_at >= now - timedelta(days=7), Order.total_amount_cents).label("weekly_revenue_cents"),
        )
        .filter(Order.status != STATUS_CANCELLED)
        .one()
    )
    return {key: int(value or 0) for key, value in row._mapping.items()}


def customer_counts(now: datetime) -> dict:
    row = (
        db.session.query(
            func.count(User.id).label("total"),
            _count_if(User.created_at >= now - timedelta(days=30)).label("new_this_month"),
        )
        .filter(User.role == ROLE_CUSTOMER)
        .one()
    )
    return {key: int(value or 0) for key, value in row._mapping.items()}


def product_counts() -> dict:
    threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    row = db.session.query(
        func.count(Product.id).label("total"),
        _count_if(Product.stock_quantity < threshold).label("low_stock"),
        _count_if(Product.stock_quantity == 0).label("out_of_stock"),
    ).one()
    return {key: int(value or 0) for key, value in row._mapping.items()}


def recent_orders(limit: int = 5) -> list[dict]:
    rows = (
        db.session.query(Order, User)
        .join(User, User.id == Order.user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": order.id,
            "order_number": order.order_number,
            "status": order.status,
            "total_amount_cents": order.total_amount_cents,
            "created_at": to_utc_z(order.created_at),
            "full_name": user.full_name,
            "phone": user.phone,
        }
        for order, user in rows
    ]


def top_products(limit: int = 5) -> list[dict]:
    total_sold = func.sum(OrderItem.quantity).label("total_sold")
    rows = (
        db.session.query(
            Product.id,
            Product.name_bn,
            Product.name_en,
            total_sold,
            func.sum(OrderItem.subtotal_cents).label("total_revenue_cents"),
        )
        .join(OrderItem, OrderItem.product_id == Product.id)
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status != STATUS_CANCELLED)
        .group_by(Product.id, Product.name_bn, Product.name_en)
        .order_by(total_sold.desc(), Product.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_id": row.id,
            "name_bn": row.name_bn,
            "name_en": row.name_en,
            "total_sold": int(row.total_sold or 0),
            "total_revenue_cents": int(row.total_revenue_cents or 0),
        }
        for row in rows
    ]


def dashboard_stats(now: datetime | None = None) -> dict:
    now = now or utcnow()
    return {
        "stats": {
            "orders": order_counts(),
            "revenue": revenue(now),
            "users": customer_counts(now),
            "products": product_counts(),
        },
        "recent_orders": recent_orders(),
        "top_products": top_products(),
    }
