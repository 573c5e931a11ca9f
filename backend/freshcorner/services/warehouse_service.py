# Overview: Warehouses, per-warehouse inventory, manual stock adjustment, and expiry/low-stock alerts.

"""
Warehouse inventory.

Each WarehouseInventory row is a local stock partition for one product in
one warehouse. Manual adjustments write the local quantity and forward the
change to the product-wide counter through the stock ledger, so sellable
stock and the movement history stay consistent.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import ExpiryAlert, Product, Warehouse, WarehouseInventory
from ..models.inventory import (
    ALERT_CRITICAL,
    ALERT_INFO,
    ALERT_TYPES,
    ALERT_WARNING,
    MOVEMENT_ADD,
    MOVEMENT_REMOVE,
    MOVEMENT_SET,
)
from freshcorner.time_utils import utcnow, utctoday
from ..validation import ConflictError, NotFoundError, ValidationError
from . import stock_service
from .concurrency import atomic, lock_for_update

ADJUST_MODES = (MOVEMENT_ADD, MOVEMENT_REMOVE, MOVEMENT_SET)

EXPIRY_EXPIRED = "expired"
EXPIRY_CRITICAL = "critical"
EXPIRY_WARNING = "warning"
EXPIRY_GOOD = "good"

CRITICAL_DAYS = 3
WARNING_DAYS = 7


def days_until(expiry_date: date | None, today: date | None = None) -> int | None:
    if expiry_date is None:
        return None
    return (expiry_date - (today or utctoday())).days


def expiry_status(expiry_date: date | None, today: date | None = None) -> str:
    """
    expired when the date is today or earlier, critical within 3 days,
    warning within 7 days, otherwise good. Rows without a date are good.
    """
    days = days_until(expiry_date, today)
    if days is None:
        return EXPIRY_GOOD
    if days <= 0:
        return EXPIRY_EXPIRED
    if days <= CRITICAL_DAYS:
        return EXPIRY_CRITICAL
    if days <= WARNING_DAYS:
        return EXPIRY_WARNING
    return EXPIRY_GOOD


def _alert_type(days: int) -> str | None:
    if days <= CRITICAL_DAYS:
        return ALERT_CRITICAL
    if days <= WARNING_DAYS:
        return ALERT_WARNING
    if days <= current_app.config["EXPIRY_INFO_DAYS"]:
        return ALERT_INFO
    return None


def list_warehouses() -> list[dict]:
    stats = dict(
        (row.warehouse_id, (row.product_count, row.total_stock))
        for row in db.session.query(
            WarehouseInventory.warehouse_id,
            func.count(WarehouseInventory.id).label("product_count"),
            func.coalesce(func.sum(WarehouseInventory.stock_quantity), 0).label("total_stock"),
        ).group_by(WarehouseInventory.warehouse_id).all()
    )

    out = []
    for warehouse in (
        db.session.query(Warehouse).filter(Warehouse.is_active.is_(True)).order_by(Warehouse.id.asc()).all()
    ):
        product_count, total_stock = stats.get(warehouse.id, (0, 0))
        data = warehouse.to_dict()
        data["product_count"] = int(product_count)
        data["total_stock"] = int(total_stock)
        out.append(data)
    return out


def create_warehouse(*, patch: dict) -> Warehouse:
    with atomic():
        warehouse = Warehouse(**patch)
        db.session.add(warehouse)
    return warehouse


def _get_warehouse(warehouse_id: int) -> Warehouse:
    warehouse = db.session.get(Warehouse, warehouse_id)
    if warehouse is None:
        raise NotFoundError("Warehouse not found")
    return warehouse


def add_inventory_item(warehouse_id: int, *, patch: dict, actor_user_id: int | None = None) -> WarehouseInventory:
    """
    Register a product in a warehouse.

    A non-zero opening quantity is added to the product-wide counter as an
    "add" movement.
    """
    _get_warehouse(warehouse_id)
    product_id = patch.get("product_id")
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product not found")

    exists = (
        db.session.query(WarehouseInventory.id)
        .filter_by(warehouse_id=warehouse_id, product_id=product_id)
        .first()
    )
    if exists is not None:
        raise ConflictError("Product is already stocked in this warehouse")

    opening = patch.get("stock_quantity") or 0
    if opening < 0:
        raise ValidationError("stock_quantity must be >= 0")

    with atomic():
        item = WarehouseInventory(warehouse_id=warehouse_id, **patch)
        item.stock_quantity = opening
        db.session.add(item)
        db.session.flush()

        if opening:
            stock_service.apply_stock_change(
                product_id=product_id,
                delta=opening,
                movement_type=MOVEMENT_ADD,
                warehouse_id=warehouse_id,
                warehouse_previous_stock=0,
                warehouse_new_stock=opening,
                notes="Opening warehouse stock",
                created_by=actor_user_id,
            )
    return item


def get_warehouse_inventory(warehouse_id: int, today: date | None = None) -> list[dict]:
    _get_warehouse(warehouse_id)
    today = today or utctoday()

    rows = (
        db.session.query(WarehouseInventory)
        .filter(WarehouseInventory.warehouse_id == warehouse_id)
        .order_by(
            WarehouseInventory.expiry_date.is_(None),
            WarehouseInventory.expiry_date.asc(),
            WarehouseInventory.id.asc(),
        )
        .all()
    )

    out = []
    for row in rows:
        data = row.to_dict()
        data["expiry_status"] = expiry_status(row.expiry_date, today)
        data["days_until_expiry"] = days_until(row.expiry_date, today)
        out.append(data)
    return out


def adjust_stock(
    warehouse_id: int,
    product_id: int,
    *,
    quantity,
    mode: str,
    notes: str | None = None,
    actor_user_id: int | None = None,
) -> dict:
    """
    add / remove / set the warehouse-local quantity.

    remove floors the local quantity at zero. The resulting local delta is
    applied to Product.stock_quantity, also floored at zero, with a single
    ledger movement carrying both the local and the product-wide values.
    """
    if mode not in ADJUST_MODES:
        raise ValidationError(f"type must be one of: {', '.join(ADJUST_MODES)}")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if quantity < 0:
        raise ValidationError("quantity must be >= 0")

    with atomic():
        item = lock_for_update(
            db.session.query(WarehouseInventory).filter_by(warehouse_id=warehouse_id, product_id=product_id)
        ).first()
        if item is None:
            raise NotFoundError("Product not found in this warehouse")

        previous = item.stock_quantity
        if mode == MOVEMENT_ADD:
            new = previous + quantity
        elif mode == MOVEMENT_REMOVE:
            new = max(0, previous - quantity)
        else:
            new = quantity

        item.stock_quantity = new
        item.updated_at = utcnow()

        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        delta = new - previous
        if product.stock_quantity + delta < 0:
            delta = -product.stock_quantity

        movement = stock_service.apply_stock_change(
            product_id=product_id,
            delta=delta,
            movement_type=mode,
            warehouse_id=warehouse_id,
            warehouse_previous_stock=previous,
            warehouse_new_stock=new,
            notes=notes,
            created_by=actor_user_id,
        )

    current_app.logger.info(
        "Warehouse %s stock %s for product %s: %s -> %s (product %s -> %s) by user %s",
        warehouse_id, mode, product_id, previous, new,
        movement.previous_stock, movement.new_stock, actor_user_id,
    )
    return {
        "previous_stock": previous,
        "new_stock": new,
        "product_previous_stock": movement.previous_stock,
        "product_new_stock": movement.new_stock,
    }


def list_low_stock() -> list[dict]:
    rows = (
        db.session.query(WarehouseInventory)
        .filter(WarehouseInventory.stock_quantity <= WarehouseInventory.min_stock_level)
        .order_by(WarehouseInventory.stock_quantity.asc(), WarehouseInventory.id.asc())
        .all()
    )
    out = []
    for row in rows:
        data = row.to_dict()
        data["warehouse_name"] = row.warehouse.name if row.warehouse else None
        out.append(data)
    return out


def sync_expiry_alerts(today: date | None = None) -> dict:
    """
    Bring unresolved expiry alerts in line with current inventory.

    Every stocked batch expiring within EXPIRY_INFO_DAYS gets exactly one
    unresolved alert, refreshed with today's tier and day count. Unresolved
    alerts whose batch no longer qualifies are closed.
    """
    today = today or utctoday()
    created = updated = closed = 0

    with atomic():
        open_alerts = {
            alert.inventory_id: alert
            for alert in db.session.query(ExpiryAlert).filter(ExpiryAlert.is_resolved.is_(False)).all()
        }

        candidates = (
            db.session.query(WarehouseInventory)
            .filter(
                WarehouseInventory.expiry_date.isnot(None),
                WarehouseInventory.stock_quantity > 0,
            )
            .all()
        )

        seen: set[int] = set()
        for item in candidates:
            days = days_until(item.expiry_date, today)
            alert_type = _alert_type(days)
            if alert_type is None:
                continue
            seen.add(item.id)

            alert = open_alerts.get(item.id)
            if alert is None:
                db.session.add(ExpiryAlert(
                    warehouse_id=item.warehouse_id,
                    product_id=item.product_id,
                    inventory_id=item.id,
                    expiry_date=item.expiry_date,
                    alert_type=alert_type,
                    days_until_expiry=days,
                ))
                created += 1
            elif (alert.alert_type, alert.days_until_expiry, alert.expiry_date) != (alert_type, days, item.expiry_date):
                alert.alert_type = alert_type
                alert.days_until_expiry = days
                alert.expiry_date = item.expiry_date
                updated += 1

        now = utcnow()
        for inventory_id, alert in open_alerts.items():
            if inventory_id not in seen:
                alert.is_resolved = True
                alert.resolved_at = now
                closed += 1

    return {"created": created, "updated": updated, "closed": closed}


def list_expiry_alerts() -> dict:
    alerts = (
        db.session.query(ExpiryAlert)
        .filter(ExpiryAlert.is_resolved.is_(False))
        .order_by(ExpiryAlert.expiry_date.asc(), ExpiryAlert.id.asc())
        .all()
    )
    summary = {"total": len(alerts)}
    for alert_type in ALERT_TYPES:
        summary[alert_type] = sum(1 for a in alerts if a.alert_type == alert_type)
    return {"summary": summary, "alerts": [a.to_dict() for a in alerts]}


def resolve_alert(alert_id: int, *, actor_user_id: int | None = None) -> ExpiryAlert:
    alert = db.session.get(ExpiryAlert, alert_id)
    if alert is None:
        raise NotFoundError("Alert not found")
    if alert.is_resolved:
        raise ConflictError("Alert is already resolved")
    with atomic():
        alert.is_resolved = True
        alert.resolved_at = utcnow()
        alert.resolved_by = actor_user_id
    return alert
