from __future__ import annotations

from ..extensions import db
from freshcorner.time_utils import to_utc_z

MOVEMENT_ADD = "add"
MOVEMENT_REMOVE = "remove"
MOVEMENT_SET = "set"
MOVEMENT_ORDER_PLACED = "order_placed"
MOVEMENT_ORDER_CANCELLED = "order_cancelled"
MOVEMENT_TYPES = (
    MOVEMENT_ADD,
    MOVEMENT_REMOVE,
    MOVEMENT_SET,
    MOVEMENT_ORDER_PLACED,
    MOVEMENT_ORDER_CANCELLED,
)

ALERT_CRITICAL = "critical"
ALERT_WARNING = "warning"
ALERT_INFO = "info"
ALERT_TYPES = (ALERT_CRITICAL, ALERT_WARNING, ALERT_INFO)


class Warehouse(db.Model):
    __tablename__ = "warehouses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    name_bn = db.Column(db.String(120), nullable=True)
    address = db.Column(db.Text, nullable=True)
    manager_name = db.Column(db.String(120), nullable=True)
    manager_phone = db.Column(db.String(20), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "name_bn": self.name_bn,
            "address": self.address,
            "manager_name": self.manager_name,
            "manager_phone": self.manager_phone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class WarehouseInventory(db.Model):
    """
    Per-warehouse stock partition of a product.

    The product-wide sellable quantity lives in Product.stock_quantity;
    changes made here are forwarded to it through the stock ledger.
    """
    __tablename__ = "warehouse_inventory"
    __table_args__ = (
        db.UniqueConstraint("warehouse_id", "product_id", name="uq_warehouse_inventory_pair"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_warehouse_inventory_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=10)
    expiry_date = db.Column(db.Date, nullable=True)
    batch_number = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    warehouse = db.relationship("Warehouse", backref=db.backref("inventory", lazy=True))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "product_id": self.product_id,
            "stock_quantity": self.stock_quantity,
            "min_stock_level": self.min_stock_level,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "batch_number": self.batch_number,
            "name_bn": self.product.name_bn if self.product else None,
            "name_en": self.product.name_en if self.product else None,
            "price_cents": self.product.price_cents if self.product else None,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock ledger.

    One row per change of Product.stock_quantity, whatever the cause. For
    warehouse adjustments the warehouse-local before/after values are kept
    alongside the product-wide ones. Rows are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    movement_type = db.Column(db.String(24), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    warehouse_previous_stock = db.Column(db.Integer, nullable=True)
    warehouse_new_stock = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "order_id": self.order_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "warehouse_previous_stock": self.warehouse_previous_stock,
            "warehouse_new_stock": self.warehouse_new_stock,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class ExpiryAlert(db.Model):
    """Inventory batch nearing or past expiry; is_resolved marks it handled."""
    __tablename__ = "expiry_alerts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("warehouse_inventory.id"), nullable=False, index=True)

    expiry_date = db.Column(db.Date, nullable=False)
    alert_type = db.Column(db.String(16), nullable=False, index=True)
    days_until_expiry = db.Column(db.Integer, nullable=False)

    is_resolved = db.Column(db.Boolean, nullable=False, default=False, index=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    warehouse = db.relationship("Warehouse")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "product_id": self.product_id,
            "inventory_id": self.inventory_id,
            "expiry_date": self.expiry_date.isoformat(),
            "alert_type": self.alert_type,
            "days_until_expiry": self.days_until_expiry,
            "is_resolved": self.is_resolved,
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
            "resolved_by": self.resolved_by,
            "name_bn": self.product.name_bn if self.product else None,
            "name_en": self.product.name_en if self.product else None,
            "warehouse_name": self.warehouse.name if self.warehouse else None,
            "warehouse_name_bn": self.warehouse.name_bn if self.warehouse else None,
            "created_at": to_utc_z(self.created_at),
        }
