# backend/freshcorner/routes/warehouses.py
"""
Warehouse inventory routes (admin only).

Stock adjustments here also move the product-wide sellable stock; see
services.warehouse_service.adjust_stock.
"""
from flask import Blueprint, request, g

from ..decorators import require_admin
from ..models import Warehouse, WarehouseInventory
from ..responses import ok, from_error, server_error
from ..services import warehouse_service
from ..validation import (
    ModelValidationPolicy,
    ServiceError,
    validate_payload,
)

WAREHOUSE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "name_bn", "address", "manager_name", "manager_phone", "is_active"},
    required_on_create={"name"},
)

INVENTORY_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "stock_quantity", "min_stock_level", "expiry_date", "batch_number"},
    required_on_create={"product_id"},
)

warehouses_bp = Blueprint("warehouses", __name__, url_prefix="/api/warehouses")


@warehouses_bp.get("")
@require_admin
def list_warehouses_route():
    try:
        warehouses = warehouse_service.list_warehouses()
    except Exception:
        return server_error("load warehouses")
    return ok({"warehouses": warehouses})


@warehouses_bp.post("")
@require_admin
def create_warehouse_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=False)
        warehouse = warehouse_service.create_warehouse(patch=patch)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("create warehouse")

    return ok({"warehouse": warehouse.to_dict()}, message="Warehouse created", status=201)


@warehouses_bp.get("/<int:warehouse_id>/inventory")
@require_admin
def warehouse_inventory_route(warehouse_id: int):
    try:
        inventory = warehouse_service.get_warehouse_inventory(warehouse_id)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("load inventory")
    return ok({"inventory": inventory})


@warehouses_bp.post("/<int:warehouse_id>/inventory")
@require_admin
def add_inventory_item_route(warehouse_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(
            model=WarehouseInventory, payload=payload, policy=INVENTORY_POLICY, partial=False,
        )
        item = warehouse_service.add_inventory_item(
            warehouse_id, patch=patch, actor_user_id=g.current_user.id,
        )
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("add inventory item")

    return ok({"item": item.to_dict()}, message="Inventory item added", status=201)


@warehouses_bp.put("/<int:warehouse_id>/stock/<int:product_id>")
@require_admin
def adjust_stock_route(warehouse_id: int, product_id: int):
    """
    Body:
    - quantity: int >= 0
    - type: add | remove | set
    - notes: optional free text
    """
    data = request.get_json(silent=True) or {}
    try:
        result = warehouse_service.adjust_stock(
            warehouse_id,
            product_id,
            quantity=data.get("quantity"),
            mode=data.get("type"),
            notes=data.get("notes"),
            actor_user_id=g.current_user.id,
        )
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("update stock")

    return ok(result, message="Stock updated")


@warehouses_bp.get("/alerts/expiry")
@require_admin
def expiry_alerts_route():
    try:
        result = warehouse_service.list_expiry_alerts()
    except Exception:
        return server_error("load expiry alerts")
    return ok(result)


@warehouses_bp.post("/alerts/<int:alert_id>/resolve")
@require_admin
def resolve_alert_route(alert_id: int):
    try:
        alert = warehouse_service.resolve_alert(alert_id, actor_user_id=g.current_user.id)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("resolve alert")
    return ok({"alert": alert.to_dict()}, message="Alert resolved")


@warehouses_bp.get("/alerts/low-stock")
@require_admin
def low_stock_route():
    try:
        items = warehouse_service.list_low_stock()
    except Exception:
        return server_error("load low stock")
    return ok({"count": len(items), "items": items})
