# backend/freshcorner/routes/admin.py
"""
Admin routes: dashboard, product and category management, order workflow,
user management, and the stock movement ledger.

All routes require an authenticated user whose current role is admin.
"""
from flask import Blueprint, request, g

from ..decorators import require_admin
from ..models import Category, Product
from ..responses import ok, from_error, server_error
from ..services import (
    catalog_service,
    order_service,
    reporting_service,
    stock_service,
    user_service,
)
from ..validation import (
    ModelValidationPolicy,
    ServiceError,
    validate_payload,
    enforce_rules_product,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name_bn", "name_en", "description_bn", "description_en",
        "price_cents", "discount_price_cents", "stock_quantity", "unit",
        "image_url", "category_id", "is_available",
    },
    required_on_create={"name_bn", "name_en", "price_cents"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name_bn", "name_en", "slug", "parent_id", "display_order", "is_active"},
    required_on_create={"name_bn", "name_en"},
)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/stats")
@require_admin
def stats_route():
    try:
        stats = reporting_service.dashboard_stats()
    except Exception:
        return server_error("load stats")
    return ok(stats)


# --- products ---------------------------------------------------------------

@admin_bp.get("/products")
@require_admin
def list_products_route():
    try:
        result = catalog_service.list_all_products(
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
            q=request.args.get("q"),
        )
    except Exception:
        return server_error("load products")
    return ok(result)


@admin_bp.post("/products")
@require_admin
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = catalog_service.create_product(patch=patch, actor_user_id=g.current_user.id)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("create product")

    return ok({"product": product.to_dict()}, message="Product created", status=201)


@admin_bp.put("/products/<int:product_id>")
@require_admin
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        product = catalog_service.update_product(product_id, patch=patch, actor_user_id=g.current_user.id)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("update product")

    return ok({"product": product.to_dict()}, message="Product updated")


@admin_bp.delete("/products/<int:product_id>")
@require_admin
def delete_product_route(product_id: int):
    try:
        catalog_service.soft_delete_product(product_id)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("delete product")

    return ok(message="Product removed")


@admin_bp.get("/stock-movements")
@require_admin
def stock_movements_route():
    try:
        movements = stock_service.list_movements(
            product_id=request.args.get("product_id", type=int),
            order_id=request.args.get("order_id", type=int),
            limit=min(request.args.get("limit", 200, type=int), 1000),
        )
    except Exception:
        return server_error("load stock movements")
    return ok({"movements": [m.to_dict() for m in movements]})


# --- categories -------------------------------------------------------------

@admin_bp.post("/categories")
@require_admin
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        category = catalog_service.create_category(patch=patch)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("create category")

    return ok({"category": category.to_dict()}, message="Category created", status=201)


@admin_bp.put("/categories/<int:category_id>")
@require_admin
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        category = catalog_service.update_category(category_id, patch=patch)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("update category")

    return ok({"category": category.to_dict()}, message="Category updated")


# --- orders -----------------------------------------------------------------

@admin_bp.get("/orders")
@require_admin
def list_orders_route():
    try:
        result = order_service.list_all_orders(
            status=request.args.get("status") or None,
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("load orders")
    return ok(result)


@admin_bp.patch("/orders/<int:order_id>/status")
@require_admin
def update_order_status_route(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.transition_status(order_id, data.get("status"), actor_user_id=g.current_user.id)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("update order status")

    return ok({"order": order.to_dict()}, message="Order status updated")


# --- users ------------------------------------------------------------------

@admin_bp.get("/users")
@require_admin
def list_users_route():
    try:
        result = user_service.list_users_with_stats(
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except Exception:
        return server_error("load users")
    return ok(result)


@admin_bp.patch("/users/<int:user_id>/toggle")
@require_admin
def toggle_user_route(user_id: int):
    try:
        user = user_service.toggle_user_active(user_id, actor_user_id=g.current_user.id)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("update user")

    state = "activated" if user.is_active else "deactivated"
    return ok({"user": user.to_dict()}, message=f"User {state}")
