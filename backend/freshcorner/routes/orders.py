# backend/freshcorner/routes/orders.py
"""
Customer order routes. Customers only ever see their own orders; another
user's order answers 404, same as a missing one.
"""
from flask import Blueprint, request, g

from ..decorators import require_auth
from ..responses import ok, from_error, server_error
from ..services import order_service
from ..validation import ServiceError, parse_positive_int

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("/place")
@require_auth
def place_order_route():
    data = request.get_json(silent=True) or {}
    try:
        address_id = data.get("address_id")
        if address_id is not None:
            address_id = parse_positive_int(address_id, "address_id")
        order = order_service.place_order(
            g.current_user.id,
            delivery_name=data.get("delivery_name"),
            delivery_phone=data.get("delivery_phone"),
            delivery_address=data.get("delivery_address"),
            payment_method=data.get("payment_method"),
            notes=data.get("notes"),
            address_id=address_id,
        )
        detail = order_service.get_order_detail(g.current_user.id, order.id)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("place order")

    return ok({"order": detail}, message="Order placed", status=201)


@orders_bp.get("/my-orders")
@require_auth
def my_orders_route():
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)
    try:
        result = order_service.list_user_orders(g.current_user.id, page=page, per_page=per_page)
    except Exception:
        return server_error("load orders")
    return ok(result)


@orders_bp.get("/<int:order_id>")
@require_auth
def order_detail_route(order_id: int):
    try:
        detail = order_service.get_order_detail(g.current_user.id, order_id)
    except ServiceError as e:
        return from_error(e)
    return ok({"order": detail})
