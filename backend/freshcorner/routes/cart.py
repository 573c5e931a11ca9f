# backend/freshcorner/routes/cart.py
from flask import Blueprint, request, g

from ..decorators import require_auth
from ..responses import ok, from_error, server_error
from ..services import cart_service
from ..validation import ServiceError, parse_positive_int

cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.get("")
@require_auth
def get_cart_route():
    try:
        summary = cart_service.get_cart_summary(g.current_user.id)
    except Exception:
        return server_error("load cart")
    return ok({"cart": summary})


@cart_bp.post("")
@require_auth
def add_to_cart_route():
    data = request.get_json(silent=True) or {}
    product_id = data.get("product_id", data.get("productId"))
    try:
        product_id = parse_positive_int(product_id, "product_id")
        item = cart_service.add_item(g.current_user.id, product_id, data.get("quantity", 1))
        summary = cart_service.get_cart_summary(g.current_user.id)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("add to cart")

    return ok({"item": item.to_dict(), "cart": summary}, message="Added to cart", status=201)


@cart_bp.put("/<int:item_id>")
@require_auth
def update_cart_item_route(item_id: int):
    data = request.get_json(silent=True) or {}
    try:
        item = cart_service.update_item(g.current_user.id, item_id, data.get("quantity"))
        summary = cart_service.get_cart_summary(g.current_user.id)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("update cart")

    return ok({"item": item.to_dict(), "cart": summary}, message="Cart updated")


@cart_bp.delete("/<int:item_id>")
@require_auth
def remove_cart_item_route(item_id: int):
    try:
        cart_service.remove_item(g.current_user.id, item_id)
        summary = cart_service.get_cart_summary(g.current_user.id)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("remove cart item")

    return ok({"cart": summary}, message="Item removed")


@cart_bp.delete("")
@require_auth
def clear_cart_route():
    try:
        cart_service.clear_cart(g.current_user.id)
    except Exception:
        return server_error("clear cart")
    return ok(message="Cart cleared")
