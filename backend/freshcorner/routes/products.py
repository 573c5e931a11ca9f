# backend/freshcorner/routes/products.py
"""
Public catalog routes. No authentication required; only available products
are ever returned.
"""
from flask import Blueprint, request

from ..responses import ok, from_error, server_error
from ..services import catalog_service
from ..validation import ServiceError, ValidationError

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _optional_int(name: str) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


@products_bp.get("")
def search_products_route():
    """
    Search and list products.

    Query params:
    - q: free text, matched against names and descriptions
    - category_id: int, includes products of its subcategories
    - min_price, max_price: int, minor units
    - sort: relevance | price_asc | price_desc | name | newest
    - in_stock: "true" to hide sold-out products
    - page, per_page: pagination (default 12 per page, max 100)
    """
    try:
        result = catalog_service.search_products(
            q=request.args.get("q"),
            category_id=_optional_int("category_id"),
            min_price_cents=_optional_int("min_price"),
            max_price_cents=_optional_int("max_price"),
            sort=request.args.get("sort") or None,
            in_stock=(request.args.get("in_stock") or "").lower() == "true",
            page=_optional_int("page"),
            per_page=_optional_int("per_page"),
        )
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("load products")

    return ok(result)


@products_bp.get("/categories")
def categories_route():
    try:
        categories = catalog_service.list_categories()
    except Exception:
        return server_error("load categories")
    return ok({"categories": categories})


@products_bp.get("/price-range")
def price_range_route():
    try:
        price_range = catalog_service.get_price_range()
    except Exception:
        return server_error("load price range")
    return ok(price_range)


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except ServiceError as e:
        return from_error(e)
    return ok({"product": product.to_dict()})
