# backend/freshcorner/services/catalog_service.py
"""
Catalog: product search, categories, and admin product/category management.

Customers only ever see available products (is_available=True). Admin
listings include delisted products. Stock changes made from the admin product
form go through the stock ledger like every other stock change.
"""
from __future__ import annotations

import re

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Category, Product
from freshcorner.time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, enforce_rules_product
from . import stock_service
from .concurrency import atomic
from .pagination import paginate

SORT_OPTIONS = {"relevance", "price_asc", "price_desc", "name", "newest"}

PRODUCT_MUTABLE_FIELDS = {
    "name_bn", "name_en", "description_bn", "description_en",
    "price_cents", "discount_price_cents", "unit", "image_url",
    "category_id", "is_available",
}

CATEGORY_MUTABLE_FIELDS = {"name_bn", "name_en", "slug", "parent_id", "display_order", "is_active"}


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")
    return slug or "item"


def _like_pattern(term: str) -> str:
    """Substring pattern with LIKE wildcards in the term matched literally."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _uses_trigram() -> bool:
    return db.engine.dialect.name == "postgresql"


def _category_ids_with_children(category_id: int) -> list[int]:
    child_ids = [
        row.id for row in db.session.query(Category.id).filter(Category.parent_id == category_id).all()
    ]
    return [category_id, *child_ids]


def search_products(
    *,
    q: str | None = None,
    category_id: int | None = None,
    min_price_cents: int | None = None,
    max_price_cents: int | None = None,
    sort: str | None = None,
    in_stock: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Customer-facing product search.

    q matches a case-insensitive substring of either name or description.
    On PostgreSQL a pg_trgm similarity above SEARCH_SIMILARITY_THRESHOLD on
    either name also matches, and "relevance" sorts by that similarity.
    Without q, "relevance" falls back to the default category/id order.
    """
    if sort and sort not in SORT_OPTIONS:
        raise ValidationError(f"sort must be one of: {', '.join(sorted(SORT_OPTIONS))}")

    query = db.session.query(Product).filter(Product.is_available.is_(True))
    term = (q or "").strip()
    similarity = None

    if term:
        pattern = _like_pattern(term)
        conditions = [
            Product.name_en.ilike(pattern, escape="\\"),
            Product.name_bn.ilike(pattern, escape="\\"),
            Product.description_en.ilike(pattern, escape="\\"),
            Product.description_bn.ilike(pattern, escape="\\"),
        ]
        if _uses_trigram():
            threshold = current_app.config["SEARCH_SIMILARITY_THRESHOLD"]
            similarity = func.greatest(
                func.similarity(Product.name_en, term),
                func.similarity(Product.name_bn, term),
            )
            conditions.append(similarity > threshold)
        query = query.filter(or_(*conditions))

    if category_id is not None:
        query = query.filter(Product.category_id.in_(_category_ids_with_children(category_id)))
    if min_price_cents is not None:
        query = query.filter(Product.price_cents >= min_price_cents)
    if max_price_cents is not None:
        query = query.filter(Product.price_cents <= max_price_cents)
    if in_stock:
        query = query.filter(Product.stock_quantity > 0)

    if sort == "price_asc":
        query = query.order_by(Product.price_cents.asc(), Product.id.asc())
    elif sort == "price_desc":
        query = query.order_by(Product.price_cents.desc(), Product.id.asc())
    elif sort == "name":
        query = query.order_by(Product.name_en.asc(), Product.id.asc())
    elif sort == "newest":
        query = query.order_by(Product.created_at.desc(), Product.id.desc())
    elif sort == "relevance" and term:
        if similarity is not None:
            query = query.order_by(similarity.desc(), Product.id.asc())
        else:
            # Name hits rank above description-only hits
            name_hit = or_(
                Product.name_en.ilike(pattern, escape="\\"),
                Product.name_bn.ilike(pattern, escape="\\"),
            )
            query = query.order_by(name_hit.desc(), Product.id.asc())
    else:
        query = query.order_by(Product.category_id.asc(), Product.id.asc())

    products, pagination = paginate(query, page, per_page)
    return {
        "products": [p.to_dict() for p in products],
        "total": pagination["total"],
        "pagination": pagination,
    }


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None or not product.is_available:
        raise NotFoundError("Product not found")
    return product


def list_categories() -> list[dict]:
    """Active top-level categories with nested subcategories and live product counts."""
    counts = dict(
        db.session.query(Product.category_id, func.count(Product.id))
        .filter(Product.is_available.is_(True), Product.category_id.isnot(None))
        .group_by(Product.category_id)
        .all()
    )

    categories = (
        db.session.query(Category)
        .filter(Category.is_active.is_(True))
        .order_by(Category.display_order.asc(), Category.id.asc())
        .all()
    )

    out: list[dict] = []
    by_id: dict[int, dict] = {}
    for category in categories:
        if category.parent_id is None:
            item = category.to_dict()
            item["product_count"] = counts.get(category.id, 0)
            item["subcategories"] = []
            by_id[category.id] = item
            out.append(item)

    for category in categories:
        if category.parent_id is not None and category.parent_id in by_id:
            child = category.to_dict()
            child["product_count"] = counts.get(category.id, 0)
            by_id[category.parent_id]["subcategories"].append(child)

    return out


def get_price_range() -> dict:
    low, high = (
        db.session.query(func.min(Product.price_cents), func.max(Product.price_cents))
        .filter(Product.is_available.is_(True))
        .one()
    )
    return {"min_price_cents": low or 0, "max_price_cents": high or 0}


# --- admin -----------------------------------------------------------------

def list_all_products(*, page: int | None = None, per_page: int | None = None, q: str | None = None) -> dict:
    query = db.session.query(Product)
    term = (q or "").strip()
    if term:
        pattern = _like_pattern(term)
        query = query.filter(or_(
            Product.name_en.ilike(pattern, escape="\\"),
            Product.name_bn.ilike(pattern, escape="\\"),
        ))
    query = query.order_by(Product.created_at.desc(), Product.id.desc())
    products, pagination = paginate(query, page, per_page)
    return {"products": [p.to_dict() for p in products], "pagination": pagination}


def _require_category(category_id: int | None) -> None:
    if category_id is None:
        return
    if db.session.get(Category, category_id) is None:
        raise ValidationError("Category not found")


def _unique_product_slug(name_en: str) -> str:
    millis = int(utcnow().timestamp() * 1000)
    base = f"{slugify(name_en)}-{millis}"
    slug = base
    suffix = 1
    while db.session.query(Product.id).filter_by(slug=slug).first() is not None:
        suffix += 1
        slug = f"{base}-{suffix}"
    return slug


def create_product(*, patch: dict, actor_user_id: int | None = None) -> Product:
    """
    Create a product from a validated patch.

    Initial stock is written through the ledger as a "set" movement so the
    movement history starts at the product's first stock level.
    """
    _require_category(patch.get("category_id"))
    initial_stock = patch.pop("stock_quantity", None) or 0

    with atomic():
        product = Product(slug=_unique_product_slug(patch["name_en"]), stock_quantity=0)
        for key, value in patch.items():
            if key in PRODUCT_MUTABLE_FIELDS:
                setattr(product, key, value)
        db.session.add(product)
        db.session.flush()

        if initial_stock:
            stock_service.set_stock_level(
                product_id=product.id,
                quantity=initial_stock,
                notes="Initial stock",
                created_by=actor_user_id,
            )

    return product


def update_product(product_id: int, *, patch: dict, actor_user_id: int | None = None) -> Product:
    """Partial update. The slug never changes on rename."""
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    enforce_rules_product(
        {"discount_price_cents": product.discount_price_cents, **patch},
        current_price_cents=product.price_cents,
    )
    if "category_id" in patch:
        _require_category(patch["category_id"])

    new_stock = patch.pop("stock_quantity", None)

    with atomic():
        for key, value in patch.items():
            if key in PRODUCT_MUTABLE_FIELDS:
                setattr(product, key, value)
        product.updated_at = utcnow()
        db.session.flush()

        if new_stock is not None:
            stock_service.set_stock_level(
                product_id=product.id,
                quantity=new_stock,
                notes="Admin product edit",
                created_by=actor_user_id,
            )

    return product


def soft_delete_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    with atomic():
        product.is_available = False
        product.updated_at = utcnow()
    return product


def _check_category_parent(category: Category | None, parent_id: int | None) -> None:
    if parent_id is None:
        return
    parent = db.session.get(Category, parent_id)
    if parent is None:
        raise ValidationError("Parent category not found")
    if parent.parent_id is not None:
        raise ValidationError("Parent must be a top-level category")
    if category is not None:
        if parent.id == category.id:
            raise ValidationError("A category cannot be its own parent")
        has_children = (
            db.session.query(Category.id).filter(Category.parent_id == category.id).first() is not None
        )
        if has_children:
            raise ValidationError("A category with subcategories cannot become a subcategory")


def _check_category_slug(slug: str | None, exclude_id: int | None = None) -> None:
    if not slug:
        return
    query = db.session.query(Category.id).filter(Category.slug == slug)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Category slug already exists")


def create_category(*, patch: dict) -> Category:
    _check_category_parent(None, patch.get("parent_id"))
    if not patch.get("slug"):
        patch["slug"] = slugify(patch["name_en"])
    _check_category_slug(patch["slug"])

    with atomic():
        category = Category()
        for key, value in patch.items():
            if key in CATEGORY_MUTABLE_FIELDS:
                setattr(category, key, value)
        db.session.add(category)
    return category


def update_category(category_id: int, *, patch: dict) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    if "parent_id" in patch:
        _check_category_parent(category, patch["parent_id"])
    if patch.get("slug"):
        _check_category_slug(patch["slug"], exclude_id=category.id)

    with atomic():
        for key, value in patch.items():
            if key in CATEGORY_MUTABLE_FIELDS:
                setattr(category, key, value)
    return category
