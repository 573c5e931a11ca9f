from __future__ import annotations

from ..extensions import db
from freshcorner.time_utils import to_utc_z


class Category(db.Model):
    """
    Product category.

    Nesting is one level deep: parent_id NULL marks a top-level category,
    a non-null parent_id marks a leaf subcategory.
    """
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name_bn = db.Column(db.String(120), nullable=False)
    name_en = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(160), nullable=True, unique=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    parent = db.relationship("Category", remote_side=[id], backref=db.backref("children", lazy=True))

    def __repr__(self) -> str:
        return f"<Category id={self.id} name_en={self.name_en!r} parent_id={self.parent_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name_bn": self.name_bn,
            "name_en": self.name_en,
            "slug": self.slug,
            "parent_id": self.parent_id,
            "display_order": self.display_order,
            "is_active": self.is_active,
        }


class Product(db.Model):
    """
    Catalog product.

    stock_quantity is the single authoritative stock counter. It is only
    changed through services.stock_service, which appends a StockMovement
    for every change. is_available doubles as the soft-delete flag so that
    past OrderItems keep pointing at delisted products.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_available_category", "is_available", "category_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name_bn = db.Column(db.String(255), nullable=False)
    name_en = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(300), nullable=False, unique=True)
    description_bn = db.Column(db.Text, nullable=True)
    description_en = db.Column(db.Text, nullable=True)

    # Authoritative storage in minor units (frontend only formats for display)
    price_cents = db.Column(db.Integer, nullable=False)
    discount_price_cents = db.Column(db.Integer, nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(20), nullable=False, default="kg")
    image_url = db.Column(db.String(500), nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    @property
    def effective_price_cents(self) -> int:
        return self.discount_price_cents or self.price_cents

    def __repr__(self) -> str:
        return f"<Product id={self.id} slug={self.slug!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name_bn": self.name_bn,
            "name_en": self.name_en,
            "slug": self.slug,
            "description_bn": self.description_bn,
            "description_en": self.description_en,
            "price_cents": self.price_cents,
            "discount_price_cents": self.discount_price_cents,
            "stock_quantity": self.stock_quantity,
            "unit": self.unit,
            "image_url": self.image_url,
            "category_id": self.category_id,
            "category_name_bn": self.category.name_bn if self.category else None,
            "category_name_en": self.category.name_en if self.category else None,
            "is_available": self.is_available,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
