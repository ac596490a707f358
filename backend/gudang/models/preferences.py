from __future__ import annotations

from ..extensions import db


class FavoriteProduct(db.Model):
    """Per-location favorite flag. Ranking aid only; never read by the ledger."""
    __tablename__ = "favorite_products"
    __table_args__ = (
        db.UniqueConstraint("location_key", "product_id", name="uq_favorite_products_location_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_key = db.Column(db.String(80), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)


class ProductUsage(db.Model):
    """Per-location usage counter, bumped by movements and opname."""
    __tablename__ = "product_usage"
    __table_args__ = (
        db.UniqueConstraint("location_key", "product_id", name="uq_product_usage_location_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_key = db.Column(db.String(80), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    count = db.Column(db.Integer, nullable=False, default=0)
