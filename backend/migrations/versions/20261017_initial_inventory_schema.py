"""Initial stock ledger schema

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "units",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(64), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "outlets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("longitude", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_outlets_code"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("minimum_low_stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("unit_id", sa.Integer(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sku", name="uq_products_sku"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_name", ["name"], unique=False)
        batch_op.create_index("ix_products_category_id", ["category_id"], unique=False)
        batch_op.create_index("ix_products_unit_id", ["unit_id"], unique=False)

    op.create_table(
        "outlet_stocks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("outlet_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["outlet_id"], ["outlets.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("outlet_id", "product_id", name="uq_outlet_stocks_outlet_product"),
        sa.CheckConstraint("qty > 0", name="ck_outlet_stocks_qty_positive"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("outlet_stocks", schema=None) as batch_op:
        batch_op.create_index("ix_outlet_stocks_outlet_id", ["outlet_id"], unique=False)
        batch_op.create_index("ix_outlet_stocks_product_id", ["product_id"], unique=False)

    op.create_table(
        "movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("note", sa.String(255), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("counted_stock", sa.Integer(), nullable=True),
        sa.Column("location_kind", sa.String(16), nullable=False),
        sa.Column("location_id", sa.String(64), nullable=False),
        sa.Column("location_label", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("movements", schema=None) as batch_op:
        batch_op.create_index("ix_movements_type", ["type"], unique=False)
        batch_op.create_index("ix_movements_created", ["created_at"], unique=False)
        batch_op.create_index("ix_movements_location_created", ["location_kind", "location_id", "created_at"], unique=False)
        batch_op.create_index("ix_movements_product_created", ["product_id", "created_at"], unique=False)

    op.create_table(
        "transfer_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("source_kind", sa.String(16), nullable=False),
        sa.Column("source_outlet_id", sa.Integer(), nullable=True),
        sa.Column("source_label", sa.String(255), nullable=False),
        sa.Column("total_qty", sa.Integer(), nullable=False),
        sa.Column("note", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("transfer_records", schema=None) as batch_op:
        batch_op.create_index("ix_transfer_records_created", ["created_at"], unique=False)
        batch_op.create_index("ix_transfer_records_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_transfer_records_source_outlet_id", ["source_outlet_id"], unique=False)

    op.create_table(
        "transfer_destinations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("transfer_id", sa.Integer(), nullable=False),
        sa.Column("outlet_id", sa.Integer(), nullable=False),
        sa.Column("outlet_name", sa.String(120), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["transfer_id"], ["transfer_records.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transfer_id", "outlet_id", name="uq_transfer_destinations_transfer_outlet"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("transfer_destinations", schema=None) as batch_op:
        batch_op.create_index("ix_transfer_destinations_transfer_id", ["transfer_id"], unique=False)
        batch_op.create_index("ix_transfer_destinations_outlet_id", ["outlet_id"], unique=False)

    op.create_table(
        "favorite_products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_key", sa.String(80), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("location_key", "product_id", name="uq_favorite_products_location_product"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "product_usage",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_key", sa.String(80), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("location_key", "product_id", name="uq_product_usage_location_product"),
        sqlite_autoincrement=True,
    )

    for table in ("favorite_products", "product_usage"):
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.create_index(f"ix_{table}_location_key", ["location_key"], unique=False)
            batch_op.create_index(f"ix_{table}_product_id", ["product_id"], unique=False)


def downgrade():
    op.drop_table("product_usage")
    op.drop_table("favorite_products")
    op.drop_table("transfer_destinations")
    op.drop_table("transfer_records")
    op.drop_table("movements")
    op.drop_table("outlet_stocks")
    op.drop_table("products")
    op.drop_table("outlets")
    op.drop_table("units")
    op.drop_table("categories")
