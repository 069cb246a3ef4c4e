"""initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def _create_indexes(bind, table_name: str, indexes: list[tuple]) -> None:
    inspector = sa.inspect(bind)
    if not _table_exists(inspector, table_name):
        return
    for name, columns, unique, *extra in indexes:
        if _index_exists(inspector, table_name, name):
            continue
        kwargs = extra[0] if extra else {}
        op.create_index(name, table_name, columns, unique=unique, **kwargs)


def _drop_table(bind, table_name: str, index_names: list[str]) -> None:
    inspector = sa.inspect(bind)
    if not _table_exists(inspector, table_name):
        return
    for name in index_names:
        if _index_exists(inspector, table_name, name):
            op.drop_index(name, table_name=table_name)
    op.drop_table(table_name)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("username", sa.String(length=50), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("hashed_password", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=100), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("permissions", sa.JSON(), nullable=True),
            sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_indexes(
        bind,
        "users",
        [
            ("ix_users_username", ["username"], True),
            ("ux_users_username_lower", [sa.text("lower(username)")], True),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "refresh_tokens"):
        op.create_table(
            "refresh_tokens",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("token_jti", sa.String(length=36), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("replaced_by_jti", sa.String(length=36), nullable=True),
            sa.Column("created_by_ip", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_indexes(
        bind,
        "refresh_tokens",
        [
            ("ix_refresh_tokens_user_id", ["user_id"], False),
            ("ix_refresh_tokens_token_jti", ["token_jti"], True),
            (
                "ix_refresh_tokens_user_revoked_expires",
                ["user_id", "revoked_at", "expires_at"],
                False,
            ),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "user_activities"):
        op.create_table(
            "user_activities",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("details", sa.String(length=500), nullable=False, server_default=""),
            sa.Column("target_type", sa.String(length=50), nullable=True),
            sa.Column("target_id", sa.String(length=36), nullable=True),
            sa.Column("metadata_json", sa.JSON(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_indexes(
        bind,
        "user_activities",
        [
            ("ix_user_activities_user_id", ["user_id"], False),
            ("ix_user_activities_target_id", ["target_id"], False),
            ("ix_user_activities_timestamp", ["timestamp"], False),
            ("ix_user_activities_action_timestamp", ["action", "timestamp"], False),
            ("ix_user_activities_user_timestamp", ["user_id", "timestamp"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "categories"):
        op.create_table(
            "categories",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_indexes(
        bind,
        "categories",
        [("ux_categories_name_lower", [sa.text("lower(name)")], True)],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "products"):
        op.create_table(
            "products",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=False, server_default=""),
            sa.Column("category", sa.String(length=100), nullable=True),
            sa.Column("supplier", sa.String(length=255), nullable=True),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("price", sa.Numeric(12, 2), nullable=False),
            sa.Column("purchase_price", sa.Numeric(12, 2), nullable=False),
            sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_indexes(
        bind,
        "products",
        [
            ("ix_products_category", ["category"], False),
            ("ix_products_quantity", ["quantity"], False),
            ("ix_products_name_lower", [sa.text("lower(name)")], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "product_quantity_history"):
        op.create_table(
            "product_quantity_history",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("product_id", sa.String(length=36), nullable=False),
            sa.Column("sequence", sa.Integer(), nullable=False),
            sa.Column("old_quantity", sa.Integer(), nullable=False),
            sa.Column("new_quantity", sa.Integer(), nullable=False),
            sa.Column("reason", sa.String(length=100), nullable=False),
            sa.Column("reference_id", sa.String(length=36), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_indexes(
        bind,
        "product_quantity_history",
        [
            ("ix_product_quantity_history_product_id", ["product_id"], False),
            (
                "ux_product_quantity_history_product_sequence",
                ["product_id", "sequence"],
                True,
            ),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "sales"):
        op.create_table(
            "sales",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
            sa.Column("discount", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("total", sa.Numeric(12, 2), nullable=False),
            sa.Column("payment_received", sa.Numeric(12, 2), nullable=False),
            sa.Column("change", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("cashier", sa.String(length=100), nullable=False),
            sa.Column("store_location", sa.String(length=255), nullable=False),
            sa.Column("order_id", sa.String(length=36), nullable=True),
            sa.Column("date", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_indexes(
        bind,
        "sales",
        [
            ("ix_sales_date", ["date"], False),
            ("ix_sales_cashier_date", ["cashier", "date"], False),
            (
                "ux_sales_order_id",
                ["order_id"],
                True,
                {
                    "postgresql_where": sa.text("order_id IS NOT NULL"),
                    "sqlite_where": sa.text("order_id IS NOT NULL"),
                },
            ),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "sale_items"):
        op.create_table(
            "sale_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("sale_id", sa.String(length=36), nullable=False),
            sa.Column("product_id", sa.String(length=36), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("quantity", sa.Integer(), nullable=False),
            sa.Column("price", sa.Numeric(12, 2), nullable=False),
            sa.Column("purchase_price", sa.Numeric(12, 2), nullable=True),
            sa.Column("line_total", sa.Numeric(12, 2), nullable=False),
            sa.ForeignKeyConstraint(["sale_id"], ["sales.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_indexes(
        bind,
        "sale_items",
        [
            ("ix_sale_items_sale_id", ["sale_id"], False),
            ("ix_sale_items_product_id", ["product_id"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("customer_name", sa.String(length=255), nullable=False),
            sa.Column("contact_number", sa.String(length=50), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("delivery_address", sa.String(length=500), nullable=False),
            sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
            sa.Column("discount", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("advance_payment", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("final_amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("payment_method", sa.String(length=30), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_by", sa.String(length=100), nullable=False),
            sa.Column("sale_id", sa.String(length=36), nullable=True),
            sa.Column("order_date", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_indexes(
        bind,
        "orders",
        [
            ("ix_orders_sale_id", ["sale_id"], False),
            ("ix_orders_order_date", ["order_date"], False),
            ("ix_orders_status_order_date", ["status", "order_date"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "order_items"):
        op.create_table(
            "order_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("order_id", sa.String(length=36), nullable=False),
            sa.Column("product_id", sa.String(length=36), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("quantity", sa.Integer(), nullable=False),
            sa.Column("price", sa.Numeric(12, 2), nullable=False),
            sa.Column("line_total", sa.Numeric(12, 2), nullable=False),
            sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_indexes(
        bind,
        "order_items",
        [
            ("ix_order_items_order_id", ["order_id"], False),
            ("ix_order_items_product_id", ["product_id"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "expenses"):
        op.create_table(
            "expenses",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("description", sa.String(length=255), nullable=False),
            sa.Column("category", sa.String(length=50), nullable=False),
            sa.Column("amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("supplier", sa.String(length=255), nullable=True),
            sa.Column("attachment_url", sa.String(length=500), nullable=True),
            sa.Column("product_id", sa.String(length=36), nullable=True),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_indexes(
        bind,
        "expenses",
        [
            ("ix_expenses_product_id", ["product_id"], False),
            ("ix_expenses_date", ["date"], False),
            ("ix_expenses_category_date", ["category", "date"], False),
        ],
    )


def downgrade() -> None:
    bind = op.get_bind()

    _drop_table(bind, "expenses", ["ix_expenses_category_date", "ix_expenses_date", "ix_expenses_product_id"])
    _drop_table(bind, "order_items", ["ix_order_items_product_id", "ix_order_items_order_id"])
    _drop_table(bind, "orders", ["ix_orders_status_order_date", "ix_orders_order_date", "ix_orders_sale_id"])
    _drop_table(bind, "sale_items", ["ix_sale_items_product_id", "ix_sale_items_sale_id"])
    _drop_table(bind, "sales", ["ux_sales_order_id", "ix_sales_cashier_date", "ix_sales_date"])
    _drop_table(
        bind,
        "product_quantity_history",
        ["ux_product_quantity_history_product_sequence", "ix_product_quantity_history_product_id"],
    )
    _drop_table(bind, "products", ["ix_products_name_lower", "ix_products_quantity", "ix_products_category"])
    _drop_table(bind, "categories", ["ux_categories_name_lower"])
    _drop_table(
        bind,
        "user_activities",
        [
            "ix_user_activities_user_timestamp",
            "ix_user_activities_action_timestamp",
            "ix_user_activities_timestamp",
            "ix_user_activities_target_id",
            "ix_user_activities_user_id",
        ],
    )
    _drop_table(
        bind,
        "refresh_tokens",
        ["ix_refresh_tokens_user_revoked_expires", "ix_refresh_tokens_token_jti", "ix_refresh_tokens_user_id"],
    )
    _drop_table(bind, "users", ["ux_users_username_lower", "ix_users_username"])
