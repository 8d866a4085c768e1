"""initial pos schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _fk(column: str, target: str) -> sa.Column:
    return sa.Column(column, sa.Integer(), sa.ForeignKey(f"{target}.id", ondelete="CASCADE"), nullable=False)


def _index(table: str, *columns: str, unique: bool = False) -> None:
    for column in columns:
        op.create_index(op.f(f"ix_{table}_{column}"), table, [column], unique=unique)


def upgrade() -> None:
    # Roles / users
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("roles", "name", unique=True)
    _index("roles", "deleted_at")

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("firstname", sa.String(length=100), nullable=False),
        sa.Column("lastname", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("users", "email", unique=True)
    _index("users", "deleted_at")

    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _fk("user_id", "users"),
        _fk("role_id", "roles"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("user_roles", "user_id", "role_id")

    # Credentials
    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _fk("user_id", "users"),
        sa.Column("token", sa.String(length=512), nullable=False),
        sa.Column("expiration", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("refresh_tokens", "user_id")
    _index("refresh_tokens", "token", unique=True)

    op.create_table(
        "reset_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _fk("user_id", "users"),
        sa.Column("token", sa.String(length=255), nullable=False),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("reset_tokens", "user_id")
    _index("reset_tokens", "token", unique=True)

    # Merchants / cashiers
    op.create_table(
        "merchants",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _fk("user_id", "users"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("contact_phone", sa.String(length=50), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("merchants", "user_id", "name", "deleted_at")

    op.create_table(
        "cashiers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _fk("merchant_id", "merchants"),
        _fk("user_id", "users"),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("cashiers", "merchant_id", "user_id", "deleted_at")

    # Catalog
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("slug_category", sa.String(length=300), nullable=False),
        sa.Column("image_category", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("categories", "name", "slug_category", "deleted_at")

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _fk("merchant_id", "merchants"),
        _fk("category_id", "categories"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("count_in_stock", sa.Integer(), nullable=False),
        sa.Column("brand", sa.String(length=255), nullable=True),
        sa.Column("weight", sa.Integer(), nullable=True),
        sa.Column("slug_product", sa.String(length=300), nullable=False),
        sa.Column("image_product", sa.String(length=500), nullable=True),
        sa.Column("barcode", sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("products", "merchant_id", "category_id", "name", "slug_product", "deleted_at")

    # Orders / order items / transactions
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _fk("merchant_id", "merchants"),
        _fk("cashier_id", "cashiers"),
        sa.Column("total_price", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("orders", "merchant_id", "cashier_id", "deleted_at")

    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _fk("order_id", "orders"),
        _fk("product_id", "products"),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("order_items", "order_id", "product_id", "deleted_at")

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _fk("order_id", "orders"),
        _fk("merchant_id", "merchants"),
        sa.Column("payment_method", sa.String(length=50), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("change_amount", sa.Integer(), nullable=False),
        sa.Column("payment_status", sa.String(length=50), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("transactions", "order_id", "merchant_id", "deleted_at")


def downgrade() -> None:
    # Indexes go with their tables.
    for table in (
        "transactions",
        "order_items",
        "orders",
        "products",
        "categories",
        "cashiers",
        "merchants",
        "reset_tokens",
        "refresh_tokens",
        "user_roles",
        "users",
        "roles",
    ):
        op.drop_table(table)
