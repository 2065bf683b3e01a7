"""Create storefront tables

Revision ID: s001_storefront_tables
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "s001_storefront_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*names):
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
        for name in names
    ]


def upgrade() -> None:
    op.create_table(
        "templates",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("slug", sa.String(200), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("is_available", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("stock_count", sa.Integer(), nullable=True),
        sa.Column("sales_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("download_file_url", sa.String(1024), nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_templates_slug", "templates", ["slug"], unique=True)

    op.create_table(
        "orders",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("buyer_id", sa.String(), nullable=False),
        sa.Column("buyer_email", sa.String(255), nullable=False),
        sa.Column("buyer_name", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), server_default="created", nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("subtotal", sa.Integer(), nullable=False),
        sa.Column("discount_amount", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column("coupon_code", sa.String(50), nullable=True),
        sa.Column("payment_provider", sa.String(50), nullable=True),
        sa.Column("gateway_reference", sa.String(255), nullable=True),
        sa.Column("confirmation_id", sa.String(255), nullable=True),
        sa.Column("download_tokens", sa.JSON(), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        sa.CheckConstraint(
            "discount_amount >= 0 AND discount_amount <= subtotal",
            name="ck_orders_discount_bounds",
        ),
        sa.CheckConstraint("total_amount = subtotal - discount_amount", name="ck_orders_total"),
        sa.CheckConstraint(
            "status IN ('created', 'paid', 'failed', 'refunded')", name="ck_orders_status"
        ),
    )
    op.create_index("ix_orders_buyer_id", "orders", ["buyer_id"])
    op.create_index("ix_orders_gateway_reference", "orders", ["gateway_reference"], unique=True)
    op.create_index("ix_orders_buyer_status_created", "orders", ["buyer_id", "status", "created_at"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), server_default="0", nullable=False),
        sa.Column("template_id", sa.String(), nullable=False),
        sa.Column("template_title", sa.String(255), nullable=False),
        sa.Column("price_at_purchase", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["template_id"], ["templates.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    op.create_table(
        "coupons",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.String(20), nullable=False),
        sa.Column("discount_value", sa.Integer(), nullable=False),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=True),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("used_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("specific_email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "discount_type IN ('percentage', 'fixed')", name="ck_coupons_discount_type"
        ),
        sa.CheckConstraint("discount_value >= 0", name="ck_coupons_discount_value"),
        sa.CheckConstraint("used_count >= 0", name="ck_coupons_used_count"),
    )
    op.create_index("ix_coupons_code", "coupons", ["code"], unique=True)

    op.create_table(
        "coupon_redemptions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("coupon_id", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("buyer_id", sa.String(), nullable=False),
        sa.Column("buyer_email", sa.String(255), nullable=False),
        sa.Column("buyer_name", sa.String(255), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("discount_applied", sa.Integer(), nullable=False),
        *_timestamps("redeemed_at"),
        sa.ForeignKeyConstraint(["coupon_id"], ["coupons.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("coupon_id", "order_id", name="uq_coupon_redemptions_coupon_order"),
    )
    op.create_index("ix_coupon_redemptions_coupon_id", "coupon_redemptions", ["coupon_id"])
    op.create_index("ix_coupon_redemptions_order_id", "coupon_redemptions", ["order_id"])

    op.create_table(
        "download_tokens",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("buyer_id", sa.String(), nullable=False),
        sa.Column("template_id", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["template_id"], ["templates.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_download_tokens_token", "download_tokens", ["token"], unique=True)
    op.create_index("ix_download_tokens_buyer_id", "download_tokens", ["buyer_id"])
    op.create_index("ix_download_tokens_order_id", "download_tokens", ["order_id"])

    op.create_table(
        "payment_webhook_events",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("provider_code", sa.String(50), nullable=False),
        sa.Column("provider_event_id", sa.String(255), nullable=False),
        sa.Column("provider_event_type", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), server_default="pending", nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("signature_verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_error", sa.Text(), nullable=True),
        sa.Column("retry_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("related_order_id", sa.String(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        *_timestamps("received_at"),
        sa.ForeignKeyConstraint(["related_order_id"], ["orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider_code", "provider_event_id", name="uq_webhook_provider_event"),
    )

    op.create_table(
        "payment_audit_log",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("actor_type", sa.String(50), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("previous_state", sa.JSON(), nullable=True),
        sa.Column("new_state", sa.JSON(), nullable=True),
        sa.Column("change_details", sa.JSON(), nullable=True),
        *_timestamps("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_payment_audit_log_action", "payment_audit_log", ["action"])
    op.create_index("ix_payment_audit_log_entity_id", "payment_audit_log", ["entity_id"])

    op.create_table(
        "site_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("site_name", sa.String(255), nullable=False),
        sa.Column("support_email", sa.String(255), nullable=True),
        sa.Column("default_currency", sa.String(3), server_default="INR", nullable=False),
        sa.Column("enable_payments", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "enable_email_notifications", sa.Boolean(), server_default=sa.true(), nullable=False
        ),
        *_timestamps("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("site_settings")
    op.drop_index("ix_payment_audit_log_entity_id", table_name="payment_audit_log")
    op.drop_index("ix_payment_audit_log_action", table_name="payment_audit_log")
    op.drop_table("payment_audit_log")
    op.drop_table("payment_webhook_events")
    op.drop_index("ix_download_tokens_order_id", table_name="download_tokens")
    op.drop_index("ix_download_tokens_buyer_id", table_name="download_tokens")
    op.drop_index("ix_download_tokens_token", table_name="download_tokens")
    op.drop_table("download_tokens")
    op.drop_index("ix_coupon_redemptions_order_id", table_name="coupon_redemptions")
    op.drop_index("ix_coupon_redemptions_coupon_id", table_name="coupon_redemptions")
    op.drop_table("coupon_redemptions")
    op.drop_index("ix_coupons_code", table_name="coupons")
    op.drop_table("coupons")
    op.drop_index("ix_order_items_order_id", table_name="order_items")
    op.drop_table("order_items")
    op.drop_index("ix_orders_buyer_status_created", table_name="orders")
    op.drop_index("ix_orders_gateway_reference", table_name="orders")
    op.drop_index("ix_orders_buyer_id", table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_templates_slug", table_name="templates")
    op.drop_table("templates")
