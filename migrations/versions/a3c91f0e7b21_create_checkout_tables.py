"""create checkout tables

Revision ID: a3c91f0e7b21
Revises:
Create Date: 2025-11-20 10:12:44.518230

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a3c91f0e7b21"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("course_type", sa.String(50), nullable=False, server_default="online"),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("price_before_discount", sa.Numeric(10, 2), nullable=True),
        sa.Column("early_bird_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("early_bird_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_courses_id", "courses", ["id"])
    op.create_index("ix_courses_slug", "courses", ["slug"], unique=True)
    op.create_index("ix_courses_title", "courses", ["title"])

    op.create_table(
        "course_enrollments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("progress_percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),
    )
    op.create_index("ix_course_enrollments_id", "course_enrollments", ["id"])
    op.create_index("ix_course_enrollments_user_id", "course_enrollments", ["user_id"])
    op.create_index("ix_course_enrollments_course_id", "course_enrollments", ["course_id"])

    op.create_table(
        "discount_codes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("discount_type", sa.String(20), nullable=False, server_default="percentage"),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("valid_until", sa.Date(), nullable=False),
        sa.Column("applicable_courses", sa.JSON(), nullable=False),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_usage", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("has_balance_limit", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("remaining_balance", sa.Numeric(10, 2), nullable=True),
        sa.Column("owner_user_id", sa.String(255), nullable=True),
        sa.Column("is_reward", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "remaining_balance IS NULL OR remaining_balance >= 0",
            name="ck_discount_codes_balance_non_negative",
        ),
    )
    op.create_index("ix_discount_codes_id", "discount_codes", ["id"])
    op.create_index("ix_discount_codes_owner_user_id", "discount_codes", ["owner_user_id"])
    op.create_index(
        "uq_discount_codes_code_lower",
        "discount_codes",
        [sa.text("lower(code)")],
        unique=True,
    )

    op.create_table(
        "discount_redemptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("discount_code_id", sa.Integer(), sa.ForeignKey("discount_codes.id"), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("balance_after", sa.Numeric(10, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_discount_redemptions_id", "discount_redemptions", ["id"])
    op.create_index("ix_discount_redemptions_order_id", "discount_redemptions", ["order_id"], unique=True)
    op.create_index("ix_discount_redemptions_discount_code_id", "discount_redemptions", ["discount_code_id"])

    op.create_table(
        "referral_codes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("owner_user_id", sa.String(255), nullable=False),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_referral_codes_id", "referral_codes", ["id"])
    op.create_index("ix_referral_codes_code", "referral_codes", ["code"], unique=True)
    op.create_index("ix_referral_codes_owner_user_id", "referral_codes", ["owner_user_id"], unique=True)

    op.create_table(
        "referral_uses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("referral_code_id", sa.Integer(), sa.ForeignKey("referral_codes.id"), nullable=False),
        sa.Column("buyer_ref", sa.String(255), nullable=False),
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("usage_counted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reward_code", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_referral_uses_id", "referral_uses", ["id"])
    op.create_index("ix_referral_uses_referral_code_id", "referral_uses", ["referral_code_id"])
    op.create_index("ix_referral_uses_buyer_ref", "referral_uses", ["buyer_ref"])
    op.create_index("ix_referral_uses_order_id", "referral_uses", ["order_id"], unique=True)

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("course_name", sa.String(255), nullable=False),
        sa.Column("buyer_email", sa.String(255), nullable=False),
        sa.Column("buyer_ref", sa.String(255), nullable=False),
        sa.Column("buyer_name", sa.String(255), nullable=False),
        sa.Column("buyer_phone", sa.String(50), nullable=True),
        sa.Column("locale", sa.String(10), nullable=False, server_default="tr"),
        sa.Column("original_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount_code", sa.String(64), nullable=True),
        sa.Column("referral_code", sa.String(64), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(50), nullable=False, server_default="shopier"),
        sa.Column("provider_payment_id", sa.String(255), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("enrolled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("enrollment_id", sa.Integer(), sa.ForeignKey("course_enrollments.id"), nullable=True),
        sa.Column("custom_data", sa.JSON(), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_orders_id", "orders", ["id"])
    op.create_index("ix_orders_order_id", "orders", ["order_id"], unique=True)
    op.create_index("ix_orders_course_id", "orders", ["course_id"])
    op.create_index("ix_orders_buyer_email", "orders", ["buyer_email"])
    op.create_index("ix_orders_buyer_ref", "orders", ["buyer_ref"])
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_provider_payment_id", "orders", ["provider_payment_id"])


def downgrade() -> None:
    op.drop_table("orders")
    op.drop_table("referral_uses")
    op.drop_table("referral_codes")
    op.drop_table("discount_redemptions")
    op.drop_index("uq_discount_codes_code_lower", table_name="discount_codes")
    op.drop_table("discount_codes")
    op.drop_table("course_enrollments")
    op.drop_table("courses")
