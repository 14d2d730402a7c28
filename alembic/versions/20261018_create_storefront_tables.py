"""Create storefront checkout tables

Revision ID: 20261018_create_storefront_tables
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_create_storefront_tables'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Catalog
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('category', sa.String(128), nullable=True),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )

    op.create_table(
        'product_variants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('unit_label', sa.String(64), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('stock', sa.Integer, nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )

    # Shipping
    op.create_table(
        'shipping_options',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(10), nullable=False, server_default='USD'),
        sa.Column('estimated_days', sa.String(32), nullable=True,
                  comment='e.g. 3-5 or 1-2'),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('sort_order', sa.Integer, nullable=False, server_default='0'),
        *_timestamps(),
    )

    # Coupons
    op.create_table(
        'coupons',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('code', sa.String(64), unique=True, nullable=False, index=True,
                  comment='Canonical (trimmed, uppercase) coupon code'),
        sa.Column('description', sa.Text, nullable=True,
                  comment='Internal description'),
        sa.Column('discount_type', sa.String(20), nullable=False, server_default='percentage',
                  comment='percentage or fixed'),
        sa.Column('discount_value', sa.Numeric(10, 2), nullable=False,
                  comment='Discount value (percentage or amount)'),
        sa.Column('max_discount_amount', sa.Numeric(10, 2), nullable=True,
                  comment='Cap on discount for percentage type'),
        sa.Column('min_order_amount', sa.Numeric(10, 2), nullable=True,
                  comment='Minimum items subtotal to apply coupon'),
        sa.Column('usage_limit', sa.Integer, nullable=True,
                  comment='Total times this coupon can be used'),
        sa.Column('usage_count', sa.Integer, nullable=False, server_default='0',
                  comment='Number of successful redemptions'),
        sa.Column('per_user_limit', sa.Integer, nullable=True,
                  comment='Times each signed-in user can use this coupon'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True,
                  comment='Expiry (null = never expires)'),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint('usage_count >= 0', name='ck_coupons_usage_count_non_negative'),
    )

    # Append-only, no FK to coupons
    op.create_table(
        'coupon_usages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('coupon_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('order_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('user_id', sa.String(64), nullable=True,
                  comment='Null for guest checkout'),
        sa.Column('discount_amount', sa.Numeric(10, 2), nullable=False,
                  comment='Actual discount applied'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index('ix_coupon_usage_coupon_user', 'coupon_usages', ['coupon_id', 'user_id'])

    # Orders
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_number', sa.String(32), unique=True, nullable=False, index=True),
        sa.Column('user_id', sa.String(64), nullable=True,
                  comment='Null for guest checkout'),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_email', sa.String(320), nullable=False),
        sa.Column('customer_phone', sa.String(32), nullable=True),
        sa.Column('shipping_address', sa.JSON, nullable=False),
        sa.Column('shipping_option_id', sa.Uuid(),
                  sa.ForeignKey('shipping_options.id', ondelete='SET NULL'), nullable=True),
        sa.Column('shipping_cost', sa.Numeric(10, 2), nullable=False, server_default='0',
                  comment='Shipping price copied at order time'),
        sa.Column('coupon_code', sa.String(64), nullable=True),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(10), nullable=False, server_default='USD'),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('order_status', sa.String(20), nullable=False, server_default='new'),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
        sa.CheckConstraint('total_amount >= 0', name='ck_orders_total_non_negative'),
    )
    op.create_index('ix_order_user_created', 'orders', ['user_id', 'created_at'])
    op.create_index('ix_order_status_created', 'orders', ['order_status', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('variant_id', sa.Uuid(), nullable=True),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('unit_label', sa.String(64), nullable=True),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(10, 2), nullable=False),
        sa.CheckConstraint('quantity >= 1', name='ck_order_items_quantity_positive'),
    )


def downgrade() -> None:
    op.drop_table('order_items')
    op.drop_index('ix_order_status_created', table_name='orders')
    op.drop_index('ix_order_user_created', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_coupon_usage_coupon_user', table_name='coupon_usages')
    op.drop_table('coupon_usages')
    op.drop_table('coupons')
    op.drop_table('shipping_options')
    op.drop_table('product_variants')
    op.drop_table('products')
