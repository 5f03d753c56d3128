"""Create invoicing tables

Revision ID: 001_invoicing
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

# revision identifiers
revision = '001_invoicing'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create order read tables, invoice counters and invoices"""

    # ====================
    # CUSTOMERS TABLE
    # ====================
    op.create_table(
        'customers',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )

    # ====================
    # ORDERS TABLE
    # ====================
    op.create_table(
        'orders',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('order_number', sa.String(30), nullable=False),
        sa.Column('customer_id', UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('status', sa.String(50), server_default='PENDING', nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('coupon_discount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('shipping_amount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('coupon_code', sa.String(50), nullable=True),
        sa.Column('coupon_discount_type', sa.String(20), nullable=True),
        sa.Column('payment_method', sa.String(50), server_default='COD', nullable=False),
        sa.Column('payment_status', sa.String(50), server_default='PENDING', nullable=False),
        sa.Column('shipping_address', JSONB, nullable=True),
        sa.Column('billing_address', JSONB, nullable=True),
        sa.Column('billing_same_as_shipping', sa.Boolean, server_default='true', nullable=False),
        sa.Column('receiver_name', sa.String(200), nullable=True),
        sa.Column('receiver_phone', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )

    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_order_customer_created', 'orders', ['customer_id', 'created_at'])

    # ====================
    # ORDER ITEMS TABLE
    # ====================
    op.create_table(
        'order_items',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('order_id', UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer, server_default='0', nullable=False),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('product_sku', sa.String(50), nullable=True),
        sa.Column('hsn_code', sa.String(20), nullable=True),
        sa.Column('quantity', sa.Integer, server_default='1', nullable=False),
        sa.Column('unit', sa.String(10), server_default='pcs', nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('discounted_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=True),
    )

    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    # ====================
    # INVOICE COUNTERS TABLE
    # ====================
    op.create_table(
        'invoice_counters',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('year', sa.Integer, nullable=False),
        sa.Column('sequence', sa.Integer, server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.UniqueConstraint('year', name='uq_invoice_counters_year'),
        sa.CheckConstraint('sequence >= 0', name='ck_invoice_counter_sequence_non_negative'),
    )

    # ====================
    # INVOICES TABLE
    # ====================
    op.create_table(
        'invoices',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('invoice_number', sa.String(30), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('order_number', sa.String(30), nullable=False),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('generated_by', UUID(as_uuid=True), nullable=False),
        sa.Column('snapshot', JSONB, nullable=False),
        sa.Column('customer_name', sa.String(200), nullable=False),
        sa.Column('final_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('state', sa.String(20), server_default='GENERATED', nullable=False),
        sa.Column('download_count', sa.Integer, server_default='0', nullable=False),
        sa.Column('last_downloaded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.UniqueConstraint('order_id', name='uq_invoices_order_id'),
        sa.UniqueConstraint('invoice_number', name='uq_invoices_invoice_number'),
        sa.CheckConstraint('download_count >= 0', name='ck_invoices_download_count_non_negative'),
    )

    op.create_index('ix_invoices_generated_at', 'invoices', ['generated_at'])
    op.create_index('ix_invoices_state_generated_at', 'invoices', ['state', 'generated_at'])


def downgrade():
    """Drop invoicing tables"""
    op.drop_index('ix_invoices_state_generated_at', table_name='invoices')
    op.drop_index('ix_invoices_generated_at', table_name='invoices')
    op.drop_table('invoices')
    op.drop_table('invoice_counters')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')
    op.drop_index('ix_order_customer_created', table_name='orders')
    op.drop_index('ix_orders_order_number', table_name='orders')
    op.drop_table('orders')
    op.drop_table('customers')
