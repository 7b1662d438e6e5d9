"""Initial ledger schema: products, parties, invoices, payments, settings

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

Creates:
1. products + stock_movements (inventory store)
2. vendors + customers (party ledger)
3. purchases/purchase_items + sales/sale_items (invoices)
4. payment_history + ledger_transactions (append-only audit)
5. system_settings (singleton)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def _party_columns():
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('balance', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
    ]


def _item_columns(parent_table: str, parent_fk: str):
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column(parent_fk, sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.ForeignKeyConstraint([parent_fk], [f'{parent_table}.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
    ]


def upgrade():
    # ==========================================================================
    # 1. INVENTORY
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('stock_quantity', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('minimum_stock_level', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.CheckConstraint('minimum_stock_level >= 0', name='ck_products_min_level_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index('ix_products_active_name', ['is_active', 'name'], unique=False)

    op.create_table('stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('movement_type', sa.String(length=32), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('balance_before', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('balance_after', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('reference_type', sa.String(length=32), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_stock_movements_quantity_positive'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_movements', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stock_movements_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_movements_movement_type'), ['movement_type'], unique=False)
        batch_op.create_index('ix_stock_movements_product_created', ['product_id', 'created_at'], unique=False)
        batch_op.create_index('ix_stock_movements_reference', ['reference_type', 'reference_id'], unique=False)

    # ==========================================================================
    # 2. PARTIES
    # ==========================================================================
    op.create_table('vendors',
        *_party_columns(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('vendors', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_vendors_is_active'), ['is_active'], unique=False)
        batch_op.create_index('ix_vendors_active_created', ['is_active', 'created_at'], unique=False)

    op.create_table('customers',
        *_party_columns(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('customers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_customers_is_active'), ['is_active'], unique=False)
        batch_op.create_index('ix_customers_active_created', ['is_active', 'created_at'], unique=False)
        batch_op.create_index('ix_customers_phone', ['phone'], unique=False)

    # ==========================================================================
    # 3. INVOICES
    # ==========================================================================
    op.create_table('purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('due_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_opening_balance', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number', name='uq_purchases_invoice_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchases', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchases_vendor_id'), ['vendor_id'], unique=False)
        batch_op.create_index('ix_purchases_vendor_due', ['vendor_id', 'due_amount'], unique=False)
        batch_op.create_index('ix_purchases_purchase_date', ['purchase_date'], unique=False)

    op.create_table('purchase_items',
        *_item_columns('purchases', 'purchase_id'),
        sa.CheckConstraint('quantity > 0', name='ck_purchase_items_quantity_positive'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchase_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchase_items_purchase_id'), ['purchase_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchase_items_product_id'), ['product_id'], unique=False)

    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('is_walk_in', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('walk_in_customer_name', sa.String(length=255), nullable=True),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('additional_charges', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('charges_description', sa.String(length=255), nullable=True),
        sa.Column('total_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('due_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_opening_balance', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number', name='uq_sales_invoice_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index('ix_sales_customer_due', ['customer_id', 'due_amount'], unique=False)
        batch_op.create_index('ix_sales_sale_date', ['sale_date'], unique=False)

    op.create_table('sale_items',
        *_item_columns('sales', 'sale_id'),
        sa.CheckConstraint('quantity > 0', name='ck_sale_items_quantity_positive'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sale_items_sale_id'), ['sale_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sale_items_product_id'), ['product_id'], unique=False)

    # ==========================================================================
    # 4. PAYMENTS AND PARTY LEDGER AUDIT
    # ==========================================================================
    op.create_table('payment_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('purchase_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('payment_mode', sa.String(length=16), nullable=False, server_default='CASH'),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('balance_before', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('balance_after', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('(sale_id IS NULL) <> (purchase_id IS NULL)', name='ck_payment_history_one_invoice'),
        sa.CheckConstraint('amount > 0', name='ck_payment_history_amount_positive'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('payment_history', schema=None) as batch_op:
        batch_op.create_index('ix_payment_history_sale_date', ['sale_id', 'payment_date'], unique=False)
        batch_op.create_index('ix_payment_history_purchase_date', ['purchase_id', 'payment_date'], unique=False)

    op.create_table('ledger_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(length=32), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('purchase_id', sa.Integer(), nullable=True),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('balance_before', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('balance_after', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('ledger_transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_ledger_transactions_transaction_type'), ['transaction_type'], unique=False)
        batch_op.create_index('ix_ledger_transactions_vendor', ['vendor_id', 'transaction_date'], unique=False)
        batch_op.create_index('ix_ledger_transactions_customer', ['customer_id', 'transaction_date'], unique=False)

    # ==========================================================================
    # 5. SETTINGS
    # ==========================================================================
    op.create_table('system_settings',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('allow_negative_stock', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('updated_by', sa.String(length=64), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade():
    op.drop_table('system_settings')
    op.drop_table('ledger_transactions')
    op.drop_table('payment_history')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('purchase_items')
    op.drop_table('purchases')
    op.drop_table('customers')
    op.drop_table('vendors')
    op.drop_table('stock_movements')
    op.drop_table('products')
