"""Initial schema: branches, parties, orders, sales, purchases, rollups, ledger

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17

This migration creates:
1. Branches, accounts, memo sequences
2. Customers, suppliers, employees
3. Products and the stock registry
4. Orders/order items, sales/sold items, purchases
5. Daily rollups (top_sheets, employee_progress)
6. Append-only transactions ledger
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261017_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _money(name):
    return sa.Column(name, sa.Numeric(14, 2), nullable=False, server_default='0')


def _count(name):
    return sa.Column(name, sa.Integer(), nullable=False, server_default='0')


def upgrade():
    # ==========================================================================
    # 1. BRANCHES / ACCOUNTS / MEMO SEQUENCES
    # ==========================================================================
    op.create_table('branches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sa.UniqueConstraint('code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_branches_code', 'branches', ['code'])

    op.create_table('accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        _money('current_balance'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("type IN ('cash', 'bank')", name='ck_accounts_type'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_accounts_branch_id', 'accounts', ['branch_id'])
    op.create_index('ix_accounts_branch_type', 'accounts', ['branch_id', 'type'])

    op.create_table('memo_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'document_type', name='uq_memo_sequences_branch_type'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_memo_sequences_branch_id', 'memo_sequences', ['branch_id'])

    # ==========================================================================
    # 2. PARTIES
    # ==========================================================================
    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('mobile', sa.String(length=32), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('tax_id', sa.String(length=64), nullable=True),
        sa.Column('status', sa.Boolean(), nullable=False, server_default='1'),
        _money('due_amount'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'mobile', name='uq_customers_branch_mobile'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_customers_branch_id', 'customers', ['branch_id'])

    op.create_table('suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('mobile', sa.String(length=32), nullable=True),
        sa.Column('status', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_suppliers_branch_id', 'suppliers', ['branch_id'])

    op.create_table('employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='salesperson'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('mobile', sa.String(length=32), nullable=True),
        _money('base_salary'),
        _money('overtime_rate'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_employees_branch_id', 'employees', ['branch_id'])

    # ==========================================================================
    # 3. PRODUCTS / STOCK REGISTRY
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        _count('quantity'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'product_name', name='uq_products_branch_name'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_branch_id', 'products', ['branch_id'])

    op.create_table('product_stock_registry',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('memo_no', sa.String(length=64), nullable=False),
        sa.Column('stock_date', sa.Date(), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_product_stock_registry_memo_no', 'product_stock_registry', ['memo_no'])
    op.create_index('ix_product_stock_registry_product_id', 'product_stock_registry', ['product_id'])
    op.create_index('ix_stock_registry_branch_date', 'product_stock_registry', ['branch_id', 'stock_date'])

    # ==========================================================================
    # 4. ORDERS / SALES / PURCHASES
    # ==========================================================================
    op.create_table('orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('memo_no', sa.String(length=64), nullable=False),
        sa.Column('order_date', sa.Date(), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('salesperson_id', sa.Integer(), sa.ForeignKey('employees.id'), nullable=False),
        sa.Column('payment_account_id', sa.Integer(), sa.ForeignKey('accounts.id'), nullable=True),
        _money('total_payable_amount'),
        _money('advance_payment_amount'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        _count('total_items'),
        _count('items_delivered'),
        sa.Column('delivery_date', sa.Date(), nullable=True),
        sa.Column('exit_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'memo_no', name='uq_orders_branch_memo'),
        sa.CheckConstraint('items_delivered >= 0', name='ck_orders_delivered_nonneg'),
        sa.CheckConstraint('items_delivered <= total_items', name='ck_orders_delivered_le_total'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_orders_branch_id', 'orders', ['branch_id'])
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_salesperson_id', 'orders', ['salesperson_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_branch_status_date', 'orders', ['branch_id', 'status', 'order_date'])

    op.create_table('order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('memo_no', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        _money('subtotal'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'product_id', name='uq_order_items_order_product'),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_memo_no', 'order_items', ['memo_no'])

    op.create_table('sales_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('memo_no', sa.String(length=64), nullable=False),
        sa.Column('sale_date', sa.Date(), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('salesperson_id', sa.Integer(), sa.ForeignKey('employees.id'), nullable=False),
        sa.Column('payment_account_id', sa.Integer(), sa.ForeignKey('accounts.id'), nullable=True),
        _money('total_payable_amount'),
        _money('paid_amount'),
        _count('total_items'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'memo_no', name='uq_sales_branch_memo'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_history_branch_id', 'sales_history', ['branch_id'])
    op.create_index('ix_sales_history_customer_id', 'sales_history', ['customer_id'])
    op.create_index('ix_sales_history_salesperson_id', 'sales_history', ['salesperson_id'])
    op.create_index('ix_sales_branch_date', 'sales_history', ['branch_id', 'sale_date'])

    op.create_table('sold_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), sa.ForeignKey('sales_history.id'), nullable=False),
        sa.Column('memo_no', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        _money('total_price'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_sold_items_quantity_positive'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sold_items_sale_id', 'sold_items', ['sale_id'])
    op.create_index('ix_sold_items_memo_no', 'sold_items', ['memo_no'])

    op.create_table('purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('memo_no', sa.String(length=64), nullable=False),
        sa.Column('purchase_date', sa.Date(), nullable=False),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False),
        _money('total_amount'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'memo_no', name='uq_purchases_branch_memo'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_purchases_branch_id', 'purchases', ['branch_id'])
    op.create_index('ix_purchases_supplier_id', 'purchases', ['supplier_id'])
    op.create_index('ix_purchases_branch_date', 'purchases', ['branch_id', 'purchase_date'])

    # ==========================================================================
    # 5. DAILY ROLLUPS
    # ==========================================================================
    op.create_table('top_sheets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('sheet_date', sa.Date(), nullable=False),
        _count('pending'),
        _count('checkout'),
        _count('delivery'),
        _count('cancelled'),
        _count('order_count'),
        _count('ready_made'),
        _money('cash'),
        _money('bank'),
        _money('expense'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'sheet_date', name='uq_top_sheets_branch_date'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_top_sheets_branch_id', 'top_sheets', ['branch_id'])
    op.create_index('ix_top_sheets_sheet_date', 'top_sheets', ['sheet_date'])

    op.create_table('employee_progress',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sheet_date', sa.Date(), nullable=False),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id'), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        _money('sale_amount'),
        _money('sale_return_amount'),
        _count('order_count'),
        _count('item_count'),
        _count('production_units'),
        _money('overtime_hours'),
        _money('advance_payment'),
        _money('salary'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sheet_date', 'employee_id', name='uq_employee_progress_date_employee'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_employee_progress_employee_id', 'employee_progress', ['employee_id'])
    op.create_index('ix_employee_progress_branch_date', 'employee_progress', ['branch_id', 'sheet_date'])

    # ==========================================================================
    # 6. TRANSACTIONS LEDGER
    # ==========================================================================
    op.create_table('transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.String(length=64), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('memo_no', sa.String(length=64), nullable=True),
        sa.Column('from_entity_id', sa.Integer(), nullable=False),
        sa.Column('from_entity_type', sa.String(length=16), nullable=False),
        sa.Column('to_entity_id', sa.Integer(), nullable=False),
        sa.Column('to_entity_type', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_transactions_memo_no', 'transactions', ['memo_no'])
    op.create_index('ix_transactions_transaction_type', 'transactions', ['transaction_type'])
    op.create_index('ix_transactions_branch_created', 'transactions', ['branch_id', 'created_at'])
    op.create_index('ix_transactions_from', 'transactions', ['from_entity_type', 'from_entity_id'])
    op.create_index('ix_transactions_to', 'transactions', ['to_entity_type', 'to_entity_id'])


def downgrade():
    op.drop_table('transactions')
    op.drop_table('employee_progress')
    op.drop_table('top_sheets')
    op.drop_table('purchases')
    op.drop_table('sold_items')
    op.drop_table('sales_history')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('product_stock_registry')
    op.drop_table('products')
    op.drop_table('employees')
    op.drop_table('suppliers')
    op.drop_table('customers')
    op.drop_table('memo_sequences')
    op.drop_table('accounts')
    op.drop_table('branches')
