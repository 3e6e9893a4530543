"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the retail POS and installment-contract schema:
- users: worker accounts referenced by every audit column
- items / inventory_logs: catalog with reservation-aware stock and its audit trail
- sales / document_sequences: cash and installment sale records with numbering
- contract_customers, installment_contracts, contract_approvals, contract_sponsors
- installment_payments / installment_transactions: schedule and payment ledger

All money columns are integer cents.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _now():
    return sa.text('CURRENT_TIMESTAMP')


def upgrade():
    # ============================================================================
    # users
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=80), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('id_card', sa.String(length=64), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='worker'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_id_card', 'users', ['id_card'], unique=True)

    # ============================================================================
    # items: quantity never negative; pending contracts reserve without decrementing
    # ============================================================================
    op.create_table(
        'items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_cash_cents', sa.Integer(), nullable=False),
        sa.Column('price_installment_total_cents', sa.Integer(), nullable=True),
        sa.Column('installment_months', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('installment_per_month_cents', sa.Integer(), nullable=True),
        sa.Column('available', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('installment', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('item_image', sa.LargeBinary(), nullable=True),
        sa.Column('date_added', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('quantity >= 0', name='ck_items_quantity_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_items_name', 'items', ['name'])
    op.create_index('ix_items_available_installment', 'items', ['available', 'installment'])

    op.create_table(
        'inventory_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('worker_id', sa.Integer(), nullable=True),
        sa.Column('change_type', sa.String(length=16), nullable=False),
        sa.Column('quantity_changed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.ForeignKeyConstraint(['worker_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_logs_item_id', 'inventory_logs', ['item_id'])
    op.create_index('ix_inventory_logs_worker_id', 'inventory_logs', ['worker_id'])
    op.create_index('ix_inventory_logs_change_type', 'inventory_logs', ['change_type'])
    op.create_index('ix_inventory_logs_item_created', 'inventory_logs', ['item_id', 'created_at'])

    # ============================================================================
    # sales + document numbering
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_number', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('sale_type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_document_number', 'sales', ['document_number'])
    op.create_index('ix_sales_type_created', 'sales', ['sale_type', 'created_at'])
    op.create_index('ix_sales_user_id', 'sales', ['user_id'])
    op.create_index('ix_sales_item_id', 'sales', ['item_id'])

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', name='uq_doc_sequences_type'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # contracts
    # ============================================================================
    op.create_table(
        'contract_customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('id_card_number', sa.String(length=64), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('id_card_image', sa.LargeBinary(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_contract_customers_id_card_number', 'contract_customers', ['id_card_number'], unique=True)

    op.create_table(
        'installment_contracts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
        sa.Column('down_payment_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('months', sa.Integer(), nullable=False),
        sa.Column('monthly_payment_cents', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['contract_customers.id'], ),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_installment_contracts_user_id', 'installment_contracts', ['user_id'])
    op.create_index('ix_installment_contracts_customer_id', 'installment_contracts', ['customer_id'])
    op.create_index('ix_contracts_item_status', 'installment_contracts', ['item_id', 'status'])
    op.create_index('ix_contracts_status_created', 'installment_contracts', ['status', 'created_at'])

    op.create_table(
        'contract_approvals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('contract_id', sa.Integer(), nullable=False),
        sa.Column('approver_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending_review'),
        sa.Column('reason', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['contract_id'], ['installment_contracts.id'], ),
        sa.ForeignKeyConstraint(['approver_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('contract_id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'contract_sponsors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('contract_id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('id_card_number', sa.String(length=64), nullable=False),
        sa.Column('relationship', sa.String(length=64), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('id_card_image', sa.LargeBinary(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['contract_id'], ['installment_contracts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_contract_sponsors_contract_id', 'contract_sponsors', ['contract_id'])
    op.create_index('ix_contract_sponsors_id_card_number', 'contract_sponsors', ['id_card_number'])

    # ============================================================================
    # payment schedule + ledger
    # ============================================================================
    op.create_table(
        'installment_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('month_number', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('amount_due_cents', sa.Integer(), nullable=False),
        sa.Column('amount_paid_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('paid_date', sa.Date(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('amount_due_cents >= 0', name='ck_installment_payments_due_non_negative'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_id', 'month_number', name='uq_installment_payments_sale_month'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_installment_payments_sale_id', 'installment_payments', ['sale_id'])
    op.create_index('ix_installment_payments_due', 'installment_payments', ['due_date', 'amount_due_cents'])

    op.create_table(
        'installment_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('payment_id', sa.Integer(), nullable=False),
        sa.Column('amount_paid_cents', sa.Integer(), nullable=False),
        sa.Column('worker_id', sa.Integer(), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['payment_id'], ['installment_payments.id'], ),
        sa.ForeignKeyConstraint(['worker_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_installment_transactions_payment_id', 'installment_transactions', ['payment_id'])
    op.create_index('ix_installment_transactions_worker_id', 'installment_transactions', ['worker_id'])
    op.create_index('ix_installment_transactions_payment_date', 'installment_transactions', ['payment_id', 'payment_date'])


def downgrade():
    op.drop_table('installment_transactions')
    op.drop_table('installment_payments')
    op.drop_table('contract_sponsors')
    op.drop_table('contract_approvals')
    op.drop_table('installment_contracts')
    op.drop_table('contract_customers')
    op.drop_table('document_sequences')
    op.drop_table('sales')
    op.drop_table('inventory_logs')
    op.drop_table('items')
    op.drop_table('users')
