"""Create commission ledger and accounts payable tables

Revision ID: 001_commissions_payables
Revises: None
Create Date: 2025-03-01
"""
from alembic import op
import sqlalchemy as sa

revision = '001_commissions_payables'
down_revision = None
branch_labels = None
depends_on = None

commission_status = sa.Enum('CALCULATED', 'APPROVED', 'PAID', name='commissionstatus')
payable_status = sa.Enum('PENDING', 'PAID', 'OVERDUE', 'CANCELLED', name='payablestatus')
payable_category = sa.Enum(
    'COMMISSION', 'RENT', 'PRODUCT', 'SALARY', 'UTILITIES', 'OTHER',
    name='payablecategory',
)


def upgrade():
    op.create_table(
        'commission_configs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('professional_id', sa.Integer(), sa.ForeignKey('professionals.id'), nullable=False),
        sa.Column('pay_day', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_commission_configs_professional_id', 'commission_configs', ['professional_id'], unique=True)

    op.create_table(
        'commissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('professional_id', sa.Integer(), sa.ForeignKey('professionals.id'), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('total_appointments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_revenue', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_commission', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('bonuses', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('final_value', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('status', commission_status, nullable=False),
        sa.Column('payable_obligation_id', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            'professional_id', 'period_start', 'period_end',
            name='uq_commissions_professional_period',
        ),
    )
    op.create_index('ix_commissions_professional_id', 'commissions', ['professional_id'])
    op.create_index('ix_commissions_period_start', 'commissions', ['period_start'])
    op.create_index('ix_commissions_payable_obligation_id', 'commissions', ['payable_obligation_id'])

    op.create_table(
        'commission_line_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('commission_id', sa.Integer(), sa.ForeignKey('commissions.id'), nullable=False),
        sa.Column('appointment_id', sa.Integer(), nullable=False),
        sa.Column('service_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('commission_percentage', sa.Numeric(5, 2), nullable=False),
        sa.Column('commission_value', sa.Numeric(12, 2), nullable=False),
        sa.UniqueConstraint('commission_id', 'appointment_id', name='uq_commission_line_items_appointment'),
    )
    op.create_index('ix_commission_line_items_commission_id', 'commission_line_items', ['commission_id'])
    op.create_index('ix_commission_line_items_appointment_id', 'commission_line_items', ['appointment_id'])

    op.create_table(
        'payable_obligations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('description', sa.String(), nullable=False),
        sa.Column('category', payable_category, nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('status', payable_status, nullable=False),
        sa.Column('payment_method', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('installment_number', sa.Integer(), nullable=True),
        sa.Column('installment_count', sa.Integer(), nullable=True),
        sa.Column('linked_commission_id', sa.Integer(), sa.ForeignKey('commissions.id'), nullable=True),
        sa.Column('linked_supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=True),
        sa.Column('linked_purchase_order_id', sa.Integer(), sa.ForeignKey('purchase_orders.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status <> 'PAID' OR payment_date IS NOT NULL",
            name='ck_payable_obligations_paid_has_date',
        ),
    )
    op.create_index('ix_payable_obligations_category', 'payable_obligations', ['category'])
    op.create_index('ix_payable_obligations_due_date', 'payable_obligations', ['due_date'])
    op.create_index('ix_payable_obligations_status', 'payable_obligations', ['status'])
    op.create_index('ix_payable_obligations_linked_commission_id', 'payable_obligations', ['linked_commission_id'])
    op.create_index('ix_payable_obligations_linked_supplier_id', 'payable_obligations', ['linked_supplier_id'])
    op.create_index(
        'ix_payable_obligations_linked_purchase_order_id', 'payable_obligations', ['linked_purchase_order_id']
    )


def downgrade():
    op.drop_table('payable_obligations')
    op.drop_table('commission_line_items')
    op.drop_table('commissions')
    op.drop_table('commission_configs')
    payable_status.drop(op.get_bind(), checkfirst=True)
    payable_category.drop(op.get_bind(), checkfirst=True)
    commission_status.drop(op.get_bind(), checkfirst=True)
