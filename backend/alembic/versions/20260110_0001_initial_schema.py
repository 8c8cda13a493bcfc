"""initial schema: users and invoices

Revision ID: 20260110_0001
Revises:
Create Date: 2026-01-10 00:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20260110_0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONDocument = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    op.create_table('users',
                    sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
                    sa.Column('email', sa.String(length=255), nullable=False),
                    sa.Column('password_hash', sa.String(length=255), nullable=False),
                    sa.Column('full_name', sa.String(length=100), nullable=False),
                    sa.Column('business_details', JSONDocument),
                    sa.Column('is_active', sa.Boolean(), nullable=False,
                              server_default=sa.true()),
                    sa.Column('last_login', sa.DateTime(timezone=True)),
                    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
                    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
                    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('invoices',
                    sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
                    sa.Column('invoice_number', sa.String(length=50), nullable=False),
                    sa.Column('owner_id', sa.Uuid(as_uuid=True),
                              sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
                    sa.Column('status', sa.String(length=20), nullable=False,
                              server_default='pending'),
                    sa.Column('is_draft', sa.Boolean(), nullable=False,
                              server_default=sa.false()),
                    sa.Column('sender', JSONDocument, nullable=False),
                    sa.Column('client', JSONDocument, nullable=False),
                    sa.Column('items', JSONDocument, nullable=False),
                    sa.Column('subtotal', sa.Float(), nullable=False, server_default='0'),
                    sa.Column('tax_name', sa.String(length=50)),
                    sa.Column('tax_percentage', sa.Float(), nullable=False, server_default='0'),
                    sa.Column('tax_amount', sa.Float(), nullable=False, server_default='0'),
                    sa.Column('discount', sa.Float(), nullable=False, server_default='0'),
                    sa.Column('total_amount', sa.Float(), nullable=False, server_default='0'),
                    sa.Column('currency', sa.String(length=10), nullable=False,
                              server_default='USD'),
                    sa.Column('issue_date', sa.DateTime(timezone=True), nullable=False),
                    sa.Column('due_date', sa.DateTime(timezone=True)),
                    sa.Column('payment_terms', sa.String(length=255)),
                    sa.Column('notes', sa.Text()),
                    sa.Column('payment_qr', sa.String(length=255)),
                    sa.Column('qr_code_image', sa.Text()),
                    sa.Column('qr_image_url', sa.Text()),
                    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
                    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
                    sa.CheckConstraint("status IN ('pending', 'paid', 'cancelled')",
                                       name='check_valid_invoice_status'),
                    )
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'], unique=True)
    op.create_index('ix_invoices_owner_id', 'invoices', ['owner_id'])
    op.create_index('idx_invoice_owner_updated', 'invoices', ['owner_id', 'updated_at'])


def downgrade() -> None:
    op.drop_index('idx_invoice_owner_updated', table_name='invoices')
    op.drop_index('ix_invoices_owner_id', table_name='invoices')
    op.drop_index('ix_invoices_invoice_number', table_name='invoices')
    op.drop_table('invoices')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
