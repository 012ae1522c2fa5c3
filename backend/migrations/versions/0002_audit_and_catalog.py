"""audit entries and catalog tables

Revision ID: 0002_audit_and_catalog
Revises: 0001_initial_authz
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0002_audit_and_catalog'
down_revision = '0001_initial_authz'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('audit_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('action_type', sa.String(length=64), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('revertible', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('reverted', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_audit_entries_action_type', 'audit_entries', ['action_type'])
    op.create_index('ix_audit_entries_actor_id', 'audit_entries', ['actor_id'])

    op.create_table('product',
        sa.Column('prodcode', sa.String(length=32), primary_key=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('unit', sa.String(length=16), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )

    op.create_table('pricehist',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('prodcode', sa.String(length=32), sa.ForeignKey('product.prodcode', ondelete='CASCADE'), nullable=False),
        sa.Column('effdate', sa.DateTime(timezone=True), nullable=False),
        sa.Column('unitprice', sa.Float(), nullable=True),
    )
    op.create_index('ix_pricehist_prodcode', 'pricehist', ['prodcode'])
    op.create_index('ix_pricehist_effdate', 'pricehist', ['effdate'])

def downgrade():
    op.drop_index('ix_pricehist_effdate', table_name='pricehist')
    op.drop_index('ix_pricehist_prodcode', table_name='pricehist')
    op.drop_table('pricehist')
    op.drop_table('product')
    op.drop_index('ix_audit_entries_actor_id', table_name='audit_entries')
    op.drop_index('ix_audit_entries_action_type', table_name='audit_entries')
    op.drop_table('audit_entries')
