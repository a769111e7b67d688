"""add banners table for landing page promotions

Revision ID: 0002_add_banners_table
Revises: 0001_initial_schema
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '0002_add_banners_table'
down_revision = '0001_initial_schema'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'banners',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('subtitle', sa.String(200), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('image_url', sa.String(500), nullable=False),
        sa.Column('image_public_id', sa.String(255), nullable=True),
        sa.Column('action_text', sa.String(50), nullable=True),
        sa.Column('action_url', sa.String(500), nullable=True),
        sa.Column('priority', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True, comment='shown from (inclusive)'),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True, comment='shown until (inclusive)'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_banners'),
    )

    op.create_index('ix_banners_priority', 'banners', ['priority'])
    op.create_index('ix_banners_is_active', 'banners', ['is_active'])


def downgrade() -> None:
    op.drop_index('ix_banners_is_active', table_name='banners')
    op.drop_index('ix_banners_priority', table_name='banners')
    op.drop_table('banners')
