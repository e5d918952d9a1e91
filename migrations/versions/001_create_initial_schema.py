"""create users and pastes

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-19 12:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('nickname', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('user_id'),
    )

    op.create_table(
        'pastes',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('slug', sa.String(length=32), nullable=False),
        sa.Column('owner_id', sa.String(length=255), nullable=False),
        sa.Column('filename', sa.String(length=512), nullable=False),
        sa.Column('mimetype', sa.String(length=255), nullable=False),
        sa.Column('storage_path', sa.String(length=1024), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('max_views', sa.Integer(), nullable=True),
        sa.Column('max_downloads', sa.Integer(), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('download_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug', name='uq_pastes_slug'),
        sa.CheckConstraint('max_views IS NULL OR max_views >= 0', name='ck_pastes_max_views_non_negative'),
        sa.CheckConstraint('max_downloads IS NULL OR max_downloads >= 0', name='ck_pastes_max_downloads_non_negative'),
        sa.CheckConstraint('view_count >= 0', name='ck_pastes_view_count_non_negative'),
        sa.CheckConstraint('download_count >= 0', name='ck_pastes_download_count_non_negative'),
    )
    op.create_index(op.f('ix_pastes_owner_id'), 'pastes', ['owner_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_pastes_owner_id'), table_name='pastes')
    op.drop_table('pastes')
    op.drop_table('users')
