"""Initial schema: player documents and update history

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

RosterGuard Database Schema
===========================

players: one JSON document per player
data_updates: append-only history of accepted update batches
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


UPDATE_SOURCES = ('manual', 'csv_upload', 'api_call', 'ai_analysis', 'medical_update', 'physio_update')
UPDATE_CATEGORIES = ('personal', 'physical', 'medical', 'performance', 'skills', 'ai_rating', 'availability')


def upgrade() -> None:
    # Create enums first
    update_source_enum = postgresql.ENUM(*UPDATE_SOURCES, name='updatesource', create_type=False)
    update_source_enum.create(op.get_bind(), checkfirst=True)

    update_category_enum = postgresql.ENUM(*UPDATE_CATEGORIES, name='updatecategory', create_type=False)
    update_category_enum.create(op.get_bind(), checkfirst=True)

    # =========================================================================
    # PLAYER DOCUMENTS
    # =========================================================================

    op.create_table(
        'players',
        sa.Column('id', sa.String(100), nullable=False),
        sa.Column('document', postgresql.JSONB(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    # =========================================================================
    # HISTORY (append-only)
    # =========================================================================

    op.create_table(
        'data_updates',
        sa.Column('seq', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('source', update_source_enum, nullable=False),
        sa.Column('category', update_category_enum, nullable=False),
        sa.Column('player_id', sa.String(100), nullable=False),
        sa.Column('previous_value', postgresql.JSONB(), nullable=True),
        sa.Column('new_value', postgresql.JSONB(), nullable=False),
        sa.Column('updated_by', sa.String(255), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('affected_metrics', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.PrimaryKeyConstraint('seq'),
        sa.UniqueConstraint('id'),
    )
    op.create_index('ix_data_updates_player_timestamp', 'data_updates', ['player_id', 'timestamp'])


def downgrade() -> None:
    op.drop_index('ix_data_updates_player_timestamp', table_name='data_updates')
    op.drop_table('data_updates')
    op.drop_table('players')

    # Drop enums
    op.execute("DROP TYPE IF EXISTS updatecategory")
    op.execute("DROP TYPE IF EXISTS updatesource")
