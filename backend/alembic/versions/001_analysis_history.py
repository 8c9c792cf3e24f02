"""Analysis history table

Revision ID: 001_analysis_history
Revises:
Create Date: 2026-10-19

Creates:
- analysisstatus enum (in_progress/completed/failed)
- analysis_history table for codebase and dependency analysis runs
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_analysis_history'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ==========================================================================
    # Create Enums
    # ==========================================================================

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        analysis_status_enum = postgresql.ENUM(
            'in_progress', 'completed', 'failed',
            name='analysisstatus',
            create_type=False,
        )
        analysis_status_enum.create(bind, checkfirst=True)
    else:
        analysis_status_enum = sa.Enum(
            'in_progress', 'completed', 'failed',
            name='analysisstatus',
        )

    # ==========================================================================
    # analysis_history
    # ==========================================================================

    op.create_table(
        'analysis_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('repository_url', sa.String(500), nullable=True),
        sa.Column('branch', sa.String(255), nullable=True),
        sa.Column('analysis_type', sa.String(50), nullable=False, server_default='codebase'),
        sa.Column('language', sa.String(50), nullable=True),
        sa.Column('status', analysis_status_enum, nullable=False, server_default='in_progress'),
        sa.Column('files_analyzed', sa.Integer(), nullable=True),
        sa.Column('processed_files', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('modernization_score', sa.Integer(), nullable=True),
        sa.Column('overall_severity', sa.String(50), nullable=True),
        sa.Column('query_parameters', sa.JSON(), nullable=True),
        sa.Column('result_data', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_analysis_history_repository_url', 'analysis_history', ['repository_url'])
    op.create_index('ix_analysis_history_analysis_type', 'analysis_history', ['analysis_type'])
    op.create_index('ix_analysis_history_status', 'analysis_history', ['status'])
    op.create_index('ix_analysis_history_created_at', 'analysis_history', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_analysis_history_created_at', table_name='analysis_history')
    op.drop_index('ix_analysis_history_status', table_name='analysis_history')
    op.drop_index('ix_analysis_history_analysis_type', table_name='analysis_history')
    op.drop_index('ix_analysis_history_repository_url', table_name='analysis_history')
    op.drop_table('analysis_history')

    # Drop enums (PostgreSQL only)
    op.execute("DROP TYPE IF EXISTS analysisstatus")
