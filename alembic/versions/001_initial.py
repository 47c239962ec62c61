"""Initial schema - Baseline migration

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the three registry tables and the ingestion run log. Column
types are portable so the same migration runs on PostgreSQL and SQLite.
For existing databases, use `alembic stamp 001_initial` to mark as applied.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENTITY_TABLES = ('corporate_entities', 'fictitious_names', 'general_partnerships')

REGISTRY_STATUSES = ('ACTIVE', 'INACTIVE_HELD', 'INACTIVE', 'EXPIRED', 'CANCELLED', 'UNKNOWN')


def _create_entity_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('document_number', sa.String(12), nullable=False),
        sa.Column('legal_name', sa.String(255), nullable=False),
        sa.Column('normalized_name', sa.String(255), nullable=False),
        sa.Column('status', sa.Enum(*REGISTRY_STATUSES, name='registrystatus',
                                    native_enum=False, length=20), nullable=False),
        sa.Column('status_code', sa.String(4)),
        sa.Column('filing_type', sa.String(20)),
        sa.Column('entity_type', sa.String(100)),
        sa.Column('principal_address', sa.Text()),
        sa.Column('mailing_address', sa.Text()),
        sa.Column('registered_agent_name', sa.String(255)),
        sa.Column('county', sa.String(50)),
        sa.Column('party_count', sa.Integer()),
        sa.Column('filing_date', sa.Date()),
        sa.Column('effective_date', sa.Date()),
        sa.Column('cancellation_date', sa.Date()),
        sa.Column('expiration_date', sa.Date()),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index(f'ix_{name}_document_number', name, ['document_number'], unique=True)
    op.create_index(f'ix_{name}_normalized_name', name, ['normalized_name'])
    op.create_index(f'ix_{name}_status', name, ['status'])


def upgrade() -> None:
    """Create initial database schema."""
    for name in ENTITY_TABLES:
        _create_entity_table(name)

    op.create_table(
        'ingestion_runs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('sync_type', sa.String(20), nullable=False),
        sa.Column('data_category', sa.String(20), nullable=False),
        sa.Column('source_file', sa.String(500)),
        sa.Column('file_size_bytes', sa.Integer()),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('records_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_added', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_updated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index('ix_ingestion_run_category_date', 'ingestion_runs', ['data_category', 'started_at'])
    op.create_index('ix_ingestion_run_status', 'ingestion_runs', ['status'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index('ix_ingestion_run_status', table_name='ingestion_runs')
    op.drop_index('ix_ingestion_run_category_date', table_name='ingestion_runs')
    op.drop_table('ingestion_runs')

    for name in reversed(ENTITY_TABLES):
        op.drop_index(f'ix_{name}_status', table_name=name)
        op.drop_index(f'ix_{name}_normalized_name', table_name=name)
        op.drop_index(f'ix_{name}_document_number', table_name=name)
        op.drop_table(name)
