"""Add wiza_requests table

Revision ID: 0003_add_wiza_requests
Revises: 0002_add_bubble_users
Create Date: 2026-10-06

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0003_add_wiza_requests'
down_revision: Union[str, None] = '0002_add_bubble_users'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create prospect-list reservations with the active-key unique index."""

    op.create_table(
        'wiza_requests',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('company_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('application_id', postgresql.UUID(as_uuid=True)),
        sa.Column('application_key', sa.String(64), server_default='', nullable=False),

        sa.Column('wiza_list_id', sa.String(100)),
        sa.Column('search_name', sa.String(500), nullable=False),
        sa.Column('search_type', sa.String(20), nullable=False),
        sa.Column('max_profiles', sa.Integer, server_default='10', nullable=False),
        sa.Column('job_titles', postgresql.JSONB),

        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('wiza_status', sa.String(50)),
        sa.Column('wiza_response', postgresql.JSONB),

        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_index('ix_wiza_requests_user_id', 'wiza_requests', ['user_id'])
    op.create_index('ix_wiza_requests_company_id', 'wiza_requests', ['company_id'])

    # At most one active request per key; a concurrent insert fails here
    op.create_index(
        'uq_wiza_requests_active_key',
        'wiza_requests',
        ['user_id', 'company_id', 'application_key'],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'processing')"),
    )

    op.execute('ALTER TABLE wiza_requests ENABLE ROW LEVEL SECURITY')
    op.execute("""
        CREATE POLICY "Users can view own wiza requests"
        ON wiza_requests FOR SELECT
        TO authenticated
        USING (user_id = auth.uid())
    """)
    op.execute("""
        CREATE POLICY "Service role manages wiza requests"
        ON wiza_requests FOR ALL
        TO service_role
        USING (true)
        WITH CHECK (true)
    """)


def downgrade() -> None:
    op.execute('DROP POLICY IF EXISTS "Users can view own wiza requests" ON wiza_requests')
    op.execute('DROP POLICY IF EXISTS "Service role manages wiza requests" ON wiza_requests')
    op.drop_index('uq_wiza_requests_active_key', table_name='wiza_requests')
    op.drop_table('wiza_requests')
