"""Add bubble_users table

Revision ID: 0002_add_bubble_users
Revises: 0001_add_subscriptions
Create Date: 2026-10-05

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0002_add_bubble_users'
down_revision: Union[str, None] = '0001_add_subscriptions'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the legacy Bubble user mapping table (loaded from the export)."""

    op.create_table(
        'bubble_users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('stripe_customer_id', sa.String(255)),
        sa.Column('current_plan', sa.String(255)),
        sa.Column('subscription_frequency', sa.String(100)),
        sa.Column('matched_user_id', postgresql.UUID(as_uuid=True)),
        sa.Column('matched_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_index('ix_bubble_users_email', 'bubble_users', ['email'], unique=True)
    op.create_index('ix_bubble_users_stripe_customer_id', 'bubble_users', ['stripe_customer_id'])
    op.create_index('ix_bubble_users_matched_user_id', 'bubble_users', ['matched_user_id'])

    # Service role only; users never read the export directly
    op.execute('ALTER TABLE bubble_users ENABLE ROW LEVEL SECURITY')
    op.execute("""
        CREATE POLICY "Service role manages bubble users"
        ON bubble_users FOR ALL
        TO service_role
        USING (true)
        WITH CHECK (true)
    """)


def downgrade() -> None:
    op.execute('DROP POLICY IF EXISTS "Service role manages bubble users" ON bubble_users')
    op.drop_table('bubble_users')
