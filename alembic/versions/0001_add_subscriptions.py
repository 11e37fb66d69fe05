"""Add subscriptions and processed_webhook_events tables

Revision ID: 0001_add_subscriptions
Revises:
Create Date: 2026-10-05

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_add_subscriptions'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create reconciled subscription storage and webhook idempotency log."""

    op.create_table(
        'subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),

        # Stripe IDs
        sa.Column('stripe_customer_id', sa.String(255), nullable=False),
        sa.Column('stripe_subscription_id', sa.String(255), nullable=False),
        sa.Column('stripe_price_id', sa.String(255), server_default='', nullable=False),

        # Subscription details
        sa.Column('plan', sa.String(20), server_default='learn', nullable=False),
        sa.Column('billing_cadence', sa.String(20), server_default='monthly', nullable=False),
        sa.Column('status', sa.String(30), server_default='incomplete', nullable=False),

        # Billing period dates
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('cancel_at_period_end', sa.Boolean, server_default='false', nullable=False),
        sa.Column('canceled_at', sa.DateTime(timezone=True)),
        sa.Column('trial_start', sa.DateTime(timezone=True)),
        sa.Column('trial_end', sa.DateTime(timezone=True)),

        # Bubble migration provenance
        sa.Column('transferred_from_bubble', sa.Boolean, server_default='false', nullable=False),
        sa.Column('transferred_at', sa.DateTime(timezone=True)),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),

        sa.CheckConstraint("plan IN ('learn', 'accelerate')", name='ck_subscriptions_plan'),
        sa.CheckConstraint(
            "billing_cadence IN ('monthly', 'quarterly', 'yearly')",
            name='ck_subscriptions_billing_cadence',
        ),
        sa.CheckConstraint(
            "status IN ('active', 'trialing', 'past_due', 'canceled', 'incomplete', "
            "'incomplete_expired', 'unpaid', 'paused')",
            name='ck_subscriptions_status',
        ),
    )

    # Upsert conflict target
    op.create_index(
        'ix_subscriptions_stripe_subscription_id',
        'subscriptions',
        ['stripe_subscription_id'],
        unique=True,
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    op.create_index('ix_subscriptions_stripe_customer_id', 'subscriptions', ['stripe_customer_id'])
    op.create_index('ix_subscriptions_user_status', 'subscriptions', ['user_id', 'status'])

    # Enable RLS
    op.execute('ALTER TABLE subscriptions ENABLE ROW LEVEL SECURITY')

    # RLS Policy: Users can only see their own subscriptions
    op.execute("""
        CREATE POLICY "Users can view own subscriptions"
        ON subscriptions FOR SELECT
        TO authenticated
        USING (user_id = auth.uid())
    """)

    # RLS Policy: Service role can manage all subscriptions (for webhooks)
    op.execute("""
        CREATE POLICY "Service role manages subscriptions"
        ON subscriptions FOR ALL
        TO service_role
        USING (true)
        WITH CHECK (true)
    """)

    op.create_table(
        'processed_webhook_events',
        sa.Column('event_id', sa.String(255), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column(
            'processed_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
    )
    # Index for cleanup queries (delete events older than X days)
    op.create_index(
        'ix_processed_webhook_events_processed_at',
        'processed_webhook_events',
        ['processed_at'],
    )


def downgrade() -> None:
    """Drop subscriptions and processed_webhook_events tables."""

    op.drop_index('ix_processed_webhook_events_processed_at')
    op.drop_table('processed_webhook_events')

    # Drop policies
    op.execute('DROP POLICY IF EXISTS "Users can view own subscriptions" ON subscriptions')
    op.execute('DROP POLICY IF EXISTS "Service role manages subscriptions" ON subscriptions')

    op.drop_table('subscriptions')
