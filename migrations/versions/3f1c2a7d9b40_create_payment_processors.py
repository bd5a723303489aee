"""create_payment_processors

Revision ID: 3f1c2a7d9b40
Revises:
Create Date: 2026-10-17 10:12:44.120391

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c2a7d9b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the payment_processors table (one document per owner)."""
    op.create_table(
        'payment_processors',
        sa.Column('owner', sa.Text(), nullable=False),
        sa.Column('document', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('revision', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('owner'),
        sa.CheckConstraint('revision > 0', name='check_revision_positive'),
        sa.CheckConstraint(
            "document->>'default' IS NULL OR document->>'default' IN ('stripe', 'braintree', 'heroku')",
            name='check_default_processor',
        ),
    )

    # Operators look up owners by the remote Stripe customer during reconciliation
    op.create_index(
        'idx_payment_processors_stripe_customer',
        'payment_processors',
        [sa.text("(document->'stripe'->0->'customer'->>'id')")],
    )


def downgrade() -> None:
    """Drop the payment_processors table."""
    op.drop_index('idx_payment_processors_stripe_customer', table_name='payment_processors')
    op.drop_table('payment_processors')
