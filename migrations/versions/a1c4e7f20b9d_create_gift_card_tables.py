"""Create gift card ledger tables

Revision ID: a1c4e7f20b9d
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c4e7f20b9d'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create gift_cards, gift_card_activities, gift_card_redemptions and gift_card_options."""
    op.create_table(
        'gift_cards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(255), nullable=False),
        sa.Column('balance', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('expiration_date', sa.Date(), nullable=True),
        sa.Column('sender_name', sa.String(100), nullable=True),
        sa.Column('sender_email', sa.String(100), nullable=True),
        sa.Column('recipient_email', sa.String(100), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('gift_card_type', sa.String(50), nullable=True),
        sa.Column('issued_date', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('delivery_date', sa.Date(), nullable=True),
        sa.Column('user_id', sa.BigInteger(), nullable=True),
        sa.CheckConstraint('balance >= 0', name='ck_gift_cards_balance_non_negative'),
        sa.PrimaryKeyConstraint('id', name='pk_gift_cards'),
        sa.UniqueConstraint('code', name='uq_gift_cards_code')
    )
    op.create_index('ix_gift_cards_user_id', 'gift_cards', ['user_id'])
    op.create_index('ix_gift_cards_recipient_email', 'gift_cards', ['recipient_email'])
    op.create_index('ix_gift_cards_expiration_date', 'gift_cards', ['expiration_date'])
    op.create_index('ix_gift_cards_user_issued', 'gift_cards', ['user_id', 'issued_date'])

    op.create_table(
        'gift_card_activities',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('action_type', sa.String(30), nullable=False),
        sa.Column('code', sa.String(255), nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('user_id', sa.BigInteger(), nullable=True),
        sa.Column('action_date', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_gift_card_activities')
    )
    op.create_index('ix_gift_card_activities_code', 'gift_card_activities', ['code'])
    op.create_index('ix_gift_card_activities_action_date', 'gift_card_activities', ['action_date'])

    op.create_table(
        'gift_card_redemptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(100), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=True),
        sa.Column('discount_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('deducted_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('committed_at', sa.DateTime(), nullable=False),
        sa.Column('deducted_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_gift_card_redemptions'),
        sa.UniqueConstraint('order_id', name='uq_gift_card_redemptions_order_id')
    )
    op.create_index('ix_gift_card_redemptions_user_id', 'gift_card_redemptions', ['user_id'])

    op.create_table(
        'gift_card_options',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('value', sa.JSON(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_gift_card_options'),
        sa.UniqueConstraint('name', name='uq_gift_card_options_name')
    )


def downgrade():
    """Drop the gift card ledger tables."""
    op.drop_table('gift_card_options')

    op.drop_index('ix_gift_card_redemptions_user_id', table_name='gift_card_redemptions')
    op.drop_table('gift_card_redemptions')

    op.drop_index('ix_gift_card_activities_action_date', table_name='gift_card_activities')
    op.drop_index('ix_gift_card_activities_code', table_name='gift_card_activities')
    op.drop_table('gift_card_activities')

    op.drop_index('ix_gift_cards_user_issued', table_name='gift_cards')
    op.drop_index('ix_gift_cards_expiration_date', table_name='gift_cards')
    op.drop_index('ix_gift_cards_recipient_email', table_name='gift_cards')
    op.drop_index('ix_gift_cards_user_id', table_name='gift_cards')
    op.drop_table('gift_cards')
