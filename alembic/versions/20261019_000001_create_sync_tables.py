"""Create chain sync tables

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Tip transfers, one row per log entry
    op.create_table(
        'transfers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('tx_hash', sa.String(length=66), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('sender', sa.String(length=42), nullable=False),
        sa.Column('recipient', sa.String(length=42), nullable=False),
        sa.Column('amount', sa.DECIMAL(precision=96, scale=18), nullable=False),
        sa.Column('amount_raw', sa.String(length=80), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tx_hash', 'log_index', name='uq_transfers_tx_log'),
    )
    op.create_index('ix_transfers_chain_id', 'transfers', ['chain_id'])
    op.create_index('ix_transfers_tx_hash', 'transfers', ['tx_hash'])
    op.create_index('ix_transfers_block_number', 'transfers', ['block_number'])
    op.create_index('ix_transfers_sender', 'transfers', ['sender'])
    op.create_index('ix_transfers_recipient', 'transfers', ['recipient'])

    # Bounties, open -> claimed
    op.create_table(
        'bounties',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('bounty_id', sa.String(length=80), nullable=False),
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('tx_hash', sa.String(length=66), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('creator', sa.String(length=42), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('amount', sa.DECIMAL(precision=96, scale=18), nullable=False),
        sa.Column('amount_raw', sa.String(length=80), nullable=False),
        sa.Column('deadline', sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            'status', sa.String(length=20),
            nullable=False, server_default='open'
        ),
        sa.Column('claimer', sa.String(length=42), nullable=True),
        sa.Column('content_ref', sa.Text(), nullable=True),
        sa.Column('claim_tx_hash', sa.String(length=66), nullable=True),
        sa.Column('claim_log_index', sa.Integer(), nullable=True),
        sa.Column('claim_block_number', sa.BigInteger(), nullable=True),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bounties_bounty_id', 'bounties', ['bounty_id'], unique=True)
    op.create_index('ix_bounties_chain_id', 'bounties', ['chain_id'])
    op.create_index('ix_bounties_block_number', 'bounties', ['block_number'])
    op.create_index('ix_bounties_creator', 'bounties', ['creator'])
    op.create_index('ix_bounties_status', 'bounties', ['status'])

    # Backfill progress per chain
    op.create_table(
        'sync_checkpoints',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('first_block', sa.BigInteger(), nullable=False),
        sa.Column('last_applied_block', sa.BigInteger(), nullable=False),
        sa.Column('events_applied', sa.BigInteger(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('error_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_sync_checkpoints_chain_id', 'sync_checkpoints',
        ['chain_id'], unique=True
    )

    # Claims received before their bounty
    op.create_table(
        'pending_bounty_claims',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('bounty_id', sa.String(length=80), nullable=False),
        sa.Column('claimer', sa.String(length=42), nullable=False),
        sa.Column('content_ref', sa.Text(), nullable=False),
        sa.Column('tx_hash', sa.String(length=66), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'tx_hash', 'log_index', name='uq_pending_claims_tx_log'
        ),
    )
    op.create_index(
        'ix_pending_bounty_claims_chain_id', 'pending_bounty_claims', ['chain_id']
    )
    op.create_index(
        'ix_pending_bounty_claims_bounty_id', 'pending_bounty_claims', ['bounty_id']
    )
    op.create_index(
        'ix_pending_bounty_claims_resolved_at', 'pending_bounty_claims',
        ['resolved_at']
    )


def downgrade() -> None:
    op.drop_table('pending_bounty_claims')
    op.drop_table('sync_checkpoints')
    op.drop_table('bounties')
    op.drop_table('transfers')
