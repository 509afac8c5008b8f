"""initial_schema

Revision ID: 2026_10_19_120000
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '2026_10_19_120000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UINT256 = sa.Numeric(78, 0)
USD = sa.Numeric(38, 4)


def upgrade() -> None:
    op.create_table(
        'blocks',
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('block_hash', sa.Text(), nullable=False),
        sa.Column('parent_hash', sa.Text(), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('chain_id', 'block_number', name='pk_blocks'),
    )
    op.create_index('ix_blocks_chain_hash', 'blocks', ['chain_id', 'block_hash'])

    op.create_table(
        'transactions',
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('hash', sa.Text(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('from_address', sa.Text(), nullable=False),
        sa.Column('to_address', sa.Text(), nullable=True),
        sa.Column('value', UINT256, nullable=False),
        sa.PrimaryKeyConstraint('chain_id', 'hash', name='pk_transactions'),
    )
    op.create_index('ix_transactions_chain_block', 'transactions', ['chain_id', 'block_number'])

    op.create_table(
        'logs',
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('transaction_hash', sa.Text(), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('topic0', sa.Text(), nullable=True),
        sa.Column('topics', sa.JSON(), nullable=False),
        sa.Column('data', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('chain_id', 'transaction_hash', 'log_index', name='pk_logs'),
    )
    op.create_index('ix_logs_chain_block', 'logs', ['chain_id', 'block_number'])
    op.create_index('ix_logs_chain_address_topic0', 'logs', ['chain_id', 'address', 'topic0'])

    op.create_table(
        'tokens',
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('symbol', sa.Text(), nullable=False),
        sa.Column('decimals', sa.Integer(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('placeholder', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('verified', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('first_seen_block', sa.BigInteger(), nullable=False),
        sa.Column('first_seen_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('chain_id', 'address', name='pk_tokens'),
    )
    op.create_index('ix_tokens_chain_symbol', 'tokens', ['chain_id', 'symbol'])

    op.create_table(
        'token_transfers',
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('transaction_hash', sa.Text(), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('token', sa.Text(), nullable=False),
        sa.Column('from_address', sa.Text(), nullable=False),
        sa.Column('to_address', sa.Text(), nullable=False),
        sa.Column('amount_raw', UINT256, nullable=False),
        sa.Column('amount_dec', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('chain_id', 'transaction_hash', 'log_index', name='pk_token_transfers'),
    )
    op.create_index(
        'ix_token_transfers_chain_block', 'token_transfers', ['chain_id', 'block_number', 'log_index']
    )
    op.create_index('ix_token_transfers_chain_token', 'token_transfers', ['chain_id', 'token'])

    op.create_table(
        'swaps',
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('transaction_hash', sa.Text(), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('dex', sa.Text(), nullable=False),
        sa.Column('pool', sa.Text(), nullable=False),
        sa.Column('trader', sa.Text(), nullable=True),
        sa.Column('token_in', sa.Text(), nullable=False),
        sa.Column('token_out', sa.Text(), nullable=False),
        sa.Column('amount_in_raw', UINT256, nullable=False),
        sa.Column('amount_out_raw', UINT256, nullable=False),
        sa.Column('amount_in_dec', sa.Text(), nullable=False),
        sa.Column('amount_out_dec', sa.Text(), nullable=False),
        sa.Column('usd_value', USD, nullable=True),
        sa.Column('priced', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('chain_id', 'transaction_hash', 'log_index', name='pk_swaps'),
    )
    op.create_index('ix_swaps_chain_block', 'swaps', ['chain_id', 'block_number'])
    op.create_index('ix_swaps_chain_timestamp', 'swaps', ['chain_id', 'timestamp', 'log_index'])
    op.create_index('ix_swaps_chain_trader_timestamp', 'swaps', ['chain_id', 'trader', 'timestamp'])

    op.create_table(
        'wallet_positions',
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('wallet', sa.Text(), nullable=False),
        sa.Column('token', sa.Text(), nullable=False),
        sa.Column('balance_raw', UINT256, nullable=False),
        sa.Column('balance_dec', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('chain_id', 'wallet', 'token', name='pk_wallet_positions'),
    )
    op.create_index('ix_wallet_positions_chain_token', 'wallet_positions', ['chain_id', 'token'])

    op.create_table(
        'wallet_token_pnl',
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('wallet', sa.Text(), nullable=False),
        sa.Column('token', sa.Text(), nullable=False),
        sa.Column('realized_pnl_usd_30d', USD, nullable=False),
        sa.Column('realized_pnl_usd_all', USD, nullable=False),
        sa.Column('win_trades_30d', sa.Integer(), nullable=False),
        sa.Column('loss_trades_30d', sa.Integer(), nullable=False),
        sa.Column('avg_hold_seconds_30d', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('chain_id', 'wallet', 'token', name='pk_wallet_token_pnl'),
    )

    op.create_table(
        'wallet_scores',
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('wallet', sa.Text(), nullable=False),
        sa.Column('window', sa.Text(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('features', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('chain_id', 'wallet', 'window', name='pk_wallet_scores'),
    )
    op.create_index(
        'ix_wallet_scores_chain_window_score', 'wallet_scores', ['chain_id', 'window', 'score']
    )

    op.create_table(
        'sync_checkpoints',
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('chain_id', 'name', name='pk_sync_checkpoints'),
    )


def downgrade() -> None:
    op.drop_table('sync_checkpoints')
    op.drop_index('ix_wallet_scores_chain_window_score', table_name='wallet_scores')
    op.drop_table('wallet_scores')
    op.drop_table('wallet_token_pnl')
    op.drop_index('ix_wallet_positions_chain_token', table_name='wallet_positions')
    op.drop_table('wallet_positions')
    op.drop_index('ix_swaps_chain_trader_timestamp', table_name='swaps')
    op.drop_index('ix_swaps_chain_timestamp', table_name='swaps')
    op.drop_index('ix_swaps_chain_block', table_name='swaps')
    op.drop_table('swaps')
    op.drop_index('ix_token_transfers_chain_token', table_name='token_transfers')
    op.drop_index('ix_token_transfers_chain_block', table_name='token_transfers')
    op.drop_table('token_transfers')
    op.drop_index('ix_tokens_chain_symbol', table_name='tokens')
    op.drop_table('tokens')
    op.drop_index('ix_logs_chain_address_topic0', table_name='logs')
    op.drop_index('ix_logs_chain_block', table_name='logs')
    op.drop_table('logs')
    op.drop_index('ix_transactions_chain_block', table_name='transactions')
    op.drop_table('transactions')
    op.drop_index('ix_blocks_chain_hash', table_name='blocks')
    op.drop_table('blocks')
