"""
Imports every table model so that BaseDB.metadata is complete
(alembic autogenerate, create_all in tests).
"""
from __future__ import annotations

from smart_money_indexer.app.infrastructure.db.db_base import BaseDB
from smart_money_indexer.app.infrastructure.db.models.analytics.sync_checkpoints import SyncCheckpointsDB
from smart_money_indexer.app.infrastructure.db.models.analytics.wallet_positions import WalletPositionsDB
from smart_money_indexer.app.infrastructure.db.models.analytics.wallet_scores import WalletScoresDB
from smart_money_indexer.app.infrastructure.db.models.analytics.wallet_token_pnl import WalletTokenPnlDB
from smart_money_indexer.app.infrastructure.db.models.domain.swaps import SwapsDB
from smart_money_indexer.app.infrastructure.db.models.domain.token_transfers import TokenTransfersDB
from smart_money_indexer.app.infrastructure.db.models.domain.tokens import TokensDB
from smart_money_indexer.app.infrastructure.db.models.raw.blocks import BlocksDB
from smart_money_indexer.app.infrastructure.db.models.raw.logs import LogsDB
from smart_money_indexer.app.infrastructure.db.models.raw.transactions import TransactionsDB

metadata = BaseDB.metadata

__all__ = [
    "BaseDB",
    "metadata",
    "BlocksDB",
    "TransactionsDB",
    "LogsDB",
    "TokensDB",
    "TokenTransfersDB",
    "SwapsDB",
    "WalletPositionsDB",
    "WalletTokenPnlDB",
    "WalletScoresDB",
    "SyncCheckpointsDB",
]
