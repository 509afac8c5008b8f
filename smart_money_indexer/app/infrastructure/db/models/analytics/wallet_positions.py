from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from smart_money_indexer.app.infrastructure.db.db_base import BaseDB
from smart_money_indexer.app.infrastructure.db.types import Int256


class WalletPositionsDB(BaseDB):
    """
    Running token balance per wallet, accumulated from transfer deltas.

    balance_raw can go negative when a wallet spends tokens received before
    the first indexed block.
    """

    __tablename__ = "wallet_positions"
    __table_args__ = (
        PrimaryKeyConstraint("chain_id", "wallet", "token"),
        Index("ix_wallet_positions_chain_token", "chain_id", "token"),
    )

    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    wallet: Mapped[str] = mapped_column(Text, nullable=False)
    token: Mapped[str] = mapped_column(Text, nullable=False)

    balance_raw: Mapped[int] = mapped_column(Int256, nullable=False)
    balance_dec: Mapped[str] = mapped_column(Text, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
