from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from smart_money_indexer.app.infrastructure.db.db_base import BaseDB


class WalletScoresDB(BaseDB):
    __tablename__ = "wallet_scores"
    __table_args__ = (
        PrimaryKeyConstraint("chain_id", "wallet", "window"),
        # Smart-money join (score >= threshold) and leaderboard
        Index("ix_wallet_scores_chain_window_score", "chain_id", "window", "score"),
    )

    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    wallet: Mapped[str] = mapped_column(Text, nullable=False)
    window: Mapped[str] = mapped_column(Text, nullable=False)

    # 0..100
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    features: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
