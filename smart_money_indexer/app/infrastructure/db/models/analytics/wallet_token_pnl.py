from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, Integer, Numeric, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from smart_money_indexer.app.infrastructure.db.db_base import BaseDB


class WalletTokenPnlDB(BaseDB):
    """Realized FIFO PnL per (wallet, token), over all history and the last 30 days."""

    __tablename__ = "wallet_token_pnl"
    __table_args__ = (PrimaryKeyConstraint("chain_id", "wallet", "token"),)

    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    wallet: Mapped[str] = mapped_column(Text, nullable=False)
    token: Mapped[str] = mapped_column(Text, nullable=False)

    realized_pnl_usd_30d: Mapped[Decimal] = mapped_column(Numeric(38, 4), nullable=False)
    realized_pnl_usd_all: Mapped[Decimal] = mapped_column(Numeric(38, 4), nullable=False)
    win_trades_30d: Mapped[int] = mapped_column(Integer, nullable=False)
    loss_trades_30d: Mapped[int] = mapped_column(Integer, nullable=False)
    avg_hold_seconds_30d: Mapped[int] = mapped_column(BigInteger, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
