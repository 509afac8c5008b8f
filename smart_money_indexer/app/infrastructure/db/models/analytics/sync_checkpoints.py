from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from smart_money_indexer.app.infrastructure.db.db_base import BaseDB


class SyncCheckpointsDB(BaseDB):
    """
    Highest block already applied by an incremental job, per chain.

    `name` identifies the job (e.g. "positions_block"); the row is advanced in
    the same transaction as the writes it covers.
    """

    __tablename__ = "sync_checkpoints"
    __table_args__ = (PrimaryKeyConstraint("chain_id", "name"),)

    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
