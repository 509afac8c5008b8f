from __future__ import annotations

from sqlalchemy import BigInteger, Index, Integer, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from smart_money_indexer.app.infrastructure.db.db_base import BaseDB
from smart_money_indexer.app.infrastructure.db.types import Int256


class TransactionsDB(BaseDB):
    __tablename__ = "transactions"
    __table_args__ = (
        PrimaryKeyConstraint("chain_id", "hash"),
        # Reorg rollback deletes by block
        Index("ix_transactions_chain_block", "chain_id", "block_number"),
    )

    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    hash: Mapped[str] = mapped_column(Text, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)

    from_address: Mapped[str] = mapped_column(Text, nullable=False)
    # NULL for contract creation
    to_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    value: Mapped[int] = mapped_column(Int256, nullable=False)
