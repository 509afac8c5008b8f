from __future__ import annotations

from sqlalchemy import JSON, BigInteger, Index, Integer, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from smart_money_indexer.app.infrastructure.db.db_base import BaseDB


class LogsDB(BaseDB):
    """
    Raw, undecoded EVM logs of the event kinds the ingestor subscribes to
    (ERC-20 Transfer, Uniswap V2 Swap, Uniswap V3 Swap).
    """

    __tablename__ = "logs"
    __table_args__ = (
        PrimaryKeyConstraint("chain_id", "transaction_hash", "log_index"),
        Index("ix_logs_chain_block", "chain_id", "block_number"),
        # Typical lookup pattern: contract + event
        Index("ix_logs_chain_address_topic0", "chain_id", "address", "topic0"),
    )

    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_hash: Mapped[str] = mapped_column(Text, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)

    address: Mapped[str] = mapped_column(Text, nullable=False)
    topic0: Mapped[str | None] = mapped_column(Text, nullable=True)
    topics: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    data: Mapped[str] = mapped_column(Text, nullable=False)
