from __future__ import annotations

from sqlalchemy import BigInteger, Index, Integer, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from smart_money_indexer.app.infrastructure.db.db_base import BaseDB
from smart_money_indexer.app.infrastructure.db.types import Int256


class TokenTransfersDB(BaseDB):
    """
    ERC-20 Transfer events, decoded.

    Idempotency:
      - PK matches the canonical event identity: (chain_id, transaction_hash, log_index)
    """

    __tablename__ = "token_transfers"
    __table_args__ = (
        PrimaryKeyConstraint("chain_id", "transaction_hash", "log_index"),
        # Position updates scan a block range
        Index("ix_token_transfers_chain_block", "chain_id", "block_number", "log_index"),
        Index("ix_token_transfers_chain_token", "chain_id", "token"),
    )

    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_hash: Mapped[str] = mapped_column(Text, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)

    token: Mapped[str] = mapped_column(Text, nullable=False)
    from_address: Mapped[str] = mapped_column(Text, nullable=False)
    to_address: Mapped[str] = mapped_column(Text, nullable=False)

    amount_raw: Mapped[int] = mapped_column(Int256, nullable=False)
    amount_dec: Mapped[str] = mapped_column(Text, nullable=False)
