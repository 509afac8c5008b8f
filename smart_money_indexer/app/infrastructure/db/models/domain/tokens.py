from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    PrimaryKeyConstraint,
    Text,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column

from smart_money_indexer.app.infrastructure.db.db_base import BaseDB


class TokensDB(BaseDB):
    """
    Token metadata registry (ERC-20).

    One row = one token address per chain_id, upserted on first observation.
    first_seen_* are written once; symbol/decimals/name are only replaced when
    the stored row still carries placeholder metadata.
    """

    __tablename__ = "tokens"
    __table_args__ = (
        PrimaryKeyConstraint("chain_id", "address"),
        Index("ix_tokens_chain_symbol", "chain_id", "symbol"),
    )

    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)

    symbol: Mapped[str] = mapped_column(Text, nullable=False)
    decimals: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    # True when metadata fell back to defaults (RPC reads failed)
    placeholder: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())

    first_seen_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    first_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
