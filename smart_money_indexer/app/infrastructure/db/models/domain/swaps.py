from __future__ import annotations

from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    Index,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from smart_money_indexer.app.infrastructure.db.db_base import BaseDB
from smart_money_indexer.app.infrastructure.db.types import Int256


class SwapsDB(BaseDB):
    """
    AMM swaps (Uniswap V2 pairs and V3 pools), normalised to in/out legs.

    One row = one Swap log. `trader` is the transaction sender. `usd_value`
    comes from the stablecoin leg when there is one (priced = true).
    """

    __tablename__ = "swaps"
    __table_args__ = (
        PrimaryKeyConstraint("chain_id", "transaction_hash", "log_index"),
        Index("ix_swaps_chain_block", "chain_id", "block_number"),
        # Smart-money queries: recent priced swaps
        Index("ix_swaps_chain_timestamp", "chain_id", "timestamp", "log_index"),
        # PnL replay per wallet in chronological order
        Index("ix_swaps_chain_trader_timestamp", "chain_id", "trader", "timestamp"),
    )

    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_hash: Mapped[str] = mapped_column(Text, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)

    dex: Mapped[str] = mapped_column(Text, nullable=False)
    pool: Mapped[str] = mapped_column(Text, nullable=False)
    trader: Mapped[str | None] = mapped_column(Text, nullable=True)

    token_in: Mapped[str] = mapped_column(Text, nullable=False)
    token_out: Mapped[str] = mapped_column(Text, nullable=False)
    amount_in_raw: Mapped[int] = mapped_column(Int256, nullable=False)
    amount_out_raw: Mapped[int] = mapped_column(Int256, nullable=False)
    amount_in_dec: Mapped[str] = mapped_column(Text, nullable=False)
    amount_out_dec: Mapped[str] = mapped_column(Text, nullable=False)

    usd_value: Mapped[Decimal | None] = mapped_column(Numeric(38, 4), nullable=True)
    priced: Mapped[bool] = mapped_column(Boolean, nullable=False)
