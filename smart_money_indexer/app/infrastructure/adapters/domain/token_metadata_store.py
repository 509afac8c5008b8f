from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from smart_money_indexer.app.domain.models import TokenMeta
from smart_money_indexer.app.infrastructure.db.models.domain.tokens import TokensDB


class SqlAlchemyTokenMetadataStore:
    """Reads resolved token metadata back from the tokens table."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def load_token(self, *, chain_id: int, address: str) -> TokenMeta | None:
        async with self._engine.connect() as conn:
            row = (
                await conn.execute(
                    select(
                        TokensDB.address,
                        TokensDB.symbol,
                        TokensDB.decimals,
                        TokensDB.name,
                        TokensDB.placeholder,
                    ).where(
                        TokensDB.chain_id == chain_id,
                        TokensDB.address == address.lower(),
                    )
                )
            ).one_or_none()

        if row is None:
            return None
        return TokenMeta(
            address=row.address,
            symbol=row.symbol,
            decimals=row.decimals,
            name=row.name,
            placeholder=bool(row.placeholder),
        )
