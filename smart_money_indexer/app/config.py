"""Config file."""
from functools import lru_cache
from urllib.parse import quote_plus

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # PROJECT
    project_name: str = Field("smart-money-indexer", alias="PROJECT_NAME")

    # DATABASE
    postgres_user: str | None = Field(None, alias="POSTGRES_USER")
    postgres_password: SecretStr | None = Field(None, alias="POSTGRES_PASSWORD")
    postgres_server: str | None = Field(None, alias="POSTGRES_SERVER")
    postgres_port: int = Field(5432, alias="POSTGRES_PORT")
    postgres_db: str | None = Field(None, alias="POSTGRES_DB")
    database_url: str | None = Field(None, alias="DATABASE_URL")
    sync_database_url: str | None = Field(None, alias="SYNC_DATABASE_URL")

    # RPC
    rpc_ethereum: str | None = Field(None, alias="RPC_ETHEREUM")
    rpc_arbitrum: str | None = Field(None, alias="RPC_ARBITRUM")
    rpc_base: str | None = Field(None, alias="RPC_BASE")
    rpc_bnb: str | None = Field(None, alias="RPC_BNB")
    alchemy_api_key: SecretStr | None = Field(None, alias="ALCHEMY_API_KEY")
    rpc_timeout_seconds: int = Field(30, alias="RPC_TIMEOUT_SECONDS")

    # INGESTION
    poll_interval_seconds: float = Field(12.0, alias="POLL_INTERVAL_SECONDS")
    ingest_workers: int = Field(4, alias="INGEST_WORKERS")
    ingest_queue_size: int = Field(64, alias="INGEST_QUEUE_SIZE")
    ingest_max_attempts: int = Field(3, alias="INGEST_MAX_ATTEMPTS")
    ingest_max_range: int = Field(500, alias="INGEST_MAX_RANGE")
    metadata_cache_size: int = Field(10_000, alias="METADATA_CACHE_SIZE")

    # SMART MONEY
    redis_url: str | None = Field(None, alias="REDIS_URL")
    disable_redis: bool = Field(False, alias="DISABLE_REDIS")
    smart_money_cache_ttl_seconds: int = Field(15, alias="SMART_MONEY_CACHE_TTL_SECONDS")

    @model_validator(mode="after")
    def assemble_db_urls(self) -> "Settings":
        parts = (self.postgres_user, self.postgres_password, self.postgres_server, self.postgres_db)
        if any(p is None for p in parts):
            return self

        user = quote_plus(self.postgres_user)
        password = quote_plus(self.postgres_password.get_secret_value())
        host = self.postgres_server
        port = self.postgres_port
        db = self.postgres_db

        if not self.database_url:
            self.database_url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"

        if not self.sync_database_url:
            self.sync_database_url = f"postgresql://{user}:{password}@{host}:{port}/{db}"

        return self

    @property
    def redis_enabled(self) -> bool:
        return bool(self.redis_url) and not self.disable_redis

    def rpc_override(self, chain_id: int) -> str | None:
        """Explicit RPC URL configured for a chain, if any."""
        value = {
            1: self.rpc_ethereum,
            42161: self.rpc_arbitrum,
            8453: self.rpc_base,
            56: self.rpc_bnb,
        }.get(chain_id)
        if value is None or not value.strip():
            return None
        return value.strip()

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
