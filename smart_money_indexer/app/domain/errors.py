from __future__ import annotations


class IndexerError(Exception):
    """Base exception for smart-money indexer errors."""


class ConfigurationError(IndexerError):
    """Missing or invalid configuration (unknown chain, no RPC URL, no DB URL). Not retried."""


class TransientNetworkError(IndexerError):
    """RPC timeout, transport failure or 5xx. The affected block range is retried."""


class DecodeError(IndexerError):
    """Log payload does not match the expected event shape despite a matching topic0."""


class MetadataUnavailable(IndexerError):
    """Token or pair metadata could not be read from chain."""


class ReorgDetected(IndexerError):
    """Stored block hash differs from the canonical block fetched at the same height."""

    def __init__(self, *, chain_id: int, block_number: int, stored_hash: str, canonical_hash: str) -> None:
        super().__init__(
            f"Reorg at chain_id={chain_id} block={block_number}: "
            f"stored={stored_hash} canonical={canonical_hash}"
        )
        self.chain_id = chain_id
        self.block_number = block_number
        self.stored_hash = stored_hash
        self.canonical_hash = canonical_hash
