import pytest

from smart_money_indexer.app.domain.errors import DecodeError
from smart_money_indexer.app.domain.models import ChainLog
from smart_money_indexer.app.infrastructure.decoders.erc20.transfer_decoder import Erc20TransferDecoder
from smart_money_indexer.app.infrastructure.decoders.uniswap_v2.swap_decoder import UniswapV2SwapDecoder
from smart_money_indexer.app.infrastructure.decoders.uniswap_v3.swap_decoder import UniswapV3SwapDecoder
from tests.builders import (
    PAIR,
    POOL,
    TKN,
    TRANSFER_TOPIC0,
    V2_SWAP_TOPIC0,
    V3_SWAP_TOPIC0,
    WALLET_A,
    WALLET_B,
    topic_address,
    transfer_log,
    tx_hash,
    v2_swap_log,
    v3_swap_log,
)


def test_topic0_of_known_events():
    assert Erc20TransferDecoder().topic0 == TRANSFER_TOPIC0
    assert UniswapV2SwapDecoder().topic0 == V2_SWAP_TOPIC0
    assert UniswapV3SwapDecoder().topic0 == V3_SWAP_TOPIC0


def test_decode_transfer():
    log = transfer_log(
        token=TKN,
        from_address=WALLET_A,
        to_address=WALLET_B,
        value=10**18,
        tx=tx_hash(1),
        log_index=0,
        block_number=1,
    )
    decoded = Erc20TransferDecoder().decode(log)
    assert decoded.from_address == WALLET_A
    assert decoded.to_address == WALLET_B
    assert decoded.value == 10**18


def test_other_event_is_not_decoded():
    log = v2_swap_log(
        pair=PAIR,
        sender=WALLET_A,
        to=WALLET_B,
        amount0_in=1,
        amount1_in=0,
        amount0_out=0,
        amount1_out=1,
        tx=tx_hash(1),
        log_index=0,
        block_number=1,
    )
    assert Erc20TransferDecoder().decode(log) is None


def test_erc721_transfer_is_a_decode_error():
    # same topic0 as ERC-20 Transfer, but tokenId is indexed
    log = ChainLog(
        transaction_hash=tx_hash(1),
        log_index=0,
        block_number=1,
        address=TKN,
        topics=(TRANSFER_TOPIC0, topic_address(WALLET_A), topic_address(WALLET_B), "0x" + "00" * 31 + "07"),
        data="0x",
    )
    with pytest.raises(DecodeError):
        Erc20TransferDecoder().decode(log)


def test_truncated_data_is_a_decode_error():
    log = ChainLog(
        transaction_hash=tx_hash(1),
        log_index=0,
        block_number=1,
        address=PAIR,
        topics=(V2_SWAP_TOPIC0, topic_address(WALLET_A), topic_address(WALLET_B)),
        data="0x" + "00" * 40,
    )
    with pytest.raises(DecodeError):
        UniswapV2SwapDecoder().decode(log)


def test_decode_v2_swap():
    log = v2_swap_log(
        pair=PAIR,
        sender=WALLET_A,
        to=WALLET_B,
        amount0_in=1_000,
        amount1_in=0,
        amount0_out=0,
        amount1_out=2_000,
        tx=tx_hash(1),
        log_index=3,
        block_number=1,
    )
    decoded = UniswapV2SwapDecoder().decode(log)
    assert decoded.sender == WALLET_A
    assert decoded.to == WALLET_B
    assert (decoded.amount0_in, decoded.amount1_in, decoded.amount0_out, decoded.amount1_out) == (
        1_000,
        0,
        0,
        2_000,
    )


def test_decode_v3_swap_keeps_signed_amounts():
    log = v3_swap_log(
        pool=POOL,
        sender=WALLET_A,
        recipient=WALLET_B,
        amount0=500,
        amount1=-300,
        tx=tx_hash(1),
        log_index=0,
        block_number=1,
    )
    decoded = UniswapV3SwapDecoder().decode(log)
    assert decoded.amount0 == 500
    assert decoded.amount1 == -300
    assert decoded.tick == -5
    assert decoded.recipient == WALLET_B
