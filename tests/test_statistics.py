import pytest

from deichain.models import Block, INITIAL_HASH, StatisticsMessage, Transaction
from deichain.statistics import (
    Statistics,
    calculate_miner_credits,
    format_message,
    prepare_message,
)


def _transactions(rewards, timestamp=100):
    return [
        Transaction(tx_id=i + 1, reward=reward, value=10 * i, tx_timestamp=timestamp + i)
        for i, reward in enumerate(rewards)
    ]


def test_new_statistics_are_zero():
    stats = Statistics(3)
    assert stats.valid_blocks == [0, 0, 0]
    assert stats.invalid_blocks == [0, 0, 0]
    assert stats.credits == [0, 0, 0]
    assert stats.blocks_validated == 0
    assert stats.blocks_in_chain == 0


@pytest.mark.parametrize("count", [0, -1])
def test_non_positive_miner_count_rejected(count):
    with pytest.raises(ValueError):
        Statistics(count)


def test_valid_block_counts_and_credits():
    stats = Statistics(2)
    stats.update(StatisticsMessage(2, True, 7, 50, (50, 50)))
    assert stats.valid_blocks == [0, 1]
    assert stats.invalid_blocks == [0, 0]
    assert stats.credits == [0, 7]
    assert stats.blocks_in_chain == 1
    assert stats.blocks_validated == 1


def test_invalid_block_counts_without_credits():
    stats = Statistics(2)
    stats.update(StatisticsMessage(1, False, 9, 50, (50,)))
    assert stats.invalid_blocks == [1, 0]
    assert stats.credits == [0, 0]
    assert stats.blocks_in_chain == 0
    assert stats.blocks_validated == 1


def test_average_with_no_wait_is_zero():
    stats = Statistics(1)
    stats.update(StatisticsMessage(1, True, 1, 30, (30, 30, 30)))
    assert stats.avg_verify_time == 0.0


def test_average_single_transaction_is_its_wait():
    stats = Statistics(1)
    block_time, tx_time = 40, 25
    stats.update(StatisticsMessage(1, True, 1, block_time, (tx_time,)))
    assert stats.avg_verify_time == block_time - tx_time


@pytest.mark.parametrize("miner_id", [0, 3])
def test_unknown_miner_rejected(miner_id):
    stats = Statistics(2)
    with pytest.raises(ValueError):
        stats.update(StatisticsMessage(miner_id, True, 1, 0, (0,)))
    assert stats.blocks_validated == 0


def test_report_before_any_block():
    report = Statistics(2).report()
    lines = report.splitlines()
    assert lines[0] == "STATISTICS: SIGUSR1 RECEIVED"
    assert "STATISTICS: Miner 1:" in lines
    assert "STATISTICS: Miner 2:" in lines
    assert "STATISTICS: No blocks validated yet" in lines
    assert "STATISTICS: Total blocks validated (valid + invalid): 0" in lines
    assert "STATISTICS: Total blocks in blockchain: 0" in lines


def test_report_after_blocks():
    stats = Statistics(1)
    stats.update(StatisticsMessage(1, True, 5, 10, (10,)))
    lines = stats.report().splitlines()
    assert "  - Valid blocks: 1" in lines
    assert "  - Credits: 5" in lines
    assert "STATISTICS: Average time to verify a transaction: 0.00 seconds" in lines
    assert "STATISTICS: Total blocks in blockchain: 1" in lines


def test_prepare_message_takes_transaction_timestamps():
    transactions = _transactions([1, 2, 3], timestamp=500)
    message = prepare_message(4, 1, 6, 900, transactions)
    assert message.miner_id == 4
    assert message.valid_block is True
    assert message.credits == 6
    assert message.block_timestamp == 900
    assert message.tx_timestamps == tuple(tx.tx_timestamp for tx in transactions)
    assert message.num_timestamps == len(transactions)
    assert message.mtype == 1


def test_format_message_lines():
    message = prepare_message(3, False, 0, 77, _transactions([1, 1]))
    lines = format_message(message).splitlines()
    assert len(lines) == 8 + message.num_timestamps
    assert "STATISTICS: Miner ID: 3" in lines
    assert "STATISTICS: Valid block: No" in lines
    assert "STATISTICS: Block timestamp: 77" in lines
    assert "STATISTICS: Transaction 1 timestamp: 100" in lines
    assert lines[-1] == "STATISTICS: ================================"


def test_calculate_miner_credits_sums_rewards():
    rewards = [1, 3, 2, 3]
    block = Block(1, INITIAL_HASH, 0, transactions=_transactions(rewards))
    assert calculate_miner_credits(block) == sum(rewards)


def test_credits_of_empty_block_are_zero():
    assert calculate_miner_credits(Block(1, INITIAL_HASH, 0)) == 0