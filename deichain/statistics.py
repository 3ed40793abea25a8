"""Per-miner and global statistics gathered from validation outcomes."""

from __future__ import annotations

import threading
from typing import Iterable

from .models import Block, StatisticsMessage, Transaction

__all__ = [
    "Statistics",
    "prepare_message",
    "format_message",
    "calculate_miner_credits",
]

_MINER_BANNER = "====================== MINER STATISTICS ======================"
_GLOBAL_BANNER = "====================== GLOBAL STATISTICS ======================"
_MINER_FOOTER = "==============================================================="
_GLOBAL_FOOTER = "================================================================="


class Statistics:
    """Counters of valid and invalid blocks, credits and verification time.

    Miners are numbered from 1 to ``num_miners``.
    """

    def __init__(self, num_miners: int) -> None:
        if num_miners <= 0:
            raise ValueError("number of miners must be positive")
        self.num_miners = num_miners
        self.valid_blocks = [0] * num_miners
        self.invalid_blocks = [0] * num_miners
        self.credits = [0] * num_miners
        self.avg_verify_time = 0.0
        self.blocks_validated = 0
        self.blocks_in_chain = 0
        self._lock = threading.Lock()

    def update(self, message: StatisticsMessage) -> None:
        """Account for one validation outcome.

        The average verification time is the running value plus the waits
        of the block's transactions, divided by their number.
        """
        index = message.miner_id - 1
        if not 0 <= index < self.num_miners:
            raise ValueError(f"unknown miner id {message.miner_id}")
        with self._lock:
            if message.valid_block:
                self.valid_blocks[index] += 1
                self.blocks_in_chain += 1
                self.credits[index] += message.credits
            else:
                self.invalid_blocks[index] += 1
            self.blocks_validated += 1

            self.avg_verify_time += sum(
                message.block_timestamp - stamp for stamp in message.tx_timestamps
            )
            if message.num_timestamps:
                self.avg_verify_time /= message.num_timestamps

    def report(self) -> str:
        """The statistics as printed on request, one line per entry."""
        with self._lock:
            lines = ["STATISTICS: SIGUSR1 RECEIVED", _MINER_BANNER]
            for number, (valid, invalid, credits) in enumerate(
                zip(self.valid_blocks, self.invalid_blocks, self.credits), start=1
            ):
                lines += [
                    f"STATISTICS: Miner {number}:",
                    f"  - Valid blocks: {valid}",
                    f"  - Invalid blocks: {invalid}",
                    f"  - Credits: {credits}",
                ]
            if self.blocks_validated > 0:
                lines.append(
                    "STATISTICS: Average time to verify a transaction: "
                    f"{self.avg_verify_time:.2f} seconds"
                )
            else:
                lines.append("STATISTICS: No blocks validated yet")
            lines += [
                _MINER_FOOTER,
                _GLOBAL_BANNER,
                "STATISTICS: Total blocks validated (valid + invalid): "
                f"{self.blocks_validated}",
                f"STATISTICS: Total blocks in blockchain: {self.blocks_in_chain}",
                _GLOBAL_FOOTER,
            ]
            return "\n".join(lines)


def prepare_message(
    miner_id: int,
    valid_block: bool,
    credits: int,
    block_timestamp: int,
    transactions: Iterable[Transaction],
) -> StatisticsMessage:
    """Build the message describing one validated (or rejected) block."""
    return StatisticsMessage(
        miner_id=miner_id,
        valid_block=bool(valid_block),
        credits=credits,
        block_timestamp=block_timestamp,
        tx_timestamps=tuple(tx.tx_timestamp for tx in transactions),
    )


def format_message(message: StatisticsMessage) -> str:
    """A readable dump of a statistics message."""
    lines = [
        "STATISTICS: ========= MESSAGE DETAILS =========",
        f"STATISTICS: Message Type: {message.mtype}",
        f"STATISTICS: Miner ID: {message.miner_id}",
        f"STATISTICS: Valid block: {'Yes' if message.valid_block else 'No'}",
        f"STATISTICS: Credits: {message.credits}",
        f"STATISTICS: Block timestamp: {message.block_timestamp}",
        f"STATISTICS: Number of transaction timestamps: {message.num_timestamps}",
    ]
    lines.extend(
        f"STATISTICS: Transaction {number} timestamp: {stamp}"
        for number, stamp in enumerate(message.tx_timestamps, start=1)
    )
    lines.append("STATISTICS: ================================")
    return "\n".join(lines)


def calculate_miner_credits(block: Block) -> int:
    """Credits earned for a block: the sum of its transactions' rewards."""
    return sum(tx.reward for tx in block.transactions)