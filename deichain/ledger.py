"""The blockchain ledger and its human-readable log file."""

from __future__ import annotations

import os
import threading
import time
from pathlib import Path
from typing import Optional, Union

from .models import INITIAL_HASH, Block
from .pow import compute_sha256

PathLike = Union[str, os.PathLike]

LEDGER_FILE = "blockchain_ledger.txt"
LEDGER_HEADER = "=================== Blockchain Ledger ==================="
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _format_time(timestamp: int) -> str:
    try:
        return time.strftime(_TIME_FORMAT, time.localtime(timestamp))
    except (OverflowError, OSError, ValueError):
        return "Invalid timestamp"


def format_block_entry(block: Block, index: int) -> str:
    """The ledger-log text for ``block``, stored as block number ``index``."""
    lines = [
        f"||----  Block {index:03d} ----||  ",
        f"Block ID: BLOCK-{block.txb_id} ",
        "Previous Hash:",
        block.prev_hash,
        f"Block Timestamp: {_format_time(block.txb_timestamp)} ",
        f"Nonce: {block.nonce} ",
        "Transactions: ",
    ]
    lines.extend(
        f"  [{number}] ID: TX-{tx.tx_id} | Reward: {tx.reward} | "
        f"Value: {tx.value} | Timestamp: {_format_time(tx.tx_timestamp)} "
        for number, tx in enumerate(block.transactions, start=1)
    )
    lines.append("||-----------------------------------------|| ")
    return "\n".join(lines) + "\n"


def initialize_ledger_log(path: PathLike = LEDGER_FILE) -> None:
    """Replace any existing ledger log with a fresh one holding only the header."""
    Path(path).write_text(LEDGER_HEADER + "\n", encoding="utf-8")


def append_block_to_ledger_log(path: PathLike, block: Block, index: int) -> None:
    """Append the entry for ``block`` to the ledger log."""
    with open(path, "a", encoding="utf-8") as handle:
        handle.write(format_block_entry(block, index))


def read_ledger(path: PathLike = LEDGER_FILE) -> list[str]:
    """The lines of the ledger log, without line endings."""
    return Path(path).read_text(encoding="utf-8").splitlines()


class BlockchainLedger:
    """Bounded, thread-safe chain of accepted blocks.

    When ``log_path`` is given the log file is started afresh and every
    accepted block is appended to it.
    """

    def __init__(
        self,
        max_blocks: int,
        transactions_per_block: int,
        log_path: Optional[PathLike] = None,
    ) -> None:
        if max_blocks <= 0:
            raise ValueError("maximum number of blocks must be positive")
        self.max_blocks = max_blocks
        self.transactions_per_block = transactions_per_block
        self.log_path = log_path
        self._blocks: list[Block] = []
        self._lock = threading.Lock()
        if log_path is not None:
            initialize_ledger_log(log_path)

    def __len__(self) -> int:
        with self._lock:
            return len(self._blocks)

    def is_full(self) -> bool:
        """Whether the ledger holds its maximum number of blocks."""
        with self._lock:
            return len(self._blocks) >= self.max_blocks

    def next_prev_hash(self) -> str:
        """Hash a new block must reference: the last block's, or the initial hash."""
        with self._lock:
            if not self._blocks:
                return INITIAL_HASH
            return compute_sha256(self._blocks[-1], self.transactions_per_block)

    def add_block(self, block: Block) -> bool:
        """Append a copy of ``block``; returns ``False`` if the ledger is full."""
        with self._lock:
            if len(self._blocks) >= self.max_blocks:
                return False
            stored = block.copy()
            self._blocks.append(stored)
            if self.log_path is not None:
                append_block_to_ledger_log(self.log_path, stored, len(self._blocks))
            return True

    def blocks(self) -> list[Block]:
        """Independent copies of the accepted blocks, oldest first."""
        with self._lock:
            return [block.copy() for block in self._blocks]