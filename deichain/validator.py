"""The validator: checks mined blocks and appends the good ones to the chain."""

from __future__ import annotations

import queue
import threading
from typing import Callable, Optional

from .ledger import BlockchainLedger
from .logger import Logger
from .models import Block, BlockMessage, StatisticsMessage
from .pool import TransactionPool
from .pow import verify_nonce
from .statistics import calculate_miner_credits, prepare_message

__all__ = ["Validator"]

_POLL = 0.1


class Validator:
    """Validates blocks against the pool and ledger and reports each outcome.

    ``statistics_sink`` receives one :class:`StatisticsMessage` per block
    processed, valid or not.
    """

    def __init__(
        self,
        pool: TransactionPool,
        ledger: BlockchainLedger,
        statistics_sink: Callable[[StatisticsMessage], None],
        logger: Optional[Logger] = None,
    ) -> None:
        self.pool = pool
        self.ledger = ledger
        self.statistics_sink = statistics_sink
        self.logger = logger if logger is not None else Logger(None)

    @property
    def _transactions_per_block(self) -> int:
        return self.ledger.transactions_per_block

    def validate(self, block: Block) -> bool:
        """Check proof of work, chain reference and that transactions are still pending.

        Every call ages the transactions waiting in the pool first.
        """
        self.pool.age()
        count = self._transactions_per_block

        try:
            if not verify_nonce(block, count):
                return False
        except ValueError as exc:
            self.logger.log(f"VALIDATOR: Malformed block: {exc}")
            return False

        if block.prev_hash != self.ledger.next_prev_hash():
            if len(self.ledger) == 0:
                self.logger.log("VALIDATOR: First block doesn't have correct initial hash")
            else:
                self.logger.log("VALIDATOR: Block doesn't reference latest blockchain block")
            return False

        for tx in block.transactions[:count]:
            if not self.pool.is_in_pool(tx.tx_id):
                self.logger.log(f"VALIDATOR: Transaction {tx.tx_id} no longer in pool")
                return False
        return True

    def _append(self, block: Block) -> None:
        limit = self.ledger.max_blocks
        if not self.ledger.add_block(block):
            self.logger.log(
                f"VALIDATOR: Maximum number of blocks reached ({limit}). Initiating shutdown."
            )
            return
        self.logger.log(f"VALIDATOR: Successfully added block {block.txb_id} to blockchain")
        if self.ledger.is_full():
            self.logger.log(
                f"VALIDATOR: Maximum number of blocks reached ({limit}). Initiating shutdown."
            )

    def process(self, message: BlockMessage) -> bool:
        """Validate a received block, record it if valid, and report the outcome."""
        block = message.block
        transactions = block.transactions[: self._transactions_per_block]
        valid = self.validate(block)
        if valid:
            self.logger.log(
                f"VALIDATOR: Block {block.txb_id} from {message.miner_id} validated successfully"
            )
            self.pool.remove_validated(block)
            self._append(block)
            outcome = prepare_message(
                message.miner_id,
                True,
                calculate_miner_credits(block),
                block.txb_timestamp,
                transactions,
            )
        else:
            self.logger.log(
                f"VALIDATOR: Block {block.txb_id} from {message.miner_id} validation failed"
            )
            outcome = prepare_message(
                message.miner_id, False, 0, block.txb_timestamp, transactions
            )
        self.statistics_sink(outcome)
        return valid

    def run(self, source: "queue.Queue[BlockMessage]", stop_event: threading.Event) -> int:
        """Process messages from ``source`` until stopped or the ledger is full.

        Returns the number of messages processed.
        """
        self.logger.log("VALIDATOR: Process started, waiting for blocks...")
        processed = 0
        while not stop_event.is_set():
            try:
                message = source.get(timeout=_POLL)
            except queue.Empty:
                continue
            if stop_event.is_set():
                break
            self.logger.log(f"VALIDATOR: Received block from miner {message.miner_id}")
            self.process(message)
            processed += 1
            if self.ledger.is_full():
                break
        self.logger.log("VALIDATOR: Process shutting down")
        return processed