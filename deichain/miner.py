"""Miner threads: pick transactions, build blocks and search for a valid nonce."""

from __future__ import annotations

import dataclasses
import random
import threading
import time
from typing import Callable, Iterable, Optional

from .ledger import BlockchainLedger
from .logger import Logger
from .models import Block, BlockMessage, Transaction
from .pool import TransactionPool
from .pow import POW_MAX_OPS, PoWResult, proof_of_work

__all__ = ["BlockIdCounter", "create_block", "Miner", "run_miners"]

_WAIT_SLICE = 0.5
_IDLE_POLL = 0.1


class BlockIdCounter:
    """Thread-safe source of consecutive block ids."""

    def __init__(self, start: int = 1) -> None:
        self._next = start
        self._lock = threading.Lock()

    def next(self) -> int:
        """Return the next id and advance the counter."""
        with self._lock:
            value = self._next
            self._next += 1
            return value


def create_block(
    block_id: int,
    prev_hash: str,
    transactions: Iterable[Transaction],
    timestamp: Optional[int] = None,
) -> Block:
    """A new block with nonce 0 holding copies of ``transactions``."""
    return Block(
        txb_id=block_id,
        prev_hash=prev_hash,
        txb_timestamp=int(time.time()) if timestamp is None else timestamp,
        nonce=0,
        transactions=[dataclasses.replace(tx) for tx in transactions],
    )


class Miner:
    """One miner: repeatedly mines blocks from the pool and hands them to ``sink``.

    ``sink`` receives a :class:`BlockMessage`; an :class:`OSError` from it
    counts as a failed delivery and is retried a few times.
    """

    MAX_ERRORS = 3
    SEND_ATTEMPTS = 3

    def __init__(
        self,
        miner_id: int,
        pool: TransactionPool,
        ledger: BlockchainLedger,
        sink: Callable[[BlockMessage], None],
        stop_event: threading.Event,
        block_ids: Optional[BlockIdCounter] = None,
        logger: Optional[Logger] = None,
        rng: Optional[random.Random] = None,
        max_ops: int = POW_MAX_OPS,
    ) -> None:
        self.miner_id = miner_id
        self.pool = pool
        self.ledger = ledger
        self.sink = sink
        self.stop_event = stop_event
        self.block_ids = block_ids if block_ids is not None else BlockIdCounter()
        self.logger = logger if logger is not None else Logger(None)
        self.rng = rng
        self.max_ops = max_ops
        self.initial_sleep = 1.0
        self.max_sleep = 10.0
        self.retry_delay = 1.0

    def _send(self, block: Block) -> bool:
        message = BlockMessage(self.miner_id, block.copy())
        for attempt in range(1, self.SEND_ATTEMPTS + 1):
            try:
                self.sink(message)
            except OSError as exc:
                self.logger.log(
                    f"MINER {self.miner_id}: Failed to send block: {exc}, "
                    f"attempt {attempt}/{self.SEND_ATTEMPTS}"
                )
                if attempt < self.SEND_ATTEMPTS:
                    time.sleep(self.retry_delay)
                continue
            self.logger.log(
                f"MINER {self.miner_id}: Successfully sent block after {attempt} attempts"
            )
            return True
        self.logger.log(
            f"MINER {self.miner_id}: Failed to send block after "
            f"{self.SEND_ATTEMPTS} attempts, giving up"
        )
        return False

    def mine_once(self) -> Optional[PoWResult]:
        """Mine one block and send it if a nonce was found.

        Returns ``None`` when the pool lacks transactions for a block,
        otherwise the proof-of-work result.
        """
        count = self.ledger.transactions_per_block
        selected = self.pool.select_random(count, self.rng)
        if selected is None:
            return None
        block = create_block(self.block_ids.next(), self.ledger.next_prev_hash(), selected)
        self.logger.log(f"MINER: Thread {self.miner_id} mining block {block.txb_id}")
        result = proof_of_work(block, count, self.max_ops)
        if result.error:
            self.logger.log(
                f"MINER {self.miner_id}: Failed to mine block {len(self.ledger) + 1}"
            )
        else:
            self.logger.log(
                f"MINER {self.miner_id}: Successfully mined block {len(self.ledger) + 1}"
            )
            self._send(block)
        return result

    def _stopping(self) -> bool:
        return self.stop_event.is_set()

    def run(self) -> bool:
        """Mine until stopped; returns whether the miner stopped cleanly."""
        self.logger.log(f"MINER: Thread {self.miner_id} started")
        errors = 0
        sleep_duration = self.initial_sleep
        announce = True

        while not self._stopping() and errors < self.MAX_ERRORS:
            if not self.pool.wait_for_enough(None, _WAIT_SLICE):
                continue
            if self._stopping():
                break

            result = self.mine_once()
            if result is None:
                if announce:
                    announce = False
                    errors += 1
                    self.logger.log(
                        f"MINER {self.miner_id}: Not enough transactions in pool, waiting..."
                    )
                    self.logger.log(
                        f"MINER {self.miner_id}: Failed to get transactions, "
                        f"error count: {errors}/{self.MAX_ERRORS}"
                    )
                self.stop_event.wait(_IDLE_POLL)
                continue

            announce = True
            errors = 0
            if result.error:
                errors += 1
                self.logger.log(
                    f"MINER {self.miner_id}: Mining failed, "
                    f"error count: {errors}/{self.MAX_ERRORS}"
                )
                sleep_duration = min(sleep_duration * 2, self.max_sleep)
            else:
                sleep_duration = self.initial_sleep
                errors = 0

            if not self._stopping():
                self.stop_event.wait(sleep_duration)

        if errors >= self.MAX_ERRORS:
            self.logger.log(
                f"MINER {self.miner_id}: Thread shutting down due to too many errors ({errors})"
            )
            return False
        self.logger.log(f"MINER {self.miner_id}: Thread shutting down cleanly")
        return True


def run_miners(
    num_miners: int,
    pool: TransactionPool,
    ledger: BlockchainLedger,
    sink: Callable[[BlockMessage], None],
    stop_event: threading.Event,
    logger: Optional[Logger] = None,
) -> list[bool]:
    """Run miners 1..``num_miners`` until ``stop_event`` is set.

    Returns, in miner order, whether each miner stopped cleanly.
    """
    if num_miners <= 0:
        raise ValueError("number of miners must be positive")
    log = logger if logger is not None else Logger(None)
    block_ids = BlockIdCounter()
    results: dict[int, bool] = {}
    threads: list[tuple[int, threading.Thread]] = []

    for miner_id in range(1, num_miners + 1):
        miner = Miner(miner_id, pool, ledger, sink, stop_event, block_ids, log)

        def work(miner: Miner = miner) -> None:
            results[miner.miner_id] = miner.run()

        thread = threading.Thread(target=work, name=f"miner-{miner_id}", daemon=True)
        thread.start()
        threads.append((miner_id, thread))
        log.log(f"MINER: Successfully created miner thread {miner_id}")

    stop_event.wait()
    log.log("MINER: Beginning shutdown sequence")
    pool.wake_all()

    for miner_id, thread in threads:
        log.log(f"MINER: Waiting for thread {miner_id} to complete")
        thread.join()
        log.log(f"MINER: Thread {miner_id} completed successfully")

    log.log("MINER: Process shutting down")
    return [results.get(miner_id, False) for miner_id, _ in threads]