"""Transaction generator: feeds transactions with a fixed reward into the shared pool."""

from __future__ import annotations

import json
import random
import re
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Protocol, Sequence

from .controller import ENDPOINT_FILE
from .logger import DEFAULT_LOG_PATH, Logger
from .models import Transaction
from .pool import PoolFullError, connect_pool

__all__ = ["UsageError", "parse_args", "generate_transaction", "run", "main"]

MIN_REWARD = 1
MAX_REWARD = 3
MIN_SLEEP_MS = 200
MAX_SLEEP_MS = 3000
MAX_VALUE = 333

_LEADING_INT = re.compile(r"\s*([+-]?\d+)", re.ASCII)


class _RandomSource(Protocol):
    def randrange(self, stop: int) -> int: ...


class UsageError(ValueError):
    """The command-line arguments are missing or out of range."""


def _leading_int(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def parse_args(argv: Sequence[str]) -> tuple[int, int]:
    """Parse ``<reward> <sleep_time>`` into a reward and a sleep time in milliseconds."""
    if len(argv) != 2:
        raise UsageError("Please use the following format: txgen <reward> <sleep_time>")
    reward = _leading_int(argv[0])
    sleep_ms = _leading_int(argv[1])
    if not (MIN_REWARD <= reward <= MAX_REWARD) or not (
        MIN_SLEEP_MS <= sleep_ms <= MAX_SLEEP_MS
    ):
        raise UsageError(
            "Invalid reward value, must be between 1 and 3\n"
            "Invalid sleep time, must be between 200ms and 3000ms"
        )
    return reward, sleep_ms


def generate_transaction(reward: int, rng: Optional[_RandomSource] = None) -> Transaction:
    """A new transaction with ``reward``, a random value in 0..333 and the current time.

    Its id is 0; the pool assigns the real one.
    """
    source = rng if rng is not None else random
    return Transaction(
        tx_id=0,
        reward=reward,
        value=source.randrange(1000) // 3,
        tx_timestamp=int(time.time()),
    )


def run(
    pool,
    reward: int,
    sleep_ms: int,
    stop_event: threading.Event,
    logger: Optional[Logger] = None,
    rng: Optional[_RandomSource] = None,
) -> int:
    """Offer a transaction to ``pool`` every ``sleep_ms`` milliseconds until stopped.

    Returns the number of transactions placed in the pool.
    """
    log = logger if logger is not None else Logger(None)
    source = rng if rng is not None else random.Random()
    delay = max(sleep_ms, 0) / 1000
    added = 0
    announce_full = True

    while not stop_event.is_set():
        tx = generate_transaction(reward, source)
        tx.tx_id = added
        if not (MIN_REWARD <= tx.reward <= MAX_REWARD) or not (0 <= tx.value <= MAX_VALUE):
            log.log(
                f"TXGEN: Invalid transaction values - ID: {tx.tx_id}, "
                f"Reward: {tx.reward}, Value: {tx.value}"
            )
            stop_event.wait(delay)
            continue
        try:
            pool.add(tx)
        except PoolFullError:
            if announce_full:
                log.log("TXGEN: Transaction pool is full, waiting...")
            announce_full = False
        else:
            log.log(
                f"TXGEN: TX-{tx.tx_id} generated with reward {tx.reward}, value {tx.value}"
            )
            added += 1
            announce_full = True
        stop_event.wait(delay)
    return added


def _connect(endpoint: Path):
    data = json.loads(endpoint.read_text(encoding="utf-8"))
    return connect_pool((data["host"], int(data["port"])), bytes.fromhex(data["authkey"]))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Generate transactions into the controller's pool until interrupted."""
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        reward, sleep_ms = parse_args(args)
    except UsageError as exc:
        print(exc, file=sys.stderr)
        return 1

    with Logger(DEFAULT_LOG_PATH) as logger:
        logger.log(f"TXGEN: Starting with reward={reward}, sleep_time={sleep_ms}ms")
        try:
            pool = _connect(Path(ENDPOINT_FILE))
        except (OSError, ValueError, KeyError, EOFError) as exc:
            print(f"TXGEN: Failed to access transaction pool shared memory: {exc}",
                  file=sys.stderr)
            logger.log("TXGEN: Failed to access transaction pool")
            return 1

        stop_event = threading.Event()
        interrupted = threading.Event()

        def handle_sigint(signum, frame) -> None:
            interrupted.set()
            stop_event.set()

        previous = signal.signal(signal.SIGINT, handle_sigint)
        try:
            run(pool, reward, sleep_ms, stop_event, logger, random.Random())
        finally:
            signal.signal(signal.SIGINT, previous)
        if interrupted.is_set():
            logger.log("TXGEN: Received SIGINT, shutting down...")
    return 0