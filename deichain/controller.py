"""The controller: sets up the pool and the ledger and runs miners, validator and statistics."""

from __future__ import annotations

import argparse
import json
import os
import queue
import signal
import sys
import threading
from pathlib import Path
from typing import Optional, Sequence, Union

from .config import CONFIG_FILE, ConfigError, read_config
from .ledger import LEDGER_FILE, BlockchainLedger, read_ledger
from .logger import DEFAULT_LOG_PATH, Logger
from .miner import run_miners
from .models import BlockMessage, Config, StatisticsMessage
from .pool import PoolManager, TransactionPool
from .statistics import Statistics
from .validator import Validator

__all__ = ["ENDPOINT_FILE", "Controller", "main"]

ENDPOINT_FILE = "deichain_pool.json"
"""File in the working directory telling generators where the pool is served."""

_STATS_POLL = 0.1


class Controller:
    """Owns the shared pool and ledger and runs the miner, validator and statistics workers.

    The workers run as threads.  With :attr:`serve_pool` set, :meth:`start`
    also serves the pool to other processes and writes its address and
    authentication key to :data:`ENDPOINT_FILE` in the working directory.
    """

    def __init__(
        self,
        config: Config,
        workdir: Union[str, os.PathLike] = ".",
        logger: Optional[Logger] = None,
    ) -> None:
        self.config = config
        self.workdir = Path(workdir)
        self.logger = logger if logger is not None else Logger(None)
        self.poll_interval = 1.0
        self.serve_pool = False
        self.ledger_path = self.workdir / LEDGER_FILE
        self.endpoint_path = self.workdir / ENDPOINT_FILE

        self.pool = TransactionPool(config.tx_pool_size, config.transactions_per_block)
        self.ledger = BlockchainLedger(
            config.blockchain_blocks, config.transactions_per_block, self.ledger_path
        )
        self.logger.log("CONTROLLER: Created new blockchain ledger file")
        self.statistics = Statistics(config.num_miners)

        self._blocks: "queue.Queue[BlockMessage]" = queue.Queue()
        self._outcomes: "queue.Queue[StatisticsMessage]" = queue.Queue()
        self._miner_stop = threading.Event()
        self._validator_stop = threading.Event()
        self._statistics_stop = threading.Event()
        self._stop_requested = threading.Event()
        self._stats_requested = threading.Event()
        self._signal_received: Optional[int] = None

        self._miner_thread: Optional[threading.Thread] = None
        self._validator_thread: Optional[threading.Thread] = None
        self._statistics_thread: Optional[threading.Thread] = None
        self._shutdown_lock = threading.Lock()
        self._started = False
        self._shut_down = False

    # -- workers -----------------------------------------------------------

    def _serve(self) -> None:
        authkey = os.urandom(16)
        manager = PoolManager(address=("127.0.0.1", 0), authkey=authkey, pool=self.pool)
        server = manager.get_server()
        threading.Thread(
            target=server.serve_forever, name="pool-server", daemon=True
        ).start()
        host, port = server.address
        self.endpoint_path.write_text(
            json.dumps({"host": host, "port": port, "authkey": authkey.hex()}),
            encoding="utf-8",
        )
        self.logger.log(f"CONTROLLER: Serving transaction pool on {host}:{port}")

    def _run_miners(self) -> None:
        run_miners(
            self.config.num_miners,
            self.pool,
            self.ledger,
            self._blocks.put,
            self._miner_stop,
            self.logger,
        )

    def _run_validator(self) -> None:
        validator = Validator(self.pool, self.ledger, self._outcomes.put, self.logger)
        validator.run(self._blocks, self._validator_stop)

    def _record(self, message: StatisticsMessage) -> None:
        self.logger.log(
            f"STATISTICS: Processing message from miner {message.miner_id} "
            f"(valid={int(message.valid_block)})"
        )
        try:
            self.statistics.update(message)
        except ValueError as exc:
            self.logger.log(f"STATISTICS: Ignoring message: {exc}")
            return
        self.logger.log("STATISTICS: Successfully updated statistics")

    def _run_statistics(self) -> None:
        self.logger.log("STATISTICS: Process starting up")
        while not self._statistics_stop.is_set():
            try:
                message = self._outcomes.get(timeout=_STATS_POLL)
            except queue.Empty:
                continue
            self._record(message)
        while True:
            try:
                message = self._outcomes.get_nowait()
            except queue.Empty:
                break
            self._record(message)
        self.logger.log(self.statistics.report())
        self.logger.log("STATISTICS: Process shutting down")

    def _spawn(self, target, name: str) -> threading.Thread:
        thread = threading.Thread(target=target, name=name, daemon=True)
        thread.start()
        return thread

    # -- public interface --------------------------------------------------

    def start(self) -> None:
        """Start the miner, validator and statistics workers."""
        if self._shut_down:
            raise RuntimeError("controller has been shut down")
        if self._started:
            raise RuntimeError("controller already started")
        self._started = True
        if self.serve_pool:
            self._serve()
        self._miner_thread = self._spawn(self._run_miners, "miners")
        self.logger.log("CONTROLLER: Created miner workers")
        self._validator_thread = self._spawn(self._run_validator, "validator")
        self.logger.log("CONTROLLER: Created validator worker")
        self._statistics_thread = self._spawn(self._run_statistics, "statistics")
        self.logger.log("CONTROLLER: Created statistics worker")

    def run(self) -> int:
        """Run until the ledger is full or a stop is requested, then shut down.

        Starts the workers if needed; returns the number of blocks in the chain.
        """
        if not self._started and not self._shut_down:
            self.start()
        while not self._stop_requested.is_set():
            if self._stats_requested.is_set():
                self._stats_requested.clear()
                self.logger.log("CONTROLLER: Received SIGUSR1, printing statistics...")
                self.request_statistics()
            if self.ledger.is_full():
                self.logger.log(
                    "CONTROLLER: Maximum number of blocks reached "
                    f"({self.ledger.max_blocks}). Initiating ordered shutdown."
                )
                break
            self._stop_requested.wait(self.poll_interval)
        if self._signal_received is not None and not self._shut_down:
            self.logger.log(
                f"CONTROLLER: Received signal {self._signal_received}, "
                "initiating ordered shutdown..."
            )
            self.request_statistics()
        self.shutdown()
        return len(self.ledger)

    def request_statistics(self) -> None:
        """Log the current statistics report."""
        self.logger.log(self.statistics_report())

    def statistics_report(self) -> str:
        """The current statistics as text."""
        return self.statistics.report()

    def shutdown(self) -> None:
        """Stop miners, then the validator, then statistics; dump the ledger and clean up.

        Calling it again does nothing.
        """
        with self._shutdown_lock:
            if self._shut_down:
                return
            self._shut_down = True
        self._stop_requested.set()
        self.logger.log("CONTROLLER: Starting ordered shutdown sequence...")

        if self._miner_thread is not None:
            self.logger.log("CONTROLLER: Phase 1 - Stopping miner process...")
            self._miner_stop.set()
            self.pool.wake_all()
            self._miner_thread.join()
            self.logger.log("CONTROLLER: Phase 1 complete - Miners stopped")

        if self._validator_thread is not None:
            self.logger.log("CONTROLLER: Phase 2 - Stopping validator process...")
            self._validator_stop.set()
            self._validator_thread.join()

        if self._statistics_thread is not None:
            self.logger.log("CONTROLLER: Phase 3 - Requesting final statistics...")
            self.request_statistics()
            self.logger.log("CONTROLLER: Phase 3 - Stopping statistics process...")
            self._statistics_stop.set()
            self._statistics_thread.join()

        self.logger.log("CONTROLLER: All processes stopped")
        self._dump_ledger()
        self._cleanup()

    # -- teardown ----------------------------------------------------------

    def _dump_ledger(self) -> None:
        try:
            lines = read_ledger(self.ledger_path)
        except OSError:
            self.logger.log("Error: Failed to open ledger log file")
            return
        for line in lines:
            self.logger.log(line)

    def _cleanup(self) -> None:
        self.logger.log("CONTROLLER: Beginning cleanup of all resources...")
        try:
            self.endpoint_path.unlink()
        except FileNotFoundError:
            pass
        try:
            self.ledger_path.unlink()
        except FileNotFoundError:
            pass
        else:
            self.logger.log("CONTROLLER: Removed blockchain ledger file")
        self.logger.log("CONTROLLER: All resources cleaned up")

    def _handle_signal(self, signum, frame) -> None:
        usr1 = getattr(signal, "SIGUSR1", None)
        if usr1 is not None and signum == usr1:
            self._stats_requested.set()
            return
        if self._signal_received is None:
            self._signal_received = signum
        self._stop_requested.set()


def _install_handlers(controller: Controller) -> dict:
    previous = {}
    names = ("SIGINT", "SIGTERM", "SIGUSR1")
    for name in names:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        previous[signum] = signal.signal(signum, controller._handle_signal)
    return previous


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the controller until the chain is complete or it is interrupted."""
    parser = argparse.ArgumentParser(prog="deichain-controller")
    parser.add_argument("--config", default=CONFIG_FILE, help="configuration file")
    parser.add_argument("--workdir", default=".", help="directory for ledger and logs")
    args = parser.parse_args(argv)

    workdir = Path(args.workdir)
    with Logger(workdir / DEFAULT_LOG_PATH) as logger:
        logger.log("CONTROLLER: DEIChain Controller starting up")
        try:
            config = read_config(args.config)
        except ConfigError as exc:
            print(exc, file=sys.stderr)
            return 1

        controller = Controller(config, workdir, logger)
        controller.serve_pool = True
        previous = _install_handlers(controller)
        try:
            controller.start()
            controller.run()
        finally:
            controller.shutdown()
            for signum, handler in previous.items():
                signal.signal(signum, handler)
        logger.log("CONTROLLER: Shutdown complete")
    return 0