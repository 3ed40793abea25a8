"""The shared pool of pending transactions."""

from __future__ import annotations

import dataclasses
import random
import threading
from multiprocessing.managers import BaseManager
from typing import Callable, Optional, Protocol

from .models import Block, Transaction, TransactionEntry

AGE_MULTIPLIER = 50
"""A transaction's reward grows by one every time its age reaches a multiple of this."""


class _RandomSource(Protocol):
    def randrange(self, stop: int) -> int: ...


class PoolFullError(RuntimeError):
    """Raised when a transaction is offered to a pool with no empty slot."""


class TransactionPool:
    """Fixed-size pool of transaction slots shared by generators, miners and the validator.

    Transaction ids are assigned by the pool, starting from 1.  Waiters on
    :meth:`wait_for_enough` are woken whenever enough transactions for a
    block are pending.
    """

    def __init__(self, size: int, transactions_per_block: int) -> None:
        if size <= 0:
            raise ValueError("pool size must be positive")
        if transactions_per_block <= 0:
            raise ValueError("transactions per block must be positive")
        self.size = size
        self.transactions_per_block = transactions_per_block
        self._entries = [TransactionEntry() for _ in range(size)]
        self._pending = 0
        self._next_tx_id = 1
        self._condition = threading.Condition()

    def _enough(self) -> bool:
        return self._pending >= self.transactions_per_block

    def add(self, transaction: Transaction) -> int:
        """Store a copy of ``transaction`` in the first empty slot.

        The stored copy gets the next transaction id.  Returns the slot
        position; raises :class:`PoolFullError` when every slot is taken.
        """
        with self._condition:
            position = next(
                (index for index, entry in enumerate(self._entries) if entry.empty),
                None,
            )
            if position is None:
                raise PoolFullError("transaction pool is full")
            entry = self._entries[position]
            entry.empty = False
            entry.age = 0
            entry.transaction = dataclasses.replace(transaction, tx_id=self._next_tx_id)
            self._next_tx_id += 1
            self._pending += 1
            if self._enough():
                self._condition.notify_all()
            return position

    def remove_at(self, position: int) -> None:
        """Free the slot at ``position``; positions outside the pool are ignored."""
        with self._condition:
            if not 0 <= position < self.size:
                return
            entry = self._entries[position]
            if entry.empty:
                return
            entry.empty = True
            entry.age = 0
            self._pending -= 1

    def wait_for_enough(
        self,
        should_continue: Optional[Callable[[], bool]] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """Block until a block's worth of transactions is pending.

        Gives up when ``should_continue`` returns false (checked whenever the
        pool is woken) or after ``timeout`` seconds.  Returns whether enough
        transactions are pending.
        """

        def ready() -> bool:
            if self._enough():
                return True
            return should_continue is not None and not should_continue()

        with self._condition:
            self._condition.wait_for(ready, timeout)
            return self._enough()

    def select_random(
        self, count: int, rng: Optional[_RandomSource] = None
    ) -> Optional[list[Transaction]]:
        """Copy ``count`` distinct random transactions out of the pool.

        The transactions stay in the pool.  Returns ``None`` when fewer than
        ``count`` transactions are present.
        """
        source = rng if rng is not None else random
        with self._condition:
            available = [i for i, entry in enumerate(self._entries) if not entry.empty]
            if len(available) < count:
                return None
            selected = []
            for _ in range(count):
                pick = source.randrange(len(available))
                position = available[pick]
                selected.append(dataclasses.replace(self._entries[position].transaction))
                available[pick] = available[-1]
                available.pop()
            return selected

    def is_in_pool(self, tx_id: int) -> bool:
        """Whether a transaction with ``tx_id`` still occupies a slot."""
        with self._condition:
            return any(
                not entry.empty and entry.transaction.tx_id == tx_id
                for entry in self._entries
            )

    def age(self) -> None:
        """Age every waiting transaction, raising rewards at each age step."""
        with self._condition:
            for entry in self._entries:
                if entry.empty:
                    continue
                entry.age += 1
                if entry.age % AGE_MULTIPLIER == 0:
                    entry.transaction.reward += 1

    def remove_validated(self, block: Block) -> int:
        """Free the slots holding the block's transactions; returns how many were found."""
        removed = 0
        with self._condition:
            for validated in block.transactions:
                for entry in self._entries:
                    if not entry.empty and entry.transaction.tx_id == validated.tx_id:
                        entry.empty = True
                        entry.age = 0
                        self._pending -= 1
                        removed += 1
                        break
        return removed

    def wake_all(self) -> None:
        """Wake every thread waiting in :meth:`wait_for_enough`."""
        with self._condition:
            self._condition.notify_all()

    def snapshot(self) -> list[TransactionEntry]:
        """Independent copies of all slots, in pool order."""
        with self._condition:
            return [
                dataclasses.replace(
                    entry, transaction=dataclasses.replace(entry.transaction)
                )
                for entry in self._entries
            ]

    def pending(self) -> int:
        """Number of transactions currently in the pool."""
        with self._condition:
            return self._pending


_served: Optional[TransactionPool] = None


def _served_pool() -> TransactionPool:
    if _served is None:
        raise RuntimeError("no transaction pool is being served")
    return _served


class PoolManager(BaseManager):
    """Manager that makes one :class:`TransactionPool` reachable from other processes.

    A manager created with ``pool`` serves that pool through ``get_pool``;
    one created without it connects to a manager that does.
    """

    def __init__(self, address=None, authkey=None, pool: Optional[TransactionPool] = None):
        super().__init__(address=address, authkey=authkey)
        if pool is not None:
            global _served
            _served = pool


PoolManager.register("get_pool", callable=_served_pool)


def connect_pool(address, authkey: bytes):
    """Connect to a served pool and return a proxy for it."""
    manager = PoolManager(address=address, authkey=authkey)
    manager.connect()
    return manager.get_pool()