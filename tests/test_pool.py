import random
import threading
import time

import pytest

from deichain.models import Block, Transaction
from deichain.pool import (
    AGE_MULTIPLIER,
    PoolFullError,
    PoolManager,
    TransactionPool,
    connect_pool,
)


def _tx(reward=1, value=10, ts=1000):
    return Transaction(tx_id=0, reward=reward, value=value, tx_timestamp=ts)


def _filled(size=5, per_block=2, count=None):
    pool = TransactionPool(size, per_block)
    for n in range(size if count is None else count):
        pool.add(_tx(value=n))
    return pool


def test_add_assigns_sequential_ids_starting_at_one():
    pool = _filled(size=3)
    ids = [entry.transaction.tx_id for entry in pool.snapshot()]
    assert ids == [1, 2, 3]
    assert pool.pending() == 3


def test_add_returns_first_empty_position():
    pool = TransactionPool(3, 1)
    assert pool.add(_tx()) == 0
    assert pool.add(_tx()) == 1
    pool.remove_at(0)
    assert pool.add(_tx()) == 0


def test_add_to_full_pool_raises():
    pool = _filled(size=2)
    with pytest.raises(PoolFullError):
        pool.add(_tx())
    assert pool.pending() == 2


def test_add_does_not_alias_caller_transaction():
    pool = TransactionPool(2, 1)
    original = _tx(value=42)
    pool.add(original)
    original.value = 0
    assert pool.snapshot()[0].transaction.value == 42


def test_remove_at_ignores_invalid_positions():
    pool = _filled(size=2)
    pool.remove_at(-1)
    pool.remove_at(2)
    assert pool.pending() == 2
    pool.remove_at(1)
    pool.remove_at(1)
    assert pool.pending() == 1
    assert pool.snapshot()[1].empty


def test_invalid_construction():
    with pytest.raises(ValueError):
        TransactionPool(0, 1)
    with pytest.raises(ValueError):
        TransactionPool(1, 0)


def test_select_random_none_when_not_enough():
    pool = _filled(size=4, count=2)
    assert pool.select_random(3, random.Random(1)) is None


def test_select_random_returns_distinct_pool_transactions():
    pool = _filled(size=6)
    chosen = pool.select_random(4, random.Random(7))
    ids = [tx.tx_id for tx in chosen]
    assert len(set(ids)) == 4
    assert all(pool.is_in_pool(i) for i in ids)
    assert pool.pending() == 6


def test_select_random_is_reproducible_with_seed():
    pool = _filled(size=6)
    first = pool.select_random(3, random.Random(3))
    second = pool.select_random(3, random.Random(3))
    assert first == second


def test_select_random_returns_copies():
    pool = _filled(size=2)
    chosen = pool.select_random(2, random.Random(0))
    chosen[0].reward = 99
    assert all(entry.transaction.reward == 1 for entry in pool.snapshot())


def test_is_in_pool():
    pool = _filled(size=2)
    assert pool.is_in_pool(1)
    pool.remove_at(0)
    assert not pool.is_in_pool(1)
    assert not pool.is_in_pool(7)


def test_age_increases_reward_every_multiplier_steps():
    pool = TransactionPool(2, 1)
    pool.add(_tx(reward=1))
    for _ in range(AGE_MULTIPLIER - 1):
        pool.age()
    entry = pool.snapshot()[0]
    assert entry.age == AGE_MULTIPLIER - 1
    assert entry.transaction.reward == 1
    pool.age()
    assert pool.snapshot()[0].transaction.reward == 2
    assert pool.snapshot()[1].age == 0


def test_remove_validated_frees_matching_slots():
    pool = _filled(size=4)
    block = Block(
        txb_id=1,
        prev_hash="0" * 64,
        txb_timestamp=0,
        transactions=[
            Transaction(2, 1, 0, 0),
            Transaction(4, 1, 0, 0),
            Transaction(99, 1, 0, 0),
        ],
    )
    assert pool.remove_validated(block) == 2
    assert pool.pending() == 2
    assert not pool.is_in_pool(2)
    assert not pool.is_in_pool(4)
    assert pool.is_in_pool(1)


def test_wait_for_enough_true_immediately():
    pool = _filled(size=3, per_block=2)
    assert pool.wait_for_enough(timeout=0.01) is True


def test_wait_for_enough_times_out():
    pool = _filled(size=3, per_block=2, count=1)
    assert pool.wait_for_enough(timeout=0.05) is False


def test_wait_for_enough_stops_when_told():
    pool = TransactionPool(3, 2)
    assert pool.wait_for_enough(lambda: False, timeout=5) is False


def test_wait_for_enough_woken_by_add():
    pool = TransactionPool(3, 2)

    def add_two():
        pool.add(_tx())
        pool.add(_tx())

    timer = threading.Timer(0.05, add_two)
    timer.start()
    try:
        assert pool.wait_for_enough(timeout=5) is True
    finally:
        timer.join(5)
    assert pool.pending() == 2


def test_wake_all_releases_stopped_waiters():
    pool = TransactionPool(3, 2)
    stop = threading.Event()

    def stop_and_wake():
        stop.set()
        pool.wake_all()

    timer = threading.Timer(0.05, stop_and_wake)
    start = time.monotonic()
    timer.start()
    try:
        assert pool.wait_for_enough(lambda: not stop.is_set(), timeout=5) is False
    finally:
        timer.join(5)
    assert time.monotonic() - start < 4


def test_connect_pool_reaches_served_pool():
    pool = TransactionPool(3, 1)
    manager = PoolManager(address=("127.0.0.1", 0), authkey=b"secret", pool=pool)
    server = manager.get_server()
    threading.Thread(target=server.serve_forever, daemon=True).start()
    proxy = connect_pool(server.address, b"secret")
    assert proxy.add(_tx(value=5)) == 0
    assert pool.pending() == 1
    assert proxy.is_in_pool(1) is True