"""Proof of work: block hashing and reward-dependent difficulty."""

from __future__ import annotations

import hashlib
import struct
import time
from dataclasses import dataclass
from enum import IntEnum

from .models import HASH_SIZE, INITIAL_HASH, Block

__all__ = [
    "INITIAL_HASH",
    "POW_MAX_OPS",
    "Difficulty",
    "PoWResult",
    "difficulty_from_reward",
    "get_max_transaction_reward",
    "serialize_block",
    "compute_sha256",
    "check_difficulty",
    "verify_nonce",
    "proof_of_work",
]

POW_MAX_OPS = 10_000_000
_MINIMUM_ZEROS = 4

_HEADER = struct.Struct(f"<i{HASH_SIZE}sq")
_TRANSACTION = struct.Struct("<iii4xq")
_NONCE = struct.Struct("<i")


class Difficulty(IntEnum):
    EASY = 1    # 0000[0-b]
    NORMAL = 2  # 00000
    HARD = 3    # 00000[0-b]


@dataclass
class PoWResult:
    """Outcome of a proof-of-work search."""

    hash: str = ""
    elapsed_time: float = 0.0
    operations: int = 0
    error: bool = False


def difficulty_from_reward(reward: int) -> Difficulty:
    """Map a transaction reward to the difficulty a block must meet."""
    if reward <= 1:
        return Difficulty.EASY
    if reward == 2:
        return Difficulty.NORMAL
    return Difficulty.HARD


def get_max_transaction_reward(block: Block, transactions_per_block: int) -> int:
    """Highest reward in 1..3 among the block's first transactions, or 0."""
    if transactions_per_block <= 0:
        return 0
    rewards = (
        tx.reward
        for tx in block.transactions[:transactions_per_block]
        if 1 <= tx.reward <= 3
    )
    return max(rewards, default=0)


def serialize_block(block: Block, transactions_per_block: int) -> bytes:
    """Pack the block into the byte layout that is hashed."""
    count = max(transactions_per_block, 0)
    transactions = block.transactions[:count]
    if len(transactions) < count:
        raise ValueError(
            f"block holds {len(block.transactions)} transactions, {count} needed"
        )
    parts = [
        _HEADER.pack(block.txb_id, block.prev_hash.encode("ascii"), block.txb_timestamp)
    ]
    parts.extend(
        _TRANSACTION.pack(tx.tx_id, tx.reward, tx.value, tx.tx_timestamp)
        for tx in transactions
    )
    parts.append(_NONCE.pack(block.nonce))
    return b"".join(parts)


def compute_sha256(block: Block, transactions_per_block: int) -> str:
    """Hex SHA-256 digest of the serialized block."""
    return hashlib.sha256(serialize_block(block, transactions_per_block)).hexdigest()


def check_difficulty(hash_hex: str, reward: int) -> bool:
    """Whether the hex digest meets the difficulty set by ``reward``."""
    zeros = len(hash_hex) - len(hash_hex.lstrip("0"))
    if zeros < _MINIMUM_ZEROS:
        return False
    next_char = hash_hex[zeros] if zeros < len(hash_hex) else "\0"
    difficulty = difficulty_from_reward(reward)
    if difficulty is Difficulty.EASY:
        return zeros > 4 or next_char <= "b"
    if difficulty is Difficulty.NORMAL:
        return zeros >= 5
    return zeros > 5 or (zeros == 5 and next_char <= "b")


def verify_nonce(block: Block, transactions_per_block: int) -> bool:
    """Whether the block's current nonce satisfies its difficulty."""
    reward = get_max_transaction_reward(block, transactions_per_block)
    return check_difficulty(compute_sha256(block, transactions_per_block), reward)


def proof_of_work(
    block: Block, transactions_per_block: int, max_ops: int = POW_MAX_OPS
) -> PoWResult:
    """Search nonces from 0 upwards; the block keeps the nonce reached."""
    block.nonce = 0
    reward = get_max_transaction_reward(block, transactions_per_block)
    prefix = serialize_block(block, transactions_per_block)[: -_NONCE.size]
    base = hashlib.sha256(prefix)
    operations = 0
    start = time.process_time()

    while True:
        digest = base.copy()
        digest.update(_NONCE.pack(block.nonce))
        hash_hex = digest.hexdigest()
        if check_difficulty(hash_hex, reward):
            return PoWResult(hash_hex, time.process_time() - start, operations, False)
        block.nonce += 1
        if block.nonce > max_ops:
            return PoWResult("", time.process_time() - start, operations, True)
        operations += 1