"""Data records shared by the miners, the validator and the statistics."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

HASH_SIZE = 65
"""Bytes reserved for a hex SHA-256 digest plus its terminating NUL."""

INITIAL_HASH = "00006a8e76f31ba74e21a092cca1015a418c9d5f4375e7a4fec676e1d2ec1436"
"""Previous-block hash that the first block of the chain must carry."""


@dataclass
class Transaction:
    """A single transaction waiting in the pool or stored in a block."""

    tx_id: int
    reward: int
    value: int
    tx_timestamp: int


@dataclass
class Block:
    """A block of transactions together with its proof-of-work nonce."""

    txb_id: int
    prev_hash: str
    txb_timestamp: int
    nonce: int = 0
    transactions: list[Transaction] = field(default_factory=list)

    def copy(self) -> Block:
        """Return an independent copy, transactions included."""
        return dataclasses.replace(
            self,
            transactions=[dataclasses.replace(tx) for tx in self.transactions],
        )


@dataclass
class TransactionEntry:
    """A slot of the transaction pool."""

    empty: bool = True
    age: int = 0
    transaction: Transaction = field(default_factory=lambda: Transaction(0, 0, 0, 0))


@dataclass(frozen=True)
class Config:
    """Run-time settings read from the configuration file."""

    num_miners: int
    tx_pool_size: int
    transactions_per_block: int
    blockchain_blocks: int


@dataclass(frozen=True)
class StatisticsMessage:
    """Outcome of one validation, sent to the statistics collector."""

    miner_id: int
    valid_block: bool
    credits: int
    block_timestamp: int
    tx_timestamps: tuple[int, ...] = ()
    mtype: int = 1

    @property
    def num_timestamps(self) -> int:
        return len(self.tx_timestamps)


@dataclass
class BlockMessage:
    """A mined block as sent from a miner to the validator."""

    miner_id: int
    block: Block