"""Binary encoding of block messages sent from miners to the validator."""

from __future__ import annotations

import struct

from .models import HASH_SIZE, Block, BlockMessage, Transaction

__all__ = [
    "WireError",
    "message_size",
    "encode_block_message",
    "decode_block_message",
]

_MINER_ID = struct.Struct("<i")
_BLOCK = struct.Struct(f"<i{HASH_SIZE}s3xqi4x")
_TRANSACTION = struct.Struct("<iii4xq")


class WireError(ValueError):
    """A block message could not be encoded or decoded."""


def _check_count(transactions_per_block: int) -> None:
    if transactions_per_block < 0:
        raise ValueError("transactions per block must not be negative")


def message_size(transactions_per_block: int) -> int:
    """Bytes taken by a block message carrying this many transactions."""
    _check_count(transactions_per_block)
    return _MINER_ID.size + _BLOCK.size + transactions_per_block * _TRANSACTION.size


def encode_block_message(message: BlockMessage, transactions_per_block: int) -> bytes:
    """Pack the miner id, the block header and its first transactions."""
    _check_count(transactions_per_block)
    block = message.block
    transactions = block.transactions[:transactions_per_block]
    if len(transactions) < transactions_per_block:
        raise WireError(
            f"block holds {len(block.transactions)} transactions, "
            f"{transactions_per_block} needed"
        )
    try:
        prev_hash = block.prev_hash.encode("ascii")
    except UnicodeEncodeError as exc:
        raise WireError("previous hash is not ASCII") from exc
    if len(prev_hash) >= HASH_SIZE:
        raise WireError(f"previous hash longer than {HASH_SIZE - 1} characters")
    try:
        parts = [
            _MINER_ID.pack(message.miner_id),
            _BLOCK.pack(block.txb_id, prev_hash, block.txb_timestamp, block.nonce),
        ]
        parts.extend(
            _TRANSACTION.pack(tx.tx_id, tx.reward, tx.value, tx.tx_timestamp)
            for tx in transactions
        )
    except struct.error as exc:
        raise WireError(f"value out of range: {exc}") from exc
    return b"".join(parts)


def decode_block_message(data: bytes, transactions_per_block: int) -> BlockMessage:
    """Unpack a message produced by :func:`encode_block_message`."""
    expected = message_size(transactions_per_block)
    if len(data) != expected:
        raise WireError(f"expected {expected} bytes, got {len(data)}")
    view = memoryview(data)
    (miner_id,) = _MINER_ID.unpack_from(view, 0)
    txb_id, raw_hash, txb_timestamp, nonce = _BLOCK.unpack_from(view, _MINER_ID.size)
    try:
        prev_hash = raw_hash.split(b"\0", 1)[0].decode("ascii")
    except UnicodeDecodeError as exc:
        raise WireError("previous hash is not ASCII") from exc
    offset = _MINER_ID.size + _BLOCK.size
    transactions = [
        Transaction(tx_id, reward, value, stamp)
        for tx_id, reward, value, stamp in _TRANSACTION.iter_unpack(view[offset:])
    ]
    block = Block(txb_id, prev_hash, txb_timestamp, nonce, transactions)
    return BlockMessage(miner_id, block)