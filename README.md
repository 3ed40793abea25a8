# deichain

A small proof-of-work blockchain simulation. A controller keeps a shared
transaction pool and a bounded blockchain ledger, runs a group of miners, a
validator and a statistics collector, and stops once the ledger is full or
it is asked to shut down. One or more transaction generators feed the pool.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Configuration

The controller reads `config.cfg` (or the file given with `--config`). Lines
starting with `#` and blank lines are ignored; every other line is
`KEY = VALUE`:

```
NUM_MINERS = 3
TX_POOL_SIZE = 50
TRANSACTIONS_PER_BLOCK = 4
BLOCKCHAIN_BLOCKS = 10
```

All four values must be positive integers, otherwise the controller prints
the names of the invalid settings and exits with status 1.

## Running

Start the controller:

```
deichain-controller [--config config.cfg] [--workdir .]
```

It serves its transaction pool on a local port and writes the address and an
access key to `deichain_pool.json` in the working directory. Then start one
or more transaction generators **from that same directory**, each with a
reward (1 to 3) and a pause between transactions in milliseconds (200 to
3000):

```
deichain-txgen 2 1000
```

A generator offers one transaction per pause; when the pool is full the
transaction is dropped and it tries again after the next pause. `Ctrl-C`
stops it.

While the controller runs:

- `SIGUSR1` makes it print the current miner and global statistics;
- `Ctrl-C` (`SIGINT`) or `SIGTERM` starts an ordered shutdown: statistics are
  printed, miners stop first, then the validator, then the statistics
  collector prints a final report.

The controller also shuts down by itself once `BLOCKCHAIN_BLOCKS` blocks have
been accepted. Before exiting it prints the ledger, then removes
`blockchain_ledger.txt` and `deichain_pool.json`.

Messages go to the console and are appended to `DEIChain_log.log` (in the
controller's working directory, and in the directory a generator runs from).

## Proof of work

The hash of a block is the SHA-256 of its serialized form. The difficulty is
chosen from the highest transaction reward (counting only rewards 1 to 3) in
the block:

| max reward  | difficulty | hash must start with |
|------------:|------------|----------------------|
| 1 (or none) | EASY       | `0000` then `0`–`b`  |
| 2           | NORMAL     | `00000`              |
| 3           | HARD       | `00000` then `0`–`b` |

The validator ages every waiting transaction each time it checks a block;
every 50th time a transaction is aged its reward grows by one.

The same functions are available from Python:

```python
from deichain.models import INITIAL_HASH, Transaction
from deichain.miner import create_block
from deichain.pow import proof_of_work, verify_nonce

transactions = [
    Transaction(tx_id=1, reward=1, value=100, tx_timestamp=1_700_000_000),
    Transaction(tx_id=2, reward=1, value=42, tx_timestamp=1_700_000_001),
]
block = create_block(1, INITIAL_HASH, transactions, 1_700_000_010)

result = proof_of_work(block, len(transactions))
if not result.error:
    print(result.hash, block.nonce)
    assert verify_nonce(block, len(transactions))
```

## Layout

- `deichain.models` – transactions, blocks, configuration and messages
- `deichain.config` – `parse_config` and `read_config`
- `deichain.logger` – `Logger`, console and file logging
- `deichain.pow` – hashing, difficulty and `proof_of_work`
- `deichain.pool` – `TransactionPool`, and `PoolManager` / `connect_pool` to
  share it with other processes
- `deichain.ledger` – `BlockchainLedger` and its text log
- `deichain.wire` – a fixed byte format for block messages
- `deichain.statistics` – `Statistics`, per-miner and global counters
- `deichain.miner`, `deichain.validator` – the mining and validation loops
- `deichain.controller` – `Controller` and the `deichain-controller` command
- `deichain.txgen` – the `deichain-txgen` command

## What it does not do

- Miners, validator and statistics collector run as threads inside the
  controller process, not as separate processes; blocks and statistics are
  passed between them through in-memory queues. `deichain.wire` encodes and
  decodes block messages but the controller does not use it.
- Only the transaction pool is reachable from other processes. The ledger
  and statistics cannot be read from outside the controller, and nothing is
  kept once it exits.