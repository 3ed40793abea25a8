"""Reading the KEY=VALUE configuration file."""

from __future__ import annotations

import os
import re
from typing import Union

from .models import Config

CONFIG_FILE = "config.cfg"

_KEYS = {
    "NUM_MINERS": "num_miners",
    "TX_POOL_SIZE": "tx_pool_size",
    "BLOCKCHAIN_BLOCKS": "blockchain_blocks",
    "TRANSACTIONS_PER_BLOCK": "transactions_per_block",
}

_LEADING_INT = re.compile(r"\s*([+-]?\d+)", re.ASCII)


class ConfigError(ValueError):
    """The configuration file is missing or holds invalid values."""


def _first_token(text: str, separator: str) -> str | None:
    return next((token for token in text.split(separator) if token), None)


def _leading_int(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def parse_config(text: str) -> Config:
    """Parse configuration text; every value must end up positive."""
    values = dict.fromkeys(_KEYS.values(), 0)
    for line in text.splitlines(keepends=True):
        if line.startswith("#") or line == "\n":
            continue
        parts = [part for part in line.split("=") if part]
        if len(parts) < 2:
            continue
        key = _first_token(parts[0], " ")
        value = _first_token(parts[1], " ")
        if key is None or value is None or key not in _KEYS:
            continue
        values[_KEYS[key]] = _leading_int(value)

    invalid = sorted(name for name, value in values.items() if value <= 0)
    if invalid:
        raise ConfigError("Invalid configuration values: " + ", ".join(invalid))
    return Config(**values)


def read_config(path: Union[str, os.PathLike] = CONFIG_FILE) -> Config:
    """Read and validate the configuration file at ``path``."""
    try:
        with open(path, encoding="utf-8") as handle:
            text = handle.read()
    except OSError as exc:
        raise ConfigError(f"Failed to open config file: {exc}") from exc
    return parse_config(text)