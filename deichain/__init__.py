"""Proof-of-work blockchain simulation: controller, miners, validator, statistics and transaction generator."""

__version__ = "0.1.0"