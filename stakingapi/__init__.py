# MIT License
# Copyright (c) 2025 Hashborn

"""Read-only query API over BTC staking delegations."""

__version__ = "0.1.0"
