# MIT License
# Copyright (c) 2025 Hashborn

from typing import Iterable, Set
from ..protocol.types.delegation import DelegationRecord
from .filters import TimeWindow, is_active, is_countable


def count_distinct_stakers(records: Iterable[DelegationRecord]) -> int:
    stakers: Set[str] = set()
    for record in records:
        if not is_countable(record):
            continue
        stakers.add(record.staker_pk_hex)
    return len(stakers)


def count_delegations(records: Iterable[DelegationRecord]) -> int:
    # Unlike count_distinct_stakers, several delegations of one staker all count
    return sum(1 for record in records if is_countable(record))


def has_active_delegation(records: Iterable[DelegationRecord], window: TimeWindow) -> bool:
    return any(
        is_active(record) and window.contains(record.created_at)
        for record in records
    )
