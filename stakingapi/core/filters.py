# MIT License
# Copyright (c) 2025 Hashborn

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from ..protocol.types.common import DelegationState, InvalidTimeframe, Timeframe
from ..protocol.types.delegation import DelegationRecord


def is_countable(record: DelegationRecord) -> bool:
    """Unbonded delegations are terminal and never counted."""
    return record.state != DelegationState.UNBONDED


def is_active(record: DelegationRecord) -> bool:
    return record.state == DelegationState.ACTIVE


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive lower bound on delegation creation time. 0 means unbounded."""
    lower_bound: int = 0

    def contains(self, timestamp: int) -> bool:
        return timestamp >= self.lower_bound


def today_start_timestamp(now: Optional[datetime] = None) -> int:
    """Unix seconds of 00:00:00 UTC on the current day."""
    now = now or datetime.now(timezone.utc)
    start = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return int(start.timestamp())


def resolve_timeframe(timeframe: str, now: Optional[datetime] = None) -> TimeWindow:
    if timeframe == Timeframe.NONE.value:
        return TimeWindow()
    if timeframe == Timeframe.TODAY.value:
        return TimeWindow(lower_bound=today_start_timestamp(now))
    raise InvalidTimeframe("invalid timeframe value")
