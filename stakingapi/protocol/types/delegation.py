# MIT License
# Copyright (c) 2025 Hashborn

from pydantic import BaseModel, ConfigDict, Field
from typing import Generic, List, Optional, TypeVar
from .common import DelegationState

T = TypeVar("T")


class TimelockTx(BaseModel):
    """A staking or unbonding BTC transaction as stored by the indexer."""
    model_config = ConfigDict(frozen=True)

    tx_hex: str
    output_index: int
    start_timestamp: int    # Unix seconds of the block that included the tx
    start_height: int
    timelock: int           # In BTC blocks


class DelegationRecord(BaseModel):
    """One staking delegation, read-only once handed to the query layer."""
    model_config = ConfigDict(frozen=True)

    staking_tx_hash_hex: str
    staker_pk_hex: str
    finality_provider_pk_hex: str
    staking_value: int      # Satoshis
    state: DelegationState
    staking_tx: TimelockTx
    unbonding_tx: Optional[TimelockTx] = None
    is_overflow: bool = False

    @property
    def created_at(self) -> int:
        return self.staking_tx.start_timestamp


class DelegationPublic(BaseModel):
    """Delegation view returned by the HTTP API."""
    staking_tx_hash_hex: str
    staker_pk_hex: str
    finality_provider_pk_hex: str
    state: str
    staking_value: int
    staking_tx: TimelockTx
    unbonding_tx: Optional[TimelockTx] = None
    is_overflow: bool = False

    @classmethod
    def from_record(cls, record: DelegationRecord) -> "DelegationPublic":
        return cls(
            staking_tx_hash_hex=record.staking_tx_hash_hex,
            staker_pk_hex=record.staker_pk_hex,
            finality_provider_pk_hex=record.finality_provider_pk_hex,
            state=record.state.value,
            staking_value=record.staking_value,
            staking_tx=record.staking_tx,
            unbonding_tx=record.unbonding_tx,
            is_overflow=record.is_overflow,
        )


class Page(BaseModel, Generic[T]):
    """
    A bounded slice of an ordered collection.

    An empty next_key means there are no more results.
    """
    items: List[T] = Field(default_factory=list)
    next_key: str = ""

    @property
    def has_more(self) -> bool:
        return self.next_key != ""
