# MIT License
# Copyright (c) 2025 Hashborn

"""
Pagination key codec.

A key marks the last delegation of the previous page by its sort position
(start height, then staking tx hash). Callers treat it as an opaque string:
URL-safe base64 of compact JSON. The empty string is the start cursor.
"""

import base64
import binascii
import json
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from typing import Optional
from ..protocol.types.common import InvalidPaginationKey
from ..protocol.types.delegation import DelegationRecord

# Largest value sqlite can bind to an INTEGER column
MAX_START_HEIGHT = 2**63 - 1


class PaginationToken(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    start_height: Optional[int] = Field(default=None, ge=0, le=MAX_START_HEIGHT)
    staking_tx_hash_hex: Optional[str] = None

    @property
    def is_start(self) -> bool:
        return self.start_height is None and self.staking_tx_hash_hex is None

    @classmethod
    def after(cls, record: DelegationRecord) -> "PaginationToken":
        return cls(
            start_height=record.staking_tx.start_height,
            staking_tx_hash_hex=record.staking_tx_hash_hex,
        )


START_CURSOR = PaginationToken()


def encode_pagination_key(token: PaginationToken) -> str:
    if token.is_start:
        return ""
    raw = json.dumps(token.model_dump(), sort_keys=True, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_pagination_key(raw: str) -> PaginationToken:
    """
    Raises:
        InvalidPaginationKey: the key is not a well-formed cursor
    """
    if not raw:
        return START_CURSOR
    try:
        decoded = base64.urlsafe_b64decode(raw.encode("ascii"))
        token = PaginationToken.model_validate_json(decoded)
    except (binascii.Error, UnicodeError, ValueError, PydanticValidationError):
        raise InvalidPaginationKey("invalid pagination key format")

    # Half-filled cursors are never produced by encode
    if token.start_height is None or token.staking_tx_hash_hex is None:
        raise InvalidPaginationKey("invalid pagination key format")
    return token
