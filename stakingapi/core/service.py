# MIT License
# Copyright (c) 2025 Hashborn

"""
Delegation query service.

Each public method is one API operation: it validates the raw request
values, fetches from storage, filters and aggregates. Storage errors are
wrapped into UpstreamQueryFailed and never partially answered.
"""

import logging
import sqlite3
import string
from contextlib import contextmanager
from pydantic import ValidationError as PydanticValidationError
from typing import Optional
from ..observability import observe_scanned, request_logger, track_request
from ..protocol.config.params import BTCNetParams, MAX_PAGINATION_LIMIT
from ..protocol.crypto.addresses import decode_taproot_address
from ..protocol.crypto.keys import parse_public_key_hex
from ..protocol.types.common import InvalidTxHash, NotFound, UpstreamQueryFailed
from ..protocol.types.delegation import DelegationPublic, Page
from ..storage.db import StorageDB
from . import aggregator
from .filters import resolve_timeframe
from .pagination import decode_pagination_key

logger = logging.getLogger(__name__)

TX_HASH_HEX_LEN = 64

# Errors raised by storage that mean the query could not be completed
_UPSTREAM_ERRORS = (sqlite3.Error, PydanticValidationError)


class StakingService:
    def __init__(self, db: StorageDB, net_params: BTCNetParams, page_size: int = MAX_PAGINATION_LIMIT):
        self.db = db
        self.net_params = net_params
        self.page_size = page_size

    @contextmanager
    def _upstream(self, operation: str, log: logging.LoggerAdapter):
        try:
            yield
        except _UPSTREAM_ERRORS as e:
            log.error(f"{operation}: storage query failed: {e}", exc_info=True)
            raise UpstreamQueryFailed(operation, e) from e

    def delegations_by_staker_pk(self, staker_pk: str, pagination_key: str = "",
                                 log: Optional[logging.LoggerAdapter] = None) -> Page:
        op = "delegations_by_staker_pk"
        log = log or request_logger()
        with track_request(op):
            staker_pk_hex = parse_public_key_hex(staker_pk)
            cursor = decode_pagination_key(pagination_key)

            with self._upstream(op, log):
                page = self.db.find_delegations_by_staker_pk(staker_pk_hex, cursor, self.page_size)

            log.debug(f"{op}: staker:{staker_pk_hex} returned:{len(page.items)} has_more:{page.has_more}")
            return Page(
                items=[DelegationPublic.from_record(r) for r in page.items],
                next_key=page.next_key,
            )

    def staker_count_by_finality_provider(self, fp_pk: str,
                                          log: Optional[logging.LoggerAdapter] = None) -> int:
        op = "staker_count_by_finality_provider"
        log = log or request_logger()
        with track_request(op):
            fp_pk_hex = parse_public_key_hex(fp_pk)
            log.debug(f"{op}: finalityProviderPkHex:{fp_pk_hex}")

            with self._upstream(op, log):
                delegations = self.db.find_delegations_by_finality_provider_pk(fp_pk_hex)

            log.debug(f"{op}: delegations len:{len(delegations)}")
            observe_scanned(op, len(delegations))
            return aggregator.count_distinct_stakers(delegations)

    def delegations_count_by_finality_provider(self, fp_pk: str,
                                               log: Optional[logging.LoggerAdapter] = None) -> int:
        op = "delegations_count_by_finality_provider"
        log = log or request_logger()
        with track_request(op):
            fp_pk_hex = parse_public_key_hex(fp_pk)
            log.debug(f"{op}: finalityProviderPkHex:{fp_pk_hex}")

            with self._upstream(op, log):
                delegations = self.db.find_delegations_by_finality_provider_pk(fp_pk_hex)

            log.debug(f"{op}: delegations len:{len(delegations)}")
            observe_scanned(op, len(delegations))
            return aggregator.count_delegations(delegations)

    def delegations_count_by_staker_pk(self, staker_pk: str,
                                       log: Optional[logging.LoggerAdapter] = None) -> int:
        op = "delegations_count_by_staker_pk"
        log = log or request_logger()
        with track_request(op):
            staker_pk_hex = parse_public_key_hex(staker_pk)
            log.debug(f"{op}: stakerPkHex:{staker_pk_hex}")

            with self._upstream(op, log):
                delegations = self.db.find_delegations_by_staker_pk_unpaged(staker_pk_hex)

            log.debug(f"{op}: delegations len:{len(delegations)}")
            observe_scanned(op, len(delegations))
            return aggregator.count_delegations(delegations)

    def check_staker_has_active_delegation(self, address: str, timeframe: str = "",
                                           log: Optional[logging.LoggerAdapter] = None) -> bool:
        op = "check_staker_has_active_delegation"
        log = log or request_logger()
        with track_request(op):
            taproot = decode_taproot_address(address, self.net_params)
            window = resolve_timeframe(timeframe)

            with self._upstream(op, log):
                staker_pk_hex = self.db.find_staker_pk_by_taproot_address(taproot.address)
                if staker_pk_hex is None:
                    log.debug(f"{op}: no staker known for address {taproot.address}")
                    return False
                delegations = self.db.find_delegations_by_staker_pk_unpaged(staker_pk_hex)

            observe_scanned(op, len(delegations))
            exists = aggregator.has_active_delegation(delegations, window)
            log.debug(f"{op}: address:{taproot.address} after:{window.lower_bound} exists:{exists}")
            return exists

    def delegation_by_tx_hash(self, staking_tx_hash_hex: str,
                              log: Optional[logging.LoggerAdapter] = None) -> DelegationPublic:
        op = "delegation_by_tx_hash"
        log = log or request_logger()
        with track_request(op):
            tx_hash = _parse_tx_hash(staking_tx_hash_hex)

            with self._upstream(op, log):
                record = self.db.find_delegation_by_tx_hash(tx_hash)

            if record is None:
                raise NotFound("staking delegation not found, please retry")
            return DelegationPublic.from_record(record)

    def health_check(self) -> bool:
        try:
            return self.db.ping()
        except sqlite3.Error as e:
            logger.error(f"Health check failed: {e}")
            return False


def _parse_tx_hash(raw: str) -> str:
    if not raw:
        raise InvalidTxHash("staking_tx_hash_hex is required")
    if len(raw) != TX_HASH_HEX_LEN or any(c not in string.hexdigits for c in raw):
        raise InvalidTxHash("invalid staking_tx_hash_hex")
    return raw.lower()
