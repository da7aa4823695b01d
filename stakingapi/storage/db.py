# MIT License
# Copyright (c) 2025 Hashborn

import sqlite3
import threading
from typing import List, Optional
from ..core.pagination import PaginationToken, encode_pagination_key
from ..protocol.types.delegation import DelegationRecord, Page

_ORDER = "ORDER BY start_height DESC, staking_tx_hash_hex DESC"


class StorageDB:
    """
    Delegation store backed by sqlite.

    Records are kept as full JSON bodies; the indexed columns only serve
    lookups and the keyset ordering (newest start height first).
    """

    def __init__(self, db_path: str):
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.cursor = self.conn.cursor()
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        with self._lock:
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS delegations (
                    staking_tx_hash_hex TEXT PRIMARY KEY,
                    staker_pk_hex TEXT NOT NULL,
                    finality_provider_pk_hex TEXT NOT NULL,
                    state TEXT NOT NULL,
                    start_height INTEGER NOT NULL,
                    start_timestamp INTEGER NOT NULL,
                    data TEXT NOT NULL
                )
            ''')
            self.cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_delegations_staker
                ON delegations (staker_pk_hex, start_height DESC, staking_tx_hash_hex DESC)
            ''')
            self.cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_delegations_fp
                ON delegations (finality_provider_pk_hex)
            ''')
            # Staker taproot address -> staker public key
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS pk_address_mappings (
                    taproot_address TEXT PRIMARY KEY,
                    staker_pk_hex TEXT NOT NULL
                )
            ''')
            self.conn.commit()

    def close(self):
        with self._lock:
            self.conn.close()

    def ping(self) -> bool:
        with self._lock:
            self.cursor.execute('SELECT 1')
            return self.cursor.fetchone() is not None

    # --- Writes (seeding and fixtures only) ---
    def save_delegation(self, record: DelegationRecord):
        with self._lock:
            self.cursor.execute(
                'INSERT OR REPLACE INTO delegations '
                '(staking_tx_hash_hex, staker_pk_hex, finality_provider_pk_hex, state, start_height, start_timestamp, data) '
                'VALUES (?, ?, ?, ?, ?, ?, ?)',
                (
                    record.staking_tx_hash_hex,
                    record.staker_pk_hex,
                    record.finality_provider_pk_hex,
                    record.state.value,
                    record.staking_tx.start_height,
                    record.staking_tx.start_timestamp,
                    record.model_dump_json(),
                ),
            )
            self.conn.commit()

    def save_pk_address_mapping(self, staker_pk_hex: str, taproot_address: str):
        with self._lock:
            self.cursor.execute(
                'INSERT OR REPLACE INTO pk_address_mappings (taproot_address, staker_pk_hex) VALUES (?, ?)',
                (taproot_address, staker_pk_hex),
            )
            self.conn.commit()

    # --- Reads ---
    def find_delegations_by_staker_pk(self, staker_pk_hex: str, cursor: PaginationToken,
                                      limit: int) -> Page:
        """
        Returns up to `limit` delegations of a staker after `cursor`.
        An unknown staker yields an empty page.
        """
        with self._lock:
            if cursor.is_start:
                self.cursor.execute(
                    f'SELECT data FROM delegations WHERE staker_pk_hex = ? {_ORDER} LIMIT ?',
                    (staker_pk_hex, limit + 1),
                )
            else:
                self.cursor.execute(
                    'SELECT data FROM delegations WHERE staker_pk_hex = ? '
                    'AND (start_height < ? OR (start_height = ? AND staking_tx_hash_hex < ?)) '
                    f'{_ORDER} LIMIT ?',
                    (staker_pk_hex, cursor.start_height, cursor.start_height,
                     cursor.staking_tx_hash_hex, limit + 1),
                )
            rows = self.cursor.fetchall()

        records = [DelegationRecord.model_validate_json(row[0]) for row in rows]
        if len(records) <= limit:
            return Page(items=records)
        records = records[:limit]
        return Page(items=records, next_key=encode_pagination_key(PaginationToken.after(records[-1])))

    def find_delegations_by_staker_pk_unpaged(self, staker_pk_hex: str) -> List[DelegationRecord]:
        with self._lock:
            self.cursor.execute(f'SELECT data FROM delegations WHERE staker_pk_hex = ? {_ORDER}', (staker_pk_hex,))
            rows = self.cursor.fetchall()
        return [DelegationRecord.model_validate_json(row[0]) for row in rows]

    def find_delegations_by_finality_provider_pk(self, fp_pk_hex: str) -> List[DelegationRecord]:
        with self._lock:
            self.cursor.execute(
                f'SELECT data FROM delegations WHERE finality_provider_pk_hex = ? {_ORDER}',
                (fp_pk_hex,),
            )
            rows = self.cursor.fetchall()
        return [DelegationRecord.model_validate_json(row[0]) for row in rows]

    def find_delegation_by_tx_hash(self, staking_tx_hash_hex: str) -> Optional[DelegationRecord]:
        with self._lock:
            self.cursor.execute('SELECT data FROM delegations WHERE staking_tx_hash_hex = ?', (staking_tx_hash_hex,))
            row = self.cursor.fetchone()
        return DelegationRecord.model_validate_json(row[0]) if row else None

    def find_staker_pk_by_taproot_address(self, taproot_address: str) -> Optional[str]:
        with self._lock:
            self.cursor.execute(
                'SELECT staker_pk_hex FROM pk_address_mappings WHERE taproot_address = ?',
                (taproot_address,),
            )
            row = self.cursor.fetchone()
        return row[0] if row else None
