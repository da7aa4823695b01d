import hashlib
import os
import pytest
from stakingapi.core.service import StakingService
from stakingapi.protocol.config.params import NETWORKS
from stakingapi.protocol.crypto.keys import generate_private_key, public_key_from_private
from stakingapi.protocol.types.common import DelegationState
from stakingapi.protocol.types.delegation import DelegationRecord, TimelockTx
from stakingapi.storage.db import StorageDB


def new_pk_hex() -> str:
    return public_key_from_private(generate_private_key()).hex()


@pytest.fixture
def db(tmp_path):
    storage = StorageDB(str(tmp_path / "staking.db"))
    yield storage
    try:
        storage.close()
    except Exception:
        pass


@pytest.fixture
def service(db):
    return StakingService(db, NETWORKS["mainnet"], page_size=3)


@pytest.fixture
def make_delegation():
    """Factory for delegation records with sensible defaults."""
    counter = {"height": 100}

    def _make(staker_pk_hex: str, fp_pk_hex: str, state: DelegationState = DelegationState.ACTIVE,
              start_timestamp: int = 1_700_000_000, start_height: int = None,
              tx_hash: str = None) -> DelegationRecord:
        if start_height is None:
            counter["height"] += 1
            start_height = counter["height"]
        return DelegationRecord(
            staking_tx_hash_hex=tx_hash or hashlib.sha256(os.urandom(32)).hexdigest(),
            staker_pk_hex=staker_pk_hex,
            finality_provider_pk_hex=fp_pk_hex,
            staking_value=1_000_000,
            state=state,
            staking_tx=TimelockTx(
                tx_hex="00" * 64,
                output_index=0,
                start_timestamp=start_timestamp,
                start_height=start_height,
                timelock=64000,
            ),
        )

    return _make
