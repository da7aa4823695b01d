"""
Tests for the delegation query service against a real sqlite store.
"""
import base64
import logging
import pytest
from stakingapi.core.filters import today_start_timestamp
from stakingapi.core.pagination import decode_pagination_key
from stakingapi.protocol.config.params import NETWORKS
from stakingapi.protocol.crypto.addresses import encode_segwit_address, encode_taproot_address
from stakingapi.protocol.types.common import (
    DelegationState,
    InvalidAddress,
    InvalidPaginationKey,
    InvalidPublicKey,
    InvalidTimeframe,
    InvalidTxHash,
    NotFound,
    UpstreamFailure,
    UpstreamQueryFailed,
)
from stakingapi.observability import request_logger
from tests.conftest import new_pk_hex

MAINNET = NETWORKS["mainnet"]


def _staker_with_address(db):
    pk_hex = new_pk_hex()
    address = encode_taproot_address(bytes.fromhex(pk_hex)[1:], MAINNET)
    db.save_pk_address_mapping(pk_hex, address)
    return pk_hex, address


# --- List delegations by staker ---

def test_staker_pages_are_disjoint_and_complete(db, service, make_delegation):
    staker = "02" + "ab" * 32
    fp = new_pk_hex()
    saved = [make_delegation(staker, fp) for _ in range(7)]
    # Two delegations sharing a height exercise the tx hash tie-break
    saved.append(make_delegation(staker, fp, start_height=103))
    for r in saved:
        db.save_delegation(r)
    # Someone else's delegation must never show up
    db.save_delegation(make_delegation(new_pk_hex(), fp))

    seen = []
    key = ""
    pages = 0
    while True:
        page = service.delegations_by_staker_pk(staker, key)
        pages += 1
        assert len(page.items) <= 3
        seen.extend(d.staking_tx_hash_hex for d in page.items)
        key = page.next_key
        if not key:
            break
        assert pages < 10

    assert pages == 3
    assert len(seen) == len(set(seen)) == 8
    assert set(seen) == {r.staking_tx_hash_hex for r in saved}


def test_staker_delegations_newest_first(db, service, make_delegation):
    staker = new_pk_hex()
    fp = new_pk_hex()
    for height in (10, 30, 20):
        db.save_delegation(make_delegation(staker, fp, start_height=height))

    page = service.delegations_by_staker_pk(staker)
    assert [d.staking_tx.start_height for d in page.items] == [30, 20, 10]
    assert page.next_key == ""


def test_exact_page_size_has_no_next_key(db, service, make_delegation):
    staker = new_pk_hex()
    fp = new_pk_hex()
    for _ in range(3):
        db.save_delegation(make_delegation(staker, fp))

    page = service.delegations_by_staker_pk(staker)
    assert len(page.items) == 3
    assert page.next_key == ""


def test_next_key_points_at_last_item(db, service, make_delegation):
    staker = new_pk_hex()
    fp = new_pk_hex()
    for _ in range(4):
        db.save_delegation(make_delegation(staker, fp))

    page = service.delegations_by_staker_pk(staker)
    token = decode_pagination_key(page.next_key)
    assert token.staking_tx_hash_hex == page.items[-1].staking_tx_hash_hex
    assert token.start_height == page.items[-1].staking_tx.start_height


def test_unknown_staker_returns_empty_page(service):
    page = service.delegations_by_staker_pk(new_pk_hex())
    assert page.items == []
    assert page.next_key == ""


def test_upper_case_staker_key_matches(db, service, make_delegation):
    staker = new_pk_hex()
    db.save_delegation(make_delegation(staker, new_pk_hex()))
    assert len(service.delegations_by_staker_pk(staker.upper()).items) == 1


def test_list_rejects_bad_inputs(service):
    with pytest.raises(InvalidPublicKey):
        service.delegations_by_staker_pk("")
    with pytest.raises(InvalidPaginationKey):
        service.delegations_by_staker_pk(new_pk_hex(), "garbage")


def test_list_rejects_height_too_large_for_storage(db, service, make_delegation):
    staker = new_pk_hex()
    db.save_delegation(make_delegation(staker, new_pk_hex()))
    key = base64.urlsafe_b64encode(
        b'{"staking_tx_hash_hex":"aa","start_height":100000000000000000000000}'
    ).decode("ascii")
    with pytest.raises(InvalidPaginationKey):
        service.delegations_by_staker_pk(staker, key)


def test_delegation_view_carries_state_string(db, service, make_delegation):
    staker = new_pk_hex()
    db.save_delegation(make_delegation(staker, new_pk_hex(), state=DelegationState.UNBONDING_REQUESTED))
    view = service.delegations_by_staker_pk(staker).items[0]
    assert view.state == "unbonding_requested"
    assert view.staker_pk_hex == staker


# --- Finality provider counts ---

def test_finality_provider_counts(db, service, make_delegation):
    fp = new_pk_hex()
    staker_a = new_pk_hex()
    staker_b = new_pk_hex()
    db.save_delegation(make_delegation(staker_a, fp, state=DelegationState.ACTIVE))
    db.save_delegation(make_delegation(staker_a, fp, state=DelegationState.UNBONDED))
    db.save_delegation(make_delegation(staker_b, fp, state=DelegationState.ACTIVE))
    # Delegation to another provider
    db.save_delegation(make_delegation(staker_b, new_pk_hex()))

    assert service.staker_count_by_finality_provider(fp) == 2
    assert service.delegations_count_by_finality_provider(fp) == 2


def test_finality_provider_counts_span_more_than_one_page(db, service, make_delegation):
    fp = new_pk_hex()
    stakers = [new_pk_hex() for _ in range(4)]
    for staker in stakers:
        for _ in range(2):
            db.save_delegation(make_delegation(staker, fp))

    assert service.staker_count_by_finality_provider(fp) == 4
    assert service.delegations_count_by_finality_provider(fp) == 8


def test_unknown_finality_provider_counts_zero(service):
    fp = new_pk_hex()
    assert service.staker_count_by_finality_provider(fp) == 0
    assert service.delegations_count_by_finality_provider(fp) == 0


def test_finality_provider_counts_reject_bad_key(service):
    with pytest.raises(InvalidPublicKey):
        service.staker_count_by_finality_provider("xyz")
    with pytest.raises(InvalidPublicKey):
        service.delegations_count_by_finality_provider("")


# --- Staker count ---

def test_staker_count_is_keyed_by_staker(db, service, make_delegation):
    staker = new_pk_hex()
    fp = new_pk_hex()
    for _ in range(3):
        db.save_delegation(make_delegation(staker, fp))
    for _ in range(2):
        db.save_delegation(make_delegation(staker, fp, state=DelegationState.UNBONDED))

    assert service.delegations_count_by_staker_pk(staker) == 3
    # Looking the provider up as if it were a staker finds nothing
    assert service.delegations_count_by_staker_pk(fp) == 0


def test_staker_count_rejects_bad_key(service):
    with pytest.raises(InvalidPublicKey):
        service.delegations_count_by_staker_pk("02abc")


# --- Active delegation check ---

def test_delegation_created_yesterday(db, service, make_delegation):
    staker, address = _staker_with_address(db)
    yesterday = today_start_timestamp() - 3600
    db.save_delegation(make_delegation(staker, new_pk_hex(), start_timestamp=yesterday))

    assert service.check_staker_has_active_delegation(address, "today") is False
    assert service.check_staker_has_active_delegation(address, "") is True


def test_delegation_created_today(db, service, make_delegation):
    staker, address = _staker_with_address(db)
    db.save_delegation(make_delegation(staker, new_pk_hex(), start_timestamp=today_start_timestamp()))
    assert service.check_staker_has_active_delegation(address, "today") is True


def test_no_delegations_means_no_active_delegation(db, service):
    _, address = _staker_with_address(db)
    assert service.check_staker_has_active_delegation(address) is False


def test_unknown_address_means_no_active_delegation(service):
    address = encode_taproot_address(b"\x01" * 32, MAINNET)
    assert service.check_staker_has_active_delegation(address) is False


def test_only_active_state_counts_for_check(db, service, make_delegation):
    staker, address = _staker_with_address(db)
    db.save_delegation(make_delegation(staker, new_pk_hex(), state=DelegationState.UNBONDING))
    db.save_delegation(make_delegation(staker, new_pk_hex(), state=DelegationState.UNBONDED))
    assert service.check_staker_has_active_delegation(address) is False


def test_upper_case_address_matches(db, service, make_delegation):
    staker, address = _staker_with_address(db)
    db.save_delegation(make_delegation(staker, new_pk_hex()))
    assert service.check_staker_has_active_delegation(address.upper()) is True


def test_check_rejects_bad_inputs(service):
    taproot = encode_taproot_address(b"\x02" * 32, MAINNET)
    with pytest.raises(InvalidAddress):
        service.check_staker_has_active_delegation("")
    with pytest.raises(InvalidAddress):
        service.check_staker_has_active_delegation(encode_segwit_address(0, b"\x03" * 20, MAINNET))
    with pytest.raises(InvalidAddress):
        service.check_staker_has_active_delegation(encode_taproot_address(b"\x02" * 32, NETWORKS["signet"]))
    with pytest.raises(InvalidTimeframe):
        service.check_staker_has_active_delegation(taproot, "week")


# --- Delegation by tx hash ---

def test_delegation_by_tx_hash(db, service, make_delegation):
    record = make_delegation(new_pk_hex(), new_pk_hex())
    db.save_delegation(record)

    view = service.delegation_by_tx_hash(record.staking_tx_hash_hex.upper())
    assert view.staking_tx_hash_hex == record.staking_tx_hash_hex
    assert view.staking_value == record.staking_value

    with pytest.raises(NotFound):
        service.delegation_by_tx_hash("cd" * 32)
    with pytest.raises(InvalidTxHash):
        service.delegation_by_tx_hash("cd" * 31)
    with pytest.raises(InvalidTxHash):
        service.delegation_by_tx_hash("")


# --- Upstream failures ---

def test_storage_failure_surfaces_as_upstream_error(db, service, caplog):
    fp = new_pk_hex()
    db.close()

    with caplog.at_level(logging.ERROR):
        with pytest.raises(UpstreamQueryFailed) as exc_info:
            service.staker_count_by_finality_provider(fp)
    assert exc_info.value.operation == "staker_count_by_finality_provider"
    assert exc_info.value.cause is not None
    assert "storage query failed" in caplog.text

    with pytest.raises(UpstreamFailure):
        service.delegations_by_staker_pk(fp)
    with pytest.raises(UpstreamFailure):
        service.delegations_count_by_staker_pk(fp)
    assert service.health_check() is False


def test_validation_runs_before_storage(db, service):
    db.close()
    # A bad key is reported as such even when storage is down
    with pytest.raises(InvalidPublicKey):
        service.delegations_count_by_finality_provider("bad")


def test_request_logger_is_passed_through(db, service, make_delegation, caplog):
    fp = new_pk_hex()
    db.save_delegation(make_delegation(new_pk_hex(), fp))
    log = request_logger("req-123")

    with caplog.at_level(logging.DEBUG, logger="stakingapi.request"):
        service.delegations_count_by_finality_provider(fp, log=log)
    assert "[req-123] delegations_count_by_finality_provider: delegations len:1" in caplog.text


def test_staker_count_logs_fetched_delegations(db, service, make_delegation, caplog):
    staker = new_pk_hex()
    for state in (DelegationState.ACTIVE, DelegationState.UNBONDED):
        db.save_delegation(make_delegation(staker, new_pk_hex(), state=state))
    log = request_logger("req-9")

    with caplog.at_level(logging.DEBUG, logger="stakingapi.request"):
        assert service.delegations_count_by_staker_pk(staker, log=log) == 1
    assert f"[req-9] delegations_count_by_staker_pk: stakerPkHex:{staker}" in caplog.text
    assert "[req-9] delegations_count_by_staker_pk: delegations len:2" in caplog.text
