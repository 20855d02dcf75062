import pytest

from nsems.models.schemas import VerificationOutcome
from nsems.utils.exceptions import SyncTransportFailure

from conftest import HOLDER_ID


def _offline_scan(device, network, token):
    network.up = False
    report = device.verifier.verify(token)
    assert report.record.queued
    return report


def test_scenario_f_reconnect_flush_is_idempotent(device, authority, network, token):
    report = _offline_scan(device, network, token)
    assert authority.service.log_count() == 0

    network.up = True
    first = device.sync.flush()
    assert (first.attempted, first.synced, first.remaining) == (1, 1, 0)
    assert authority.service.log_count() == 1

    # the same entry delivered again, as a retried network call would
    assert device.client.push_outcomes([report.outcome]) == 0
    assert authority.service.log_count() == 1

    second = device.sync.flush()
    assert second.attempted == 0
    assert authority.service.log_count() == 1


def test_lost_acknowledgement_does_not_duplicate_rows(device, authority, network, token, clock):
    _offline_scan(device, network, token)

    network.up = True
    network.drop_responses = True
    lost = device.sync.flush()
    assert (lost.synced, lost.failed) == (0, 1)
    # the authority stored it even though the scan point never heard back
    assert authority.service.log_count() == 1

    network.drop_responses = False
    clock.advance(5000)
    retried = device.sync.flush()
    assert retried.synced == 1
    assert authority.service.log_count() == 1
    assert device.sync.status().pending == 0


def test_failed_pushes_back_off_then_go_dormant(device, network, token, clock):
    _offline_scan(device, network, token)

    report = device.sync.flush()
    assert report.failed == 1

    # still backing off
    assert device.sync.flush().attempted == 0

    clock.advance(5000)
    assert device.sync.flush().failed == 1
    clock.advance(5000)
    assert device.sync.flush().attempted == 0
    clock.advance(5000)
    third = device.sync.flush()
    assert third.failed == 1
    assert third.dormant == 1
    assert third.remaining == 0

    clock.advance(10 * 60 * 1000)
    assert device.sync.flush().attempted == 0
    status = device.sync.status()
    assert (status.pending, status.dormant) == (0, 1)


def test_manual_flush_retries_dormant_entries(device, authority, network, token, clock):
    _offline_scan(device, network, token)
    for _ in range(3):
        device.sync.flush()
        clock.advance(60_000)
    assert device.sync.status().dormant == 1

    network.up = True
    assert device.sync.flush().attempted == 0
    manual = device.sync.flush(manual=True)
    assert manual.synced == 1
    assert device.sync.status().dormant == 0
    assert authority.service.log_count() == 1


def test_backoff_doubles_per_attempt(device):
    assert device.sync.backoff_ms(1) == 5000
    assert device.sync.backoff_ms(2) == 10000
    assert device.sync.backoff_ms(3) == 20000


def test_reconnect_refreshes_cache_and_flushes(device, authority, network, token):
    device.connectivity.on_reconnect(device.sync.handle_reconnect)
    _offline_scan(device, network, token)
    assert not device.connectivity.is_online
    assert device.cache.get(HOLDER_ID) is None

    network.up = True
    assert device.connectivity.probe()
    assert device.sync.status().pending == 0
    assert authority.service.log_count() == 1
    assert device.cache.get(HOLDER_ID).secret == "K"


def test_sync_worker_tick_flushes_when_online(device, authority, network, token):
    _offline_scan(device, network, token)
    device.connectivity.mark_online()
    network.up = True
    device.sync_worker.run_once()
    assert authority.service.log_count() == 1


def test_status_reports_queue_and_cache(device, network, token):
    device.sync.refresh_cache()
    _offline_scan(device, network, token)
    status = device.sync.status()
    assert status.pending == 1
    assert status.cachedHolders == 1
    assert status.cacheRefreshedAtMs is not None
    assert status.online is False


def test_authority_dedups_by_identifier_window_timestamp(authority):
    outcome = VerificationOutcome(
        identifier=HOLDER_ID, window=5, result="valid",
        verifiedAtLocalOrRemote="local", timestamp=1000, latencyMs=3,
    )
    other_time = outcome.model_copy(update={"timestamp": 1001})
    assert authority.service.record_outcomes([outcome, outcome, other_time]) == 2
    assert authority.service.record_outcomes([outcome]) == 0
    assert authority.service.log_count() == 2


def test_idempotency_key_ignores_delivery_details():
    outcome = VerificationOutcome(
        identifier=HOLDER_ID, window=5, result="valid",
        verifiedAtLocalOrRemote="local", timestamp=1000, latencyMs=3,
    )
    redelivered = outcome.model_copy(update={"latencyMs": 9, "scannerId": "gate-2"})
    assert outcome.idempotency_key == redelivered.idempotency_key == (HOLDER_ID, 5, 1000)


def test_unreachable_push_is_a_sync_transport_failure(device, network, token):
    report = _offline_scan(device, network, token)
    with pytest.raises(SyncTransportFailure):
        device.client.push_outcomes([report.outcome])
    flush = device.sync.flush()
    assert (flush.failed, flush.synced) == (1, 0)
    assert device.events.queued_entries()[0].attempts == 1
