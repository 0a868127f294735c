import threading

import pytest

from shopscan.core.config import Settings
from shopscan.core.errors import PreconditionViolation
from shopscan.core.rate_governor import (
    BARCODE_SCAN,
    PRICE_COMPARISON,
    RateGovernor,
    RateLimit,
    build_rate_governor,
)


@pytest.fixture
def governor(fake_clock):
    return RateGovernor({"scan": RateLimit(max_requests=5, window_ms=60_000)}, clock=fake_clock)


def test_sixth_call_in_window_is_rejected_then_admitted_after_window(governor, fake_clock):
    for _ in range(5):
        assert governor.admit("1.2.3.4", "scan") is True
        fake_clock.advance(1_000)

    assert governor.admit("1.2.3.4", "scan") is False

    fake_clock.advance(60_000)
    assert governor.admit("1.2.3.4", "scan") is True


def test_rejected_calls_are_not_recorded(governor, fake_clock):
    for _ in range(5):
        governor.admit("k", "scan")
    for _ in range(10):
        assert governor.admit("k", "scan") is False

    # Only the 5 admitted timestamps exist, all at t0
    fake_clock.advance(60_000)
    assert governor.admit("k", "scan") is True


def test_callers_are_independent(governor):
    for _ in range(5):
        governor.admit("alice", "scan")
    assert governor.admit("alice", "scan") is False
    assert governor.admit("bob", "scan") is True


def test_anonymous_callers_share_default_key(governor):
    for _ in range(5):
        governor.admit(None, "scan")
    assert governor.admit("", "scan") is False


def test_capabilities_are_independent(fake_clock):
    governor = RateGovernor(
        {"scan": RateLimit(1, 60_000), "search": RateLimit(1, 60_000)},
        clock=fake_clock,
    )
    assert governor.admit("k", "scan") is True
    assert governor.admit("k", "scan") is False
    assert governor.admit("k", "search") is True


def test_retry_after_seconds(governor, fake_clock):
    assert governor.retry_after_seconds("k", "scan") == 0
    for _ in range(5):
        governor.admit("k", "scan")
    fake_clock.advance(15_500)
    assert governor.retry_after_seconds("k", "scan") == 45


def test_unknown_capability(governor):
    with pytest.raises(PreconditionViolation):
        governor.admit("k", "nope")


def test_reset(governor):
    for _ in range(5):
        governor.admit("k", "scan")
    governor.reset()
    assert governor.admit("k", "scan") is True


def test_concurrent_admits_never_exceed_limit():
    governor = RateGovernor({"scan": RateLimit(50, 60_000)})
    admitted = []

    def worker():
        for _ in range(20):
            if governor.admit("shared", "scan"):
                admitted.append(1)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(admitted) == 50


def test_build_from_settings():
    cfg = Settings(BARCODE_SCAN_MAX_REQUESTS=1, PRICE_COMPARISON_MAX_REQUESTS=2)
    governor = build_rate_governor(cfg)

    assert governor.admit("k", BARCODE_SCAN) is True
    assert governor.admit("k", BARCODE_SCAN) is False
    assert governor.admit("k", PRICE_COMPARISON) is True


def test_idle_callers_are_forgotten_once_their_window_elapses(governor, fake_clock):
    for i in range(1000):
        governor.admit(f"10.0.{i // 256}.{i % 256}", "scan")
    assert governor.tracked_keys() == 1000

    fake_clock.advance(60_000)
    assert governor.admit("fresh", "scan") is True
    assert governor.tracked_keys() == 1


def test_active_callers_survive_the_sweep(governor, fake_clock):
    governor.admit("idle", "scan")
    fake_clock.advance(30_000)
    governor.admit("busy", "scan")

    fake_clock.advance(30_000)
    governor.admit("other", "scan")

    assert governor.tracked_keys() == 2
    for _ in range(4):
        governor.admit("busy", "scan")
    assert governor.admit("busy", "scan") is False


def test_retry_after_drops_an_expired_key(governor, fake_clock):
    governor.admit("k", "scan")
    fake_clock.advance(60_000)

    assert governor.retry_after_seconds("k", "scan") == 0
    assert governor.tracked_keys() == 0
