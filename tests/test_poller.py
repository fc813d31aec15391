import time

import pytest

from rtsm.errors import RetryError
from rtsm.poller import PollOutcome, page_sleeper, poll, retry


def test_poll_evaluates_immediately_without_sleeping():
    sleeps = []
    outcome = poll(lambda: "ready", timeout_ms=5_000, interval_ms=500, sleep=sleeps.append)

    assert outcome.satisfied
    assert outcome.value == "ready"
    assert outcome.attempts == 1
    assert sleeps == []


def test_poll_times_out_within_one_interval_of_deadline():
    start = time.monotonic()
    outcome = poll(lambda: False, timeout_ms=2_000, interval_ms=500)
    elapsed = time.monotonic() - start

    assert not outcome
    assert 2.0 <= elapsed < 2.5
    assert outcome.attempts >= 4


def test_poll_returns_value_once_predicate_turns_true():
    calls = {"n": 0}

    def predicate():
        calls["n"] += 1
        return calls["n"] >= 3 and {"rows": 2}

    outcome = poll(predicate, timeout_ms=2_000, interval_ms=50)

    assert outcome.satisfied
    assert outcome.value == {"rows": 2}
    assert outcome.attempts == 3


def test_poll_swallows_predicate_errors():
    calls = {"n": 0}

    def predicate():
        calls["n"] += 1
        if calls["n"] < 3:
            raise RuntimeError("Execution context was destroyed")
        return True

    outcome = poll(predicate, timeout_ms=2_000, interval_ms=50)

    assert outcome.satisfied
    assert isinstance(outcome.last_error, RuntimeError)


def test_poll_keeps_last_error_on_timeout():
    def predicate():
        raise RuntimeError("detached")

    outcome = poll(predicate, timeout_ms=150, interval_ms=50)

    assert not outcome.satisfied
    assert "detached" in str(outcome.last_error)


def test_poll_never_busy_spins():
    sleeps = []

    def sleep(seconds):
        sleeps.append(seconds)
        time.sleep(seconds)

    poll(lambda: False, timeout_ms=300, interval_ms=0, sleep=sleep)

    # Zero interval is clamped; only the final partial sleep may be shorter.
    assert all(s >= 0.05 for s in sleeps[:-1])
    assert len(sleeps) <= 7


def test_poll_outcome_is_falsy_when_timed_out():
    assert not PollOutcome(False)
    assert PollOutcome(True, value=0)


def test_page_sleeper_waits_through_the_page(fake_page):
    page = fake_page()
    page_sleeper(page)(0.01)
    assert page.waits == [pytest.approx(10)]


def test_retry_returns_first_success():
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 2:
            raise ValueError("not yet")
        return "ok"

    assert retry(flaky, max_attempts=3, delay_ms=1, sleep=lambda s: None) == "ok"
    assert len(attempts) == 2


def test_retry_raises_after_exhausting_attempts():
    def always_fails():
        raise ValueError("boom")

    with pytest.raises(RetryError) as exc:
        retry(always_fails, max_attempts=3, delay_ms=1, sleep=lambda s: None)

    assert exc.value.attempts == 3
    assert isinstance(exc.value.__cause__, ValueError)


def test_retry_rejects_zero_attempts():
    with pytest.raises(ValueError):
        retry(lambda: None, max_attempts=0)
