"""
Condition poller: re-evaluate a predicate against live page state until it
holds or a deadline passes.

Every wait in this package that is not a plain Playwright auto-wait goes
through poll(), so timeout/interval semantics live in one place.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from rtsm.errors import RetryError

logger = logging.getLogger("rtsm_e2e")

DEFAULT_INTERVAL_MS = 1_000
# Never poll faster than this, whatever the caller asks for.
MIN_INTERVAL_MS = 50


@dataclass
class PollOutcome:
    """Satisfied(value) when `satisfied` is True, otherwise TimedOut."""

    satisfied: bool
    value: Any = None
    attempts: int = 0
    elapsed_ms: int = 0
    last_error: Exception | None = None

    def __bool__(self) -> bool:
        return self.satisfied


def page_sleeper(page) -> Callable[[float], None]:
    """Sleep through the page so Playwright keeps dispatching events meanwhile."""
    return lambda seconds: page.wait_for_timeout(seconds * 1000)


def poll(predicate: Callable[[], Any], timeout_ms: int,
         interval_ms: int = DEFAULT_INTERVAL_MS,
         sleep: Callable[[float], None] = None,
         label: str = "condition") -> PollOutcome:
    """
    Evaluate *predicate* immediately, then every *interval_ms* until it
    returns a truthy value or *timeout_ms* has elapsed.

    An exception from the predicate counts as "not yet" for that tick:
    evaluation racing a navigation is expected, not exceptional.  The last
    such error is kept on the outcome for callers that want it.

    Never returns later than timeout + one interval.
    """
    if sleep is None:
        sleep = time.sleep
    interval_ms = max(interval_ms, MIN_INTERVAL_MS)

    start = time.monotonic()
    deadline = start + max(timeout_ms, 0) / 1000
    attempts = 0
    last_error = None

    while True:
        attempts += 1
        try:
            value = predicate()
        except Exception as e:
            last_error = e
            value = None
            logger.debug(f"  {label}: tick {attempts} raised {e.__class__.__name__}: {e}")
        else:
            if value:
                elapsed = int((time.monotonic() - start) * 1000)
                logger.debug(f"  {label}: satisfied after {attempts} tick(s), {elapsed}ms")
                return PollOutcome(True, value, attempts, elapsed, last_error)

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            elapsed = int((time.monotonic() - start) * 1000)
            logger.debug(f"  {label}: timed out after {attempts} tick(s), {elapsed}ms")
            return PollOutcome(False, None, attempts, elapsed, last_error)

        sleep(min(interval_ms / 1000, remaining))


def retry(operation: Callable[[], Any], max_attempts: int = 3,
          delay_ms: int = 1_000, sleep: Callable[[float], None] = None) -> Any:
    """
    Run *operation* up to *max_attempts* times, pausing *delay_ms* between
    failures.  Returns its result; raises RetryError chained from the last
    failure once attempts are exhausted.

    Only callers opt into this.  Nothing in the package retries implicitly.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got: {max_attempts}")
    if sleep is None:
        sleep = time.sleep

    last_error = None
    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except Exception as e:
            last_error = e
            if attempt < max_attempts:
                logger.warning(
                    f"Attempt {attempt}/{max_attempts} failed ({e}). Retrying in {delay_ms}ms..."
                )
                sleep(delay_ms / 1000)

    raise RetryError(max_attempts, last_error) from last_error
