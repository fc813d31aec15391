"""
Candidate selector sets: ordered, interchangeable probes for one semantic
element ("the email input", "the confirm button").

The first selector whose first match is visible wins.  Exhausting the list
is a named outcome (NOT_FOUND or ERROR), never an exception.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from rtsm.poller import page_sleeper, poll

logger = logging.getLogger("rtsm_e2e")


class ProbeStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    # Every probe raised: the page could not be inspected at all.
    ERROR = "error"


@dataclass
class ProbeResult:
    status: ProbeStatus
    selector: str | None = None
    locator: object = None
    errors: list = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.status is ProbeStatus.FOUND

    def __bool__(self) -> bool:
        return self.found


def first_visible(page, selectors) -> ProbeResult:
    """Probe *selectors* in order and return the first visible match."""
    errors = []
    for selector in selectors:
        try:
            locator = page.locator(selector).first
            if locator.is_visible():
                return ProbeResult(ProbeStatus.FOUND, selector, locator, errors)
        except Exception as e:
            errors.append((selector, e))
            logger.debug(f"  probe {selector!r} failed: {e}")

    if selectors and len(errors) == len(selectors):
        return ProbeResult(ProbeStatus.ERROR, errors=errors)
    return ProbeResult(ProbeStatus.NOT_FOUND, errors=errors)


def wait_for_any_selector(page, selectors, timeout_ms: int = 10_000,
                          interval_ms: int = 250) -> ProbeResult:
    """
    Wait until any of *selectors* is visible.

    Returns the FOUND result for the winning selector, or the last
    NOT_FOUND / ERROR result once *timeout_ms* passes.
    """
    last = ProbeResult(ProbeStatus.NOT_FOUND)

    def _probe():
        nonlocal last
        last = first_visible(page, selectors)
        return last if last.found else None

    outcome = poll(_probe, timeout_ms, interval_ms,
                   sleep=page_sleeper(page), label="any-selector")
    return outcome.value if outcome else last


def click_first_visible(page, selectors, label: str = "element") -> ProbeResult:
    """
    Click the first visible candidate.  A candidate whose click raises is
    skipped in favour of the next one.
    """
    errors = []
    for selector in selectors:
        result = first_visible(page, [selector])
        errors.extend(result.errors)
        if not result.found:
            continue
        try:
            text = (result.locator.text_content() or "").strip()
            logger.debug(f"  {label}: clicking {selector!r} (text={text[:40]!r})")
            result.locator.click()
            return ProbeResult(ProbeStatus.FOUND, selector, result.locator, errors)
        except Exception as e:
            errors.append((selector, e))
            logger.debug(f"  {label}: click on {selector!r} failed: {e}")

    if selectors and len(errors) >= len(selectors):
        return ProbeResult(ProbeStatus.ERROR, errors=errors)
    return ProbeResult(ProbeStatus.NOT_FOUND, errors=errors)


def fill_first_visible(page, selectors, value: str, label: str = "input") -> ProbeResult:
    """Clear and fill the first visible candidate input."""
    result = first_visible(page, selectors)
    if not result.found:
        return result
    try:
        result.locator.fill(value)
    except Exception as e:
        logger.debug(f"  {label}: fill on {result.selector!r} failed: {e}")
        return ProbeResult(ProbeStatus.ERROR, result.selector, result.locator,
                           result.errors + [(result.selector, e)])
    return result
