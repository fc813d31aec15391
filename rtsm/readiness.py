"""
Readiness verifier: decide whether a data-bearing view (the study table)
has finished its asynchronous load.

Network idleness is not enough for a client-rendered table, so each poll
tick takes a DOM snapshot and combines three kinds of signal:

  structural : enough known column headers are rendered
  content    : study rows AND environment tags, or an explicit empty marker
  negative   : no loading text anywhere on the page

ready ⟺ headers AND (data OR empty) AND NOT loading
"""

import logging
from dataclasses import dataclass
from enum import Enum

from rtsm.poller import page_sleeper, poll
from rtsm.utils import describe_page

logger = logging.getLogger("rtsm_e2e")


class ViewState(Enum):
    LOADING = "still-loading"
    LOADED_WITH_DATA = "loaded-with-data"
    LOADED_EMPTY = "loaded-empty"


@dataclass(frozen=True)
class TableSpec:
    header_texts: tuple = ("Study Name", "Protocol No.", "DB Status")
    min_headers: int = 3
    # JS regex source; matched against short text nodes only.
    row_pattern: str = r"RTSM_JK\w*"
    max_row_text_length: int = 50
    category_tags: tuple = ("SANDBOX", "REAL", "BETA")
    empty_marker: str = "No data is available"
    loading_markers: tuple = ("Loading", "loading", "로딩", "불러오는 중", "Fetching")


STUDY_TABLE = TableSpec()


# Counts only; the verdict itself is computed in Python so it can be
# tested without a browser.
_SNAPSHOT_JS = """
({headers, rowPattern, maxRowTextLength, tags}) => {
  const elements = Array.from(document.querySelectorAll('body *'));
  const texts = elements.map(el => (el.textContent || '').trim());
  const rowRe = new RegExp(rowPattern);
  const headerCount = headers.filter(h => texts.includes(h)).length;
  const rowCount = texts.filter(t => t.length < maxRowTextLength && rowRe.test(t)).length;
  const tagCount = texts.filter(t => tags.includes(t)).length;
  const body = document.body ? (document.body.innerText || document.body.textContent || '') : '';
  return {headerCount, rowCount, tagCount, text: body};
}
"""


@dataclass(frozen=True)
class TableSnapshot:
    header_count: int = 0
    row_count: int = 0
    tag_count: int = 0
    text: str = ""


@dataclass(frozen=True)
class ReadinessVerdict:
    header_signal: bool
    data_signal: bool
    empty_signal: bool
    loading_signal: bool
    state: ViewState
    snapshot: TableSnapshot

    @property
    def ready(self) -> bool:
        return self.state is not ViewState.LOADING

    def __bool__(self) -> bool:
        return self.ready

    def summary(self) -> str:
        s = self.snapshot
        return (f"headers={s.header_count} rows={s.row_count} tags={s.tag_count} "
                f"empty={self.empty_signal} loading={self.loading_signal} → {self.state.value}")


def evaluate_readiness(snapshot: TableSnapshot, spec: TableSpec = STUDY_TABLE) -> ReadinessVerdict:
    """Pure verdict for one snapshot.  Data wins over the empty marker if both show."""
    header_signal = snapshot.header_count >= spec.min_headers
    data_signal = snapshot.row_count > 0 and snapshot.tag_count > 0
    empty_signal = spec.empty_marker in snapshot.text
    loading_signal = any(marker in snapshot.text for marker in spec.loading_markers)

    if loading_signal or not header_signal:
        state = ViewState.LOADING
    elif data_signal:
        state = ViewState.LOADED_WITH_DATA
    elif empty_signal:
        state = ViewState.LOADED_EMPTY
    else:
        state = ViewState.LOADING

    return ReadinessVerdict(header_signal, data_signal, empty_signal,
                            loading_signal, state, snapshot)


def take_snapshot(page, spec: TableSpec = STUDY_TABLE) -> TableSnapshot:
    raw = page.evaluate(_SNAPSHOT_JS, {
        "headers": list(spec.header_texts),
        "rowPattern": spec.row_pattern,
        "maxRowTextLength": spec.max_row_text_length,
        "tags": list(spec.category_tags),
    })
    return TableSnapshot(
        header_count=int(raw.get("headerCount", 0)),
        row_count=int(raw.get("rowCount", 0)),
        tag_count=int(raw.get("tagCount", 0)),
        text=raw.get("text") or "",
    )


def read_table_state(page, spec: TableSpec = STUDY_TABLE) -> ReadinessVerdict:
    """Snapshot the page once and return the verdict (may raise mid-navigation)."""
    return evaluate_readiness(take_snapshot(page, spec), spec)


def wait_for_table_ready(page, spec: TableSpec = STUDY_TABLE,
                         timeout_ms: int = 15_000, interval_ms: int = 1_000) -> bool:
    """
    Poll the table until it reaches a terminal state.

    Returns False on timeout instead of raising: the caller logs and goes on
    verifying whatever partial state exists.
    """
    logger.info("⏳ Waiting for study list to finish loading...")
    last = None

    def _tick():
        nonlocal last
        last = read_table_state(page, spec)
        logger.debug(f"  table state: {last.summary()}")
        return last if last.ready else None

    try:
        outcome = poll(_tick, timeout_ms, interval_ms,
                       sleep=page_sleeper(page), label="table-ready")
    except Exception as e:
        # Only the page sleeper can raise here (page closed under us).
        logger.warning(f"⚠️ Study list wait aborted: {e}")
        return False
    if outcome:
        logger.info(f"✅ Study list loaded ({outcome.value.state.value})")
        return True

    info = describe_page(page)
    logger.warning(f"⚠️ Study list not ready after {timeout_ms}ms")
    if last is not None:
        logger.warning(f"  last state: {last.summary()}")
    elif outcome.last_error is not None:
        logger.warning(f"  snapshot failed: {outcome.last_error}")
    logger.warning(f"  url={info['url']} title={info['title']}")
    logger.warning(f"  text={info['text']!r}")
    return False


# ── Load-state helpers ───────────────────────────────────────────────────

DEFAULT_LOADING_SELECTOR = '[data-testid="loading"], .loading, .spinner'


def wait_for_page_load(page, timeout_ms: int = 30_000) -> None:
    """Network idle, then DOM content loaded.  Raises on timeout."""
    page.wait_for_load_state("networkidle", timeout=timeout_ms)
    page.wait_for_load_state("domcontentloaded", timeout=timeout_ms)


def wait_for_loading_to_complete(page, loading_selector: str = DEFAULT_LOADING_SELECTOR,
                                 timeout_ms: int = 30_000, appear_ms: int = 3_000) -> bool:
    """
    Wait for a spinner to show up and then go away.

    Returns True when no spinner is visible at the end.  A spinner that never
    appears is normal; one that never hides returns False.
    """
    spinner = page.locator(loading_selector).first
    try:
        spinner.wait_for(state="visible", timeout=appear_ms)
    except Exception:
        logger.debug("  no loading indicator appeared")
        return True

    try:
        spinner.wait_for(state="hidden", timeout=timeout_ms)
        return True
    except Exception:
        logger.warning(f"⚠️ Loading indicator still visible after {timeout_ms}ms")
        return False
