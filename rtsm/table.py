"""
Generic table helpers: locate a table among markup variants, then read it.
"""

import logging

from rtsm.errors import FlowError
from rtsm.probes import wait_for_any_selector

logger = logging.getLogger("rtsm_e2e")

TABLE_SELECTORS = (
    "table",
    '[role="table"]',
    ".table",
    '[data-testid="table"]',
    ".data-table",
    ".basic-table",
    ".grid",
    '[role="grid"]',
)

_ROW_SUFFIXES = ("tr", "tbody tr", '[role="row"]')
_CELL_SELECTOR = 'td, th, [role="cell"], [role="columnheader"]'


def wait_for_table(page, table_selector: str = "table", timeout_ms: int = 30_000) -> str:
    """
    Wait for any table variant to render and return the selector that matched.

    No table at all is a hard failure.  A table without rows is only logged.
    """
    logger.info("Waiting for table to render...")
    candidates = [table_selector] + [s for s in TABLE_SELECTORS if s != table_selector]
    probe = wait_for_any_selector(page, candidates, timeout_ms)
    if not probe.found:
        raise FlowError(f"No table found after {timeout_ms}ms (tried {len(candidates)} selectors)")

    for suffix in _ROW_SUFFIXES:
        try:
            rows = page.locator(f"{probe.selector} {suffix}")
            if rows.count() > 0:
                first_text = (rows.first.text_content() or "").strip()
                if first_text:
                    logger.debug(f"  first row: {first_text[:100]}")
                return probe.selector
        except Exception as e:
            logger.debug(f"  row probe {suffix!r} failed: {e}")

    logger.warning("⚠️ Table is present but no data rows were found.")
    return probe.selector


def _rows(page, table_selector: str):
    return page.locator(f'{table_selector} tr, {table_selector} [role="row"]')


def extract_table_data(page, table_selector: str = "table") -> list[list[str]]:
    """Cell text of every non-empty row, header row included."""
    found = wait_for_table(page, table_selector)
    rows = _rows(page, found)
    data = []
    for i in range(rows.count()):
        cells = rows.nth(i).locator(_CELL_SELECTOR)
        row = [(cells.nth(j).text_content() or "").strip() for j in range(cells.count())]
        if row:
            data.append(row)
    return data


def find_table_row_by_text(page, text: str, table_selector: str = "table"):
    """First row locator whose text contains *text*, or None."""
    found = wait_for_table(page, table_selector)
    rows = _rows(page, found)
    for i in range(rows.count()):
        row = rows.nth(i)
        if text in (row.text_content() or ""):
            return row
    return None
