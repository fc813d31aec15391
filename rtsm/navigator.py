"""
Navigator module: open the app, inspect the study list, and move around a
study's dashboard.

Waits use DOM signals wherever the app exposes one.  The study dashboard
has no ready signal, so it gets network idle plus a short settle.
"""

import logging
import re
from dataclasses import replace
from playwright.sync_api import Page

from rtsm.errors import FlowError
from rtsm.probes import first_visible
from rtsm.readiness import STUDY_TABLE, TableSpec, read_table_state, wait_for_table_ready
from rtsm.utils import adaptive_timeout, capture_diagnostics, describe_page

logger = logging.getLogger("rtsm_e2e")

# RTSM is a SPA with polling widgets, but the login page does go idle.
WAIT_STRATEGY = "networkidle"
DASHBOARD_SETTLE_MS = 3_000
STUDY_LIST_BANNER = "View and select a study from your authorized list"

STUDY_STATUSES = ("Unlocked", "Locked")
STUDY_PHASES = ("1 & 2 상", "3 상", "관찰 연구", "연구용 임상시험", "사용 성적 조사")
STUDY_SPONSORS = ("한미약품", "종근당", "셀트리온", "한국화이자")

STUDY_MENUS = {
    "dashboard": ("Subject", "IP Management", "Study Setup", "Manage User", "Dashboard"),
    "ip_management": ("IP Delivery", "IP Inventory Management", "IP Accountability"),
    "study_setup": ("Randomization Settings", "IP Supply Settings"),
    "manage": ("Manage User", "Manage Role", "Manage Site", "Manage Depot"),
}

_USER_NO_RE = re.compile(r"No\.\s+\d+")


def open_base_url(page: Page, config: dict) -> None:
    """Navigate to the app root.  Navigation errors propagate."""
    logger.info(f"Navigating to: {config['base_url']}")
    page.goto(config["base_url"], wait_until=WAIT_STRATEGY, timeout=config["timeout"])


def _count_text(page: Page, text: str) -> int:
    try:
        return page.locator(f"text={text}").count()
    except Exception:
        return 0


def _count_labels(page: Page, labels) -> dict:
    """Occurrences of each label on the page, leaving out labels not shown."""
    counts = {}
    for label in labels:
        count = _count_text(page, label)
        if count:
            counts[label] = count
    return counts


def verify_dashboard_functionality(page: Page, config: dict,
                                   spec: TableSpec = STUDY_TABLE) -> dict:
    """
    Check the study list after login and summarise what it shows.

    A slow table is tolerated: the summary is built from whatever is on
    screen.  Only an empty list without its header row raises.
    """
    if config.get("study_pattern"):
        spec = replace(spec, row_pattern=config["study_pattern"])
    logger.info("📊 Verifying study list...")
    loaded = wait_for_table_ready(page, spec, timeout_ms=adaptive_timeout(15_000, config))
    if not loaded:
        logger.warning("⚠️ Study list did not finish loading; verifying current state anyway.")

    try:
        verdict = read_table_state(page, spec)
    except Exception as e:
        logger.warning(f"⚠️ Could not snapshot study list: {e}")
        verdict = None

    summary = {
        "loaded": loaded,
        "state": verdict.state.value if verdict else None,
        "empty": bool(verdict and verdict.empty_signal and not verdict.data_signal),
        "studies": 0,
        "first_study": None,
        "environments": {},
        "statuses": {},
        "phases": {},
        "sponsors": {},
    }

    if summary["empty"]:
        logger.info("📝 Study list is empty ('No data is available').")
        if not first_visible(page, ["text=Study Name"]).found:
            capture_diagnostics(page, "empty_study_list_without_header")
            raise FlowError("Study list is empty and its header row is missing")
        return summary

    study_locator = page.locator(f"text=/{config['study_pattern']}/")
    try:
        summary["studies"] = study_locator.count()
        if summary["studies"]:
            summary["first_study"] = (study_locator.first.text_content() or "").strip()
    except Exception as e:
        logger.debug(f"  study count failed: {e}")

    if not summary["studies"]:
        info = describe_page(page)
        has_keyword = "Study" in info["text"] or "스터디" in info["text"]
        logger.warning(f"⚠️ No study rows found (Study keyword on page: {has_keyword})")
        return summary

    logger.info(f"✅ {summary['studies']} studies listed, first: {summary['first_study']}")
    summary["environments"] = _count_labels(page, spec.category_tags)
    summary["statuses"] = _count_labels(page, STUDY_STATUSES)
    summary["phases"] = _count_labels(page, STUDY_PHASES)
    summary["sponsors"] = _count_labels(page, STUDY_SPONSORS)

    if not summary["environments"]:
        logger.warning(f"⚠️ None of the known environments {list(spec.category_tags)} found.")
    else:
        logger.info(f"  environments: {summary['environments']}")
    if summary["statuses"]:
        logger.info(f"  statuses: {summary['statuses']}")
    if summary["phases"]:
        logger.info(f"  phases: {summary['phases']}")
    if summary["sponsors"]:
        logger.info(f"  sponsors: {summary['sponsors']}")
    return summary


def open_first_study(page: Page, config: dict) -> str:
    """Click the first protocol link and wait for the study dashboard."""
    link = page.locator(f"a:has-text(\"{config['protocol_link_text']}\")").first
    try:
        link.wait_for(state="visible", timeout=config["timeout"])
    except Exception as e:
        capture_diagnostics(page, "protocol_link_missing")
        raise FlowError(f"No protocol link matching '{config['protocol_link_text']}'") from e

    link_text = (link.text_content() or "").strip()
    logger.info(f"🔗 Opening study: {link_text}")
    link.click()
    page.wait_for_load_state(WAIT_STRATEGY, timeout=config["timeout"])
    page.wait_for_timeout(DASHBOARD_SETTLE_MS)
    logger.info("✅ Study dashboard opened.")
    return link_text


def collect_study_menus(page: Page) -> dict:
    """Visible menu labels per menu group.  Absent labels are simply left out."""
    found = {}
    for group, labels in STUDY_MENUS.items():
        found[group] = [label for label in labels if first_visible(page, [f"text={label}"]).found]
        logger.debug(f"  {group}: {found[group]}")
    return found


def click_menu_if_visible(page: Page, label: str, settle_ms: int = 2_000) -> bool:
    """Click a menu entry if it is on screen.  Returns whether it was clicked."""
    probe = first_visible(page, [f"text={label}"])
    if not probe.found:
        logger.info(f"  menu '{label}' not visible, skipping")
        return False
    probe.locator.click()
    page.wait_for_timeout(settle_ms)
    logger.info(f"✅ Clicked menu '{label}'")
    return True


def back_to_home(page: Page, config: dict) -> None:
    """Return from a study dashboard to the study list."""
    page.click("text=Back to Home", timeout=config["timeout"])
    page.wait_for_load_state(WAIT_STRATEGY, timeout=config["timeout"])
    try:
        page.wait_for_selector(f"text={STUDY_LIST_BANNER}", state="visible", timeout=10_000)
    except Exception as e:
        capture_diagnostics(page, "study_list_not_shown")
        raise FlowError("Study list banner did not appear after 'Back to Home'") from e
    logger.info("✅ Back on the study list.")


def count_study_users(page: Page) -> int:
    """
    Count users on the Manage User screen: 'No. <n>' labels, falling back to
    non-empty table rows.
    """
    text = page.evaluate("() => document.body.innerText") or ""
    matches = _USER_NO_RE.findall(text)
    if matches:
        return len(matches)

    rows = page.locator('table tbody tr, [role="row"]')
    count = 0
    for i in range(rows.count()):
        if (rows.nth(i).text_content() or "").strip():
            count += 1
    return count
