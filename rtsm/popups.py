"""
Transient popup resolver: detect an interstitial dialog that may or may not
follow a state-changing action, and clear it so the flow continues the same
way whether or not it appeared.

Detection and resolution never raise.  The caller gets a PopupResult and
decides whether "present but not dismissed" is fatal.
"""

import logging
from dataclasses import dataclass, field

from rtsm.poller import page_sleeper, poll
from rtsm.probes import click_first_visible, first_visible
from rtsm.utils import page_text

logger = logging.getLogger("rtsm_e2e")


@dataclass(frozen=True)
class PopupSpec:
    """Everything needed to recognise and dismiss one kind of popup."""

    name: str
    probe_selectors: tuple = ()
    marker_phrases: tuple = ()
    confirm_selectors: tuple = ()
    # Dialogs render asynchronously; absence is only trusted after this window.
    grace_ms: int = 2_000
    interval_ms: int = 250
    # How long a detected popup gets to render its confirm button.
    confirm_timeout_ms: int = 2_000
    settle_ms: int = 3_000


@dataclass
class PopupResult:
    present: bool
    dismissed: bool = False
    detected_by: str | None = None
    confirmed_with: str | None = None
    errors: list = field(default_factory=list)

    def __post_init__(self):
        if self.dismissed and not self.present:
            raise ValueError("a popup cannot be dismissed without being present")


DUPLICATE_LOGIN_POPUP = PopupSpec(
    name="duplicate-login",
    probe_selectors=(
        "text=해당 계정으로 이미 로그인 한 사용자가 있습니다",
        "text=이미 로그인 한 사용자가 있습니다",
        "text=이전 로그인 사용자의 접속을 끊고",
        "text=계속 진행하시겠습니까",
    ),
    marker_phrases=(
        "해당 계정으로 이미 로그인",
        "이미 로그인 한 사용자",
        "이전 로그인 사용자의 접속을 끊고",
        "already logged in",
    ),
    confirm_selectors=(
        'button:has-text("Confirm")',
        'button:has-text("확인")',
        'button:has-text("OK")',
        'button:has-text("계속")',
        'button:has-text("Continue")',
    ),
)

# Shown once per release after login.  "Version" alone also appears in the
# page footer, so it is never used as a marker on its own.
VERSION_RELEASE_POPUP = PopupSpec(
    name="version-release",
    probe_selectors=(
        '[role="dialog"]:has-text("Release Note")',
        '[role="dialog"]:has-text("릴리즈 노트")',
        '.modal:has-text("Version")',
    ),
    marker_phrases=(
        "Release Note",
        "릴리즈 노트",
        "What's New",
    ),
    confirm_selectors=(
        '[role="dialog"] button:has-text("Close")',
        '[role="dialog"] button:has-text("닫기")',
        '[role="dialog"] button[aria-label="Close"]',
        'button:has-text("Confirm")',
        'button:has-text("확인")',
        'button:has-text("Close")',
    ),
    settle_ms=1_000,
)


def detect_popup(page, spec: PopupSpec) -> str | None:
    """
    One detection tick: selector probes first, then the page-text markers.
    Returns a description of the first positive signal, or None.
    """
    probe = first_visible(page, spec.probe_selectors)
    if probe.found:
        return f"selector {probe.selector}"

    text = page_text(page)
    for phrase in spec.marker_phrases:
        if phrase in text:
            return f"text '{phrase}'"
    return None


def resolve_popup(page, spec: PopupSpec) -> PopupResult:
    """
    Watch for *spec*'s popup for its grace period and dismiss it if seen.

    Returns:
        PopupResult(present=False)                  — nothing within the window
        PopupResult(present=True, dismissed=True)   — a confirm candidate was clicked
        PopupResult(present=True, dismissed=False)  — seen, but no candidate worked
    """
    logger.info(f"🔍 Checking for '{spec.name}' popup...")
    sleep = page_sleeper(page)

    try:
        detection = poll(lambda: detect_popup(page, spec), spec.grace_ms,
                         spec.interval_ms, sleep=sleep, label=f"{spec.name} popup")
    except Exception as e:
        # Only the page sleeper can raise here (page closed under us).
        logger.warning(f"⚠️ '{spec.name}' popup detection aborted: {e}")
        return PopupResult(False, errors=[e])

    if not detection:
        logger.info(f"✅ No '{spec.name}' popup, continuing.")
        return PopupResult(False)

    logger.info(f"⚠️ '{spec.name}' popup detected via {detection.value}")
    result = PopupResult(True, detected_by=detection.value)

    try:
        confirm = poll(
            lambda: click_first_visible(page, spec.confirm_selectors, label=spec.name) or None,
            spec.confirm_timeout_ms, spec.interval_ms, sleep=sleep,
            label=f"{spec.name} confirm",
        )
    except Exception as e:
        logger.warning(f"⚠️ '{spec.name}' popup confirm aborted: {e}")
        result.errors.append(e)
        return result

    if not confirm:
        logger.warning(
            f"❌ '{spec.name}' popup is present but no confirm button was clickable. "
            f"Manual handling may be required."
        )
        return result

    result.dismissed = True
    result.confirmed_with = confirm.value.selector
    logger.info(f"✅ Clicked {result.confirmed_with!r} to dismiss '{spec.name}' popup")

    try:
        sleep(spec.settle_ms / 1000)
    except Exception as e:
        logger.debug(f"  settle wait interrupted: {e}")
        result.errors.append(e)
    return result


def handle_duplicate_login_popup(page, spec: PopupSpec = DUPLICATE_LOGIN_POPUP) -> PopupResult:
    """Clear the "account already logged in elsewhere" dialog after a login submit."""
    return resolve_popup(page, spec)


def handle_version_release_popup(page, spec: PopupSpec = VERSION_RELEASE_POPUP) -> PopupResult:
    """Close the Version & Release notice that may follow a login."""
    return resolve_popup(page, spec)
